"""Validation of service-account key files before a session is built."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, Iterable, List

from sheetmaster.errors import SheetMasterError

__all__ = ["CredentialsFileInvalidError", "REQUIRED_FIELDS", "load_service_account_data"]


class CredentialsFileInvalidError(SheetMasterError):
    """The service-account file is unreadable or incomplete."""


REQUIRED_FIELDS: Iterable[str] = (
    "type",
    "project_id",
    "private_key_id",
    "private_key",
    "client_email",
    "token_uri",
)


def _normalise_private_key(key: str) -> str:
    # Keys pasted through editors arrive with CRLF or literal "\n" sequences.
    key = key.replace("\r\n", "\n").replace("\r", "\n").replace("\\n", "\n")
    return key if key.endswith("\n") else key + "\n"


def load_service_account_data(path: Path) -> Dict[str, object]:
    """Read and validate the key file at ``path``; the file is left untouched."""

    try:
        text = Path(path).read_text(encoding="utf-8-sig").lstrip("\ufeff").strip()
    except OSError as exc:
        raise CredentialsFileInvalidError(f"Credentials file could not be read: {exc}") from exc
    if not text:
        raise CredentialsFileInvalidError("Service account JSON is empty.")

    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise CredentialsFileInvalidError(f"Service account JSON could not be parsed: {exc.msg}") from exc
    if not isinstance(data, dict):
        raise CredentialsFileInvalidError("Service account JSON must be an object.")

    missing: List[str] = [
        name for name in REQUIRED_FIELDS if not isinstance(data.get(name), str) or not data[name].strip()
    ]
    if data.get("type") != "service_account" and "type" not in missing:
        missing.append("type")
    if missing:
        raise CredentialsFileInvalidError(
            f"Service account JSON is missing fields: {', '.join(sorted(missing))}"
        )

    data["private_key"] = _normalise_private_key(data["private_key"])
    return data
