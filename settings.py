"""Application configuration helpers for SheetMaster."""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from typing import Dict, Mapping

from sheetmaster import app_paths


logger = logging.getLogger(__name__)


DEFAULT_SETTINGS_PATH = str(app_paths.APP_DIR / "settings.json")

DEFAULT_CREDENTIALS_PATH = os.getenv(
    "SHEETMASTER_CREDENTIALS_PATH",
    str(app_paths.credentials_path("service_account.json")),
)
DEFAULT_INDEX_WORKSHEET_TITLE = os.getenv("SHEETMASTER_INDEX_TITLE", "table_map")
DEFAULT_BACKUP_COLLECTION_NAME = "backup"
DEFAULT_ROW_OFFSET = 0
DEFAULT_SAVE_EVERY = 100
DEFAULT_ID_COLUMN = "id"
DEFAULT_KEY_COLUMN = "key"
DEFAULT_SHEETNAME_COLUMN = "sheetname"

MAX_SAVE_EVERY = 10_000


@dataclass
class MasterSettings:
    credential_path: str = DEFAULT_CREDENTIALS_PATH
    index_worksheet_title: str = DEFAULT_INDEX_WORKSHEET_TITLE
    backup_collection_name: str = DEFAULT_BACKUP_COLLECTION_NAME
    row_offset: int = DEFAULT_ROW_OFFSET
    save_every: int = DEFAULT_SAVE_EVERY
    ignore_blank_headers: bool = False
    id_column: str = DEFAULT_ID_COLUMN
    key_column: str = DEFAULT_KEY_COLUMN
    sheetname_column: str = DEFAULT_SHEETNAME_COLUMN
    subject: str = ""

    def to_json(self) -> Dict[str, object]:
        return {
            "credential_path": self.credential_path,
            "index_worksheet_title": self.index_worksheet_title,
            "backup_collection_name": self.backup_collection_name,
            "row_offset": self.row_offset,
            "save_every": self.save_every,
            "ignore_blank_headers": self.ignore_blank_headers,
            "id_column": self.id_column,
            "key_column": self.key_column,
            "sheetname_column": self.sheetname_column,
            "subject": self.subject,
        }


def _default_payload() -> Dict[str, object]:
    return MasterSettings().to_json()


def _ensure_settings_file(path: str) -> Dict[str, object]:
    if not os.path.exists(path):
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        payload = _default_payload()
        with open(path, "w", encoding="utf-8") as handle:
            json.dump(payload, handle, indent=2)
        return payload
    with open(path, "r", encoding="utf-8") as handle:
        data = json.load(handle)
    if not isinstance(data, dict):
        logger.warning("Settings file %s is not a JSON object; using defaults", path)
        return _default_payload()
    return data


def _coerce_int(value: object, default: int, minimum: int, maximum: int) -> int:
    try:
        return max(minimum, min(maximum, int(value)))  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default


def _coerce_title(value: object, default: str) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


def _coerce_bool(value: object) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "y"}
    return bool(value)


def settings_from_mapping(data: Mapping[str, object]) -> MasterSettings:
    return MasterSettings(
        credential_path=_coerce_title(data.get("credential_path"), DEFAULT_CREDENTIALS_PATH),
        index_worksheet_title=_coerce_title(data.get("index_worksheet_title"), DEFAULT_INDEX_WORKSHEET_TITLE),
        backup_collection_name=_coerce_title(
            data.get("backup_collection_name"), DEFAULT_BACKUP_COLLECTION_NAME
        ),
        row_offset=_coerce_int(data.get("row_offset"), DEFAULT_ROW_OFFSET, 0, 10_000_000),
        save_every=_coerce_int(data.get("save_every"), DEFAULT_SAVE_EVERY, 0, MAX_SAVE_EVERY),
        ignore_blank_headers=_coerce_bool(data.get("ignore_blank_headers", False)),
        id_column=_coerce_title(data.get("id_column"), DEFAULT_ID_COLUMN),
        key_column=_coerce_title(data.get("key_column"), DEFAULT_KEY_COLUMN),
        sheetname_column=_coerce_title(data.get("sheetname_column"), DEFAULT_SHEETNAME_COLUMN),
        subject=data.get("subject") if isinstance(data.get("subject"), str) else "",  # type: ignore[arg-type]
    )


def load_settings(path: str = DEFAULT_SETTINGS_PATH) -> MasterSettings:
    return settings_from_mapping(_ensure_settings_file(path))


def save_settings(settings: MasterSettings, path: str = DEFAULT_SETTINGS_PATH) -> None:
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    with open(path, "w", encoding="utf-8") as handle:
        json.dump(settings.to_json(), handle, indent=2)


__all__ = [
    "MasterSettings",
    "DEFAULT_SETTINGS_PATH",
    "DEFAULT_CREDENTIALS_PATH",
    "DEFAULT_INDEX_WORKSHEET_TITLE",
    "DEFAULT_BACKUP_COLLECTION_NAME",
    "load_settings",
    "save_settings",
    "settings_from_mapping",
]
