"""Explicit authenticated session shared by the sheet store.

A :class:`Session` is built once by the caller and handed to
:class:`~sheetmaster.google_store.GoogleSheetStore`; nothing in the package
creates or caches one behind the caller's back.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Optional, Sequence

from google.oauth2 import service_account
from googleapiclient.discovery import build

from sheetmaster.google_credentials import load_service_account_data

logger = logging.getLogger(__name__)

__all__ = ["SCOPES", "Session", "CredentialsFileNotFoundError"]

SCOPES: Sequence[str] = (
    "https://www.googleapis.com/auth/drive",
    "https://www.googleapis.com/auth/spreadsheets",
)


class CredentialsFileNotFoundError(FileNotFoundError):
    """Raised when the configured service account file does not exist."""


class Session:
    """Sheets v4 and Drive v3 services built from one set of credentials."""

    def __init__(self, credentials: Any = None, *, sheets: Any = None, drive: Any = None) -> None:
        if credentials is None and (sheets is None or drive is None):
            raise ValueError("Session needs credentials or both service objects")
        self.credentials = credentials
        self.sheets = sheets or build("sheets", "v4", credentials=credentials, cache_discovery=False)
        self.drive = drive or build("drive", "v3", credentials=credentials, cache_discovery=False)

    @classmethod
    def from_service_account_file(
        cls,
        path: str,
        *,
        scopes: Sequence[str] = SCOPES,
        subject: Optional[str] = None,
    ) -> "Session":
        """Build a session from a service account key file.

        ``subject`` impersonates a domain user when the service account has
        domain-wide delegation.
        """

        resolved = Path(os.path.expanduser(path)).resolve()
        if not resolved.exists():
            raise CredentialsFileNotFoundError(f"Credentials file not found: {resolved}")
        payload = load_service_account_data(resolved)
        credentials = service_account.Credentials.from_service_account_info(payload, scopes=list(scopes))
        if subject:
            credentials = credentials.with_subject(subject)
        logger.info("[Session] Using service account %s", payload.get("client_email"))
        return cls(credentials)
