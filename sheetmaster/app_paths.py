"""Centralised helpers for managing SheetMaster application directories."""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable

logger = logging.getLogger(__name__)

_APP_ENV_VARS: Iterable[str] = ("SHEETMASTER_HOME", "LOCALAPPDATA", "APPDATA")


def _detect_base_directory() -> Path:
    for env_var in _APP_ENV_VARS:
        value = os.environ.get(env_var)
        if value:
            base = Path(value).expanduser().resolve()
            return base if env_var == "SHEETMASTER_HOME" else base / "SheetMaster"
    return Path.home().resolve() / ".sheetmaster"


APP_DIR: Path = _detect_base_directory()
LOG_DIR: Path = APP_DIR / "logs"
CREDENTIALS_DIR: Path = APP_DIR / "credentials"


def ensure_directory(path: Path) -> Path:
    """Ensure that ``path`` exists, returning the :class:`~pathlib.Path`."""

    path.mkdir(parents=True, exist_ok=True)
    return path


def ensure_app_structure() -> None:
    """Create the base directories required for application data."""

    for directory in (APP_DIR, LOG_DIR, CREDENTIALS_DIR):
        ensure_directory(directory)


def logs_path(*parts: str) -> Path:
    ensure_app_structure()
    return LOG_DIR.joinpath(*parts)


def credentials_path(*parts: str) -> Path:
    return CREDENTIALS_DIR.joinpath(*parts)


__all__ = [
    "APP_DIR",
    "LOG_DIR",
    "CREDENTIALS_DIR",
    "logs_path",
    "credentials_path",
    "ensure_app_structure",
    "ensure_directory",
]
