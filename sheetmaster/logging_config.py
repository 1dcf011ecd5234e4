"""File logging for merge and backup runs."""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from sheetmaster import app_paths

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(level: int = logging.INFO, path: Optional[Path] = None) -> Path:
    """Attach one UTF-8 file handler for ``path`` to the root logger.

    Repeated calls for the same file reuse the existing handler.  The root
    level is only ever lowered, so a caller that already asked for DEBUG
    keeps it.
    """

    log_path = Path(path) if path is not None else app_paths.logs_path("sheetmaster.log")
    log_path.parent.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(min(root.level, level) if root.handlers else level)

    target = os.path.abspath(log_path)
    for handler in root.handlers:
        if isinstance(handler, logging.FileHandler) and handler.baseFilename == target:
            return log_path

    handler = logging.FileHandler(log_path, encoding="utf-8")
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    root.debug("[Log] Writing to %s", log_path)
    return log_path
