from __future__ import annotations

import logging
import os
from pathlib import Path

import pytest

from sheetmaster import logging_config
from sheetmaster.session import CredentialsFileNotFoundError, Session


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers = handlers
    root.setLevel(level)


def test_configure_logging_adds_a_single_file_handler(tmp_path: Path, restore_root_logger) -> None:
    path = tmp_path / "logs" / "sheetmaster.log"

    assert logging_config.configure_logging(path=path) == path
    logging_config.configure_logging(path=path)
    logging.getLogger("sheetmaster.merge").info("[Merge] hello")

    file_handlers = [
        handler
        for handler in restore_root_logger.handlers
        if isinstance(handler, logging.FileHandler) and handler.baseFilename == os.path.abspath(path)
    ]
    assert len(file_handlers) == 1
    file_handlers[0].flush()
    assert "[Merge] hello" in path.read_text(encoding="utf-8")


def test_session_requires_existing_credentials(tmp_path: Path) -> None:
    with pytest.raises(CredentialsFileNotFoundError):
        Session.from_service_account_file(str(tmp_path / "missing.json"))


def test_session_requires_credentials_or_services() -> None:
    with pytest.raises(ValueError):
        Session(sheets=object())
