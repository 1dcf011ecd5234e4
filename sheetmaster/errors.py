"""Exception hierarchy shared by the merge and backup workflows."""
from __future__ import annotations

from typing import Iterable, List

__all__ = [
    "SheetMasterError",
    "StoreError",
    "NotFoundError",
    "DuplicateError",
    "ValidationError",
    "HeaderMismatchError",
    "IdCollisionError",
    "SameKeyError",
    "BackupInconsistencyError",
]


class SheetMasterError(Exception):
    """Base error raised by SheetMaster."""


class StoreError(SheetMasterError):
    """Raised when the remote sheet store rejects or fails a request."""


class NotFoundError(StoreError):
    """Raised when a document, worksheet, collection or index row is missing."""


class DuplicateError(SheetMasterError):
    """Raised when a sheetname appears more than once in an index table."""


class ValidationError(SheetMasterError):
    """Raised when a sheet cannot be merged."""

    def __init__(self, sheetname: str, message: str) -> None:
        super().__init__(f"{sheetname}: {message}")
        self.sheetname = sheetname


class HeaderMismatchError(ValidationError):
    """Raised when base and diff worksheets have incompatible headers."""

    def __init__(self, sheetname: str, base_header: Iterable[str], diff_header: Iterable[str]) -> None:
        self.base_header: List[str] = list(base_header)
        self.diff_header: List[str] = list(diff_header)
        super().__init__(
            sheetname,
            f"header mismatch (base={self.base_header!r}, diff={self.diff_header!r})",
        )


class IdCollisionError(ValidationError):
    """Raised when an identifier is present in both base and diff rows."""

    def __init__(self, sheetname: str, ids: Iterable[str]) -> None:
        self.ids: List[str] = list(ids)
        super().__init__(sheetname, f"id collision: {', '.join(self.ids)}")


class SameKeyError(ValidationError):
    """Raised when base and diff already resolve to the same document."""

    def __init__(self, sheetname: str, key: str) -> None:
        self.key = key
        super().__init__(sheetname, f"base and diff share document {key}")


class BackupInconsistencyError(SheetMasterError):
    """Raised when a backup index still references original documents."""

    def __init__(self, stale_keys: Iterable[str]) -> None:
        self.stale_keys: List[str] = list(stale_keys)
        super().__init__(
            "Backup index still references original documents: " + ", ".join(self.stale_keys)
        )
