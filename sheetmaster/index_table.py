"""Typed view over the index worksheet mapping sheetnames to document keys."""
from __future__ import annotations

import logging
from typing import Dict, List

from sheetmaster.errors import DuplicateError, NotFoundError
from sheetmaster.store import Row, Worksheet, is_blank

logger = logging.getLogger(__name__)

__all__ = ["IndexTable", "KEY_COLUMN", "SHEETNAME_COLUMN"]

KEY_COLUMN = "key"
SHEETNAME_COLUMN = "sheetname"


class IndexTable:
    """Routing table read from the populated rows of an index worksheet."""

    def __init__(
        self,
        worksheet: Worksheet,
        *,
        key_column: str = KEY_COLUMN,
        sheetname_column: str = SHEETNAME_COLUMN,
    ) -> None:
        self.worksheet = worksheet
        self.key_column = key_column
        self.sheetname_column = sheetname_column
        self.rows: List[Row] = list(worksheet.populated_rows())

    def __len__(self) -> int:
        return len(self.rows)

    def _matches(self, sheetname: str) -> List[Row]:
        return [row for row in self.rows if row.get(self.sheetname_column) == sheetname]

    def row_for(self, sheetname: str) -> Row:
        matches = self._matches(sheetname)
        if not matches:
            raise NotFoundError(f"Sheetname {sheetname!r} not found in index {self.worksheet.title!r}")
        if len(matches) > 1:
            raise DuplicateError(
                f"Sheetname {sheetname!r} appears {len(matches)} times in index {self.worksheet.title!r}"
            )
        return matches[0]

    def resolve(self, sheetname: str) -> str:
        """Return the document key currently holding ``sheetname``."""

        return self.row_for(sheetname).get(self.key_column)

    def sheetnames(self) -> List[str]:
        names: Dict[str, None] = {}
        for row in self.rows:
            name = row.get(self.sheetname_column)
            if not is_blank(name):
                names.setdefault(name, None)
        return list(names)

    def unique_keys(self) -> List[str]:
        """Return the distinct document keys in first-appearance order."""

        keys: Dict[str, None] = {}
        for row in self.rows:
            key = row.get(self.key_column)
            if not is_blank(key):
                keys.setdefault(key, None)
        return list(keys)

    def rewrite_key(self, old_key: str, new_key: str) -> int:
        """Point every row referencing ``old_key`` at ``new_key``."""

        rewritten = 0
        for row in self.rows:
            if row.get(self.key_column) == old_key:
                row.set(self.key_column, new_key)
                rewritten += 1
        logger.debug("[Index] %s: %s -> %s on %s rows", self.worksheet.title, old_key, new_key, rewritten)
        return rewritten

    def save(self) -> None:
        self.worksheet.save()
