"""Merge eligibility checks: header compatibility and identifier uniqueness."""
from __future__ import annotations

from collections import Counter
from typing import Iterable, List

from sheetmaster.store import Row, Worksheet, is_blank, non_blank

__all__ = ["same_header", "headers_match", "colliding_ids", "has_id_collision"]

DEFAULT_ID_COLUMN = "id"


def headers_match(first: Iterable[str], second: Iterable[str], *, ignore_blank: bool = False) -> bool:
    """Compare two header sequences column for column."""

    left = list(first)
    right = list(second)
    if ignore_blank:
        left = non_blank(left)
        right = non_blank(right)
    return left == right


def same_header(first: Worksheet, second: Worksheet, ignore_blank: bool = False) -> bool:
    """Return ``True`` when both worksheets share the same header.

    With ``ignore_blank`` the blank column slots are dropped from both sides
    before comparing; order and names must still match exactly.
    """

    return headers_match(first.header(), second.header(), ignore_blank=ignore_blank)


def _ids(rows: Iterable[Row], id_column: str) -> List[str]:
    return [row.get(id_column) for row in rows if not is_blank(row.get(id_column))]


def colliding_ids(
    base_rows: Iterable[Row],
    diff_rows: Iterable[Row],
    id_column: str = DEFAULT_ID_COLUMN,
) -> List[str]:
    """Return the identifiers appearing more than once across both row sets."""

    counts = Counter(_ids(base_rows, id_column) + _ids(diff_rows, id_column))
    return sorted(value for value, count in counts.items() if count > 1)


def has_id_collision(
    base_rows: Iterable[Row],
    diff_rows: Iterable[Row],
    id_column: str = DEFAULT_ID_COLUMN,
) -> bool:
    """Return ``True`` if a non-empty identifier is repeated across the rows."""

    ids = _ids(base_rows, id_column) + _ids(diff_rows, id_column)
    return len(set(ids)) < len(ids)
