"""Copy rows from a diff worksheet into a base worksheet."""
from __future__ import annotations

import logging

from sheetmaster.errors import HeaderMismatchError
from sheetmaster.store import Worksheet, is_blank, non_blank
from sheetmaster.validation import DEFAULT_ID_COLUMN, same_header

logger = logging.getLogger(__name__)

__all__ = ["merge_rows"]


def merge_rows(
    base: Worksheet,
    diff: Worksheet,
    offset: int = 0,
    save_every: int = 0,
    *,
    id_column: str = DEFAULT_ID_COLUMN,
    ignore_blank: bool = False,
) -> int:
    """Append the identified rows of ``diff`` to ``base`` and return the count.

    Rows with an empty ``id_column`` are skipped.  When ``offset`` is positive
    the first merged row is inserted at that 1-based data row position of
    ``base``; every other row goes to the end.  ``base`` is saved after every
    ``save_every`` rows and once more at the end.  Identifier collisions are
    not checked here.
    """

    if offset < 0:
        raise ValueError("offset must be >= 0")
    if not same_header(diff, base, ignore_blank=ignore_blank):
        raise HeaderMismatchError(base.title, base.header(), diff.header())

    columns = non_blank(diff.header())
    appended = 0
    for diff_row in diff.populated_rows():
        if is_blank(diff_row.get(id_column)):
            continue
        position = offset if appended == 0 and offset > 0 else None
        row = base.append_row(at_offset=position)
        for column in columns:
            row.set(column, diff_row.get(column))
        appended += 1
        if save_every > 0 and appended % save_every == 0:
            logger.debug("[Merge] %s: saving after %s rows", base.title, appended)
            base.save()

    base.save()
    logger.info("[Merge] %s: appended %s rows", base.title, appended)
    return appended
