"""Merge routed worksheets from a diff index set into a base index set.

A merge runs in two passes.  The check pass resolves every candidate
sheetname in both index tables, loads the two worksheets and validates them
(header compatibility, then identifier uniqueness).  Only once every sheet
has been checked does the apply pass copy rows, so a sheet rejected late in
the batch never leaves earlier sheets half merged while later ones were
never looked at.

Validation failures are logged and recorded per sheetname; the batch moves
on to the next sheet unless ``fail_fast`` is requested.  Sheets whose base
and diff rows already point at the same document are skipped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from sheetmaster.errors import (
    DuplicateError,
    HeaderMismatchError,
    IdCollisionError,
    NotFoundError,
    SameKeyError,
    SheetMasterError,
    StoreError,
    ValidationError,
)
from sheetmaster.index_table import IndexTable
from sheetmaster.row_merger import merge_rows
from sheetmaster.store import SheetStore, Worksheet
from sheetmaster.validation import DEFAULT_ID_COLUMN, colliding_ids, same_header

logger = logging.getLogger(__name__)

__all__ = ["MergeOrchestrator", "MergePlan", "MergeReport"]


@dataclass
class MergePlan:
    """A sheet that passed validation and is ready to be applied."""

    sheetname: str
    base_key: str
    diff_key: str
    base: Worksheet
    diff: Worksheet


@dataclass
class MergeReport:
    merged: Dict[str, int] = field(default_factory=dict)
    skipped: Dict[str, str] = field(default_factory=dict)
    failed: Dict[str, SheetMasterError] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed

    @property
    def rows_appended(self) -> int:
        return sum(self.merged.values())


class MergeOrchestrator:
    def __init__(
        self,
        store: SheetStore,
        *,
        row_offset: int = 0,
        save_every: int = 0,
        ignore_blank: bool = False,
        id_column: str = DEFAULT_ID_COLUMN,
    ) -> None:
        if row_offset < 0:
            raise ValueError("row_offset must be >= 0")
        self.store = store
        self.row_offset = row_offset
        self.save_every = save_every
        self.ignore_blank = ignore_blank
        self.id_column = id_column

    # ------------------------------------------------------------------
    # Check pass
    # ------------------------------------------------------------------
    def _resolve_pair(self, sheetname: str, base_index: IndexTable, diff_index: IndexTable):
        try:
            base_key = base_index.resolve(sheetname)
            diff_key = diff_index.resolve(sheetname)
        except (NotFoundError, DuplicateError) as exc:
            raise ValidationError(sheetname, str(exc)) from exc
        if base_key == diff_key:
            raise SameKeyError(sheetname, base_key)
        return base_key, diff_key

    def _load(self, key: str, sheetname: str) -> Worksheet:
        try:
            return self.store.resolve_document(key).worksheet(sheetname)
        except NotFoundError as exc:
            raise ValidationError(sheetname, str(exc)) from exc

    def check(self, sheetname: str, base_index: IndexTable, diff_index: IndexTable) -> MergePlan:
        """Validate one sheetname and return its merge plan."""

        base_key, diff_key = self._resolve_pair(sheetname, base_index, diff_index)
        base = self._load(base_key, sheetname)
        diff = self._load(diff_key, sheetname)

        if not same_header(diff, base, ignore_blank=self.ignore_blank):
            raise HeaderMismatchError(sheetname, base.header(), diff.header())

        collisions = colliding_ids(base.populated_rows(), diff.populated_rows(), self.id_column)
        if collisions:
            raise IdCollisionError(sheetname, collisions)

        return MergePlan(sheetname=sheetname, base_key=base_key, diff_key=diff_key, base=base, diff=diff)

    # ------------------------------------------------------------------
    # Apply pass
    # ------------------------------------------------------------------
    def apply(self, plan: MergePlan) -> int:
        logger.info("[Merge] %s: %s -> %s", plan.sheetname, plan.diff_key, plan.base_key)
        return merge_rows(
            plan.base,
            plan.diff,
            self.row_offset,
            self.save_every,
            id_column=self.id_column,
            ignore_blank=self.ignore_blank,
        )

    def merge(
        self,
        base_index: IndexTable,
        diff_index: IndexTable,
        sheetname: Optional[str] = None,
        *,
        fail_fast: bool = False,
    ) -> MergeReport:
        """Merge ``sheetname`` (or every differing diff sheet) into the base set."""

        report = MergeReport()
        names = [sheetname] if sheetname is not None else diff_index.sheetnames()

        plans: List[MergePlan] = []
        for name in names:
            try:
                plans.append(self.check(name, base_index, diff_index))
            except SameKeyError as exc:
                logger.info("[Merge] %s", exc)
                report.skipped[name] = str(exc)
            except (ValidationError, StoreError) as exc:
                logger.error("[Merge] %s: validation failed: %s", name, exc)
                report.failed[name] = exc
                if fail_fast:
                    raise

        for plan in plans:
            try:
                report.merged[plan.sheetname] = self.apply(plan)
            except StoreError as exc:
                logger.error("[Merge] %s: apply failed, earlier rows stay written: %s", plan.sheetname, exc)
                report.failed[plan.sheetname] = exc
                if fail_fast:
                    raise

        logger.info(
            "[Merge] Finished: %s merged, %s skipped, %s failed",
            len(report.merged),
            len(report.skipped),
            len(report.failed),
        )
        return report
