"""High level entry points combining the store, merge and backup workflows."""
from __future__ import annotations

import logging
from typing import Iterable, Optional, Tuple

from settings import MasterSettings
from sheetmaster.backup import BackupOrchestrator, BackupResult
from sheetmaster.errors import HeaderMismatchError, IdCollisionError
from sheetmaster.google_store import GoogleSheetStore
from sheetmaster.index_table import IndexTable
from sheetmaster.logging_config import configure_logging
from sheetmaster.merge import MergeOrchestrator, MergeReport
from sheetmaster.row_merger import merge_rows
from sheetmaster.session import Session
from sheetmaster.store import SheetStore
from sheetmaster.validation import colliding_ids, same_header

logger = logging.getLogger(__name__)

__all__ = ["MasterClient"]


class MasterClient:
    """Compare, merge and back up index-tracked spreadsheet sets."""

    def __init__(self, store: SheetStore, settings: Optional[MasterSettings] = None) -> None:
        self.store = store
        self.settings = settings or MasterSettings()

    @classmethod
    def from_settings(cls, settings: MasterSettings) -> "MasterClient":
        """Authenticate with the configured service account."""

        configure_logging()
        session = Session.from_service_account_file(
            settings.credential_path, subject=settings.subject or None
        )
        return cls(GoogleSheetStore(session), settings)

    @property
    def index_ws_title(self) -> str:
        return self.settings.index_worksheet_title

    def index_table(self, index_key: str) -> IndexTable:
        document = self.store.resolve_document(index_key)
        return IndexTable(
            document.worksheet(self.index_ws_title),
            key_column=self.settings.key_column,
            sheetname_column=self.settings.sheetname_column,
        )

    def merger(self) -> MergeOrchestrator:
        return MergeOrchestrator(
            self.store,
            row_offset=self.settings.row_offset,
            save_every=self.settings.save_every,
            ignore_blank=self.settings.ignore_blank_headers,
            id_column=self.settings.id_column,
        )

    def compare_header(self, title: str, key_1: str, key_2: str) -> bool:
        first = self.store.resolve_document(key_1).worksheet(title)
        second = self.store.resolve_document(key_2).worksheet(title)
        return same_header(first, second, ignore_blank=self.settings.ignore_blank_headers)

    def merge(self, titles: Iterable[str], base_key: str, diff_key: str) -> MergeReport:
        """Merge same-titled worksheets directly between two documents."""

        base_document = self.store.resolve_document(base_key)
        diff_document = self.store.resolve_document(diff_key)
        report = MergeReport()
        checked = []
        for title in titles:
            base = base_document.worksheet(title)
            diff = diff_document.worksheet(title)
            if not same_header(diff, base, ignore_blank=self.settings.ignore_blank_headers):
                error = HeaderMismatchError(title, base.header(), diff.header())
                logger.error("[Merge] %s", error)
                report.failed[title] = error
                continue
            collisions = colliding_ids(base.populated_rows(), diff.populated_rows(), self.settings.id_column)
            if collisions:
                error = IdCollisionError(title, collisions)
                logger.error("[Merge] %s", error)
                report.failed[title] = error
                continue
            checked.append((title, base, diff))

        for title, base, diff in checked:
            report.merged[title] = merge_rows(
                base,
                diff,
                self.settings.row_offset,
                self.settings.save_every,
                id_column=self.settings.id_column,
                ignore_blank=self.settings.ignore_blank_headers,
            )
        return report

    def merge_index(
        self,
        base_index_key: str,
        diff_index_key: str,
        sheetname: Optional[str] = None,
        *,
        fail_fast: bool = False,
    ) -> MergeReport:
        """Merge sheets routed by two index documents."""

        return self.merger().merge(
            self.index_table(base_index_key),
            self.index_table(diff_index_key),
            sheetname,
            fail_fast=fail_fast,
        )

    def backup(self, index_key: str, collection_url: str, name: Optional[str] = None) -> BackupResult:
        orchestrator = BackupOrchestrator(
            self.store,
            index_worksheet_title=self.index_ws_title,
            key_column=self.settings.key_column,
            sheetname_column=self.settings.sheetname_column,
        )
        return orchestrator.backup(index_key, collection_url, name or self.settings.backup_collection_name)

    def dry_merge(
        self,
        base_index_key: str,
        diff_index_key: str,
        collection_url: str,
        sheetname: Optional[str] = None,
    ) -> Tuple[BackupResult, MergeReport]:
        """Back up the base set, then merge the diff set into the backup.

        The live base documents are never written; the returned backup folder
        holds the rehearsed result.
        """

        snapshot = self.backup(base_index_key, collection_url)
        logger.info("[Merge] Dry run against %s", snapshot.url)
        report = self.merger().merge(snapshot.index, self.index_table(diff_index_key), sheetname)
        return snapshot, report
