"""Point-in-time backups of an index-tracked document set.

``BackupOrchestrator.backup`` walks the states

``START -> DUPLICATE_INDEX -> DUPLICATE_DOCUMENTS -> VERIFY -> COMMIT``

and falls into ``ROLLBACK`` from any state after the backup folder exists.
Rollback deletes the backup folder, which removes every duplicate filed in
it so far.  Deletion is best effort: a failure is logged and the original
error is still raised.  Each backup folder carries a UTC timestamp, so a
re-run never reuses a folder left behind by an interrupted attempt.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, Optional

from sheetmaster.errors import BackupInconsistencyError
from sheetmaster.index_table import KEY_COLUMN, SHEETNAME_COLUMN, IndexTable
from sheetmaster.store import Collection, Document, SheetStore

logger = logging.getLogger(__name__)

__all__ = ["BackupOrchestrator", "BackupResult", "BackupState", "INDEX_WS_TITLE_DEFAULT", "verify_backup"]

INDEX_WS_TITLE_DEFAULT = "table_map"


class BackupState(Enum):
    START = "START"
    DUPLICATE_INDEX = "DUPLICATE_INDEX"
    DUPLICATE_DOCUMENTS = "DUPLICATE_DOCUMENTS"
    VERIFY = "VERIFY"
    COMMIT = "COMMIT"
    ROLLBACK = "ROLLBACK"


@dataclass
class BackupResult:
    collection: Collection
    index_document: Document
    index: IndexTable
    key_map: Dict[str, str] = field(default_factory=dict)

    @property
    def url(self) -> str:
        return self.collection.url

    @property
    def index_key(self) -> str:
        return self.index_document.key


def _timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


class BackupOrchestrator:
    def __init__(
        self,
        store: SheetStore,
        *,
        index_worksheet_title: str = INDEX_WS_TITLE_DEFAULT,
        key_column: str = KEY_COLUMN,
        sheetname_column: str = SHEETNAME_COLUMN,
        clock: Callable[[], str] = _timestamp,
    ) -> None:
        self.store = store
        self.index_worksheet_title = index_worksheet_title
        self.key_column = key_column
        self.sheetname_column = sheetname_column
        self._clock = clock
        self.state = BackupState.START

    def _index_table(self, document: Document) -> IndexTable:
        return IndexTable(
            document.worksheet(self.index_worksheet_title),
            key_column=self.key_column,
            sheetname_column=self.sheetname_column,
        )

    def _transition(self, state: BackupState) -> None:
        logger.debug("[Backup] %s -> %s", self.state.value, state.value)
        self.state = state

    def backup(self, index_key: str, collection_url: str, name: str = "backup") -> BackupResult:
        """Duplicate the index document and every document it routes to.

        Returns the backup folder and the rewritten backup index.  Raises
        :class:`BackupInconsistencyError` when the backup index still points
        at an original document; the backup folder is deleted first.
        """

        self.state = BackupState.START
        parent = self.store.resolve_collection(collection_url)
        source_document = self.store.resolve_document(index_key)
        source_index = self._index_table(source_document)
        original_keys = source_index.unique_keys()

        title = f"{name}-{self._clock()}"
        collection = parent.create_subcollection(title)
        logger.info("[Backup] Backing up %s documents into %s", len(original_keys) + 1, title)

        try:
            self._transition(BackupState.DUPLICATE_INDEX)
            index_document = source_document.duplicate(source_document.title, into=collection)
            collection.add(index_document)
            backup_index = self._index_table(index_document)

            self._transition(BackupState.DUPLICATE_DOCUMENTS)
            key_map: Dict[str, str] = {}
            for original_key in original_keys:
                original = self.store.resolve_document(original_key)
                duplicate = original.duplicate(original.title, into=collection)
                collection.add(duplicate)
                key_map[original_key] = duplicate.key
                rewritten = backup_index.rewrite_key(original_key, duplicate.key)
                logger.info(
                    "[Backup] %s -> %s (%s index rows)", original_key, duplicate.key, rewritten
                )

            self._transition(BackupState.VERIFY)
            inconsistency = verify_backup(source_index, backup_index)
            if inconsistency is not None:
                raise inconsistency

            self._transition(BackupState.COMMIT)
            backup_index.save()
        except Exception as exc:
            self._rollback(collection, exc)
            raise

        logger.info("[Backup] Completed: %s", collection.url)
        return BackupResult(
            collection=collection, index_document=index_document, index=backup_index, key_map=key_map
        )

    def _rollback(self, collection: Collection, cause: Exception) -> None:
        failed_state = self.state
        self._transition(BackupState.ROLLBACK)
        logger.error("[Backup] Failed during %s: %s; deleting %s", failed_state.value, cause, collection.url)
        try:
            collection.delete()
        except Exception:
            logger.exception("[Backup] Rollback could not delete %s; remove it manually", collection.url)


def verify_backup(original: IndexTable, backup: IndexTable) -> Optional[BackupInconsistencyError]:
    """Return an error when ``backup`` still references keys of ``original``."""

    stale = sorted(set(original.unique_keys()) & set(backup.unique_keys()))
    if stale:
        return BackupInconsistencyError(stale)
    return None
