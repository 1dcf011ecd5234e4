"""Dictionary-backed sheet store.

Mirrors the behaviour of :mod:`sheetmaster.google_store` closely enough to run
merge and backup rehearsals without network access: rows are only visible to
a fresh read after ``save``, duplicates receive new keys, and deleting a
collection removes every document filed in it.
"""

from __future__ import annotations

import copy
import itertools
import logging
from typing import Dict, List, Optional, Sequence

from sheetmaster.errors import NotFoundError, StoreError
from sheetmaster.store import Row

logger = logging.getLogger(__name__)

__all__ = ["MemoryStore", "MemoryDocument", "MemoryWorksheet", "MemoryCollection"]

URL_PREFIX = "memory://folders/"


class MemoryWorksheet:
    def __init__(self, title: str, header: Sequence[str], rows: Sequence[Dict[str, str]] = ()) -> None:
        self.title = title
        self._header: List[str] = list(header)
        self._saved: List[Dict[str, str]] = [dict(row) for row in rows]
        self._rows: List[Row] = [Row.from_mapping(row) for row in self._saved]
        self.save_count = 0

    def header(self) -> List[str]:
        return list(self._header)

    def populated_rows(self) -> List[Row]:
        return [row for row in self._rows if row.is_populated()]

    def append_row(self, at_offset: Optional[int] = None) -> Row:
        row = Row(dirty=True)
        if at_offset is not None and at_offset > 0:
            self._rows.insert(min(at_offset - 1, len(self._rows)), row)
        else:
            self._rows.append(row)
        return row

    def save(self) -> None:
        self._saved = [row.as_dict() for row in self._rows]
        for row in self._rows:
            row.dirty = False
        self.save_count += 1

    def saved_rows(self) -> List[Dict[str, str]]:
        """Return the persisted rows, as a fresh read would see them."""

        return [dict(row) for row in self._saved]

    def clone(self) -> "MemoryWorksheet":
        return MemoryWorksheet(self.title, self._header, self._saved)


class MemoryDocument:
    def __init__(self, store: "MemoryStore", key: str, title: str) -> None:
        self._store = store
        self.key = key
        self.title = title
        self.worksheets: Dict[str, MemoryWorksheet] = {}

    @property
    def url(self) -> str:
        return f"memory://spreadsheets/{self.key}"

    def add_worksheet(
        self, title: str, header: Sequence[str], rows: Sequence[Dict[str, str]] = ()
    ) -> MemoryWorksheet:
        worksheet = MemoryWorksheet(title, header, rows)
        self.worksheets[title] = worksheet
        return worksheet

    def worksheet(self, title: str) -> MemoryWorksheet:
        try:
            return self.worksheets[title]
        except KeyError:
            raise NotFoundError(f"Worksheet {title!r} not found in document {self.key}") from None

    def worksheet_titles(self) -> List[str]:
        return list(self.worksheets)

    def duplicate(
        self, new_title: Optional[str] = None, into: Optional["MemoryCollection"] = None
    ) -> "MemoryDocument":
        self._store.check_failure("duplicate", self.key)
        clone = self._store.create_document(new_title or self.title)
        for title, worksheet in self.worksheets.items():
            clone.worksheets[title] = worksheet.clone()
        if into is not None:
            into.document_keys.append(clone.key)
        logger.debug("[Store] duplicated %s -> %s", self.key, clone.key)
        return clone


class MemoryCollection:
    def __init__(self, store: "MemoryStore", key: str, title: str) -> None:
        self._store = store
        self.key = key
        self.title = title
        self.document_keys: List[str] = []
        self.children: List[str] = []

    @property
    def url(self) -> str:
        return URL_PREFIX + self.key

    def create_subcollection(self, title: str) -> "MemoryCollection":
        child = self._store.create_collection(title)
        self.children.append(child.key)
        return child

    def add(self, document: MemoryDocument) -> None:
        self._store.check_failure("add", document.key)
        if document.key not in self.document_keys:
            self.document_keys.append(document.key)

    def remove(self, document: MemoryDocument) -> None:
        if document.key in self.document_keys:
            self.document_keys.remove(document.key)

    def delete(self) -> None:
        self._store.delete_collection(self.key)

    def documents(self) -> List[str]:
        return list(self.document_keys)


class MemoryStore:
    """In-memory :class:`~sheetmaster.store.SheetStore`.

    ``fail_on`` maps an operation name (``"duplicate"``, ``"add"``,
    ``"delete"``) to a document key, or ``"*"`` for any key, and makes that
    operation raise :class:`StoreError`; rehearsals use it to exercise
    rollback paths.
    """

    def __init__(self) -> None:
        self.documents: Dict[str, MemoryDocument] = {}
        self.collections: Dict[str, MemoryCollection] = {}
        self.fail_on: Dict[str, str] = {}
        self._ids = itertools.count(1)

    def _next_key(self, prefix: str) -> str:
        return f"{prefix}{next(self._ids)}"

    def check_failure(self, operation: str, key: str) -> None:
        target = self.fail_on.get(operation)
        if target is not None and target in ("*", key):
            raise StoreError(f"{operation} failed for {key}")

    def create_document(self, title: str, key: Optional[str] = None) -> MemoryDocument:
        key = key or self._next_key("doc-")
        if key in self.documents:
            raise StoreError(f"Document {key} already exists")
        document = MemoryDocument(self, key, title)
        self.documents[key] = document
        return document

    def create_collection(self, title: str, key: Optional[str] = None) -> MemoryCollection:
        key = key or self._next_key("folder-")
        collection = MemoryCollection(self, key, title)
        self.collections[key] = collection
        return collection

    def delete_collection(self, key: str) -> None:
        self.check_failure("delete", key)
        collection = self.collections.pop(key, None)
        if collection is None:
            raise NotFoundError(f"Collection {key} not found")
        for child in list(collection.children):
            if child in self.collections:
                self.delete_collection(child)
        for document_key in collection.document_keys:
            self.documents.pop(document_key, None)
        for parent in self.collections.values():
            if key in parent.children:
                parent.children.remove(key)

    def resolve_document(self, key: str) -> MemoryDocument:
        try:
            return self.documents[key]
        except KeyError:
            raise NotFoundError(f"Document {key} not found") from None

    def resolve_collection(self, url: str) -> MemoryCollection:
        key = url[len(URL_PREFIX):] if url.startswith(URL_PREFIX) else url
        try:
            return self.collections[key]
        except KeyError:
            raise NotFoundError(f"Collection {url} not found") from None

    def snapshot(self) -> Dict[str, Dict[str, List[Dict[str, str]]]]:
        """Return the persisted contents of every document."""

        return {
            key: {title: copy.deepcopy(ws.saved_rows()) for title, ws in document.worksheets.items()}
            for key, document in self.documents.items()
        }
