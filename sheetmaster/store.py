"""Contract for the remote tabular store used by the merge and backup workflows.

The workflows never talk to Google directly.  They operate on the small
surface defined here:

``SheetStore``
    Resolves documents by key and collections (folders) by URL.

``Document``
    A spreadsheet holding worksheets by title; it can be duplicated.

``Worksheet``
    A header plus ordered rows.  New rows are appended (optionally at a
    1-based position) and pending changes are flushed by ``save``.

``Collection``
    A folder of documents.  Deleting a collection is the rollback primitive
    used by backups.

:class:`Row` is the one concrete type: every store implementation hands out
rows as plain column -> value mappings so that copying a row never depends on
attribute reflection.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Protocol

__all__ = [
    "Row",
    "Worksheet",
    "Document",
    "Collection",
    "SheetStore",
    "is_blank",
    "non_blank",
]


def is_blank(value: Optional[str]) -> bool:
    """Return ``True`` for ``None`` and whitespace-only strings."""

    return value is None or not str(value).strip()


def non_blank(columns: Iterable[str]) -> List[str]:
    """Return ``columns`` without blank header slots, preserving order."""

    return [column for column in columns if not is_blank(column)]


@dataclass
class Row:
    """A worksheet row addressed by column name."""

    values: Dict[str, str] = field(default_factory=dict)
    dirty: bool = False

    @classmethod
    def from_mapping(cls, values: Mapping[str, object]) -> "Row":
        return cls(values={str(key): "" if value is None else str(value) for key, value in values.items()})

    def get(self, column: str) -> str:
        return self.values.get(column, "")

    def set(self, column: str, value: Optional[str]) -> None:
        text = "" if value is None else str(value)
        if self.values.get(column, "") != text:
            self.values[column] = text
            self.dirty = True

    def is_populated(self) -> bool:
        return any(not is_blank(value) for value in self.values.values())

    def as_dict(self) -> Dict[str, str]:
        return dict(self.values)


class Worksheet(Protocol):
    title: str

    def header(self) -> List[str]:
        ...

    def populated_rows(self) -> List[Row]:
        ...

    def append_row(self, at_offset: Optional[int] = None) -> Row:
        ...

    def save(self) -> None:
        ...


class Document(Protocol):
    key: str
    title: str

    @property
    def url(self) -> str:
        ...

    def worksheet(self, title: str) -> Worksheet:
        ...

    def worksheet_titles(self) -> List[str]:
        ...

    def duplicate(self, new_title: Optional[str] = None, into: Optional["Collection"] = None) -> "Document":
        ...


class Collection(Protocol):
    key: str
    title: str

    @property
    def url(self) -> str:
        ...

    def create_subcollection(self, title: str) -> "Collection":
        ...

    def add(self, document: Document) -> None:
        ...

    def remove(self, document: Document) -> None:
        ...

    def delete(self) -> None:
        ...

    def documents(self) -> List[str]:
        ...


class SheetStore(Protocol):
    def resolve_document(self, key: str) -> Document:
        ...

    def resolve_collection(self, url: str) -> Collection:
        ...
