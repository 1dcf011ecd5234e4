from __future__ import annotations

import sys
from pathlib import Path
from typing import Dict, List, Sequence, Tuple

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from sheetmaster.memory_store import MemoryStore  # noqa: E402

HEADER = ["id", "name"]
INDEX_HEADER = ["sheetname", "key"]


def rows(header: Sequence[str], *values: Sequence[str]) -> List[Dict[str, str]]:
    return [dict(zip(header, row)) for row in values]


def add_index(store: MemoryStore, key: str, routes: Sequence[Tuple[str, str]], title: str = "table_map"):
    document = store.create_document(f"index {key}", key=key)
    document.add_worksheet(title, INDEX_HEADER, rows(INDEX_HEADER, *routes))
    return document


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def merge_store(store: MemoryStore) -> MemoryStore:
    """Base index routes sheet A to B1, diff index routes it to D1."""

    add_index(store, "BASE", [("A", "B1")])
    add_index(store, "DIFF", [("A", "D1")])
    store.create_document("base", key="B1").add_worksheet("A", HEADER, rows(HEADER, ("1", "x")))
    store.create_document("diff", key="D1").add_worksheet("A", HEADER, rows(HEADER, ("2", "y")))
    return store
