from __future__ import annotations

from conftest import HEADER, add_index, rows
from settings import MasterSettings
from sheetmaster.client import MasterClient
from sheetmaster.errors import IdCollisionError
from sheetmaster.memory_store import MemoryStore


def _client(store: MemoryStore, **overrides) -> MasterClient:
    return MasterClient(store, MasterSettings(**overrides))


def _saved(store: MemoryStore, key: str, title: str = "A"):
    return [(row["id"], row["name"]) for row in store.resolve_document(key).worksheet(title).saved_rows()]


def test_compare_header(merge_store: MemoryStore) -> None:
    client = _client(merge_store)
    assert client.compare_header("A", "B1", "D1")

    merge_store.resolve_document("D1").add_worksheet("A", ["id", "", "name"])
    assert not client.compare_header("A", "B1", "D1")
    assert _client(merge_store, ignore_blank_headers=True).compare_header("A", "B1", "D1")


def test_merge_between_documents(merge_store: MemoryStore) -> None:
    report = _client(merge_store).merge(["A"], "B1", "D1")

    assert report.merged == {"A": 1}
    assert _saved(merge_store, "B1") == [("1", "x"), ("2", "y")]


def test_merge_between_documents_reports_collisions(merge_store: MemoryStore) -> None:
    merge_store.resolve_document("D1").add_worksheet("A", HEADER, rows(HEADER, ("1", "dup")))

    report = _client(merge_store).merge(["A"], "B1", "D1")

    assert isinstance(report.failed["A"], IdCollisionError)
    assert _saved(merge_store, "B1") == [("1", "x")]


def test_merge_index_uses_configured_index_title(store: MemoryStore) -> None:
    add_index(store, "BASE", [("A", "B1")], title="routes")
    add_index(store, "DIFF", [("A", "D1")], title="routes")
    store.create_document("base", key="B1").add_worksheet("A", HEADER, rows(HEADER, ("1", "x")))
    store.create_document("diff", key="D1").add_worksheet("A", HEADER, rows(HEADER, ("2", "y")))

    report = _client(store, index_worksheet_title="routes").merge_index("BASE", "DIFF")

    assert report.merged == {"A": 1}


def test_dry_merge_writes_only_to_the_snapshot(merge_store: MemoryStore) -> None:
    merge_store.create_collection("root", key="ROOT")

    snapshot, report = _client(merge_store, backup_collection_name="rehearsal").dry_merge(
        "BASE", "DIFF", "memory://folders/ROOT"
    )

    assert report.merged == {"A": 1}
    assert snapshot.collection.title.startswith("rehearsal-")
    assert _saved(merge_store, "B1") == [("1", "x")]
    assert _saved(merge_store, snapshot.key_map["B1"]) == [("1", "x"), ("2", "y")]
