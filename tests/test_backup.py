from __future__ import annotations

import pytest

from conftest import HEADER, add_index, rows
from sheetmaster.backup import BackupOrchestrator, BackupState
from sheetmaster.errors import BackupInconsistencyError, StoreError
from sheetmaster.index_table import IndexTable
from sheetmaster.memory_store import MemoryStore


@pytest.fixture
def backup_store(store: MemoryStore) -> MemoryStore:
    store.create_collection("root", key="ROOT")
    add_index(store, "INDEX", [("A", "B1"), ("B", "B2"), ("C", "B1")])
    store.create_document("first", key="B1").add_worksheet("A", HEADER, rows(HEADER, ("1", "x")))
    store.create_document("second", key="B2").add_worksheet("B", HEADER, rows(HEADER, ("2", "y")))
    return store


def _orchestrator(store: MemoryStore) -> BackupOrchestrator:
    return BackupOrchestrator(store, clock=lambda: "20240101T000000Z")


def test_backup_duplicates_index_and_documents(backup_store: MemoryStore) -> None:
    orchestrator = _orchestrator(backup_store)
    result = orchestrator.backup("INDEX", "memory://folders/ROOT")

    assert orchestrator.state is BackupState.COMMIT
    assert result.collection.title == "backup-20240101T000000Z"
    assert set(result.key_map) == {"B1", "B2"}
    assert result.collection.documents() == [result.index_key] + [result.key_map["B1"], result.key_map["B2"]]

    saved = backup_store.resolve_document(result.index_key).worksheet("table_map").saved_rows()
    assert [(row["sheetname"], row["key"]) for row in saved] == [
        ("A", result.key_map["B1"]),
        ("B", result.key_map["B2"]),
        ("C", result.key_map["B1"]),
    ]
    assert not set(result.index.unique_keys()) & {"B1", "B2"}


def test_backup_copies_worksheet_contents(backup_store: MemoryStore) -> None:
    result = _orchestrator(backup_store).backup("INDEX", "memory://folders/ROOT")

    duplicate = backup_store.resolve_document(result.key_map["B2"])
    assert duplicate.title == "second"
    assert duplicate.worksheet("B").saved_rows() == [{"id": "2", "name": "y"}]


def test_original_index_is_not_rewritten(backup_store: MemoryStore) -> None:
    _orchestrator(backup_store).backup("INDEX", "memory://folders/ROOT")

    original = IndexTable(backup_store.resolve_document("INDEX").worksheet("table_map"))
    assert original.unique_keys() == ["B1", "B2"]


def test_duplication_failure_rolls_back(backup_store: MemoryStore) -> None:
    backup_store.fail_on["duplicate"] = "B2"
    orchestrator = _orchestrator(backup_store)

    with pytest.raises(StoreError):
        orchestrator.backup("INDEX", "memory://folders/ROOT")

    assert orchestrator.state is BackupState.ROLLBACK
    assert list(backup_store.collections) == ["ROOT"]
    assert set(backup_store.documents) == {"INDEX", "B1", "B2"}


def test_stale_key_triggers_rollback(backup_store: MemoryStore, monkeypatch) -> None:
    monkeypatch.setattr(IndexTable, "rewrite_key", lambda self, old, new: 0)
    orchestrator = _orchestrator(backup_store)

    with pytest.raises(BackupInconsistencyError) as excinfo:
        orchestrator.backup("INDEX", "memory://folders/ROOT")

    assert excinfo.value.stale_keys == ["B1", "B2"]
    assert list(backup_store.collections) == ["ROOT"]
    assert set(backup_store.documents) == {"INDEX", "B1", "B2"}


def test_failed_rollback_still_raises_original_error(backup_store: MemoryStore) -> None:
    backup_store.fail_on["duplicate"] = "B1"
    backup_store.fail_on["delete"] = "*"

    with pytest.raises(StoreError, match="duplicate failed"):
        _orchestrator(backup_store).backup("INDEX", "memory://folders/ROOT")

    assert len(backup_store.collections) == 2


def test_reruns_use_distinct_folders(backup_store: MemoryStore) -> None:
    stamps = iter(["20240101T000000Z", "20240101T000001Z"])
    orchestrator = BackupOrchestrator(backup_store, clock=lambda: next(stamps))

    first = orchestrator.backup("INDEX", "memory://folders/ROOT")
    second = orchestrator.backup("INDEX", "memory://folders/ROOT", name="backup")

    assert first.collection.key != second.collection.key
    assert first.collection.title != second.collection.title


def test_rollback_error_does_not_replace_original_error(backup_store: MemoryStore, monkeypatch) -> None:
    monkeypatch.setattr(IndexTable, "rewrite_key", lambda self, old, new: 0)

    def _reset(key: str) -> None:
        raise OSError("connection reset")

    monkeypatch.setattr(backup_store, "delete_collection", _reset)
    orchestrator = _orchestrator(backup_store)

    with pytest.raises(BackupInconsistencyError):
        orchestrator.backup("INDEX", "memory://folders/ROOT")

    assert orchestrator.state is BackupState.ROLLBACK


def test_add_failure_leaves_no_stray_duplicates(backup_store: MemoryStore) -> None:
    backup_store.fail_on["add"] = "*"

    with pytest.raises(StoreError, match="add failed"):
        _orchestrator(backup_store).backup("INDEX", "memory://folders/ROOT")

    assert list(backup_store.collections) == ["ROOT"]
    assert set(backup_store.documents) == {"INDEX", "B1", "B2"}
