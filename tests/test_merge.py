from __future__ import annotations

import pytest

from conftest import HEADER, add_index, rows
from sheetmaster.errors import HeaderMismatchError, IdCollisionError, StoreError, ValidationError
from sheetmaster.index_table import IndexTable
from sheetmaster.memory_store import MemoryStore
from sheetmaster.merge import MergeOrchestrator


def _index(store: MemoryStore, key: str) -> IndexTable:
    return IndexTable(store.resolve_document(key).worksheet("table_map"))


def _merge(store: MemoryStore, sheetname=None, **kwargs):
    orchestrator = MergeOrchestrator(store, **kwargs)
    return orchestrator.merge(_index(store, "BASE"), _index(store, "DIFF"), sheetname)


def _saved(store: MemoryStore, key: str, title: str = "A"):
    return [(row["id"], row["name"]) for row in store.resolve_document(key).worksheet(title).saved_rows()]


def test_merge_appends_diff_rows_to_base(merge_store: MemoryStore) -> None:
    report = _merge(merge_store)

    assert report.ok
    assert report.merged == {"A": 1}
    assert _saved(merge_store, "B1") == [("1", "x"), ("2", "y")]
    assert _saved(merge_store, "D1") == [("2", "y")]


def test_id_collision_leaves_base_untouched(merge_store: MemoryStore) -> None:
    base = merge_store.resolve_document("B1").worksheet("A")
    base.append_row().values.update({"id": "2", "name": "z"})
    base.save()

    report = _merge(merge_store)

    assert isinstance(report.failed["A"], IdCollisionError)
    assert report.failed["A"].ids == ["2"]
    assert _saved(merge_store, "B1") == [("1", "x"), ("2", "z")]


def test_fail_fast_raises_validation_error(merge_store: MemoryStore) -> None:
    merge_store.resolve_document("D1").worksheet("A")._header = ["id", "title"]

    with pytest.raises(HeaderMismatchError):
        MergeOrchestrator(merge_store).merge(
            _index(merge_store, "BASE"), _index(merge_store, "DIFF"), fail_fast=True
        )


def test_bad_sheet_does_not_block_others(store: MemoryStore) -> None:
    add_index(store, "BASE", [("A", "B1"), ("C", "B1")])
    add_index(store, "DIFF", [("A", "D1"), ("C", "D1")])
    base = store.create_document("base", key="B1")
    base.add_worksheet("A", HEADER, rows(HEADER, ("1", "x")))
    base.add_worksheet("C", HEADER, rows(HEADER, ("1", "x")))
    diff = store.create_document("diff", key="D1")
    diff.add_worksheet("A", ["id", "other"], rows(["id", "other"], ("2", "y")))
    diff.add_worksheet("C", HEADER, rows(HEADER, ("2", "y")))

    report = _merge(store)

    assert isinstance(report.failed["A"], HeaderMismatchError)
    assert report.merged == {"C": 1}
    assert _saved(store, "B1", "A") == [("1", "x")]
    assert _saved(store, "B1", "C") == [("1", "x"), ("2", "y")]


def test_same_key_is_skipped(store: MemoryStore) -> None:
    add_index(store, "BASE", [("A", "K1")])
    add_index(store, "DIFF", [("A", "K1")])
    store.create_document("shared", key="K1").add_worksheet("A", HEADER, rows(HEADER, ("1", "x")))

    report = _merge(store, "A")

    assert report.ok
    assert "A" in report.skipped
    assert report.merged == {}


def test_batch_skips_same_key_sheets(store: MemoryStore) -> None:
    add_index(store, "BASE", [("A", "K1"), ("B", "K1")])
    add_index(store, "DIFF", [("A", "K1"), ("B", "K2")])
    store.create_document("shared", key="K1").add_worksheet("B", HEADER, rows(HEADER, ("1", "x")))
    store.create_document("diff", key="K2").add_worksheet("B", HEADER, rows(HEADER, ("2", "y")))

    report = _merge(store)

    assert list(report.skipped) == ["A"]
    assert report.merged == {"B": 1}


def test_missing_and_duplicate_routes_are_reported(store: MemoryStore) -> None:
    add_index(store, "BASE", [("A", "B1")])
    add_index(store, "DIFF", [("A", "D1"), ("A", "D2"), ("Z", "D1")])

    report = _merge(store)

    assert set(report.failed) == {"A", "Z"}
    assert all(isinstance(error, ValidationError) for error in report.failed.values())


def test_missing_worksheet_is_a_validation_failure(merge_store: MemoryStore) -> None:
    del merge_store.resolve_document("D1").worksheets["A"]

    report = _merge(merge_store)

    assert isinstance(report.failed["A"], ValidationError)
    assert _saved(merge_store, "B1") == [("1", "x")]


def test_row_offset_is_applied(merge_store: MemoryStore) -> None:
    _merge(merge_store, row_offset=1)

    assert _saved(merge_store, "B1") == [("2", "y"), ("1", "x")]


def test_apply_failure_is_recorded(merge_store: MemoryStore, monkeypatch) -> None:
    base = merge_store.resolve_document("B1").worksheet("A")

    def _fail() -> None:
        raise StoreError("quota exceeded")

    monkeypatch.setattr(base, "save", _fail)

    report = _merge(merge_store)

    assert not report.ok
    assert isinstance(report.failed["A"], StoreError)
