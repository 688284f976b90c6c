"""Tests for the memory and YAML file record stores."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from taskboard.constants import ENTITY_PROJECT, ENTITY_TASK, ENTITY_USER
from taskboard.errors import ConflictError, MissingRecordError, StoreFailure, ValidationError
from taskboard.models import Project, Task, TaskStatus, User
from taskboard.store import FileRecordStore, MemoryRecordStore, RecordStore, UpdateOp


@pytest.fixture(params=["memory", "file"])
def record_store(request: pytest.FixtureRequest, tmp_path: Path) -> RecordStore:
    if request.param == "file":
        return FileRecordStore(tmp_path / ".taskboard")
    return MemoryRecordStore()


def _seed_tasks(store: RecordStore) -> None:
    store.create(ENTITY_PROJECT, Project(id="p1", name="Board", owner_id="u1"))
    store.create(ENTITY_TASK, Task(id="a", title="Alpha", project_id="p1", position=2))
    store.create(ENTITY_TASK, Task(id="b", title="beta", project_id="p1", position=0))
    store.create(ENTITY_TASK, Task(id="c", title="Gamma", project_id="p1", position=1, status=TaskStatus.DONE))


class TestReads:
    def test_find_unique_and_missing(self, record_store: RecordStore) -> None:
        record_store.create(ENTITY_USER, User(id="u1", email="a@example.com", name="A"))
        assert record_store.find_unique(ENTITY_USER, "u1").email == "a@example.com"
        assert record_store.find_unique(ENTITY_USER, "nope") is None

    def test_find_filters_orders_and_pages(self, record_store: RecordStore) -> None:
        _seed_tasks(record_store)
        todo = record_store.find(
            ENTITY_TASK,
            where=lambda t: t.status == TaskStatus.TODO,
            order_by=[("position", "asc")],
        )
        assert [t.id for t in todo] == ["b", "a"]

        paged = record_store.find(ENTITY_TASK, order_by=[("title", "asc")], skip=1, take=1)
        assert [t.id for t in paged] == ["b"]

    def test_status_sorts_by_bucket_order(self, record_store: RecordStore) -> None:
        _seed_tasks(record_store)
        ordered = record_store.find(ENTITY_TASK, order_by=[("status", "desc"), ("position", "asc")])
        assert [t.id for t in ordered] == ["c", "b", "a"]

    def test_count_and_max_value(self, record_store: RecordStore) -> None:
        _seed_tasks(record_store)
        assert record_store.count(ENTITY_TASK) == 3
        assert record_store.max_value(ENTITY_TASK, "position", where=lambda t: t.status == TaskStatus.TODO) == 2
        assert record_store.max_value(ENTITY_TASK, "position", where=lambda t: t.project_id == "other") is None

    def test_unknown_entity_rejected(self, record_store: RecordStore) -> None:
        with pytest.raises(ValidationError):
            record_store.find("comment")


class TestSoftDelete:
    def test_tombstoned_records_hidden_by_default(self, record_store: RecordStore) -> None:
        _seed_tasks(record_store)
        record_store.update(ENTITY_TASK, "a", {"deleted_at": "2024-01-01T00:00:00+00:00"})

        assert record_store.find_unique(ENTITY_TASK, "a") is None
        assert record_store.find_unique(ENTITY_TASK, "a", include_deleted=True).title == "Alpha"
        assert record_store.count(ENTITY_TASK) == 2
        assert record_store.count(ENTITY_TASK, include_deleted=True) == 3

    def test_update_of_tombstoned_record_is_missing(self, record_store: RecordStore) -> None:
        _seed_tasks(record_store)
        record_store.update(ENTITY_TASK, "a", {"deleted_at": "2024-01-01T00:00:00+00:00"})
        with pytest.raises(MissingRecordError):
            record_store.update(ENTITY_TASK, "a", {"title": "Back"})


class TestWrites:
    def test_duplicate_id_conflicts(self, record_store: RecordStore) -> None:
        record_store.create(ENTITY_USER, User(id="u1", email="a@example.com"))
        with pytest.raises(ConflictError):
            record_store.create(ENTITY_USER, User(id="u1", email="b@example.com"))

    def test_update_coerces_enums_and_touches_timestamp(self, record_store: RecordStore) -> None:
        _seed_tasks(record_store)
        before = record_store.find_unique(ENTITY_TASK, "a").updated_at
        task = record_store.update(ENTITY_TASK, "a", {"status": "IN_REVIEW", "id": "ignored"})
        assert task.status is TaskStatus.IN_REVIEW
        assert task.id == "a"
        assert task.updated_at >= before

    def test_update_rejects_bad_enum(self, record_store: RecordStore) -> None:
        _seed_tasks(record_store)
        with pytest.raises(ValidationError):
            record_store.update(ENTITY_TASK, "a", {"status": "ARCHIVED"})

    def test_guard_failure_reads_as_missing(self, record_store: RecordStore) -> None:
        _seed_tasks(record_store)
        with pytest.raises(MissingRecordError):
            record_store.update(ENTITY_TASK, "a", {"position": 9}, guard=lambda t: t.project_id == "p2")


class TestBatches:
    def test_batch_applies_every_op(self, record_store: RecordStore) -> None:
        _seed_tasks(record_store)
        results = record_store.apply_batch([
            UpdateOp(ENTITY_TASK, "b", {"position": 5}),
            UpdateOp(ENTITY_TASK, "a", {"position": 4}),
        ])
        assert [t.id for t in results] == ["b", "a"]
        assert record_store.find_unique(ENTITY_TASK, "b").position == 5
        assert record_store.find_unique(ENTITY_TASK, "a").position == 4

    def test_batch_with_missing_record_changes_nothing(self, record_store: RecordStore) -> None:
        _seed_tasks(record_store)
        with pytest.raises(MissingRecordError):
            record_store.apply_batch([
                UpdateOp(ENTITY_TASK, "b", {"position": 7}),
                UpdateOp(ENTITY_TASK, "ghost", {"position": 8}),
            ])
        assert record_store.find_unique(ENTITY_TASK, "b").position == 0

    def test_failed_transaction_rolls_back(self, record_store: RecordStore) -> None:
        _seed_tasks(record_store)
        with pytest.raises(RuntimeError):
            with record_store.transaction() as tx:
                tx.update(ENTITY_TASK, "a", {"title": "Changed"})
                raise RuntimeError("boom")
        assert record_store.find_unique(ENTITY_TASK, "a").title == "Alpha"

    def test_returned_records_are_detached(self, record_store: RecordStore) -> None:
        _seed_tasks(record_store)
        task = record_store.find_unique(ENTITY_TASK, "a")
        task.title = "Local edit"
        assert record_store.find_unique(ENTITY_TASK, "a").title == "Alpha"

    def test_found_records_are_detached(self, record_store: RecordStore) -> None:
        _seed_tasks(record_store)
        for task in record_store.find(ENTITY_TASK):
            task.position = 99
        assert record_store.max_value(ENTITY_TASK, "position") == 2


class TestMemoryReads:
    def test_reads_do_not_copy_every_table(self, monkeypatch: pytest.MonkeyPatch) -> None:
        store = MemoryRecordStore()
        _seed_tasks(store)

        def _no_full_copy() -> None:
            raise AssertionError("read copied the whole store")

        monkeypatch.setattr(store, "_load", _no_full_copy)
        assert store.find_unique(ENTITY_TASK, "a").title == "Alpha"
        assert [t.id for t in store.find(ENTITY_TASK, order_by=[("position", "asc")])] == ["b", "c", "a"]
        assert store.count(ENTITY_TASK) == 3
        assert store.max_value(ENTITY_TASK, "position") == 2


class TestFileStore:
    def test_records_survive_reopen(self, tmp_path: Path) -> None:
        state_dir = tmp_path / ".taskboard"
        first = FileRecordStore(state_dir)
        _seed_tasks(first)

        second = FileRecordStore(state_dir)
        assert second.find_unique(ENTITY_TASK, "c").status is TaskStatus.DONE
        assert second.find_unique(ENTITY_PROJECT, "p1").name == "Board"

    def test_file_layout(self, tmp_path: Path) -> None:
        store = FileRecordStore(tmp_path / ".taskboard")
        store.create(ENTITY_USER, User(id="u1", email="a@example.com", name="A"))

        data = yaml.safe_load(store.path.read_text(encoding="utf-8"))
        assert data["version"] == 1
        assert data["tables"]["user"][0]["id"] == "u1"
        assert data["tables"]["user"][0]["role"] == "USER"

    def test_corrupt_file_is_store_failure(self, tmp_path: Path) -> None:
        state_dir = tmp_path / ".taskboard"
        state_dir.mkdir()
        (state_dir / "records.yaml").write_text("tables: [unclosed\n", encoding="utf-8")
        with pytest.raises(StoreFailure):
            FileRecordStore(state_dir).find(ENTITY_USER)
