"""Tests for position assignment, display order, and atomic reorders."""

from __future__ import annotations

import pytest

from taskboard.constants import ENTITY_PROJECT, ENTITY_TASK
from taskboard.errors import AuthorizationError, MissingRecordError, NotFoundError
from taskboard.models import Actor, Project, Task, TaskStatus
from taskboard.ordering import PositionUpdate, TaskOrderingEngine, sort_tasks
from taskboard.store import MemoryRecordStore


@pytest.fixture
def engine(store: MemoryRecordStore) -> TaskOrderingEngine:
    store.create(ENTITY_PROJECT, Project(id="p1", name="Board", owner_id="owner"))
    store.create(ENTITY_PROJECT, Project(id="p2", name="Other", owner_id="owner"))
    return TaskOrderingEngine(store)


def _bucket(store: MemoryRecordStore, status: TaskStatus) -> list[str]:
    tasks = store.find(ENTITY_TASK, where=lambda t: t.project_id == "p1" and t.status == status)
    return [t.id for t in sort_tasks(tasks)]


def _task(store: MemoryRecordStore, task_id: str, position: int, *, project_id: str = "p1",
          status: TaskStatus = TaskStatus.TODO) -> Task:
    return store.create(ENTITY_TASK, Task(id=task_id, title=task_id.upper(), project_id=project_id,
                                          position=position, status=status))


class TestNextPosition:
    def test_empty_bucket_starts_at_zero(self, engine: TaskOrderingEngine) -> None:
        assert engine.next_position("p1", TaskStatus.TODO) == 0

    def test_appends_after_highest(self, engine: TaskOrderingEngine, store: MemoryRecordStore) -> None:
        _task(store, "a", 0)
        _task(store, "b", 4)
        assert engine.next_position("p1", TaskStatus.TODO) == 5

    def test_scoped_to_project_and_status(self, engine: TaskOrderingEngine, store: MemoryRecordStore) -> None:
        _task(store, "a", 7, status=TaskStatus.DONE)
        _task(store, "b", 3, project_id="p2")
        assert engine.next_position("p1", TaskStatus.TODO) == 0
        assert engine.next_position("p1", TaskStatus.DONE) == 8

    def test_tombstoned_tasks_do_not_count(self, engine: TaskOrderingEngine, store: MemoryRecordStore) -> None:
        _task(store, "a", 0)
        _task(store, "b", 1)
        store.update(ENTITY_TASK, "b", {"deleted_at": "2024-01-01T00:00:00+00:00"})
        assert engine.next_position("p1") == 1


class TestSortTasks:
    def test_bucket_then_position(self) -> None:
        tasks = [
            Task(id="done", status=TaskStatus.DONE, position=0, created_at="2024-01-01T00:00:00+00:00"),
            Task(id="todo-1", status=TaskStatus.TODO, position=1, created_at="2024-01-01T00:00:00+00:00"),
            Task(id="todo-0", status=TaskStatus.TODO, position=0, created_at="2024-01-01T00:00:00+00:00"),
            Task(id="review", status=TaskStatus.IN_REVIEW, position=0, created_at="2024-01-01T00:00:00+00:00"),
        ]
        assert [t.id for t in sort_tasks(tasks)] == ["todo-0", "todo-1", "review", "done"]

    def test_shared_position_breaks_tie_newest_first(self) -> None:
        tasks = [
            Task(id="older", position=2, created_at="2024-01-01T00:00:00+00:00"),
            Task(id="newer", position=2, created_at="2024-02-01T00:00:00+00:00"),
        ]
        assert [t.id for t in sort_tasks(tasks)] == ["newer", "older"]


class TestReorder:
    def test_swap_is_persisted(self, engine: TaskOrderingEngine, store: MemoryRecordStore) -> None:
        _task(store, "a", 0)
        _task(store, "b", 1)

        project, tasks = engine.reorder(Actor(id="owner"), "p1", [
            PositionUpdate("b", 0),
            PositionUpdate("a", 1),
        ])

        assert project.id == "p1"
        assert [t.id for t in tasks] == ["b", "a"]
        assert _bucket(store, TaskStatus.TODO) == ["b", "a"]

    def test_status_change_moves_bucket(self, engine: TaskOrderingEngine, store: MemoryRecordStore) -> None:
        _task(store, "a", 0)
        engine.reorder(Actor(id="owner"), "p1", [PositionUpdate("a", 0, TaskStatus.IN_PROGRESS)])
        assert store.find_unique(ENTITY_TASK, "a").status is TaskStatus.IN_PROGRESS
        assert _bucket(store, TaskStatus.TODO) == []

    def test_positions_are_kept_verbatim(self, engine: TaskOrderingEngine, store: MemoryRecordStore) -> None:
        _task(store, "a", 0)
        _task(store, "b", 1)
        engine.reorder(Actor(id="owner"), "p1", [PositionUpdate("a", 40)])
        assert store.find_unique(ENTITY_TASK, "a").position == 40
        assert store.find_unique(ENTITY_TASK, "b").position == 1

    def test_unknown_task_aborts_whole_batch(self, engine: TaskOrderingEngine, store: MemoryRecordStore) -> None:
        _task(store, "a", 0)
        _task(store, "b", 1)
        with pytest.raises(MissingRecordError):
            engine.reorder(Actor(id="owner"), "p1", [
                PositionUpdate("b", 0),
                PositionUpdate("ghost", 1),
            ])
        assert store.find_unique(ENTITY_TASK, "b").position == 1

    def test_task_from_another_project_aborts_batch(
        self, engine: TaskOrderingEngine, store: MemoryRecordStore
    ) -> None:
        _task(store, "a", 0)
        _task(store, "x", 0, project_id="p2")
        with pytest.raises(MissingRecordError):
            engine.reorder(Actor(id="owner"), "p1", [PositionUpdate("a", 3), PositionUpdate("x", 4)])
        assert store.find_unique(ENTITY_TASK, "a").position == 0
        assert store.find_unique(ENTITY_TASK, "x").position == 0

    def test_requires_project_access(self, engine: TaskOrderingEngine, store: MemoryRecordStore) -> None:
        _task(store, "a", 0)
        with pytest.raises(AuthorizationError):
            engine.reorder(Actor(id="member"), "p1", [PositionUpdate("a", 1)])

    def test_missing_project(self, engine: TaskOrderingEngine) -> None:
        with pytest.raises(NotFoundError, match="Project not found"):
            engine.reorder(Actor(id="owner"), "nope", [])

    def test_empty_batch_is_a_no_op(self, engine: TaskOrderingEngine) -> None:
        _, tasks = engine.reorder(Actor(id="owner"), "p1", [])
        assert tasks == []
