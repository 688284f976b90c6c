"""Shared fixtures: an in-memory store with three users and a recording broadcaster."""

from __future__ import annotations

from typing import Any

import pytest

from taskboard.constants import ENTITY_USER
from taskboard.models import Actor, Role, User
from taskboard.services import Services
from taskboard.store import MemoryRecordStore


class RecordingBroadcaster:
    """Collects ``(event, project_id, payload)`` instead of sending anything."""

    def __init__(self) -> None:
        self.events: list[tuple[str, str, Any]] = []

    def task_created(self, project_id: str, task: dict[str, Any]) -> None:
        self.events.append(("task-created", project_id, task))

    def task_updated(self, project_id: str, task: dict[str, Any]) -> None:
        self.events.append(("task-updated", project_id, task))

    def task_deleted(self, project_id: str, task_id: str) -> None:
        self.events.append(("task-deleted", project_id, {"id": task_id}))

    def tasks_reordered(self, project_id: str, tasks: list[dict[str, Any]]) -> None:
        self.events.append(("tasks-reordered", project_id, tasks))

    def project_updated(self, project_id: str, project: dict[str, Any]) -> None:
        self.events.append(("project-updated", project_id, project))

    def names(self) -> list[str]:
        return [name for name, _, _ in self.events]


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def store() -> MemoryRecordStore:
    store = MemoryRecordStore()
    store.create(ENTITY_USER, User(id="admin", email="admin@example.com", name="Ada Admin", role=Role.ADMIN))
    store.create(ENTITY_USER, User(id="owner", email="owner@example.com", name="Olive Owner"))
    store.create(ENTITY_USER, User(id="member", email="member@example.com", name="Max Member"))
    store.create(ENTITY_USER, User(id="outsider", email="outsider@example.com", name="Otto Outsider"))
    return store


@pytest.fixture
def broadcaster() -> RecordingBroadcaster:
    return RecordingBroadcaster()


@pytest.fixture
def services(store: MemoryRecordStore, broadcaster: RecordingBroadcaster) -> Services:
    return Services(store, broadcaster)


@pytest.fixture
def admin() -> Actor:
    return Actor(id="admin", role=Role.ADMIN)


@pytest.fixture
def owner() -> Actor:
    return Actor(id="owner")


@pytest.fixture
def member() -> Actor:
    return Actor(id="member")


@pytest.fixture
def outsider() -> Actor:
    return Actor(id="outsider")
