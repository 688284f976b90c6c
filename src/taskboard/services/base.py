from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional, Protocol

from ..constants import ENTITY_PROJECT, ENTITY_USER
from ..errors import NotFoundError, ValidationError
from ..models import Project, User
from ..store import RecordStore
from ..utils import _normalize_iso


class Broadcaster(Protocol):
    """Real-time sink notified after each committed project/task mutation."""

    def task_created(self, project_id: str, task: dict[str, Any]) -> None: ...

    def task_updated(self, project_id: str, task: dict[str, Any]) -> None: ...

    def task_deleted(self, project_id: str, task_id: str) -> None: ...

    def tasks_reordered(self, project_id: str, tasks: list[dict[str, Any]]) -> None: ...

    def project_updated(self, project_id: str, project: dict[str, Any]) -> None: ...


class ServiceBase:
    """Shared lookups; every call re-reads the store."""

    def __init__(self, store: RecordStore) -> None:
        self.store = store

    def _require_project(self, project_id: str) -> Project:
        project = self.store.find_unique(ENTITY_PROJECT, project_id)
        if project is None:
            raise NotFoundError("Project not found")
        return project

    def _require_user(self, user_id: str, message: str = "User not found") -> User:
        user = self.store.find_unique(ENTITY_USER, user_id)
        if user is None:
            raise NotFoundError(message)
        return user


def coerce_due_date(value: Any) -> Optional[str]:
    """Normalize a due date to a UTC ISO string (``None`` clears it)."""
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat()
    normalized = _normalize_iso(str(value))
    if normalized is None:
        raise ValidationError(f"Invalid due date: {value!r}")
    return normalized
