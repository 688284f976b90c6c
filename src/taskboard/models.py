"""Domain records for users, projects, and tasks.

Records are plain dataclasses that serialize to dicts for YAML persistence.
Timestamps are stored as UTC ISO-8601 strings; ``deleted_at`` is the
tombstone marker used for soft deletion.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Optional

from .utils import _new_id, _now_iso


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class Role(str, Enum):
    ADMIN = "ADMIN"
    USER = "USER"


class TaskStatus(str, Enum):
    """Board bucket.  Declaration order is the display order of buckets."""

    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    IN_REVIEW = "IN_REVIEW"
    DONE = "DONE"

    @property
    def sort_key(self) -> int:
        return _STATUS_ORDER[self]


_STATUS_ORDER = {status: idx for idx, status in enumerate(TaskStatus)}


class TaskPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"

    @property
    def sort_key(self) -> int:
        return {"LOW": 0, "MEDIUM": 1, "HIGH": 2, "URGENT": 3}[self.value]


def _enum(enum_cls: type[Enum], raw: Any, default: Enum) -> Any:
    if raw is None:
        return default
    if isinstance(raw, enum_cls):
        return raw
    try:
        return enum_cls(str(raw))
    except (ValueError, KeyError):
        return default


def _dump(record: Any) -> dict[str, Any]:
    data: dict[str, Any] = {}
    for k, v in asdict(record).items():
        data[k] = v.value if isinstance(v, Enum) else v
    return data


# ---------------------------------------------------------------------------
# Actor
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Actor:
    """The caller on whose behalf an operation runs."""

    id: str
    role: Role = Role.USER

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @classmethod
    def from_user(cls, user: "User") -> "Actor":
        return cls(id=user.id, role=user.role)


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

@dataclass
class User:
    id: str = field(default_factory=_new_id)
    email: str = ""
    name: str = ""
    role: Role = Role.USER
    avatar_url: Optional[str] = None
    created_at: str = field(default_factory=_now_iso)
    updated_at: str = field(default_factory=_now_iso)
    deleted_at: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return _dump(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "User":
        d = dict(data)
        return cls(
            id=str(d.get("id") or _new_id()),
            email=str(d.get("email") or ""),
            name=str(d.get("name") or ""),
            role=_enum(Role, d.get("role"), Role.USER),
            avatar_url=d.get("avatar_url"),
            created_at=str(d.get("created_at") or _now_iso()),
            updated_at=str(d.get("updated_at") or _now_iso()),
            deleted_at=d.get("deleted_at"),
        )


@dataclass
class Project:
    id: str = field(default_factory=_new_id)
    name: str = ""
    description: Optional[str] = None
    color: Optional[str] = None
    owner_id: str = ""
    created_at: str = field(default_factory=_now_iso)
    updated_at: str = field(default_factory=_now_iso)
    deleted_at: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return _dump(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Project":
        d = dict(data)
        return cls(
            id=str(d.get("id") or _new_id()),
            name=str(d.get("name") or ""),
            description=d.get("description"),
            color=d.get("color"),
            owner_id=str(d.get("owner_id") or ""),
            created_at=str(d.get("created_at") or _now_iso()),
            updated_at=str(d.get("updated_at") or _now_iso()),
            deleted_at=d.get("deleted_at"),
        )


@dataclass
class Task:
    id: str = field(default_factory=_new_id)
    title: str = ""
    description: Optional[str] = None
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    position: int = 0
    assignee_id: Optional[str] = None
    project_id: str = ""
    due_date: Optional[str] = None
    created_at: str = field(default_factory=_now_iso)
    updated_at: str = field(default_factory=_now_iso)
    deleted_at: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return _dump(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Task":
        d = dict(data)
        return cls(
            id=str(d.get("id") or _new_id()),
            title=str(d.get("title") or ""),
            description=d.get("description"),
            status=_enum(TaskStatus, d.get("status"), TaskStatus.TODO),
            priority=_enum(TaskPriority, d.get("priority"), TaskPriority.MEDIUM),
            position=int(d.get("position") or 0),
            assignee_id=d.get("assignee_id"),
            project_id=str(d.get("project_id") or ""),
            due_date=d.get("due_date"),
            created_at=str(d.get("created_at") or _now_iso()),
            updated_at=str(d.get("updated_at") or _now_iso()),
            deleted_at=d.get("deleted_at"),
        )


RECORD_TYPES: dict[str, type] = {
    "user": User,
    "project": Project,
    "task": Task,
}

# Fields coerced to enums when a patch arrives with raw strings.
ENUM_FIELDS: dict[str, type[Enum]] = {
    "role": Role,
    "status": TaskStatus,
    "priority": TaskPriority,
}
