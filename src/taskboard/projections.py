"""Response shapes built explicitly per use case.

The store returns bare records; each builder here attaches the related
records a given response needs (assignee, project, owner, counts) and
renders plain dicts ready for JSON.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional

from .constants import ENTITY_PROJECT, ENTITY_TASK, ENTITY_USER
from .models import Project, Task, User
from .ordering import sort_tasks
from .store import RecordStore


# ---------------------------------------------------------------------------
# Summaries
# ---------------------------------------------------------------------------

def user_summary(user: Optional[User]) -> Optional[dict[str, Any]]:
    if user is None:
        return None
    return {"id": user.id, "name": user.name, "email": user.email}


def assignee_summary(user: Optional[User]) -> Optional[dict[str, Any]]:
    if user is None:
        return None
    return {**user_summary(user), "avatar_url": user.avatar_url}  # type: ignore[dict-item]


def project_summary(project: Optional[Project]) -> Optional[dict[str, Any]]:
    if project is None:
        return None
    return {"id": project.id, "name": project.name, "color": project.color}


def user_profile(user: User) -> dict[str, Any]:
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "role": user.role.value,
        "avatar_url": user.avatar_url,
        "created_at": user.created_at,
        "updated_at": user.updated_at,
    }


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------

def task_view(
    task: Task,
    *,
    assignee: Optional[User] = None,
    project: Optional[Project] = None,
    owner: Optional[User] = None,
) -> dict[str, Any]:
    """Task with its assignee and project projections.

    ``owner`` is attached to the project projection only for single-task
    reads, matching the detail view clients render.
    """
    data = task.to_dict()
    data["assignee"] = assignee_summary(assignee)
    proj = project_summary(project)
    if proj is not None and owner is not None:
        proj["owner"] = user_summary(owner)
    data["project"] = proj
    return data


def task_views(store: RecordStore, tasks: Iterable[Task]) -> list[dict[str, Any]]:
    """Project a list of tasks, loading each related user/project once."""
    users: dict[str, Optional[User]] = {}
    projects: dict[str, Optional[Project]] = {}
    out = []
    for task in tasks:
        assignee = None
        if task.assignee_id:
            if task.assignee_id not in users:
                users[task.assignee_id] = store.find_unique(ENTITY_USER, task.assignee_id)
            assignee = users[task.assignee_id]
        if task.project_id not in projects:
            projects[task.project_id] = store.find_unique(
                ENTITY_PROJECT, task.project_id, include_deleted=True
            )
        out.append(task_view(task, assignee=assignee, project=projects[task.project_id]))
    return out


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------

def project_view(store: RecordStore, project: Project) -> dict[str, Any]:
    """Project with owner and live task count."""
    owner = store.find_unique(ENTITY_USER, project.owner_id, include_deleted=True)
    data = project.to_dict()
    data["owner"] = user_summary(owner)
    data["task_count"] = store.count(ENTITY_TASK, where=lambda t: t.project_id == project.id)
    return data


def project_detail(store: RecordStore, project: Project) -> dict[str, Any]:
    """Project with owner and its tasks in display order."""
    owner = store.find_unique(ENTITY_USER, project.owner_id, include_deleted=True)
    tasks = sort_tasks(store.find(ENTITY_TASK, where=lambda t: t.project_id == project.id))
    data = project.to_dict()
    data["owner"] = user_summary(owner)
    data["tasks"] = []
    users: dict[str, Optional[User]] = {}
    for task in tasks:
        assignee = None
        if task.assignee_id:
            if task.assignee_id not in users:
                users[task.assignee_id] = store.find_unique(ENTITY_USER, task.assignee_id)
            assignee = users[task.assignee_id]
        item = task.to_dict()
        item["assignee"] = assignee_summary(assignee)
        data["tasks"].append(item)
    return data


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

def user_detail(store: RecordStore, user: User) -> dict[str, Any]:
    """Profile plus assigned tasks and owned projects."""
    data = user_profile(user)
    assigned = store.find(ENTITY_TASK, where=lambda t: t.assignee_id == user.id)
    data["assigned_tasks"] = []
    projects: dict[str, Optional[Project]] = {}
    for task in assigned:
        if task.project_id not in projects:
            projects[task.project_id] = store.find_unique(ENTITY_PROJECT, task.project_id)
        project = projects[task.project_id]
        if project is None:
            continue
        data["assigned_tasks"].append({
            "id": task.id,
            "title": task.title,
            "status": task.status.value,
            "priority": task.priority.value,
            "project": {"id": project.id, "name": project.name},
        })
    owned = store.find(ENTITY_PROJECT, where=lambda p: p.owner_id == user.id)
    data["owned_projects"] = [
        {
            "id": project.id,
            "name": project.name,
            "description": project.description,
            "task_count": store.count(ENTITY_TASK, where=lambda t, pid=project.id: t.project_id == pid),
        }
        for project in owned
    ]
    return data


# ---------------------------------------------------------------------------
# Deletion receipts
# ---------------------------------------------------------------------------

def deletion_receipt(record: Any, label_field: str) -> dict[str, Any]:
    """``{id, <label_field>, deleted_at}`` for a freshly tombstoned record."""
    return {
        "id": record.id,
        label_field: getattr(record, label_field),
        "deleted_at": record.deleted_at,
    }
