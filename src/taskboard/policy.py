"""Access policy: who may read or mutate which users, projects, and tasks.

Every predicate is a pure function of the actor and the ownership facts
passed in.  Callers must pass freshly loaded facts; nothing here caches.
The ``ensure_*`` companions raise :class:`AuthorizationError` on denial.
"""

from __future__ import annotations

from typing import Optional

from .errors import AuthorizationError
from .models import Actor, Project, Task


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------

def can_access_project(actor: Actor, project: Project) -> bool:
    """Owner or admin.  Task assignment inside the project does not count."""
    return actor.is_admin or actor.id == project.owner_id


def can_mutate_project(actor: Actor, project: Project) -> bool:
    return can_access_project(actor, project)


def can_delete_project(actor: Actor, project: Project) -> bool:
    return can_access_project(actor, project)


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------

def can_access_task(actor: Actor, task: Task, project_owner_id: str) -> bool:
    return (
        actor.is_admin
        or actor.id == project_owner_id
        or (task.assignee_id is not None and actor.id == task.assignee_id)
    )


def can_mutate_task(actor: Actor, task: Task, project_owner_id: str) -> bool:
    # Assignees may edit tasks assigned to them.
    return can_access_task(actor, task, project_owner_id)


def can_delete_task(actor: Actor, task: Task, project_owner_id: str) -> bool:
    return actor.is_admin or actor.id == project_owner_id


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

def can_list_users(actor: Actor) -> bool:
    return actor.is_admin


def can_delete_user(actor: Actor, target_id: str) -> bool:
    return actor.is_admin and actor.id != target_id


def can_mutate_user(actor: Actor, target_id: str, *, changes_role: bool = False) -> bool:
    if changes_role and not actor.is_admin:
        return False
    return actor.is_admin or actor.id == target_id


# ---------------------------------------------------------------------------
# Enforcement helpers
# ---------------------------------------------------------------------------

def ensure_project_access(actor: Actor, project: Project) -> None:
    if not can_access_project(actor, project):
        raise AuthorizationError("You do not have access to this project")


def ensure_project_mutation(actor: Actor, project: Project) -> None:
    if not can_mutate_project(actor, project):
        raise AuthorizationError("You can only update your own projects")


def ensure_project_deletion(actor: Actor, project: Project) -> None:
    if not can_delete_project(actor, project):
        raise AuthorizationError("You can only delete your own projects")


def ensure_task_access(actor: Actor, task: Task, project_owner_id: str) -> None:
    if not can_access_task(actor, task, project_owner_id):
        raise AuthorizationError("You do not have access to this task")


def ensure_task_mutation(actor: Actor, task: Task, project_owner_id: str) -> None:
    if not can_mutate_task(actor, task, project_owner_id):
        raise AuthorizationError("You can only update your own tasks or assigned tasks")


def ensure_task_deletion(actor: Actor, task: Task, project_owner_id: str) -> None:
    if not can_delete_task(actor, task, project_owner_id):
        raise AuthorizationError("You can only delete tasks from your own projects")


def ensure_user_listing(actor: Actor) -> None:
    if not can_list_users(actor):
        raise AuthorizationError("Only admins can list users")


def ensure_user_mutation(actor: Actor, target_id: str, *, role: Optional[object] = None) -> None:
    if role is not None and not actor.is_admin:
        raise AuthorizationError("Only admins can change user roles")
    if not can_mutate_user(actor, target_id, changes_role=role is not None):
        raise AuthorizationError("You can only update your own profile")


def ensure_user_deletion(actor: Actor, target_id: str) -> None:
    if not actor.is_admin:
        raise AuthorizationError("Only admins can delete users")
    if not can_delete_user(actor, target_id):
        raise AuthorizationError("You cannot delete your own account")
