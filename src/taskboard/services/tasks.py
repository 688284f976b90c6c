"""Task use cases: create, list, read, update, soft delete, and reorder.

Each mutating call follows the same sequence: load the referenced records,
check the access policy against those fresh facts, write to the store, then
notify the project's real-time group exactly once.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, fields
from typing import Any, Optional, Sequence

from loguru import logger

from .. import policy
from ..constants import (
    DEFAULT_PAGE,
    DEFAULT_PAGE_LIMIT,
    DEFAULT_SORT_FIELD,
    DEFAULT_SORT_ORDER,
    ENTITY_PROJECT,
    ENTITY_TASK,
    ENTITY_USER,
    MAX_PAGE_LIMIT,
)
from ..errors import NotFoundError, ValidationError
from ..models import Actor, Project, Task, TaskPriority, TaskStatus
from ..ordering import TASK_DISPLAY_ORDER, PositionUpdate, TaskOrderingEngine
from ..projections import deletion_receipt, task_view, task_views
from ..store import RecordStore
from ..utils import _now_iso
from .base import Broadcaster, ServiceBase, coerce_due_date

TASK_FIELDS = {f.name for f in fields(Task)}
RELATION_SORTS = {"project", "assignee"}
UPDATABLE_FIELDS = {"title", "description", "status", "priority", "assignee_id", "due_date", "position"}
NULLABLE_FIELDS = {"description", "assignee_id", "due_date"}


@dataclass
class TaskQuery:
    """Filters, pagination, and sort for :meth:`TaskService.list_tasks`."""

    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    assignee_id: Optional[str] = None
    project_id: Optional[str] = None
    search: Optional[str] = None
    page: int = DEFAULT_PAGE
    limit: Optional[int] = None
    sort_by: str = DEFAULT_SORT_FIELD
    sort_order: str = DEFAULT_SORT_ORDER


class TaskService(ServiceBase):
    def __init__(
        self,
        store: RecordStore,
        broadcaster: Broadcaster,
        *,
        default_page_limit: int = DEFAULT_PAGE_LIMIT,
        max_page_limit: int = MAX_PAGE_LIMIT,
    ) -> None:
        super().__init__(store)
        self.broadcaster = broadcaster
        self.ordering = TaskOrderingEngine(store)
        self.default_page_limit = default_page_limit
        self.max_page_limit = max_page_limit

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _require_task(self, task_id: str) -> tuple[Task, Project]:
        """Live task plus its live project; a tombstoned project hides its tasks."""
        task = self.store.find_unique(ENTITY_TASK, task_id)
        if task is None:
            raise NotFoundError("Task not found")
        project = self.store.find_unique(ENTITY_PROJECT, task.project_id)
        if project is None:
            raise NotFoundError("Task not found")
        return task, project

    def _view(self, task: Task, project: Project, *, with_owner: bool = False) -> dict[str, Any]:
        assignee = self.store.find_unique(ENTITY_USER, task.assignee_id) if task.assignee_id else None
        owner = self.store.find_unique(ENTITY_USER, project.owner_id, include_deleted=True) if with_owner else None
        return task_view(task, assignee=assignee, project=project, owner=owner)

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def create_task(
        self,
        actor: Actor,
        *,
        title: str,
        project_id: str,
        description: Optional[str] = None,
        status: Optional[TaskStatus] = None,
        priority: Optional[TaskPriority] = None,
        assignee_id: Optional[str] = None,
        due_date: Any = None,
        position: Optional[int] = None,
    ) -> dict[str, Any]:
        """Create a task in an accessible project.

        When *position* is omitted the task goes to the end of its bucket
        (``max + 1``, or 0 for an empty bucket).  An explicit 0 is kept.
        """
        project = self._require_project(project_id)
        policy.ensure_project_access(actor, project)
        if assignee_id:
            self._require_user(assignee_id, "Assignee not found")

        bucket = TaskStatus(status) if status else TaskStatus.TODO
        if position is None:
            position = self.ordering.next_position(project_id, bucket)

        task = Task(
            title=title,
            description=description,
            status=bucket,
            priority=TaskPriority(priority) if priority else TaskPriority.MEDIUM,
            position=position,
            assignee_id=assignee_id,
            project_id=project_id,
            due_date=coerce_due_date(due_date),
        )
        task = self.store.create(ENTITY_TASK, task)
        logger.info("Created task {} in project {} at {}:{}", task.id, project_id, bucket.value, position)

        view = self._view(task, project)
        self.broadcaster.task_created(project_id, view)
        return view

    def get_task(self, actor: Actor, task_id: str) -> dict[str, Any]:
        task, project = self._require_task(task_id)
        policy.ensure_task_access(actor, task, project.owner_id)
        return self._view(task, project, with_owner=True)

    def list_tasks(self, actor: Actor, query: Optional[TaskQuery] = None) -> dict[str, Any]:
        """Filtered, searched, sorted, paginated task listing.

        Non-admins only ever see tasks in projects they own or tasks assigned
        to them; that restriction is combined with the search, never replaced
        by it.
        """
        query = query or TaskQuery()
        sort_by = query.sort_by or DEFAULT_SORT_FIELD
        if sort_by not in TASK_FIELDS and sort_by not in RELATION_SORTS:
            raise ValidationError(f"Cannot sort by '{sort_by}'")
        sort_order = (query.sort_order or DEFAULT_SORT_ORDER).lower()
        if sort_order not in {"asc", "desc"}:
            raise ValidationError("sort_order must be 'asc' or 'desc'")
        page = max(int(query.page or DEFAULT_PAGE), 1)
        limit = min(max(int(query.limit or self.default_page_limit), 1), self.max_page_limit)

        projects = {p.id: p for p in self.store.find(ENTITY_PROJECT)}
        needle = (query.search or "").strip().lower()

        def _matches(task: Task) -> bool:
            project = projects.get(task.project_id)
            if project is None:
                return False
            if query.status and task.status != query.status:
                return False
            if query.priority and task.priority != query.priority:
                return False
            if query.assignee_id and task.assignee_id != query.assignee_id:
                return False
            if query.project_id and task.project_id != query.project_id:
                return False
            if needle:
                haystacks = (task.title.lower(), (task.description or "").lower())
                if not any(needle in h for h in haystacks):
                    return False
            if not actor.is_admin:
                return project.owner_id == actor.id or task.assignee_id == actor.id
            return True

        if sort_by == "project":
            key: Any = lambda t: projects[t.project_id].name
        elif sort_by == "assignee":
            names = {u.id: u.name for u in self.store.find(ENTITY_USER, include_deleted=True)}
            key = lambda t: names.get(t.assignee_id) if t.assignee_id else None
        else:
            key = sort_by

        total = self.store.count(ENTITY_TASK, where=_matches)
        tasks = self.store.find(
            ENTITY_TASK,
            where=_matches,
            order_by=[(key, sort_order), *TASK_DISPLAY_ORDER],
            skip=(page - 1) * limit,
            take=limit,
        )
        return {
            "items": task_views(self.store, tasks),
            "meta": {
                "total": total,
                "page": page,
                "limit": limit,
                "total_pages": math.ceil(total / limit),
            },
        }

    def update_task(self, actor: Actor, task_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        """Apply a partial update after re-checking access on the current record."""
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update fields: {sorted(unknown)}")

        task, project = self._require_task(task_id)
        policy.ensure_task_mutation(actor, task, project.owner_id)

        # Only description, assignee, and due date may be cleared with None.
        patch = {k: v for k, v in changes.items() if v is not None or k in NULLABLE_FIELDS}
        if patch.get("assignee_id"):
            self._require_user(patch["assignee_id"], "Assignee not found")
        if "due_date" in patch:
            patch["due_date"] = coerce_due_date(patch["due_date"])
        if "position" in patch and int(patch["position"]) < 0:
            raise ValidationError("position must be a non-negative integer")

        task = self.store.update(ENTITY_TASK, task_id, patch)
        logger.info("Updated task {} fields={}", task_id, sorted(patch))

        view = self._view(task, project)
        self.broadcaster.task_updated(project.id, view)
        return view

    def delete_task(self, actor: Actor, task_id: str) -> dict[str, Any]:
        """Tombstone a task.  Only the project owner or an admin may delete."""
        task, project = self._require_task(task_id)
        policy.ensure_task_deletion(actor, task, project.owner_id)

        task = self.store.update(ENTITY_TASK, task_id, {"deleted_at": _now_iso()})
        logger.info("Soft-deleted task {}", task_id)

        self.broadcaster.task_deleted(project.id, task_id)
        return deletion_receipt(task, "title")

    # ------------------------------------------------------------------
    # Ordering
    # ------------------------------------------------------------------

    def reorder_tasks(
        self,
        actor: Actor,
        project_id: str,
        updates: Sequence[PositionUpdate],
    ) -> list[dict[str, Any]]:
        """Persist a client-computed ordering atomically; results keep input order."""
        project, tasks = self.ordering.reorder(actor, project_id, updates)
        views = [self._view(task, project) for task in tasks]
        self.broadcaster.tasks_reordered(project_id, views)
        return views
