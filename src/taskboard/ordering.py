"""Task ordering engine: position assignment and atomic bulk reorder.

Positions are scoped to a (project, status) bucket.  The engine never
renumbers: defaults are ``max + 1`` and reorders persist the client's
positions verbatim.  Two tasks may end up sharing a position (concurrent
creates race on the max lookup); :func:`sort_tasks` keeps the resulting
order deterministic by breaking ties on creation time, newest first.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from . import policy
from .constants import ENTITY_PROJECT, ENTITY_TASK
from .errors import NotFoundError
from .models import Actor, Project, Task, TaskStatus
from .store import RecordStore, UpdateOp

logger = logging.getLogger(__name__)

# Bucket order, then position, then newest first.
TASK_DISPLAY_ORDER = (("status", "asc"), ("position", "asc"), ("created_at", "desc"))


@dataclass(frozen=True)
class PositionUpdate:
    """One entry of a reorder batch."""

    task_id: str
    position: int
    status: Optional[TaskStatus] = None


def sort_tasks(tasks: Iterable[Task]) -> list[Task]:
    """Order by status bucket, position ascending, then newest first."""
    out = sorted(tasks, key=lambda t: t.created_at, reverse=True)
    out.sort(key=lambda t: (t.status.sort_key, t.position))
    return out


class TaskOrderingEngine:
    """Compute insertion positions and apply reorder batches.

    Parameters
    ----------
    store:
        Record store used for the max-position read and the batch write.
    """

    def __init__(self, store: RecordStore) -> None:
        self.store = store

    def next_position(self, project_id: str, status: Optional[TaskStatus] = None) -> int:
        """Return ``max(position) + 1`` within the bucket, or 0 if it is empty.

        This is a plain read; a concurrent create in the same bucket may
        compute the same value.
        """
        bucket = status or TaskStatus.TODO
        highest = self.store.max_value(
            ENTITY_TASK,
            "position",
            where=lambda t: t.project_id == project_id and t.status == bucket,
        )
        return 0 if highest is None else int(highest) + 1

    def reorder(
        self,
        actor: Actor,
        project_id: str,
        updates: Sequence[PositionUpdate],
    ) -> tuple[Project, list[Task]]:
        """Persist a client-computed ordering for tasks of one project.

        The project-level mutation check runs once; individual tasks are not
        re-authorized.  Every update lands in a single batch: an unknown task
        id (or one belonging to another project) fails the whole batch with
        :class:`~taskboard.errors.MissingRecordError` and nothing changes.

        Returns:
            The project and the updated tasks, in the order submitted.
        """
        project: Optional[Project] = self.store.find_unique(ENTITY_PROJECT, project_id)
        if project is None:
            raise NotFoundError("Project not found")
        policy.ensure_project_mutation(actor, project)

        ops = []
        for update in updates:
            patch: dict[str, object] = {"position": update.position}
            if update.status is not None:
                patch["status"] = update.status
            ops.append(UpdateOp(
                entity=ENTITY_TASK,
                record_id=update.task_id,
                patch=patch,
                guard=lambda t: t.project_id == project_id,
            ))

        tasks = self.store.apply_batch(ops)
        logger.info("Reordered %d tasks in project %s", len(tasks), project_id)
        return project, tasks
