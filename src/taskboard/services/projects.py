"""Project use cases.  Only the owner or an admin may read or change a project."""

from __future__ import annotations

from typing import Any, Optional

from loguru import logger

from .. import policy
from ..constants import ENTITY_PROJECT
from ..errors import ValidationError
from ..models import Actor, Project
from ..projections import deletion_receipt, project_detail, project_view
from ..store import RecordStore
from ..utils import _now_iso
from .base import Broadcaster, ServiceBase

UPDATABLE_FIELDS = {"name", "description", "color"}


class ProjectService(ServiceBase):
    def __init__(self, store: RecordStore, broadcaster: Broadcaster) -> None:
        super().__init__(store)
        self.broadcaster = broadcaster

    def create_project(
        self,
        actor: Actor,
        *,
        name: str,
        description: Optional[str] = None,
        color: Optional[str] = None,
    ) -> dict[str, Any]:
        project = self.store.create(
            ENTITY_PROJECT,
            Project(name=name, description=description, color=color, owner_id=actor.id),
        )
        logger.info("Created project {} owned by {}", project.id, actor.id)
        view = project_view(self.store, project)
        self.broadcaster.project_updated(project.id, view)
        return view

    def list_projects(self, actor: Actor) -> list[dict[str, Any]]:
        """Admins see every live project; everyone else sees their own."""
        where = None if actor.is_admin else (lambda p: p.owner_id == actor.id)
        projects = self.store.find(ENTITY_PROJECT, where=where, order_by=[("created_at", "desc")])
        return [project_view(self.store, p) for p in projects]

    def get_project(self, actor: Actor, project_id: str) -> dict[str, Any]:
        project = self._require_project(project_id)
        policy.ensure_project_access(actor, project)
        return project_detail(self.store, project)

    def update_project(self, actor: Actor, project_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        if "owner_id" in changes:
            raise ValidationError("A project's owner cannot be changed")
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update fields: {sorted(unknown)}")

        project = self._require_project(project_id)
        policy.ensure_project_mutation(actor, project)

        patch = {k: v for k, v in changes.items() if v is not None or k != "name"}
        project = self.store.update(ENTITY_PROJECT, project_id, patch)
        view = project_view(self.store, project)
        self.broadcaster.project_updated(project_id, view)
        return view

    def delete_project(self, actor: Actor, project_id: str) -> dict[str, Any]:
        """Tombstone a project; its tasks become unreachable through it."""
        project = self._require_project(project_id)
        policy.ensure_project_deletion(actor, project)

        project = self.store.update(ENTITY_PROJECT, project_id, {"deleted_at": _now_iso()})
        logger.info("Soft-deleted project {}", project_id)

        receipt = deletion_receipt(project, "name")
        self.broadcaster.project_updated(project_id, receipt)
        return receipt
