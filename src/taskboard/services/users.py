from __future__ import annotations

from typing import Any, Optional

from loguru import logger

from .. import policy
from ..constants import ENTITY_USER
from ..errors import ConflictError, ValidationError
from ..models import Actor, Role, User
from ..projections import user_detail, user_profile
from ..store import RecordStore
from ..utils import _now_iso
from .base import ServiceBase

UPDATABLE_FIELDS = {"email", "name", "avatar_url", "role"}


class UserService(ServiceBase):
    """User profiles.  Credentials live with the external auth provider."""

    def __init__(self, store: RecordStore) -> None:
        super().__init__(store)

    def _ensure_email_free(self, email: str, *, exclude_id: Optional[str] = None) -> None:
        clash = self.store.find(
            ENTITY_USER,
            where=lambda u: u.email.lower() == email.lower() and u.id != exclude_id,
        )
        if clash:
            raise ConflictError("Email already registered")

    def create_user(
        self,
        *,
        email: str,
        name: str,
        role: Role = Role.USER,
        avatar_url: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> User:
        """Create a profile; used by bootstrap and seeding, not exposed over HTTP."""
        self._ensure_email_free(email)
        user = User(email=email, name=name, role=Role(role), avatar_url=avatar_url)
        if user_id:
            user.id = user_id
        user = self.store.create(ENTITY_USER, user)
        logger.info("Created user {} ({})", user.id, user.role.value)
        return user

    def list_users(self, actor: Actor) -> list[dict[str, Any]]:
        policy.ensure_user_listing(actor)
        return [user_profile(u) for u in self.store.find(ENTITY_USER, order_by=[("created_at", "asc")])]

    def get_user(self, actor: Actor, user_id: str) -> dict[str, Any]:
        return user_detail(self.store, self._require_user(user_id))

    def get_profile(self, actor: Actor) -> dict[str, Any]:
        return self.get_user(actor, actor.id)

    def update_user(self, actor: Actor, user_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update fields: {sorted(unknown)}")

        patch = {k: v for k, v in changes.items() if v is not None or k == "avatar_url"}
        self._require_user(user_id)
        policy.ensure_user_mutation(actor, user_id, role=patch.get("role"))
        if patch.get("email"):
            self._ensure_email_free(patch["email"], exclude_id=user_id)

        user = self.store.update(ENTITY_USER, user_id, patch)
        return user_profile(user)

    def delete_user(self, actor: Actor, user_id: str) -> dict[str, Any]:
        self._require_user(user_id)
        policy.ensure_user_deletion(actor, user_id)

        user = self.store.update(ENTITY_USER, user_id, {"deleted_at": _now_iso()})
        logger.info("Soft-deleted user {}", user_id)
        return {"id": user.id, "email": user.email, "name": user.name, "deleted_at": user.deleted_at}
