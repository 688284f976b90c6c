"""Use-case services wired to one store and one broadcaster."""

from __future__ import annotations

from ..constants import DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT
from ..store import RecordStore
from .base import Broadcaster
from .projects import ProjectService
from .tasks import TaskQuery, TaskService
from .users import UserService

__all__ = ["Broadcaster", "ProjectService", "Services", "TaskQuery", "TaskService", "UserService"]


class Services:
    def __init__(
        self,
        store: RecordStore,
        broadcaster: Broadcaster,
        *,
        default_page_limit: int = DEFAULT_PAGE_LIMIT,
        max_page_limit: int = MAX_PAGE_LIMIT,
    ) -> None:
        self.store = store
        self.broadcaster = broadcaster
        self.tasks = TaskService(
            store,
            broadcaster,
            default_page_limit=default_page_limit,
            max_page_limit=max_page_limit,
        )
        self.projects = ProjectService(store, broadcaster)
        self.users = UserService(store)
