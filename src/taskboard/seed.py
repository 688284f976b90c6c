"""Populate a store with the sample admin, user, project, and tasks.

Seeding is idempotent: records that already exist (matched by email or id)
(emails compare case-insensitively) are left untouched, so running it twice against a file store is harmless.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from .constants import ENTITY_PROJECT, ENTITY_TASK, ENTITY_USER
from .models import Project, Role, Task, TaskPriority, TaskStatus, User
from .services.users import UserService
from .store import RecordStore

logger = logging.getLogger(__name__)

SAMPLE_PROJECT_ID = "sample-project-id"

SAMPLE_USERS = (
    {"email": "admin@minijira.com", "name": "Admin User", "role": Role.ADMIN},
    {"email": "user@minijira.com", "name": "Regular User", "role": Role.USER},
)

SAMPLE_TASKS = (
    ("Setup project infrastructure", "Initialize the project with NestJS and Prisma",
     TaskStatus.DONE, TaskPriority.HIGH, "admin", 0),
    ("Implement authentication", "Add JWT-based authentication system",
     TaskStatus.IN_PROGRESS, TaskPriority.HIGH, "admin", 1),
    ("Create task management", "Implement CRUD operations for tasks",
     TaskStatus.TODO, TaskPriority.MEDIUM, "user", 0),
    ("Add real-time updates", "Implement WebSocket for real-time task updates",
     TaskStatus.TODO, TaskPriority.LOW, None, 1),
    ("Design UI components", "Create reusable UI components for the frontend",
     TaskStatus.TODO, TaskPriority.MEDIUM, "user", 2),
)


def task_slug(title: str) -> str:
    return "task-" + re.sub(r"\s+", "-", title.lower())


def _upsert_user(users: UserService, email: str, name: str, role: Role) -> User:
    existing = users.store.find(
        ENTITY_USER, where=lambda u: u.email.lower() == email.lower(), include_deleted=True
    )
    if existing:
        return existing[0]
    return users.create_user(email=email, name=name, role=role)


def seed(store: RecordStore) -> dict[str, Any]:
    """Create the sample records that are missing and return their ids."""
    users = UserService(store)
    admin, user = (_upsert_user(users, **sample) for sample in SAMPLE_USERS)

    project = store.find_unique(ENTITY_PROJECT, SAMPLE_PROJECT_ID, include_deleted=True)
    if project is None:
        project = Project(
            id=SAMPLE_PROJECT_ID,
            name="Sample Project",
            description="A sample project to demonstrate the task board",
            color="#6366f1",
            owner_id=admin.id,
        )
        project = store.create(ENTITY_PROJECT, project)

    assignees = {"admin": admin.id, "user": user.id, None: None}
    created = 0
    for title, description, status, priority, assignee, position in SAMPLE_TASKS:
        task_id = task_slug(title)
        if store.find_unique(ENTITY_TASK, task_id, include_deleted=True) is not None:
            continue
        task = Task(
            id=task_id,
            title=title,
            description=description,
            status=status,
            priority=priority,
            position=position,
            assignee_id=assignees[assignee],
            project_id=project.id,
        )
        store.create(ENTITY_TASK, task)
        created += 1

    logger.info("Seeded store: %s new tasks in project %s", created, project.id)
    return {
        "admin_id": admin.id,
        "user_id": user.id,
        "project_id": project.id,
        "task_ids": [task_slug(row[0]) for row in SAMPLE_TASKS],
    }
