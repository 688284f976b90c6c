"""Pydantic models for the taskboard HTTP API."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..models import Role, TaskPriority, TaskStatus

HEX_COLOR = r"^#(?:[0-9a-fA-F]{3}){1,2}$"
EMAIL = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class _Body(BaseModel):
    model_config = ConfigDict(extra="forbid")


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------

class CreateTaskRequest(_Body):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    assignee_id: Optional[str] = None
    project_id: str = Field(min_length=1)
    due_date: Optional[datetime] = None
    position: Optional[int] = Field(default=None, ge=0)


class UpdateTaskRequest(_Body):
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    assignee_id: Optional[str] = None
    due_date: Optional[datetime] = None
    position: Optional[int] = Field(default=None, ge=0)


class ReorderItem(_Body):
    id: str = Field(min_length=1)
    position: int = Field(ge=0)
    status: Optional[TaskStatus] = None


class ReorderRequest(_Body):
    tasks: list[ReorderItem]


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------

class CreateProjectRequest(_Body):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    color: Optional[str] = Field(default=None, pattern=HEX_COLOR)


class UpdateProjectRequest(_Body):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    color: Optional[str] = Field(default=None, pattern=HEX_COLOR)


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

class UpdateUserRequest(_Body):
    email: Optional[str] = Field(default=None, pattern=EMAIL)
    name: Optional[str] = Field(default=None, min_length=1)
    avatar_url: Optional[str] = None
    role: Optional[Role] = None


# ---------------------------------------------------------------------------
# Envelopes
# ---------------------------------------------------------------------------

class PageMeta(BaseModel):
    total: int
    page: int
    limit: int
    total_pages: int


class ApiResponse(BaseModel):
    """Standard wrapper for successful responses."""

    success: bool = True
    data: Any = None
    meta: Optional[PageMeta] = None


class ErrorResponse(BaseModel):
    success: bool = False
    message: Any
    errors: Any = None
    timestamp: str
    path: str
