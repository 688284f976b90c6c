"""Task API endpoints.

This module provides a FastAPI router with task CRUD, listing, and the
project-scoped reorder endpoint.  It is mounted under ``/api/v1/tasks`` by
the main ``create_app`` factory.
"""

from __future__ import annotations

from typing import Any, Callable, Literal, Optional

from fastapi import APIRouter, Depends, Query

from ..models import Actor, TaskPriority, TaskStatus
from ..ordering import PositionUpdate
from ..services import Services, TaskQuery
from .models import ApiResponse, CreateTaskRequest, ReorderRequest, UpdateTaskRequest


def create_task_router(get_services: Callable[[], Services], current_actor: Callable[..., Any]) -> APIRouter:
    """Create the task API router.

    Parameters
    ----------
    get_services:
        Returns the :class:`Services` container for the app.
    current_actor:
        FastAPI dependency resolving the calling :class:`Actor`.
    """
    router = APIRouter(prefix="/tasks", tags=["tasks"])

    @router.post("", response_model=ApiResponse, status_code=201)
    async def create_task(body: CreateTaskRequest, actor: Actor = Depends(current_actor)) -> ApiResponse:
        task = get_services().tasks.create_task(actor, **body.model_dump())
        return ApiResponse(data=task)

    @router.get("", response_model=ApiResponse)
    async def list_tasks(
        status: Optional[TaskStatus] = Query(None),
        priority: Optional[TaskPriority] = Query(None),
        assignee_id: Optional[str] = Query(None),
        project_id: Optional[str] = Query(None),
        search: Optional[str] = Query(None),
        page: int = Query(1, ge=1),
        limit: Optional[int] = Query(None, ge=1),
        sort_by: str = Query("created_at"),
        sort_order: Literal["asc", "desc"] = Query("desc"),
        actor: Actor = Depends(current_actor),
    ) -> ApiResponse:
        result = get_services().tasks.list_tasks(actor, TaskQuery(
            status=status,
            priority=priority,
            assignee_id=assignee_id,
            project_id=project_id,
            search=search,
            page=page,
            limit=limit,
            sort_by=sort_by,
            sort_order=sort_order,
        ))
        return ApiResponse(data=result["items"], meta=result["meta"])

    @router.patch("/projects/{project_id}/reorder", response_model=ApiResponse)
    async def reorder_tasks(
        project_id: str,
        body: ReorderRequest,
        actor: Actor = Depends(current_actor),
    ) -> ApiResponse:
        updates = [PositionUpdate(task_id=item.id, position=item.position, status=item.status) for item in body.tasks]
        tasks = get_services().tasks.reorder_tasks(actor, project_id, updates)
        return ApiResponse(data=tasks)

    @router.get("/{task_id}", response_model=ApiResponse)
    async def get_task(task_id: str, actor: Actor = Depends(current_actor)) -> ApiResponse:
        return ApiResponse(data=get_services().tasks.get_task(actor, task_id))

    @router.patch("/{task_id}", response_model=ApiResponse)
    async def update_task(
        task_id: str,
        body: UpdateTaskRequest,
        actor: Actor = Depends(current_actor),
    ) -> ApiResponse:
        changes = body.model_dump(exclude_unset=True)
        return ApiResponse(data=get_services().tasks.update_task(actor, task_id, changes))

    @router.delete("/{task_id}", response_model=ApiResponse)
    async def delete_task(task_id: str, actor: Actor = Depends(current_actor)) -> ApiResponse:
        return ApiResponse(data=get_services().tasks.delete_task(actor, task_id))

    return router
