"""Project API endpoints, mounted under ``/api/v1/projects``."""

from __future__ import annotations

from typing import Any, Callable

from fastapi import APIRouter, Depends

from ..models import Actor
from ..services import Services
from .models import ApiResponse, CreateProjectRequest, UpdateProjectRequest


def create_project_router(get_services: Callable[[], Services], current_actor: Callable[..., Any]) -> APIRouter:
    router = APIRouter(prefix="/projects", tags=["projects"])

    @router.post("", response_model=ApiResponse, status_code=201)
    async def create_project(body: CreateProjectRequest, actor: Actor = Depends(current_actor)) -> ApiResponse:
        return ApiResponse(data=get_services().projects.create_project(actor, **body.model_dump()))

    @router.get("", response_model=ApiResponse)
    async def list_projects(actor: Actor = Depends(current_actor)) -> ApiResponse:
        return ApiResponse(data=get_services().projects.list_projects(actor))

    @router.get("/{project_id}", response_model=ApiResponse)
    async def get_project(project_id: str, actor: Actor = Depends(current_actor)) -> ApiResponse:
        return ApiResponse(data=get_services().projects.get_project(actor, project_id))

    @router.patch("/{project_id}", response_model=ApiResponse)
    async def update_project(
        project_id: str,
        body: UpdateProjectRequest,
        actor: Actor = Depends(current_actor),
    ) -> ApiResponse:
        changes = body.model_dump(exclude_unset=True)
        return ApiResponse(data=get_services().projects.update_project(actor, project_id, changes))

    @router.delete("/{project_id}", response_model=ApiResponse)
    async def delete_project(project_id: str, actor: Actor = Depends(current_actor)) -> ApiResponse:
        return ApiResponse(data=get_services().projects.delete_project(actor, project_id))

    return router
