"""User API endpoints, mounted under ``/api/v1/users``."""

from __future__ import annotations

from typing import Any, Callable

from fastapi import APIRouter, Depends

from ..models import Actor
from ..services import Services
from .models import ApiResponse, UpdateUserRequest


def create_user_router(get_services: Callable[[], Services], current_actor: Callable[..., Any]) -> APIRouter:
    router = APIRouter(prefix="/users", tags=["users"])

    @router.get("", response_model=ApiResponse)
    async def list_users(actor: Actor = Depends(current_actor)) -> ApiResponse:
        return ApiResponse(data=get_services().users.list_users(actor))

    @router.get("/me", response_model=ApiResponse)
    async def get_profile(actor: Actor = Depends(current_actor)) -> ApiResponse:
        return ApiResponse(data=get_services().users.get_profile(actor))

    @router.get("/{user_id}", response_model=ApiResponse)
    async def get_user(user_id: str, actor: Actor = Depends(current_actor)) -> ApiResponse:
        return ApiResponse(data=get_services().users.get_user(actor, user_id))

    @router.patch("/{user_id}", response_model=ApiResponse)
    async def update_user(
        user_id: str,
        body: UpdateUserRequest,
        actor: Actor = Depends(current_actor),
    ) -> ApiResponse:
        changes = body.model_dump(exclude_unset=True)
        return ApiResponse(data=get_services().users.update_user(actor, user_id, changes))

    @router.delete("/{user_id}", response_model=ApiResponse)
    async def delete_user(user_id: str, actor: Actor = Depends(current_actor)) -> ApiResponse:
        return ApiResponse(data=get_services().users.delete_user(actor, user_id))

    return router
