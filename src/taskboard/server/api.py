"""FastAPI application factory for the taskboard API."""

from __future__ import annotations

from typing import Any, Optional

from fastapi import FastAPI, Header, Query, Request, WebSocket
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from .. import policy
from ..config import Settings, load_settings
from ..constants import API_PREFIX, ENTITY_PROJECT
from ..errors import AuthenticationError, TrackerError
from ..models import Actor
from ..services import Services
from ..store import RecordStore, build_store
from ..utils import _now_iso
from .auth import bearer_token, resolve_actor
from .models import ErrorResponse
from .project_api import create_project_router
from .task_api import create_task_router
from .user_api import create_user_router
from .ws_hub import ProjectBroadcaster

WS_POLICY_VIOLATION = 1008


def _error_response(request: Any, status_code: int, message: Any, errors: Any = None) -> JSONResponse:
    body = ErrorResponse(
        message=message,
        errors=errors,
        timestamp=_now_iso(),
        path=request.url.path,
    )
    return JSONResponse(status_code=status_code, content=body.model_dump())


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[RecordStore] = None,
    hub: Optional[ProjectBroadcaster] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Runtime settings; loaded from file and environment when omitted.
        store: Record store; built from *settings* when omitted.
        hub: Real-time broadcaster; a fresh one is created when omitted.

    Returns:
        Configured FastAPI app.
    """
    settings = settings or load_settings()
    store = store if store is not None else build_store(settings)
    hub = hub or ProjectBroadcaster(heartbeat_seconds=settings.heartbeat_seconds)
    services = Services(
        store,
        hub,
        default_page_limit=settings.default_page_limit,
        max_page_limit=settings.max_page_limit,
    )

    app = FastAPI(
        title="Taskboard API",
        description="Project and task tracking with real-time board updates",
        version="1.0.0",
    )

    if settings.enable_cors:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.state.settings = settings
    app.state.store = store
    app.state.hub = hub
    app.state.services = services

    def _get_services() -> Services:
        return app.state.services

    def current_actor(authorization: Optional[str] = Header(None)) -> Actor:
        return resolve_actor(bearer_token(authorization), app.state.settings, app.state.store)

    app.include_router(create_task_router(_get_services, current_actor), prefix=API_PREFIX)
    app.include_router(create_project_router(_get_services, current_actor), prefix=API_PREFIX)
    app.include_router(create_user_router(_get_services, current_actor), prefix=API_PREFIX)

    # ------------------------------------------------------------------
    # Error envelope
    # ------------------------------------------------------------------

    @app.exception_handler(TrackerError)
    async def _tracker_error(request: Request, exc: TrackerError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("{} {} failed: {}", request.method, request.url.path, exc.message)
        return _error_response(request, exc.status_code, exc.message, exc.errors)

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = [
            {"field": ".".join(str(part) for part in err.get("loc", ())[1:]), "message": err.get("msg")}
            for err in exc.errors()
        ]
        return _error_response(request, 400, "Validation failed", errors)

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return _error_response(request, exc.status_code, exc.detail)

    @app.exception_handler(Exception)
    async def _unhandled_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on {} {}", request.method, request.url.path)
        return _error_response(request, 500, "Internal server error")

    # ------------------------------------------------------------------
    # Health + real-time
    # ------------------------------------------------------------------

    @app.get("/health")
    async def health() -> dict[str, Any]:
        return {"status": "ok", "timestamp": _now_iso(), "connections": app.state.hub.connection_count}

    @app.websocket("/ws")
    async def websocket_updates(websocket: WebSocket, token: Optional[str] = Query(None)) -> None:
        """Project-scoped real-time updates.  Authenticate with ``?token=<jwt>``."""
        try:
            actor = resolve_actor(token, app.state.settings, app.state.store)
        except AuthenticationError as exc:
            logger.debug("WS connection rejected: {}", exc.message)
            await websocket.close(code=WS_POLICY_VIOLATION)
            return

        def _can_join(project_id: str) -> bool:
            project = app.state.store.find_unique(ENTITY_PROJECT, project_id)
            return project is not None and policy.can_access_project(actor, project)

        await app.state.hub.handle_connection(websocket, user_id=actor.id, can_join=_can_join)

    return app
