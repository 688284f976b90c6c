"""Project-scoped WebSocket hub for real-time board updates.

A single WebSocket connection at ``/ws`` may join any number of project
groups.  Every committed mutation is pushed to the connections currently in
the affected project's group.  Delivery is fire-and-forget: no
acknowledgement, no retry, and nothing is kept for connections that join
later.

Protocol (client → server):
    {"action": "join", "project_id": "..."}
    {"action": "leave", "project_id": "..."}
    {"action": "ping"}

Protocol (server → client):
    {"event": "task-created", "project_id": "...", "data": {...}, "event_id": 7}
    {"event": "system", "type": "joined", "data": {"project_ids": [...]}}

Project events:
    task-created, task-updated, task-deleted, tasks-reordered, project-updated
"""

from __future__ import annotations

import asyncio
import json
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from fastapi import WebSocket, WebSocketDisconnect
from loguru import logger

from ..constants import (
    DEFAULT_HEARTBEAT_SECONDS,
    EVENT_PROJECT_UPDATED,
    EVENT_TASK_CREATED,
    EVENT_TASK_DELETED,
    EVENT_TASK_UPDATED,
    EVENT_TASKS_REORDERED,
)

JoinCheck = Callable[[str], bool]


@dataclass
class _Connection:
    ws: Any
    connection_id: str
    user_id: Optional[str] = None
    project_ids: set[str] = field(default_factory=set)
    connected_at: float = field(default_factory=time.time)


class ProjectBroadcaster:
    """Track project groups and fan events out to their members.

    The hub keeps an explicit bidirectional index: connection → joined
    groups, group → member connections, and user → connections.  It is
    rebuilt from scratch on restart.

    Usage::

        hub = ProjectBroadcaster()

        # In a FastAPI WebSocket endpoint:
        await hub.handle_connection(websocket, user_id=actor.id)

        # From service code after a committed mutation:
        hub.task_created(project_id, task_payload)
    """

    def __init__(self, heartbeat_seconds: float = DEFAULT_HEARTBEAT_SECONDS) -> None:
        self._connections: dict[str, _Connection] = {}
        self._groups: dict[str, set[str]] = {}
        self._user_connections: dict[str, set[str]] = {}
        self._event_counter = 0
        self._heartbeat_seconds = heartbeat_seconds
        self._loop: asyncio.AbstractEventLoop | None = None
        self._pending: set[asyncio.Task[int]] = set()
        self._lock = threading.Lock()

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    # -- membership ----------------------------------------------------------

    def register(
        self,
        websocket: Any,
        *,
        connection_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> str:
        """Start tracking *websocket* and return its connection id."""
        cid = connection_id or uuid.uuid4().hex
        self._connections[cid] = _Connection(ws=websocket, connection_id=cid, user_id=user_id)
        if user_id:
            self._user_connections.setdefault(user_id, set()).add(cid)
        logger.debug("WS hub: connection {} registered (total={})", cid, self.connection_count)
        return cid

    def join(self, project_id: str, connection_id: str, user_id: Optional[str] = None) -> bool:
        """Add a connection to a project group.  Returns False for unknown connections."""
        conn = self._connections.get(connection_id)
        if conn is None:
            return False
        if user_id and conn.user_id is None:
            conn.user_id = user_id
            self._user_connections.setdefault(user_id, set()).add(connection_id)
        conn.project_ids.add(project_id)
        self._groups.setdefault(project_id, set()).add(connection_id)
        logger.debug("WS hub: {} joined project {}", connection_id, project_id)
        return True

    def leave(self, project_id: str, connection_id: str) -> None:
        """Remove a connection from a project group; leaving twice is a no-op."""
        conn = self._connections.get(connection_id)
        if conn is not None:
            conn.project_ids.discard(project_id)
        members = self._groups.get(project_id)
        if not members:
            return
        members.discard(connection_id)
        if not members:
            self._groups.pop(project_id, None)
        logger.debug("WS hub: {} left project {}", connection_id, project_id)

    def disconnect(self, connection_id: str) -> None:
        """Forget a connection and every group it had joined."""
        conn = self._connections.pop(connection_id, None)
        if conn is None:
            return
        for project_id in list(conn.project_ids):
            members = self._groups.get(project_id)
            if members is not None:
                members.discard(connection_id)
                if not members:
                    self._groups.pop(project_id, None)
        if conn.user_id:
            owned = self._user_connections.get(conn.user_id)
            if owned is not None:
                owned.discard(connection_id)
                if not owned:
                    self._user_connections.pop(conn.user_id, None)
        logger.debug("WS hub: connection {} removed (total={})", connection_id, self.connection_count)

    def members(self, project_id: str) -> set[str]:
        return set(self._groups.get(project_id, set()))

    def groups_of(self, connection_id: str) -> set[str]:
        conn = self._connections.get(connection_id)
        return set(conn.project_ids) if conn else set()

    def connections_of_user(self, user_id: str) -> set[str]:
        return set(self._user_connections.get(user_id, set()))

    # -- delivery ------------------------------------------------------------

    def _frame(self, project_id: str, event: str, data: Any) -> str:
        self._event_counter += 1
        return json.dumps({
            "event": event,
            "project_id": project_id,
            "data": data,
            "event_id": self._event_counter,
        }, default=str)

    async def broadcast(self, project_id: str, event: str, data: Any = None) -> int:
        """Push an event to every member of *project_id*'s group.

        Returns the number of connections the frame was handed to.  Members
        whose send fails are dropped; an empty group is simply a no-op.
        """
        payload = self._frame(project_id, event, data)
        delivered = 0
        stale: list[str] = []
        for cid in list(self._groups.get(project_id, ())):
            conn = self._connections.get(cid)
            if conn is None:
                continue
            try:
                await conn.ws.send_text(payload)
                delivered += 1
            except Exception as exc:
                logger.debug("WS hub: dropping {} after failed send: {}", cid, exc)
                stale.append(cid)
        for cid in stale:
            self.disconnect(cid)
        return delivered

    def attach_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        with self._lock:
            self._loop = loop

    def publish(self, project_id: str, event: str, data: Any = None) -> None:
        """Fire-and-forget broadcast from synchronous code.

        Schedules :meth:`broadcast` on the running loop, or on the attached
        loop when called from a worker thread.  Without any loop the event is
        dropped, which is within the at-most-once contract.
        """
        with self._lock:
            loop = self._loop
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is not None:
            task = running.create_task(self.broadcast(project_id, event, data))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
        elif loop is not None and loop.is_running():
            asyncio.run_coroutine_threadsafe(self.broadcast(project_id, event, data), loop)
        else:
            logger.debug("WS hub: no event loop, dropped {} for project {}", event, project_id)

    # -- named project events ------------------------------------------------

    def task_created(self, project_id: str, task: dict[str, Any]) -> None:
        self.publish(project_id, EVENT_TASK_CREATED, task)

    def task_updated(self, project_id: str, task: dict[str, Any]) -> None:
        self.publish(project_id, EVENT_TASK_UPDATED, task)

    def task_deleted(self, project_id: str, task_id: str) -> None:
        self.publish(project_id, EVENT_TASK_DELETED, {"id": task_id})

    def tasks_reordered(self, project_id: str, tasks: list[dict[str, Any]]) -> None:
        self.publish(project_id, EVENT_TASKS_REORDERED, tasks)

    def project_updated(self, project_id: str, project: dict[str, Any]) -> None:
        self.publish(project_id, EVENT_PROJECT_UPDATED, project)

    # -- connection loop -----------------------------------------------------

    async def send_system(self, websocket: Any, kind: str, data: Any = None) -> None:
        """Send a system frame to a single client; failures are ignored."""
        try:
            await websocket.send_text(json.dumps({"event": "system", "type": kind, "data": data or {}}))
        except Exception as exc:
            logger.debug("WS hub: system frame {} not delivered: {}", kind, exc)

    async def handle_connection(
        self,
        websocket: WebSocket,
        *,
        user_id: Optional[str] = None,
        can_join: Optional[JoinCheck] = None,
    ) -> None:
        """Accept a WebSocket connection and run the read/heartbeat loop.

        This method blocks until the client disconnects.  Disconnecting only
        removes the connection from tracking; in-flight operations continue.
        """
        self.attach_loop(asyncio.get_running_loop())
        await websocket.accept()
        cid = self.register(websocket, user_id=user_id)
        heartbeat = asyncio.create_task(self._heartbeat_loop(websocket))
        try:
            await self.send_system(websocket, "connected", {"connection_id": cid})
            await self._read_loop(websocket, cid, can_join)
        except WebSocketDisconnect:
            pass
        finally:
            heartbeat.cancel()
            self.disconnect(cid)

    async def _read_loop(self, websocket: WebSocket, cid: str, can_join: Optional[JoinCheck]) -> None:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000))
            raw = message.get("text")
            if raw is None:
                await self.send_system(websocket, "error", {"message": "Only text frames are supported"})
                continue
            try:
                msg = json.loads(raw)
            except json.JSONDecodeError:
                await self.send_system(websocket, "error", {"message": "Invalid JSON"})
                continue
            if not isinstance(msg, dict):
                continue

            action = msg.get("action")
            project_id = str(msg.get("project_id") or "").strip()
            if action in {"join", "leave"} and not project_id:
                await self.send_system(websocket, "error", {"message": "project_id is required"})
                continue

            if action == "join":
                if can_join is not None and not can_join(project_id):
                    await self.send_system(
                        websocket, "error",
                        {"message": "You do not have access to this project", "project_id": project_id},
                    )
                    continue
                self.join(project_id, cid)
                await self.send_system(websocket, "joined", {"project_ids": sorted(self.groups_of(cid))})
            elif action == "leave":
                self.leave(project_id, cid)
                await self.send_system(websocket, "left", {"project_ids": sorted(self.groups_of(cid))})
            elif action == "ping":
                await self.send_system(websocket, "pong")

    async def _heartbeat_loop(self, websocket: WebSocket) -> None:
        """Send periodic heartbeats to keep the connection alive."""
        while True:
            await asyncio.sleep(self._heartbeat_seconds)
            await self.send_system(websocket, "heartbeat", {"timestamp": time.time()})
