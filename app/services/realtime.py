"""Room-based real-time fanout over WebSocket connections.

Three room classes exist: ``user_{id}`` (one user's private channel),
``project_{id}`` (everyone viewing a project) and ``org_{id}`` (a whole
organization). Sockets join rooms explicitly; publishing is fire-and-forget
and publishing to an empty room does nothing. The bus is never a source of
truth: clients rebuild state from the REST API.

A single ``RealtimeBus`` is created at application startup and injected into
every service that publishes events.
"""

import logging
from typing import Any

from fastapi import WebSocket
from fastapi.encoders import jsonable_encoder

logger = logging.getLogger(__name__)


class RealtimeEvent:
    """Names of the events pushed to clients."""

    CONNECTED = "connected"
    PONG = "pong"
    ERROR = "error"

    TASK_CREATED = "task:created"
    TASK_UPDATED = "task:updated"
    TASK_DELETED = "task:deleted"
    DASHBOARD_REFRESH = "dashboard:refresh"
    ACTIVITY_CREATED = "activity:created"

    NOTIFICATION_NEW = "notification:new"

    PROJECT_CREATED = "project:created"
    PROJECT_UPDATED = "project:updated"
    PROJECT_DELETED = "project:deleted"
    PROJECT_MEMBER_REMOVED = "project:member_removed"
    EVENT_CREATED = "event:created"

    TEAM_UPDATED = "team:updated"
    SESSION_REFRESH = "session:refresh"
    ADMIN_REQUEST_CREATED = "admin_request:created"
    ADMIN_REQUEST_RESOLVED = "admin_request:resolved"
    ORG_DELETED = "org:deleted"


def user_room(user_id: Any) -> str:
    return f"user_{user_id}"


def project_room(project_id: Any) -> str:
    return f"project_{project_id}"


def org_room(org_id: Any) -> str:
    return f"org_{org_id}"


class RealtimeBus:
    """Tracks which sockets are in which rooms and broadcasts to them."""

    def __init__(self):
        self._rooms: dict[str, set[WebSocket]] = {}
        self._socket_rooms: dict[WebSocket, set[str]] = {}

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self._socket_rooms.setdefault(websocket, set())

    def join(self, websocket: WebSocket, room: str) -> None:
        self._rooms.setdefault(room, set()).add(websocket)
        self._socket_rooms.setdefault(websocket, set()).add(room)
        logger.debug(f"Socket joined room {room}")

    def leave(self, websocket: WebSocket, room: str) -> None:
        members = self._rooms.get(room)
        if members is not None:
            members.discard(websocket)
            if not members:
                del self._rooms[room]
        self._socket_rooms.get(websocket, set()).discard(room)

    def disconnect(self, websocket: WebSocket) -> None:
        for room in list(self._socket_rooms.pop(websocket, set())):
            members = self._rooms.get(room)
            if members is None:
                continue
            members.discard(websocket)
            if not members:
                del self._rooms[room]

    async def send(self, websocket: WebSocket, event: str, data: Any = None) -> bool:
        """Send one event to one socket. Returns False if the socket is gone."""
        try:
            await websocket.send_json({"event": event, "data": jsonable_encoder(data)})
            return True
        except Exception as e:
            logger.warning(f"Dropping socket after failed send of {event}: {str(e)}")
            self.disconnect(websocket)
            return False

    async def publish(self, room: str, event: str, data: Any = None) -> int:
        """Broadcast an event to every socket in ``room``.

        Returns the number of sockets the event was delivered to. Never raises.
        """
        sockets = list(self._rooms.get(room, ()))
        if not sockets:
            return 0

        delivered = 0
        for websocket in sockets:
            if await self.send(websocket, event, data):
                delivered += 1
        return delivered

    async def publish_to_users(self, user_ids, event: str, data: Any = None) -> int:
        """Publish the same event to each user's private room."""
        delivered = 0
        for user_id in user_ids:
            delivered += await self.publish(user_room(user_id), event, data)
        return delivered

    def get_stats(self) -> dict:
        return {
            "connections": len(self._socket_rooms),
            "rooms": len(self._rooms),
        }
