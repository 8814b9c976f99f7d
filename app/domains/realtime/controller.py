"""WebSocket endpoint for the real-time fanout bus."""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from sqlalchemy import String, cast, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.dependencies import auth
from app.core.roles import Actor
from app.database import get_session_factory
from app.domains.project.policy import is_project_in_scope, is_project_visible
from app.exceptions.base import NotFoundError, UnauthenticatedError
from app.services.realtime import RealtimeBus, RealtimeEvent, org_room, project_room, user_room
from app.shared.identifiers import parse_uuid
from models.project import Project
from models.task import Task

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


async def _may_follow_project(
    session_factory: async_sessionmaker[AsyncSession], actor: Actor, project_id: Any
) -> bool:
    """Project rooms are open to whoever can see the project, plus assignees of its tasks."""
    try:
        project_uuid = parse_uuid(project_id)
    except NotFoundError:
        return False

    async with session_factory() as db:
        project = await db.get(Project, project_uuid)
        if not project:
            return False
        if is_project_visible(project, actor):
            return True
        if not is_project_in_scope(project, actor):
            return False
        result = await db.execute(
            select(Task.assignees).where(
                Task.project_id == project.id,
                cast(Task.assignees, String).like(f'%"{actor.user_id}"%'),
            )
        )
        return any(actor.user_id in (assignees or []) for assignees in result.scalars().all())


async def _handle_message(
    bus: RealtimeBus,
    websocket: WebSocket,
    actor: Actor,
    message,
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    if not isinstance(message, dict):
        await bus.send(websocket, RealtimeEvent.ERROR, {"message": "Expected {event, data}"})
        return

    event = message.get("event")
    data = message.get("data")

    if event == "ping":
        await bus.send(websocket, RealtimeEvent.PONG, data)

    elif event == "setup":
        # A socket may only ever listen on its own private room
        room = user_room(actor.user_id)
        bus.join(websocket, room)
        await bus.send(websocket, RealtimeEvent.CONNECTED, {"room": room})

    elif event in ("join_project", "leave_project"):
        if not data:
            await bus.send(websocket, RealtimeEvent.ERROR, {"message": "Project ID required"})
            return
        if event == "leave_project":
            bus.leave(websocket, project_room(data))
            return
        if not await _may_follow_project(session_factory, actor, data):
            await bus.send(websocket, RealtimeEvent.ERROR, {"message": "Project not found"})
            return
        bus.join(websocket, project_room(parse_uuid(data)))

    elif event in ("join_org", "leave_org"):
        org_id = data or actor.org_id
        if not org_id or org_id != actor.org_id:
            await bus.send(websocket, RealtimeEvent.ERROR, {"message": "Not a member of that organization"})
            return
        if event == "join_org":
            bus.join(websocket, org_room(org_id))
        else:
            bus.leave(websocket, org_room(org_id))

    else:
        await bus.send(websocket, RealtimeEvent.ERROR, {"message": f"Unknown event: {event}"})


@router.websocket("/ws")
async def realtime_socket(
    websocket: WebSocket,
    token: str = Query(""),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    try:
        claims = auth.verify_token(token) if token else None
    except UnauthenticatedError as e:
        logger.info(f"Socket rejected: {e.message}")
        claims = None

    if not claims or not claims.get("sub"):
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    actor = Actor.from_claims(claims)
    bus: RealtimeBus = websocket.app.state.bus

    await bus.connect(websocket)
    bus.join(websocket, user_room(actor.user_id))
    await bus.send(websocket, RealtimeEvent.CONNECTED, {"user_id": actor.user_id})
    logger.info(f"🔌 Socket connected for {actor.user_id}")

    try:
        while True:
            message = await websocket.receive_json()
            await _handle_message(bus, websocket, actor, message, session_factory)
    except WebSocketDisconnect:
        logger.info(f"Socket disconnected for {actor.user_id}")
    finally:
        bus.disconnect(websocket)
