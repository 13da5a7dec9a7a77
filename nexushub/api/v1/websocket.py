"""
WebSocket endpoint.
Clients connect with a valid JWT access token as a query parameter and
subscribe to project and chat rooms they are allowed to see.
Heartbeat ping/pong every 30 seconds keeps connections alive.

The endpoint holds no database session while the socket is open; the token
check and each join check run in their own short session.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from sqlalchemy.ext.asyncio import AsyncSession

from nexushub.core import permissions
from nexushub.core.dependencies import user_from_token
from nexushub.core.exceptions import NexusHubException
from nexushub.crud.chat import crud_chat
from nexushub.crud.project import crud_project
from nexushub.db.session import SessionFactory
from nexushub.models.user import User
from nexushub.services.events import (
    FEED_ROOM,
    ConnectionManager,
    parse_room,
    publish_safely,
    ws_manager,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["WebSocket"])

HEARTBEAT_INTERVAL = 30  # seconds
RELAYED_EVENTS = ("typing", "stop_typing")

Sessions = Callable[[], AbstractAsyncContextManager[AsyncSession]]


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    """
    Real-time event stream.

    Query parameters:
        token: A valid JWT access token.

    The client sends:
        - {"type": "join", "room": "project:<id>" | "chat:<id>"} to subscribe.
        - {"type": "leave", "room": "..."} to unsubscribe.
        - {"type": "typing" | "stop_typing", "room": "chat:<id>"} while composing.
        - {"type": "pong"} in reply to heartbeats.

    The server sends:
        - {"type": "connected", "user_id": "..."} on successful connection.
        - {"type": "joined" | "left", "room": "..."} acknowledgements.
        - {"type": "error", "room": "...", "message": "..."} on refused joins and leaves.
        - {"type": <event>, "room": "...", "data": {...}} for published events.
        - {"type": "ping"} every 30 seconds.
    """
    token = websocket.query_params.get("token")
    if not token:
        await websocket.close(code=4001, reason="Missing authentication token")
        return

    try:
        async with SessionFactory() as session:
            user = await user_from_token(session, token)
    except NexusHubException as exc:
        await websocket.close(code=4001, reason=exc.detail)
        return

    user_id = str(user.id)
    await _open(ws_manager, websocket, user_id)

    try:
        await websocket.send_json({"type": "connected", "user_id": user_id})

        heartbeat_task = asyncio.create_task(_heartbeat(ws_manager, websocket))
        try:
            while True:
                data = await websocket.receive_json()
                await _handle_client_message(ws_manager, websocket, user, data)
        finally:
            heartbeat_task.cancel()
            try:
                await heartbeat_task
            except asyncio.CancelledError:
                pass

    except WebSocketDisconnect:
        logger.info("WebSocket client disconnected: user_id=%s", user_id)
    except Exception:
        logger.exception("WebSocket error for user_id=%s", user_id)
    finally:
        await _close(ws_manager, websocket, user_id)


async def _open(manager: ConnectionManager, websocket: WebSocket, user_id: str) -> None:
    """Register the connection; the user's first one announces them online."""
    first_connection = not manager.is_connected(user_id)
    await manager.connect(websocket, user_id)
    if first_connection:
        await publish_safely(manager, FEED_ROOM, "user_online", {"user_id": user_id})


async def _close(manager: ConnectionManager, websocket: WebSocket, user_id: str) -> None:
    """Drop the connection; closing the user's last one announces them offline."""
    manager.disconnect(websocket)
    if not manager.is_connected(user_id):
        await publish_safely(manager, FEED_ROOM, "user_offline", {"user_id": user_id})


async def _handle_client_message(
    manager: ConnectionManager,
    websocket: WebSocket,
    user: User,
    data: Any,
    sessions: Sessions = SessionFactory,
) -> None:
    if not isinstance(data, dict):
        return
    kind = data.get("type")
    room = str(data.get("room", ""))

    if kind == "pong":
        logger.debug("Received pong from user_id=%s", user.id)
    elif kind == "join":
        async with sessions() as session:
            reason = await _refuse_join(session, user, room)
        if reason is not None:
            await websocket.send_json({"type": "error", "room": room, "message": reason})
            return
        manager.join(websocket, room)
        await websocket.send_json({"type": "joined", "room": room})
    elif kind == "leave":
        if parse_room(room) is None or room not in manager.rooms_of(websocket):
            await websocket.send_json(
                {"type": "error", "room": room, "message": "Not subscribed to this room"}
            )
            return
        manager.leave(websocket, room)
        await websocket.send_json({"type": "left", "room": room})
    elif kind in RELAYED_EVENTS:
        if room in manager.rooms_of(websocket):
            await publish_safely(manager, room, kind, {"user_id": str(user.id)})


async def _refuse_join(db: AsyncSession, user: User, room: str) -> str | None:
    """Return why the user may not join the room, or None when allowed."""
    parsed = parse_room(room)
    if parsed is None:
        return "Only project and chat rooms can be joined"
    kind, entity_id = parsed

    if kind == "chat":
        chat = await crud_chat.get(db, entity_id)
        if chat is None:
            return "Chat not found"
        decision = permissions.can_read_chat(user.id, permissions.chat_access(chat))
        return None if decision.allowed else decision.reason

    project = await crud_project.get(db, entity_id)
    if project is None:
        return "Project not found"
    decision = permissions.can_view_project(user.id, permissions.project_access(project))
    return None if decision.allowed else decision.reason


async def _heartbeat(manager: ConnectionManager, websocket: WebSocket) -> None:
    """Send periodic ping frames to keep the connection alive."""
    while True:
        await asyncio.sleep(HEARTBEAT_INTERVAL)
        await manager.send_ping(websocket)
