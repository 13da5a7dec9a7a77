"""
Real-time event delivery.

Services depend only on the EventSink protocol. ConnectionManager is the
WebSocket implementation: every connection sits in its personal room (the
user id) and the shared "feed" room, and can join "project:<id>" and
"chat:<id>" rooms.

Services never publish directly. They queue events on the session with
``queue_event``; ``get_db`` hands the queue to ``dispatch_pending`` once the
transaction has committed and drops it with ``discard_pending`` on rollback,
so clients never hear about writes that were undone. Delivery is best
effort; publishing never raises into the caller.
"""
from __future__ import annotations

import json
import logging
import uuid
from typing import Any, Protocol

from fastapi import WebSocket
from fastapi.encoders import jsonable_encoder
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

FEED_ROOM = "feed"
ROOM_KINDS = ("project", "chat")

# key under AsyncSession.info holding events waiting for the commit
PENDING_EVENTS_KEY = "nexushub.pending_events"


def project_room(project_id: uuid.UUID | str) -> str:
    return f"project:{project_id}"


def chat_room(chat_id: uuid.UUID | str) -> str:
    return f"chat:{chat_id}"


def parse_room(room: str) -> tuple[str, uuid.UUID] | None:
    """Split a "project:<id>" or "chat:<id>" room into (kind, id), or None."""
    kind, _, raw_id = room.partition(":")
    if kind not in ROOM_KINDS or not raw_id:
        return None
    try:
        return kind, uuid.UUID(raw_id)
    except ValueError:
        return None


class EventSink(Protocol):
    async def publish(self, room: str, event: str, payload: Any) -> None:
        ...


async def publish_safely(sink: EventSink, room: str, event: str, payload: Any) -> None:
    """Publish through any sink, logging instead of raising on failure."""
    try:
        await sink.publish(room, event, payload)
    except Exception:
        logger.exception("Event %s to room %s could not be delivered", event, room)


# ── Commit-bound outbox ───────────────────────────────────────────────────────

def queue_event(
    db: AsyncSession, sink: EventSink, room: str, event: str, payload: Any
) -> None:
    """Hold an event on the session until its transaction commits."""
    db.info.setdefault(PENDING_EVENTS_KEY, []).append((sink, room, event, payload))


def pending_events(db: AsyncSession) -> list[tuple[EventSink, str, str, Any]]:
    return list(db.info.get(PENDING_EVENTS_KEY, ()))


async def dispatch_pending(db: AsyncSession) -> None:
    """Publish everything queued on the session, in queue order."""
    queued = db.info.pop(PENDING_EVENTS_KEY, [])
    for sink, room, event, payload in queued:
        await publish_safely(sink, room, event, payload)


def discard_pending(db: AsyncSession) -> None:
    dropped = db.info.pop(PENDING_EVENTS_KEY, [])
    if dropped:
        logger.info("Dropped %d event(s) from a rolled back transaction", len(dropped))


class ConnectionManager:
    """
    Manages active WebSocket connections grouped into named rooms.
    A user may hold several connections (one per tab).
    """

    def __init__(self) -> None:
        # room → active connections
        self._rooms: dict[str, set[WebSocket]] = {}
        # connection → rooms it belongs to
        self._memberships: dict[WebSocket, set[str]] = {}

    async def connect(self, websocket: WebSocket, user_id: str) -> None:
        await websocket.accept()
        self._memberships[websocket] = set()
        self.join(websocket, user_id)
        self.join(websocket, FEED_ROOM)
        logger.info("WebSocket connected: user_id=%s", user_id)

    def disconnect(self, websocket: WebSocket) -> None:
        for room in self._memberships.pop(websocket, set()):
            members = self._rooms.get(room)
            if members is None:
                continue
            members.discard(websocket)
            if not members:
                del self._rooms[room]
        logger.info("WebSocket disconnected")

    def join(self, websocket: WebSocket, room: str) -> None:
        self._rooms.setdefault(room, set()).add(websocket)
        self._memberships.setdefault(websocket, set()).add(room)

    def leave(self, websocket: WebSocket, room: str) -> None:
        members = self._rooms.get(room)
        if members is not None:
            members.discard(websocket)
            if not members:
                del self._rooms[room]
        self._memberships.get(websocket, set()).discard(room)

    def rooms_of(self, websocket: WebSocket) -> set[str]:
        return set(self._memberships.get(websocket, set()))

    def is_connected(self, user_id: str) -> bool:
        return bool(self._rooms.get(user_id))

    async def publish(self, room: str, event: str, payload: Any) -> None:
        """Send {"type": event, "room": room, "data": payload} to every connection in room."""
        try:
            message = json.dumps(
                {"type": event, "room": room, "data": jsonable_encoder(payload)}
            )
        except Exception:
            logger.exception("Could not encode event %s for room %s", event, room)
            return
        dead: list[WebSocket] = []
        for ws in list(self._rooms.get(room, ())):
            try:
                await ws.send_text(message)
            except Exception:
                dead.append(ws)
        for ws in dead:
            self.disconnect(ws)

    async def send_ping(self, websocket: WebSocket) -> None:
        """Send a heartbeat ping frame."""
        try:
            await websocket.send_text(json.dumps({"type": "ping"}))
        except Exception:
            logger.debug("Heartbeat ping failed")

    @property
    def connection_count(self) -> int:
        return len(self._memberships)


# Singleton instance shared across the application
ws_manager = ConnectionManager()
