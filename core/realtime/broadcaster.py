"""
TaskHub Realtime Broadcaster — Room Fan-Out.

Delivers lifecycle events to every connection currently joined to a room:
- Rooms are keyed by conversation id; connections join and leave explicitly
- Each connection owns a bounded outbound queue drained by its own sender
  task, so events reach a connection in the order they were emitted
- Best-effort, at-most-once: no event log, no replay, and a full queue
  drops the event with a warning

The broadcaster is constructed once per application, started and stopped
from the FastAPI lifespan, and handed to its users through app.state.
"""
from __future__ import annotations

import asyncio
import contextlib
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from core.logging_setup import get_logger

logger = get_logger(__name__)

Sender = Callable[[dict[str, Any]], Awaitable[None]]


class ChatEvent(str, Enum):
    NEW_MESSAGE = "new_message"
    MESSAGE_UPDATE = "message_update"
    MESSAGE_DELETED = "message_deleted"
    CONVERSATION_UPDATE = "conversation_update"


@dataclass
class Connection:
    """One live client channel."""
    id: str
    send: Sender
    queue: asyncio.Queue
    user_id: Optional[str] = None
    rooms: set[str] = field(default_factory=set)
    task: Optional[asyncio.Task] = None
    dropped: int = 0


class Broadcaster:
    """In-process room registry with per-connection ordered delivery.

    Usage::

        broadcaster = Broadcaster(queue_size=256)
        await broadcaster.start()
        conn_id = broadcaster.connect(websocket.send_json, user_id="u1")
        broadcaster.join(conn_id, conversation_id)
        broadcaster.emit(conversation_id, ChatEvent.NEW_MESSAGE, message)
        await broadcaster.disconnect(conn_id)
        await broadcaster.stop()
    """

    def __init__(self, queue_size: int = 256):
        self.queue_size = queue_size
        self._connections: dict[str, Connection] = {}
        self._rooms: dict[str, set[str]] = {}
        self._running = False

    # -- Lifecycle --

    async def start(self) -> None:
        self._running = True
        logger.info("Broadcaster started", extra={"extra_data": {"queue_size": self.queue_size}})

    async def stop(self) -> None:
        """Stop every sender task and forget all rooms."""
        self._running = False
        for conn_id in list(self._connections):
            await self.disconnect(conn_id)
        self._rooms.clear()
        logger.info("Broadcaster stopped")

    # -- Connections --

    def connect(self, send: Sender, user_id: Optional[str] = None) -> str:
        """Register a connection and start its sender task."""
        if not self._running:
            raise RuntimeError("Broadcaster is not running")

        conn = Connection(
            id=str(uuid.uuid4()),
            send=send,
            queue=asyncio.Queue(maxsize=self.queue_size),
            user_id=user_id,
        )
        conn.task = asyncio.create_task(self._drain(conn))
        self._connections[conn.id] = conn
        logger.debug("Client connected", extra={"extra_data": {"conn_id": conn.id, "user_id": user_id}})
        return conn.id

    async def disconnect(self, conn_id: str) -> None:
        """Leave all rooms and stop the sender. Unknown ids are ignored."""
        conn = self._connections.pop(conn_id, None)
        if conn is None:
            return
        for room in list(conn.rooms):
            self._leave_room(conn, room)
        if conn.task is not None and conn.task is not asyncio.current_task():
            conn.task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await conn.task
        logger.debug("Client disconnected", extra={"extra_data": {"conn_id": conn_id}})

    # -- Rooms --

    def join(self, conn_id: str, room: str) -> bool:
        conn = self._connections.get(conn_id)
        if conn is None:
            return False
        conn.rooms.add(room)
        self._rooms.setdefault(room, set()).add(conn_id)
        logger.debug("Client joined room", extra={"extra_data": {"conn_id": conn_id, "room": room}})
        return True

    def leave(self, conn_id: str, room: str) -> bool:
        conn = self._connections.get(conn_id)
        if conn is None or room not in conn.rooms:
            return False
        self._leave_room(conn, room)
        logger.debug("Client left room", extra={"extra_data": {"conn_id": conn_id, "room": room}})
        return True

    def _leave_room(self, conn: Connection, room: str) -> None:
        conn.rooms.discard(room)
        members = self._rooms.get(room)
        if members is not None:
            members.discard(conn.id)
            if not members:
                del self._rooms[room]

    def members(self, room: str) -> set[str]:
        return set(self._rooms.get(room, ()))

    # -- Delivery --

    def emit(self, room: str, event: ChatEvent | str, payload: Any) -> int:
        """Queue an event for every member of `room`.

        Returns the number of connections it was queued for. Never blocks
        and never raises for a slow or vanished client.
        """
        name = event.value if isinstance(event, ChatEvent) else event
        envelope = {"event": name, "data": payload}
        queued = 0
        for conn_id in sorted(self._rooms.get(room, ())):
            conn = self._connections.get(conn_id)
            if conn is not None and self._offer(conn, envelope):
                queued += 1
        return queued

    def send_to(self, conn_id: str, event: str, payload: Any) -> bool:
        """Queue an event for a single connection (acks, protocol errors)."""
        conn = self._connections.get(conn_id)
        if conn is None:
            return False
        return self._offer(conn, {"event": event, "data": payload})

    def _offer(self, conn: Connection, envelope: dict[str, Any]) -> bool:
        try:
            conn.queue.put_nowait(envelope)
            return True
        except asyncio.QueueFull:
            conn.dropped += 1
            logger.warning(
                "Realtime event dropped",
                extra={"extra_data": {
                    "conn_id": conn.id,
                    "event": envelope["event"],
                    "dropped": conn.dropped,
                }},
            )
            return False

    async def _drain(self, conn: Connection) -> None:
        while True:
            envelope = await conn.queue.get()
            try:
                await conn.send(envelope)
            except Exception:
                # Closed or broken socket: stop delivering to it
                logger.warning(
                    "Realtime send failed; closing connection",
                    extra={"extra_data": {"conn_id": conn.id, "event": envelope["event"]}},
                    exc_info=True,
                )
                await self.disconnect(conn.id)
                return
