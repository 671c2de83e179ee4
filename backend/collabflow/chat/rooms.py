"""Room routing for realtime chat connections.

This module maps workspace rooms to the connections subscribed to them and
delivers broadcasts. It knows nothing about authorization; membership is
enforced by the session handler at send/read time.

Key features:
    - Per-connection outbound FIFO queue drained by a dedicated writer task
    - Synchronous broadcast over the room's connection set at call time
    - Idempotent join/leave, leave-all on disconnect
    - Dead connections are dropped from every room on first failed write

Thread Safety:
    Designed for a single event loop. Every RoomRouter mutation is
    synchronous, so no handler ever observes a half-updated room set.
"""
import asyncio
import logging
import uuid
from typing import Awaitable, Callable, Dict, List, Optional, Protocol, Set

from collabflow.auth.service import Principal

logger = logging.getLogger(__name__)

SendFn = Callable[[dict], Awaitable[None]]


class Connection(Protocol):
    """What the router needs from a connection."""

    id: str

    def deliver(self, frame: dict) -> bool:
        ...


class ClientConnection:
    """A live transport session with an ordered outbound queue.

    ``deliver`` only enqueues, so a broadcast never suspends; the writer task
    sends frames in enqueue order, which gives per-connection FIFO delivery
    even when several broadcasts target the same connection.

    Attributes:
        id: Server-assigned connection identifier.
        principal: Identity attached by the connection gate.
        closed: True once the transport failed or the connection was closed.
    """

    def __init__(
        self,
        send: SendFn,
        principal: Optional[Principal] = None,
        connection_id: Optional[str] = None,
        on_failure: Optional[Callable[["ClientConnection"], None]] = None,
    ) -> None:
        self.id = connection_id or str(uuid.uuid4())
        self.principal = principal
        self.closed = False
        self._send = send
        self._on_failure = on_failure
        self._queue: "asyncio.Queue[dict]" = asyncio.Queue()
        self._writer: Optional[asyncio.Task] = None

    def start(self) -> None:
        """Start the writer task (must be called on the running loop)."""
        if self._writer is None:
            self._writer = asyncio.create_task(self._drain(), name=f"ws-writer-{self.id}")

    def deliver(self, frame: dict) -> bool:
        if self.closed:
            return False
        self._queue.put_nowait(frame)
        return True

    async def flush(self) -> None:
        """Wait until every queued frame has been handed to the transport."""
        if self._writer is not None and not self.closed:
            await self._queue.join()

    def close(self) -> None:
        """Stop the writer; frames still queued are dropped."""
        self.closed = True
        if self._writer is not None:
            self._writer.cancel()
            self._writer = None

    async def _drain(self) -> None:
        while True:
            frame = await self._queue.get()
            try:
                await self._send(frame)
            except Exception as e:
                logger.debug("[Rooms] Send to %s failed: %s", self.id, e)
                self.closed = True
                self._queue.task_done()
                while not self._queue.empty():
                    self._queue.get_nowait()
                    self._queue.task_done()
                if self._on_failure is not None:
                    self._on_failure(self)
                return
            self._queue.task_done()


class RoomRouter:
    """Live mapping of ``workspaceId -> connections``.

    Rooms are created on first join and dropped when their last connection
    leaves, so reconnect churn leaves nothing behind.
    """

    def __init__(self) -> None:
        # workspace_id -> {connection_id -> connection}, insertion ordered
        self._rooms: Dict[str, Dict[str, Connection]] = {}
        # connection_id -> set of joined workspace ids
        self._joined: Dict[str, Set[str]] = {}

    def join(self, connection: Connection, workspace_id: str) -> bool:
        """Add *connection* to the room. Returns False if already joined."""
        members = self._rooms.setdefault(workspace_id, {})
        if connection.id in members:
            return False
        members[connection.id] = connection
        self._joined.setdefault(connection.id, set()).add(workspace_id)
        logger.info("[Rooms] %s joined %s (%d in room)", connection.id, workspace_id, len(members))
        return True

    def leave(self, connection: Connection, workspace_id: str) -> bool:
        """Remove *connection* from one room. Returns False if it was not in it."""
        members = self._rooms.get(workspace_id)
        if not members or connection.id not in members:
            return False
        del members[connection.id]
        if not members:
            del self._rooms[workspace_id]

        joined = self._joined.get(connection.id)
        if joined is not None:
            joined.discard(workspace_id)
            if not joined:
                del self._joined[connection.id]
        return True

    def leave_all(self, connection: Connection) -> List[str]:
        """Remove *connection* from every room; returns the rooms it left."""
        rooms = sorted(self._joined.get(connection.id, ()))
        for workspace_id in rooms:
            self.leave(connection, workspace_id)
        if rooms:
            logger.info("[Rooms] %s left %d room(s)", connection.id, len(rooms))
        return rooms

    def broadcast(self, workspace_id: str, frame: dict) -> int:
        """Enqueue *frame* on every connection in the room.

        Returns:
            Number of connections the frame was delivered to.
        """
        members = self._rooms.get(workspace_id)
        if not members:
            return 0

        delivered = 0
        dead = []
        for connection in list(members.values()):
            if connection.deliver(frame):
                delivered += 1
            else:
                dead.append(connection)

        for connection in dead:
            self.leave_all(connection)
            logger.debug("[Rooms] Removed dead connection %s", connection.id)
        return delivered

    def room_size(self, workspace_id: str) -> int:
        return len(self._rooms.get(workspace_id, {}))

    def rooms_of(self, connection: Connection) -> Set[str]:
        return set(self._joined.get(connection.id, ()))

    def is_in_room(self, connection: Connection, workspace_id: str) -> bool:
        return connection.id in self._rooms.get(workspace_id, {})

    @property
    def room_count(self) -> int:
        return len(self._rooms)
