"""Message store: the only chat component that touches persistent storage.

Appends and reads run in a worker thread (``asyncio.to_thread``) so a slow
store suspends only the calling handler, not the whole event loop.

Ordering:
    ``created_at`` is strictly increasing in append order (ties from a coarse
    clock are bumped by one microsecond) and ``seq`` breaks any remaining
    tie, so history order always equals write order. ``workspace_lock``
    hands out one asyncio.Lock per workspace; the session handler holds it
    across append + broadcast so live delivery order matches history order.
"""
import asyncio
import logging
import threading
import uuid
import weakref
from datetime import datetime, timedelta
from typing import List, Optional

from collabflow.errors import PersistenceError, ValidationError
from collabflow.storage import Database, as_utc, utc_now

from .schemas import Message, MessageSender

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 50

_SELECT_MESSAGE = """
    SELECT m.id, m.workspace_id, m.sender_id, m.content, m.created_at,
           u.name, u.profile_image, u.email
    FROM messages m
    LEFT JOIN users u ON u.id = m.sender_id
"""


class MessageStore:
    """Append-only message persistence with chronological reads."""

    def __init__(self, db: Database) -> None:
        self._db = db
        # Locks live only while a send holds or awaits them.
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()
        self._last_created_at: Optional[datetime] = None
        self._write_lock = threading.Lock()

    def workspace_lock(self, workspace_id: str) -> asyncio.Lock:
        """Return the lock serializing sends to *workspace_id*."""
        lock = self._locks.get(workspace_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[workspace_id] = lock
        return lock

    async def append(self, workspace_id: str, sender_id: str, content: str) -> Message:
        """Persist a new message and return it with its sender projection.

        Raises:
            ValidationError: A required field is empty.
            PersistenceError: The store failed; nothing was written.
        """
        if not workspace_id or not sender_id or not content or not content.strip():
            raise ValidationError("workspaceId, senderId and content are required")
        return await asyncio.to_thread(self._append_sync, workspace_id, sender_id, content)

    async def recent(self, workspace_id: str, limit: int = DEFAULT_HISTORY_LIMIT) -> List[Message]:
        """Return the newest *limit* messages, oldest first."""
        if limit < 1:
            raise ValidationError("limit must be a positive integer")
        return await asyncio.to_thread(self._recent_sync, workspace_id, limit)

    # -----------------------------------------------------------------------
    # Internal
    # -----------------------------------------------------------------------

    def _next_timestamp(self) -> datetime:
        now = utc_now()
        if self._last_created_at is not None and now <= self._last_created_at:
            now = self._last_created_at + timedelta(microseconds=1)
        self._last_created_at = now
        return now

    def _append_sync(self, workspace_id: str, sender_id: str, content: str) -> Message:
        message_id = str(uuid.uuid4())
        with self._write_lock:
            self._db.execute(
                """
                INSERT INTO messages (id, workspace_id, sender_id, content, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                [message_id, workspace_id, sender_id, content, self._next_timestamp()],
            )
        row = self._db.fetchone(_SELECT_MESSAGE + " WHERE m.id = ?", [message_id])
        if row is None:
            raise PersistenceError("Message was not stored")
        logger.debug("[Store] Appended %s to workspace %s", message_id, workspace_id)
        return self._row_to_message(row)

    def _recent_sync(self, workspace_id: str, limit: int) -> List[Message]:
        rows = self._db.fetchall(
            _SELECT_MESSAGE
            + """
            WHERE m.workspace_id = ?
            ORDER BY m.created_at DESC, m.seq DESC
            LIMIT ?
            """,
            [workspace_id, limit],
        )
        messages = [self._row_to_message(r) for r in rows]
        messages.reverse()
        return messages

    @staticmethod
    def _row_to_message(row: tuple) -> Message:
        return Message(
            id=row[0],
            workspaceId=row[1],
            senderId=row[2],
            content=row[3],
            createdAt=as_utc(row[4]),
            sender=MessageSender(
                id=row[2],
                name=row[5],
                profileImage=row[6],
                email=row[7],
            ),
        )
