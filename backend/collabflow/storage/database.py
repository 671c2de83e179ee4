"""DuckDB-backed persistence for the chat core.

This module owns the single DuckDB connection used by the membership oracle,
the workspace directory and the message store. The service implements the
singleton pattern so that every component shares one connection.

Database Schema:
    users:             id, name, email, profile_image, created_at
    workspaces:        id, name, owner_id, created_at
    workspace_members: user_id, workspace_id, role, joined_at
    messages:          id, seq, workspace_id, sender_id, content, created_at

    ``messages.seq`` is drawn from a sequence and is the authoritative write
    order; history reads order by (created_at, seq). TIMESTAMP columns hold
    naive UTC values; readers attach the UTC offset again with ``as_utc``.

Thread Safety:
    A DuckDB connection must not be used by two threads at once. Callers on
    the event loop push blocking calls into worker threads with
    ``asyncio.to_thread``, so every statement goes through ``execute`` /
    ``fetchone`` / ``fetchall`` which serialize on an internal lock.

Usage:
    db = Database.get_instance(":memory:")
    db.execute("INSERT INTO users ...", [...])
"""
import logging
import threading
from datetime import datetime, timezone
from typing import Any, List, Optional, Sequence

import duckdb

from collabflow.errors import PersistenceError

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    """Current UTC time in the naive form stored in TIMESTAMP columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


_SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS users (
        id            VARCHAR PRIMARY KEY,
        name          VARCHAR,
        email         VARCHAR NOT NULL UNIQUE,
        profile_image VARCHAR,
        created_at    TIMESTAMP NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS workspaces (
        id         VARCHAR PRIMARY KEY,
        name       VARCHAR NOT NULL,
        owner_id   VARCHAR NOT NULL,
        created_at TIMESTAMP NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS workspace_members (
        user_id      VARCHAR NOT NULL,
        workspace_id VARCHAR NOT NULL,
        role         VARCHAR NOT NULL DEFAULT 'member',
        joined_at    TIMESTAMP NOT NULL,
        PRIMARY KEY (user_id, workspace_id)
    )
    """,
    "CREATE SEQUENCE IF NOT EXISTS messages_seq START 1",
    """
    CREATE TABLE IF NOT EXISTS messages (
        id           VARCHAR PRIMARY KEY,
        seq          BIGINT NOT NULL DEFAULT nextval('messages_seq'),
        workspace_id VARCHAR NOT NULL,
        sender_id    VARCHAR NOT NULL,
        content      VARCHAR NOT NULL,
        created_at   TIMESTAMP NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_messages_workspace ON messages(workspace_id)",
]


class Database:
    """Singleton wrapper around the DuckDB connection.

    Attributes:
        _instance: Singleton instance of the database.
        _db_path: Path to the DuckDB database file.
    """

    _instance: Optional["Database"] = None
    _db_path: str = "collabflow.duckdb"

    def __init__(self, db_path: Optional[str] = None) -> None:
        if db_path:
            self._db_path = db_path
        self._lock = threading.Lock()
        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        self._initialize_db()
        logger.info("[Store] Database ready at %s", self._db_path)

    @classmethod
    def get_instance(cls, db_path: Optional[str] = None) -> "Database":
        """Get or create the singleton instance.

        Args:
            db_path: Optional database path (only used on first call).
        """
        if cls._instance is None:
            cls._instance = cls(db_path)
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Close the connection and clear the instance (used by tests)."""
        if cls._instance is not None:
            cls._instance.close()
            cls._instance = None

    @property
    def path(self) -> str:
        return self._db_path

    def _get_connection(self) -> duckdb.DuckDBPyConnection:
        if self._connection is None:
            self._connection = duckdb.connect(self._db_path)
        return self._connection

    def _initialize_db(self) -> None:
        """Create tables, sequence and indexes. Idempotent."""
        for statement in _SCHEMA:
            self.execute(statement)

    def execute(self, sql: str, params: Optional[Sequence[Any]] = None) -> None:
        self._run(sql, params, None)

    def fetchone(self, sql: str, params: Optional[Sequence[Any]] = None) -> Optional[tuple]:
        return self._run(sql, params, "one")

    def fetchall(self, sql: str, params: Optional[Sequence[Any]] = None) -> List[tuple]:
        return self._run(sql, params, "all")

    def _run(self, sql: str, params: Optional[Sequence[Any]], fetch: Optional[str]):
        with self._lock:
            try:
                cursor = self._get_connection().execute(sql, list(params or []))
                if fetch == "one":
                    return cursor.fetchone()
                if fetch == "all":
                    return cursor.fetchall()
                return None
            except duckdb.Error as e:
                logger.error("[Store] Statement failed: %s", e)
                raise PersistenceError(f"Storage failure: {e}") from e

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None
