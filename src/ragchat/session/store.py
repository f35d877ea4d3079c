"""Persistence backends for chat session history."""

from __future__ import annotations

import asyncio
import logging
import sqlite3
import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from threading import RLock
from typing import Any, Callable, Protocol, Sequence, runtime_checkable

from ..ai_types import ChatRole, Message

LOGGER = logging.getLogger(__name__)

__all__ = [
    "ChatMessageRecord",
    "SessionStore",
    "InMemorySessionStore",
    "SqliteSessionStore",
]


@dataclass(slots=True, frozen=True)
class ChatMessageRecord:
    """One persisted message of a session."""

    session_id: str
    role: ChatRole
    content: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: float = field(default_factory=time.time)

    def to_message(self) -> Message:
        return Message(role=self.role, content=self.content)


@runtime_checkable
class SessionStore(Protocol):
    """Storage capability consumed by chat sessions."""

    async def append(self, session_id: str, message: Message) -> ChatMessageRecord:
        """Persist ``message`` at the end of the session's history."""
        ...

    async def load_recent(self, session_id: str, limit: int) -> list[Message]:
        """Return at most ``limit`` messages, most recent first."""
        ...

    async def find_messages(self, session_id: str, *, limit: int | None = None) -> list[ChatMessageRecord]:
        """Return the session's records, oldest first."""
        ...

    async def delete_messages(self, session_id: str) -> int:
        """Delete the session's history and return the number of removed records."""
        ...


class InMemorySessionStore:
    """Process-local store, mainly for tests and one-shot usage."""

    def __init__(self) -> None:
        self._records: dict[str, list[ChatMessageRecord]] = {}
        self._lock = asyncio.Lock()

    async def append(self, session_id: str, message: Message) -> ChatMessageRecord:
        record = ChatMessageRecord(session_id=session_id, role=message.role, content=message.content)
        async with self._lock:
            self._records.setdefault(session_id, []).append(record)
        return record

    async def load_recent(self, session_id: str, limit: int) -> list[Message]:
        if limit < 1:
            return []
        async with self._lock:
            records = list(self._records.get(session_id, ()))
        return [record.to_message() for record in reversed(records[-limit:])]

    async def find_messages(self, session_id: str, *, limit: int | None = None) -> list[ChatMessageRecord]:
        async with self._lock:
            records = list(self._records.get(session_id, ()))
        return records if limit is None else records[:limit]

    async def delete_messages(self, session_id: str) -> int:
        async with self._lock:
            removed = self._records.pop(session_id, [])
        return len(removed)


class SqliteSessionStore:
    """SQLite-backed persistence for chat messages."""

    def __init__(self, db_path: Path | str, *, table: str = "chat_messages") -> None:
        if not table.isidentifier():
            raise ValueError(f"Invalid table name: {table!r}")
        self._table = table
        self._path = Path(db_path)
        if str(db_path) != ":memory:":
            self._path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA synchronous=NORMAL")
        self._lock = RLock()
        self._create_schema()

    def _create_schema(self) -> None:
        with self._lock:
            with self._conn:
                self._conn.execute(
                    f"""
                    CREATE TABLE IF NOT EXISTS {self._table} (
                        seq INTEGER PRIMARY KEY AUTOINCREMENT,
                        id TEXT NOT NULL UNIQUE,
                        session_id TEXT NOT NULL,
                        role TEXT NOT NULL,
                        content TEXT NOT NULL,
                        created_at REAL NOT NULL
                    )
                    """
                )
                self._conn.execute(
                    f"CREATE INDEX IF NOT EXISTS idx_{self._table}_session ON {self._table}(session_id, seq)"
                )

    async def append(self, session_id: str, message: Message) -> ChatMessageRecord:
        record = ChatMessageRecord(session_id=session_id, role=message.role, content=message.content)
        await self._run_blocking(self.insert, record)
        return record

    async def load_recent(self, session_id: str, limit: int) -> list[Message]:
        if limit < 1:
            return []
        records = await self._run_blocking(self.fetch_recent, session_id, limit)
        return [record.to_message() for record in records]

    async def find_messages(self, session_id: str, *, limit: int | None = None) -> list[ChatMessageRecord]:
        return await self._run_blocking(self.fetch_session, session_id, limit)

    async def delete_messages(self, session_id: str) -> int:
        return await self._run_blocking(self.delete_session, session_id)

    def insert(self, record: ChatMessageRecord) -> None:
        with self._lock:
            with self._conn:
                self._conn.execute(
                    f"""
                    INSERT INTO {self._table} (id, session_id, role, content, created_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (record.id, record.session_id, record.role.value, record.content, record.created_at),
                )

    def fetch_recent(self, session_id: str, limit: int) -> list[ChatMessageRecord]:
        with self._lock:
            cursor = self._conn.execute(
                f"SELECT * FROM {self._table} WHERE session_id = ? ORDER BY seq DESC LIMIT ?",
                (session_id, limit),
            )
            rows = cursor.fetchall()
        return [self._row_to_record(row) for row in rows]

    def fetch_session(self, session_id: str, limit: int | None = None) -> list[ChatMessageRecord]:
        with self._lock:
            cursor = self._conn.execute(
                f"SELECT * FROM {self._table} WHERE session_id = ? ORDER BY seq ASC LIMIT ?",
                (session_id, -1 if limit is None else limit),
            )
            rows = cursor.fetchall()
        return [self._row_to_record(row) for row in rows]

    def delete_session(self, session_id: str) -> int:
        with self._lock:
            with self._conn:
                cursor = self._conn.execute(f"DELETE FROM {self._table} WHERE session_id = ?", (session_id,))
        return cursor.rowcount

    def close(self) -> None:
        with self._lock:
            try:
                self._conn.close()
            except sqlite3.Error:  # pragma: no cover - close failures are not actionable
                LOGGER.debug("Failed to close session store", exc_info=True)

    def _row_to_record(self, row: sqlite3.Row) -> ChatMessageRecord:
        return ChatMessageRecord(
            id=row["id"],
            session_id=row["session_id"],
            role=ChatRole(row["role"]),
            content=row["content"],
            created_at=row["created_at"],
        )

    async def _run_blocking(self, func: Callable[..., Any], *args: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, lambda: func(*args))
