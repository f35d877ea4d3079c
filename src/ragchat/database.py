"""SQLite adapter for the database capability used as schema context."""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from pathlib import Path
from threading import RLock
from typing import Any, Callable

LOGGER = logging.getLogger(__name__)

__all__ = ["SqliteDatabase"]


class SqliteDatabase:
    """Exposes ``describe()`` and ``query()`` over a SQLite file."""

    def __init__(self, db_path: Path | str) -> None:
        self._conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = RLock()

    async def describe(self) -> list[dict[str, Any]]:
        return await self._run_blocking(self._describe)

    async def query(self, statement: str) -> list[dict[str, Any]]:
        return await self._run_blocking(self._query, statement)

    def _describe(self) -> list[dict[str, Any]]:
        with self._lock:
            tables = self._conn.execute(
                "SELECT name FROM sqlite_master WHERE type = 'table' AND name NOT LIKE 'sqlite_%' ORDER BY name"
            ).fetchall()
            description: list[dict[str, Any]] = []
            for table in tables:
                name = table["name"]
                columns = self._conn.execute(f'PRAGMA table_info("{name}")').fetchall()
                description.append(
                    {
                        "name": name,
                        "columns": [
                            {
                                "name": column["name"],
                                "type": column["type"],
                                "nullable": not column["notnull"],
                                "primary_key": bool(column["pk"]),
                            }
                            for column in columns
                        ],
                    }
                )
        return description

    def _query(self, statement: str) -> list[dict[str, Any]]:
        with self._lock:
            rows = self._conn.execute(statement).fetchall()
        return [dict(row) for row in rows]

    def close(self) -> None:
        with self._lock:
            try:
                self._conn.close()
            except sqlite3.Error:  # pragma: no cover - close failures are not actionable
                LOGGER.debug("Failed to close database", exc_info=True)

    async def _run_blocking(self, func: Callable[..., Any], *args: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, lambda: func(*args))
