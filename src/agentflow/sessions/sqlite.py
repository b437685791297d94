from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module provides a SQLite session backend for persistent local conversation history.
"""

import logging
from typing import Sequence

import aiosqlite

from ..models.types import InputItem
from .base import Session, dumps_item, loads_item

logger = logging.getLogger("agentflow.sessions.sqlite")


class SQLiteSession(Session):
    """Persistent local session backed by SQLite."""

    def __init__(
        self,
        session_id: str,
        *,
        path: str = "agentflow_sessions.sqlite3",
        sessions_table: str = "agent_sessions",
        messages_table: str = "agent_messages",
    ) -> None:
        super().__init__(session_id)
        self.path = path
        self.sessions_table = sessions_table
        self.messages_table = messages_table
        self._connection: aiosqlite.Connection | None = None

    async def setup(self) -> None:
        self._connection = await aiosqlite.connect(self.path)
        self._connection.row_factory = aiosqlite.Row
        await self._connection.execute("PRAGMA journal_mode=WAL;")
        await self._connection.execute("PRAGMA synchronous=NORMAL;")
        await self._connection.execute("PRAGMA foreign_keys=ON;")
        await self._create_tables()
        await self._connection.commit()
        await super().setup()

    async def close(self) -> None:
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
        await super().close()

    def _db(self) -> aiosqlite.Connection:
        if self._connection is None:
            raise RuntimeError("SQLiteSession is not initialized. Call setup() first.")
        return self._connection

    async def _create_tables(self) -> None:
        db = self._db()
        await db.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {self.sessions_table} (
              session_id TEXT PRIMARY KEY,
              created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
              updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            );
            """,
        )
        await db.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {self.messages_table} (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              session_id TEXT NOT NULL,
              message_data TEXT NOT NULL,
              created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
              FOREIGN KEY (session_id) REFERENCES {self.sessions_table}(session_id)
                ON DELETE CASCADE
            );
            """,
        )
        await db.execute(
            f"CREATE INDEX IF NOT EXISTS idx_{self.messages_table}_session_id "
            f"ON {self.messages_table}(session_id, id);"
        )

    async def get_items(self, limit: int | None = None) -> list[InputItem]:
        self._ensure_setup()
        db = self._db()
        if limit is None:
            cursor = await db.execute(
                f"SELECT message_data FROM {self.messages_table} WHERE session_id = ? ORDER BY id ASC",
                (self.session_id,),
            )
            rows = list(await cursor.fetchall())
        else:
            if limit <= 0:
                return []
            cursor = await db.execute(
                f"SELECT message_data FROM {self.messages_table} WHERE session_id = ? "
                "ORDER BY id DESC LIMIT ?",
                (self.session_id, limit),
            )
            rows = list(reversed(list(await cursor.fetchall())))
        await cursor.close()
        items = [loads_item(row["message_data"]) for row in rows]
        logger.debug("loaded %d item(s) for session %s", len(items), self.session_id)
        return items

    async def add_items(self, items: Sequence[InputItem]) -> None:
        self._ensure_setup()
        if not items:
            return
        db = self._db()
        await db.execute(
            f"INSERT OR IGNORE INTO {self.sessions_table} (session_id) VALUES (?)",
            (self.session_id,),
        )
        await db.executemany(
            f"INSERT INTO {self.messages_table} (session_id, message_data) VALUES (?, ?)",
            [(self.session_id, dumps_item(item)) for item in items],
        )
        await db.execute(
            f"UPDATE {self.sessions_table} SET updated_at = CURRENT_TIMESTAMP WHERE session_id = ?",
            (self.session_id,),
        )
        await db.commit()
        logger.debug("stored %d item(s) for session %s", len(items), self.session_id)

    async def pop_item(self) -> InputItem | None:
        self._ensure_setup()
        db = self._db()
        cursor = await db.execute(
            f"SELECT id, message_data FROM {self.messages_table} WHERE session_id = ? "
            "ORDER BY id DESC LIMIT 1",
            (self.session_id,),
        )
        row = await cursor.fetchone()
        await cursor.close()
        if row is None:
            return None
        await db.execute(f"DELETE FROM {self.messages_table} WHERE id = ?", (row["id"],))
        await db.commit()
        return loads_item(row["message_data"])

    async def clear_session(self) -> None:
        self._ensure_setup()
        db = self._db()
        await db.execute(
            f"DELETE FROM {self.messages_table} WHERE session_id = ?", (self.session_id,)
        )
        await db.execute(
            f"DELETE FROM {self.sessions_table} WHERE session_id = ?", (self.session_id,)
        )
        await db.commit()
