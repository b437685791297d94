from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module provides a PostgreSQL session backend for shared, multi-process conversation history.
"""

import logging
from typing import Sequence

import asyncpg

from ..models.types import InputItem
from .base import Session, dumps_item, loads_item

logger = logging.getLogger("agentflow.sessions.postgres")


class PostgresSession(Session):
    """Session stored in PostgreSQL, one JSONB row per item."""

    def __init__(
        self,
        session_id: str,
        *,
        dsn: str,
        pool_min: int = 1,
        pool_max: int = 10,
        ssl: bool = False,
        table: str = "agent_session_items",
    ) -> None:
        super().__init__(session_id)
        self.dsn = dsn
        self.pool_min = pool_min
        self.pool_max = pool_max
        self.ssl = ssl
        self.table = table
        self._pool: asyncpg.Pool | None = None

    async def setup(self) -> None:
        self._pool = await asyncpg.create_pool(
            dsn=self.dsn,
            min_size=self.pool_min,
            max_size=self.pool_max,
            ssl=self.ssl if self.ssl else None,
        )
        await self._create_schema()
        await super().setup()

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
        await super().close()

    def _pool_required(self) -> asyncpg.Pool:
        if self._pool is None:
            raise RuntimeError("PostgresSession is not initialized. Call setup() first.")
        return self._pool

    async def _create_schema(self) -> None:
        pool = self._pool_required()
        async with pool.acquire() as connection:
            await connection.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {self.table} (
                  id BIGSERIAL PRIMARY KEY,
                  session_id TEXT NOT NULL,
                  item_json JSONB NOT NULL,
                  created_at TIMESTAMPTZ NOT NULL DEFAULT now()
                );
                """,
            )
            await connection.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{self.table}_session ON {self.table}(session_id, id);"
            )

    async def get_items(self, limit: int | None = None) -> list[InputItem]:
        self._ensure_setup()
        pool = self._pool_required()
        async with pool.acquire() as connection:
            if limit is None:
                rows = await connection.fetch(
                    f"SELECT item_json::text AS item FROM {self.table} WHERE session_id = $1 ORDER BY id ASC",
                    self.session_id,
                )
            else:
                if limit <= 0:
                    return []
                rows = await connection.fetch(
                    f"SELECT item_json::text AS item FROM {self.table} WHERE session_id = $1 "
                    "ORDER BY id DESC LIMIT $2",
                    self.session_id,
                    limit,
                )
                rows = list(reversed(rows))
        items = [loads_item(row["item"]) for row in rows]
        logger.debug("loaded %d item(s) for session %s", len(items), self.session_id)
        return items

    async def add_items(self, items: Sequence[InputItem]) -> None:
        self._ensure_setup()
        if not items:
            return
        pool = self._pool_required()
        async with pool.acquire() as connection:
            async with connection.transaction():
                await connection.executemany(
                    f"INSERT INTO {self.table} (session_id, item_json) VALUES ($1, $2::jsonb)",
                    [(self.session_id, dumps_item(item)) for item in items],
                )
        logger.debug("stored %d item(s) for session %s", len(items), self.session_id)

    async def pop_item(self) -> InputItem | None:
        self._ensure_setup()
        pool = self._pool_required()
        async with pool.acquire() as connection:
            row = await connection.fetchrow(
                f"""
                DELETE FROM {self.table}
                WHERE id = (
                  SELECT id FROM {self.table} WHERE session_id = $1 ORDER BY id DESC LIMIT 1
                )
                RETURNING item_json::text AS item
                """,
                self.session_id,
            )
        if row is None:
            return None
        return loads_item(row["item"])

    async def clear_session(self) -> None:
        self._ensure_setup()
        pool = self._pool_required()
        async with pool.acquire() as connection:
            await connection.execute(
                f"DELETE FROM {self.table} WHERE session_id = $1", self.session_id
            )
