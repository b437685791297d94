from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module provides a Redis session backend using one list per session.
"""

import logging
from typing import Sequence

from redis.asyncio import Redis

from ..models.types import InputItem
from .base import Session, dumps_item, loads_item

logger = logging.getLogger("agentflow.sessions.redis")


class RedisSession(Session):
    """Redis-backed session; items are appended with RPUSH and trimmed to `max_items`."""

    def __init__(
        self,
        session_id: str,
        *,
        url: str,
        max_items: int = 2_000,
        ttl_s: int | None = None,
    ) -> None:
        super().__init__(session_id)
        self.url = url
        self.max_items = max_items
        self.ttl_s = ttl_s
        self._redis_client: Redis | None = None

    async def setup(self) -> None:
        self._redis_client = Redis.from_url(self.url, decode_responses=True)
        await self._redis_client.ping()
        await super().setup()

    async def close(self) -> None:
        if self._redis_client is not None:
            await self._redis_client.aclose()
            self._redis_client = None
        await super().close()

    def _redis(self) -> Redis:
        if self._redis_client is None:
            raise RuntimeError("RedisSession is not initialized. Call setup() first.")
        return self._redis_client

    @property
    def _key(self) -> str:
        return f"agentflow:session:{self.session_id}"

    async def get_items(self, limit: int | None = None) -> list[InputItem]:
        self._ensure_setup()
        if limit is not None and limit <= 0:
            return []
        start = 0 if limit is None else -limit
        serialized = await self._redis().lrange(self._key, start, -1)
        items = [loads_item(raw) for raw in serialized]
        logger.debug("loaded %d item(s) for session %s", len(items), self.session_id)
        return items

    async def add_items(self, items: Sequence[InputItem]) -> None:
        self._ensure_setup()
        if not items:
            return
        pipeline = self._redis().pipeline()
        pipeline.rpush(self._key, *[dumps_item(item) for item in items])
        pipeline.ltrim(self._key, -self.max_items, -1)
        if self.ttl_s is not None:
            pipeline.expire(self._key, self.ttl_s)
        await pipeline.execute()
        logger.debug("stored %d item(s) for session %s", len(items), self.session_id)

    async def pop_item(self) -> InputItem | None:
        self._ensure_setup()
        raw = await self._redis().rpop(self._key)
        if raw is None:
            return None
        return loads_item(raw)

    async def clear_session(self) -> None:
        self._ensure_setup()
        await self._redis().delete(self._key)
