from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module provides an in-process session used for local development and tests.
"""

import asyncio
import copy
from typing import Sequence

from ..models.types import InputItem
from .base import Session


class InMemorySession(Session):
    """Process-local session; history is lost when the process exits."""

    def __init__(self, session_id: str) -> None:
        super().__init__(session_id)
        self._lock = asyncio.Lock()
        self._items: list[InputItem] = []

    async def get_items(self, limit: int | None = None) -> list[InputItem]:
        self._ensure_setup()
        async with self._lock:
            if limit is None:
                return copy.deepcopy(self._items)
            if limit <= 0:
                return []
            return copy.deepcopy(self._items[-limit:])

    async def add_items(self, items: Sequence[InputItem]) -> None:
        self._ensure_setup()
        async with self._lock:
            self._items.extend(copy.deepcopy(list(items)))

    async def pop_item(self) -> InputItem | None:
        self._ensure_setup()
        async with self._lock:
            return self._items.pop() if self._items else None

    async def clear_session(self) -> None:
        self._ensure_setup()
        async with self._lock:
            self._items.clear()
