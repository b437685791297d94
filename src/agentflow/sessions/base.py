from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module defines the abstract conversation session contract used by the runner.
"""

import json
from abc import ABC, abstractmethod
from typing import Sequence

from ..models.types import InputItem


def dumps_item(item: InputItem) -> str:
    return json.dumps(item, ensure_ascii=True, separators=(",", ":"), default=str)


def loads_item(raw: str | bytes) -> InputItem:
    value = json.loads(raw)
    if not isinstance(value, dict):
        raise ValueError(f"stored session item is not an object: {type(value).__name__}")
    return value


class Session(ABC):
    """
    Base contract for conversation history stores.

    A session keeps the input items of past runs under `session_id`, in
    chronological order. The runner prepends `get_items()` to the input of
    a new run and appends the run's input and generated items when the run
    completes.
    """

    def __init__(self, session_id: str) -> None:
        if not session_id:
            raise ValueError("session_id must not be empty")
        self.session_id = session_id
        self._is_setup = False

    @property
    def is_setup(self) -> bool:
        return self._is_setup

    async def setup(self) -> None:
        """Initialize backend resources."""
        self._is_setup = True

    async def close(self) -> None:
        """Release backend resources."""
        self._is_setup = False

    async def __aenter__(self) -> "Session":
        await self.setup()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def _ensure_setup(self) -> None:
        if not self._is_setup:
            raise RuntimeError(
                f"{type(self).__name__} is not initialized. Call setup() or use `async with`."
            )

    @abstractmethod
    async def get_items(self, limit: int | None = None) -> list[InputItem]:
        """Return stored items in chronological order; `limit` keeps only the latest ones."""

    @abstractmethod
    async def add_items(self, items: Sequence[InputItem]) -> None:
        """Append items to the end of the history."""

    @abstractmethod
    async def pop_item(self) -> InputItem | None:
        """Remove and return the most recent item, or `None` when empty."""

    @abstractmethod
    async def clear_session(self) -> None:
        """Delete every item of this session."""
