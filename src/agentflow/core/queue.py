"""
Async FIFO queue used to hand stream events and guardrail verdicts from the
run tasks to the consumer of a streamed run.
"""

from __future__ import annotations

import asyncio
from collections import deque
from typing import Generic, TypeVar

T = TypeVar("T")


class QueueCompleteSentinel:
    """Reserved value marking the end of a stream."""

    _instance: "QueueCompleteSentinel | None" = None

    def __new__(cls) -> "QueueCompleteSentinel":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "QUEUE_COMPLETE_SENTINEL"


QUEUE_COMPLETE_SENTINEL = QueueCompleteSentinel()


class QueueClosedError(RuntimeError):
    """Raised when pushing onto a queue that has been torn down."""


class AsyncQueue(Generic[T]):
    """
    Unbounded FIFO queue with blocking and non-blocking pops.

    Producers never wait: `put_nowait` appends and wakes one blocked getter.
    Once `close()` is called, blocked and future `get()` calls return
    `QUEUE_COMPLETE_SENTINEL` after the remaining items are consumed, so no
    consumer can hang on a queue whose producer is gone.
    """

    def __init__(self) -> None:
        self._items: deque[T | QueueCompleteSentinel] = deque()
        self._not_empty = asyncio.Event()
        self._closed = False

    def __len__(self) -> int:
        return len(self._items)

    @property
    def closed(self) -> bool:
        """Return `True` once the queue has been closed."""
        return self._closed

    def empty(self) -> bool:
        """Return `True` when no item is buffered."""
        return not self._items

    def put_nowait(self, item: T | QueueCompleteSentinel) -> None:
        """
        Append one item.

        Args:
            item: Value to enqueue, the sentinel included.

        Raises:
            QueueClosedError: If the queue has been closed.
        """
        if self._closed:
            raise QueueClosedError("cannot push onto a closed queue")
        self._items.append(item)
        self._not_empty.set()

    async def get(self) -> T | QueueCompleteSentinel:
        """
        Pop the oldest item, waiting until one is available.

        Returns:
            The next item, or `QUEUE_COMPLETE_SENTINEL` when the queue is
            closed and empty.
        """
        while not self._items:
            if self._closed:
                return QUEUE_COMPLETE_SENTINEL
            self._not_empty.clear()
            await self._not_empty.wait()
        return self._items.popleft()

    def get_nowait(self) -> T | QueueCompleteSentinel | None:
        """Pop the oldest item without waiting, or return `None` when empty."""
        if not self._items:
            return None
        return self._items.popleft()

    def drain(self) -> int:
        """
        Discard every buffered item.

        Returns:
            Number of discarded items.
        """
        count = len(self._items)
        self._items.clear()
        return count

    def close(self) -> None:
        """Stop accepting items and release blocked getters. Idempotent."""
        self._closed = True
        self._not_empty.set()
