"""
Background task handles for the concurrent parts of a streamed run.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Coroutine, Generic, TypeVar

logger = logging.getLogger("agentflow.core.tasks")

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class TaskOutcome(Generic[T]):
    """
    Terminal outcome of a background task.

    Attributes:
        value: Return value when the task succeeded.
        error: Exception raised by the task, if any.
        cancelled: `True` when the task was cancelled before finishing.
    """

    value: T | None = None
    error: BaseException | None = None
    cancelled: bool = False

    @property
    def succeeded(self) -> bool:
        return self.error is None and not self.cancelled


class BackgroundTask(Generic[T]):
    """
    Named, independently cancellable and awaitable unit of work.

    The outcome is read from the underlying `asyncio.Task` exactly once and
    cached, so an exception is reported once and never logged by asyncio as
    "never retrieved".
    """

    def __init__(
        self,
        name: str,
        coro: Coroutine[Any, Any, T],
        *,
        on_done: Callable[["BackgroundTask[T]"], None] | None = None,
    ) -> None:
        """
        Schedule `coro` on the running loop.

        Args:
            name: Task name used in logs and wrapped errors.
            coro: Coroutine to run.
            on_done: Optional callback invoked once the task finishes.
        """
        self.name = name
        self._outcome: TaskOutcome[T] | None = None
        self._task: asyncio.Task[T] = asyncio.get_running_loop().create_task(coro, name=name)
        if on_done is not None:
            self._task.add_done_callback(lambda _task: on_done(self))

    def __repr__(self) -> str:
        state = "done" if self.done() else "running"
        return f"BackgroundTask(name={self.name!r}, state={state})"

    def done(self) -> bool:
        """Return `True` once the task finished, failed, or was cancelled."""
        return self._task.done()

    def is_current(self) -> bool:
        """Return `True` when called from inside this task."""
        return asyncio.current_task() is self._task

    def cancel(self) -> bool:
        """
        Request cancellation.

        Returns:
            `True` when a cancellation request was delivered to a running task.
        """
        if self._task.done():
            return False
        logger.debug("cancelling task %s", self.name)
        return self._task.cancel()

    async def wait(self) -> TaskOutcome[T]:
        """
        Wait for the task to converge without raising.

        Returns:
            The task outcome.
        """
        if not self._task.done():
            await asyncio.wait([self._task])
        return self.outcome()

    def outcome(self) -> TaskOutcome[T]:
        """
        Return the cached terminal outcome.

        Raises:
            RuntimeError: If the task is still running.
        """
        if self._outcome is not None:
            return self._outcome
        if not self._task.done():
            raise RuntimeError(f"task {self.name!r} is still running")
        if self._task.cancelled():
            self._outcome = TaskOutcome(cancelled=True)
        else:
            error = self._task.exception()
            if error is not None:
                self._outcome = TaskOutcome(error=error)
            else:
                self._outcome = TaskOutcome(value=self._task.result())
        return self._outcome

    def error(self) -> BaseException | None:
        """Return the task's exception, or `None` while running, after success or after cancellation."""
        if not self._task.done():
            return None
        return self.outcome().error
