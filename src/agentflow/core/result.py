"""
Run results: the frozen terminal snapshot and the streaming run state machine.

`RunResultStreaming` is written by the run tasks and read by the consumer
concurrently on one event loop. Every field is replaced wholesale (tuples,
never in-place list mutation), so a reader always sees the last committed
value and never a partially updated one.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable, Coroutine, Sequence, TypeVar, Union

from ..agents.base import Agent
from ..agents.errors import (
    AgentError,
    BackgroundTaskError,
    InputGuardrailTripwireError,
    MaxTurnsExceededError,
    RunErrorDetails,
)
from ..agents.guardrails import InputGuardrailResult, OutputGuardrailResult
from ..agents.items import RunItem, last_response_id, to_input_list
from ..models.types import InputItem, ModelResponse
from ..run_context import RunContext
from .queue import AsyncQueue, QueueCompleteSentinel
from .stream_events import StreamEvent
from .tasks import BackgroundTask

logger = logging.getLogger("agentflow.core.result")

T = TypeVar("T")

StreamVisitor = Callable[[StreamEvent], Union[None, Awaitable[None]]]

RUN_TASK = "run"
INPUT_GUARDRAILS_TASK = "input_guardrails"
OUTPUT_GUARDRAILS_TASK = "output_guardrails"


def _copy_input(value: str | Sequence[InputItem]) -> str | list[InputItem]:
    if isinstance(value, str):
        return value
    return [dict(item) for item in value]


def _cast_output(value: Any, cls: type[T], raise_if_incorrect_type: bool) -> T:
    if raise_if_incorrect_type and not isinstance(value, cls):
        raise TypeError(f"final output is {type(value).__name__}, not {cls.__name__}")
    return value  # type: ignore[return-value]


@dataclass(frozen=True, slots=True)
class RunResult:
    """
    Immutable view of a completed run.

    Attributes:
        input: Original run input.
        new_items: Items generated during the run, in production order.
        raw_responses: Model responses, one per model call.
        final_output: Output of the last agent.
        input_guardrail_results: Input guardrail verdicts.
        output_guardrail_results: Output guardrail verdicts.
        last_agent: Agent that produced the final output.
        context: Run context after the run.
    """

    input: str | list[InputItem]
    new_items: tuple[RunItem, ...]
    raw_responses: tuple[ModelResponse, ...]
    final_output: Any
    input_guardrail_results: tuple[InputGuardrailResult, ...]
    output_guardrail_results: tuple[OutputGuardrailResult, ...]
    last_agent: Agent
    context: RunContext

    def to_input_list(self) -> list[InputItem]:
        """Original input followed by the input form of every new item."""
        return to_input_list(self.input, self.new_items)

    def last_response_id(self) -> str:
        return last_response_id(self.raw_responses)

    def final_output_as(self, cls: type[T], *, raise_if_incorrect_type: bool = False) -> T:
        return _cast_output(self.final_output, cls, raise_if_incorrect_type)

    def __str__(self) -> str:
        return (
            f"RunResult(last_agent={self.last_agent.name!r}, "
            f"new_items={len(self.new_items)}, "
            f"raw_responses={len(self.raw_responses)}, "
            f"final_output={self.final_output!r})"
        )


class RunResultStreaming:
    """
    State of an in-flight streamed run.

    The run task appends items and responses, advances the turn counter and
    the current agent, and publishes stream events. The consumer drains the
    events with `stream_events()` / `stream()`; fatal conditions (turn limit,
    guardrail tripwire, task failure) are funneled into one stored error
    that is raised to the consumer exactly once per stream.
    """

    def __init__(
        self,
        *,
        input: str | Sequence[InputItem],
        max_turns: int,
        context: RunContext | None = None,
    ) -> None:
        self._input: str | list[InputItem] = _copy_input(input)
        self._new_items: tuple[RunItem, ...] = ()
        self._raw_responses: tuple[ModelResponse, ...] = ()
        self._final_output: Any = None
        self._input_guardrail_results: tuple[InputGuardrailResult, ...] = ()
        self._output_guardrail_results: tuple[OutputGuardrailResult, ...] = ()
        self._current_agent: Agent | None = None
        self._current_turn = 0
        self._max_turns = max_turns
        self._is_complete = False
        self._stored_error: AgentError | None = None
        self.context = context or RunContext()

        self._event_queue: AsyncQueue[StreamEvent] = AsyncQueue()
        self._input_guardrail_queue: AsyncQueue[InputGuardrailResult] = AsyncQueue()

        self._run_impl_task: BackgroundTask[None] | None = None
        self._input_guardrails_task: BackgroundTask[Any] | None = None
        self._output_guardrails_task: BackgroundTask[Any] | None = None

    # Accessors

    @property
    def input(self) -> str | list[InputItem]:
        return self._input

    @property
    def new_items(self) -> tuple[RunItem, ...]:
        return self._new_items

    @property
    def raw_responses(self) -> tuple[ModelResponse, ...]:
        return self._raw_responses

    @property
    def final_output(self) -> Any:
        return self._final_output

    @property
    def input_guardrail_results(self) -> tuple[InputGuardrailResult, ...]:
        return self._input_guardrail_results

    @property
    def output_guardrail_results(self) -> tuple[OutputGuardrailResult, ...]:
        return self._output_guardrail_results

    @property
    def current_agent(self) -> Agent | None:
        return self._current_agent

    @property
    def last_agent(self) -> Agent | None:
        """Agent active when the run stopped (or the active agent while running)."""
        return self._current_agent

    @property
    def current_turn(self) -> int:
        return self._current_turn

    @property
    def max_turns(self) -> int:
        return self._max_turns

    @property
    def is_complete(self) -> bool:
        return self._is_complete

    @property
    def stored_error(self) -> AgentError | None:
        return self._stored_error

    def to_input_list(self) -> list[InputItem]:
        """Original input followed by the input form of every new item."""
        return to_input_list(self._input, self._new_items)

    def last_response_id(self) -> str:
        return last_response_id(self._raw_responses)

    def final_output_as(self, cls: type[T], *, raise_if_incorrect_type: bool = False) -> T:
        return _cast_output(self._final_output, cls, raise_if_incorrect_type)

    def to_result(self) -> RunResult:
        """
        Freeze the completed run.

        Raises:
            RuntimeError: If the run is still in flight.
            AgentError: The stored error, if the run failed.
        """
        if not self._is_complete:
            raise RuntimeError("run is not complete")
        if self._stored_error is not None:
            raise self._stored_error
        if self._current_agent is None:
            raise RuntimeError("run completed without an agent")
        return RunResult(
            input=self._input,
            new_items=self._new_items,
            raw_responses=self._raw_responses,
            final_output=self._final_output,
            input_guardrail_results=self._input_guardrail_results,
            output_guardrail_results=self._output_guardrail_results,
            last_agent=self._current_agent,
            context=self.context,
        )

    def __repr__(self) -> str:
        agent = self._current_agent.name if self._current_agent is not None else None
        return (
            f"RunResultStreaming(current_agent={agent!r}, "
            f"current_turn={self._current_turn}, max_turns={self._max_turns}, "
            f"is_complete={self._is_complete}, new_items={len(self._new_items)})"
        )

    # Producer side, used by the run loop

    def _writable(self, field_name: str) -> bool:
        if self._is_complete:
            logger.debug("ignoring update of %s on a completed run", field_name)
            return False
        return True

    def _set_input(self, value: str | Sequence[InputItem]) -> None:
        if self._writable("input"):
            self._input = _copy_input(value)

    def _append_new_items(self, items: Sequence[RunItem]) -> None:
        if items and self._writable("new_items"):
            self._new_items = (*self._new_items, *items)

    def _append_raw_response(self, response: ModelResponse) -> None:
        if self._writable("raw_responses"):
            self._raw_responses = (*self._raw_responses, response)

    def _set_current_agent(self, agent: Agent) -> None:
        if self._writable("current_agent"):
            self._current_agent = agent

    def _advance_turn(self) -> int:
        if self._writable("current_turn"):
            self._current_turn += 1
        return self._current_turn

    def _set_final_output(self, value: Any) -> None:
        if self._writable("final_output"):
            self._final_output = value

    def _add_input_guardrail_result(self, result: InputGuardrailResult) -> None:
        if not self._writable("input_guardrail_results"):
            return
        self._input_guardrail_results = (*self._input_guardrail_results, result)
        self._input_guardrail_queue.put_nowait(result)

    def _set_output_guardrail_results(self, results: Sequence[OutputGuardrailResult]) -> None:
        if self._writable("output_guardrail_results"):
            self._output_guardrail_results = tuple(results)

    def _publish(self, event: StreamEvent) -> None:
        if self._writable("event_queue"):
            self._event_queue.put_nowait(event)

    def _mark_complete(self) -> None:
        self._is_complete = True

    def _finish(self) -> None:
        """Mark the run complete and push the end-of-stream sentinel."""
        self._mark_complete()
        if not self._event_queue.closed:
            self._event_queue.put_nowait(QueueCompleteSentinel())

    def _start_run_task(self, coro: Coroutine[Any, Any, None]) -> None:
        self._run_impl_task = BackgroundTask(RUN_TASK, coro, on_done=self._on_run_task_done)

    def _start_input_guardrails_task(self, coro: Coroutine[Any, Any, Any]) -> BackgroundTask[Any]:
        self._input_guardrails_task = BackgroundTask(INPUT_GUARDRAILS_TASK, coro)
        return self._input_guardrails_task

    def _start_output_guardrails_task(self, coro: Coroutine[Any, Any, Any]) -> BackgroundTask[Any]:
        self._output_guardrails_task = BackgroundTask(OUTPUT_GUARDRAILS_TASK, coro)
        return self._output_guardrails_task

    def _on_run_task_done(self, task: BackgroundTask[None]) -> None:
        # The run task is the only producer: once it is gone, blocked
        # consumers must wake up even if it died before pushing the sentinel.
        self._event_queue.close()

    # Error funnel

    def _tasks(self) -> list[BackgroundTask[Any]]:
        return [
            task
            for task in (
                self._run_impl_task,
                self._input_guardrails_task,
                self._output_guardrails_task,
            )
            if task is not None
        ]

    def _create_error_details(self) -> RunErrorDetails:
        return RunErrorDetails(
            input=self._input,
            new_items=self._new_items,
            raw_responses=self._raw_responses,
            last_agent=self._current_agent,
            context=self.context,
            input_guardrail_results=self._input_guardrail_results,
            output_guardrail_results=self._output_guardrail_results,
        )

    def _store_error(self, error: AgentError) -> AgentError:
        error.annotate(self._create_error_details())
        self._stored_error = error
        logger.debug("stored run error: %s", error)
        return error

    def _wrap_task_error(self, task: BackgroundTask[Any], error: BaseException) -> AgentError:
        if isinstance(error, AgentError):
            return error
        return BackgroundTaskError(f"{task.name} task", error)

    def _check_errors(self) -> AgentError | None:
        """
        Poll every error source and store the first fatal condition found.

        Order: turn limit, drained input guardrail verdicts, run task,
        input guardrail task, output guardrail task. Once an error is stored
        later polls return it unchanged.
        """
        if self._stored_error is not None:
            return self._stored_error

        if self._current_turn > self._max_turns:
            return self._store_error(
                MaxTurnsExceededError(f"Max turns ({self._max_turns}) exceeded")
            )

        while not self._input_guardrail_queue.empty():
            verdict = self._input_guardrail_queue.get_nowait()
            if isinstance(verdict, InputGuardrailResult) and verdict.output.tripwire_triggered:
                return self._store_error(InputGuardrailTripwireError(verdict))

        for task in self._tasks():
            error = task.error()
            if error is not None:
                return self._store_error(self._wrap_task_error(task, error))

        return None

    # Task lifecycle

    def _cleanup_tasks(self) -> None:
        for task in self._tasks():
            task.cancel()

    async def _await_tasks(self) -> None:
        pending = [task.wait() for task in self._tasks() if not task.is_current()]
        if pending:
            await asyncio.gather(*pending)

    async def cancel(self) -> None:
        """
        Stop the run.

        Marks the run complete, cancels the tasks still running, waits for
        them to converge and discards both queues. Idempotent.
        """
        self._mark_complete()
        self._cleanup_tasks()
        await self._await_tasks()
        discarded = self._event_queue.drain() + self._input_guardrail_queue.drain()
        self._event_queue.close()
        self._input_guardrail_queue.close()
        logger.debug("run cancelled, %d queued item(s) discarded", discarded)

    # Consumer side

    async def stream_events(self) -> AsyncIterator[StreamEvent]:
        """
        Yield stream events in production order.

        The run is cancelled when the generator is closed before the end.
        A `break` alone does not close it until it is garbage collected, so
        callers that may stop early should iterate inside
        `contextlib.aclosing(result.stream_events())`, or use `stream()`.

        Raises:
            AgentError: The stored error once the stream ends, if the run failed.
        """
        finished = False
        try:
            while True:
                if self._check_errors() is not None:
                    logger.debug("stream stopped by stored error")
                    self._mark_complete()
                    break
                if self._is_complete and self._event_queue.empty():
                    break
                item = await self._event_queue.get()
                if isinstance(item, QueueCompleteSentinel):
                    # A task may have failed right as it finished.
                    self._check_errors()
                    break
                yield item
            finished = True
        finally:
            if not finished:
                # Consumer stopped iterating or raised.
                await self.cancel()

        if self._stored_error is None:
            await self._await_tasks()
            self._check_errors()
        if self._stored_error is not None:
            self._mark_complete()
            self._cleanup_tasks()
            await self._await_tasks()
            raise self._stored_error

    async def stream(self, visit_fn: StreamVisitor) -> None:
        """
        Drive the run, calling `visit_fn` (sync or async) for every event.

        An exception raised by `visit_fn` cancels the run and propagates
        unchanged; it is not stored as the run's error.

        Raises:
            AgentError: The stored error, if the run failed.
        """
        events = self.stream_events()
        try:
            async for event in events:
                outcome = visit_fn(event)
                if inspect.isawaitable(outcome):
                    await outcome
        finally:
            await events.aclose()
