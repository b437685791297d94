from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module delivers run lifecycle events to the callbacks declared in a manifest.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Protocol, Sequence

import httpx
from rich.console import Console

from ..config import AgentflowConfig
from .errors import CallbackPublishError, WorkflowBuildError
from .types import CallbackDeclaration, WorkflowRequest

logger = logging.getLogger("agentflow.workflow.callbacks")

RUN_STARTED = "run.started"
RUN_EVENT = "run.event"
RUN_COMPLETED = "run.completed"
RUN_FAILED = "run.failed"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class CallbackEvent:
    """
    One lifecycle event of a workflow run.

    Attributes:
        type: `run.started`, `run.event`, `run.completed` or `run.failed`.
        payload: JSON-safe event body.
        timestamp: UTC emission time.
    """

    type: str
    payload: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "timestamp": self.timestamp.isoformat(),
            "payload": self.payload,
        }


class CallbackPublisher(Protocol):
    """Delivers callback events; `publish` raises `CallbackPublishError` on failure."""

    async def publish(self, event: CallbackEvent) -> None: ...

    async def aclose(self) -> None: ...


class HTTPCallbackPublisher:
    """
    POSTs every event as JSON to one URL.

    Transport errors and non-2xx responses are retried `max_attempts` times
    in total, sleeping `backoff_s * 2**(attempt - 1)` between attempts.
    """

    def __init__(
        self,
        target: str,
        *,
        headers: dict[str, str] | None = None,
        max_attempts: int = 1,
        backoff_s: float = 0.0,
        timeout_s: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.target = target
        self.headers = dict(headers or {})
        self.max_attempts = max(1, max_attempts)
        self.backoff_s = max(0.0, backoff_s)
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_s)

    def __repr__(self) -> str:
        return f"HTTPCallbackPublisher(target={self.target!r})"

    async def publish(self, event: CallbackEvent) -> None:
        last_error: Exception | None = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                response = await self._client.post(
                    self.target, json=event.to_dict(), headers=self.headers
                )
                response.raise_for_status()
                return
            except httpx.HTTPError as e:
                last_error = e
                logger.debug(
                    "callback %s attempt %d/%d failed: %s",
                    self.target,
                    attempt,
                    self.max_attempts,
                    e,
                )
            if attempt < self.max_attempts and self.backoff_s > 0:
                await asyncio.sleep(self.backoff_s * (2 ** (attempt - 1)))
        raise CallbackPublishError(
            self.target, f"{event.type} not delivered after {self.max_attempts} attempt(s): {last_error}"
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


class StdoutCallbackPublisher:
    """Prints events to the terminal; compact one-liners unless `verbose`."""

    def __init__(self, *, verbose: bool = False, console: Console | None = None) -> None:
        self.verbose = verbose
        self.console = console or Console()

    async def publish(self, event: CallbackEvent) -> None:
        if self.verbose:
            self.console.print_json(json.dumps(event.to_dict(), default=str))
            return
        summary = json.dumps(event.payload, default=str)
        if len(summary) > 200:
            summary = summary[:197] + "..."
        self.console.print(f"{event.type} {summary}", markup=False, highlight=False)

    async def aclose(self) -> None:
        return None


class MultiCallbackPublisher:
    """
    Fans an event out to several publishers.

    Every publisher is attempted; the first failure is raised afterwards.
    """

    def __init__(self, publishers: Sequence[CallbackPublisher]) -> None:
        self.publishers = list(publishers)

    async def publish(self, event: CallbackEvent) -> None:
        first_error: CallbackPublishError | None = None
        for publisher in self.publishers:
            try:
                await publisher.publish(event)
            except CallbackPublishError as e:
                logger.warning("callback delivery failed: %s", e)
                if first_error is None:
                    first_error = e
        if first_error is not None:
            raise first_error

    async def aclose(self) -> None:
        for publisher in self.publishers:
            await publisher.aclose()


CallbackFactory = Callable[[CallbackDeclaration], CallbackPublisher]


def default_callback_factory(
    config: AgentflowConfig | None = None,
) -> CallbackFactory:
    """
    Return the factory mapping callback modes to publishers.

    `""`/`http` post to the target; `stdout`/`stdout_verbose` print.
    """
    timeout_s = config.callback_timeout_s if config is not None else 10.0

    def factory(declaration: CallbackDeclaration) -> CallbackPublisher:
        mode = declaration.normalized_mode
        if mode in ("", "http"):
            retry = declaration.retry
            return HTTPCallbackPublisher(
                declaration.target,
                headers=declaration.headers,
                max_attempts=retry.max_attempts if retry else 1,
                backoff_s=retry.backoff_seconds if retry else 0.0,
                timeout_s=timeout_s,
            )
        if mode == "stdout":
            return StdoutCallbackPublisher()
        if mode == "stdout_verbose":
            return StdoutCallbackPublisher(verbose=True)
        raise WorkflowBuildError(f"unsupported callback mode {declaration.mode!r}")

    return factory


@dataclass(frozen=True, slots=True)
class PublisherSet:
    """
    Publishers of one request plus how the run should report.

    Attributes:
        publisher: Fan-out publisher over every declared callback.
        console_enabled: At least one stdout callback was declared.
        console_verbose: At least one `stdout_verbose` callback was declared.
        skip_publishing: Only stdout callbacks were declared; the console
            printer reports instead of the publishers.
    """

    publisher: MultiCallbackPublisher
    console_enabled: bool
    console_verbose: bool
    skip_publishing: bool


def build_publishers(
    request: WorkflowRequest, factory: CallbackFactory | None = None
) -> PublisherSet:
    """
    Create publishers for every callback of `request`.

    Raises:
        WorkflowBuildError: If a callback mode is unsupported.
    """
    factory = factory or default_callback_factory()
    publishers: list[CallbackPublisher] = []
    has_stdout = has_verbose = has_other = False
    for index, declaration in enumerate(request.all_callbacks()):
        if declaration.is_stdout():
            has_stdout = True
            has_verbose = has_verbose or declaration.normalized_mode == "stdout_verbose"
        else:
            has_other = True
        try:
            publishers.append(factory(declaration))
        except WorkflowBuildError as e:
            raise WorkflowBuildError(f"create callback publisher[{index}]: {e}") from e
    return PublisherSet(
        publisher=MultiCallbackPublisher(publishers),
        console_enabled=has_stdout,
        console_verbose=has_verbose,
        skip_publishing=has_stdout and not has_other,
    )
