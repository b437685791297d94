from __future__ import annotations

import asyncio
import io
import json

import httpx
import pytest
from rich.console import Console

from agentflow.config import AgentflowConfig
from agentflow.workflow import (
    RUN_STARTED,
    CallbackEvent,
    CallbackPublishError,
    HTTPCallbackPublisher,
    MultiCallbackPublisher,
    StdoutCallbackPublisher,
    WorkflowBuildError,
    build_publishers,
    default_callback_factory,
    load_workflow_request,
)
from agentflow.workflow.types import CallbackDeclaration


def run_async(coro):
    return asyncio.run(coro)


def request_with_callbacks(*callbacks):
    return load_workflow_request(
        {
            "query": "hi",
            "callbacks": list(callbacks),
            "workflow": {"name": "w", "starting_agent": "a", "agents": [{"name": "a"}]},
        }
    )


class RecordingPublisher:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.events = []
        self.closed = False

    async def publish(self, event):
        self.events.append(event)
        if self.fail:
            raise CallbackPublishError("recording", "down")

    async def aclose(self):
        self.closed = True


def test_http_publisher_posts_event_json_with_headers():
    received = []

    def handler(request: httpx.Request) -> httpx.Response:
        received.append((request.method, str(request.url), request.headers, json.loads(request.content)))
        return httpx.Response(204)

    async def scenario():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            publisher = HTTPCallbackPublisher(
                "https://hooks.example.com/runs",
                headers={"Authorization": "Bearer t0k"},
                client=client,
            )
            await publisher.publish(CallbackEvent(type=RUN_STARTED, payload={"run_id": "r1"}))
            await publisher.aclose()

    run_async(scenario())

    method, url, headers, body = received[0]
    assert method == "POST"
    assert url == "https://hooks.example.com/runs"
    assert headers["authorization"] == "Bearer t0k"
    assert body["type"] == "run.started"
    assert body["payload"] == {"run_id": "r1"}
    assert "timestamp" in body


def test_http_publisher_retries_until_success():
    statuses = [500, 503, 200]
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        return httpx.Response(statuses[len(attempts) - 1])

    async def scenario():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            publisher = HTTPCallbackPublisher(
                "https://hooks.example.com", max_attempts=3, backoff_s=0.001, client=client
            )
            await publisher.publish(CallbackEvent(type="run.event"))

    run_async(scenario())

    assert len(attempts) == 3


def test_http_publisher_gives_up_after_max_attempts():
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    async def scenario():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            publisher = HTTPCallbackPublisher("https://hooks.example.com", max_attempts=2, client=client)
            await publisher.publish(CallbackEvent(type="run.completed"))

    with pytest.raises(CallbackPublishError) as excinfo:
        run_async(scenario())

    assert len(attempts) == 2
    assert excinfo.value.target == "https://hooks.example.com"
    assert "run.completed not delivered after 2 attempt(s)" in str(excinfo.value)


def test_multi_publisher_tries_everyone_then_raises_first_error():
    broken, healthy = RecordingPublisher(fail=True), RecordingPublisher()
    multi = MultiCallbackPublisher([broken, healthy])
    event = CallbackEvent(type="run.event")

    with pytest.raises(CallbackPublishError, match="recording: down"):
        run_async(multi.publish(event))
    run_async(multi.aclose())

    assert healthy.events == [event]
    assert broken.closed and healthy.closed


def test_stdout_publisher_prints_compact_and_verbose_lines():
    buffer = io.StringIO()
    console = Console(file=buffer, width=300, color_system=None)
    event = CallbackEvent(type="run.completed", payload={"final_output": "done [ok]"})

    run_async(StdoutCallbackPublisher(console=console).publish(event))
    run_async(StdoutCallbackPublisher(verbose=True, console=console).publish(event))

    output = buffer.getvalue()
    assert 'run.completed {"final_output": "done [ok]"}' in output
    assert '"type": "run.completed"' in output


def test_default_factory_maps_modes_and_retry_settings():
    factory = default_callback_factory(AgentflowConfig(callback_timeout_s=2.5))

    http = factory(
        CallbackDeclaration(
            target="https://hooks.example.com",
            retry={"max_attempts": 4, "backoff_seconds": 0.5},
        )
    )
    stdout = factory(CallbackDeclaration(mode="Stdout"))
    verbose = factory(CallbackDeclaration(mode="stdout_verbose"))

    assert isinstance(http, HTTPCallbackPublisher)
    assert http.max_attempts == 4
    assert http.backoff_s == 0.5
    assert isinstance(stdout, StdoutCallbackPublisher) and not stdout.verbose
    assert verbose.verbose
    with pytest.raises(WorkflowBuildError, match="unsupported callback mode 'pigeon'"):
        factory(CallbackDeclaration(mode="pigeon", target="https://x"))
    run_async(http.aclose())


def test_build_publishers_reports_console_and_skip_flags():
    stdout_only = build_publishers(request_with_callbacks({"mode": "stdout"}))
    mixed = build_publishers(
        request_with_callbacks({"mode": "stdout_verbose"}, "https://hooks.example.com")
    )

    assert stdout_only.console_enabled and stdout_only.skip_publishing
    assert not stdout_only.console_verbose
    assert mixed.console_enabled and mixed.console_verbose
    assert not mixed.skip_publishing
    assert len(mixed.publisher.publishers) == 2
    run_async(mixed.publisher.aclose())


def test_build_publishers_names_the_failing_callback():
    request = request_with_callbacks({"mode": "stdout"}, {"mode": "pigeon", "target": "https://x"})

    with pytest.raises(WorkflowBuildError, match=r"create callback publisher\[1\]: unsupported"):
        build_publishers(request)
