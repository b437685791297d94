from __future__ import annotations

import asyncio
import io
from datetime import datetime, timezone

from rich.console import Console

from agentflow.agents import Agent, ItemHelpers
from agentflow.agents.items import (
    HandoffOutputItem,
    MCPApprovalRequestItem,
    MCPApprovalResponseItem,
    MessageOutputItem,
    ToolCallItem,
    ToolCallOutputItem,
)
from agentflow.core.stream_events import (
    AgentUpdatedStreamEvent,
    RawResponsesStreamEvent,
    run_item_event,
)
from agentflow.workflow import (
    ConsolePrinter,
    ExecutionStateTracker,
    ExecutionStatus,
    InMemoryExecutionStateStore,
    serialize_stream_event,
    summarize_run_item,
)

AGENT = Agent("reader")
OTHER = Agent("writer")


def run_async(coro):
    return asyncio.run(coro)


def approval_request(request_id: str = "apr_1") -> MCPApprovalRequestItem:
    return MCPApprovalRequestItem(
        agent=AGENT,
        raw_item={
            "type": "mcp_approval_request",
            "id": request_id,
            "server_label": "files",
            "name": "read_file",
            "arguments": {"path": "/tmp/a"},
        },
    )


def approval_response(request_id: str, approve: bool) -> MCPApprovalResponseItem:
    return MCPApprovalResponseItem(
        agent=AGENT,
        raw_item={"type": "mcp_approval_response", "approval_request_id": request_id, "approve": approve},
    )


def test_tracker_follows_run_and_approvals():
    store = InMemoryExecutionStateStore()
    tracker = ExecutionStateTracker(store, "sess-1", "files")
    started = datetime(2026, 1, 2, tzinfo=timezone.utc)

    async def scenario():
        await tracker.on_run_started("run-1", "sess-1:run-1", "read it", started)
        running = await store.load("sess-1")
        await tracker.on_stream_event(AgentUpdatedStreamEvent(new_agent=AGENT))
        await tracker.on_stream_event(run_item_event(approval_request("apr_1")))
        await tracker.on_stream_event(run_item_event(approval_request("apr_1")))
        await tracker.on_stream_event(run_item_event(approval_request("apr_2")))
        waiting = await store.load("sess-1")
        await tracker.on_stream_event(run_item_event(approval_response("apr_1", True)))
        await tracker.on_stream_event(run_item_event(approval_response("apr_2", False)))
        answered = await store.load("sess-1")
        await tracker.on_run_completed("resp_1", "done")
        return running, waiting, answered, await store.load("sess-1")

    running, waiting, answered, completed = run_async(scenario())

    assert running.status == ExecutionStatus.RUNNING
    assert running.started_at == started
    assert running.query == "read it"
    assert waiting.status == ExecutionStatus.WAITING_APPROVAL
    assert [a.request_id for a in waiting.pending_approvals] == ["apr_1", "apr_2"]
    assert waiting.pending_approvals[0].arguments == '{"path": "/tmp/a"}'
    assert answered.status == ExecutionStatus.RUNNING
    assert answered.pending_approvals == []
    assert answered.decisions["apr_2"].approve is False
    assert completed.status == ExecutionStatus.COMPLETED
    assert completed.final_output == "done"
    assert completed.last_response_id == "resp_1"


def test_tracker_keeps_waiting_when_run_ends_with_pending_approvals():
    store = InMemoryExecutionStateStore()
    tracker = ExecutionStateTracker(store, "sess-1", "files")

    async def scenario():
        await tracker.on_run_started("run-1", "sess-1:run-1", "q", datetime.now(timezone.utc))
        await tracker.on_stream_event(run_item_event(approval_request()))
        await tracker.on_run_completed("resp_1", None)
        waiting = await store.load("sess-1")
        await tracker.on_run_failed(RuntimeError("boom"))
        return waiting, await store.load("sess-1")

    waiting, failed = run_async(scenario())

    assert waiting.status == ExecutionStatus.WAITING_APPROVAL
    assert waiting.to_dict()["pending_approvals"][0]["request_id"] == "apr_1"
    assert failed.status == ExecutionStatus.FAILED
    assert failed.last_error == "boom"


def test_store_returns_copies():
    store = InMemoryExecutionStateStore()
    tracker = ExecutionStateTracker(store, "sess-1", "files")

    async def scenario():
        await tracker.on_run_started("run-1", "tok", "q", datetime.now(timezone.utc))
        state = await store.load("sess-1")
        state.status = ExecutionStatus.FAILED
        return await store.load("sess-1")

    assert run_async(scenario()).status == ExecutionStatus.RUNNING


def test_serialize_stream_events():
    raw = serialize_stream_event(RawResponsesStreamEvent(data={"type": "response.output_text.delta", "delta": "Hi"}))
    updated = serialize_stream_event(AgentUpdatedStreamEvent(new_agent=OTHER))
    message = serialize_stream_event(
        run_item_event(MessageOutputItem(agent=AGENT, raw_item=ItemHelpers.assistant_message("Hello")))
    )

    assert raw == {
        "event_kind": "raw",
        "type": "response.output_text.delta",
        "data": {"type": "response.output_text.delta", "delta": "Hi"},
    }
    assert updated == {"event_kind": "agent_updated", "agent_name": "writer"}
    assert message == {
        "event_kind": "run_item",
        "name": "message_output_created",
        "item": {"type": "message_output_item", "agent": "reader", "text": "Hello"},
    }
    assert serialize_stream_event(object()) == {"event_kind": "unknown"}


def test_summarize_tool_and_handoff_items():
    function_call = ToolCallItem(
        agent=AGENT,
        raw_item={"type": "function_call", "call_id": "c1", "name": "add", "arguments": "{}"},
    )
    web_search = ToolCallItem(agent=AGENT, raw_item={"type": "web_search_call", "status": "completed"})
    mcp_call = ToolCallItem(
        agent=AGENT, raw_item={"type": "mcp_call", "server_label": "docs", "name": "search"}
    )
    output = ToolCallOutputItem(
        agent=AGENT, raw_item=ItemHelpers.function_call_output("c1", "5"), output={"sum": 5}
    )
    handoff = HandoffOutputItem(
        agent=AGENT,
        raw_item=ItemHelpers.function_call_output("c2", '{"assistant": "writer"}'),
        source_agent=AGENT,
        target_agent=OTHER,
    )

    assert summarize_run_item(function_call) == {
        "type": "tool_call_item",
        "agent": "reader",
        "tool_call": "function",
        "function_name": "add",
    }
    assert summarize_run_item(web_search)["web_search_status"] == "completed"
    assert summarize_run_item(mcp_call)["server_label"] == "docs"
    assert summarize_run_item(output)["output"] == '{"sum": 5}'
    assert summarize_run_item(handoff) == {
        "type": "handoff_output_item",
        "agent": "reader",
        "source_agent": "reader",
        "target_agent": "writer",
    }
    assert summarize_run_item(approval_response("apr_1", True)) == {
        "type": "mcp_approval_response_item",
        "agent": "reader",
        "approval_request_id": "apr_1",
        "approve": True,
    }


def test_console_printer_lines():
    buffer = io.StringIO()
    printer = ConsolePrinter(console=Console(file=buffer, width=200, color_system=None))

    printer.on_run_started("files", "sess-1", "read [the] file", "run-1")
    printer.on_stream_event(AgentUpdatedStreamEvent(new_agent=AGENT))
    printer.on_stream_event(RawResponsesStreamEvent(data={"type": "response.created"}))
    printer.on_stream_event(run_item_event(approval_request()))
    printer.on_stream_event(run_item_event(approval_response("apr_1", False)))
    printer.on_run_completed({"answer": 42}, "reader")
    printer.on_run_failed(RuntimeError("bad [thing]"))

    output = buffer.getvalue()
    assert "user read [the] file" in output
    assert "-> agent reader" in output
    assert "response.created" not in output
    assert "approval requested apr_1 (files/read_file)" in output
    assert "approval apr_1 declined" in output
    assert 'reader: {"answer": 42}' in output
    assert "bad [thing]" in output


def test_verbose_console_printer_shows_raw_events():
    buffer = io.StringIO()
    printer = ConsolePrinter(verbose=True, console=Console(file=buffer, width=200, color_system=None))

    printer.on_stream_event(RawResponsesStreamEvent(data={"type": "response.created"}))

    assert "raw response.created" in buffer.getvalue()
