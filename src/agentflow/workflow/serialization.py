from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module converts stream events and run items into JSON-safe payloads for callbacks.
"""

from typing import Any

from ..agents.items import (
    HandoffOutputItem,
    ItemHelpers,
    MCPApprovalRequestItem,
    MCPApprovalResponseItem,
    MessageOutputItem,
    RunItem,
    ToolCallItem,
    ToolCallOutputItem,
)
from ..core.stream_events import (
    AgentUpdatedStreamEvent,
    RawResponsesStreamEvent,
    RunItemStreamEvent,
    StreamEvent,
)
from ..tools.base import stringify_output


def serialize_stream_event(event: StreamEvent) -> dict[str, Any]:
    """Payload of a `run.event` callback."""
    if isinstance(event, RawResponsesStreamEvent):
        return {
            "event_kind": "raw",
            "type": str(event.data.get("type", "")),
            "data": event.data,
        }
    if isinstance(event, AgentUpdatedStreamEvent):
        return {"event_kind": "agent_updated", "agent_name": event.new_agent.name}
    if isinstance(event, RunItemStreamEvent):
        return {
            "event_kind": "run_item",
            "name": event.name,
            "item": summarize_run_item(event.item),
        }
    return {"event_kind": "unknown"}


def summarize_run_item(item: RunItem) -> dict[str, Any]:
    """
    Short description of a run item.

    Messages carry their text, tool calls their call kind and name (or
    hosted tool status), tool outputs their output and handoffs both agents.
    """
    summary: dict[str, Any] = {"type": item.type}
    if isinstance(item, MessageOutputItem):
        summary["agent"] = item.agent.name
        summary["text"] = ItemHelpers.extract_text(item.raw_item)
    elif isinstance(item, ToolCallItem):
        summary["agent"] = item.agent.name
        summary["tool_call"] = item.kind
        if item.kind == "function":
            summary["function_name"] = item.raw_item.get("name", "")
        elif item.kind == "web_search":
            summary["web_search_status"] = item.raw_item.get("status", "")
        elif item.kind == "file_search":
            summary["file_search_status"] = item.raw_item.get("status", "")
        elif item.kind == "mcp":
            summary["server_label"] = item.raw_item.get("server_label", "")
            summary["function_name"] = item.raw_item.get("name", "")
    elif isinstance(item, ToolCallOutputItem):
        summary["agent"] = item.agent.name
        summary["output"] = item.output if isinstance(item.output, str) else stringify_output(item.output)
    elif isinstance(item, HandoffOutputItem):
        summary["agent"] = item.agent.name
        summary["source_agent"] = item.source_agent.name
        summary["target_agent"] = item.target_agent.name
    elif isinstance(item, MCPApprovalRequestItem):
        summary["agent"] = item.agent.name
        summary["approval_request_id"] = item.approval_request_id
        summary["server_label"] = item.raw_item.get("server_label", "")
        summary["function_name"] = item.raw_item.get("name", "")
    elif isinstance(item, MCPApprovalResponseItem):
        summary["agent"] = item.agent.name
        summary["approval_request_id"] = item.raw_item.get("approval_request_id", "")
        summary["approve"] = bool(item.raw_item.get("approve"))
    return summary
