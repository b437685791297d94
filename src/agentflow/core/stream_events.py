"""
Events delivered to the consumer of a streamed run.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, TypeAlias, Union

from ..agents.base import Agent
from ..agents.items import RunItem
from ..models.types import ResponseStreamEvent

RunItemEventName: TypeAlias = Literal[
    "message_output_created",
    "handoff_requested",
    "handoff_occurred",
    "tool_called",
    "tool_output",
    "reasoning_item_created",
    "mcp_approval_requested",
    "mcp_approval_response",
    "mcp_list_tools",
]


@dataclass(frozen=True, slots=True)
class RawResponsesStreamEvent:
    """Raw provider-level event, passed through as produced by the model."""

    data: ResponseStreamEvent
    type: Literal["raw_response_event"] = "raw_response_event"


@dataclass(frozen=True, slots=True)
class RunItemStreamEvent:
    """A fully-formed run item was produced."""

    name: RunItemEventName
    item: RunItem
    type: Literal["run_item_stream_event"] = "run_item_stream_event"


@dataclass(frozen=True, slots=True)
class AgentUpdatedStreamEvent:
    """The active agent changed (run start or handoff)."""

    new_agent: Agent
    type: Literal["agent_updated_stream_event"] = "agent_updated_stream_event"


StreamEvent: TypeAlias = Union[
    RawResponsesStreamEvent, RunItemStreamEvent, AgentUpdatedStreamEvent
]

_EVENT_NAMES: dict[str, RunItemEventName] = {
    "message_output_item": "message_output_created",
    "handoff_call_item": "handoff_requested",
    "handoff_output_item": "handoff_occurred",
    "tool_call_item": "tool_called",
    "tool_call_output_item": "tool_output",
    "reasoning_item": "reasoning_item_created",
    "mcp_approval_request_item": "mcp_approval_requested",
    "mcp_approval_response_item": "mcp_approval_response",
    "mcp_list_tools_item": "mcp_list_tools",
}


def run_item_event(item: RunItem) -> RunItemStreamEvent:
    """Wrap `item` in the stream event named after its variant."""
    return RunItemStreamEvent(name=_EVENT_NAMES[item.type], item=item)
