"""
Run items: the units of model-produced and tool-produced output of a run.

Every variant keeps the raw Responses-shaped item it was built from and
converts to exactly one normalized input item, so a run's new items can be
appended to its original input to form the next call's input.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Iterable, Literal, Sequence, TypeAlias

from ..models.types import InputItem, ModelResponse
from .errors import UnhandledRunItemError

if TYPE_CHECKING:
    from .base import Agent


ToolCallKind: TypeAlias = Literal[
    "function",
    "computer",
    "local_shell",
    "file_search",
    "web_search",
    "code_interpreter",
    "image_generation",
    "mcp",
]

TOOL_CALL_KINDS: dict[str, ToolCallKind] = {
    "function_call": "function",
    "computer_call": "computer",
    "local_shell_call": "local_shell",
    "file_search_call": "file_search",
    "web_search_call": "web_search",
    "code_interpreter_call": "code_interpreter",
    "image_generation_call": "image_generation",
    "mcp_call": "mcp",
}

TOOL_OUTPUT_KINDS: dict[str, ToolCallKind] = {
    "function_call_output": "function",
    "computer_call_output": "computer",
    "local_shell_call_output": "local_shell",
}


@dataclass(frozen=True, slots=True)
class MessageOutputItem:
    """A message from the model."""

    agent: Agent
    raw_item: dict[str, Any]
    type: Literal["message_output_item"] = "message_output_item"

    def to_input_item(self) -> InputItem:
        return copy.deepcopy(self.raw_item)


@dataclass(frozen=True, slots=True)
class HandoffCallItem:
    """A tool call requesting a handoff to another agent."""

    agent: Agent
    raw_item: dict[str, Any]
    type: Literal["handoff_call_item"] = "handoff_call_item"

    def to_input_item(self) -> InputItem:
        return copy.deepcopy(self.raw_item)


@dataclass(frozen=True, slots=True)
class HandoffOutputItem:
    """The output of a handoff: control moved from `source_agent` to `target_agent`."""

    agent: Agent
    raw_item: dict[str, Any]
    source_agent: Agent
    target_agent: Agent
    type: Literal["handoff_output_item"] = "handoff_output_item"

    def to_input_item(self) -> InputItem:
        return copy.deepcopy(self.raw_item)


@dataclass(frozen=True, slots=True)
class ToolCallItem:
    """A tool call of any kind (function, computer action, hosted tool, ...)."""

    agent: Agent
    raw_item: dict[str, Any]
    type: Literal["tool_call_item"] = "tool_call_item"

    def __post_init__(self) -> None:
        if self.raw_item.get("type") not in TOOL_CALL_KINDS:
            raise UnhandledRunItemError(
                f"unknown tool call type {self.raw_item.get('type')!r}"
            )

    @property
    def kind(self) -> ToolCallKind:
        return TOOL_CALL_KINDS[self.raw_item["type"]]

    def to_input_item(self) -> InputItem:
        return copy.deepcopy(self.raw_item)


@dataclass(frozen=True, slots=True)
class ToolCallOutputItem:
    """The output of a locally executed tool call."""

    agent: Agent
    raw_item: dict[str, Any]
    output: Any
    type: Literal["tool_call_output_item"] = "tool_call_output_item"

    def __post_init__(self) -> None:
        if self.raw_item.get("type") not in TOOL_OUTPUT_KINDS:
            raise UnhandledRunItemError(
                f"unknown tool output type {self.raw_item.get('type')!r}"
            )

    @property
    def kind(self) -> ToolCallKind:
        return TOOL_OUTPUT_KINDS[self.raw_item["type"]]

    def to_input_item(self) -> InputItem:
        return copy.deepcopy(self.raw_item)


@dataclass(frozen=True, slots=True)
class ReasoningItem:
    agent: Agent
    raw_item: dict[str, Any]
    type: Literal["reasoning_item"] = "reasoning_item"

    def to_input_item(self) -> InputItem:
        return copy.deepcopy(self.raw_item)


@dataclass(frozen=True, slots=True)
class MCPListToolsItem:
    """Tools listed by a hosted MCP server."""

    agent: Agent
    raw_item: dict[str, Any]
    type: Literal["mcp_list_tools_item"] = "mcp_list_tools_item"

    def to_input_item(self) -> InputItem:
        return copy.deepcopy(self.raw_item)


@dataclass(frozen=True, slots=True)
class MCPApprovalRequestItem:
    """A hosted MCP server asking for approval before running a tool."""

    agent: Agent
    raw_item: dict[str, Any]
    type: Literal["mcp_approval_request_item"] = "mcp_approval_request_item"

    @property
    def approval_request_id(self) -> str:
        return str(self.raw_item.get("id", ""))

    def to_input_item(self) -> InputItem:
        return copy.deepcopy(self.raw_item)


@dataclass(frozen=True, slots=True)
class MCPApprovalResponseItem:
    """The decision sent back for an MCP approval request."""

    agent: Agent
    raw_item: dict[str, Any]
    type: Literal["mcp_approval_response_item"] = "mcp_approval_response_item"

    def to_input_item(self) -> InputItem:
        return copy.deepcopy(self.raw_item)


RunItem: TypeAlias = (
    MessageOutputItem
    | HandoffCallItem
    | HandoffOutputItem
    | ToolCallItem
    | ToolCallOutputItem
    | ReasoningItem
    | MCPListToolsItem
    | MCPApprovalRequestItem
    | MCPApprovalResponseItem
)

RUN_ITEM_TYPES: tuple[type, ...] = (
    MessageOutputItem,
    HandoffCallItem,
    HandoffOutputItem,
    ToolCallItem,
    ToolCallOutputItem,
    ReasoningItem,
    MCPListToolsItem,
    MCPApprovalRequestItem,
    MCPApprovalResponseItem,
)


def to_input_item(item: RunItem) -> InputItem:
    """
    Normalize one run item into its input-item form.

    Raises:
        UnhandledRunItemError: If `item` is not a known run item variant.
    """
    if not isinstance(item, RUN_ITEM_TYPES):
        raise UnhandledRunItemError(f"unhandled run item {type(item).__name__}")
    return item.to_input_item()


def to_input_list(
    original_input: str | Sequence[InputItem], new_items: Iterable[RunItem]
) -> list[InputItem]:
    """
    Concatenate the original input with the normalized form of every new item.

    The result is a fresh list on every call; neither argument is mutated.
    """
    merged = ItemHelpers.input_to_new_input_list(original_input)
    merged.extend(to_input_item(item) for item in new_items)
    return merged


def last_response_id(raw_responses: Sequence[ModelResponse]) -> str:
    """Return the id of the last response, or an empty string when there is none."""
    if not raw_responses:
        return ""
    return raw_responses[-1].response_id


class ItemHelpers:
    @classmethod
    def input_to_new_input_list(cls, value: str | Sequence[InputItem]) -> list[InputItem]:
        """Convert a string or item list into a new list of input items."""
        if isinstance(value, str):
            return [{"role": "user", "content": value}]
        return copy.deepcopy(list(value))

    @classmethod
    def extract_text(cls, message: dict[str, Any]) -> str:
        """Concatenate the `output_text` parts of a raw output message."""
        content = message.get("content")
        if isinstance(content, str):
            return content
        if not isinstance(content, list):
            return ""
        return "".join(
            part.get("text", "")
            for part in content
            if isinstance(part, dict) and part.get("type") == "output_text"
        )

    @classmethod
    def extract_refusal(cls, message: dict[str, Any]) -> str | None:
        content = message.get("content")
        if not isinstance(content, list):
            return None
        for part in content:
            if isinstance(part, dict) and part.get("type") == "refusal":
                return str(part.get("refusal", ""))
        return None

    @classmethod
    def text_message_output(cls, item: MessageOutputItem) -> str:
        return cls.extract_text(item.raw_item)

    @classmethod
    def text_message_outputs(cls, items: Iterable[RunItem]) -> str:
        """Concatenate the text of every message output item."""
        return "".join(
            cls.text_message_output(item)
            for item in items
            if isinstance(item, MessageOutputItem)
        )

    @classmethod
    def assistant_message(cls, text: str, *, message_id: str = "") -> dict[str, Any]:
        """Build a raw completed assistant message with one text part."""
        return {
            "type": "message",
            "id": message_id,
            "role": "assistant",
            "status": "completed",
            "content": [{"type": "output_text", "text": text, "annotations": []}],
        }

    @classmethod
    def function_call_output(cls, call_id: str, output: str) -> dict[str, Any]:
        return {"type": "function_call_output", "call_id": call_id, "output": output}
