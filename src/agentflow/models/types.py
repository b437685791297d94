from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module defines provider-agnostic request/response types exchanged with models.
"""

import copy
from dataclasses import dataclass, field, fields, replace
from typing import Any, Literal, TypeAlias

JSONPrimitive: TypeAlias = str | int | float | bool | None
JSONValue: TypeAlias = JSONPrimitive | list["JSONValue"] | dict[str, "JSONValue"]
JSONObject: TypeAlias = dict[str, JSONValue]
JSONSchema: TypeAlias = dict[str, JSONValue]

# Items follow the Responses API shapes: {"type": "message", ...},
# {"type": "function_call", ...}, {"type": "function_call_output", ...}.
InputItem: TypeAlias = dict[str, Any]
OutputItem: TypeAlias = dict[str, Any]
ToolDefinition: TypeAlias = dict[str, Any]
ResponseStreamEvent: TypeAlias = dict[str, Any]

ToolChoice: TypeAlias = Literal["auto", "none", "required"] | str
Truncation: TypeAlias = Literal["auto", "disabled"]


@dataclass(frozen=True, slots=True)
class ReasoningSettings:
    effort: str | None = None
    summary: str | None = None


@dataclass(frozen=True, slots=True)
class ModelSettings:
    """
    Optional tuning parameters passed to a model call.

    `None` means "not set"; `resolve` overlays the set fields of another
    settings object on top of this one.
    """

    temperature: float | None = None
    top_p: float | None = None
    max_tokens: int | None = None
    tool_choice: ToolChoice | None = None
    parallel_tool_calls: bool | None = None
    truncation: Truncation | None = None
    reasoning: ReasoningSettings | None = None
    verbosity: Literal["low", "medium", "high"] | None = None
    metadata: dict[str, str] | None = None
    extra_headers: dict[str, str] | None = None
    extra_query: dict[str, str] | None = None
    extra_args: dict[str, Any] | None = None

    def resolve(self, override: ModelSettings | None) -> ModelSettings:
        """
        Merge `override` on top of these settings.

        Args:
            override: Settings whose non-`None` fields win.

        Returns:
            New merged settings.
        """
        if override is None:
            return self
        changes = {
            f.name: getattr(override, f.name)
            for f in fields(override)
            if getattr(override, f.name) is not None
        }
        return replace(self, **changes)


@dataclass(frozen=True, slots=True)
class Usage:
    requests: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0

    def add(self, other: Usage) -> Usage:
        return Usage(
            requests=self.requests + other.requests,
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )


@dataclass(frozen=True, slots=True)
class ModelRequest:
    """
    One normalized model call.

    Attributes:
        model: Model name requested by the agent or run config.
        system_instructions: Resolved agent instructions.
        input: Conversation items sent to the model.
        tools: Tool and handoff definitions the model may call.
        output_schema: JSON schema for structured output, if any.
        settings: Effective model settings.
        previous_response_id: Server-side conversation continuation id.
        prompt_id: Stored prompt identifier, if the agent uses one.
    """

    model: str | None
    system_instructions: str | None
    input: list[InputItem]
    tools: list[ToolDefinition] = field(default_factory=list)
    output_schema: JSONSchema | None = None
    settings: ModelSettings = field(default_factory=ModelSettings)
    previous_response_id: str | None = None
    prompt_id: str | None = None


@dataclass(frozen=True, slots=True)
class ModelResponse:
    """
    Output of one model call.

    Attributes:
        output: Output items in production order.
        usage: Token usage of the call.
        response_id: Provider response identifier; empty when unknown.
    """

    output: list[OutputItem] = field(default_factory=list)
    usage: Usage = field(default_factory=Usage)
    response_id: str = ""

    def to_input_items(self) -> list[InputItem]:
        return copy.deepcopy(self.output)


@dataclass(frozen=True, slots=True)
class StreamCompleted:
    """Terminal stream element carrying the aggregated response."""

    response: ModelResponse
