"""
Agent-layer exports.
"""

from .base import (
    Agent,
    AgentToolInput,
    FunctionToolResult,
    Handoff,
    HandoffInputData,
    HandoffInputFilter,
    InstructionProvider,
    StopAtTools,
    ToolsToFinalOutputFunction,
    ToolsToFinalOutputResult,
    ToolUseBehavior,
    tool_definitions,
)
from .errors import (
    AgentConfigurationError,
    AgentError,
    BackgroundTaskError,
    InputGuardrailTripwireError,
    MaxTurnsExceededError,
    ModelBehaviorError,
    OutputGuardrailTripwireError,
    RunErrorDetails,
    UnhandledRunItemError,
)
from .guardrails import (
    GuardrailFunctionOutput,
    InputGuardrail,
    InputGuardrailResult,
    OutputGuardrail,
    OutputGuardrailResult,
    input_guardrail,
    output_guardrail,
)
from .hooks import AgentHooks, RunHooks
from .items import (
    HandoffCallItem,
    HandoffOutputItem,
    ItemHelpers,
    MCPApprovalRequestItem,
    MCPApprovalResponseItem,
    MCPListToolsItem,
    MessageOutputItem,
    ReasoningItem,
    RunItem,
    ToolCallItem,
    ToolCallKind,
    ToolCallOutputItem,
    last_response_id,
    to_input_item,
    to_input_list,
)
from .output import AgentOutputSchema, AgentOutputSchemaBase

__all__ = [
    "Agent",
    "AgentConfigurationError",
    "AgentError",
    "AgentHooks",
    "AgentOutputSchema",
    "AgentOutputSchemaBase",
    "AgentToolInput",
    "BackgroundTaskError",
    "FunctionToolResult",
    "GuardrailFunctionOutput",
    "Handoff",
    "HandoffCallItem",
    "HandoffInputData",
    "HandoffInputFilter",
    "HandoffOutputItem",
    "InputGuardrail",
    "InputGuardrailResult",
    "InputGuardrailTripwireError",
    "InstructionProvider",
    "ItemHelpers",
    "MCPApprovalRequestItem",
    "MCPApprovalResponseItem",
    "MCPListToolsItem",
    "MaxTurnsExceededError",
    "MessageOutputItem",
    "ModelBehaviorError",
    "OutputGuardrail",
    "OutputGuardrailResult",
    "OutputGuardrailTripwireError",
    "ReasoningItem",
    "RunErrorDetails",
    "RunHooks",
    "RunItem",
    "StopAtTools",
    "ToolCallItem",
    "ToolCallKind",
    "ToolCallOutputItem",
    "ToolUseBehavior",
    "ToolsToFinalOutputFunction",
    "ToolsToFinalOutputResult",
    "UnhandledRunItemError",
    "input_guardrail",
    "last_response_id",
    "output_guardrail",
    "tool_definitions",
    "to_input_item",
    "to_input_list",
]
