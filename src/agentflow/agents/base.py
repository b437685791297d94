"""
Agent definition, handoffs and tool-use behavior.
"""

from __future__ import annotations

import inspect
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Literal, Sequence, Union

from pydantic import BaseModel

from ..models.interface import Model
from ..models.types import InputItem, ModelSettings, ToolDefinition
from ..run_context import RunContext
from ..tools import AnyTool, Tool, ToolContext, ToolSpec
from .errors import AgentConfigurationError
from .guardrails import InputGuardrail, OutputGuardrail
from .hooks import AgentHooks
from .items import ItemHelpers, RunItem
from .output import AgentOutputSchema, AgentOutputSchemaBase

if TYPE_CHECKING:
    from ..core.result import RunResult
    from ..core.runner import RunConfig


InstructionProvider = Callable[[RunContext, "Agent"], Union[str, None, Awaitable[Union[str, None]]]]


@dataclass(frozen=True, slots=True)
class FunctionToolResult:
    """Outcome of one function tool call within a turn."""

    tool: Tool
    output: Any
    run_item: RunItem


@dataclass(frozen=True, slots=True)
class ToolsToFinalOutputResult:
    is_final_output: bool
    final_output: Any = None


@dataclass(frozen=True, slots=True)
class StopAtTools:
    """Stop the run when any of `tool_names` is called; its output becomes the final output."""

    tool_names: tuple[str, ...]


ToolsToFinalOutputFunction = Callable[
    [RunContext, list[FunctionToolResult]],
    Union[ToolsToFinalOutputResult, Awaitable[ToolsToFinalOutputResult]],
]

ToolUseBehavior = Union[
    Literal["run_llm_again", "stop_on_first_tool"],
    StopAtTools,
    ToolsToFinalOutputFunction,
]


@dataclass(frozen=True, slots=True)
class HandoffInputData:
    """
    Conversation handed to the next agent.

    Attributes:
        input_history: Run input as it was before the current turn.
        pre_handoff_items: Items generated before the turn that handed off.
        new_items: Items of the turn that handed off (the handoff call and output included).
    """

    input_history: tuple[InputItem, ...]
    pre_handoff_items: tuple[RunItem, ...]
    new_items: tuple[RunItem, ...]

    def to_input_list(self) -> list[InputItem]:
        items = [dict(item) for item in self.input_history]
        items.extend(item.to_input_item() for item in self.pre_handoff_items)
        items.extend(item.to_input_item() for item in self.new_items)
        return items


HandoffInputFilter = Callable[[HandoffInputData], HandoffInputData]


def _snake(name: str) -> str:
    value = re.sub(r"[^0-9a-zA-Z]+", "_", name.strip())
    value = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", value)
    return value.strip("_").lower()


class Handoff:
    """
    Handoff exposed to the model as a function tool named `transfer_to_<agent>`.
    """

    def __init__(
        self,
        agent: Agent,
        *,
        tool_name: str | None = None,
        tool_description: str | None = None,
        input_filter: HandoffInputFilter | None = None,
    ) -> None:
        self.agent = agent
        self.tool_name = tool_name or f"transfer_to_{_snake(agent.name)}"
        default_description = f"Handoff to the {agent.name} agent to handle the request."
        if agent.handoff_description:
            default_description = f"{default_description} {agent.handoff_description}"
        self.tool_description = tool_description or default_description
        self.input_filter = input_filter

    @property
    def agent_name(self) -> str:
        return self.agent.name

    def __repr__(self) -> str:
        return f"Handoff(tool_name={self.tool_name!r}, agent={self.agent.name!r})"

    def to_definition(self) -> ToolDefinition:
        return {
            "type": "function",
            "name": self.tool_name,
            "description": self.tool_description,
            "parameters": {"type": "object", "properties": {}, "additionalProperties": False},
            "strict": True,
        }

    def transfer_message(self) -> str:
        return f'{{"assistant": "{self.agent.name}"}}'


class AgentToolInput(BaseModel):
    input: str


class Agent:
    """
    Declarative agent configuration consumed by the runner.

    Execution happens in `Runner`; an agent only describes what the model
    sees (instructions, tools, handoffs, output type) and which checks and
    hooks apply.
    """

    def __init__(
        self,
        name: str,
        *,
        instructions: str | InstructionProvider | None = None,
        prompt_id: str | None = None,
        handoff_description: str | None = None,
        model: str | Model | None = None,
        model_settings: ModelSettings | None = None,
        tools: Sequence[AnyTool] | None = None,
        handoffs: Sequence[Agent | Handoff] | None = None,
        input_guardrails: Sequence[InputGuardrail] | None = None,
        output_guardrails: Sequence[OutputGuardrail] | None = None,
        output_type: type[Any] | AgentOutputSchemaBase | None = None,
        tool_use_behavior: ToolUseBehavior = "run_llm_again",
        hooks: AgentHooks | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize an agent definition.

        Args:
            name: Agent name, unique within a workflow.
            instructions: Static system prompt or a callable resolved per turn.
            prompt_id: Stored prompt identifier forwarded to the model.
            handoff_description: Text appended to handoff tool descriptions
                pointing at this agent.
            model: Model name resolved by the run's provider, or a `Model`.
            model_settings: Agent-level model settings.
            tools: Function, hosted, computer and local shell tools.
            handoffs: Agents (or configured `Handoff`s) this agent may hand off to.
            input_guardrails: Checks run on the run input when this agent starts the run.
            output_guardrails: Checks run on this agent's final output.
            output_type: Python type or schema for structured output;
                `None` means plain text.
            tool_use_behavior: How tool results turn into a final output.
            hooks: Agent-scoped lifecycle hooks.
            metadata: Free-form annotations.

        Raises:
            AgentConfigurationError: If `name` is empty or `tool_use_behavior`
                has an unsupported value.
        """
        if not name or not name.strip():
            raise AgentConfigurationError("agent name must not be empty")
        self.name = name
        self.instructions = instructions
        self.prompt_id = prompt_id
        self.handoff_description = handoff_description
        self.model = model
        self.model_settings = model_settings or ModelSettings()
        self.tools: list[AnyTool] = list(tools or [])
        self.handoffs: list[Agent | Handoff] = list(handoffs or [])
        self.input_guardrails = list(input_guardrails or [])
        self.output_guardrails = list(output_guardrails or [])
        self.output_type = output_type
        self.tool_use_behavior = tool_use_behavior
        self.hooks = hooks
        self.metadata = dict(metadata or {})

        if isinstance(tool_use_behavior, str) and tool_use_behavior not in (
            "run_llm_again",
            "stop_on_first_tool",
        ):
            raise AgentConfigurationError(
                f"tool_use_behavior must be run_llm_again, stop_on_first_tool, "
                f"StopAtTools or a callable, got {tool_use_behavior!r}"
            )

    def __repr__(self) -> str:
        return f"Agent(name={self.name!r})"

    def clone(self, **changes: Any) -> Agent:
        """Return a shallow copy with `changes` applied as constructor arguments."""
        params = {
            "instructions": self.instructions,
            "prompt_id": self.prompt_id,
            "handoff_description": self.handoff_description,
            "model": self.model,
            "model_settings": self.model_settings,
            "tools": self.tools,
            "handoffs": self.handoffs,
            "input_guardrails": self.input_guardrails,
            "output_guardrails": self.output_guardrails,
            "output_type": self.output_type,
            "tool_use_behavior": self.tool_use_behavior,
            "hooks": self.hooks,
            "metadata": self.metadata,
        }
        name = changes.pop("name", self.name)
        params.update(changes)
        return Agent(name, **params)

    def add_tool(self, tool: AnyTool) -> Agent:
        self.tools.append(tool)
        return self

    def add_handoff(self, handoff: Agent | Handoff) -> Agent:
        self.handoffs.append(handoff)
        return self

    @property
    def output_schema(self) -> AgentOutputSchemaBase | None:
        if self.output_type is None or self.output_type is str:
            return None
        if isinstance(self.output_type, AgentOutputSchemaBase):
            return self.output_type
        return AgentOutputSchema(self.output_type)

    def get_handoffs(self) -> list[Handoff]:
        """
        Normalize declared handoffs.

        Raises:
            AgentConfigurationError: If two handoffs share a tool name.
        """
        resolved: list[Handoff] = []
        seen: set[str] = set()
        for entry in self.handoffs:
            handoff = entry if isinstance(entry, Handoff) else Handoff(entry)
            if handoff.tool_name in seen:
                raise AgentConfigurationError(
                    f"agent {self.name!r} declares duplicate handoff {handoff.tool_name!r}"
                )
            seen.add(handoff.tool_name)
            resolved.append(handoff)
        return resolved

    async def resolve_instructions(self, context: RunContext) -> str | None:
        """
        Resolve the system prompt for one turn.

        Args:
            context: Live run context passed to callable instructions.

        Returns:
            Instruction text, or `None` when empty.
        """
        value: Any = self.instructions
        if callable(value):
            value = value(context, self)
            if inspect.isawaitable(value):
                value = await value
        if value is None:
            return None
        if not isinstance(value, str):
            raise AgentConfigurationError(
                f"instructions of agent {self.name!r} must resolve to a string"
            )
        return value.strip() or None

    def as_tool(
        self,
        *,
        tool_name: str | None = None,
        tool_description: str | None = None,
        custom_output_extractor: Callable[[RunResult], Any] | None = None,
        run_config: RunConfig | None = None,
    ) -> Tool:
        """
        Expose this agent as a function tool running a nested run.

        Args:
            tool_name: Tool name; defaults to the snake-cased agent name.
            tool_description: Tool description; defaults to the handoff description.
            custom_output_extractor: Maps the nested `RunResult` to the tool
                output; defaults to the nested final output.
            run_config: Config of the nested run.
        """
        agent = self

        async def run_agent(args: AgentToolInput, ctx: ToolContext) -> Any:
            from ..core.runner import Runner

            result = await Runner(run_config).run(
                agent, args.input, context=ctx.run_context.context
            )
            if custom_output_extractor is not None:
                output = custom_output_extractor(result)
                if inspect.isawaitable(output):
                    output = await output
                return output
            if result.final_output is not None:
                return result.final_output
            return ItemHelpers.text_message_outputs(result.new_items)

        name = tool_name or _snake(self.name)
        spec = ToolSpec(
            name=name,
            description=tool_description or self.handoff_description or f"Run the {self.name} agent.",
            parameters_schema=AgentToolInput.model_json_schema(),
        )
        return Tool(spec=spec, fn=run_agent, args_model=AgentToolInput)


def tool_definitions(agent: Agent) -> list[ToolDefinition]:
    """Definitions of every tool and handoff the model may call for `agent`."""
    definitions = [tool.to_definition() for tool in agent.tools]
    definitions.extend(handoff.to_definition() for handoff in agent.get_handoffs())
    return definitions
