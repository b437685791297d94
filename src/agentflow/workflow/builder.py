from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module turns a validated workflow manifest into runnable agents.

`WorkflowBuilder` holds the registries a manifest refers to by name (tool
factories, function tools, guardrail presets, hooks, output types, session
stores, model providers) and builds the agent graph in two passes: first
every agent, then handoffs and tools, which may reference any agent.
"""

import asyncio
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from jinja2 import Environment, StrictUndefined, TemplateError

from ..agents.base import (
    Agent,
    Handoff,
    HandoffInputData,
    HandoffInputFilter,
    StopAtTools,
    ToolsToFinalOutputFunction,
    ToolUseBehavior,
)
from ..agents.hooks import AgentHooks, RunHooks
from ..agents.items import (
    HandoffCallItem,
    HandoffOutputItem,
    RunItem,
    ToolCallItem,
    ToolCallOutputItem,
)
from ..agents.output import AgentOutputSchemaBase
from ..config import AgentflowConfig
from ..core.result import RunResult
from ..core.runner import RunConfig, Runner
from ..core.telemetry import NullTelemetrySink, TelemetrySink
from ..models.interface import ModelProvider
from ..models.types import JSONValue, ModelSettings, ReasoningSettings
from ..sessions.base import Session
from ..sessions.factory import create_session
from ..tools import (
    AnyTool,
    CodeInterpreterTool,
    Computer,
    ComputerTool,
    FileSearchTool,
    HostedMCPTool,
    ImageGenerationTool,
    LocalShellExecutor,
    LocalShellTool,
    MCPToolApprovalRequest,
    MCPToolApprovalResult,
    Tool,
    WebSearchTool,
)
from ..tools.hosted import MCPApprovalFunction
from .errors import WorkflowBuildError
from .guardrails import (
    DEFAULT_INPUT_GUARDRAILS,
    DEFAULT_OUTPUT_GUARDRAILS,
    InputGuardrailFactory,
    OutputGuardrailFactory,
)
from .hooks import combine_agent_hooks, combine_run_hooks, unique_non_empty
from .output_types import DEFAULT_OUTPUT_TYPES, InlineSchemaOutputType, OutputTypeFactory
from .types import (
    PERSISTENT_STORES,
    AgentDeclaration,
    InstructionTemplate,
    ModelDeclaration,
    OutputTypeDeclaration,
    SessionDeclaration,
    ToolDeclaration,
    ToolUseBehaviorDeclaration,
    WorkflowRequest,
)
from .validator import validate_workflow_request

logger = logging.getLogger("agentflow.workflow.builder")

MOCK_APPROVAL_ENV = "AGENTFLOW_MOCK_APPROVAL"


@dataclass(frozen=True, slots=True)
class ToolFactoryEnv:
    """Where a tool is being built: owning agent, workflow and request metadata."""

    agent_name: str
    workflow_name: str
    request_metadata: dict[str, Any] = field(default_factory=dict)


ToolFactory = Callable[[ToolDeclaration, ToolFactoryEnv], AnyTool]
FunctionToolFactory = Callable[[ToolDeclaration, ToolFactoryEnv], Tool]
ComputerToolFactory = Callable[[ToolDeclaration, ToolFactoryEnv], ComputerTool]
SessionFactory = Callable[[SessionDeclaration], Session]
AgentToolExtractor = Callable[[RunResult], Any]


@dataclass(slots=True)
class BuildResult:
    """
    Everything needed to execute a manifest.

    Attributes:
        starting_agent: Agent that takes the first turn.
        agents: Agents keyed by their manifest name.
        runner: Runner configured for the workflow.
        session: Conversation session, or `None` when the request carries inputs.
        workflow_name: Manifest workflow name.
        trace_metadata: Metadata attached to the run's telemetry.
    """

    starting_agent: Agent
    agents: dict[str, Agent]
    runner: Runner
    session: Session | None
    workflow_name: str
    trace_metadata: dict[str, JSONValue]


def remove_tool_calls(data: HandoffInputData) -> HandoffInputData:
    """Handoff filter dropping tool calls, tool outputs and handoff items from the conversation."""

    def keep(item: RunItem) -> bool:
        return not isinstance(
            item, (HandoffCallItem, HandoffOutputItem, ToolCallItem, ToolCallOutputItem)
        )

    tool_types = {
        "function_call",
        "function_call_output",
        "computer_call",
        "computer_call_output",
        "local_shell_call",
        "local_shell_call_output",
        "file_search_call",
        "web_search_call",
        "code_interpreter_call",
        "image_generation_call",
        "mcp_call",
    }
    return HandoffInputData(
        input_history=tuple(
            item for item in data.input_history if item.get("type") not in tool_types
        ),
        pre_handoff_items=tuple(item for item in data.pre_handoff_items if keep(item)),
        new_items=tuple(item for item in data.new_items if keep(item)),
    )


def _as_json_value(value: Any) -> JSONValue:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, Mapping):
        return {str(key): _as_json_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_as_json_value(item) for item in value]
    return str(value)


def compose_trace_metadata(request: WorkflowRequest) -> dict[str, JSONValue]:
    """Telemetry metadata of a run: manifest metadata plus workflow and session identity."""
    metadata: dict[str, JSONValue] = {}
    for key, value in request.workflow.metadata.items():
        metadata[str(key)] = _as_json_value(value)
    for key, value in request.metadata.items():
        metadata[str(key)] = _as_json_value(value)
    metadata.update(
        {
            "workflow_name": request.workflow.name,
            "starting_agent": request.workflow.starting_agent,
            "session_id": request.session.session_id,
            "user_id": request.session.credentials.user_id,
            "account_id": request.session.credentials.account_id,
        }
    )
    return metadata


def template_data(request: WorkflowRequest, decl: AgentDeclaration) -> dict[str, Any]:
    """Data available to instruction templates."""
    session = request.session
    workflow = request.workflow
    return {
        "context": request.context,
        "metadata": request.metadata,
        "agent": {
            "name": decl.name,
            "display_name": decl.display_name,
            "annotations": decl.annotations,
            "handoff_names": decl.handoff_names(),
        },
        "workflow": {
            "name": workflow.name,
            "starting_agent": workflow.starting_agent,
            "metadata": workflow.metadata,
            "on_start": workflow.on_start,
            "on_finish": workflow.on_finish,
            "on_error": workflow.on_error,
            "agent_names": workflow.agent_names(),
        },
        "session": {
            "id": session.session_id,
            "resume_token": session.resume_token,
            "persistent_store": session.persistent_store,
            "history_size": session.history_size,
            "max_turns": session.max_turns,
            "credentials": session.credentials.model_dump(),
        },
        "request": {
            "query": request.query,
            "inputs": [item.model_dump() for item in request.inputs],
        },
    }


def render_template(template: InstructionTemplate, data: dict[str, Any]) -> str:
    """
    Render instruction text with jinja2.

    Raises:
        WorkflowBuildError: For unsupported formats, syntax errors and undefined variables.
    """
    template_format = template.format.strip().lower()
    if template_format not in ("", "jinja2", "gotemplate"):
        raise WorkflowBuildError(f"template format {template.format!r} not supported")
    left, right = template.delimiters or ("", "")
    env = Environment(
        undefined=StrictUndefined,
        autoescape=False,
        variable_start_string=left or "{{",
        variable_end_string=right or "}}",
    )
    try:
        parsed = env.from_string(template.template)
    except TemplateError as e:
        raise WorkflowBuildError(f"parse template: {e}") from e
    try:
        return parsed.render({**data, **template.variables})
    except TemplateError as e:
        raise WorkflowBuildError(f"execute template: {e}") from e


def model_settings_from_declaration(decl: ModelDeclaration) -> ModelSettings:
    """
    Translate a model declaration into `ModelSettings`.

    Raises:
        WorkflowBuildError: For unsupported verbosity or truncation values.
    """
    verbosity = decl.verbosity.strip().lower() or None
    if verbosity is not None and verbosity not in ("low", "medium", "high"):
        raise WorkflowBuildError(f"unsupported verbosity {decl.verbosity!r}")
    truncation = decl.truncation.strip().lower() or None
    if truncation is not None and truncation not in ("auto", "disabled"):
        raise WorkflowBuildError(f"unsupported truncation {decl.truncation!r}")

    reasoning = None
    extra_args: dict[str, Any] | None = None
    if decl.reasoning is not None:
        reasoning = ReasoningSettings(
            effort=decl.reasoning.effort.strip().lower() or None,
            summary=decl.reasoning.summary.strip().lower() or None,
        )
        if decl.reasoning.tokens > 0:
            extra_args = {"reasoning_tokens": decl.reasoning.tokens}

    return ModelSettings(
        temperature=decl.temperature,
        top_p=decl.top_p,
        max_tokens=decl.max_tokens,
        tool_choice=decl.tool_choice.strip() or None,
        parallel_tool_calls=decl.parallel_tool_calls,
        truncation=truncation,
        reasoning=reasoning,
        verbosity=verbosity,
        metadata=decl.metadata,
        extra_headers=decl.extra_headers,
        extra_query=decl.extra_query,
        extra_args=extra_args,
    )


async def prompt_for_approval(request: MCPToolApprovalRequest) -> MCPToolApprovalResult:
    """
    Ask on the terminal whether an MCP call may proceed.

    `AGENTFLOW_MOCK_APPROVAL=auto_approve` approves without asking; an
    answer other than `y`/`yes` (or end of input) declines.
    """
    if os.getenv(MOCK_APPROVAL_ENV, "").strip().lower() == "auto_approve":
        return MCPToolApprovalResult(approve=True)
    data = request.data
    prompt = (
        f"\nApproval required for request {data.get('id')} on tool {data.get('name')} "
        f"({data.get('server_label')})\nArguments: {data.get('arguments')}\nApprove? [y/N]: "
    )
    try:
        answer = await asyncio.to_thread(input, prompt)
    except EOFError:
        answer = ""
    if answer.strip().lower() in ("y", "yes"):
        return MCPToolApprovalResult(approve=True)
    return MCPToolApprovalResult(approve=False, reason="User declined approval")


class WorkflowBuilder:
    """
    Builds agents, run configuration and session from a manifest.

    Registries are plain dicts filled through the fluent `with_*` methods;
    `new_default_builder()` returns a builder with the built-in presets.
    """

    def __init__(
        self,
        *,
        config: AgentflowConfig | None = None,
        model_provider: ModelProvider | None = None,
        telemetry: TelemetrySink | None = None,
    ) -> None:
        self.config = config or AgentflowConfig()
        self.model_provider = model_provider
        self.telemetry: TelemetrySink = telemetry or NullTelemetrySink()
        self.default_session_store = self.config.session_store
        self.tool_factories: dict[str, ToolFactory] = {}
        self.function_tools: dict[str, FunctionToolFactory] = {}
        self.computer_tools: dict[str, ComputerToolFactory] = {}
        self.local_shell_executors: dict[str, LocalShellExecutor] = {}
        self.approval_handlers: dict[str, MCPApprovalFunction] = {}
        self.output_types: dict[str, OutputTypeFactory] = {}
        self.session_factories: dict[str, SessionFactory] = {}
        self.input_guardrails: dict[str, InputGuardrailFactory] = {}
        self.output_guardrails: dict[str, OutputGuardrailFactory] = {}
        self.agent_hooks: dict[str, AgentHooks] = {}
        self.run_hooks: dict[str, RunHooks] = {}
        self.agent_tool_extractors: dict[str, AgentToolExtractor] = {}
        self.tool_use_handlers: dict[str, ToolsToFinalOutputFunction] = {}
        self.handoff_filters: dict[str, HandoffInputFilter] = {}
        self.model_providers: dict[str, ModelProvider] = {}

    # Registries

    def with_tool_factory(self, tool_type: str, factory: ToolFactory) -> WorkflowBuilder:
        self.tool_factories[tool_type.strip().lower()] = factory
        return self

    def with_function_tool(
        self, name: str, tool: Tool | FunctionToolFactory
    ) -> WorkflowBuilder:
        """Register a function tool (or a factory building one) under `name`."""
        if isinstance(tool, Tool):
            fixed = tool
            self.function_tools[name] = lambda decl, env: fixed
        else:
            self.function_tools[name] = tool
        return self

    def with_computer_tool(
        self, name: str, computer: Computer | ComputerToolFactory
    ) -> WorkflowBuilder:
        if isinstance(computer, Computer):
            fixed = computer
            self.computer_tools[name] = lambda decl, env: ComputerTool(computer=fixed)
        else:
            self.computer_tools[name] = computer
        return self

    def with_local_shell_executor(self, name: str, executor: LocalShellExecutor) -> WorkflowBuilder:
        self.local_shell_executors[name] = executor
        return self

    def with_hosted_mcp_tool(self, name: str, factory: ToolFactory) -> WorkflowBuilder:
        """Register a hosted MCP preset usable as a tool `type`."""
        return self.with_tool_factory(name, factory)

    def with_approval_handler(self, name: str, handler: MCPApprovalFunction) -> WorkflowBuilder:
        self.approval_handlers[name] = handler
        return self

    def with_output_type(self, name: str, factory: OutputTypeFactory) -> WorkflowBuilder:
        self.output_types[name] = factory
        return self

    def with_session_factory(self, store: str, factory: SessionFactory) -> WorkflowBuilder:
        self.session_factories[store.strip().lower()] = factory
        return self

    def with_input_guardrail(self, name: str, factory: InputGuardrailFactory) -> WorkflowBuilder:
        self.input_guardrails[name.strip().lower()] = factory
        return self

    def with_output_guardrail(self, name: str, factory: OutputGuardrailFactory) -> WorkflowBuilder:
        self.output_guardrails[name.strip().lower()] = factory
        return self

    def with_agent_hooks(self, name: str, hooks: AgentHooks) -> WorkflowBuilder:
        self.agent_hooks[name] = hooks
        return self

    def with_run_hooks(self, name: str, hooks: RunHooks) -> WorkflowBuilder:
        self.run_hooks[name] = hooks
        return self

    def with_agent_tool_extractor(self, name: str, extractor: AgentToolExtractor) -> WorkflowBuilder:
        self.agent_tool_extractors[name] = extractor
        return self

    def with_tool_use_handler(
        self, name: str, handler: ToolsToFinalOutputFunction
    ) -> WorkflowBuilder:
        """Register a handler referenced by `tool_use_behavior: {mode: custom, handler: ...}`."""
        self.tool_use_handlers[name] = handler
        return self

    def with_handoff_filter(self, name: str, input_filter: HandoffInputFilter) -> WorkflowBuilder:
        self.handoff_filters[name] = input_filter
        return self

    def with_model_provider(self, name: str, provider: ModelProvider) -> WorkflowBuilder:
        """Register a provider selected by `model.provider`; the first one also becomes the default."""
        self.model_providers[name.strip().lower()] = provider
        if self.model_provider is None:
            self.model_provider = provider
        return self

    # Build

    async def build(self, request: WorkflowRequest) -> BuildResult:
        """
        Validate `request` and build its agents, runner and session.

        A session is attached only when the request has no structured
        inputs; inputs describe the whole conversation themselves.

        Raises:
            WorkflowValidationError: If the manifest is invalid.
            WorkflowBuildError: If it references something not registered here.
        """
        validate_workflow_request(request)
        workflow = request.workflow

        session: Session | None = None
        if not request.inputs:
            session = self._create_session(request.session)

        nested_config = RunConfig(
            model_provider=self.model_provider,
            max_turns=self.config.max_turns,
            workflow_name=f"{workflow.name} (agent tool)",
            telemetry=self.telemetry,
        )

        agents: dict[str, Agent] = {}
        for decl in workflow.agents:
            try:
                agents[decl.name] = self._build_agent(request, decl)
            except WorkflowBuildError as e:
                raise WorkflowBuildError(f"agent {decl.name!r}: {e}") from e

        # Second pass: handoffs and tools may reference any agent.
        for decl in workflow.agents:
            agent = agents[decl.name]
            env = ToolFactoryEnv(
                agent_name=decl.name,
                workflow_name=workflow.name,
                request_metadata=dict(request.metadata),
            )
            try:
                self._attach_handoffs(agent, decl, agents)
                self._attach_agent_tools(agent, decl, agents, nested_config)
                for tool_decl in [
                    *decl.tools,
                    *(server.to_tool_declaration() for server in decl.mcp_servers),
                ]:
                    agent.add_tool(self._build_tool(tool_decl, env))
            except WorkflowBuildError as e:
                raise WorkflowBuildError(f"agent {decl.name!r}: {e}") from e

        run_hooks: list[RunHooks] = []
        for name in unique_non_empty(workflow.run_hook_names()):
            hook = self.run_hooks.get(name)
            if hook is None:
                raise WorkflowBuildError(f"workflow {workflow.name!r} hooks: run hook {name!r} not registered")
            run_hooks.append(hook)

        trace_metadata = compose_trace_metadata(request)
        history_limit = None
        if session is not None and request.session.history_size > 0:
            history_limit = request.session.history_size
        run_config = RunConfig(
            model_provider=self.model_provider,
            max_turns=request.session.max_turns or self.config.max_turns,
            hooks=combine_run_hooks(run_hooks),
            session=session,
            session_history_limit=history_limit,
            workflow_name=workflow.name,
            group_id=request.session.session_id or None,
            trace_metadata=dict(trace_metadata),
            telemetry=self.telemetry,
        )
        logger.debug(
            "built workflow %s with %d agent(s), starting at %s",
            workflow.name,
            len(agents),
            workflow.starting_agent,
        )
        return BuildResult(
            starting_agent=agents[workflow.starting_agent],
            agents=agents,
            runner=Runner(run_config),
            session=session,
            workflow_name=workflow.name,
            trace_metadata=trace_metadata,
        )

    def _create_session(self, decl: SessionDeclaration) -> Session:
        store = decl.persistent_store.strip().lower() or self.default_session_store
        factory = self.session_factories.get(store)
        if factory is None:
            raise WorkflowBuildError(f"persistent_store {store!r} not registered")
        try:
            return factory(decl)
        except ValueError as e:
            raise WorkflowBuildError(f"create session: {e}") from e

    def _build_agent(self, request: WorkflowRequest, decl: AgentDeclaration) -> Agent:
        instructions: str | None = None
        if not decl.instructions.is_empty():
            if decl.instructions.template is not None:
                try:
                    text = render_template(
                        decl.instructions.template, template_data(request, decl)
                    )
                except WorkflowBuildError as e:
                    raise WorkflowBuildError(f"instructions: {e}") from e
            else:
                text = decl.instructions.text
            instructions = text if text.strip() else None

        model: Any = None
        settings: ModelSettings | None = None
        if decl.model is not None:
            model = self._resolve_model(decl.model)
            settings = model_settings_from_declaration(decl.model)

        output_type = None
        if decl.output_type is not None:
            output_type = self._build_output_type(decl.output_type)

        input_guardrails = []
        for guardrail in decl.input_guardrails:
            factory = self.input_guardrails.get(guardrail.name.strip().lower())
            if factory is None:
                raise WorkflowBuildError(f"input guardrail {guardrail.name!r} not registered")
            input_guardrails.append(factory(guardrail))

        output_guardrails = []
        for guardrail in decl.output_guardrails:
            factory = self.output_guardrails.get(guardrail.name.strip().lower())
            if factory is None:
                raise WorkflowBuildError(f"output guardrail {guardrail.name!r} not registered")
            output_guardrails.append(factory(guardrail))

        agent_hooks: list[AgentHooks] = []
        for name in unique_non_empty(decl.hooks):
            hook = self.agent_hooks.get(name)
            if hook is None:
                raise WorkflowBuildError(f"agent hook {name!r} not registered")
            agent_hooks.append(hook)

        return Agent(
            decl.display_name or decl.name,
            instructions=instructions,
            prompt_id=decl.prompt_id or None,
            handoff_description=decl.handoff_description or None,
            model=model,
            model_settings=settings,
            input_guardrails=input_guardrails,
            output_guardrails=output_guardrails,
            output_type=output_type,
            tool_use_behavior=self._tool_use_behavior(decl.tool_use_behavior),
            hooks=combine_agent_hooks(agent_hooks),
            metadata=decl.annotations,
        )

    def _resolve_model(self, decl: ModelDeclaration) -> Any:
        provider_name = decl.provider.strip().lower()
        if not provider_name:
            return decl.model
        provider = self.model_providers.get(provider_name)
        if provider is None:
            raise WorkflowBuildError(f"model: provider {decl.provider!r} not supported")
        return provider.get_model(decl.model)

    def _build_output_type(self, decl: OutputTypeDeclaration) -> AgentOutputSchemaBase:
        if decl.schema_ is None:
            name = decl.preset_ref or decl.name
            factory = self.output_types.get(name)
            if factory is None:
                raise WorkflowBuildError(f"output type {name!r} not registered")
            return factory(decl)
        return InlineSchemaOutputType(decl.name or "inline_schema", decl.schema_, strict=decl.strict)

    def _tool_use_behavior(self, decl: ToolUseBehaviorDeclaration | None) -> ToolUseBehavior:
        if decl is None:
            return "run_llm_again"
        mode = decl.mode.strip().lower()
        if mode in ("", "default", "run_llm_again"):
            return "run_llm_again"
        if mode == "stop_on_first_tool":
            return "stop_on_first_tool"
        if mode == "stop_at_tools":
            return StopAtTools(tool_names=tuple(decl.tool_names))
        if mode == "custom":
            handler = self.tool_use_handlers.get(decl.handler.strip())
            if handler is None:
                raise WorkflowBuildError(f"tool_use_behavior handler {decl.handler!r} not registered")
            return handler
        raise WorkflowBuildError(f"tool_use_behavior: unsupported mode {decl.mode!r}")

    def _attach_handoffs(
        self, agent: Agent, decl: AgentDeclaration, agents: dict[str, Agent]
    ) -> None:
        for ref in decl.handoffs:
            target = agents.get(ref.agent)
            if target is None:
                raise WorkflowBuildError(f"references unknown handoff agent {ref.agent!r}")
            input_filter = None
            if ref.input_filter:
                input_filter = self.handoff_filters.get(ref.input_filter)
                if input_filter is None:
                    raise WorkflowBuildError(
                        f"handoff input_filter {ref.input_filter!r} not registered"
                    )
            agent.add_handoff(
                Handoff(
                    target,
                    tool_description=ref.instructions or None,
                    input_filter=input_filter,
                )
            )

    def _attach_agent_tools(
        self,
        agent: Agent,
        decl: AgentDeclaration,
        agents: dict[str, Agent],
        nested_config: RunConfig,
    ) -> None:
        for ref in decl.agent_tools:
            target = agents.get(ref.agent_name)
            if target is None:
                raise WorkflowBuildError(f"agent_tool references unknown agent {ref.agent_name!r}")
            extractor = None
            if ref.output_extractor.strip():
                extractor = self.agent_tool_extractors.get(ref.output_extractor)
                if extractor is None:
                    raise WorkflowBuildError(
                        f"agent_tool {ref.agent_name!r} output_extractor "
                        f"{ref.output_extractor!r} not registered"
                    )
            agent.add_tool(
                target.as_tool(
                    tool_name=ref.tool_name or None,
                    tool_description=ref.description or None,
                    custom_output_extractor=extractor,
                    run_config=nested_config,
                )
            )

    def _build_tool(self, decl: ToolDeclaration, env: ToolFactoryEnv) -> AnyTool:
        kind = decl.type.strip().lower()
        factory = self.tool_factories.get(kind)
        if factory is None:
            raise WorkflowBuildError(f"tool type {decl.type!r} not registered")
        try:
            return factory(decl, env)
        except WorkflowBuildError as e:
            raise WorkflowBuildError(f"tool {decl.type!r}: {e}") from e

    # Built-in tool factories

    def build_function_tool(self, decl: ToolDeclaration, env: ToolFactoryEnv) -> Tool:
        ref = decl.function_ref.strip() or decl.config_str("function_ref") or decl.name.strip()
        if not ref:
            raise WorkflowBuildError("function tool requires function_ref or name")
        factory = self.function_tools.get(ref)
        if factory is None:
            raise WorkflowBuildError(f"function tool {ref!r} not registered")
        return factory(decl, env)

    def build_computer_tool(self, decl: ToolDeclaration, env: ToolFactoryEnv) -> ComputerTool:
        provider = decl.config_str("provider") or decl.name.strip()
        if not provider:
            raise WorkflowBuildError("computer tool requires config.provider or name")
        factory = self.computer_tools.get(provider)
        if factory is None:
            raise WorkflowBuildError(f"computer tool provider {provider!r} not registered")
        return factory(decl, env)

    def build_local_shell_tool(self, decl: ToolDeclaration, env: ToolFactoryEnv) -> LocalShellTool:
        executor_ref = decl.config_str("executor_ref") or decl.name.strip()
        if not executor_ref:
            raise WorkflowBuildError("local_shell tool requires config.executor_ref or name")
        executor = self.local_shell_executors.get(executor_ref)
        if executor is None:
            raise WorkflowBuildError(f"local shell executor {executor_ref!r} not registered")
        return LocalShellTool(executor=executor)

    def build_hosted_mcp_tool(self, decl: ToolDeclaration, env: ToolFactoryEnv) -> HostedMCPTool:
        server_label = decl.config_str("server_label") or decl.name.strip()
        server_url = decl.config_str("server_url")
        if not server_url:
            raise WorkflowBuildError("hosted_mcp tool requires config.server_url")
        require = _approval_requirement(decl, default="never")
        handler = None
        handler_name = decl.config_str("approval_handler")
        if handler_name:
            handler = self.approval_handlers.get(handler_name)
            if handler is None:
                raise WorkflowBuildError(f"approval handler {handler_name!r} not registered")
        headers = decl.config.get("headers") or {}
        allowed_tools = decl.config.get("allowed_tools")
        return HostedMCPTool(
            server_label=server_label or "mcp",
            server_url=server_url,
            require_approval=require,
            headers={str(key): str(value) for key, value in dict(headers).items()},
            allowed_tools=list(allowed_tools) if allowed_tools is not None else None,
            on_approval_request=handler,
        )

    def build_mock_sensitive_files_tool(
        self, decl: ToolDeclaration, env: ToolFactoryEnv
    ) -> HostedMCPTool:
        """Demo MCP server whose calls are approved on the terminal."""
        return HostedMCPTool(
            server_label="mock_sensitive_files",
            server_url=decl.config_str("server_url") or "mock://sensitive-files",
            require_approval=_approval_requirement(decl, default="always"),
            on_approval_request=prompt_for_approval,
        )


def _approval_requirement(decl: ToolDeclaration, *, default: str) -> str:
    if decl.approval_flow is not None and decl.approval_flow.require:
        require = decl.approval_flow.require.strip().lower()
    else:
        require = decl.config_str("require_approval").lower() or default
    # Providers only distinguish between asking and not asking.
    return "never" if require == "never" else "always"


def web_search_tool(decl: ToolDeclaration, env: ToolFactoryEnv) -> WebSearchTool:
    size = decl.config_str("search_context_size") or "medium"
    if size not in ("low", "medium", "high"):
        raise WorkflowBuildError(f"unsupported search_context_size {size!r}")
    location = decl.config.get("user_location")
    return WebSearchTool(
        user_location=dict(location) if isinstance(location, dict) else None,
        search_context_size=size,  # type: ignore[arg-type]
    )


def file_search_tool(decl: ToolDeclaration, env: ToolFactoryEnv) -> FileSearchTool:
    store_ids = decl.config.get("vector_store_ids")
    if not isinstance(store_ids, list) or not store_ids:
        raise WorkflowBuildError("file_search tool requires config.vector_store_ids")
    max_results = decl.config.get("max_num_results")
    return FileSearchTool(
        vector_store_ids=[str(item) for item in store_ids],
        max_num_results=int(max_results) if max_results is not None else None,
        include_search_results=bool(decl.config.get("include_search_results", False)),
        ranking_options=decl.config.get("ranking_options"),
        filters=decl.config.get("filters"),
    )


def code_interpreter_tool(decl: ToolDeclaration, env: ToolFactoryEnv) -> CodeInterpreterTool:
    container = decl.config.get("container")
    if container is None:
        return CodeInterpreterTool()
    return CodeInterpreterTool(container=container)


def image_generation_tool(decl: ToolDeclaration, env: ToolFactoryEnv) -> ImageGenerationTool:
    return ImageGenerationTool(config=dict(decl.config))


def _store_session_factory(store: str, config: AgentflowConfig) -> SessionFactory:
    def factory(decl: SessionDeclaration) -> Session:
        return create_session(store, decl.session_id, options=decl.store_config, config=config)

    return factory


def new_default_builder(
    *,
    config: AgentflowConfig | None = None,
    model_provider: ModelProvider | None = None,
    telemetry: TelemetrySink | None = None,
) -> WorkflowBuilder:
    """
    Return a builder with the built-in presets registered.

    Includes the hosted tool factories, the function/computer/local shell
    dispatchers, the `mock_sensitive_files` MCP preset, the `json_object`
    output type, the guardrail presets, the `remove_tool_calls` handoff
    filter and a session factory per supported store.
    """
    builder = WorkflowBuilder(config=config, model_provider=model_provider, telemetry=telemetry)
    builder.with_tool_factory("web_search", web_search_tool)
    builder.with_tool_factory("file_search", file_search_tool)
    builder.with_tool_factory("code_interpreter", code_interpreter_tool)
    builder.with_tool_factory("image_generation", image_generation_tool)
    builder.with_tool_factory("hosted_mcp", builder.build_hosted_mcp_tool)
    builder.with_tool_factory("function", builder.build_function_tool)
    builder.with_tool_factory("computer", builder.build_computer_tool)
    builder.with_tool_factory("local_shell", builder.build_local_shell_tool)
    builder.with_hosted_mcp_tool("mock_sensitive_files", builder.build_mock_sensitive_files_tool)
    builder.with_approval_handler("prompt", prompt_for_approval)

    for name, factory in DEFAULT_OUTPUT_TYPES.items():
        builder.with_output_type(name, factory)
    for name, input_factory in DEFAULT_INPUT_GUARDRAILS.items():
        builder.with_input_guardrail(name, input_factory)
    for name, output_factory in DEFAULT_OUTPUT_GUARDRAILS.items():
        builder.with_output_guardrail(name, output_factory)
    builder.with_handoff_filter("remove_tool_calls", remove_tool_calls)
    for store in PERSISTENT_STORES:
        builder.with_session_factory(store, _store_session_factory(store, builder.config))
    return builder
