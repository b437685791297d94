"""
Turn machinery of a streamed run.

`RunLoop.run()` is the body of the run task. Each turn resolves the model,
streams its response, turns output items into run items, executes local
tools, applies handoffs and decides whether the run continues. Results are
written into the `RunResultStreaming` owned by the consumer.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Coroutine, Sequence, TypeVar, Union

from ..agents.base import (
    Agent,
    FunctionToolResult,
    Handoff,
    HandoffInputData,
    StopAtTools,
    ToolsToFinalOutputResult,
    tool_definitions,
)
from ..agents.errors import (
    AgentConfigurationError,
    AgentError,
    ModelBehaviorError,
    OutputGuardrailTripwireError,
)
from ..agents.guardrails import InputGuardrail, InputGuardrailResult, OutputGuardrail, OutputGuardrailResult
from ..agents.hooks import RunHooks
from ..agents.items import (
    HandoffCallItem,
    HandoffOutputItem,
    ItemHelpers,
    MCPApprovalRequestItem,
    MCPApprovalResponseItem,
    MCPListToolsItem,
    MessageOutputItem,
    ReasoningItem,
    RunItem,
    TOOL_CALL_KINDS,
    ToolCallItem,
    ToolCallOutputItem,
)
from ..models.interface import Model
from ..models.types import InputItem, ModelRequest, ModelResponse, StreamCompleted
from ..run_context import RunContext
from ..tools import (
    ComputerTool,
    HostedMCPTool,
    LocalShellCommandRequest,
    LocalShellTool,
    MCPToolApprovalRequest,
    Tool,
    ToolContext,
)
from .result import RunResultStreaming
from .stream_events import AgentUpdatedStreamEvent, RawResponsesStreamEvent, StreamEvent, run_item_event
from .tasks import BackgroundTask
from .telemetry import TelemetryEvent, now_ms

if TYPE_CHECKING:
    from .runner import RunConfig

logger = logging.getLogger("agentflow.core.run_loop")

T = TypeVar("T")

MULTIPLE_HANDOFFS_OUTPUT = "Multiple handoffs detected, ignoring this one."


@dataclass(frozen=True, slots=True)
class NextStepFinalOutput:
    output: Any


@dataclass(frozen=True, slots=True)
class NextStepHandoff:
    new_agent: Agent


@dataclass(frozen=True, slots=True)
class NextStepRunAgain:
    pass


NextStep = Union[NextStepFinalOutput, NextStepHandoff, NextStepRunAgain]


@dataclass(slots=True)
class ProcessedResponse:
    """Run items and pending local work extracted from one model response."""

    new_items: list[RunItem] = field(default_factory=list)
    handoffs: list[tuple[Handoff, dict[str, Any]]] = field(default_factory=list)
    functions: list[tuple[Tool, dict[str, Any]]] = field(default_factory=list)
    computer_actions: list[tuple[ComputerTool, dict[str, Any]]] = field(default_factory=list)
    shell_calls: list[tuple[LocalShellTool, dict[str, Any]]] = field(default_factory=list)
    approval_requests: list[tuple[HostedMCPTool, MCPApprovalRequestItem]] = field(default_factory=list)
    unanswered_approvals: int = 0

    def has_local_work(self) -> bool:
        return bool(
            self.handoffs
            or self.functions
            or self.computer_actions
            or self.shell_calls
            or self.approval_requests
        )


async def _maybe_await(value: Union[T, Awaitable[T]]) -> T:
    if inspect.isawaitable(value):
        return await value
    return value


async def _gather_or_cancel(coros: Sequence[Coroutine[Any, Any, T]]) -> list[T]:
    """Run `coros` concurrently; on the first failure cancel the rest and re-raise."""
    tasks = [asyncio.ensure_future(coro) for coro in coros]
    if not tasks:
        return []
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


async def _cancel_and_wait(task: asyncio.Future[Any]) -> None:
    task.cancel()
    await asyncio.gather(task, return_exceptions=True)


class RunLoop:
    """
    Drives one streamed run from the first turn to a terminal state.

    The loop is the only producer of `result`: it appends items and
    responses, moves the current agent and the turn counter, and pushes the
    end-of-stream sentinel on every exit path.
    """

    def __init__(
        self,
        *,
        config: RunConfig,
        result: RunResultStreaming,
        starting_agent: Agent,
        input: str | Sequence[InputItem],
    ) -> None:
        self.config = config
        self.result = result
        self.starting_agent = starting_agent
        self.context: RunContext = result.context
        self.hooks: RunHooks = config.hooks or RunHooks()
        self._new_input = ItemHelpers.input_to_new_input_list(input)
        self._input_history: list[InputItem] = []
        self._generated: list[RunItem] = []

    async def run(self) -> None:
        config = self.config
        span = config.telemetry.start_span(
            "agent.run",
            attributes={
                "workflow_name": config.workflow_name,
                "starting_agent": self.starting_agent.name,
                "trace_id": config.trace_id,
                "group_id": config.group_id,
                **config.trace_metadata,
            },
        )
        started = time.monotonic()
        status = "ok"
        error_text: str | None = None
        try:
            await self._run()
        except asyncio.CancelledError:
            status = "cancelled"
            self.result._mark_complete()
            raise
        except Exception as e:
            status = "error"
            error_text = str(e)
            if isinstance(e, AgentError):
                e.annotate(self.result._create_error_details())
            logger.debug("run task failed: %s", e)
            self.result._finish()
            raise
        finally:
            last_agent = self.result.last_agent
            config.telemetry.end_span(
                span,
                status=status,
                error=error_text,
                attributes={
                    "turns": self.result.current_turn,
                    "last_agent": last_agent.name if last_agent is not None else None,
                },
            )
            config.telemetry.record_histogram(
                "agent.run.duration_ms",
                (time.monotonic() - started) * 1000.0,
                attributes={"status": status},
            )

    async def _run(self) -> None:
        result = self.result
        agent = self.starting_agent

        if self.config.session is not None:
            await self._load_session_history()
        self._input_history.extend(self._new_input)

        self._switch_agent(agent)
        run_agent_start_hooks = True

        while True:
            turn = result._advance_turn()
            if turn > result.max_turns:
                logger.debug("turn %d exceeds max_turns=%d", turn, result.max_turns)
                result._finish()
                return
            self.config.telemetry.increment_counter(
                "agent.turns", attributes={"agent": agent.name}
            )

            if run_agent_start_hooks:
                await self._agent_start_hooks(agent)
                run_agent_start_hooks = False

            guardrails_task: BackgroundTask[list[InputGuardrailResult]] | None = None
            if turn == 1:
                guardrails = [*self.config.input_guardrails, *agent.input_guardrails]
                if guardrails:
                    guardrails_task = result._start_input_guardrails_task(
                        self._run_input_guardrails(agent, guardrails)
                    )

            step = await self._run_turn(agent, guardrails_task)
            if step is None:
                return

            if isinstance(step, NextStepHandoff):
                agent = step.new_agent
                self._switch_agent(agent)
                run_agent_start_hooks = True
                continue

            if isinstance(step, NextStepFinalOutput):
                await self._complete(agent, step.output)
                return

    def _switch_agent(self, agent: Agent) -> None:
        self.result._set_current_agent(agent)
        self.result._publish(AgentUpdatedStreamEvent(new_agent=agent))

    async def _agent_start_hooks(self, agent: Agent) -> None:
        await self.hooks.on_agent_start(self.context, agent)
        if agent.hooks is not None:
            await agent.hooks.on_start(self.context, agent)

    # Session

    async def _load_session_history(self) -> None:
        session = self.config.session
        assert session is not None
        if not session.is_setup:
            await session.setup()
        history = await session.get_items(self.config.session_history_limit)
        logger.debug("prepending %d session item(s)", len(history))
        self._input_history.extend(history)

    async def _save_session(self) -> None:
        session = self.config.session
        if session is None:
            return
        items = list(self._new_input)
        items.extend(item.to_input_item() for item in self.result.new_items)
        await session.add_items(items)

    # Guardrails

    async def _run_input_guardrails(
        self, agent: Agent, guardrails: Sequence[InputGuardrail]
    ) -> list[InputGuardrailResult]:
        """Run input guardrails concurrently; stop at the first tripwire."""
        tasks = [
            asyncio.ensure_future(guardrail.run(agent, self.result.input, self.context))
            for guardrail in guardrails
        ]
        verdicts: list[InputGuardrailResult] = []
        try:
            for next_done in asyncio.as_completed(tasks):
                verdict = await next_done
                verdicts.append(verdict)
                self.result._add_input_guardrail_result(verdict)
                if verdict.output.tripwire_triggered:
                    self._record_tripwire("input", verdict.guardrail.get_name(), agent)
                    break
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
        return verdicts

    async def _run_output_guardrails(
        self, guardrails: Sequence[OutputGuardrail], agent: Agent, output: Any
    ) -> list[OutputGuardrailResult]:
        verdicts = await _gather_or_cancel(
            [guardrail.run(self.context, agent, output) for guardrail in guardrails]
        )
        for verdict in verdicts:
            if verdict.output.tripwire_triggered:
                self._record_tripwire("output", verdict.guardrail.get_name(), agent)
                raise OutputGuardrailTripwireError(verdict)
        return verdicts

    def _record_tripwire(self, kind: str, name: str, agent: Agent) -> None:
        self.config.telemetry.record_event(
            TelemetryEvent(
                name="guardrail.tripwire",
                timestamp_ms=now_ms(),
                attributes={"kind": kind, "guardrail": name, "agent": agent.name},
            )
        )

    async def _complete(self, agent: Agent, output: Any) -> None:
        guardrails = [*self.config.output_guardrails, *agent.output_guardrails]
        if guardrails:
            task = self.result._start_output_guardrails_task(
                self._run_output_guardrails(guardrails, agent, output)
            )
            outcome = await task.wait()
            if not outcome.succeeded:
                # The consumer picks the failure up from the task.
                self.result._finish()
                return
            self.result._set_output_guardrail_results(outcome.value or [])

        self.result._set_final_output(output)
        await self.hooks.on_agent_end(self.context, agent, output)
        if agent.hooks is not None:
            await agent.hooks.on_end(self.context, agent, output)
        await self._save_session()
        self.result._finish()

    # Model call

    def _resolve_model(self, agent: Agent) -> tuple[Model, str | None]:
        candidate = self.config.model if self.config.model is not None else agent.model
        if isinstance(candidate, Model):
            return candidate, getattr(candidate, "name", None)
        provider = self.config.model_provider
        if provider is None:
            raise AgentConfigurationError(
                f"agent {agent.name!r} has no Model instance and the run has no model provider"
            )
        return provider.get_model(candidate), candidate

    def _model_input(self) -> list[InputItem]:
        items = [dict(item) for item in self._input_history]
        items.extend(item.to_input_item() for item in self._generated)
        return items

    async def _stream_model(
        self, model: Model, request: ModelRequest, publish: Callable[[StreamEvent], None]
    ) -> ModelResponse:
        response: ModelResponse | None = None
        async for event in model.stream_response(request):
            if isinstance(event, StreamCompleted):
                response = event.response
            else:
                publish(RawResponsesStreamEvent(data=event))
        if response is None:
            raise ModelBehaviorError("model stream ended without a completed response")
        return response

    async def _run_turn(
        self,
        agent: Agent,
        guardrails_task: BackgroundTask[list[InputGuardrailResult]] | None,
    ) -> NextStep | None:
        """
        Run one model call and the local work it asks for.

        Returns:
            The next step, or `None` when the run already ended (input
            guardrail tripwire or failure).
        """
        system_prompt = await agent.resolve_instructions(self.context)
        handoffs = agent.get_handoffs()
        model, model_name = self._resolve_model(agent)
        output_schema = agent.output_schema
        input_items = self._model_input()
        request = ModelRequest(
            model=model_name,
            system_instructions=system_prompt,
            input=input_items,
            tools=tool_definitions(agent),
            output_schema=output_schema.json_schema() if output_schema is not None else None,
            settings=agent.model_settings.resolve(self.config.model_settings),
            previous_response_id=self.config.previous_response_id,
            prompt_id=agent.prompt_id,
        )

        await self.hooks.on_llm_start(self.context, agent, system_prompt, input_items)
        if agent.hooks is not None:
            await agent.hooks.on_llm_start(self.context, agent, system_prompt, input_items)

        if guardrails_task is None:
            response = await self._stream_model(model, request, self.result._publish)
        else:
            buffered: list[StreamEvent] = []
            model_task = asyncio.ensure_future(self._stream_model(model, request, buffered.append))
            try:
                outcome = await guardrails_task.wait()
                tripped = outcome.succeeded and any(
                    verdict.output.tripwire_triggered for verdict in outcome.value or []
                )
                if not outcome.succeeded or tripped:
                    logger.debug("input guardrails stopped the run before the first turn was published")
                    await _cancel_and_wait(model_task)
                    self.result._finish()
                    return None
                response = await model_task
            except BaseException:
                await _cancel_and_wait(model_task)
                raise
            for event in buffered:
                self.result._publish(event)

        self.context.add_usage(response.usage)
        self.result._append_raw_response(response)
        await self.hooks.on_llm_end(self.context, agent, response)
        if agent.hooks is not None:
            await agent.hooks.on_llm_end(self.context, agent, response)

        processed = self._process_response(agent, response, handoffs)
        turn_items = list(processed.new_items)
        self._emit(processed.new_items)

        function_results = await self._execute_function_tools(agent, processed.functions)
        tool_items: list[RunItem] = [res.run_item for res in function_results]
        tool_items.extend(await self._execute_computer_actions(agent, processed.computer_actions))
        tool_items.extend(await self._execute_shell_calls(agent, processed.shell_calls))
        tool_items.extend(await self._resolve_approvals(agent, processed.approval_requests))
        self._emit(tool_items)
        turn_items.extend(tool_items)

        if processed.handoffs:
            return await self._execute_handoffs(agent, processed.handoffs, turn_items)

        self._generated.extend(turn_items)

        if function_results:
            check = await self._check_tools_for_final_output(agent, function_results)
            if check.is_final_output:
                return NextStepFinalOutput(check.final_output)

        if processed.has_local_work():
            return NextStepRunAgain()

        messages = [item for item in processed.new_items if isinstance(item, MessageOutputItem)]
        if messages:
            text = ItemHelpers.text_message_output(messages[-1])
            if output_schema is not None:
                return NextStepFinalOutput(output_schema.validate_json(text))
            return NextStepFinalOutput(text)
        if processed.unanswered_approvals:
            # Approvals are resolved out of band; the run stops without output.
            return NextStepFinalOutput(None)
        return NextStepRunAgain()

    def _emit(self, items: Sequence[RunItem]) -> None:
        if not items:
            return
        self.result._append_new_items(items)
        for item in items:
            self.result._publish(run_item_event(item))

    # Response classification

    def _process_response(
        self, agent: Agent, response: ModelResponse, handoffs: Sequence[Handoff]
    ) -> ProcessedResponse:
        processed = ProcessedResponse()
        handoff_map = {handoff.tool_name: handoff for handoff in handoffs}
        functions = {tool.name: tool for tool in agent.tools if isinstance(tool, Tool)}
        computer = next((tool for tool in agent.tools if isinstance(tool, ComputerTool)), None)
        shell = next((tool for tool in agent.tools if isinstance(tool, LocalShellTool)), None)
        mcp_servers = {
            tool.server_label: tool for tool in agent.tools if isinstance(tool, HostedMCPTool)
        }

        for raw in response.output:
            kind = raw.get("type")
            if kind == "message":
                processed.new_items.append(MessageOutputItem(agent=agent, raw_item=raw))
            elif kind == "reasoning":
                processed.new_items.append(ReasoningItem(agent=agent, raw_item=raw))
            elif kind == "mcp_list_tools":
                processed.new_items.append(MCPListToolsItem(agent=agent, raw_item=raw))
            elif kind == "mcp_approval_request":
                item = MCPApprovalRequestItem(agent=agent, raw_item=raw)
                processed.new_items.append(item)
                server = mcp_servers.get(str(raw.get("server_label", "")))
                if server is None:
                    raise ModelBehaviorError(
                        f"MCP approval request for unknown server {raw.get('server_label')!r}"
                    )
                if server.on_approval_request is None:
                    processed.unanswered_approvals += 1
                else:
                    processed.approval_requests.append((server, item))
            elif kind == "function_call":
                name = str(raw.get("name", ""))
                if name in handoff_map:
                    processed.new_items.append(HandoffCallItem(agent=agent, raw_item=raw))
                    processed.handoffs.append((handoff_map[name], raw))
                    continue
                tool = functions.get(name)
                if tool is None:
                    raise ModelBehaviorError(f"Tool {name} not found in agent {agent.name}")
                processed.new_items.append(ToolCallItem(agent=agent, raw_item=raw))
                processed.functions.append((tool, raw))
            elif kind == "computer_call":
                if computer is None:
                    raise ModelBehaviorError(
                        f"model requested a computer action but agent {agent.name} has no computer tool"
                    )
                processed.new_items.append(ToolCallItem(agent=agent, raw_item=raw))
                processed.computer_actions.append((computer, raw))
            elif kind == "local_shell_call":
                if shell is None:
                    raise ModelBehaviorError(
                        f"model requested a shell command but agent {agent.name} has no local shell tool"
                    )
                processed.new_items.append(ToolCallItem(agent=agent, raw_item=raw))
                processed.shell_calls.append((shell, raw))
            elif kind in TOOL_CALL_KINDS:
                # Hosted tools run on the provider side.
                processed.new_items.append(ToolCallItem(agent=agent, raw_item=raw))
            else:
                logger.warning("ignoring unsupported output item type %r", kind)
        return processed

    # Local tool execution

    async def _execute_function_tools(
        self, agent: Agent, calls: Sequence[tuple[Tool, dict[str, Any]]]
    ) -> list[FunctionToolResult]:
        async def run_one(tool: Tool, raw: dict[str, Any]) -> FunctionToolResult:
            call_id = str(raw.get("call_id", ""))
            arguments = str(raw.get("arguments") or "")
            await self.hooks.on_tool_start(self.context, agent, tool)
            if agent.hooks is not None:
                await agent.hooks.on_tool_start(self.context, agent, tool, arguments)
            tool_ctx = ToolContext(
                run_context=self.context, agent_name=agent.name, tool_call_id=call_id
            )
            outcome = await tool.call_json(arguments, ctx=tool_ctx, tool_call_id=call_id)
            text = outcome.to_model_text()
            await self.hooks.on_tool_end(self.context, agent, tool, text)
            if agent.hooks is not None:
                await agent.hooks.on_tool_end(self.context, agent, tool, text)
            self.config.telemetry.increment_counter(
                "agent.tool_calls",
                attributes={"tool": tool.name, "success": outcome.success},
            )
            output = outcome.output if outcome.success else text
            item = ToolCallOutputItem(
                agent=agent,
                raw_item=ItemHelpers.function_call_output(call_id, text),
                output=output,
            )
            return FunctionToolResult(tool=tool, output=output, run_item=item)

        return await _gather_or_cancel([run_one(tool, raw) for tool, raw in calls])

    async def _execute_computer_actions(
        self, agent: Agent, actions: Sequence[tuple[ComputerTool, dict[str, Any]]]
    ) -> list[RunItem]:
        items: list[RunItem] = []
        for tool, raw in actions:
            await self.hooks.on_tool_start(self.context, agent, tool)
            if agent.hooks is not None:
                await agent.hooks.on_tool_start(self.context, agent, tool, str(raw.get("action", "")))
            screenshot = await tool.run_action(dict(raw.get("action") or {}))
            image_url = f"data:image/png;base64,{screenshot}"
            await self.hooks.on_tool_end(self.context, agent, tool, image_url)
            if agent.hooks is not None:
                await agent.hooks.on_tool_end(self.context, agent, tool, image_url)
            self.config.telemetry.increment_counter(
                "agent.tool_calls", attributes={"tool": tool.name, "success": True}
            )
            items.append(
                ToolCallOutputItem(
                    agent=agent,
                    raw_item={
                        "type": "computer_call_output",
                        "call_id": raw.get("call_id", ""),
                        "output": {"type": "computer_screenshot", "image_url": image_url},
                    },
                    output=image_url,
                )
            )
        return items

    async def _execute_shell_calls(
        self, agent: Agent, calls: Sequence[tuple[LocalShellTool, dict[str, Any]]]
    ) -> list[RunItem]:
        items: list[RunItem] = []
        for tool, raw in calls:
            request = LocalShellCommandRequest(context=self.context, data=raw)
            await self.hooks.on_tool_start(self.context, agent, tool)
            if agent.hooks is not None:
                await agent.hooks.on_tool_start(self.context, agent, tool, " ".join(request.command))
            output = await tool.execute(request)
            await self.hooks.on_tool_end(self.context, agent, tool, output)
            if agent.hooks is not None:
                await agent.hooks.on_tool_end(self.context, agent, tool, output)
            self.config.telemetry.increment_counter(
                "agent.tool_calls", attributes={"tool": tool.name, "success": True}
            )
            items.append(
                ToolCallOutputItem(
                    agent=agent,
                    raw_item={
                        "type": "local_shell_call_output",
                        "call_id": raw.get("call_id") or raw.get("id", ""),
                        "output": output,
                    },
                    output=output,
                )
            )
        return items

    async def _resolve_approvals(
        self, agent: Agent, requests: Sequence[tuple[HostedMCPTool, MCPApprovalRequestItem]]
    ) -> list[RunItem]:
        items: list[RunItem] = []
        for server, request_item in requests:
            decision = await server.resolve_approval(
                MCPToolApprovalRequest(context=self.context, data=request_item.raw_item)
            )
            if decision is None:
                continue
            raw: dict[str, Any] = {
                "type": "mcp_approval_response",
                "approval_request_id": request_item.approval_request_id,
                "approve": decision.approve,
            }
            if decision.reason:
                raw["reason"] = decision.reason
            items.append(MCPApprovalResponseItem(agent=agent, raw_item=raw))
        return items

    # Handoffs and tool-use behavior

    async def _execute_handoffs(
        self,
        agent: Agent,
        calls: Sequence[tuple[Handoff, dict[str, Any]]],
        turn_items: list[RunItem],
    ) -> NextStep:
        handoff, raw = calls[0]
        extra_items: list[RunItem] = [
            ToolCallOutputItem(
                agent=agent,
                raw_item=ItemHelpers.function_call_output(
                    str(ignored.get("call_id", "")), MULTIPLE_HANDOFFS_OUTPUT
                ),
                output=MULTIPLE_HANDOFFS_OUTPUT,
            )
            for _, ignored in calls[1:]
        ]
        if extra_items:
            logger.debug("agent %s requested %d handoffs; using the first", agent.name, len(calls))
        new_agent = handoff.agent
        transfer = HandoffOutputItem(
            agent=agent,
            raw_item=ItemHelpers.function_call_output(
                str(raw.get("call_id", "")), handoff.transfer_message()
            ),
            source_agent=agent,
            target_agent=new_agent,
        )
        handoff_items = [*extra_items, transfer]
        self._emit(handoff_items)
        turn_items = [*turn_items, *handoff_items]

        await self.hooks.on_handoff(self.context, agent, new_agent)
        if new_agent.hooks is not None:
            await new_agent.hooks.on_handoff(self.context, new_agent, agent)
        self.config.telemetry.increment_counter(
            "agent.handoffs", attributes={"from": agent.name, "to": new_agent.name}
        )

        input_filter = handoff.input_filter or self.config.handoff_input_filter
        if input_filter is None:
            self._generated.extend(turn_items)
        else:
            filtered = input_filter(
                HandoffInputData(
                    input_history=tuple(self._input_history),
                    pre_handoff_items=tuple(self._generated),
                    new_items=tuple(turn_items),
                )
            )
            if not isinstance(filtered, HandoffInputData):
                raise AgentConfigurationError("handoff input filter must return HandoffInputData")
            # Only the next model input changes; the result keeps every item.
            self._input_history = [dict(item) for item in filtered.input_history]
            self._generated = [*filtered.pre_handoff_items, *filtered.new_items]
        return NextStepHandoff(new_agent)

    async def _check_tools_for_final_output(
        self, agent: Agent, results: list[FunctionToolResult]
    ) -> ToolsToFinalOutputResult:
        behavior = agent.tool_use_behavior
        if behavior == "run_llm_again":
            return ToolsToFinalOutputResult(is_final_output=False)
        if behavior == "stop_on_first_tool":
            return ToolsToFinalOutputResult(is_final_output=True, final_output=results[0].output)
        if isinstance(behavior, StopAtTools):
            for res in results:
                if res.tool.name in behavior.tool_names:
                    return ToolsToFinalOutputResult(is_final_output=True, final_output=res.output)
            return ToolsToFinalOutputResult(is_final_output=False)
        if callable(behavior):
            decision = await _maybe_await(behavior(self.context, results))
            if not isinstance(decision, ToolsToFinalOutputResult):
                raise AgentConfigurationError(
                    "custom tool_use_behavior must return ToolsToFinalOutputResult"
                )
            return decision
        raise AgentConfigurationError(f"unsupported tool_use_behavior {behavior!r}")
