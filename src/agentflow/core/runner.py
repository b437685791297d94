"""
Run configuration and the public runner entry points.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

from ..agents.base import Agent, HandoffInputFilter
from ..agents.errors import AgentConfigurationError
from ..agents.guardrails import InputGuardrail, OutputGuardrail
from ..agents.hooks import RunHooks
from ..config import DEFAULT_MAX_TURNS
from ..models.interface import Model, ModelProvider
from ..models.types import InputItem, JSONValue, ModelSettings
from ..run_context import RunContext
from ..sessions.base import Session
from .result import RunResult, RunResultStreaming
from .run_loop import RunLoop
from .telemetry import NullTelemetrySink, TelemetrySink

logger = logging.getLogger("agentflow.core.runner")


@dataclass(frozen=True, slots=True)
class RunConfig:
    """
    Settings of one run.

    Attributes:
        model: Model (or model name) used for every agent, overriding `Agent.model`.
        model_provider: Resolves model names to `Model` instances.
        model_settings: Settings overlaid on each agent's own settings.
        max_turns: Maximum number of model calls before the run fails.
        input_guardrails: Run-level input guardrails, added to the starting agent's.
        output_guardrails: Run-level output guardrails, added to the final agent's.
        hooks: Run-wide lifecycle hooks.
        session: Conversation history store; read before and written after the run.
        session_history_limit: Number of latest session items to prepend; `None` for all.
        handoff_input_filter: Filter applied to handoffs that declare none.
        workflow_name: Name reported in telemetry.
        trace_id: Trace identifier reported in telemetry.
        group_id: Groups runs of one conversation (usually the session id).
        trace_metadata: Extra telemetry attributes.
        telemetry: Telemetry sink.
        previous_response_id: Server-side conversation continuation id.
    """

    model: str | Model | None = None
    model_provider: ModelProvider | None = None
    model_settings: ModelSettings | None = None
    max_turns: int = DEFAULT_MAX_TURNS
    input_guardrails: Sequence[InputGuardrail] = ()
    output_guardrails: Sequence[OutputGuardrail] = ()
    hooks: RunHooks | None = None
    session: Session | None = None
    session_history_limit: int | None = None
    handoff_input_filter: HandoffInputFilter | None = None
    workflow_name: str = "Agent workflow"
    trace_id: str | None = None
    group_id: str | None = None
    trace_metadata: dict[str, JSONValue] = field(default_factory=dict)
    telemetry: TelemetrySink = field(default_factory=NullTelemetrySink)
    previous_response_id: str | None = None


class Runner:
    """
    Entry point for running agents.

    `run_streamed` returns immediately with a live `RunResultStreaming`;
    `run` drives the same machinery to completion and returns the frozen
    `RunResult`.
    """

    def __init__(self, config: RunConfig | None = None) -> None:
        self.config = config or RunConfig()

    def run_streamed(
        self,
        starting_agent: Agent,
        input: str | Sequence[InputItem],
        *,
        context: RunContext | Mapping[str, Any] | None = None,
    ) -> RunResultStreaming:
        """
        Start a run in a background task and return its streaming state.

        Must be called with a running event loop.

        Args:
            starting_agent: Agent that takes the first turn.
            input: User text or a list of input items.
            context: Run context, or a mapping used as its user context.

        Raises:
            AgentConfigurationError: If `max_turns` is below 1.
        """
        if self.config.max_turns < 1:
            raise AgentConfigurationError(
                f"max_turns must be at least 1, got {self.config.max_turns}"
            )
        if isinstance(context, RunContext):
            run_context = context
        else:
            run_context = RunContext(context=dict(context or {}))

        result = RunResultStreaming(
            input=input, max_turns=self.config.max_turns, context=run_context
        )
        loop = RunLoop(
            config=self.config,
            result=result,
            starting_agent=starting_agent,
            input=input,
        )
        logger.debug(
            "starting run of agent %s (max_turns=%d)", starting_agent.name, self.config.max_turns
        )
        result._start_run_task(loop.run())
        return result

    async def run(
        self,
        starting_agent: Agent,
        input: str | Sequence[InputItem],
        *,
        context: RunContext | Mapping[str, Any] | None = None,
    ) -> RunResult:
        """
        Run to completion.

        Raises:
            AgentError: The run's stored error.
        """
        result = self.run_streamed(starting_agent, input, context=context)
        async for _ in result.stream_events():
            pass
        return result.to_result()
