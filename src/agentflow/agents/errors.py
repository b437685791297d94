"""
Agent-layer error taxonomy.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ..models.types import InputItem, ModelResponse
    from .base import Agent
    from .guardrails import InputGuardrailResult, OutputGuardrailResult
    from .items import RunItem
    from ..run_context import RunContext


@dataclass(frozen=True, slots=True)
class RunErrorDetails:
    """
    Diagnostic snapshot of a run at the moment it failed.

    Attributes:
        input: Original run input.
        new_items: Items produced before the failure.
        raw_responses: Model responses recorded before the failure.
        last_agent: Agent that was active when the run stopped.
        context: Run context at failure time.
        input_guardrail_results: Input guardrail verdicts collected so far.
        output_guardrail_results: Output guardrail verdicts collected so far.
    """

    input: str | list[InputItem]
    new_items: tuple[RunItem, ...] = ()
    raw_responses: tuple[ModelResponse, ...] = ()
    last_agent: Agent | None = None
    context: RunContext | None = None
    input_guardrail_results: tuple[InputGuardrailResult, ...] = ()
    output_guardrail_results: tuple[OutputGuardrailResult, ...] = ()
    metadata: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        agent_name = self.last_agent.name if self.last_agent is not None else "-"
        return (
            f"RunErrorDetails(last_agent={agent_name}, "
            f"new_items={len(self.new_items)}, "
            f"raw_responses={len(self.raw_responses)}, "
            f"input_guardrails={len(self.input_guardrail_results)}, "
            f"output_guardrails={len(self.output_guardrail_results)})"
        )


class AgentError(Exception):
    """
    Base exception for all agent-runtime failures.

    Attributes:
        run_data: Diagnostic snapshot attached by the run machinery, once.
    """

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.run_data: RunErrorDetails | None = None

    def annotate(self, details: RunErrorDetails) -> bool:
        """
        Attach a diagnostic snapshot unless one is already present.

        Args:
            details: Snapshot to attach.

        Returns:
            `True` when the snapshot was attached by this call.
        """
        if self.run_data is not None:
            return False
        self.run_data = details
        return True


class AgentConfigurationError(AgentError):
    """
    Raised when agent or run configuration is invalid.

    Typical cases:
    - invalid constructor values
    - no model available for an agent
    - handoff or tool names that collide
    """
    pass


class ModelBehaviorError(AgentError):
    """Raised when the model produces output the run cannot act on (unknown tool, malformed JSON)."""
    pass


class MaxTurnsExceededError(AgentError):
    """Raised when a run needs more turns than its configured limit."""
    pass


class InputGuardrailTripwireError(AgentError):
    """Raised when an input guardrail trips."""

    def __init__(self, guardrail_result: "InputGuardrailResult") -> None:
        super().__init__(
            f"Input guardrail {guardrail_result.guardrail.get_name()!r} triggered tripwire"
        )
        self.guardrail_result = guardrail_result


class OutputGuardrailTripwireError(AgentError):
    """Raised when an output guardrail trips."""

    def __init__(self, guardrail_result: "OutputGuardrailResult") -> None:
        super().__init__(
            f"Output guardrail {guardrail_result.guardrail.get_name()!r} triggered tripwire"
        )
        self.guardrail_result = guardrail_result


class BackgroundTaskError(AgentError):
    """
    Raised when a background task of a run fails with a non-agent exception.

    The original exception is chained as `__cause__`.
    """

    def __init__(self, task_name: str, error: BaseException) -> None:
        super().__init__(f"{task_name} failed: {error}")
        self.task_name = task_name
        self.error = error
        self.__cause__ = error


class UnhandledRunItemError(AgentError):
    """Raised when a run item variant has no normalized input form."""
    pass
