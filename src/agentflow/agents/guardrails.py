"""
Input and output guardrails.

A guardrail wraps a sync or async check function returning
`GuardrailFunctionOutput`; a triggered tripwire ends the run with a
dedicated error.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Sequence, Union, overload

from ..models.types import InputItem
from ..run_context import RunContext

if TYPE_CHECKING:
    from .base import Agent


@dataclass(frozen=True, slots=True)
class GuardrailFunctionOutput:
    """
    Verdict of a guardrail function.

    Attributes:
        output_info: Arbitrary structured information about the check.
        tripwire_triggered: `True` when the guarded content must be rejected.
    """

    output_info: Any = None
    tripwire_triggered: bool = False


InputGuardrailFunction = Callable[
    [RunContext, "Agent", Union[str, Sequence[InputItem]]],
    Union[GuardrailFunctionOutput, Awaitable[GuardrailFunctionOutput]],
]
OutputGuardrailFunction = Callable[
    [RunContext, "Agent", Any],
    Union[GuardrailFunctionOutput, Awaitable[GuardrailFunctionOutput]],
]


@dataclass(frozen=True, slots=True)
class InputGuardrailResult:
    guardrail: InputGuardrail
    output: GuardrailFunctionOutput


@dataclass(frozen=True, slots=True)
class OutputGuardrailResult:
    guardrail: OutputGuardrail
    agent_output: Any
    agent: Agent
    output: GuardrailFunctionOutput


async def _resolve(value: Any) -> GuardrailFunctionOutput:
    if inspect.isawaitable(value):
        value = await value
    if not isinstance(value, GuardrailFunctionOutput):
        raise TypeError(
            f"guardrail function must return GuardrailFunctionOutput, got {type(value).__name__}"
        )
    return value


@dataclass(slots=True)
class InputGuardrail:
    """Check run on the run input before (and concurrently with) the first model call."""

    guardrail_function: InputGuardrailFunction
    name: str | None = None

    def get_name(self) -> str:
        if self.name:
            return self.name
        return getattr(self.guardrail_function, "__name__", "input_guardrail")

    async def run(
        self,
        agent: Agent,
        input: str | Sequence[InputItem],
        context: RunContext,
    ) -> InputGuardrailResult:
        output = await _resolve(self.guardrail_function(context, agent, input))
        return InputGuardrailResult(guardrail=self, output=output)


@dataclass(slots=True)
class OutputGuardrail:
    """Check run on the final output of the last agent."""

    guardrail_function: OutputGuardrailFunction
    name: str | None = None

    def get_name(self) -> str:
        if self.name:
            return self.name
        return getattr(self.guardrail_function, "__name__", "output_guardrail")

    async def run(
        self, context: RunContext, agent: Agent, agent_output: Any
    ) -> OutputGuardrailResult:
        output = await _resolve(self.guardrail_function(context, agent, agent_output))
        return OutputGuardrailResult(
            guardrail=self,
            agent_output=agent_output,
            agent=agent,
            output=output,
        )


@overload
def input_guardrail(func: InputGuardrailFunction) -> InputGuardrail: ...


@overload
def input_guardrail(
    *, name: str | None = None
) -> Callable[[InputGuardrailFunction], InputGuardrail]: ...


def input_guardrail(func=None, *, name=None):
    """
    Decorator turning a function into an `InputGuardrail`.

    Usage:
        @input_guardrail
        def no_secrets(ctx, agent, input): ...

        @input_guardrail(name="no_secrets")
        async def check(ctx, agent, input): ...
    """

    def decorator(f: InputGuardrailFunction) -> InputGuardrail:
        return InputGuardrail(guardrail_function=f, name=name)

    if func is not None:
        return decorator(func)
    return decorator


@overload
def output_guardrail(func: OutputGuardrailFunction) -> OutputGuardrail: ...


@overload
def output_guardrail(
    *, name: str | None = None
) -> Callable[[OutputGuardrailFunction], OutputGuardrail]: ...


def output_guardrail(func=None, *, name=None):
    """Decorator turning a function into an `OutputGuardrail`."""

    def decorator(f: OutputGuardrailFunction) -> OutputGuardrail:
        return OutputGuardrail(guardrail_function=f, name=name)

    if func is not None:
        return decorator(func)
    return decorator
