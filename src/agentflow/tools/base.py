from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module defines the function tool type and the context/result objects shared by tool executions.
"""

import asyncio
import functools
import inspect
import json
from dataclasses import dataclass, field
from typing import (
    TYPE_CHECKING,
    Any,
    Awaitable,
    Callable,
    Dict,
    Generic,
    Optional,
    Type,
    TypeVar,
    Union,
)

from pydantic import BaseModel, ValidationError

from ..run_context import RunContext
from .errors import ToolExecutionError, ToolTimeoutError, ToolValidationError

if TYPE_CHECKING:
    from ..models.types import ToolDefinition


ArgsT = TypeVar("ArgsT", bound=BaseModel)
ReturnT = TypeVar("ReturnT")

AsyncToolFn = Callable[..., Awaitable[Any]]
SyncToolFn = Callable[..., Any]
ToolFn = Union[AsyncToolFn, SyncToolFn]


@dataclass(frozen=True, slots=True)
class ToolSpec:
    """
    Stable tool metadata used for model-facing export.
    """

    name: str
    description: str
    parameters_schema: Dict[str, Any]  # JSON Schema for the tool's arguments


@dataclass(frozen=True, slots=True)
class ToolContext:
    """
    Contextual information available to a tool during its execution.

    `run_context` is the live context of the run; mutations are visible to
    later tools, guardrails and hooks of the same run.
    """

    run_context: RunContext = field(default_factory=RunContext)
    agent_name: str | None = None
    tool_call_id: str | None = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ToolResult(Generic[ReturnT]):
    """
    Standardized result object returned by tools after execution.

    Failed executions are reported with `success=False` and an error message
    instead of raising, so the error text can be handed back to the model.
    """

    output: Optional[ReturnT] = None
    success: bool = True
    error_message: Optional[str] = None
    tool_name: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    tool_call_id: Optional[str] = None

    def to_model_text(self) -> str:
        """Render the result as the text sent back to the model."""
        if not self.success:
            return f"An error occurred while running the tool: {self.error_message}"
        return stringify_output(self.output)


def stringify_output(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, BaseModel):
        return value.model_dump_json()
    try:
        return json.dumps(value, default=str)
    except (TypeError, ValueError):
        return str(value)


def as_async(fn: ToolFn) -> AsyncToolFn:
    """
    Utility function to convert a synchronous function into an asynchronous one.
    This allows the run loop to treat all tools as async.
    """
    if asyncio.iscoroutinefunction(fn):
        return fn  # type: ignore[return-value]

    async def _wrapped(*args: Any, **kwargs: Any) -> Any:
        # run sync function in threadpool
        return await asyncio.to_thread(functools.partial(fn, *args, **kwargs))

    return _wrapped


def _infer_call_style(fn: Callable[..., Any]) -> str:
    """
    Determine how to call a tool based on the signature.

    Allowed:
      (args)
      (args, ctx)
      (ctx, args)

    We accept ctx by name "ctx" OR annotation ToolContext.
    """
    sig = inspect.signature(fn)
    params = list(sig.parameters.values())

    if any(p.kind in (p.VAR_KEYWORD, p.VAR_POSITIONAL) for p in params):
        raise ToolValidationError(
            f"Tool function '{getattr(fn, '__name__', 'unknown')}' cannot have *args or **kwargs."
        )

    if len(params) == 1:
        return "args"

    if len(params) == 2:
        p0, p1 = params

        if p0.annotation in (ToolContext, "ToolContext") or p0.name == "ctx":
            return "ctx_args"

        if p1.annotation in (ToolContext, "ToolContext") or p1.name == "ctx":
            return "args_ctx"

        raise ToolValidationError(
            f"Tool function '{getattr(fn, '__name__', 'unknown')}' must include ToolContext "
            f"as 'ctx' (by name or annotation). Signature: {sig}"
        )

    raise ToolValidationError(
        f"Tool function '{getattr(fn, '__name__', 'unknown')}' has invalid signature. "
        f"Expected (args) or (args, ctx) or (ctx, args). Got {sig}."
    )


class Tool(Generic[ArgsT, ReturnT]):
    """
    Function tool backed by a sync/async callable and a pydantic args model.

    IMPORTANT: Tool.call returns ToolResult and does NOT throw tool errors by
    default; set `raise_on_error=True` to make failures fatal to the run.
    """

    def __init__(
        self,
        *,
        spec: ToolSpec,
        fn: ToolFn,
        args_model: Type[ArgsT],
        default_timeout: Optional[float] = None,
        raise_on_error: bool = False,
        strict_schema: bool = False,
    ) -> None:
        self.spec = spec
        self._original_fn = fn
        self.fn = as_async(fn)
        self.args_model = args_model
        self.default_timeout = default_timeout
        self.raise_on_error = raise_on_error
        self.strict_schema = strict_schema

        self._call_style = _infer_call_style(fn)

    @property
    def name(self) -> str:
        return self.spec.name

    def __repr__(self) -> str:
        return f"Tool(name={self.spec.name!r})"

    def to_definition(self) -> ToolDefinition:
        return {
            "type": "function",
            "name": self.spec.name,
            "description": self.spec.description,
            "parameters": self.spec.parameters_schema,
            "strict": self.strict_schema,
        }

    def validate(self, raw_args: Dict[str, Any]) -> ArgsT:
        try:
            return self.args_model.model_validate(raw_args)
        except ValidationError as e:
            raise ToolValidationError(
                f"Invalid arguments for tool '{self.spec.name}': {e}"
            ) from e

    async def _invoke(self, args: ArgsT, ctx: ToolContext) -> Any:
        if self._call_style == "args":
            return await self.fn(args)
        if self._call_style == "args_ctx":
            return await self.fn(args, ctx)
        return await self.fn(ctx, args)

    def _failure(self, message: str, tool_call_id: Optional[str]) -> ToolResult[ReturnT]:
        return ToolResult(
            output=None,
            success=False,
            error_message=message,
            tool_name=self.spec.name,
            tool_call_id=tool_call_id,
        )

    async def call_json(
        self,
        arguments: str,
        *,
        ctx: Optional[ToolContext] = None,
        timeout: Optional[float] = None,
        tool_call_id: Optional[str] = None,
    ) -> ToolResult[ReturnT]:
        """
        Decode model-provided JSON arguments and call the tool.

        Args:
            arguments: JSON object text as produced by the model.
            ctx: Tool execution context.
            timeout: Optional per-call timeout overriding the default.
            tool_call_id: Model tool call id.
        """
        try:
            raw_args = json.loads(arguments) if arguments.strip() else {}
        except json.JSONDecodeError as e:
            err = ToolValidationError(f"Invalid JSON input for tool '{self.spec.name}': {e}")
            if self.raise_on_error:
                raise err from e
            return self._failure(str(err), tool_call_id)
        if not isinstance(raw_args, dict):
            err = ToolValidationError(
                f"Tool '{self.spec.name}' expects a JSON object, got {type(raw_args).__name__}"
            )
            if self.raise_on_error:
                raise err
            return self._failure(str(err), tool_call_id)
        return await self.call(raw_args, ctx=ctx, timeout=timeout, tool_call_id=tool_call_id)

    async def call(
        self,
        raw_args: Dict[str, Any],
        *,
        ctx: Optional[ToolContext] = None,
        timeout: Optional[float] = None,
        tool_call_id: Optional[str] = None,
    ) -> ToolResult[ReturnT]:
        ctx = ctx or ToolContext(tool_call_id=tool_call_id)

        try:
            args = self.validate(raw_args)
        except ToolValidationError as e:
            if self.raise_on_error:
                raise
            return self._failure(str(e), tool_call_id)

        effective_timeout = timeout if timeout is not None else self.default_timeout

        try:
            if effective_timeout is not None:
                output = await asyncio.wait_for(self._invoke(args, ctx), timeout=effective_timeout)
            else:
                output = await self._invoke(args, ctx)

        except asyncio.TimeoutError:
            err = ToolTimeoutError(
                f"Tool '{self.spec.name}' execution exceeded timeout of {effective_timeout} seconds."
            )
            if self.raise_on_error:
                raise err
            return self._failure(str(err), tool_call_id)

        except Exception as e:
            err = ToolExecutionError(f"Error executing tool '{self.spec.name}': {e}")
            if self.raise_on_error:
                raise err from e
            return self._failure(str(err), tool_call_id)

        return ToolResult(
            output=output,
            success=True,
            error_message=None,
            tool_name=self.spec.name,
            tool_call_id=tool_call_id,
        )
