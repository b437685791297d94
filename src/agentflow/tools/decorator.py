from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module provides the `function_tool` decorator, which turns a plain function into a `Tool`.
"""

import inspect
from typing import Any, Callable, Type, TypeVar, get_type_hints

from pydantic import BaseModel

from .base import Tool, ToolFn, ToolSpec
from .errors import ToolValidationError

ArgsT = TypeVar("ArgsT", bound=BaseModel)
ReturnT = TypeVar("ReturnT")


def _default_description(fn: Callable[..., Any], fallback: str) -> str:
    doc = inspect.getdoc(fn) or ""
    first_line = doc.splitlines()[0].strip() if doc else ""
    return first_line or fallback


def _infer_args_model(fn: Callable[..., Any], tool_name: str) -> Type[BaseModel]:
    try:
        hints = get_type_hints(fn)
    except (NameError, TypeError) as e:
        raise ToolValidationError(
            f"Cannot resolve annotations of tool '{tool_name}': {e}"
        ) from e
    for param in inspect.signature(fn).parameters.values():
        hint = hints.get(param.name)
        if inspect.isclass(hint) and issubclass(hint, BaseModel):
            return hint
    raise ToolValidationError(
        f"Tool '{tool_name}' needs a pydantic args model: pass args_model= "
        "or annotate the args parameter with a BaseModel subclass"
    )


def function_tool(
    fn: ToolFn | None = None,
    *,
    args_model: Type[ArgsT] | None = None,
    name: str | None = None,
    description: str | None = None,
    timeout: float | None = None,
    raise_on_error: bool = False,
    strict_schema: bool = False,
) -> Any:
    """
    Create a function Tool from a sync/async function and a Pydantic v2 args model.

    Usable bare (`@function_tool`) or with options (`@function_tool(name=...)`).
    Without `args_model` the model is taken from the first parameter annotated
    with a `BaseModel` subclass.

    Tool function can be sync or async and should use one of:
      def/async def fn(args: ArgsModel) -> Any
      def/async def fn(args: ArgsModel, ctx: ToolContext) -> Any
      def/async def fn(ctx: ToolContext, args: ArgsModel) -> Any

    raise_on_error:
      - False (default): Tool.call returns ToolResult(success=False) on failure
        and the error text goes back to the model
      - True: raises ToolExecutionError/ToolTimeoutError/ToolValidationError,
        which fails the run

    Raises:
        ToolValidationError: If no args model is given or found, or the
            signature does not match one of the shapes above.
    """

    def decorator(func: ToolFn) -> Tool[ArgsT, ReturnT]:
        tool_name = name or getattr(func, "__name__", "tool")
        model = args_model or _infer_args_model(func, tool_name)
        spec = ToolSpec(
            name=tool_name,
            description=description or _default_description(func, tool_name),
            parameters_schema=model.model_json_schema(),
        )
        return Tool(
            spec=spec,
            fn=func,
            args_model=model,
            default_timeout=timeout,
            raise_on_error=raise_on_error,
            strict_schema=strict_schema,
        )

    if fn is not None:
        return decorator(fn)
    return decorator
