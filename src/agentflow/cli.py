from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module provides the `agentflow-run` command, which executes a workflow manifest.
"""

import argparse
import asyncio
import importlib
import logging
import os
import sys
from pathlib import Path
from typing import Sequence

from pydantic import BaseModel, Field
from rich.console import Console

from .config import AgentflowConfig
from .models import EchoModelProvider, ModelProvider
from .tools import Tool, function_tool
from .workflow import (
    RunnerService,
    WorkflowError,
    WorkflowRequest,
    load_workflow_request,
    new_default_builder,
)
from .workflow.types import CallbackDeclaration

logger = logging.getLogger("agentflow.cli")


class WeatherArgs(BaseModel):
    city: str = Field(..., description="City to report the weather for")


@function_tool(args_model=WeatherArgs, name="get_weather")
def get_weather(args: WeatherArgs) -> dict[str, str]:
    """Get the current weather for a city."""
    return {
        "city": args.city,
        "temperature_range": "14-20C",
        "conditions": "Sunny with wind.",
    }


def load_provider(ref: str) -> ModelProvider:
    """
    Import a model provider from `module:attr`.

    `attr` may be a `ModelProvider` instance, or a class or factory called
    without arguments.
    """
    module_name, sep, attr = ref.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"provider reference must look like module:attr, got {ref!r}")
    target = getattr(importlib.import_module(module_name), attr)
    provider = target if isinstance(target, ModelProvider) else target()
    if not isinstance(provider, ModelProvider):
        raise ValueError(f"{ref} did not produce a ModelProvider")
    return provider


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="agentflow-run",
        description="Run a multi-agent workflow manifest.",
    )
    parser.add_argument(
        "manifest",
        nargs="?",
        default=os.getenv("AGENTFLOW_MANIFEST"),
        help="path to the manifest JSON (default: $AGENTFLOW_MANIFEST)",
    )
    parser.add_argument(
        "--stdout",
        action="store_true",
        help="print run events to the terminal in addition to declared callbacks",
    )
    parser.add_argument(
        "--provider",
        default=None,
        help="model provider as module:attr (default: offline echo provider)",
    )
    parser.add_argument("--log-level", default=None, help="logging level (default: $AGENTFLOW_LOG_LEVEL)")
    return parser


def _with_stdout_callback(request: WorkflowRequest) -> WorkflowRequest:
    if any(callback.is_stdout() for callback in request.all_callbacks()):
        return request
    callbacks = [*request.callbacks, CallbackDeclaration(mode="stdout")]
    return request.model_copy(update={"callbacks": callbacks})


async def run_manifest(
    path: Path,
    *,
    config: AgentflowConfig,
    provider: ModelProvider,
    force_stdout: bool = False,
    extra_tools: Sequence[Tool] = (),
) -> int:
    request = load_workflow_request(path.read_text(encoding="utf-8"))
    if force_stdout:
        request = _with_stdout_callback(request)

    builder = new_default_builder(config=config, model_provider=provider)
    builder.with_function_tool("get_weather", get_weather)
    for tool in extra_tools:
        builder.with_function_tool(tool.spec.name, tool)

    summary = await RunnerService(builder, config=config).execute(request)
    console = Console()
    console.print(f"Workflow {summary.workflow_name} completed.", highlight=False)
    console.print(f"Final output: {summary.final_output}", markup=False, highlight=False)
    if summary.last_response_id:
        console.print(f"Last response id: {summary.last_response_id}", highlight=False)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = _parser().parse_args(argv)
    try:
        config = AgentflowConfig.from_env()
    except ValueError as e:
        print(f"workflow manifest runner: {e}", file=sys.stderr)
        return 1
    logging.basicConfig(
        level=(args.log_level or config.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if not args.manifest:
        print(
            "workflow manifest runner: manifest path required (argument or AGENTFLOW_MANIFEST)",
            file=sys.stderr,
        )
        return 1

    try:
        provider = load_provider(args.provider) if args.provider else EchoModelProvider()
        return asyncio.run(
            run_manifest(
                Path(args.manifest),
                config=config,
                provider=provider,
                force_stdout=args.stdout,
            )
        )
    except (OSError, ValueError, ImportError, AttributeError, WorkflowError) as e:
        logger.debug("run failed", exc_info=True)
        print(f"workflow manifest runner: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
