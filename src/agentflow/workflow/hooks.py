from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module combines several named hooks into one, calling each in declaration order.
"""

from typing import Any, Sequence

from ..agents.base import Agent
from ..agents.hooks import AgentHooks, RunHooks
from ..models.types import InputItem, ModelResponse
from ..run_context import RunContext
from ..tools import AnyTool


class CombinedRunHooks(RunHooks):
    def __init__(self, hooks: Sequence[RunHooks]) -> None:
        self.hooks = list(hooks)

    async def on_agent_start(self, context: RunContext, agent: Agent) -> None:
        for hook in self.hooks:
            await hook.on_agent_start(context, agent)

    async def on_agent_end(self, context: RunContext, agent: Agent, output: Any) -> None:
        for hook in self.hooks:
            await hook.on_agent_end(context, agent, output)

    async def on_handoff(self, context: RunContext, from_agent: Agent, to_agent: Agent) -> None:
        for hook in self.hooks:
            await hook.on_handoff(context, from_agent, to_agent)

    async def on_tool_start(self, context: RunContext, agent: Agent, tool: AnyTool) -> None:
        for hook in self.hooks:
            await hook.on_tool_start(context, agent, tool)

    async def on_tool_end(
        self, context: RunContext, agent: Agent, tool: AnyTool, result: str
    ) -> None:
        for hook in self.hooks:
            await hook.on_tool_end(context, agent, tool, result)

    async def on_llm_start(
        self,
        context: RunContext,
        agent: Agent,
        system_prompt: str | None,
        input_items: list[InputItem],
    ) -> None:
        for hook in self.hooks:
            await hook.on_llm_start(context, agent, system_prompt, input_items)

    async def on_llm_end(self, context: RunContext, agent: Agent, response: ModelResponse) -> None:
        for hook in self.hooks:
            await hook.on_llm_end(context, agent, response)


class CombinedAgentHooks(AgentHooks):
    def __init__(self, hooks: Sequence[AgentHooks]) -> None:
        self.hooks = list(hooks)

    async def on_start(self, context: RunContext, agent: Agent) -> None:
        for hook in self.hooks:
            await hook.on_start(context, agent)

    async def on_end(self, context: RunContext, agent: Agent, output: Any) -> None:
        for hook in self.hooks:
            await hook.on_end(context, agent, output)

    async def on_handoff(self, context: RunContext, agent: Agent, source: Agent) -> None:
        for hook in self.hooks:
            await hook.on_handoff(context, agent, source)

    async def on_tool_start(
        self, context: RunContext, agent: Agent, tool: AnyTool, arguments: str
    ) -> None:
        for hook in self.hooks:
            await hook.on_tool_start(context, agent, tool, arguments)

    async def on_tool_end(
        self, context: RunContext, agent: Agent, tool: AnyTool, result: str
    ) -> None:
        for hook in self.hooks:
            await hook.on_tool_end(context, agent, tool, result)

    async def on_llm_start(
        self,
        context: RunContext,
        agent: Agent,
        system_prompt: str | None,
        input_items: list[InputItem],
    ) -> None:
        for hook in self.hooks:
            await hook.on_llm_start(context, agent, system_prompt, input_items)

    async def on_llm_end(self, context: RunContext, agent: Agent, response: ModelResponse) -> None:
        for hook in self.hooks:
            await hook.on_llm_end(context, agent, response)


def combine_run_hooks(hooks: Sequence[RunHooks]) -> RunHooks | None:
    """Return `None`, the single hook, or a `CombinedRunHooks` over all of them."""
    if not hooks:
        return None
    if len(hooks) == 1:
        return hooks[0]
    return CombinedRunHooks(hooks)


def combine_agent_hooks(hooks: Sequence[AgentHooks]) -> AgentHooks | None:
    if not hooks:
        return None
    if len(hooks) == 1:
        return hooks[0]
    return CombinedAgentHooks(hooks)


def unique_non_empty(names: Sequence[str]) -> list[str]:
    """Strip names, drop empty ones and duplicates, keep first-seen order."""
    seen: set[str] = set()
    result: list[str] = []
    for name in names:
        value = name.strip()
        if not value or value in seen:
            continue
        seen.add(value)
        result.append(value)
    return result
