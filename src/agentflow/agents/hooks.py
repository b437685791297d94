"""
Lifecycle hooks for runs and individual agents.

All methods are async no-ops; subclasses override what they need.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ..models.types import InputItem, ModelResponse
from ..run_context import RunContext

if TYPE_CHECKING:
    from ..tools import AnyTool
    from .base import Agent


class RunHooks:
    """Callbacks for every agent of a run."""

    async def on_agent_start(self, context: RunContext, agent: Agent) -> None:
        """Called before an agent's first turn, and again after each handoff to it."""

    async def on_agent_end(self, context: RunContext, agent: Agent, output: Any) -> None:
        """Called when an agent produces the final output."""

    async def on_handoff(
        self, context: RunContext, from_agent: Agent, to_agent: Agent
    ) -> None:
        """Called when control moves from `from_agent` to `to_agent`."""

    async def on_tool_start(self, context: RunContext, agent: Agent, tool: AnyTool) -> None:
        pass

    async def on_tool_end(
        self, context: RunContext, agent: Agent, tool: AnyTool, result: str
    ) -> None:
        pass

    async def on_llm_start(
        self,
        context: RunContext,
        agent: Agent,
        system_prompt: str | None,
        input_items: list[InputItem],
    ) -> None:
        pass

    async def on_llm_end(
        self, context: RunContext, agent: Agent, response: ModelResponse
    ) -> None:
        pass


class AgentHooks:
    """Callbacks scoped to one agent; set on `Agent.hooks`."""

    async def on_start(self, context: RunContext, agent: Agent) -> None:
        pass

    async def on_end(self, context: RunContext, agent: Agent, output: Any) -> None:
        pass

    async def on_handoff(self, context: RunContext, agent: Agent, source: Agent) -> None:
        """Called when `agent` receives control from `source`."""

    async def on_tool_start(
        self, context: RunContext, agent: Agent, tool: AnyTool, arguments: str
    ) -> None:
        pass

    async def on_tool_end(
        self, context: RunContext, agent: Agent, tool: AnyTool, result: str
    ) -> None:
        pass

    async def on_llm_start(
        self,
        context: RunContext,
        agent: Agent,
        system_prompt: str | None,
        input_items: list[InputItem],
    ) -> None:
        pass

    async def on_llm_end(
        self, context: RunContext, agent: Agent, response: ModelResponse
    ) -> None:
        pass
