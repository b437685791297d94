from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module defines provider-hosted tools (executed by the model provider) and
the locally executed computer and shell tools.
"""

import inspect
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Literal, Union

from ..models.types import ToolDefinition
from ..run_context import RunContext
from .errors import ToolValidationError


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


@dataclass(slots=True)
class WebSearchTool:
    user_location: dict[str, Any] | None = None
    search_context_size: Literal["low", "medium", "high"] = "medium"

    @property
    def name(self) -> str:
        return "web_search_preview"

    def to_definition(self) -> ToolDefinition:
        definition: ToolDefinition = {
            "type": "web_search_preview",
            "search_context_size": self.search_context_size,
        }
        if self.user_location is not None:
            definition["user_location"] = dict(self.user_location)
        return definition


@dataclass(slots=True)
class FileSearchTool:
    vector_store_ids: list[str]
    max_num_results: int | None = None
    include_search_results: bool = False
    ranking_options: dict[str, Any] | None = None
    filters: dict[str, Any] | None = None

    @property
    def name(self) -> str:
        return "file_search"

    def to_definition(self) -> ToolDefinition:
        definition: ToolDefinition = {
            "type": "file_search",
            "vector_store_ids": list(self.vector_store_ids),
        }
        if self.max_num_results is not None:
            definition["max_num_results"] = self.max_num_results
        if self.ranking_options is not None:
            definition["ranking_options"] = dict(self.ranking_options)
        if self.filters is not None:
            definition["filters"] = dict(self.filters)
        return definition


@dataclass(slots=True)
class CodeInterpreterTool:
    container: str | dict[str, Any] = field(default_factory=lambda: {"type": "auto"})

    @property
    def name(self) -> str:
        return "code_interpreter"

    def to_definition(self) -> ToolDefinition:
        return {"type": "code_interpreter", "container": self.container}


@dataclass(slots=True)
class ImageGenerationTool:
    config: dict[str, Any] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return "image_generation"

    def to_definition(self) -> ToolDefinition:
        return {**self.config, "type": "image_generation"}


@dataclass(frozen=True, slots=True)
class MCPToolApprovalRequest:
    """
    Approval request raised by a hosted MCP server.

    Attributes:
        context: Live run context.
        data: Raw `mcp_approval_request` item (id, server_label, name, arguments).
    """

    context: RunContext
    data: dict[str, Any]


@dataclass(frozen=True, slots=True)
class MCPToolApprovalResult:
    approve: bool
    reason: str | None = None


MCPApprovalFunction = Callable[
    [MCPToolApprovalRequest],
    Union[MCPToolApprovalResult, Awaitable[MCPToolApprovalResult]],
]


@dataclass(slots=True)
class HostedMCPTool:
    """
    MCP server exposed to the model through the provider.

    When `require_approval` is not `"never"`, the provider emits approval
    requests; `on_approval_request` answers them inside the run. Without a
    callback, requests are left for the caller to resolve out of band.
    """

    server_label: str
    server_url: str
    require_approval: Literal["always", "never"] | dict[str, Any] = "never"
    headers: dict[str, str] = field(default_factory=dict)
    allowed_tools: list[str] | None = None
    on_approval_request: MCPApprovalFunction | None = None

    @property
    def name(self) -> str:
        return "hosted_mcp"

    def to_definition(self) -> ToolDefinition:
        definition: ToolDefinition = {
            "type": "mcp",
            "server_label": self.server_label,
            "server_url": self.server_url,
            "require_approval": self.require_approval,
        }
        if self.headers:
            definition["headers"] = dict(self.headers)
        if self.allowed_tools is not None:
            definition["allowed_tools"] = list(self.allowed_tools)
        return definition

    async def resolve_approval(self, request: MCPToolApprovalRequest) -> MCPToolApprovalResult | None:
        if self.on_approval_request is None:
            return None
        result = await _maybe_await(self.on_approval_request(request))
        if not isinstance(result, MCPToolApprovalResult):
            raise ToolValidationError(
                f"on_approval_request for {self.server_label!r} must return MCPToolApprovalResult"
            )
        return result


class Computer(ABC):
    """
    Environment driven by computer-use actions. Methods may be sync or async.
    """

    environment: Literal["mac", "windows", "ubuntu", "browser"] = "browser"
    dimensions: tuple[int, int] = (1024, 768)

    @abstractmethod
    def screenshot(self) -> str | Awaitable[str]:
        """Return a base64-encoded PNG screenshot."""

    @abstractmethod
    def click(self, x: int, y: int, button: str) -> None | Awaitable[None]:
        pass

    @abstractmethod
    def double_click(self, x: int, y: int) -> None | Awaitable[None]:
        pass

    @abstractmethod
    def scroll(self, x: int, y: int, scroll_x: int, scroll_y: int) -> None | Awaitable[None]:
        pass

    @abstractmethod
    def type(self, text: str) -> None | Awaitable[None]:
        pass

    @abstractmethod
    def wait(self) -> None | Awaitable[None]:
        pass

    @abstractmethod
    def move(self, x: int, y: int) -> None | Awaitable[None]:
        pass

    @abstractmethod
    def keypress(self, keys: list[str]) -> None | Awaitable[None]:
        pass

    @abstractmethod
    def drag(self, path: list[tuple[int, int]]) -> None | Awaitable[None]:
        pass


@dataclass(slots=True)
class ComputerTool:
    computer: Computer

    @property
    def name(self) -> str:
        return "computer_use_preview"

    def to_definition(self) -> ToolDefinition:
        width, height = self.computer.dimensions
        return {
            "type": "computer_use_preview",
            "environment": self.computer.environment,
            "display_width": width,
            "display_height": height,
        }

    async def run_action(self, action: dict[str, Any]) -> str:
        """
        Apply one action and return the screenshot taken afterwards.

        Raises:
            ToolValidationError: For unknown action types.
        """
        kind = action.get("type")
        computer = self.computer
        if kind == "click":
            await _maybe_await(computer.click(action["x"], action["y"], action.get("button", "left")))
        elif kind == "double_click":
            await _maybe_await(computer.double_click(action["x"], action["y"]))
        elif kind == "scroll":
            await _maybe_await(
                computer.scroll(
                    action["x"], action["y"], action.get("scroll_x", 0), action.get("scroll_y", 0)
                )
            )
        elif kind == "type":
            await _maybe_await(computer.type(action["text"]))
        elif kind == "wait":
            await _maybe_await(computer.wait())
        elif kind == "move":
            await _maybe_await(computer.move(action["x"], action["y"]))
        elif kind == "keypress":
            await _maybe_await(computer.keypress(list(action.get("keys", []))))
        elif kind == "drag":
            path = [(point["x"], point["y"]) for point in action.get("path", [])]
            await _maybe_await(computer.drag(path))
        elif kind != "screenshot":
            raise ToolValidationError(f"unknown computer action {kind!r}")
        return await _maybe_await(computer.screenshot())


@dataclass(frozen=True, slots=True)
class LocalShellCommandRequest:
    """
    Shell command requested by the model.

    Attributes:
        context: Live run context.
        data: Raw `local_shell_call` item; the command sits under `action`.
    """

    context: RunContext
    data: dict[str, Any]

    @property
    def command(self) -> list[str]:
        return list(self.data.get("action", {}).get("command", []))


LocalShellExecutor = Callable[[LocalShellCommandRequest], Union[str, Awaitable[str]]]


@dataclass(slots=True)
class LocalShellTool:
    executor: LocalShellExecutor

    @property
    def name(self) -> str:
        return "local_shell"

    def to_definition(self) -> ToolDefinition:
        return {"type": "local_shell"}

    async def execute(self, request: LocalShellCommandRequest) -> str:
        return str(await _maybe_await(self.executor(request)))


HostedTool = Union[
    WebSearchTool,
    FileSearchTool,
    CodeInterpreterTool,
    ImageGenerationTool,
    HostedMCPTool,
]
