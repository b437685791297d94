from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module exposes function tools, hosted tools, and the locally executed computer and shell tools.
"""

from typing import Union

from .base import (
    Tool,
    ToolContext,
    ToolResult,
    ToolSpec,
    as_async,
    stringify_output,
)
from .decorator import function_tool
from .errors import (
    ToolError,
    ToolExecutionError,
    ToolTimeoutError,
    ToolValidationError,
)
from .hosted import (
    CodeInterpreterTool,
    Computer,
    ComputerTool,
    FileSearchTool,
    HostedMCPTool,
    HostedTool,
    ImageGenerationTool,
    LocalShellCommandRequest,
    LocalShellExecutor,
    LocalShellTool,
    MCPToolApprovalRequest,
    MCPToolApprovalResult,
    WebSearchTool,
)

AnyTool = Union[Tool, ComputerTool, LocalShellTool, HostedTool]

__all__ = [
    "AnyTool",
    "CodeInterpreterTool",
    "Computer",
    "ComputerTool",
    "FileSearchTool",
    "HostedMCPTool",
    "HostedTool",
    "ImageGenerationTool",
    "LocalShellCommandRequest",
    "LocalShellExecutor",
    "LocalShellTool",
    "MCPToolApprovalRequest",
    "MCPToolApprovalResult",
    "Tool",
    "ToolContext",
    "ToolError",
    "ToolExecutionError",
    "ToolResult",
    "ToolSpec",
    "ToolTimeoutError",
    "ToolValidationError",
    "WebSearchTool",
    "as_async",
    "function_tool",
    "stringify_output",
]
