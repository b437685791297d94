"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module defines custom exceptions for error handling in the tools.
"""

from __future__ import annotations


class ToolError(Exception):
    """Base exception for all tool-related errors."""

    pass


class ToolValidationError(ToolError):
    """Raised when tool arguments or a tool function signature are invalid."""

    pass


class ToolExecutionError(ToolError):
    pass


class ToolTimeoutError(ToolError):
    pass
