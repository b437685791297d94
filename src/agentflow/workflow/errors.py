from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module defines custom exceptions for the workflow runner service.
"""

from typing import Any


class WorkflowError(Exception):
    """Base exception for all workflow-runner failures."""

    pass


class WorkflowValidationError(WorkflowError):
    """
    Raised when a workflow manifest is invalid.

    The message names the first problem found, prefixed with the section
    it belongs to (`workflow invalid: ...`, `session invalid: ...`).
    """

    pass


class WorkflowBuildError(WorkflowError):
    """Raised when a valid manifest references something the builder cannot provide."""

    pass


class CallbackPublishError(WorkflowError):
    """Raised when a callback event could not be delivered."""

    def __init__(self, target: str, message: str) -> None:
        super().__init__(f"callback {target}: {message}")
        self.target = target


class ExecutionStateError(WorkflowError):
    """
    Raised for invalid operations on stored execution state.

    Typical cases:
    - no state stored for the session
    - unknown approval id
    - resume token mismatch
    """

    pass


class WorkflowRunError(WorkflowError):
    """A failed run, annotated with the agent that was active when it failed."""

    def __init__(self, message: str, *, last_agent: str | None = None) -> None:
        if last_agent:
            message = f"{message} (last agent: {last_agent})"
        super().__init__(message)
        self.last_agent = last_agent
        self.summary: Any = None
