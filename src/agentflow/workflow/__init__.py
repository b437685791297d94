from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module exposes the manifest-driven workflow runner.
"""

from .builder import (
    BuildResult,
    ToolFactoryEnv,
    WorkflowBuilder,
    compose_trace_metadata,
    new_default_builder,
    remove_tool_calls,
    render_template,
)
from .callbacks import (
    RUN_COMPLETED,
    RUN_EVENT,
    RUN_FAILED,
    RUN_STARTED,
    CallbackEvent,
    CallbackPublisher,
    HTTPCallbackPublisher,
    MultiCallbackPublisher,
    StdoutCallbackPublisher,
    build_publishers,
    default_callback_factory,
)
from .console import ConsolePrinter
from .errors import (
    CallbackPublishError,
    ExecutionStateError,
    WorkflowBuildError,
    WorkflowError,
    WorkflowRunError,
    WorkflowValidationError,
)
from .input_conversion import build_input_items, workflow_input_to_item
from .serialization import serialize_stream_event, summarize_run_item
from .service import RunnerService, RunSummary
from .state import (
    ApprovalDecision,
    ApprovalRequestState,
    ExecutionState,
    ExecutionStateStore,
    ExecutionStateTracker,
    ExecutionStatus,
    InMemoryExecutionStateStore,
)
from .types import WorkflowRequest, load_workflow_request
from .validator import validate_callback, validate_workflow_request

__all__ = [
    "ApprovalDecision",
    "ApprovalRequestState",
    "BuildResult",
    "CallbackEvent",
    "CallbackPublishError",
    "CallbackPublisher",
    "ConsolePrinter",
    "ExecutionState",
    "ExecutionStateError",
    "ExecutionStateStore",
    "ExecutionStateTracker",
    "ExecutionStatus",
    "HTTPCallbackPublisher",
    "InMemoryExecutionStateStore",
    "MultiCallbackPublisher",
    "RUN_COMPLETED",
    "RUN_EVENT",
    "RUN_FAILED",
    "RUN_STARTED",
    "RunSummary",
    "RunnerService",
    "StdoutCallbackPublisher",
    "ToolFactoryEnv",
    "WorkflowBuildError",
    "WorkflowBuilder",
    "WorkflowError",
    "WorkflowRequest",
    "WorkflowRunError",
    "WorkflowValidationError",
    "build_input_items",
    "build_publishers",
    "compose_trace_metadata",
    "default_callback_factory",
    "load_workflow_request",
    "new_default_builder",
    "remove_tool_calls",
    "render_template",
    "serialize_stream_event",
    "summarize_run_item",
    "validate_callback",
    "validate_workflow_request",
    "workflow_input_to_item",
]
