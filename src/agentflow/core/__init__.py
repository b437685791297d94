"""
Run machinery: the streaming run state, its background tasks and the runner.
"""

from .queue import QUEUE_COMPLETE_SENTINEL, AsyncQueue, QueueClosedError, QueueCompleteSentinel
from .result import RunResult, RunResultStreaming, StreamVisitor
from .runner import RunConfig, Runner
from .stream_events import (
    AgentUpdatedStreamEvent,
    RawResponsesStreamEvent,
    RunItemStreamEvent,
    StreamEvent,
)
from .tasks import BackgroundTask, TaskOutcome
from .telemetry import (
    InMemoryTelemetrySink,
    NullTelemetrySink,
    OpenTelemetrySink,
    TelemetryEvent,
    TelemetrySink,
    TelemetrySpan,
)

__all__ = [
    "AgentUpdatedStreamEvent",
    "AsyncQueue",
    "BackgroundTask",
    "InMemoryTelemetrySink",
    "NullTelemetrySink",
    "OpenTelemetrySink",
    "QUEUE_COMPLETE_SENTINEL",
    "QueueClosedError",
    "QueueCompleteSentinel",
    "RawResponsesStreamEvent",
    "RunConfig",
    "RunItemStreamEvent",
    "RunResult",
    "RunResultStreaming",
    "Runner",
    "StreamEvent",
    "StreamVisitor",
    "TaskOutcome",
    "TelemetryEvent",
    "TelemetrySink",
    "TelemetrySpan",
]
