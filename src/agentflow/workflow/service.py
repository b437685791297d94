from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module runs workflow manifests end to end.

`RunnerService.execute` builds the manifest, streams the run, reports every
lifecycle step to the declared callbacks, the terminal printer and the
execution state store, and returns a `RunSummary`. Sessions stopped on
hosted MCP approvals are continued with `resolve_approval` and `resume`.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from ..agents.items import RunItem
from ..config import AgentflowConfig
from ..core.result import RunResultStreaming
from ..core.stream_events import StreamEvent
from .builder import BuildResult, WorkflowBuilder, new_default_builder
from .callbacks import (
    RUN_COMPLETED,
    RUN_EVENT,
    RUN_FAILED,
    RUN_STARTED,
    CallbackEvent,
    CallbackFactory,
    PublisherSet,
    build_publishers,
    default_callback_factory,
)
from .console import ConsolePrinter
from .errors import CallbackPublishError, ExecutionStateError, WorkflowRunError
from .input_conversion import build_input_items
from .serialization import serialize_stream_event, summarize_run_item
from .state import (
    RESUMABLE_STATUSES,
    ApprovalDecision,
    ApprovalRequestState,
    ExecutionState,
    ExecutionStateStore,
    ExecutionStateTracker,
    ExecutionStatus,
    InMemoryExecutionStateStore,
)
from .types import WorkflowRequest

logger = logging.getLogger("agentflow.workflow.service")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class RunSummary:
    """
    Outcome of one workflow run.

    Attributes:
        workflow_name: Manifest workflow name.
        session_id: Session of the run; empty when the manifest names none.
        run_id: Unique id of this run.
        resume_token: `<session_id>:<run_id>`, needed to resume the session.
        final_output: Final output, or `None` when the run failed or stopped on approvals.
        new_items: Items generated during the run.
        last_response_id: Id of the last model response.
        last_agent: Name of the agent active when the run ended.
        started_at: Start time.
        completed_at: End time.
        error: Error text of a failed run.
    """

    workflow_name: str
    session_id: str
    run_id: str
    resume_token: str
    final_output: Any = None
    new_items: tuple[RunItem, ...] = ()
    last_response_id: str = ""
    last_agent: str = ""
    started_at: datetime = field(default_factory=_utcnow)
    completed_at: datetime | None = None
    error: str | None = None

    @property
    def item_count(self) -> int:
        return len(self.new_items)

    def to_dict(self) -> dict[str, Any]:
        return {
            "workflow_name": self.workflow_name,
            "session_id": self.session_id,
            "run_id": self.run_id,
            "resume_token": self.resume_token,
            "final_output": self.final_output,
            "new_items": [summarize_run_item(item) for item in self.new_items],
            "item_count": self.item_count,
            "last_response_id": self.last_response_id,
            "last_agent": self.last_agent,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "error": self.error,
        }


class _RunReporter:
    """
    Sends one run's lifecycle to the tracker, the printer and the callbacks, in that order.

    At most one terminal callback (`run.completed` or `run.failed`) is sent per run.
    """

    def __init__(
        self,
        publishers: PublisherSet,
        tracker: ExecutionStateTracker | None,
        printer: ConsolePrinter | None,
    ) -> None:
        self.publishers = publishers
        self.tracker = tracker
        self.printer = printer
        self.terminal_sent = False

    async def publish(self, event_type: str, payload: dict[str, Any]) -> None:
        if self.publishers.skip_publishing:
            return
        await self.publishers.publisher.publish(CallbackEvent(type=event_type, payload=payload))

    async def started(self, summary: RunSummary, query: str) -> None:
        if self.tracker is not None:
            await self.tracker.on_run_started(
                summary.run_id, summary.resume_token, query, summary.started_at
            )
        if self.printer is not None:
            self.printer.on_run_started(
                summary.workflow_name, summary.session_id, query, summary.run_id
            )
        await self.publish(
            RUN_STARTED,
            {
                "workflow": summary.workflow_name,
                "session": summary.session_id,
                "query": query,
                "run_id": summary.run_id,
                "resume_token": summary.resume_token,
            },
        )

    async def event(self, event: StreamEvent) -> None:
        if self.tracker is not None:
            await self.tracker.on_stream_event(event)
        if self.printer is not None:
            self.printer.on_stream_event(event)
        await self.publish(RUN_EVENT, serialize_stream_event(event))

    async def completed(self, summary: RunSummary) -> None:
        if self.tracker is not None:
            await self.tracker.on_run_completed(summary.last_response_id, summary.final_output)
        if self.printer is not None:
            self.printer.on_run_completed(summary.final_output, summary.last_agent)
        self.terminal_sent = True
        await self.publish(
            RUN_COMPLETED,
            {
                "final_output": summary.final_output,
                "last_response_id": summary.last_response_id,
                "run_id": summary.run_id,
                "resume_token": summary.resume_token,
            },
        )

    async def failed(self, error: WorkflowRunError) -> None:
        if not self.terminal_sent:
            self.terminal_sent = True
            try:
                await self.publish(RUN_FAILED, {"error": str(error)})
            except CallbackPublishError as e:
                logger.warning("could not report failure: %s", e)
        if self.tracker is not None:
            try:
                await self.tracker.on_run_failed(error)
            except Exception as e:
                logger.warning("could not record failure of session %s: %s", self.tracker.session_id, e)
        if self.printer is not None:
            self.printer.on_run_failed(error)


class RunnerService:
    """
    Executes, tracks and resumes workflow manifests.

    Example:
        >>> service = RunnerService(new_default_builder(model_provider=EchoModelProvider()))
        >>> summary = await service.execute(load_workflow_request(manifest))
    """

    def __init__(
        self,
        builder: WorkflowBuilder | None = None,
        *,
        callback_factory: CallbackFactory | None = None,
        state_store: ExecutionStateStore | None = None,
        config: AgentflowConfig | None = None,
    ) -> None:
        self.config = config or (builder.config if builder is not None else AgentflowConfig())
        self.builder = builder or new_default_builder(config=self.config)
        self.callback_factory = callback_factory or default_callback_factory(self.config)
        self.state_store: ExecutionStateStore = state_store or InMemoryExecutionStateStore()

    async def execute(self, request: WorkflowRequest) -> RunSummary:
        """
        Run a manifest to completion.

        Returns:
            Summary of the run. A run stopped on unanswered approvals
            completes with `final_output=None`; its session is then
            `waiting_approval`.

        Raises:
            WorkflowValidationError: If the manifest is invalid.
            WorkflowBuildError: If the manifest cannot be built.
            WorkflowRunError: If the run failed; `.summary` holds the partial summary.
        """
        build = await self.builder.build(request)
        try:
            publishers = build_publishers(request, self.callback_factory)
        except Exception:
            await self._close_session(build)
            raise
        try:
            return await self._execute(request, build, publishers)
        finally:
            await publishers.publisher.aclose()
            await self._close_session(build)

    async def _execute(
        self, request: WorkflowRequest, build: BuildResult, publishers: PublisherSet
    ) -> RunSummary:
        session_id = request.session.session_id.strip()
        run_id = uuid.uuid4().hex
        summary = RunSummary(
            workflow_name=build.workflow_name,
            session_id=session_id,
            run_id=run_id,
            resume_token=f"{session_id}:{run_id}",
        )
        run_input: Any = build_input_items(request.inputs) if request.inputs else request.query

        tracker = None
        if session_id:
            tracker = ExecutionStateTracker(self.state_store, session_id, build.workflow_name)
        printer = None
        if publishers.console_enabled:
            printer = ConsolePrinter(verbose=publishers.console_verbose)
        reporter = _RunReporter(publishers, tracker, printer)

        result: RunResultStreaming | None = None
        try:
            await reporter.started(summary, request.query)
            result = build.runner.run_streamed(
                build.starting_agent, run_input, context=request.context
            )
            await result.stream(reporter.event)

            summary.final_output = result.final_output
            summary.new_items = result.new_items
            summary.last_response_id = result.last_response_id()
            summary.last_agent = result.last_agent.name if result.last_agent else ""
            summary.completed_at = _utcnow()
            await reporter.completed(summary)
        except Exception as e:
            last_agent = None
            if result is not None:
                if result.last_agent is not None:
                    last_agent = result.last_agent.name
                summary.new_items = result.new_items
                summary.last_response_id = result.last_response_id()
            error = WorkflowRunError(str(e), last_agent=last_agent)
            summary.last_agent = last_agent or ""
            summary.completed_at = _utcnow()
            summary.error = str(error)
            logger.error("workflow %s run %s failed: %s", summary.workflow_name, run_id, error)
            await reporter.failed(error)
            error.summary = summary
            raise error from e

        logger.info(
            "workflow %s run %s completed (last agent: %s)",
            summary.workflow_name,
            run_id,
            summary.last_agent,
        )
        return summary

    async def _close_session(self, build: BuildResult) -> None:
        if build.session is not None and build.session.is_setup:
            await build.session.close()

    async def resume(self, request: WorkflowRequest) -> RunSummary:
        """
        Continue a session stopped on approvals or failure.

        The stored resume token must match `request.session.resume_token`;
        a request without query or inputs reuses the stored query.

        Raises:
            ExecutionStateError: If the session cannot be resumed with this request.
        """
        session_id = request.session.session_id.strip()
        if not session_id:
            raise ExecutionStateError("session.session_id is required for resume")
        token = request.session.resume_token.strip()
        if not token:
            raise ExecutionStateError("session.resume_token is required for resume")
        state = await self.state_store.load(session_id)
        if state is None:
            raise ExecutionStateError(f"no execution state for session {session_id!r}")
        if state.resume_token != token:
            raise ExecutionStateError("resume token does not match stored state")
        if state.status not in RESUMABLE_STATUSES:
            raise ExecutionStateError(f"session status {state.status.value!r} cannot be resumed")
        if state.workflow_name != request.workflow.name:
            raise ExecutionStateError(
                f"workflow name mismatch: stored={state.workflow_name!r} "
                f"request={request.workflow.name!r}"
            )
        if not request.query and not request.inputs:
            request = request.model_copy(update={"query": state.query})
        logger.info("resuming session %s of workflow %s", session_id, state.workflow_name)
        return await self.execute(request)

    async def get_execution_state(self, session_id: str) -> ExecutionState | None:
        return await self.state_store.load(session_id)

    async def clear_execution_state(self, session_id: str) -> None:
        await self.state_store.clear(session_id)

    async def pending_approvals(self, session_id: str) -> list[ApprovalRequestState]:
        """Approval requests of `session_id` still waiting for a decision."""
        state = await self.state_store.load(session_id)
        if state is None:
            return []
        return list(state.pending_approvals)

    async def resolve_approval(
        self, session_id: str, approval_id: str, approve: bool, reason: str | None = None
    ) -> ExecutionState:
        """
        Record a decision for a pending approval request.

        Once the last pending request is answered, a `waiting_approval`
        session becomes `idle` when approved and `failed` when declined.

        Raises:
            ExecutionStateError: If the session or the approval is unknown.
        """
        state = await self.state_store.load(session_id)
        if state is None:
            raise ExecutionStateError(f"no execution state for session {session_id!r}")
        if not state.pending_approvals:
            raise ExecutionStateError(f"no pending approvals for session {session_id!r}")
        if not any(approval.request_id == approval_id for approval in state.pending_approvals):
            raise ExecutionStateError(
                f"approval id {approval_id!r} not found in session {session_id!r}"
            )

        state.pending_approvals = [
            approval for approval in state.pending_approvals if approval.request_id != approval_id
        ]
        state.decisions[approval_id] = ApprovalDecision(approve=approve, reason=reason)
        if not state.pending_approvals and state.status == ExecutionStatus.WAITING_APPROVAL:
            if approve:
                state.status = ExecutionStatus.IDLE
            else:
                state.status = ExecutionStatus.FAILED
                state.last_error = reason or f"approval {approval_id} declined"
        state.touch()
        await self.state_store.save(state)
        logger.info(
            "approval %s of session %s %s", approval_id, session_id, "approved" if approve else "declined"
        )
        return state
