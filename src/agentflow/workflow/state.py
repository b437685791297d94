from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module tracks the execution state of workflow runs per session.

The state answers "what is this session doing right now": whether a run is
in flight, finished, failed, or stopped waiting for a human to answer
hosted MCP approval requests, plus the resume token needed to continue it.
"""

import asyncio
import copy
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Protocol

from ..agents.items import MCPApprovalRequestItem, MCPApprovalResponseItem
from ..core.stream_events import RunItemStreamEvent, StreamEvent
from ..tools.base import stringify_output

logger = logging.getLogger("agentflow.workflow.state")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ExecutionStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    WAITING_APPROVAL = "waiting_approval"
    COMPLETED = "completed"
    FAILED = "failed"


RESUMABLE_STATUSES = (
    ExecutionStatus.WAITING_APPROVAL,
    ExecutionStatus.FAILED,
    ExecutionStatus.IDLE,
)


@dataclass(slots=True)
class ApprovalRequestState:
    """A hosted MCP approval request nobody has answered yet."""

    request_id: str
    agent_name: str
    server_label: str = ""
    tool_name: str = ""
    arguments: str = ""
    requested_at: datetime = field(default_factory=_utcnow)


@dataclass(slots=True)
class ApprovalDecision:
    approve: bool
    reason: str | None = None
    decided_at: datetime = field(default_factory=_utcnow)


@dataclass(slots=True)
class ExecutionState:
    """
    Latest known execution state of one session.

    Attributes:
        session_id: Session the state belongs to.
        workflow_name: Workflow that produced the state.
        status: Current status.
        run_id: Identifier of the latest run.
        resume_token: `<session_id>:<run_id>` of the latest run.
        query: Query of the latest run.
        pending_approvals: Approval requests waiting for a decision.
        decisions: Recorded approval decisions keyed by request id.
        last_response_id: Response id of the latest completed run.
        final_output: Final output of the latest completed run.
        last_error: Error text of the latest failed run.
        started_at: Start time of the latest run.
        updated_at: Time of the latest change.
    """

    session_id: str
    workflow_name: str = ""
    status: ExecutionStatus = ExecutionStatus.IDLE
    run_id: str = ""
    resume_token: str = ""
    query: str = ""
    pending_approvals: list[ApprovalRequestState] = field(default_factory=list)
    decisions: dict[str, ApprovalDecision] = field(default_factory=dict)
    last_response_id: str = ""
    final_output: Any = None
    last_error: str | None = None
    started_at: datetime | None = None
    updated_at: datetime = field(default_factory=_utcnow)

    def touch(self) -> None:
        self.updated_at = _utcnow()

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "workflow_name": self.workflow_name,
            "status": self.status.value,
            "run_id": self.run_id,
            "resume_token": self.resume_token,
            "query": self.query,
            "pending_approvals": [
                {
                    "request_id": approval.request_id,
                    "agent_name": approval.agent_name,
                    "server_label": approval.server_label,
                    "tool_name": approval.tool_name,
                    "arguments": approval.arguments,
                    "requested_at": approval.requested_at.isoformat(),
                }
                for approval in self.pending_approvals
            ],
            "last_response_id": self.last_response_id,
            "last_error": self.last_error,
            "updated_at": self.updated_at.isoformat(),
        }


class ExecutionStateStore(Protocol):
    """Persistence for execution states, keyed by session id."""

    async def load(self, session_id: str) -> ExecutionState | None: ...

    async def save(self, state: ExecutionState) -> None: ...

    async def clear(self, session_id: str) -> None: ...


class InMemoryExecutionStateStore:
    """Process-local state store; callers always receive copies."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._states: dict[str, ExecutionState] = {}

    async def load(self, session_id: str) -> ExecutionState | None:
        async with self._lock:
            state = self._states.get(session_id)
            return copy.deepcopy(state) if state is not None else None

    async def save(self, state: ExecutionState) -> None:
        async with self._lock:
            self._states[state.session_id] = copy.deepcopy(state)

    async def clear(self, session_id: str) -> None:
        async with self._lock:
            self._states.pop(session_id, None)


class ExecutionStateTracker:
    """
    Folds one run's lifecycle and stream events into the stored state.

    Every method loads the latest state, applies one change and saves it,
    so approvals resolved concurrently through the service are not lost.
    """

    def __init__(self, store: ExecutionStateStore, session_id: str, workflow_name: str) -> None:
        self.store = store
        self.session_id = session_id
        self.workflow_name = workflow_name

    async def _load(self) -> ExecutionState:
        state = await self.store.load(self.session_id)
        if state is None:
            state = ExecutionState(session_id=self.session_id, workflow_name=self.workflow_name)
        return state

    async def _save(self, state: ExecutionState) -> None:
        state.touch()
        await self.store.save(state)

    async def on_run_started(
        self, run_id: str, resume_token: str, query: str, started_at: datetime
    ) -> None:
        state = await self._load()
        state.workflow_name = self.workflow_name
        state.status = ExecutionStatus.RUNNING
        state.run_id = run_id
        state.resume_token = resume_token
        state.query = query
        state.started_at = started_at
        state.pending_approvals = []
        state.last_error = None
        state.final_output = None
        await self._save(state)

    async def on_stream_event(self, event: StreamEvent) -> None:
        if not isinstance(event, RunItemStreamEvent):
            return
        item = event.item
        if isinstance(item, MCPApprovalRequestItem):
            await self._on_approval_requested(item)
        elif isinstance(item, MCPApprovalResponseItem):
            await self._on_approval_answered(item)

    async def _on_approval_requested(self, item: MCPApprovalRequestItem) -> None:
        state = await self._load()
        request_id = item.approval_request_id
        if request_id in state.decisions:
            logger.debug("approval %s already decided; not waiting", request_id)
            return
        if any(approval.request_id == request_id for approval in state.pending_approvals):
            return
        raw = item.raw_item
        arguments = raw.get("arguments", "")
        state.pending_approvals.append(
            ApprovalRequestState(
                request_id=request_id,
                agent_name=item.agent.name,
                server_label=str(raw.get("server_label", "")),
                tool_name=str(raw.get("name", "")),
                arguments=arguments if isinstance(arguments, str) else stringify_output(arguments),
            )
        )
        state.status = ExecutionStatus.WAITING_APPROVAL
        await self._save(state)

    async def _on_approval_answered(self, item: MCPApprovalResponseItem) -> None:
        state = await self._load()
        request_id = str(item.raw_item.get("approval_request_id", ""))
        state.decisions[request_id] = ApprovalDecision(
            approve=bool(item.raw_item.get("approve")),
            reason=item.raw_item.get("reason"),
        )
        state.pending_approvals = [
            approval for approval in state.pending_approvals if approval.request_id != request_id
        ]
        if not state.pending_approvals and state.status == ExecutionStatus.WAITING_APPROVAL:
            state.status = ExecutionStatus.RUNNING
        await self._save(state)

    async def on_run_completed(self, last_response_id: str, final_output: Any) -> None:
        state = await self._load()
        state.last_response_id = last_response_id
        state.final_output = final_output
        if state.pending_approvals:
            state.status = ExecutionStatus.WAITING_APPROVAL
        else:
            state.status = ExecutionStatus.COMPLETED
        await self._save(state)

    async def on_run_failed(self, error: BaseException) -> None:
        state = await self._load()
        state.status = ExecutionStatus.FAILED
        state.last_error = str(error)
        await self._save(state)
