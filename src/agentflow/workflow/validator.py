from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module validates workflow manifests before anything is built.

Validation is structural: it checks required fields, enumerations and
references between agents, and reports the first problem it finds.
Registry lookups (tool factories, hooks, guardrails) happen in the builder.
"""

from typing import Any, Callable

import httpx

from .errors import WorkflowValidationError
from .types import (
    APPROVAL_REQUIREMENTS,
    GUARDRAIL_MODES,
    INPUT_TYPES,
    PERSISTENT_STORES,
    RESUME_MODES,
    SUPPORTED_VERSIONS,
    TOOL_USE_BEHAVIOR_MODES,
    AgentDeclaration,
    CallbackDeclaration,
    SessionDeclaration,
    WorkflowDeclaration,
    WorkflowInput,
    WorkflowRequest,
)


def validate_workflow_request(request: WorkflowRequest) -> None:
    """
    Validate a manifest.

    Args:
        request: Parsed manifest.

    Raises:
        WorkflowValidationError: Describing the first issue encountered.
    """
    version = request.version.strip()
    if version not in SUPPORTED_VERSIONS:
        raise WorkflowValidationError(f"version {request.version!r} not supported")
    if not request.query.strip():
        raise WorkflowValidationError("query is required")

    _wrap("inputs invalid", _validate_inputs, request.inputs)
    _wrap("session invalid", _validate_session, request.session)

    callback_count = 0
    if request.callback is not None and not request.callback.is_empty():
        _wrap("callback invalid", validate_callback, request.callback)
        callback_count += 1
    for index, callback in enumerate(request.callbacks):
        _wrap(f"callbacks[{index}] invalid", validate_callback, callback)
        callback_count += 1
    if callback_count == 0:
        raise WorkflowValidationError("at least one callback is required")

    _wrap("workflow invalid", _validate_workflow, request.workflow)


def validate_callback(callback: CallbackDeclaration) -> None:
    """
    Check that a callback can be delivered.

    Stdout modes need no target; every other mode needs an absolute
    http(s) URL.

    Raises:
        ValueError: If the target is missing or not a URL.
    """
    if callback.is_stdout():
        return
    target = callback.target.strip()
    if not target:
        raise ValueError("callback target is required")
    try:
        url = httpx.URL(target)
    except (httpx.InvalidURL, TypeError) as e:
        raise ValueError(f"callback target {callback.target!r} is not a valid URL: {e}") from e
    if url.scheme not in ("http", "https") or not url.host:
        raise ValueError(f"callback target {callback.target!r} is not a valid URL")


def _wrap(prefix: str, check: Callable[[Any], None], value: Any) -> None:
    try:
        check(value)
    except ValueError as e:
        raise WorkflowValidationError(f"{prefix}: {e}") from e


def _validate_inputs(inputs: list[WorkflowInput]) -> None:
    for index, item in enumerate(inputs):
        if not item.type.strip():
            raise ValueError(f"inputs[{index}] missing type")
        if item.type.lower() not in INPUT_TYPES:
            raise ValueError(f"inputs[{index}] type {item.type!r} not supported")
        if not item.uri.strip() and item.content is None:
            raise ValueError(f"inputs[{index}] must provide either uri or content")


def _validate_session(session: SessionDeclaration) -> None:
    if not session.session_id:
        raise ValueError("session_id is required")
    if not session.credentials.user_id:
        raise ValueError("credentials.user_id is required")
    if not session.credentials.account_id:
        raise ValueError("credentials.account_id is required")
    if session.history_size < 0:
        raise ValueError("history_size cannot be negative")
    if session.max_turns < 0:
        raise ValueError("max_turns cannot be negative")
    store = session.persistent_store.strip()
    if store and store.lower() not in PERSISTENT_STORES:
        raise ValueError(f"persistent_store {session.persistent_store!r} not supported")


def _validate_hook_names(field_name: str, names: list[str]) -> None:
    for index, name in enumerate(names):
        if not name.strip():
            raise ValueError(f"{field_name}[{index}] cannot be empty")


def _validate_workflow(workflow: WorkflowDeclaration) -> None:
    if not workflow.name:
        raise ValueError("name is required")
    if not workflow.starting_agent:
        raise ValueError("starting_agent is required")
    if not workflow.agents:
        raise ValueError("agents cannot be empty")

    seen: set[str] = set()
    for index, agent in enumerate(workflow.agents):
        if not agent.name:
            raise ValueError(f"agents[{index}] missing name")
        if agent.name in seen:
            raise ValueError(f"duplicate agent name {agent.name!r}")
        seen.add(agent.name)
        try:
            _validate_agent(agent)
        except ValueError as e:
            raise ValueError(f"agent {agent.name!r} invalid: {e}") from e

    _validate_hook_names("on_start", workflow.on_start)
    _validate_hook_names("on_finish", workflow.on_finish)
    _validate_hook_names("on_error", workflow.on_error)

    if workflow.starting_agent not in seen:
        raise ValueError(f"starting_agent {workflow.starting_agent!r} not found in agents")
    for agent in workflow.agents:
        for handoff in agent.handoffs:
            if not handoff.agent.strip():
                raise ValueError(f"agent {agent.name!r} handoff missing agent")
            if handoff.agent not in seen:
                raise ValueError(f"agent {agent.name!r} handoff {handoff.agent!r} not found")
        for reference in agent.agent_tools:
            if reference.agent_name not in seen:
                raise ValueError(
                    f"agent {agent.name!r} agent_tool references unknown agent "
                    f"{reference.agent_name!r}"
                )


def _validate_agent(agent: AgentDeclaration) -> None:
    if agent.model is not None and not agent.model.model:
        raise ValueError("model.model is required when model is present")

    for tool in agent.tools:
        if not tool.type.strip():
            raise ValueError("tool missing type")
        kind = tool.type.lower()
        has_name = bool(tool.name.strip())
        if kind == "function":
            ref = tool.function_ref.strip() or tool.config_str("function_ref")
            if not ref and not has_name:
                raise ValueError("function tool requires function_ref or name")
        elif kind == "computer":
            if not tool.config_str("provider") and not has_name:
                raise ValueError("computer tool requires config.provider or name")
        elif kind == "local_shell":
            if not tool.config_str("executor_ref") and not has_name:
                raise ValueError("local_shell tool requires config.executor_ref or name")

    for tool in agent.tools:
        flow = tool.approval_flow
        if flow is not None:
            if flow.require and flow.require.lower() not in APPROVAL_REQUIREMENTS:
                raise ValueError(f"tool approval_flow.require {flow.require!r} not supported")
            if flow.resume_mode and flow.resume_mode.lower() not in RESUME_MODES:
                raise ValueError(
                    f"tool approval_flow.resume_mode {flow.resume_mode!r} not supported"
                )
        _validate_hook_names("tool hook", tool.hooks)

    for server in agent.mcp_servers:
        if not server.address.strip():
            raise ValueError("mcp address is required")

    for guardrail in [*agent.input_guardrails, *agent.output_guardrails]:
        if not guardrail.name.strip():
            raise ValueError("guardrail missing name")
        if guardrail.mode and guardrail.mode.lower() not in GUARDRAIL_MODES:
            raise ValueError(
                f"guardrail {guardrail.name!r} mode {guardrail.mode!r} not supported"
            )

    _validate_hook_names("agent hook", agent.hooks)

    behavior = agent.tool_use_behavior
    if behavior is not None:
        mode = behavior.mode.strip().lower()
        if mode == "stop_at_tools" and not behavior.tool_names:
            raise ValueError("tool_use_behavior.stop_at_tools requires tool_names")
        if mode == "custom" and not behavior.handler.strip():
            raise ValueError("tool_use_behavior.custom requires handler")
        if mode not in TOOL_USE_BEHAVIOR_MODES:
            raise ValueError(f"tool_use_behavior mode {behavior.mode!r} not supported")
