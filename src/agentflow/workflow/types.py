from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module defines the declarative workflow manifest models.

Manifests are plain JSON documents; every model here validates with
pydantic v2 and accepts the shorthand forms used in hand-written manifests:
a callback given as a URL string, handoffs given as agent-name strings and
instructions given as plain text.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

SUPPORTED_VERSIONS = ("", "v1")
INPUT_TYPES = ("text", "message", "json", "image", "audio", "video")
PERSISTENT_STORES = ("sqlite", "postgres", "redis", "memory")
APPROVAL_REQUIREMENTS = ("never", "always", "sensitive")
RESUME_MODES = ("auto", "manual")
GUARDRAIL_MODES = ("blocking", "monitor")
TOOL_USE_BEHAVIOR_MODES = (
    "",
    "default",
    "run_llm_again",
    "stop_on_first_tool",
    "stop_at_tools",
    "custom",
)
STDOUT_CALLBACK_MODES = ("stdout", "stdout_verbose")


class _Declaration(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class WorkflowInput(_Declaration):
    """One structured input item; converted to a model input item before the run."""

    type: str = ""
    role: str = ""
    mime_type: str = ""
    uri: str = ""
    content: Any = None


class SessionCredentials(_Declaration):
    user_id: str = ""
    account_id: str = ""
    capabilities: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)


class SessionDeclaration(_Declaration):
    """
    Conversation session of a request.

    `history_size` limits how many stored items are prepended to the model
    input (0 keeps everything); `max_turns` overrides the run's turn limit
    when positive.
    """

    session_id: str = ""
    resume_token: str = ""
    persistent_store: str = ""
    store_config: dict[str, Any] = Field(default_factory=dict)
    history_size: int = 0
    max_turns: int = 0
    credentials: SessionCredentials = Field(default_factory=SessionCredentials)


class CallbackRetry(_Declaration):
    max_attempts: int = 0
    backoff_seconds: float = 0.0


class CallbackDeclaration(_Declaration):
    """Where run events are delivered; `"https://..."` is shorthand for `{"target": ...}`."""

    target: str = ""
    mode: str = ""
    headers: dict[str, str] = Field(default_factory=dict)
    retry: CallbackRetry | None = None

    @model_validator(mode="before")
    @classmethod
    def _accept_target_string(cls, value: Any) -> Any:
        if isinstance(value, str):
            return {"target": value}
        return value

    @property
    def normalized_mode(self) -> str:
        return self.mode.strip().lower()

    def is_stdout(self) -> bool:
        return self.normalized_mode in STDOUT_CALLBACK_MODES

    def is_empty(self) -> bool:
        return (
            not self.target.strip()
            and not self.mode.strip()
            and not self.headers
            and self.retry is None
        )


class InstructionTemplate(_Declaration):
    """
    Templated instructions rendered with jinja2 at build time.

    `delimiters` overrides the variable delimiters (`{{`/`}}` by default);
    `variables` are overlaid on the built-in template data.
    """

    template: str
    format: str = ""
    delimiters: tuple[str, str] | None = None
    variables: dict[str, Any] = Field(default_factory=dict)


class InstructionDeclaration(_Declaration):
    text: str = ""
    template: InstructionTemplate | None = None

    @model_validator(mode="before")
    @classmethod
    def _accept_text_or_template(cls, value: Any) -> Any:
        if isinstance(value, str):
            return {"text": value}
        if isinstance(value, dict) and isinstance(value.get("template"), str):
            return {"template": value}
        return value

    def is_empty(self) -> bool:
        return self.template is None and not self.text.strip()


class HandoffDeclaration(_Declaration):
    agent: str = ""
    input_filter: str = ""
    instructions: str = ""
    instructions_ref: str = ""
    instructions_scope: str = ""

    @model_validator(mode="before")
    @classmethod
    def _accept_agent_name(cls, value: Any) -> Any:
        if isinstance(value, str):
            return {"agent": value}
        return value


class AgentToolReference(_Declaration):
    agent_name: str
    tool_name: str = ""
    description: str = ""
    output_extractor: str = ""


class ToolApprovalFlow(_Declaration):
    require: str = ""
    resume_mode: str = ""


class ToolDeclaration(_Declaration):
    type: str = ""
    name: str = ""
    config: dict[str, Any] = Field(default_factory=dict)
    approval_flow: ToolApprovalFlow | None = None
    hooks: list[str] = Field(default_factory=list)
    function_ref: str = ""

    def config_str(self, key: str) -> str:
        """Return `config[key]` stripped, or `""` when missing or not a string."""
        value = self.config.get(key)
        if isinstance(value, str):
            return value.strip()
        return ""


class MCPDeclaration(_Declaration):
    type: str = ""
    server_label: str = ""
    address: str = ""
    require_approval: str = ""
    additional: dict[str, Any] = Field(default_factory=dict)

    def to_tool_declaration(self) -> ToolDeclaration:
        config: dict[str, Any] = {
            "server_label": self.server_label,
            "server_url": self.address,
        }
        if self.require_approval:
            config["require_approval"] = self.require_approval
        config.update(self.additional)
        return ToolDeclaration(type="hosted_mcp", name=self.server_label, config=config)


class GuardrailDeclaration(_Declaration):
    name: str = ""
    config: dict[str, Any] = Field(default_factory=dict)
    target: str = ""
    mode: str = ""


class OutputTypeDeclaration(_Declaration):
    name: str = ""
    strict: bool = False
    schema_: dict[str, Any] | None = Field(default=None, alias="schema")
    preset_ref: str = ""


class ReasoningDeclaration(_Declaration):
    effort: str = ""
    summary: str = ""
    tokens: int = 0


class ModelDeclaration(_Declaration):
    provider: str = ""
    model: str = ""
    temperature: float | None = None
    top_p: float | None = None
    max_tokens: int | None = None
    reasoning: ReasoningDeclaration | None = None
    verbosity: str = ""
    metadata: dict[str, str] | None = None
    extra_headers: dict[str, str] | None = None
    extra_query: dict[str, str] | None = None
    tool_choice: str = ""
    parallel_tool_calls: bool | None = None
    truncation: str = ""


class ToolUseBehaviorDeclaration(_Declaration):
    mode: str = ""
    tool_names: list[str] = Field(default_factory=list)
    handler: str = ""


class AgentDeclaration(_Declaration):
    """One agent of the workflow graph; references other agents by `name`."""

    name: str = ""
    display_name: str = ""
    instructions: InstructionDeclaration = Field(default_factory=InstructionDeclaration)
    prompt_id: str = ""
    model: ModelDeclaration | None = None
    handoffs: list[HandoffDeclaration] = Field(default_factory=list, alias="handoff")
    agent_tools: list[AgentToolReference] = Field(default_factory=list)
    tools: list[ToolDeclaration] = Field(default_factory=list)
    mcp_servers: list[MCPDeclaration] = Field(default_factory=list, alias="mcp")
    input_guardrails: list[GuardrailDeclaration] = Field(default_factory=list)
    output_guardrails: list[GuardrailDeclaration] = Field(default_factory=list)
    output_type: OutputTypeDeclaration | None = None
    tool_use_behavior: ToolUseBehaviorDeclaration | None = None
    handoff_description: str = ""
    hooks: list[str] = Field(default_factory=list)
    annotations: dict[str, Any] = Field(default_factory=dict)

    @field_validator("instructions", mode="before")
    @classmethod
    def _default_instructions(cls, value: Any) -> Any:
        if value is None:
            return InstructionDeclaration()
        return value

    def handoff_names(self) -> list[str]:
        return [handoff.agent for handoff in self.handoffs if handoff.agent]


class WorkflowDeclaration(_Declaration):
    name: str = ""
    starting_agent: str = ""
    agents: list[AgentDeclaration] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)
    on_start: list[str] = Field(default_factory=list)
    on_finish: list[str] = Field(default_factory=list)
    on_error: list[str] = Field(default_factory=list)

    def agent_names(self) -> list[str]:
        return [agent.name for agent in self.agents]

    def run_hook_names(self) -> list[str]:
        return [*self.on_start, *self.on_finish, *self.on_error]


class WorkflowRequest(_Declaration):
    """
    Complete workflow manifest: what to run, with which session, and where
    to report events.
    """

    version: str = ""
    query: str = ""
    inputs: list[WorkflowInput] = Field(default_factory=list)
    session: SessionDeclaration = Field(default_factory=SessionDeclaration)
    callback: CallbackDeclaration | None = None
    callbacks: list[CallbackDeclaration] = Field(default_factory=list)
    workflow: WorkflowDeclaration = Field(default_factory=WorkflowDeclaration)
    metadata: dict[str, Any] = Field(default_factory=dict)
    context: dict[str, Any] = Field(default_factory=dict)

    def all_callbacks(self) -> list[CallbackDeclaration]:
        """Primary callback (unless empty) followed by the extra callbacks."""
        result: list[CallbackDeclaration] = []
        if self.callback is not None and not self.callback.is_empty():
            result.append(self.callback)
        result.extend(self.callbacks)
        return result


def load_workflow_request(data: str | bytes | dict[str, Any]) -> WorkflowRequest:
    """
    Parse a manifest from JSON text or an already decoded mapping.

    Raises:
        pydantic.ValidationError: If the document does not match the manifest shape.
    """
    if isinstance(data, dict):
        return WorkflowRequest.model_validate(data)
    return WorkflowRequest.model_validate_json(data)
