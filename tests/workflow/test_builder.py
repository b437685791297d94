from __future__ import annotations

import asyncio
import copy

import pytest
from pydantic import BaseModel

from agentflow.agents import AgentHooks, ItemHelpers, RunHooks, StopAtTools
from agentflow.agents.base import HandoffInputData
from agentflow.agents.items import MessageOutputItem, ToolCallItem
from agentflow.config import AgentflowConfig
from agentflow.models import EchoModelProvider
from agentflow.models.echo import EchoModel
from agentflow.run_context import RunContext
from agentflow.sessions import InMemorySession
from agentflow.tools import (
    HostedMCPTool,
    MCPToolApprovalRequest,
    MCPToolApprovalResult,
    function_tool,
)
from agentflow.workflow import (
    WorkflowBuildError,
    WorkflowValidationError,
    compose_trace_metadata,
    load_workflow_request,
    new_default_builder,
    remove_tool_calls,
)
from agentflow.workflow.builder import prompt_for_approval
from agentflow.workflow.output_types import InlineSchemaOutputType, JSONObjectOutputType


def run_async(coro):
    return asyncio.run(coro)


BASE_MANIFEST = {
    "query": "Where is my invoice?",
    "metadata": {"channel": "web"},
    "context": {"plan": "pro"},
    "session": {
        "session_id": "sess-9",
        "history_size": 4,
        "max_turns": 3,
        "credentials": {"user_id": "u-9", "account_id": "acct-9"},
    },
    "callback": {"mode": "stdout"},
    "workflow": {
        "name": "support",
        "starting_agent": "triage",
        "metadata": {"team": "cx"},
        "agents": [
            {
                "name": "triage",
                "instructions": "Route the request.",
                "handoff": [{"agent": "billing", "instructions": "Send billing questions here."}],
            },
            {"name": "billing", "display_name": "Billing Desk", "instructions": "Handle invoices."},
        ],
    },
}


def manifest(**agent_changes):
    data = copy.deepcopy(BASE_MANIFEST)
    data["workflow"]["agents"][0].update(agent_changes)
    return load_workflow_request(data)


def build(request, builder=None):
    builder = builder or new_default_builder(model_provider=EchoModelProvider())
    return run_async(builder.build(request))


class LookupArgs(BaseModel):
    invoice_id: str


@function_tool(args_model=LookupArgs, name="lookup_invoice")
def lookup_invoice(args: LookupArgs) -> str:
    """Look up an invoice."""
    return f"invoice {args.invoice_id} is paid"


def test_build_creates_agents_handoffs_and_run_config():
    result = build(manifest())

    assert result.workflow_name == "support"
    assert result.starting_agent.name == "triage"
    assert result.agents["billing"].name == "Billing Desk"
    handoff = result.starting_agent.get_handoffs()[0]
    assert handoff.agent is result.agents["billing"]
    assert handoff.tool_name == "transfer_to_billing_desk"
    assert handoff.tool_description == "Send billing questions here."

    config = result.runner.config
    assert config.max_turns == 3
    assert config.session_history_limit == 4
    assert config.group_id == "sess-9"
    assert config.workflow_name == "support"
    assert isinstance(result.session, InMemorySession)
    assert result.session.session_id == "sess-9"


def test_trace_metadata_merges_manifest_metadata_and_identity():
    metadata = compose_trace_metadata(manifest())

    assert metadata == {
        "team": "cx",
        "channel": "web",
        "workflow_name": "support",
        "starting_agent": "triage",
        "session_id": "sess-9",
        "user_id": "u-9",
        "account_id": "acct-9",
    }


def test_inputs_disable_the_session_and_default_max_turns_apply():
    data = copy.deepcopy(BASE_MANIFEST)
    data["inputs"] = [{"type": "text", "content": "hi"}]
    data["session"]["max_turns"] = 0
    builder = new_default_builder(
        config=AgentflowConfig(max_turns=7), model_provider=EchoModelProvider()
    )

    result = build(load_workflow_request(data), builder)

    assert result.session is None
    assert result.runner.config.session is None
    assert result.runner.config.session_history_limit is None
    assert result.runner.config.max_turns == 7


def test_invalid_manifest_is_rejected_before_building():
    data = copy.deepcopy(BASE_MANIFEST)
    data["workflow"]["starting_agent"] = "nobody"

    with pytest.raises(WorkflowValidationError):
        build(load_workflow_request(data))


def test_instruction_templates_render_with_request_data():
    request = manifest(
        instructions={
            "template": (
                "You help {{ session.credentials.user_id }} on the {{ context.plan }} plan. "
                "Agents: {{ workflow.agent_names | join(', ') }}. Tone: {{ tone }}."
            ),
            "format": "jinja2",
            "variables": {"tone": "friendly"},
        }
    )

    agent = build(request).starting_agent

    assert agent.instructions == (
        "You help u-9 on the pro plan. Agents: triage, billing. Tone: friendly."
    )


def test_instruction_templates_support_custom_delimiters():
    request = manifest(
        instructions={"template": "Hello [[ agent.name ]]", "delimiters": ["[[", "]]"]}
    )

    assert build(request).starting_agent.instructions == "Hello triage"


@pytest.mark.parametrize(
    "instructions, message",
    [
        ({"template": "Hi {{ missing }}"}, "instructions: execute template"),
        ({"template": "Hi {{ broken"}, "instructions: parse template"),
        ({"template": "Hi", "format": "mustache"}, "template format 'mustache' not supported"),
    ],
)
def test_instruction_template_errors(instructions, message):
    with pytest.raises(WorkflowBuildError, match=message) as excinfo:
        build(manifest(instructions=instructions))
    assert str(excinfo.value).startswith("agent 'triage': ")


def test_model_declaration_becomes_model_and_settings():
    request = manifest(
        model={
            "model": "gpt-test",
            "temperature": 0.2,
            "max_tokens": 256,
            "reasoning": {"effort": "High", "summary": "auto", "tokens": 1024},
            "verbosity": "LOW",
            "truncation": "auto",
            "tool_choice": "required",
            "parallel_tool_calls": False,
        }
    )

    agent = build(request).starting_agent

    assert agent.model == "gpt-test"
    settings = agent.model_settings
    assert settings.temperature == 0.2
    assert settings.max_tokens == 256
    assert settings.reasoning.effort == "high"
    assert settings.reasoning.summary == "auto"
    assert settings.extra_args == {"reasoning_tokens": 1024}
    assert settings.verbosity == "low"
    assert settings.truncation == "auto"
    assert settings.tool_choice == "required"
    assert settings.parallel_tool_calls is False


def test_model_errors():
    with pytest.raises(WorkflowBuildError, match="unsupported verbosity 'loud'"):
        build(manifest(model={"model": "m", "verbosity": "loud"}))
    with pytest.raises(WorkflowBuildError, match="model: provider 'acme' not supported"):
        build(manifest(model={"model": "m", "provider": "acme"}))


def test_registered_model_provider_resolves_model_instances():
    builder = new_default_builder().with_model_provider("echo", EchoModelProvider(prefix="> "))

    agent = build(manifest(model={"model": "echo-1", "provider": "Echo"}), builder).starting_agent

    assert isinstance(agent.model, EchoModel)
    assert agent.model.name == "echo-1"
    assert builder.model_provider is builder.model_providers["echo"]


def test_function_tools_resolve_from_registry():
    builder = new_default_builder(model_provider=EchoModelProvider())
    builder.with_function_tool("lookup_invoice", lookup_invoice)

    by_name = build(manifest(tools=[{"type": "function", "name": "lookup_invoice"}]), builder)
    by_ref = build(
        manifest(tools=[{"type": "function", "config": {"function_ref": "lookup_invoice"}}]),
        builder,
    )

    assert by_name.starting_agent.tools == [lookup_invoice]
    assert by_ref.starting_agent.tools == [lookup_invoice]


def test_function_tool_factories_receive_build_environment():
    seen = []

    def factory(decl, env):
        seen.append((decl.name, env.agent_name, env.workflow_name, env.request_metadata))
        return lookup_invoice

    builder = new_default_builder(model_provider=EchoModelProvider()).with_function_tool(
        "lookup", factory
    )

    build(manifest(tools=[{"type": "function", "name": "lookup"}]), builder)

    assert seen == [("lookup", "triage", "support", {"channel": "web"})]


@pytest.mark.parametrize(
    "tools, message",
    [
        ([{"type": "function", "name": "nope"}], "tool 'function': function tool 'nope' not registered"),
        ([{"type": "teleport", "name": "x"}], "tool type 'teleport' not registered"),
        ([{"type": "computer", "name": "vm"}], "computer tool provider 'vm' not registered"),
        ([{"type": "local_shell", "name": "sh"}], "local shell executor 'sh' not registered"),
        ([{"type": "file_search"}], "file_search tool requires config.vector_store_ids"),
        ([{"type": "hosted_mcp", "name": "docs"}], "hosted_mcp tool requires config.server_url"),
        (
            [{"type": "web_search", "config": {"search_context_size": "huge"}}],
            "unsupported search_context_size 'huge'",
        ),
    ],
)
def test_tool_errors_name_the_agent(tools, message):
    with pytest.raises(WorkflowBuildError, match=message) as excinfo:
        build(manifest(tools=tools))
    assert str(excinfo.value).startswith("agent 'triage': ")


def test_hosted_tools_and_mcp_servers():
    request = manifest(
        tools=[
            {"type": "web_search", "config": {"search_context_size": "high"}},
            {"type": "file_search", "config": {"vector_store_ids": ["vs_1"], "max_num_results": 2}},
            {"type": "code_interpreter"},
            {"type": "image_generation", "config": {"size": "1024x1024"}},
            {
                "type": "hosted_mcp",
                "name": "files",
                "config": {"server_url": "https://mcp.example.com", "approval_handler": "prompt"},
                "approval_flow": {"require": "sensitive"},
            },
        ],
        mcp=[{"server_label": "docs", "address": "https://docs.example.com", "require_approval": "never"}],
    )

    tools = build(request).starting_agent.tools
    definitions = [tool.to_definition() for tool in tools]

    assert [d["type"] for d in definitions] == [
        "web_search_preview",
        "file_search",
        "code_interpreter",
        "image_generation",
        "mcp",
        "mcp",
    ]
    assert definitions[3] == {"size": "1024x1024", "type": "image_generation"}
    files, docs = tools[4], tools[5]
    assert isinstance(files, HostedMCPTool)
    assert files.server_label == "files"
    assert files.require_approval == "always"
    assert files.on_approval_request is not None
    assert docs.server_label == "docs"
    assert docs.require_approval == "never"
    assert docs.on_approval_request is None


def test_mock_sensitive_files_preset_prompts_for_approval(monkeypatch):
    monkeypatch.setenv("AGENTFLOW_MOCK_APPROVAL", "auto_approve")
    tool = build(manifest(tools=[{"type": "mock_sensitive_files"}])).starting_agent.tools[0]

    decision = run_async(tool.on_approval_request(None))

    assert tool.server_url == "mock://sensitive-files"
    assert tool.require_approval == "always"
    assert decision == MCPToolApprovalResult(approve=True)


def test_prompted_approval_declines_on_end_of_input(monkeypatch):
    def no_input(prompt):
        raise EOFError

    monkeypatch.delenv("AGENTFLOW_MOCK_APPROVAL", raising=False)
    monkeypatch.setattr("builtins.input", no_input)
    request = MCPToolApprovalRequest(
        context=RunContext(), data={"id": "apr_1", "name": "read", "server_label": "files"}
    )

    decision = run_async(prompt_for_approval(request))

    assert decision.approve is False
    assert decision.reason == "User declined approval"


def test_agent_tools_wrap_other_agents():
    builder = new_default_builder(model_provider=EchoModelProvider(prefix="billing says: "))
    builder.with_agent_tool_extractor("upper", lambda result: str(result.final_output).upper())
    request = manifest(
        agent_tools=[
            {"agent_name": "billing", "tool_name": "ask_billing", "description": "Ask billing."},
            {"agent_name": "billing", "tool_name": "shout_billing", "output_extractor": "upper"},
        ]
    )

    tools = build(request, builder).starting_agent.tools
    plain = run_async(tools[0].call({"input": "status?"}))
    shouted = run_async(tools[1].call({"input": "status?"}))

    assert [tool.name for tool in tools] == ["ask_billing", "shout_billing"]
    assert tools[0].spec.description == "Ask billing."
    assert plain.output == "billing says: status?"
    assert shouted.output == "BILLING SAYS: STATUS?"


def test_agent_tool_unknown_extractor():
    request = manifest(agent_tools=[{"agent_name": "billing", "output_extractor": "nope"}])

    with pytest.raises(WorkflowBuildError, match="output_extractor 'nope' not registered"):
        build(request)


def test_guardrail_presets_and_unknown_guardrails():
    request = manifest(
        input_guardrails=[{"name": "max_input_length", "config": {"max_chars": 10}}],
        output_guardrails=[
            {"name": "blocked_keywords", "config": {"keywords": ["refund"]}, "mode": "monitor"},
            {"name": "Sensitive_Data_Check"},
        ],
    )

    agent = build(request).starting_agent

    assert [g.get_name() for g in agent.input_guardrails] == ["max_input_length"]
    assert [g.get_name() for g in agent.output_guardrails] == [
        "blocked_keywords",
        "Sensitive_Data_Check",
    ]
    with pytest.raises(WorkflowBuildError, match="input guardrail 'toxicity' not registered"):
        build(manifest(input_guardrails=[{"name": "toxicity"}]))
    with pytest.raises(WorkflowBuildError, match="requires config.keywords"):
        build(manifest(output_guardrails=[{"name": "blocked_keywords"}]))


def test_output_types():
    inline = build(
        manifest(
            output_type={
                "name": "ticket",
                "strict": True,
                "schema": {"type": "object", "properties": {"id": {"type": "string"}}, "required": ["id"]},
            }
        )
    ).starting_agent.output_schema
    preset = build(manifest(output_type={"name": "json_object"})).starting_agent.output_schema

    assert isinstance(inline, InlineSchemaOutputType)
    assert inline.name() == "ticket"
    assert inline.is_strict_json_schema()
    assert inline.validate_json('{"id": "T-1"}') == {"id": "T-1"}
    assert isinstance(preset, JSONObjectOutputType)
    with pytest.raises(WorkflowBuildError, match="output type 'ticket_v2' not registered"):
        build(manifest(output_type={"preset_ref": "ticket_v2"}))


def test_tool_use_behaviors():
    handler = lambda ctx, results: None  # noqa: E731
    builder = new_default_builder(model_provider=EchoModelProvider())
    builder.with_tool_use_handler("first_result", handler)

    stop_at = build(
        manifest(tool_use_behavior={"mode": "stop_at_tools", "tool_names": ["lookup_invoice"]}),
        builder,
    ).starting_agent
    custom = build(
        manifest(tool_use_behavior={"mode": "custom", "handler": "first_result"}), builder
    ).starting_agent
    first = build(manifest(tool_use_behavior={"mode": "stop_on_first_tool"}), builder).starting_agent

    assert stop_at.tool_use_behavior == StopAtTools(tool_names=("lookup_invoice",))
    assert custom.tool_use_behavior is handler
    assert first.tool_use_behavior == "stop_on_first_tool"
    with pytest.raises(WorkflowBuildError, match="handler 'other' not registered"):
        build(manifest(tool_use_behavior={"mode": "custom", "handler": "other"}), builder)


def test_hooks_must_be_registered():
    agent_hooks = AgentHooks()
    first, second = RunHooks(), RunHooks()
    builder = new_default_builder(model_provider=EchoModelProvider())
    builder.with_agent_hooks("audit", agent_hooks)
    builder.with_run_hooks("start", first).with_run_hooks("finish", second)
    data = copy.deepcopy(BASE_MANIFEST)
    data["workflow"]["agents"][0]["hooks"] = ["audit", "audit"]
    data["workflow"]["on_start"] = ["start"]
    data["workflow"]["on_finish"] = ["finish", "start"]

    result = build(load_workflow_request(data), builder)

    assert result.starting_agent.hooks is agent_hooks
    assert result.runner.config.hooks.hooks == [first, second]

    data["workflow"]["on_error"] = ["alert"]
    with pytest.raises(WorkflowBuildError, match="run hook 'alert' not registered"):
        build(load_workflow_request(data), builder)
    with pytest.raises(WorkflowBuildError, match="agent hook 'audit' not registered"):
        build(manifest(hooks=["audit"]))


def test_handoff_filters():
    request = manifest(handoff=[{"agent": "billing", "input_filter": "remove_tool_calls"}])
    handoff = build(request).starting_agent.get_handoffs()[0]

    assert handoff.input_filter is remove_tool_calls
    with pytest.raises(WorkflowBuildError, match="handoff input_filter 'custom' not registered"):
        build(manifest(handoff=[{"agent": "billing", "input_filter": "custom"}]))


def test_remove_tool_calls_keeps_messages_only():
    agent = build(manifest()).starting_agent
    call = {"type": "function_call", "call_id": "c1", "name": "lookup", "arguments": "{}"}
    data = HandoffInputData(
        input_history=(
            {"role": "user", "content": "hi"},
            call,
            ItemHelpers.function_call_output("c1", "paid"),
        ),
        pre_handoff_items=(
            ToolCallItem(agent=agent, raw_item=call),
            MessageOutputItem(agent=agent, raw_item=ItemHelpers.assistant_message("ok")),
        ),
        new_items=(),
    )

    filtered = remove_tool_calls(data)

    assert filtered.input_history == ({"role": "user", "content": "hi"},)
    assert [item.type for item in filtered.pre_handoff_items] == ["message_output_item"]


def test_session_stores():
    data = copy.deepcopy(BASE_MANIFEST)
    data["session"]["persistent_store"] = "postgres"

    with pytest.raises(WorkflowBuildError, match="create session: postgres sessions need a DSN"):
        build(load_workflow_request(data))

    custom_sessions = []

    def factory(decl):
        session = InMemorySession(f"custom-{decl.session_id}")
        custom_sessions.append(session)
        return session

    builder = new_default_builder(model_provider=EchoModelProvider())
    builder.with_session_factory("memory", factory)
    result = build(manifest(), builder)

    assert result.session is custom_sessions[0]
    assert result.session.session_id == "custom-sess-9"

    builder.session_factories.clear()
    with pytest.raises(WorkflowBuildError, match="persistent_store 'memory' not registered"):
        build(manifest(), builder)
