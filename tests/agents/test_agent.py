from __future__ import annotations

import asyncio

import pytest
from pydantic import BaseModel

from agentflow.agents import (
    Agent,
    AgentConfigurationError,
    AgentOutputSchema,
    Handoff,
    StopAtTools,
    tool_definitions,
)
from agentflow.core import RunConfig
from agentflow.models import EchoModelProvider
from agentflow.run_context import RunContext
from agentflow.tools import ToolContext, function_tool


def run_async(coro):
    return asyncio.run(coro)


class Verdict(BaseModel):
    approved: bool
    reason: str


class NoteArgs(BaseModel):
    note: str


@function_tool(args_model=NoteArgs, name="save_note")
def save_note(args: NoteArgs) -> str:
    """Save a note."""
    return "saved"


def test_agent_rejects_empty_name_and_unknown_tool_behavior():
    with pytest.raises(AgentConfigurationError):
        Agent("  ")
    with pytest.raises(AgentConfigurationError, match="tool_use_behavior"):
        Agent("a", tool_use_behavior="stop_everything")

    assert Agent("a", tool_use_behavior=StopAtTools(tool_names=("x",))).name == "a"


def test_handoff_names_and_descriptions():
    billing = Agent("Billing Agent", handoff_description="Handles invoices.")
    support = Agent("supportDesk")

    billing_handoff = Handoff(billing)
    support_handoff = Handoff(support, tool_name="escalate", tool_description="Escalate now.")

    assert billing_handoff.tool_name == "transfer_to_billing_agent"
    assert billing_handoff.tool_description == (
        "Handoff to the Billing Agent agent to handle the request. Handles invoices."
    )
    assert Handoff(support).tool_name == "transfer_to_support_desk"
    assert support_handoff.to_definition()["name"] == "escalate"
    assert support_handoff.to_definition()["description"] == "Escalate now."
    assert billing_handoff.transfer_message() == '{"assistant": "Billing Agent"}'


def test_duplicate_handoffs_are_rejected():
    billing = Agent("billing")
    triage = Agent("triage", handoffs=[billing, Handoff(billing)])

    with pytest.raises(AgentConfigurationError, match="duplicate handoff"):
        triage.get_handoffs()


def test_tool_definitions_include_tools_then_handoffs():
    triage = Agent("triage", tools=[save_note], handoffs=[Agent("billing")])

    names = [definition["name"] for definition in tool_definitions(triage)]

    assert names == ["save_note", "transfer_to_billing"]


def test_clone_copies_configuration_with_overrides():
    original = Agent("writer", instructions="Write.", tools=[save_note], metadata={"team": "docs"})

    copy = original.clone(name="editor", instructions="Edit.")

    assert copy.name == "editor"
    assert copy.instructions == "Edit."
    assert copy.tools == [save_note]
    assert copy.metadata == {"team": "docs"}
    assert original.instructions == "Write."


def test_output_schema_for_structured_and_plain_agents():
    assert Agent("plain").output_schema is None
    assert Agent("text", output_type=str).output_schema is None

    schema = Agent("judge", output_type=Verdict).output_schema
    assert isinstance(schema, AgentOutputSchema)
    assert schema.validate_json('{"approved": true, "reason": "fine"}') == Verdict(
        approved=True, reason="fine"
    )


def test_instructions_resolve_static_and_callable():
    async def dynamic(ctx: RunContext, agent: Agent) -> str:
        return f"You are {agent.name} for {ctx.context['user']}.  "

    ctx = RunContext(context={"user": "ada"})

    assert run_async(Agent("a", instructions="  Be brief. ").resolve_instructions(ctx)) == "Be brief."
    assert run_async(Agent("a", instructions="   ").resolve_instructions(ctx)) is None
    assert run_async(Agent("helper", instructions=dynamic).resolve_instructions(ctx)) == (
        "You are helper for ada."
    )
    with pytest.raises(AgentConfigurationError, match="must resolve to a string"):
        run_async(Agent("a", instructions=lambda ctx, agent: 42).resolve_instructions(ctx))


def test_as_tool_runs_nested_agent():
    translator = Agent("French Translator", model="echo", handoff_description="Translates to French.")
    tool = translator.as_tool(run_config=RunConfig(model_provider=EchoModelProvider(prefix="fr: ")))

    result = run_async(tool.call({"input": "hello"}, ctx=ToolContext()))

    assert tool.name == "french_translator"
    assert tool.spec.description == "Translates to French."
    assert result.success
    assert result.output == "fr: hello"


def test_as_tool_custom_output_extractor():
    agent = Agent("summarizer", model="echo")
    tool = agent.as_tool(
        tool_name="summarize",
        tool_description="Summarize text.",
        custom_output_extractor=lambda result: len(result.new_items),
        run_config=RunConfig(model_provider=EchoModelProvider()),
    )

    result = run_async(tool.call({"input": "text"}))

    assert tool.to_definition()["name"] == "summarize"
    assert result.output == 1
