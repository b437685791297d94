from __future__ import annotations

import asyncio

import pytest

from agentflow.agents import Agent
from agentflow.run_context import RunContext
from agentflow.workflow import WorkflowBuildError
from agentflow.workflow.guardrails import (
    DEFAULT_INPUT_GUARDRAILS,
    DEFAULT_OUTPUT_GUARDRAILS,
    input_text,
)
from agentflow.workflow.types import GuardrailDeclaration

AGENT = Agent("support")


def run_async(coro):
    return asyncio.run(coro)


def check_input(name, value, **decl):
    guardrail = DEFAULT_INPUT_GUARDRAILS[name](GuardrailDeclaration(name=name, **decl))
    return run_async(guardrail.run(AGENT, value, RunContext())).output


def check_output(name, value, **decl):
    guardrail = DEFAULT_OUTPUT_GUARDRAILS[name](GuardrailDeclaration(name=name, **decl))
    return run_async(guardrail.run(RunContext(), AGENT, value)).output


def test_input_text_joins_message_texts():
    items = [
        {"type": "message", "role": "user", "content": "first"},
        {"type": "message", "role": "user", "content": [{"type": "input_text", "text": "second"}]},
        {"type": "function_call_output", "call_id": "c1", "output": "ignored"},
    ]

    assert input_text("plain") == "plain"
    assert input_text(items) == "first\nsecond"


def test_max_input_length():
    ok = check_input("max_input_length", "short", config={"max_chars": 10})
    tripped = check_input("max_input_length", "far too long for it", config={"max_chars": 10})

    assert not ok.tripwire_triggered
    assert tripped.tripwire_triggered
    assert tripped.output_info == {"length": 19, "max_chars": 10}


def test_blocked_keywords_input_is_case_insensitive_by_default():
    verdict = check_input("blocked_keywords", "Tell me the PASSWORD", config={"keywords": ["password", "token"]})
    sensitive = check_input(
        "blocked_keywords", "Tell me the PASSWORD", config={"keywords": ["password"], "case_sensitive": True}
    )

    assert verdict.tripwire_triggered
    assert verdict.output_info == {"matched_keywords": ["password"]}
    assert not sensitive.tripwire_triggered


def test_output_guardrails_can_target_a_field():
    output = {"response": "fine", "notes": "internal only"}

    by_field = check_output("blocked_keywords", output, target="response", config={"keywords": ["internal"]})
    whole = check_output("blocked_keywords", output, config={"keywords": ["internal"]})
    length = check_output("max_output_length", "x" * 5, config={"max_chars": 4})

    assert not by_field.tripwire_triggered
    assert whole.tripwire_triggered
    assert length.tripwire_triggered


def test_sensitive_data_check_reports_fields():
    mapping = check_output(
        "sensitive_data_check",
        {"reasoning": "no numbers here", "response": "Call me at 555-123-4567"},
    )
    text = check_output("sensitive_data_check", "Reach support on 555.123.4567")
    clean = check_output("sensitive_data_check", "nothing to see")
    custom = check_output(
        "sensitive_data_check", {"summary": "+1 555 123 4567"}, config={"fields": ["summary"]}
    )

    assert mapping.tripwire_triggered
    assert mapping.output_info == {"reasoning_contains_phone": False, "response_contains_phone": True}
    assert text.output_info == {"response_contains_phone": True}
    assert not clean.tripwire_triggered
    assert custom.output_info == {"summary_contains_phone": True}


def test_monitor_mode_never_trips():
    verdict = check_input("max_input_length", "too long", mode="Monitor", config={"max_chars": 3})

    assert not verdict.tripwire_triggered
    assert verdict.output_info == {
        "monitor": True,
        "tripwire_triggered": True,
        "info": {"length": 8, "max_chars": 3},
    }


@pytest.mark.parametrize(
    "name, config, message",
    [
        ("max_input_length", {"max_chars": "ten"}, "config.max_chars must be a number"),
        ("max_input_length", {"max_chars": True}, "config.max_chars must be a number"),
        ("max_input_length", {"max_chars": 0}, "config.max_chars must be positive"),
        ("blocked_keywords", {}, "requires config.keywords"),
        ("blocked_keywords", {"keywords": []}, "requires config.keywords"),
    ],
)
def test_invalid_input_guardrail_config(name, config, message):
    with pytest.raises(WorkflowBuildError, match=message):
        DEFAULT_INPUT_GUARDRAILS[name](GuardrailDeclaration(name=name, config=config))


def test_sensitive_data_fields_must_be_a_list():
    with pytest.raises(WorkflowBuildError, match="config.fields must be a list"):
        DEFAULT_OUTPUT_GUARDRAILS["sensitive_data_check"](
            GuardrailDeclaration(name="sensitive_data_check", config={"fields": "response"})
        )
