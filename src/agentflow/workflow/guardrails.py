from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module provides the guardrail presets a manifest can reference by name.

A factory receives the guardrail declaration and returns a ready guardrail.
Declarations in `monitor` mode never trip: the verdict is recorded in the
guardrail result and logged instead.
"""

import logging
import re
from typing import Any, Callable, Mapping, Sequence

from ..agents.base import Agent
from ..agents.guardrails import (
    GuardrailFunctionOutput,
    InputGuardrail,
    OutputGuardrail,
)
from ..models.types import InputItem
from ..run_context import RunContext
from ..tools.base import stringify_output
from .errors import WorkflowBuildError
from .types import GuardrailDeclaration

logger = logging.getLogger("agentflow.workflow.guardrails")

InputGuardrailFactory = Callable[[GuardrailDeclaration], InputGuardrail]
OutputGuardrailFactory = Callable[[GuardrailDeclaration], OutputGuardrail]

PHONE_PATTERN = re.compile(
    r"\b(\+?\d{1,3}[-.\s]?)?(\(\d{3}\)|\d{3})[-.\s]?\d{3}[-.\s]?\d{4}\b"
)
DEFAULT_SENSITIVE_FIELDS = ("reasoning", "response")


def _config_int(decl: GuardrailDeclaration, key: str, default: int) -> int:
    value = decl.config.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise WorkflowBuildError(f"guardrail {decl.name!r} config.{key} must be a number")
    if value < 1:
        raise WorkflowBuildError(f"guardrail {decl.name!r} config.{key} must be positive")
    return int(value)


def _config_keywords(decl: GuardrailDeclaration) -> list[str]:
    value = decl.config.get("keywords")
    if not isinstance(value, list) or not value:
        raise WorkflowBuildError(f"guardrail {decl.name!r} requires config.keywords")
    return [str(keyword) for keyword in value if str(keyword).strip()]


def input_text(value: str | Sequence[InputItem]) -> str:
    """Text of a run input: the string itself, or every message's text joined by newlines."""
    if isinstance(value, str):
        return value
    texts: list[str] = []
    for item in value:
        content = item.get("content")
        if isinstance(content, str):
            texts.append(content)
        elif isinstance(content, list):
            texts.extend(
                str(part.get("text", ""))
                for part in content
                if isinstance(part, dict) and part.get("type") in ("input_text", "output_text", "text")
            )
    return "\n".join(text for text in texts if text)


def output_text(value: Any, target: str = "") -> str:
    if target and isinstance(value, Mapping):
        value = value.get(target, "")
    if isinstance(value, str):
        return value
    return stringify_output(value)


def _is_monitor(decl: GuardrailDeclaration) -> bool:
    return decl.mode.strip().lower() == "monitor"


def _monitored(
    decl: GuardrailDeclaration, verdict: GuardrailFunctionOutput
) -> GuardrailFunctionOutput:
    if not _is_monitor(decl) or not verdict.tripwire_triggered:
        return verdict
    logger.warning("guardrail %s (monitor mode) would have tripped: %s", decl.name, verdict.output_info)
    return GuardrailFunctionOutput(
        output_info={"monitor": True, "tripwire_triggered": True, "info": verdict.output_info},
        tripwire_triggered=False,
    )


def make_input_guardrail(
    decl: GuardrailDeclaration, check: Callable[[str], GuardrailFunctionOutput]
) -> InputGuardrail:
    """Wrap a text check as an input guardrail honoring the declaration's mode."""

    def guardrail(
        context: RunContext, agent: Agent, value: str | Sequence[InputItem]
    ) -> GuardrailFunctionOutput:
        return _monitored(decl, check(input_text(value)))

    return InputGuardrail(guardrail_function=guardrail, name=decl.name)


def make_output_guardrail(
    decl: GuardrailDeclaration, check: Callable[[Any], GuardrailFunctionOutput]
) -> OutputGuardrail:
    def guardrail(context: RunContext, agent: Agent, output: Any) -> GuardrailFunctionOutput:
        return _monitored(decl, check(output))

    return OutputGuardrail(guardrail_function=guardrail, name=decl.name)


def _length_check(limit: int) -> Callable[[str], GuardrailFunctionOutput]:
    def check(text: str) -> GuardrailFunctionOutput:
        return GuardrailFunctionOutput(
            output_info={"length": len(text), "max_chars": limit},
            tripwire_triggered=len(text) > limit,
        )

    return check


def _keyword_check(keywords: list[str], case_sensitive: bool) -> Callable[[str], GuardrailFunctionOutput]:
    def check(text: str) -> GuardrailFunctionOutput:
        haystack = text if case_sensitive else text.lower()
        matched = [
            keyword
            for keyword in keywords
            if (keyword if case_sensitive else keyword.lower()) in haystack
        ]
        return GuardrailFunctionOutput(
            output_info={"matched_keywords": matched},
            tripwire_triggered=bool(matched),
        )

    return check


def max_input_length(decl: GuardrailDeclaration) -> InputGuardrail:
    """Trip when the input text exceeds `config.max_chars` (default 8000)."""
    return make_input_guardrail(decl, _length_check(_config_int(decl, "max_chars", 8000)))


def blocked_keywords_input(decl: GuardrailDeclaration) -> InputGuardrail:
    """Trip when the input contains any of `config.keywords`."""
    check = _keyword_check(_config_keywords(decl), bool(decl.config.get("case_sensitive", False)))
    return make_input_guardrail(decl, check)


def max_output_length(decl: GuardrailDeclaration) -> OutputGuardrail:
    check = _length_check(_config_int(decl, "max_chars", 8000))
    return make_output_guardrail(decl, lambda output: check(output_text(output, decl.target)))


def blocked_keywords_output(decl: GuardrailDeclaration) -> OutputGuardrail:
    check = _keyword_check(_config_keywords(decl), bool(decl.config.get("case_sensitive", False)))
    return make_output_guardrail(decl, lambda output: check(output_text(output, decl.target)))


def sensitive_data_check(decl: GuardrailDeclaration) -> OutputGuardrail:
    """
    Trip when the output contains a phone number.

    Mapping outputs are checked field by field (`config.fields`, default
    `reasoning` and `response`); the verdict reports `<field>_contains_phone`
    for each. Any other output is checked as `response`.
    """
    fields = decl.config.get("fields") or list(DEFAULT_SENSITIVE_FIELDS)
    if not isinstance(fields, list):
        raise WorkflowBuildError(f"guardrail {decl.name!r} config.fields must be a list")

    def check(output: Any) -> GuardrailFunctionOutput:
        if isinstance(output, Mapping):
            texts = {str(name): output_text(output.get(name, "")) for name in fields}
        else:
            texts = {"response": output_text(output, decl.target)}
        info = {
            f"{name}_contains_phone": bool(PHONE_PATTERN.search(text))
            for name, text in texts.items()
        }
        return GuardrailFunctionOutput(output_info=info, tripwire_triggered=any(info.values()))

    return make_output_guardrail(decl, check)


DEFAULT_INPUT_GUARDRAILS: dict[str, InputGuardrailFactory] = {
    "max_input_length": max_input_length,
    "blocked_keywords": blocked_keywords_input,
}

DEFAULT_OUTPUT_GUARDRAILS: dict[str, OutputGuardrailFactory] = {
    "max_output_length": max_output_length,
    "blocked_keywords": blocked_keywords_output,
    "sensitive_data_check": sensitive_data_check,
}

