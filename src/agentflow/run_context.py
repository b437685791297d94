"""
Run context shared by instructions, tools, guardrails and hooks.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .models.types import Usage


@dataclass(slots=True)
class RunContext:
    """
    Mutable context object passed to instructions, tools, guardrails and hooks.

    Attributes:
        context: Caller-supplied values (user ids, workflow variables, ...).
        usage: Token usage accumulated over the run.
    """

    context: dict[str, Any] = field(default_factory=dict)
    usage: Usage = field(default_factory=Usage)

    def add_usage(self, usage: Usage) -> None:
        self.usage = self.usage.add(usage)
