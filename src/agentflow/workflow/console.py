from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module prints the progress of a workflow run to the terminal.
"""

from typing import Any

from rich.console import Console
from rich.markup import escape

from ..core.stream_events import (
    AgentUpdatedStreamEvent,
    RawResponsesStreamEvent,
    RunItemStreamEvent,
    StreamEvent,
)
from ..tools.base import stringify_output
from .serialization import summarize_run_item


def _clip(text: str, limit: int = 160) -> str:
    text = " ".join(text.split())
    return text if len(text) <= limit else text[: limit - 3] + "..."


class ConsolePrinter:
    """
    Human-readable run progress for `stdout` callbacks.

    Agent switches, messages, tool calls, handoffs and approvals are printed
    as one line each; `verbose` also prints raw model events.
    """

    def __init__(self, *, verbose: bool = False, console: Console | None = None) -> None:
        self.verbose = verbose
        self.console = console or Console()

    def _line(self, text: str) -> None:
        self.console.print(text, highlight=False)

    def on_run_started(self, workflow_name: str, session_id: str, query: str, run_id: str) -> None:
        self.console.rule(f"[bold]{escape(workflow_name)}[/bold]")
        self._line(f"[dim]run {escape(run_id)} session {escape(session_id or '-')}[/dim]")
        if query:
            self._line(f"[bold cyan]user[/bold cyan] {escape(_clip(query))}")

    def on_stream_event(self, event: StreamEvent) -> None:
        if isinstance(event, AgentUpdatedStreamEvent):
            self._line(f"[magenta]-> agent {escape(event.new_agent.name)}[/magenta]")
            return
        if isinstance(event, RawResponsesStreamEvent):
            if self.verbose:
                self._line(f"[dim]raw {escape(str(event.data.get('type', '')))}[/dim]")
            return
        if not isinstance(event, RunItemStreamEvent):
            return

        summary = summarize_run_item(event.item)
        agent = escape(str(summary.get("agent", "")))
        if event.name == "message_output_created":
            self._line(f"[bold green]{agent}[/bold green] {escape(_clip(summary.get('text', '')))}")
        elif event.name == "tool_called":
            name = summary.get("function_name") or summary.get("tool_call", "")
            self._line(f"[yellow]{agent} calls {escape(str(name))}[/yellow]")
        elif event.name == "tool_output":
            self._line(f"[yellow]{agent} tool output[/yellow] {escape(_clip(str(summary.get('output', ''))))}")
        elif event.name == "handoff_occurred":
            self._line(
                f"[magenta]handoff {escape(summary['source_agent'])} -> "
                f"{escape(summary['target_agent'])}[/magenta]"
            )
        elif event.name == "mcp_approval_requested":
            self._line(
                f"[bold red]approval requested[/bold red] {escape(summary['approval_request_id'])} "
                f"({escape(str(summary.get('server_label', '')))}/"
                f"{escape(str(summary.get('function_name', '')))})"
            )
        elif event.name == "mcp_approval_response":
            verdict = "approved" if summary.get("approve") else "declined"
            self._line(f"[red]approval {escape(str(summary['approval_request_id']))} {verdict}[/red]")
        elif self.verbose:
            self._line(f"[dim]{escape(event.name)}[/dim]")

    def on_run_completed(self, final_output: Any, last_agent: str) -> None:
        text = final_output if isinstance(final_output, str) else stringify_output(final_output)
        self.console.rule("[bold green]completed[/bold green]")
        self._line(f"[bold]{escape(last_agent)}[/bold]: {escape(text)}")

    def on_run_failed(self, error: BaseException) -> None:
        self.console.rule("[bold red]failed[/bold red]")
        self._line(f"[red]{escape(str(error))}[/red]")
