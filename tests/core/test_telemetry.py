from __future__ import annotations

import asyncio
import copy
import json

import pytest
from pydantic import BaseModel

from agentflow.agents import (
    Agent,
    BackgroundTaskError,
    GuardrailFunctionOutput,
    InputGuardrailTripwireError,
    ItemHelpers,
    input_guardrail,
)
from agentflow.core import (
    InMemoryTelemetrySink,
    NullTelemetrySink,
    OpenTelemetrySink,
    RunConfig,
    Runner,
    TelemetryEvent,
)
from agentflow.models import Model, ModelResponse, StreamCompleted, Usage
from agentflow.tools import function_tool


def run_async(coro):
    return asyncio.run(coro)


class _ScriptedModel(Model):
    def __init__(self, outputs) -> None:
        self.outputs = list(outputs)

    async def get_response(self, request):
        output = self.outputs.pop(0) if len(self.outputs) > 1 else self.outputs[0]
        return ModelResponse(output=copy.deepcopy(output), usage=Usage(requests=1), response_id="resp")

    async def stream_response(self, request):
        yield StreamCompleted(response=await self.get_response(request))


class _EchoArgs(BaseModel):
    text: str


@function_tool(args_model=_EchoArgs, name="shout")
def shout(args: _EchoArgs) -> str:
    return args.text.upper()


def test_run_records_span_turns_and_tool_calls():
    sink = InMemoryTelemetrySink()
    call = {
        "type": "function_call",
        "call_id": "c1",
        "name": "shout",
        "arguments": json.dumps({"text": "hi"}),
    }
    model = _ScriptedModel([[call], [ItemHelpers.assistant_message("HI")]])
    agent = Agent("loud", model=model, tools=[shout])
    config = RunConfig(
        telemetry=sink,
        workflow_name="shouting",
        trace_id="trace_1",
        trace_metadata={"tenant": "acme"},
    )

    result = run_async(Runner(config).run(agent, "say hi"))

    assert result.final_output == "HI"
    assert sink.counter_total("agent.turns") == 2
    tool_calls = [row for row in sink.counters() if row["name"] == "agent.tool_calls"]
    assert tool_calls == [
        {"name": "agent.tool_calls", "value": 1, "attributes": {"tool": "shout", "success": True}}
    ]

    [span] = sink.spans()
    assert span["name"] == "agent.run"
    assert span["status"] == "ok"
    assert span["error"] is None
    assert span["attributes"]["workflow_name"] == "shouting"
    assert span["attributes"]["starting_agent"] == "loud"
    assert span["attributes"]["tenant"] == "acme"
    assert span["attributes"]["turns"] == 2
    assert span["attributes"]["last_agent"] == "loud"

    [duration] = sink.histograms()
    assert duration["name"] == "agent.run.duration_ms"
    assert duration["attributes"] == {"status": "ok"}
    assert duration["value"] >= 0


def test_guardrail_tripwire_is_recorded_as_event():
    @input_guardrail(name="no_secrets")
    def no_secrets(ctx, agent, value):
        return GuardrailFunctionOutput(tripwire_triggered="secret" in value)

    sink = InMemoryTelemetrySink()
    agent = Agent(
        "guarded",
        model=_ScriptedModel([[ItemHelpers.assistant_message("ok")]]),
        input_guardrails=[no_secrets],
    )

    with pytest.raises(InputGuardrailTripwireError):
        run_async(Runner(RunConfig(telemetry=sink)).run(agent, "the secret"))

    [event] = sink.events()
    assert isinstance(event, TelemetryEvent)
    assert event.name == "guardrail.tripwire"
    assert event.attributes == {"kind": "input", "guardrail": "no_secrets", "agent": "guarded"}


def test_null_sink_is_the_default():
    assert isinstance(RunConfig().telemetry, NullTelemetrySink)
    assert NullTelemetrySink().start_span("agent.run") is None


def _otel_sink():
    pytest.importorskip("opentelemetry.sdk")
    from opentelemetry.sdk.metrics import MeterProvider
    from opentelemetry.sdk.metrics.export import InMemoryMetricReader
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import SimpleSpanProcessor
    from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

    exporter = InMemorySpanExporter()
    tracer_provider = TracerProvider()
    tracer_provider.add_span_processor(SimpleSpanProcessor(exporter))
    reader = InMemoryMetricReader()
    meter = MeterProvider(metric_readers=[reader]).get_meter("agentflow.tests")
    sink = OpenTelemetrySink(tracer=tracer_provider.get_tracer("agentflow.tests"), meter=meter)
    return sink, exporter, reader


def _data_points(reader) -> dict:
    data = reader.get_metrics_data()
    points = {}
    for resource in data.resource_metrics if data else []:
        for scope in resource.scope_metrics:
            for metric in scope.metrics:
                points[metric.name] = list(metric.data.data_points)
    return points


def test_otel_sink_exports_run_span_and_metrics():
    from opentelemetry.trace import StatusCode

    sink, exporter, reader = _otel_sink()
    agent = Agent("loud", model=_ScriptedModel([[ItemHelpers.assistant_message("HI")]]))

    result = run_async(Runner(RunConfig(telemetry=sink, workflow_name="shouting")).run(agent, "hi"))

    assert result.final_output == "HI"
    [span] = exporter.get_finished_spans()
    assert span.name == "agent.run"
    assert span.status.status_code == StatusCode.OK
    assert span.attributes["workflow_name"] == "shouting"
    assert span.attributes["turns"] == 1
    assert "trace_id" not in span.attributes

    points = _data_points(reader)
    [turns] = points["agent.turns"]
    assert turns.value == 1
    assert dict(turns.attributes) == {"agent": "loud"}
    [duration] = points["agent.run.duration_ms"]
    assert duration.count == 1


class _BrokenModel(_ScriptedModel):
    async def get_response(self, request):
        raise RuntimeError("socket closed")


def test_otel_sink_marks_failed_run_span_as_error():
    from opentelemetry.trace import StatusCode

    sink, exporter, _ = _otel_sink()
    agent = Agent("fragile", model=_BrokenModel([[]]))

    with pytest.raises(BackgroundTaskError):
        run_async(Runner(RunConfig(telemetry=sink)).run(agent, "hi"))

    [span] = exporter.get_finished_spans()
    assert span.status.status_code == StatusCode.ERROR
    assert span.status.description == "socket closed"


def test_otel_sink_counts_events_by_name():
    @input_guardrail(name="no_secrets")
    def no_secrets(ctx, agent, value):
        return GuardrailFunctionOutput(tripwire_triggered=True)

    sink, _, reader = _otel_sink()
    agent = Agent(
        "guarded",
        model=_ScriptedModel([[ItemHelpers.assistant_message("ok")]]),
        input_guardrails=[no_secrets],
    )

    with pytest.raises(InputGuardrailTripwireError):
        run_async(Runner(RunConfig(telemetry=sink)).run(agent, "anything"))

    [tripwire] = _data_points(reader)["guardrail.tripwire"]
    assert tripwire.value == 1
    assert dict(tripwire.attributes) == {"kind": "input", "guardrail": "no_secrets", "agent": "guarded"}
