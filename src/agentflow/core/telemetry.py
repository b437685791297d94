"""
Telemetry sinks for run observability.

A run reports one `agent.run` span, counters, a duration histogram and
point-in-time events through a `TelemetrySink`. `NullTelemetrySink` drops
everything and is the default. `InMemoryTelemetrySink` keeps what it is
given for assertions. `OpenTelemetrySink` forwards to an OpenTelemetry
tracer and meter (the `otel` extra).
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Protocol

from ..models.types import JSONValue

logger = logging.getLogger("agentflow.core.telemetry")

Attributes = dict[str, JSONValue]


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True, slots=True)
class TelemetryEvent:
    """
    Point-in-time telemetry event.

    Attributes:
        name: Event name (for example `guardrail.tripwire`).
        timestamp_ms: Epoch milliseconds at emission time.
        attributes: JSON-safe event attributes.
    """

    name: str
    timestamp_ms: int
    attributes: Attributes = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class TelemetrySpan:
    """Open span handed back by `start_span`; `handle` is the backend's own span object."""

    name: str
    started_at_ms: int
    attributes: Attributes = field(default_factory=dict)
    handle: Any = None


class TelemetrySink(Protocol):
    def record_event(self, event: TelemetryEvent) -> None: ...

    def start_span(self, name: str, *, attributes: Attributes | None = None) -> TelemetrySpan | None: ...

    def end_span(
        self,
        span: TelemetrySpan | None,
        *,
        status: str,
        error: str | None = None,
        attributes: Attributes | None = None,
    ) -> None:
        """
        Close `span` with a terminal `status` (`ok`, `error` or `cancelled`).

        `attributes` are merged over the ones given to `start_span`.
        """
        ...

    def increment_counter(
        self, name: str, value: int = 1, *, attributes: Attributes | None = None
    ) -> None: ...

    def record_histogram(
        self, name: str, value: float, *, attributes: Attributes | None = None
    ) -> None: ...


class NullTelemetrySink:
    """Sink that records nothing."""

    def record_event(self, event: TelemetryEvent) -> None:
        pass

    def start_span(self, name: str, *, attributes: Attributes | None = None) -> TelemetrySpan | None:
        return None

    def end_span(
        self,
        span: TelemetrySpan | None,
        *,
        status: str,
        error: str | None = None,
        attributes: Attributes | None = None,
    ) -> None:
        pass

    def increment_counter(
        self, name: str, value: int = 1, *, attributes: Attributes | None = None
    ) -> None:
        pass

    def record_histogram(
        self, name: str, value: float, *, attributes: Attributes | None = None
    ) -> None:
        pass


class InMemoryTelemetrySink(NullTelemetrySink):
    """Keeps every measurement in emission order."""

    def __init__(self) -> None:
        self._events: list[TelemetryEvent] = []
        self._rows: list[tuple[str, dict[str, Any]]] = []

    def _select(self, kind: str) -> list[dict[str, Any]]:
        return [dict(row) for row_kind, row in self._rows if row_kind == kind]

    def record_event(self, event: TelemetryEvent) -> None:
        self._events.append(event)

    def start_span(self, name: str, *, attributes: Attributes | None = None) -> TelemetrySpan:
        return TelemetrySpan(name=name, started_at_ms=now_ms(), attributes=dict(attributes or {}))

    def end_span(
        self,
        span: TelemetrySpan | None,
        *,
        status: str,
        error: str | None = None,
        attributes: Attributes | None = None,
    ) -> None:
        if span is None:
            return
        self._rows.append(
            (
                "span",
                {
                    "name": span.name,
                    "started_at_ms": span.started_at_ms,
                    "ended_at_ms": now_ms(),
                    "status": status,
                    "error": error,
                    "attributes": {**span.attributes, **(attributes or {})},
                },
            )
        )

    def increment_counter(
        self, name: str, value: int = 1, *, attributes: Attributes | None = None
    ) -> None:
        self._rows.append(
            ("counter", {"name": name, "value": int(value), "attributes": dict(attributes or {})})
        )

    def record_histogram(
        self, name: str, value: float, *, attributes: Attributes | None = None
    ) -> None:
        self._rows.append(
            ("histogram", {"name": name, "value": float(value), "attributes": dict(attributes or {})})
        )

    def events(self) -> list[TelemetryEvent]:
        return list(self._events)

    def spans(self) -> list[dict[str, Any]]:
        return self._select("span")

    def counters(self) -> list[dict[str, Any]]:
        return self._select("counter")

    def counter_total(self, name: str) -> int:
        """Sum of every increment recorded for counter `name`."""
        return sum(row["value"] for row in self._select("counter") if row["name"] == name)

    def histograms(self) -> list[dict[str, Any]]:
        return self._select("histogram")


def _otel_value(value: JSONValue) -> Any:
    if isinstance(value, (str, bool, int, float)):
        return value
    if isinstance(value, list):
        return [str(item) for item in value]
    return str(value)


def _otel_attributes(attributes: Attributes | None) -> dict[str, Any]:
    # OpenTelemetry rejects None attribute values.
    return {
        str(key): _otel_value(value)
        for key, value in (attributes or {}).items()
        if value is not None
    }


class OpenTelemetrySink(NullTelemetrySink):
    """
    Forwards run telemetry to OpenTelemetry.

    Without an explicit `tracer` and `meter` the global providers are used.
    Events become counters named after the event. Backend failures are
    logged at debug level and never reach the run.

    Raises:
        RuntimeError: At construction, if `opentelemetry-api` is not installed.
    """

    def __init__(self, tracer: Any = None, meter: Any = None, *, scope: str = "agentflow") -> None:
        try:
            from opentelemetry import metrics, trace
        except ImportError as e:
            raise RuntimeError(
                "OpenTelemetrySink requires 'opentelemetry-api' (pip install agentflow[otel])"
            ) from e
        self._trace = trace
        self._tracer = tracer or trace.get_tracer(scope)
        self._meter = meter or metrics.get_meter(scope)
        self._instruments: dict[tuple[str, str], Any] = {}

    def _instrument(self, kind: str, name: str) -> Any:
        key = (kind, name)
        if key not in self._instruments:
            self._instruments[key] = getattr(self._meter, f"create_{kind}")(name)
        return self._instruments[key]

    def record_event(self, event: TelemetryEvent) -> None:
        self.increment_counter(event.name, attributes=event.attributes)

    def start_span(self, name: str, *, attributes: Attributes | None = None) -> TelemetrySpan | None:
        try:
            handle = self._tracer.start_span(name, attributes=_otel_attributes(attributes))
        except Exception:
            logger.debug("could not start span %s", name, exc_info=True)
            return None
        return TelemetrySpan(
            name=name, started_at_ms=now_ms(), attributes=dict(attributes or {}), handle=handle
        )

    def end_span(
        self,
        span: TelemetrySpan | None,
        *,
        status: str,
        error: str | None = None,
        attributes: Attributes | None = None,
    ) -> None:
        if span is None or span.handle is None:
            return
        if status == "ok":
            outcome = self._trace.Status(self._trace.StatusCode.OK)
        else:
            outcome = self._trace.Status(self._trace.StatusCode.ERROR, error or status)
        try:
            span.handle.set_attributes(_otel_attributes(attributes))
            span.handle.set_status(outcome)
            span.handle.end()
        except Exception:
            logger.debug("could not end span %s", span.name, exc_info=True)

    def increment_counter(
        self, name: str, value: int = 1, *, attributes: Attributes | None = None
    ) -> None:
        try:
            self._instrument("counter", name).add(int(value), attributes=_otel_attributes(attributes))
        except Exception:
            logger.debug("could not record counter %s", name, exc_info=True)

    def record_histogram(
        self, name: str, value: float, *, attributes: Attributes | None = None
    ) -> None:
        try:
            self._instrument("histogram", name).record(
                float(value), attributes=_otel_attributes(attributes)
            )
        except Exception:
            logger.debug("could not record histogram %s", name, exc_info=True)
