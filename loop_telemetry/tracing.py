"""OpenTelemetry tracing: provider setup, active span access, header propagation.

The tracer provider exports over OTLP gRPC (Collector / Tempo / Jaeger
compatible). Everything else in this module only reads ambient trace state.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import MutableMapping, Optional

from opentelemetry import propagate, trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TraceContext:
    """Identifiers of the span active at the time of a log call."""

    trace_id: int
    span_id: int
    trace_flags: int

    @property
    def trace_id_hex(self) -> str:
        return format(self.trace_id, "032x")

    @property
    def span_id_hex(self) -> str:
        return format(self.span_id, "016x")


def setup_tracing(resource: Resource, endpoint: str) -> TracerProvider:
    """Build a tracer provider exporting to *endpoint* and install it globally."""
    from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter

    provider = TracerProvider(resource=resource)
    exporter = OTLPSpanExporter(endpoint=endpoint, insecure=endpoint.startswith("http://"))
    provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)
    logger.info("otel_tracing_configured", extra={"endpoint": endpoint})
    return provider


def get_tracer(name: str = "loop") -> trace.Tracer:
    return trace.get_tracer(name)


def get_active_span() -> Optional[TraceContext]:
    """Return the current span's identifiers, or None when no span is recording."""
    ctx = trace.get_current_span().get_span_context()
    if not ctx.is_valid:
        return None
    return TraceContext(
        trace_id=ctx.trace_id,
        span_id=ctx.span_id,
        trace_flags=int(ctx.trace_flags),
    )


def inject_trace_headers(headers: MutableMapping[str, str]) -> MutableMapping[str, str]:
    """Add upstream trace-context headers (W3C traceparent etc.) to *headers*."""
    propagate.inject(headers)
    return headers
