"""Shared observability library: correlation context, logging, tracing, metrics."""

from .context import (
    CORRELATION_ID_HEADER,
    REQUEST_ID_HEADER,
    CorrelationContext,
    correlation_scope,
    create_context_from_memo,
    create_propagation_headers,
    extract_correlation_id,
    generate_correlation_id,
    get_correlation_context,
    with_correlation_context,
    with_correlation_context_async,
)
from .logger import (
    LogEmitter,
    Logger,
    create_activity_logger,
    create_request_logger,
    create_workflow_logger,
    logger,
)
from .logging import setup_logging
from .otel import TelemetryConfig, init_telemetry, shutdown_telemetry
from .tracing import get_active_span, get_tracer
from .metrics import (
    record_activity_latency,
    record_db_query,
    record_http_request,
    record_payment_amount,
    record_payment_attempt,
    record_payment_latency,
    record_webhook_delivery,
    record_webhook_latency,
    record_workflow_completed,
    record_workflow_failed,
    record_workflow_started,
    metrics_app,
)
from .middleware import ObservabilityMiddleware
from .client import correlated_client, propagate_correlation

__all__ = [
    # Correlation context
    "CORRELATION_ID_HEADER",
    "REQUEST_ID_HEADER",
    "CorrelationContext",
    "correlation_scope",
    "create_context_from_memo",
    "create_propagation_headers",
    "extract_correlation_id",
    "generate_correlation_id",
    "get_correlation_context",
    "with_correlation_context",
    "with_correlation_context_async",
    # Logger
    "LogEmitter",
    "Logger",
    "logger",
    "create_activity_logger",
    "create_request_logger",
    "create_workflow_logger",
    "setup_logging",
    # OpenTelemetry
    "TelemetryConfig",
    "init_telemetry",
    "shutdown_telemetry",
    "get_active_span",
    "get_tracer",
    # Metrics
    "record_activity_latency",
    "record_db_query",
    "record_http_request",
    "record_payment_amount",
    "record_payment_attempt",
    "record_payment_latency",
    "record_webhook_delivery",
    "record_webhook_latency",
    "record_workflow_completed",
    "record_workflow_failed",
    "record_workflow_started",
    "metrics_app",
    # HTTP
    "ObservabilityMiddleware",
    "correlated_client",
    "propagate_correlation",
]
