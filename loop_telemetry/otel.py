"""OpenTelemetry SDK bootstrap and the runtime the log emitter writes into.

``init_telemetry`` wires traces and logs to an OTLP gRPC endpoint. Until it
has run, :meth:`TelemetryRuntime.is_initialized` is False and the log
emitter skips the OpenTelemetry sink entirely.
"""
from __future__ import annotations

import atexit
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

from opentelemetry._logs import SeverityNumber, set_logger_provider
from opentelemetry.sdk._logs import LoggerProvider, LogRecord
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.trace import INVALID_SPAN_ID, INVALID_TRACE_ID, TraceFlags

from loop_telemetry.config import DEFAULT_SERVICE_VERSION, settings
from loop_telemetry.tracing import setup_tracing

logger = logging.getLogger(__name__)


@dataclass
class TelemetryConfig:
    service_name: str
    service_version: str = DEFAULT_SERVICE_VERSION
    otlp_endpoint: Optional[str] = None
    environment: Optional[str] = None
    instrument_fastapi: bool = True
    instrument_httpx: bool = True


class TelemetryRuntime:
    """Holds the SDK providers and an explicit ready flag."""

    def __init__(self) -> None:
        self._initialized = False
        self._service_name = settings.service_name
        self._tracer_provider: Optional[TracerProvider] = None
        self._logger_provider: Optional[LoggerProvider] = None

    def is_initialized(self) -> bool:
        return self._initialized

    def start(
        self,
        service_name: str,
        tracer_provider: Optional[TracerProvider],
        logger_provider: LoggerProvider,
    ) -> None:
        self._service_name = service_name
        self._tracer_provider = tracer_provider
        self._logger_provider = logger_provider
        self._initialized = True

    def get_logger(self, name: Optional[str] = None) -> Any:
        if self._logger_provider is None:
            raise RuntimeError("telemetry runtime is not initialized")
        return self._logger_provider.get_logger(name or self._service_name)

    def emit(
        self,
        severity_number: SeverityNumber,
        severity_text: str,
        body: str,
        attributes: Mapping[str, Any],
        *,
        span_id: Optional[int] = None,
        trace_id: Optional[int] = None,
        trace_flags: Optional[int] = None,
        timestamp: Optional[int] = None,
    ) -> None:
        # The OTLP encoder treats zero ids, not None, as "no span"
        record = LogRecord(
            timestamp=timestamp,
            trace_id=trace_id or INVALID_TRACE_ID,
            span_id=span_id or INVALID_SPAN_ID,
            trace_flags=TraceFlags(trace_flags or TraceFlags.DEFAULT),
            severity_text=severity_text,
            severity_number=severity_number,
            body=body,
            resource=self._logger_provider.resource if self._logger_provider else None,
            attributes=dict(attributes),
        )
        self.get_logger().emit(record)

    def shutdown(self) -> None:
        """Stop accepting records, then flush and close the providers."""
        if not self._initialized:
            return
        self._initialized = False
        if self._logger_provider is not None:
            self._logger_provider.shutdown()
        if self._tracer_provider is not None:
            self._tracer_provider.shutdown()
        logger.info("otel_shutdown_complete")


runtime = TelemetryRuntime()


def init_telemetry(
    config: Union[TelemetryConfig, str],
    service_version: str = DEFAULT_SERVICE_VERSION,
) -> TelemetryRuntime:
    """Configure OpenTelemetry for this process. Safe to call more than once."""
    if runtime.is_initialized():
        return runtime

    # A bare string is the service name
    cfg = (
        TelemetryConfig(service_name=config, service_version=service_version)
        if isinstance(config, str)
        else config
    )
    endpoint = cfg.otlp_endpoint or settings.otlp_endpoint
    environment = cfg.environment or settings.environment

    resource = Resource.create({
        "service.name": cfg.service_name,
        "service.version": cfg.service_version,
        "deployment.environment": environment,
    })

    tracer_provider = setup_tracing(resource, endpoint)
    logger_provider = _setup_logs(resource, endpoint)
    runtime.start(cfg.service_name, tracer_provider, logger_provider)

    if cfg.instrument_fastapi:
        _instrument("fastapi")
    if cfg.instrument_httpx:
        _instrument("httpx")

    atexit.register(shutdown_telemetry)
    logger.info(
        "otel_initialized",
        extra={"endpoint": endpoint, "service_name": cfg.service_name},
    )
    return runtime


def shutdown_telemetry() -> None:
    runtime.shutdown()


def _setup_logs(resource: Resource, endpoint: str) -> LoggerProvider:
    from opentelemetry.exporter.otlp.proto.grpc._log_exporter import OTLPLogExporter

    provider = LoggerProvider(resource=resource)
    exporter = OTLPLogExporter(endpoint=endpoint, insecure=endpoint.startswith("http://"))
    provider.add_log_record_processor(BatchLogRecordProcessor(exporter))
    set_logger_provider(provider)
    return provider


def _instrument(library: str) -> None:
    try:
        if library == "fastapi":
            from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
            FastAPIInstrumentor().instrument()
        elif library == "httpx":
            from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
            HTTPXClientInstrumentor().instrument()
    except Exception as exc:
        logger.warning(
            "otel_instrumentation_unavailable",
            extra={"library": library, "error": str(exc)},
        )
