"""Context-aware logger.

Every record is enriched with ``service``/``env``, the active trace ids and
the active correlation record, then written to two sinks:

1. the console (JSON in production, colorized text otherwise)
2. the OpenTelemetry log pipeline, once ``init_telemetry`` has run

Field precedence, highest first: call-site fields, bound child-logger
fields, trace/correlation context, base fields. A failure in the
OpenTelemetry sink never reaches the caller and never stops the console
line from being written.

Usage::

    from loop_telemetry import logger

    log = logger.child(component="payments")
    log.info("payment captured", order_id="o-1", amount=1200)
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Mapping, Optional, TextIO

from opentelemetry._logs import SeverityNumber

from loop_telemetry import config
from loop_telemetry.context import get_correlation_context
from loop_telemetry.logging import (
    LEVELS,
    STRUCTURAL_KEYS,
    build_console_handler,
    dumps_value,
    safe_str,
    serialize_exception,
)
from loop_telemetry.otel import TelemetryRuntime, runtime as default_runtime
from loop_telemetry.tracing import TraceContext, get_active_span

SEVERITY: Mapping[str, tuple[SeverityNumber, str]] = {
    "trace": (SeverityNumber.TRACE, "TRACE"),
    "debug": (SeverityNumber.DEBUG, "DEBUG"),
    "info": (SeverityNumber.INFO, "INFO"),
    "warn": (SeverityNumber.WARN, "WARN"),
    "error": (SeverityNumber.ERROR, "ERROR"),
    "fatal": (SeverityNumber.FATAL, "FATAL"),
}

_PRIMITIVES = (str, bool, int, float)


def to_severity(level: str) -> tuple[SeverityNumber, str]:
    """OpenTelemetry severity for *level*; unknown levels map to INFO."""
    return SEVERITY.get(level, SEVERITY["info"])


def to_attributes(fields: Mapping[str, Any]) -> dict[str, Any]:
    """Coerce log fields into values OpenTelemetry accepts as attributes."""
    attributes: dict[str, Any] = {}
    for key, value in fields.items():
        if key in STRUCTURAL_KEYS or value is None:
            continue
        if isinstance(value, BaseException):
            err = serialize_exception(value)
            attributes["exception.type"] = err["type"]
            attributes["exception.message"] = err["message"]
            attributes["exception.stacktrace"] = err["stack"]
        elif isinstance(value, _PRIMITIVES):
            attributes[key] = value
        elif isinstance(value, (list, tuple)) and _is_homogeneous(value):
            attributes[key] = list(value)
        elif isinstance(value, (Mapping, list, tuple, set, frozenset)):
            attributes[key] = dumps_value(value)
        else:
            attributes[key] = safe_str(value)
    return attributes


def _is_homogeneous(values: Any) -> bool:
    kinds = {type(v) for v in values}
    return len(kinds) == 1 and kinds.pop() in _PRIMITIVES


@dataclass(frozen=True)
class LogEvent:
    """One enriched record, shared by both sinks."""

    level: str
    message: str
    time_ns: int
    fields: dict[str, Any]
    trace_context: Optional[TraceContext] = None


class LogEmitter:
    """Builds enriched records and fans them out to the console and OTel sinks."""

    def __init__(
        self,
        settings: Optional[config.TelemetrySettings] = None,
        *,
        runtime: Optional[TelemetryRuntime] = None,
        handler: Optional[logging.Handler] = None,
        stream: Optional[TextIO] = None,
        level: Optional[str] = None,
    ) -> None:
        self.settings = settings or config.settings
        self.runtime = runtime or default_runtime
        self.console = handler or build_console_handler(self.settings.is_production, stream)
        self.level = self.settings.min_level
        if level is not None:
            self.set_level(level)
        # OTel sink failures, swallowed at emit()
        self.dropped_records = 0

    def set_level(self, level: str) -> None:
        label = config.normalize_level(level)
        if label is None:
            raise ValueError(f"unknown log level: {level!r}")
        self.level = label

    def is_enabled(self, level: str) -> bool:
        label = config.normalize_level(level) or "info"
        return LEVELS[label] >= LEVELS[self.level]

    def emit(
        self,
        level: str,
        message: str,
        fields: Optional[Mapping[str, Any]] = None,
        *,
        telemetry: bool = True,
    ) -> None:
        label = config.normalize_level(level) or "info"
        if LEVELS[label] < LEVELS[self.level]:
            return
        event = self.build_event(label, message, fields or {})
        self._write_console(event)
        if telemetry:
            self._write_telemetry(event)

    def build_event(self, level: str, message: str, fields: Mapping[str, Any]) -> LogEvent:
        record: dict[str, Any] = {
            "service": self.settings.service_name,
            "env": self.settings.environment,
        }

        span = get_active_span()
        if span is not None:
            record["trace_id"] = span.trace_id_hex
            record["span_id"] = span.span_id_hex

        ctx = get_correlation_context()
        if ctx is not None:
            record["correlation_id"] = ctx.correlation_id
            if ctx.merchant_id:
                record["merchant_id"] = ctx.merchant_id
            if ctx.order_id:
                record["order_id"] = ctx.order_id
            if ctx.workflow_id:
                record["workflow_id"] = ctx.workflow_id

        for key, value in fields.items():
            if value is not None:
                record[key] = value

        return LogEvent(
            level=level,
            message=message if isinstance(message, str) else safe_str(message),
            time_ns=time.time_ns(),
            fields=record,
            trace_context=span,
        )

    def _write_console(self, event: LogEvent) -> None:
        record = logging.LogRecord(
            name=self.settings.service_name,
            level=LEVELS[event.level],
            pathname="",
            lineno=0,
            msg=event.message,
            args=None,
            exc_info=None,
        )
        record.fields = event.fields
        record.time_ns = event.time_ns
        self.console.handle(record)

    def _write_telemetry(self, event: LogEvent) -> None:
        try:
            if not self.runtime.is_initialized():
                return
            severity_number, severity_text = to_severity(event.level)
            span = event.trace_context
            self.runtime.emit(
                severity_number,
                severity_text,
                event.message,
                to_attributes(event.fields),
                span_id=span.span_id if span else None,
                trace_id=span.trace_id if span else None,
                trace_flags=span.trace_flags if span else None,
                timestamp=event.time_ns,
            )
        except Exception:
            self.dropped_records += 1


class Logger:
    """Leveled logging façade carrying immutable bound fields.

    ``child()`` returns a new logger; the parent's bindings never change.
    """

    __slots__ = ("_emitter", "_bindings")

    def __init__(self, emitter: LogEmitter, bindings: Optional[Mapping[str, Any]] = None) -> None:
        self._emitter = emitter
        self._bindings = MappingProxyType(dict(bindings or {}))

    @property
    def emitter(self) -> LogEmitter:
        return self._emitter

    @property
    def bindings(self) -> Mapping[str, Any]:
        return self._bindings

    def child(self, **bindings: Any) -> "Logger":
        merged = dict(self._bindings)
        merged.update((key, value) for key, value in bindings.items() if value is not None)
        return Logger(self._emitter, merged)

    def is_enabled(self, level: str) -> bool:
        return self._emitter.is_enabled(level)

    def log(self, level: str, msg: str, /, **fields: Any) -> None:
        if not self._emitter.is_enabled(level):
            return
        merged = dict(self._bindings)
        merged.update((key, value) for key, value in fields.items() if value is not None)
        self._emitter.emit(level, msg, merged)

    def trace(self, msg: str, /, **fields: Any) -> None:
        self.log("trace", msg, **fields)

    def debug(self, msg: str, /, **fields: Any) -> None:
        self.log("debug", msg, **fields)

    def info(self, msg: str, /, **fields: Any) -> None:
        self.log("info", msg, **fields)

    def warn(self, msg: str, /, **fields: Any) -> None:
        self.log("warn", msg, **fields)

    warning = warn

    def error(self, msg: str, /, **fields: Any) -> None:
        self.log("error", msg, **fields)

    def fatal(self, msg: str, /, **fields: Any) -> None:
        self.log("fatal", msg, **fields)


logger = Logger(LogEmitter())


def create_activity_logger(activity_name: str, correlation_id: Optional[str] = None) -> Logger:
    return logger.child(activity=activity_name, correlation_id=correlation_id)


def create_workflow_logger(workflow_id: str, correlation_id: Optional[str] = None) -> Logger:
    return logger.child(workflow_id=workflow_id, correlation_id=correlation_id)


def create_request_logger(request_id: str, method: str, path: str) -> Logger:
    return logger.child(request_id=request_id, method=method, path=path)
