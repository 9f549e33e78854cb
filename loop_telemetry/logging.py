"""Console formatting and the stdlib ``logging`` bridge.

Console lines come in two shapes:

- production: one JSON object per line,
  ``{"time", "level", "msg", "service", "env", ...fields}``
- everywhere else: a colorized header line with the fields dumped beneath it

Formatting never raises for odd field values. Anything ``json`` cannot
encode is coerced to a string.
"""
from __future__ import annotations

import json
import logging
import math
import sys
import traceback
from datetime import date, datetime, time as dt_time, timezone
from typing import TYPE_CHECKING, Any, ClassVar, Optional, TextIO

if TYPE_CHECKING:
    from loop_telemetry.logger import LogEmitter

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

# Ascending; level_for() relies on the order
LEVELS = {
    "trace": TRACE,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
    "fatal": logging.CRITICAL,
}

STRUCTURAL_KEYS = frozenset({"time", "level", "msg"})

# Keys the console header already shows
_HEADER_KEYS = frozenset({"service", "env"})

# Stdlib LogRecord attributes that are not user fields
_RECORD_ATTRS = frozenset({
    "name", "msg", "args", "levelname", "levelno", "pathname",
    "filename", "module", "exc_info", "exc_text", "stack_info",
    "lineno", "funcName", "created", "msecs", "relativeCreated",
    "thread", "threadName", "processName", "process", "message",
    "taskName", "fields", "time_ns",
})

# Loggers whose records must not be fed back into the OTel pipeline
_TELEMETRY_LOGGER_PREFIX = "opentelemetry"


def level_for(levelno: int) -> str:
    """Map a stdlib level number onto the nearest level label at or below it."""
    label = "trace"
    for name, number in LEVELS.items():
        if levelno >= number:
            label = name
    return label


def safe_str(value: Any) -> str:
    try:
        return str(value)
    except Exception:
        return f"<unprintable {type(value).__name__}>"


def serialize_exception(exc: BaseException) -> dict[str, str]:
    return {
        "type": type(exc).__name__,
        "message": safe_str(exc),
        "stack": "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
    }


def _json_default(value: Any) -> Any:
    if isinstance(value, BaseException):
        return serialize_exception(value)
    if isinstance(value, (datetime, date, dt_time)):
        return value.isoformat()
    if isinstance(value, (set, frozenset)):
        return list(value)
    return safe_str(value)


def dumps_value(value: Any) -> str:
    """JSON-encode a single field value, falling back to its string form."""
    try:
        return json.dumps(value, default=_json_default, allow_nan=False)
    except (TypeError, ValueError, RecursionError):
        return safe_str(value)


def safe_json_dumps(data: dict[str, Any]) -> str:
    """``json.dumps`` that degrades to string values instead of raising."""
    try:
        return json.dumps(data, default=_json_default, allow_nan=False)
    except (TypeError, ValueError, RecursionError):
        flat = {}
        for key, value in data.items():
            if isinstance(value, float) and not math.isfinite(value):
                flat[safe_str(key)] = safe_str(value)
            elif value is None or isinstance(value, (str, int, float, bool)):
                flat[safe_str(key)] = value
            else:
                flat[safe_str(key)] = safe_str(value)
        return json.dumps(flat)


def _record_time(record: logging.LogRecord) -> datetime:
    time_ns = getattr(record, "time_ns", None)
    seconds = time_ns / 1e9 if time_ns is not None else record.created
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def _record_fields(record: logging.LogRecord) -> dict[str, Any]:
    return getattr(record, "fields", None) or {}


class JsonFormatter(logging.Formatter):
    """One machine-parseable JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = _record_time(record).isoformat(timespec="milliseconds")
        payload: dict[str, Any] = {
            "time": timestamp.replace("+00:00", "Z"),
            "level": level_for(record.levelno),
            "msg": record.getMessage(),
        }
        for key, value in _record_fields(record).items():
            if key not in STRUCTURAL_KEYS:
                payload[key] = value
        return safe_json_dumps(payload)


class ConsoleFormatter(logging.Formatter):
    """Human-oriented colored line with the structured fields beneath it."""

    COLORS: ClassVar[dict[str, str]] = {
        "trace": "\033[90m",  # Grey
        "debug": "\033[36m",  # Cyan
        "info": "\033[32m",  # Green
        "warn": "\033[33m",  # Yellow
        "error": "\033[31m",  # Red
        "fatal": "\033[35m",  # Magenta
    }
    RESET: ClassVar[str] = "\033[0m"
    INDENT: ClassVar[str] = "    "

    def __init__(self, *, colorize: bool = True) -> None:
        super().__init__()
        self.colorize = colorize

    def format(self, record: logging.LogRecord) -> str:
        label = level_for(record.levelno)
        fields = _record_fields(record)
        timestamp = _record_time(record).strftime("%H:%M:%S.%f")[:-3]

        level_text = label.upper()
        if self.colorize:
            level_text = f"{self.COLORS.get(label, '')}{level_text}{self.RESET}"

        origin = "/".join(
            safe_str(fields[key]) for key in ("service", "env") if key in fields
        )
        header = f"[{timestamp}] {level_text}"
        if origin:
            header += f" ({origin})"
        lines = [f"{header}: {record.getMessage()}"]

        for key, value in fields.items():
            if key in STRUCTURAL_KEYS or key in _HEADER_KEYS:
                continue
            lines.append(f"{self.INDENT}{key}: {self._render(value)}")
        return "\n".join(lines)

    def _render(self, value: Any) -> str:
        if isinstance(value, str):
            return value
        if isinstance(value, BaseException):
            stack = serialize_exception(value)["stack"].rstrip("\n")
            return ("\n" + self.INDENT * 2).join([""] + stack.splitlines())
        return dumps_value(value)


class _StdoutHandler(logging.StreamHandler):
    """StreamHandler bound to whatever ``sys.stdout`` is at write time."""

    def __init__(self, level: int = logging.NOTSET) -> None:
        logging.Handler.__init__(self, level)

    @property
    def stream(self) -> TextIO:  # type: ignore[override]
        return sys.stdout


def build_console_handler(
    production: bool, stream: Optional[TextIO] = None, *, colorize: bool = True
) -> logging.Handler:
    handler: logging.Handler
    if stream is None:
        handler = _StdoutHandler()
    else:
        handler = logging.StreamHandler(stream)
    if production:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(ConsoleFormatter(colorize=colorize))
    return handler


class LoopLogHandler(logging.Handler):
    """Route stdlib ``logging`` records through a :class:`LogEmitter`.

    ``extra={...}`` attributes become fields, the logger name becomes
    ``logger`` and ``exc_info`` becomes ``err``.
    """

    def __init__(self, emitter: "LogEmitter", level: int = logging.NOTSET) -> None:
        super().__init__(level)
        self.emitter = emitter

    def emit(self, record: logging.LogRecord) -> None:
        try:
            fields: dict[str, Any] = {"logger": record.name}
            for key, value in record.__dict__.items():
                if key not in _RECORD_ATTRS:
                    fields[key] = value
            if record.exc_info and record.exc_info[1] is not None:
                fields["err"] = record.exc_info[1]
            self.emitter.emit(
                level_for(record.levelno),
                record.getMessage(),
                fields,
                telemetry=not record.name.startswith(_TELEMETRY_LOGGER_PREFIX),
            )
        except Exception:
            self.handleError(record)


def setup_logging(level: Optional[str] = None) -> None:
    """Send all stdlib logging through the loop logger's sinks.

    *level* overrides the configured threshold; by default it comes from
    ``LOG_LEVEL`` / ``ENVIRONMENT``.
    """
    from loop_telemetry.logger import logger as root_logger

    emitter = root_logger.emitter
    if level is not None:
        emitter.set_level(level)

    root = logging.getLogger()
    root.handlers = [LoopLogHandler(emitter)]
    root.setLevel(LEVELS[emitter.level])
    # Suppress noisy uvicorn access logs in favour of our middleware
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
