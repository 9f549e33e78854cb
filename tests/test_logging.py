"""Tests for console formatters and the stdlib logging bridge."""

import json
import logging

import pytest

from loop_telemetry.logger import logger as root_logger
from loop_telemetry.logging import (
    TRACE,
    ConsoleFormatter,
    JsonFormatter,
    LoopLogHandler,
    build_console_handler,
    dumps_value,
    level_for,
    safe_json_dumps,
    setup_logging,
)


def make_record(msg="Test message", level=logging.INFO, **fields):
    record = logging.LogRecord(
        name="test.logger",
        level=level,
        pathname="",
        lineno=0,
        msg=msg,
        args=None,
        exc_info=None,
    )
    record.fields = {"service": "loop", "env": "development", **fields}
    return record


@pytest.fixture
def bridged(emitter):
    """A stdlib logger whose records go through the test emitter."""
    loggers = []

    def _make(name):
        std = logging.getLogger(name)
        std.handlers = [LoopLogHandler(emitter)]
        std.propagate = False
        std.setLevel(logging.DEBUG)
        loggers.append(std)
        return std

    yield _make
    for std in loggers:
        std.handlers = []
        std.propagate = True


class TestLevels:
    @pytest.mark.parametrize(
        "levelno,label",
        [
            (TRACE, "trace"),
            (logging.DEBUG, "debug"),
            (logging.INFO, "info"),
            (25, "info"),
            (logging.WARNING, "warn"),
            (logging.ERROR, "error"),
            (logging.CRITICAL, "fatal"),
            (1, "trace"),
        ],
    )
    def test_level_for(self, levelno, label):
        assert level_for(levelno) == label

    def test_trace_level_name_registered(self):
        assert logging.getLevelName(TRACE) == "TRACE"


class TestJsonFormatter:
    def test_basic_format(self):
        data = json.loads(JsonFormatter().format(make_record(order_id="o-1")))
        assert data["msg"] == "Test message"
        assert data["level"] == "info"
        assert data["service"] == "loop"
        assert data["env"] == "development"
        assert data["order_id"] == "o-1"
        assert list(data)[:3] == ["time", "level", "msg"]

    def test_uses_event_time(self):
        record = make_record()
        record.time_ns = 1_700_000_000_123_000_000
        data = json.loads(JsonFormatter().format(record))
        assert data["time"] == "2023-11-14T22:13:20.123Z"

    def test_record_without_fields(self):
        record = make_record()
        del record.fields
        data = json.loads(JsonFormatter().format(record))
        assert set(data) == {"time", "level", "msg"}


class TestConsoleFormatter:
    def test_colorized_header(self):
        output = ConsoleFormatter().format(make_record(level=logging.ERROR))
        assert ConsoleFormatter.COLORS["error"] in output
        assert ConsoleFormatter.RESET in output
        assert "(loop/development): Test message" in output

    def test_fields_beneath_header(self):
        output = ConsoleFormatter(colorize=False).format(
            make_record(order_id="o-1", nested={"k": 1})
        )
        lines = output.splitlines()
        assert "INFO (loop/development): Test message" in lines[0]
        assert lines[1:] == ["    order_id: o-1", '    nested: {"k": 1}']

    def test_exception_rendered_as_stack(self):
        try:
            raise ValueError("bad input")
        except ValueError as exc:
            output = ConsoleFormatter(colorize=False).format(make_record(err=exc))
        assert "    err: " in output
        assert "        ValueError: bad input" in output.splitlines()


class TestSafeJsonDumps:
    def test_datetime_and_sets(self):
        from datetime import datetime, timezone

        data = json.loads(safe_json_dumps({
            "at": datetime(2024, 1, 1, tzinfo=timezone.utc),
            "tags": {"x"},
        }))
        assert data == {"at": "2024-01-01T00:00:00+00:00", "tags": ["x"]}

    def test_non_string_nested_keys(self):
        data = json.loads(safe_json_dumps({"ok": 1, "bad": {(1, 2): "tuple key"}}))
        assert data["ok"] == 1
        assert isinstance(data["bad"], str)

    def test_non_finite_floats_become_strings(self):
        def reject(constant):
            raise ValueError(constant)

        text = safe_json_dumps({
            "ratio": float("nan"),
            "ceiling": float("inf"),
            "floor": -float("inf"),
            "ok": 1.5,
        })
        data = json.loads(text, parse_constant=reject)
        assert data == {"ratio": "nan", "ceiling": "inf", "floor": "-inf", "ok": 1.5}

    def test_non_finite_value_in_console_field(self):
        assert dumps_value(float("nan")) == "nan"


class TestConsoleHandler:
    def test_production_uses_json(self, stream):
        handler = build_console_handler(True, stream)
        assert isinstance(handler.formatter, JsonFormatter)

    def test_development_uses_console(self, stream):
        handler = build_console_handler(False, stream)
        assert isinstance(handler.formatter, ConsoleFormatter)

    def test_default_stream_follows_sys_stdout(self, capsys):
        handler = build_console_handler(True)
        handler.handle(make_record(msg="to stdout"))
        assert json.loads(capsys.readouterr().out)["msg"] == "to stdout"


class TestLoopLogHandler:
    def test_stdlib_record_becomes_log_line(self, bridged, console_lines, runtime):
        bridged("tests.bridge").info("charged %s", "o-1", extra={"amount": 5})
        (line,) = console_lines()
        assert line["msg"] == "charged o-1"
        assert line["logger"] == "tests.bridge"
        assert line["amount"] == 5
        assert line["service"] == "payments"
        assert runtime.records[0]["body"] == "charged o-1"

    def test_exc_info_becomes_err(self, bridged, console_lines):
        try:
            raise ValueError("boom")
        except ValueError:
            bridged("tests.bridge.exc").exception("failed")
        line = console_lines()[0]
        assert line["level"] == "error"
        assert line["err"]["type"] == "ValueError"

    def test_threshold_applies(self, bridged, console_lines):
        bridged("tests.bridge.quiet").debug("below info")
        assert console_lines() == []

    def test_opentelemetry_records_stay_on_console(self, bridged, console_lines, runtime):
        bridged("opentelemetry.sdk.tests").warning("export failed")
        assert console_lines()[0]["msg"] == "export failed"
        assert runtime.records == []


class TestSetupLogging:
    def test_installs_bridge_on_root(self):
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        saved_threshold = root_logger.emitter.level
        try:
            setup_logging("warn")
            assert len(root.handlers) == 1
            assert isinstance(root.handlers[0], LoopLogHandler)
            assert root.handlers[0].emitter is root_logger.emitter
            assert root.level == logging.WARNING
            assert root_logger.emitter.level == "warn"
        finally:
            root.handlers = saved_handlers
            root.setLevel(saved_level)
            root_logger.emitter.set_level(saved_threshold)
