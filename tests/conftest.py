"""Shared fixtures: an in-memory console and a recording telemetry runtime."""

import io
import json

import pytest

from loop_telemetry.config import TelemetrySettings
from loop_telemetry.logger import LogEmitter, Logger


class RecordingRuntime:
    """Stands in for the OpenTelemetry runtime and keeps every emitted record."""

    def __init__(self, *, initialized=True, fail=False):
        self.initialized = initialized
        self.fail = fail
        self.records = []

    def is_initialized(self):
        return self.initialized

    def emit(self, severity_number, severity_text, body, attributes, **linkage):
        if self.fail:
            raise RuntimeError("exporter unavailable")
        self.records.append({
            "severity_number": severity_number,
            "severity_text": severity_text,
            "body": body,
            "attributes": attributes,
            **linkage,
        })


@pytest.fixture
def stream():
    return io.StringIO()


@pytest.fixture
def runtime():
    return RecordingRuntime()


@pytest.fixture
def production_settings():
    return TelemetrySettings(environment="production", service_name="payments")


@pytest.fixture
def emitter(production_settings, runtime, stream):
    return LogEmitter(production_settings, runtime=runtime, stream=stream)


@pytest.fixture
def log(emitter):
    return Logger(emitter)


@pytest.fixture
def console_lines(stream):
    """Parse everything written to the console so far as JSON lines."""

    def _read():
        return [json.loads(line) for line in stream.getvalue().splitlines() if line]

    return _read
