"""Tests for environment-driven settings."""

import pytest

from loop_telemetry.config import TelemetrySettings, normalize_level


class TestFromEnv:
    def test_defaults(self):
        settings = TelemetrySettings.from_env({})
        assert settings.environment == "development"
        assert settings.service_name == "loop"
        assert settings.service_version == "0.0.1"
        assert settings.otlp_endpoint == "http://localhost:4317"
        assert settings.log_level is None

    def test_reads_variables(self):
        settings = TelemetrySettings.from_env({
            "ENVIRONMENT": "production",
            "OTEL_SERVICE_NAME": "payments",
            "SERVICE_VERSION": "1.4.0",
            "LOG_LEVEL": "WARNING",
            "OTEL_EXPORTER_OTLP_ENDPOINT": "http://collector:4317",
        })
        assert settings.is_production
        assert settings.service_name == "payments"
        assert settings.service_version == "1.4.0"
        assert settings.min_level == "warn"
        assert settings.otlp_endpoint == "http://collector:4317"

    def test_otel_service_name_wins(self):
        settings = TelemetrySettings.from_env({
            "OTEL_SERVICE_NAME": "otel-name",
            "SERVICE_NAME": "plain-name",
        })
        assert settings.service_name == "otel-name"

    def test_service_name_fallback(self):
        assert TelemetrySettings.from_env({"SERVICE_NAME": "gateway"}).service_name == "gateway"


class TestMinLevel:
    def test_production_default(self):
        assert TelemetrySettings(environment="production").min_level == "info"

    def test_development_default(self):
        assert TelemetrySettings(environment="development").min_level == "debug"

    def test_staging_is_not_production(self):
        assert TelemetrySettings(environment="staging").min_level == "debug"

    def test_override(self):
        assert TelemetrySettings(environment="production", log_level="trace").min_level == "trace"

    def test_unknown_override_falls_back(self):
        assert TelemetrySettings(environment="production", log_level="loud").min_level == "info"


@pytest.mark.parametrize(
    "name,expected",
    [
        ("INFO", "info"),
        (" warn ", "warn"),
        ("warning", "warn"),
        ("critical", "fatal"),
        ("Fatal", "fatal"),
        ("", None),
        (None, None),
        ("verbose", None),
    ],
)
def test_normalize_level(name, expected):
    assert normalize_level(name) == expected
