"""Environment-driven settings, read once at startup."""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

DEFAULT_ENVIRONMENT = "development"
DEFAULT_SERVICE_NAME = "loop"
DEFAULT_SERVICE_VERSION = "0.0.1"
DEFAULT_OTLP_ENDPOINT = "http://localhost:4317"

PRODUCTION = "production"

# Accepted spellings -> canonical level label
LEVEL_ALIASES = {
    "trace": "trace",
    "debug": "debug",
    "info": "info",
    "warn": "warn",
    "warning": "warn",
    "error": "error",
    "fatal": "fatal",
    "critical": "fatal",
}


def normalize_level(name: Optional[str]) -> Optional[str]:
    """Return the canonical level label for *name*, or None if unknown."""
    if not name:
        return None
    return LEVEL_ALIASES.get(name.strip().lower())


@dataclass(frozen=True)
class TelemetrySettings:
    environment: str = DEFAULT_ENVIRONMENT
    service_name: str = DEFAULT_SERVICE_NAME
    service_version: str = DEFAULT_SERVICE_VERSION
    log_level: Optional[str] = None
    otlp_endpoint: str = DEFAULT_OTLP_ENDPOINT

    @property
    def is_production(self) -> bool:
        return self.environment == PRODUCTION

    @property
    def min_level(self) -> str:
        """Configured threshold, else info in production and debug elsewhere."""
        level = normalize_level(self.log_level)
        if level is not None:
            return level
        return "info" if self.is_production else "debug"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "TelemetrySettings":
        env = os.environ if environ is None else environ
        return cls(
            environment=env.get("ENVIRONMENT") or DEFAULT_ENVIRONMENT,
            service_name=(
                env.get("OTEL_SERVICE_NAME")
                or env.get("SERVICE_NAME")
                or DEFAULT_SERVICE_NAME
            ),
            service_version=env.get("SERVICE_VERSION") or DEFAULT_SERVICE_VERSION,
            log_level=env.get("LOG_LEVEL") or None,
            otlp_endpoint=env.get("OTEL_EXPORTER_OTLP_ENDPOINT") or DEFAULT_OTLP_ENDPOINT,
        )


settings = TelemetrySettings.from_env()
