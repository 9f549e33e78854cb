"""FastAPI middleware that opens a correlation scope per request and emits metrics + an access log."""
from __future__ import annotations

import time
from typing import Any, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from loop_telemetry.context import (
    CORRELATION_ID_HEADER,
    CorrelationContext,
    correlation_scope,
    extract_correlation_id,
)
from loop_telemetry.logger import create_request_logger
from loop_telemetry.metrics import HTTP_ACTIVE_REQUESTS, record_http_request


class ObservabilityMiddleware(BaseHTTPMiddleware):
    """Run each request inside its own correlation scope.

    The inbound ``X-Correlation-ID`` (or ``X-Request-ID``) is reused when
    present and echoed back on the response.
    """

    def __init__(self, app: Any, service_name: Optional[str] = None) -> None:
        super().__init__(app)
        self._service = service_name

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        correlation_id = extract_correlation_id(request.headers)
        route = request.url.path
        log = create_request_logger(correlation_id, request.method, route)
        if self._service:
            log = log.child(service=self._service)

        start = time.perf_counter()
        status_code = 500
        HTTP_ACTIVE_REQUESTS.inc()
        with correlation_scope(CorrelationContext(correlation_id=correlation_id)):
            try:
                response = await call_next(request)
                status_code = response.status_code
                response.headers[CORRELATION_ID_HEADER] = correlation_id
                return response
            except Exception as exc:
                log.error("request_failed", err=exc)
                raise
            finally:
                HTTP_ACTIVE_REQUESTS.dec()
                elapsed_ms = (time.perf_counter() - start) * 1000
                # Don't track metrics path itself to avoid cardinality explosion
                if route != "/metrics":
                    record_http_request(request.method, route, status_code, elapsed_ms)
                log.info(
                    "request_completed",
                    status=status_code,
                    duration_ms=round(elapsed_ms, 2),
                )
