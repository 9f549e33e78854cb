"""Outbound HTTP: carry the active correlation id and trace context downstream."""
from __future__ import annotations

from typing import Any

import httpx

from loop_telemetry.context import create_propagation_headers, get_correlation_context


async def propagate_correlation(request: httpx.Request) -> None:
    """httpx request hook; headers the caller set explicitly are left alone."""
    ctx = get_correlation_context()
    if ctx is None:
        return
    for name, value in create_propagation_headers(ctx.correlation_id).items():
        if name not in request.headers:
            request.headers[name] = value


def correlated_client(**kwargs: Any) -> httpx.AsyncClient:
    """An ``httpx.AsyncClient`` that forwards correlation headers on every request."""
    event_hooks = dict(kwargs.pop("event_hooks", None) or {})
    event_hooks["request"] = [propagate_correlation, *event_hooks.get("request", [])]
    return httpx.AsyncClient(event_hooks=event_hooks, **kwargs)
