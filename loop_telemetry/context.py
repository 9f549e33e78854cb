"""Correlation context for tracking one request or workflow across services.

The active :class:`CorrelationContext` lives in a ``ContextVar``. asyncio
copies the current context into every task and callback it schedules, so a
record installed by :func:`with_correlation_context` follows all of its
continuations and is never seen by requests interleaved on the same loop.

Usage::

    ctx = CorrelationContext(correlation_id=extract_correlation_id(request.headers))
    await with_correlation_context_async(ctx, handle, request)

    # anywhere below, without passing ctx around
    get_correlation_context().correlation_id
"""
from __future__ import annotations

import secrets
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterator, Mapping, Optional, TypeVar

from loop_telemetry.tracing import inject_trace_headers

T = TypeVar("T")

CORRELATION_ID_HEADER = "X-Correlation-ID"
REQUEST_ID_HEADER = "X-Request-ID"

# 16 random bytes -> 22 URL-safe characters
_CORRELATION_ID_BYTES = 16


@dataclass(frozen=True)
class CorrelationContext:
    correlation_id: str
    merchant_id: Optional[str] = None
    order_id: Optional[str] = None
    workflow_id: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.correlation_id:
            raise ValueError("correlation_id must be a non-empty string")


_correlation_context: ContextVar[Optional[CorrelationContext]] = ContextVar(
    "correlation_context", default=None
)


def get_correlation_context() -> Optional[CorrelationContext]:
    """Return the record installed for the calling scope, if any."""
    return _correlation_context.get()


@contextmanager
def correlation_scope(ctx: CorrelationContext) -> Iterator[CorrelationContext]:
    """Install *ctx* for the body of the ``with`` block, then restore the previous one."""
    token = _correlation_context.set(ctx)
    try:
        yield ctx
    finally:
        _correlation_context.reset(token)


def with_correlation_context(
    ctx: CorrelationContext, fn: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Call ``fn(*args, **kwargs)`` with *ctx* as the active correlation record."""
    with correlation_scope(ctx):
        return fn(*args, **kwargs)


async def with_correlation_context_async(
    ctx: CorrelationContext, fn: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any
) -> T:
    """Await ``fn(*args, **kwargs)`` with *ctx* as the active correlation record."""
    with correlation_scope(ctx):
        return await fn(*args, **kwargs)


def generate_correlation_id() -> str:
    return secrets.token_urlsafe(_CORRELATION_ID_BYTES)


def extract_correlation_id(headers: Mapping[str, Optional[str]]) -> str:
    """Read the correlation id from inbound *headers* (case-insensitive).

    ``X-Correlation-ID`` wins over ``X-Request-ID``; with neither present a
    fresh id is generated.
    """
    normalized = {key.lower(): value for key, value in headers.items()}
    return (
        normalized.get(CORRELATION_ID_HEADER.lower())
        or normalized.get(REQUEST_ID_HEADER.lower())
        or generate_correlation_id()
    )


def create_propagation_headers(correlation_id: str) -> dict[str, str]:
    """Headers to send downstream: the correlation id plus trace context."""
    headers = {CORRELATION_ID_HEADER: correlation_id}
    inject_trace_headers(headers)
    return headers


def create_context_from_memo(memo: Mapping[str, Any]) -> CorrelationContext:
    """Rebuild a correlation record from a workflow memo.

    Memos written by other services use camelCase keys, so both spellings
    are accepted.
    """

    def _get(snake: str, camel: str) -> Optional[str]:
        value = memo.get(snake) or memo.get(camel)
        return str(value) if value else None

    return CorrelationContext(
        correlation_id=_get("correlation_id", "correlationId") or generate_correlation_id(),
        merchant_id=_get("merchant_id", "merchantId"),
        order_id=_get("order_id", "orderId"),
        workflow_id=_get("workflow_id", "workflowId"),
    )
