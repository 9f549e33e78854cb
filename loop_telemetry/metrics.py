"""Prometheus metrics definitions shared across all services.

All metrics are created here so import order doesn't matter.  Each service
imports the helpers it needs; unused ones stay at zero.
"""
from prometheus_client import Counter, Gauge, Histogram, make_asgi_app

_LATENCY_BUCKETS_MS = [5, 10, 25, 50, 100, 250, 500, 1000, 2500, 5000, 10000, 30000]

# ── Payments ────────────────────────────────────────────────────────────────
PAYMENTS_TOTAL = Counter(
    "payments_total",
    "Total number of payment attempts",
    ["processor", "currency", "status"],
)

PAYMENT_AMOUNT = Histogram(
    "payment_amount_cents",
    "Distribution of payment amounts",
    ["processor", "currency"],
    buckets=[100, 500, 1000, 5000, 10000, 50000, 100000, 500000, 1000000],
)

PAYMENT_LATENCY = Histogram(
    "payment_latency_ms",
    "Payment processing latency",
    ["processor", "status"],
    buckets=_LATENCY_BUCKETS_MS,
)

# ── Webhooks ────────────────────────────────────────────────────────────────
WEBHOOK_DELIVERIES_TOTAL = Counter(
    "webhook_deliveries_total",
    "Total webhook delivery attempts",
    ["status", "attempt"],
)

WEBHOOK_LATENCY = Histogram(
    "webhook_latency_ms",
    "Webhook delivery latency",
    ["status"],
    buckets=_LATENCY_BUCKETS_MS,
)

# ── HTTP layer ──────────────────────────────────────────────────────────────
HTTP_REQUESTS_TOTAL = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status_code", "status_class"],
)

HTTP_REQUEST_LATENCY = Histogram(
    "http_request_latency_ms",
    "HTTP request latency",
    ["method", "path", "status_class"],
    buckets=_LATENCY_BUCKETS_MS,
)

HTTP_ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of active HTTP requests",
)

# ── Database ────────────────────────────────────────────────────────────────
DB_QUERY_DURATION = Histogram(
    "db_query_duration_ms",
    "Database query duration",
    ["operation"],
    buckets=_LATENCY_BUCKETS_MS,
)

DB_CONNECTIONS_ACTIVE = Gauge(
    "db_connections_active",
    "Number of active database connections",
)

# ── Workflows ───────────────────────────────────────────────────────────────
WORKFLOW_STARTED_TOTAL = Counter(
    "workflow_started_total",
    "Total workflows started",
    ["workflow_type", "task_queue"],
)

WORKFLOW_COMPLETED_TOTAL = Counter(
    "workflow_completed_total",
    "Total workflows completed",
    ["workflow_type", "task_queue"],
)

WORKFLOW_FAILED_TOTAL = Counter(
    "workflow_failed_total",
    "Total workflows failed",
    ["workflow_type", "task_queue", "error_type"],
)

WORKFLOW_DURATION = Histogram(
    "workflow_duration_ms",
    "Workflow execution time, start to completion",
    ["workflow_type", "task_queue"],
    buckets=[100, 1000, 5000, 30000, 60000, 300000, 900000, 3600000],
)

ACTIVITY_LATENCY = Histogram(
    "activity_latency_ms",
    "Activity execution latency",
    ["activity_type", "status"],
    buckets=_LATENCY_BUCKETS_MS,
)


def record_payment_attempt(processor: str, currency: str, status: str) -> None:
    PAYMENTS_TOTAL.labels(processor=processor, currency=currency, status=status).inc()


def record_payment_amount(amount: int, processor: str, currency: str) -> None:
    PAYMENT_AMOUNT.labels(processor=processor, currency=currency).observe(amount)


def record_payment_latency(duration_ms: float, processor: str, status: str) -> None:
    PAYMENT_LATENCY.labels(processor=processor, status=status).observe(duration_ms)


def record_webhook_delivery(status: str, attempt: int) -> None:
    WEBHOOK_DELIVERIES_TOTAL.labels(status=status, attempt=str(attempt)).inc()


def record_webhook_latency(duration_ms: float, status: str) -> None:
    WEBHOOK_LATENCY.labels(status=status).observe(duration_ms)


def record_http_request(method: str, path: str, status_code: int, duration_ms: float) -> None:
    status_class = f"{status_code // 100}xx"
    HTTP_REQUESTS_TOTAL.labels(
        method=method,
        path=path,
        status_code=str(status_code),
        status_class=status_class,
    ).inc()
    HTTP_REQUEST_LATENCY.labels(
        method=method,
        path=path,
        status_class=status_class,
    ).observe(duration_ms)


def record_db_query(operation: str, duration_ms: float) -> None:
    DB_QUERY_DURATION.labels(operation=operation).observe(duration_ms)


def record_workflow_started(workflow_type: str, task_queue: str) -> None:
    WORKFLOW_STARTED_TOTAL.labels(workflow_type=workflow_type, task_queue=task_queue).inc()


def record_workflow_completed(workflow_type: str, task_queue: str, duration_ms: float) -> None:
    WORKFLOW_COMPLETED_TOTAL.labels(workflow_type=workflow_type, task_queue=task_queue).inc()
    WORKFLOW_DURATION.labels(workflow_type=workflow_type, task_queue=task_queue).observe(
        duration_ms
    )


def record_workflow_failed(workflow_type: str, task_queue: str, error_type: str) -> None:
    WORKFLOW_FAILED_TOTAL.labels(
        workflow_type=workflow_type, task_queue=task_queue, error_type=error_type
    ).inc()


def record_activity_latency(activity_type: str, duration_ms: float, status: str) -> None:
    ACTIVITY_LATENCY.labels(activity_type=activity_type, status=status).observe(duration_ms)


# ASGI app that Prometheus can scrape
metrics_app = make_asgi_app()
