"""Prometheus metric definitions for the payments service."""

from prometheus_client import Counter, Histogram, generate_latest
from starlette.responses import Response


collection_requests_total = Counter("collection_requests_total", "Total collection submissions", ["service"])
collection_accepted_total = Counter(
    "collection_accepted_total",
    "Collections acknowledged by the gateway",
    ["service", "provider"],
)
collection_failure_total = Counter(
    "collection_failure_total",
    "Collection submissions that failed",
    ["service", "error_type"],
)
gateway_latency_seconds = Histogram(
    "gateway_latency_seconds",
    "Gateway round-trip latency seconds",
    ["service", "operation"],
)
webhook_events_total = Counter(
    "webhook_events_total",
    "Webhook deliveries by outcome",
    ["service", "status", "outcome"],
)
duplicate_webhooks_skipped_total = Counter(
    "duplicate_webhooks_skipped_total",
    "Webhook deliveries for already-terminal payments",
    ["service"],
)
unknown_transactions_total = Counter(
    "unknown_transactions_total",
    "Webhook deliveries with no matching local payment",
    ["service"],
)
fulfillment_hook_failures_total = Counter(
    "fulfillment_hook_failures_total",
    "Follow-on hooks that raised after a completed payment",
    ["service"],
)
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["service", "route", "method", "status_code"],
)
http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration seconds",
    ["service", "route", "method"],
)


def metrics_response() -> Response:
    """Expose all registered Prometheus metrics in text format."""

    return Response(content=generate_latest(), media_type="text/plain")
