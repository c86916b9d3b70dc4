"""Prometheus metric definitions for the pay bot."""

from prometheus_client import Counter, Histogram, generate_latest
from starlette.responses import Response


payment_requests_total = Counter("payment_requests_total", "Total payment creations requested", ["service"])
payment_success_total = Counter("payment_success_total", "Total executed payments", ["service"])
payment_failure_total = Counter("payment_failure_total", "Total failed payment attempts", ["service", "reason"])
provider_requests_total = Counter(
    "provider_requests_total",
    "Total calls to the payment provider",
    ["service", "operation", "outcome"],
)
provider_latency_seconds = Histogram(
    "provider_latency_seconds",
    "Payment provider call latency seconds",
    ["service", "operation"],
)
correlation_decode_failures_total = Counter(
    "correlation_decode_failures_total",
    "Approval callbacks whose correlation parameters could not be decoded",
    ["service", "error"],
)
messages_sent_total = Counter(
    "messages_sent_total",
    "Outbound bot messages by outcome",
    ["service", "outcome"],
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
