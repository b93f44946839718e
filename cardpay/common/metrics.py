"""Prometheus metric definitions for the payment service."""

from prometheus_client import Counter, Histogram, generate_latest
from starlette.responses import Response


payment_requests_total = Counter("payment_requests_total", "Total payment requests", ["service"])
payment_outcomes_total = Counter(
    "payment_outcomes_total",
    "Payment outcomes by final status",
    ["service", "status"],
)
payment_validation_failures_total = Counter(
    "payment_validation_failures_total",
    "Payment requests rejected by validation",
    ["service", "field"],
)
gateway_decisions_total = Counter(
    "gateway_decisions_total",
    "Simulated gateway decisions",
    ["service", "decision"],
)
persistence_failures_total = Counter(
    "persistence_failures_total",
    "Payment store write/read failures",
    ["service", "operation"],
)
payment_latency_seconds = Histogram("payment_latency_seconds", "Payment latency seconds", ["service"])
gateway_latency_seconds = Histogram(
    "gateway_latency_seconds",
    "Simulated gateway authorization latency seconds",
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
