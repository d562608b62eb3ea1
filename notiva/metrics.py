"""
Prometheus metrics for the message relay.

This module provides:
- HTTP request counter (method, path, status)
- Request latency histogram (method, path)
- Message operation outcome counter (operation, result)
- Remote store request counter (method, status)

Metrics are stored in-memory using prometheus-client.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST


# =============================================================================
# Metric Definitions
# =============================================================================

http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    labelnames=["method", "path", "status"]
)

# Using default buckets: .005, .01, .025, .05, .075, .1, .25, .5, .75, 1.0, 2.5, 5.0, 7.5, 10.0
request_latency_seconds = Histogram(
    "request_latency_seconds",
    "Request latency in seconds",
    labelnames=["method", "path"]
)

# operation: send, list, read, test
# result: ok, validation_error, not_found, conflict, config_error, store_error
message_operations_total = Counter(
    "message_operations_total",
    "Total message operations by outcome",
    labelnames=["operation", "result"]
)

# status: HTTP status of the remote response, or "error" for transport failures
store_requests_total = Counter(
    "store_requests_total",
    "Total requests sent to the remote content store",
    labelnames=["method", "status"]
)


# =============================================================================
# Helper Functions
# =============================================================================

def record_http_request(method: str, path: str, status: int, latency_seconds: float) -> None:
    """
    Record an HTTP request in metrics.

    Args:
        method: HTTP method (GET, POST, etc.)
        path: Request path
        status: HTTP status code
        latency_seconds: Request processing time in seconds
    """
    # Per-user inbox paths would explode label cardinality
    normalized_path = path.split("?")[0]
    if normalized_path.startswith("/api/messages/") and normalized_path not in (
        "/api/messages/send",
        "/api/messages/decrypt",
    ):
        normalized_path = "/api/messages/{username}"

    http_requests_total.labels(
        method=method,
        path=normalized_path,
        status=str(status)
    ).inc()

    request_latency_seconds.labels(
        method=method,
        path=normalized_path
    ).observe(latency_seconds)


def record_message_operation(operation: str, result: str) -> None:
    """
    Record the outcome of a message operation.

    Args:
        operation: One of "send", "list", "read", "test"
        result: Outcome label, "ok" on success
    """
    message_operations_total.labels(operation=operation, result=result).inc()


def record_store_request(method: str, status: str) -> None:
    store_requests_total.labels(method=method, status=status).inc()


def get_metrics() -> bytes:
    """
    Generate Prometheus exposition format metrics.

    Returns:
        Metrics in Prometheus text format as bytes
    """
    return generate_latest()


def get_metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
