from prometheus_client import Counter, Histogram

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "path", "status"],
)

RESOURCE_OPERATIONS = Counter(
    "resource_operations_total",
    "Resource CRUD operations issued by the admin engine",
    ["resource", "operation", "status"],
)
RESOURCE_OPERATION_DURATION = Histogram(
    "resource_operation_duration_seconds",
    "Resource CRUD operation duration",
    ["resource", "operation", "status"],
)


def observe_operation(resource: str, operation: str, status: str, duration: float) -> None:
    RESOURCE_OPERATIONS.labels(resource=resource, operation=operation, status=status).inc()
    RESOURCE_OPERATION_DURATION.labels(
        resource=resource, operation=operation, status=status
    ).observe(duration)
