import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from app.metrics import REQUEST_COUNT, REQUEST_LATENCY

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def _route_path(request: Request) -> str:
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


class ObservabilityMiddleware(BaseHTTPMiddleware):
    """Assign a request id and record request count and latency."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id
        started = time.perf_counter()
        status = "500"
        try:
            response = await call_next(request)
            status = str(response.status_code)
        finally:
            elapsed = time.perf_counter() - started
            path = _route_path(request)
            REQUEST_COUNT.labels(method=request.method, path=path, status=status).inc()
            REQUEST_LATENCY.labels(method=request.method, path=path, status=status).observe(elapsed)
        response.headers[REQUEST_ID_HEADER] = request_id
        logger.debug("%s %s -> %s in %.1fms", request.method, request.url.path, status, elapsed * 1000)
        return response
