import time

from fastapi import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware

REQUEST_COUNT = Counter(
    "chopnow_http_requests_total",
    "HTTP requests",
    ["service", "method", "path", "status"],
)
REQUEST_LATENCY = Histogram(
    "chopnow_http_request_duration_seconds",
    "HTTP request latency",
    ["service", "method", "path"],
)
ORDERS_CREATED = Counter(
    "chopnow_orders_created_total",
    "Orders created",
    ["status"],
)
ORDER_STATUS_TRANSITIONS = Counter(
    "chopnow_order_status_transitions_total",
    "Order status transitions",
    ["from_status", "to_status"],
)
ORDERS_CANCELLED = Counter(
    "chopnow_orders_cancelled_total",
    "Orders cancelled",
    ["role"],
)


class MetricsMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, service_name: str):
        super().__init__(app)
        self.service_name = service_name

    async def dispatch(self, request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - start

        # route template keeps label cardinality bounded
        route = request.scope.get("route")
        path = getattr(route, "path", "unmatched")

        REQUEST_COUNT.labels(self.service_name, request.method, path, str(response.status_code)).inc()
        REQUEST_LATENCY.labels(self.service_name, request.method, path).observe(elapsed)
        return response


def metrics_endpoint():
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
