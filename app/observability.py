import logging
from time import perf_counter

from prometheus_client import Counter, Histogram
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

logger = logging.getLogger(__name__)

REQUEST_COUNT = Counter(
    "docvault_http_requests_total",
    "HTTP requests by method, route and status",
    ["method", "route", "status"],
)
REQUEST_LATENCY = Histogram(
    "docvault_http_request_duration_seconds",
    "HTTP request latency by method and route",
    ["method", "route"],
)
VERSION_CONFLICTS = Counter(
    "docvault_version_conflicts_total",
    "Compare-and-swap misses while claiming a document version",
)
QUOTA_DENIALS = Counter(
    "docvault_quota_denials_total",
    "Usage checks that returned allowed=false",
    ["feature"],
)
AUDIT_DEFERRED_FAILURES = Counter(
    "docvault_audit_deferred_failures_total",
    "Audit events that could not be queued for deferred recording",
)


def _route_template(request: Request) -> str:
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


class ObservabilityMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        started = perf_counter()
        status = 500
        try:
            response = await call_next(request)
            status = response.status_code
            return response
        finally:
            route = _route_template(request)
            REQUEST_COUNT.labels(request.method, route, str(status)).inc()
            REQUEST_LATENCY.labels(request.method, route).observe(
                perf_counter() - started
            )
