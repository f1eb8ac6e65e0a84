"""Prometheus metric definitions for the notify service."""

from time import perf_counter

from prometheus_client import Counter, Histogram, generate_latest
from starlette.responses import Response


notify_requests_total = Counter("notify_requests_total", "Total notify requests", ["service"])
notify_outcomes_total = Counter(
    "notify_outcomes_total",
    "Notify request outcomes by result kind",
    ["service", "outcome"],
)
rate_limit_rejections_total = Counter(
    "rate_limit_rejections_total",
    "Requests rejected by the abuse rate limiter",
    ["service", "scope"],
)
rate_limit_conflicts_total = Counter(
    "rate_limit_conflicts_total",
    "Counter transactions retried after a concurrent writer",
    ["service", "backend"],
)
push_latency_seconds = Histogram("push_latency_seconds", "Push gateway call latency seconds", ["service"])
push_failures_total = Counter(
    "push_failures_total",
    "Push gateway failures by classification",
    ["service", "classification"],
)
stale_tokens_cleared_total = Counter(
    "stale_tokens_cleared_total",
    "Owner destination tokens cleared after permanent delivery failure",
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


def install_http_metrics(app, service_name: str) -> None:
    """Count and time every HTTP call, labelled by the matched route template."""

    @app.middleware("http")
    async def http_metrics(request, call_next):
        started = perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            matched = request.scope.get("route")
            route = getattr(matched, "path", None) or request.url.path
            http_request_duration_seconds.labels(
                service=service_name, route=route, method=request.method
            ).observe(max(0.0, perf_counter() - started))
            http_requests_total.labels(
                service=service_name, route=route, method=request.method, status_code=str(status_code)
            ).inc()
