"""Prometheus HTTP request metrics middleware for FastAPI.

Tracks:
- ``swapq_http_requests_total`` (counter) — requests by method, route, status
- ``swapq_http_request_duration_seconds`` (histogram) — duration by method, route
- ``swapq_http_requests_in_progress`` (gauge) — requests currently being served

Requests are labelled with the matched route template (``/api/v1/tasks/{task_id}``),
never the raw path, so task ids do not become label values.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from prometheus_client import Counter, Gauge, Histogram
from starlette.middleware.base import BaseHTTPMiddleware

if TYPE_CHECKING:
    from collections.abc import Callable

    from prometheus_client import CollectorRegistry
    from starlette.requests import Request
    from starlette.responses import Response

_UNMATCHED = "<unmatched>"


def route_template(request: Request) -> str:
    """Path template of the route that served *request*."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or _UNMATCHED


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Starlette middleware that records request count, duration and concurrency."""

    def __init__(self, app: object, *, registry: CollectorRegistry) -> None:
        super().__init__(app)  # type: ignore[arg-type]
        self._requests = Counter(
            "swapq_http_requests_total",
            "Total HTTP requests",
            ("method", "route", "status_code"),
            registry=registry,
        )
        self._duration = Histogram(
            "swapq_http_request_duration_seconds",
            "HTTP request duration in seconds",
            ("method", "route"),
            registry=registry,
        )
        self._in_progress = Gauge(
            "swapq_http_requests_in_progress",
            "HTTP requests currently being served",
            registry=registry,
        )

    async def dispatch(self, request: Request, call_next: Callable) -> Response:  # type: ignore[type-arg]
        """Wrap each request with timing and counting."""
        start = time.monotonic()
        status = "500"
        self._in_progress.inc()
        try:
            response: Response = await call_next(request)
            status = str(response.status_code)
            return response
        finally:
            self._in_progress.dec()
            route = route_template(request)
            self._requests.labels(method=request.method, route=route, status_code=status).inc()
            self._duration.labels(method=request.method, route=route).observe(
                time.monotonic() - start
            )
