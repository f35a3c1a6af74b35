"""HTTP request metrics for the portal API.

- ``http_request_total``              counter by method, route, status
- ``http_request_duration_seconds``   latency histogram by method, route
- ``http_requests_in_progress``       gauge of requests being served

Requests are labelled by route template (``/api/v1/getshieldhistory``), never
by raw URL, and the scrape and health endpoints are not counted.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from prometheus_client import Counter, Gauge, Histogram
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.routing import Match

if TYPE_CHECKING:
    from collections.abc import Callable

    from prometheus_client import CollectorRegistry
    from starlette.requests import Request
    from starlette.responses import Response

APP_LABEL = "btc-portal"
UNTRACKED_PATHS = frozenset({"/metrics", "/health"})


def _route_path(request: Request) -> str:
    """Full route template (router prefixes included) matching *request*."""
    for route in request.app.router.routes:
        match, _ = route.matches(request.scope)
        if match is Match.FULL:
            return getattr(route, "path", request.url.path)
    return request.url.path


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Record count, latency and concurrency of API requests."""

    def __init__(self, app: object, *, registry: CollectorRegistry) -> None:
        super().__init__(app)  # type: ignore[arg-type]
        self._requests = Counter(
            "http_request_total",
            "Total HTTP requests",
            ("method", "path", "status_code", "app"),
            registry=registry,
        )
        self._latency = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ("method", "path", "app"),
            registry=registry,
        )
        self._in_progress = Gauge(
            "http_requests_in_progress",
            "HTTP requests currently being served",
            ("app",),
            registry=registry,
        )

    async def dispatch(self, request: Request, call_next: Callable) -> Response:  # type: ignore[type-arg]
        if request.url.path in UNTRACKED_PATHS:
            return await call_next(request)

        path = _route_path(request)
        status = "500"
        start = time.monotonic()
        self._in_progress.labels(app=APP_LABEL).inc()
        try:
            response: Response = await call_next(request)
            status = str(response.status_code)
            return response
        finally:
            self._in_progress.labels(app=APP_LABEL).dec()
            self._requests.labels(
                method=request.method, path=path, status_code=status, app=APP_LABEL
            ).inc()
            self._latency.labels(method=request.method, path=path, app=APP_LABEL).observe(
                time.monotonic() - start
            )
