"""FastAPI application factory."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest
from starlette.responses import Response

from btc_portal import __version__
from btc_portal.api.v1 import v1_router
from btc_portal.api.v1.schemas import ErrorResponse
from btc_portal.config.settings import AppConfig
from btc_portal.engine.client import PortalEngine
from btc_portal.errors.portal_errors import PortalError
from btc_portal.metrics.collector import PortalMetrics
from btc_portal.metrics.middleware import PrometheusMiddleware

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup / shutdown lifecycle hooks.

    Builds the engine (datastore, node and fee clients, services) on startup
    and shuts it down on exit.
    """
    config: AppConfig = app.state.config
    engine = PortalEngine(config, metrics=app.state.metrics)

    try:
        await engine.initialize()
        app.state.engine = engine
        yield
    finally:
        await engine.close()
        app.state.engine = None


def create_app(*, config: AppConfig | None = None) -> FastAPI:
    """Build and return the FastAPI application.

    Args:
        config: Optional AppConfig. If *None*, a default config is created
            from environment variables.
    """
    if config is None:
        config = AppConfig()

    app = FastAPI(
        title="btc-portal",
        version=__version__,
        description="Bitcoin shielding address portal",
        lifespan=_lifespan,
    )

    # Store config and metrics on app.state for lifespan access
    app.state.config = config
    app.state.metrics = PortalMetrics()

    # -- Middleware --
    app.add_middleware(GZipMiddleware)
    if config.metrics.enabled:
        app.add_middleware(PrometheusMiddleware, registry=app.state.metrics.registry)

    # -- Error handler --
    @app.exception_handler(PortalError)
    async def _portal_error_handler(request: Request, exc: PortalError) -> JSONResponse:
        logger.info("%s %s -> %s: %s", request.method, request.url.path, exc.code, exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(code=exc.code, message=exc.message).model_dump(),
        )

    # -- Base routes --
    @app.get("/health", tags=["base"])
    async def health() -> dict[str, str]:
        engine: PortalEngine | None = getattr(app.state, "engine", None)
        if engine is None:
            return {"status": "unhealthy", "database": "disconnected", "btcfullnode": "disconnected"}
        return await engine.health_check()

    if config.metrics.enabled:

        @app.get("/metrics", tags=["base"], include_in_schema=False)
        async def metrics_endpoint() -> Response:
            """Prometheus metrics endpoint."""
            return Response(
                content=generate_latest(app.state.metrics.registry),
                media_type="text/plain; version=0.0.4; charset=utf-8",
            )

    # -- Mount v1 API --
    app.include_router(v1_router)

    return app
