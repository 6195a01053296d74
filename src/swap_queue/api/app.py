"""FastAPI application factory."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest
from starlette.responses import Response

from swap_queue import __version__
from swap_queue.api.v1 import v1_router
from swap_queue.config.settings import AppConfig
from swap_queue.engine.client import QueueManager
from swap_queue.errors.queue_errors import QueueError
from swap_queue.metrics.collector import QueueMetrics
from swap_queue.metrics.middleware import PrometheusMiddleware

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Mapping

    from swap_queue.collaborators.ports import (
        DiagnosticsSink,
        ExecutorRegistry,
        StepExecutor,
        WalletCollaborator,
    )
    from swap_queue.storage.client import StorageBackend

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup / shutdown lifecycle hooks.

    Initialises the queue manager (storage, migration, scheduler) on startup
    and gracefully shuts it down on exit.
    """
    manager: QueueManager = app.state.manager
    try:
        await manager.initialize()
        logger.info("Swap queue initialized")
        yield
    finally:
        await manager.close()
        logger.info("Swap queue shut down")


def create_app(
    *,
    config: AppConfig | None = None,
    executors: ExecutorRegistry | Mapping[str, StepExecutor] | None = None,
    wallet: WalletCollaborator | None = None,
    diagnostics: DiagnosticsSink | None = None,
    storage_backend: StorageBackend | None = None,
) -> FastAPI:
    """Build and return the FastAPI application.

    Args:
        config: Optional AppConfig. If *None*, a default config is created
            from environment variables (and ``SWAPQUEUE_CONFIG_PATH``).
        executors: Step executors by task type.
        wallet: Wallet collaborator used for connect/disconnect actions.
        diagnostics: Sink for non-fatal failures.
        storage_backend: Pre-built storage backend overriding ``config.storage``.
    """
    if config is None:
        config = AppConfig()

    app = FastAPI(
        title="py-swap-queue",
        version=__version__,
        description="Persistent swap task queue with wallet-driven resume",
        lifespan=_lifespan,
    )

    metrics = QueueMetrics() if config.metrics.enabled else None
    app.state.config = config
    app.state.metrics = metrics
    app.state.manager = QueueManager(
        config,
        executors=executors,
        wallet=wallet,
        diagnostics=diagnostics,
        storage_backend=storage_backend,
        metrics=metrics,
    )

    # -- Error handler --
    @app.exception_handler(QueueError)
    async def _queue_error_handler(request: Request, exc: QueueError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"code": exc.code, "message": exc.message},
        )

    # -- Base routes --
    @app.get("/health", tags=["base"])
    async def health() -> dict[str, Any]:
        manager: QueueManager = app.state.manager
        components = await manager.health_check()
        status = "ok" if all(v == "ok" for v in components.values()) else "degraded"
        return {"status": status, "components": components}

    @app.get("/metrics", tags=["base"], include_in_schema=False)
    async def metrics_endpoint() -> Response:
        """Prometheus metrics endpoint."""
        registry = metrics.registry if metrics is not None else None
        body = generate_latest(registry) if registry else generate_latest()
        return Response(
            content=body,
            media_type="text/plain; version=0.0.4; charset=utf-8",
        )

    # -- Prometheus request metrics middleware --
    if metrics is not None:
        app.add_middleware(PrometheusMiddleware, registry=metrics.registry)

    # -- Mount v1 API --
    app.include_router(v1_router)

    return app
