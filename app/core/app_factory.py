from __future__ import annotations

"""Application factory for FastAPI app.

Centralizes app construction (metadata, lifespan, middleware, handlers,
routers) so tests and the ASGI entrypoint build the same application.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.api.routes import controller_router, health_router, mobile_router
from app.core.auth import is_auth_configured
from app.core.config import settings
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging import configure_logging
from app.core.message_queue import get_message_queue
from app.core.middleware import request_id_middleware
from app.core.openapi import apply_openapi_customizations
from app.core.rate_limit import get_rate_limiter
from app.services.maintenance import MaintenanceScheduler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Start background maintenance on startup and stop it on shutdown."""

    if not is_auth_configured():
        logger.warning(
            "startup.auth_not_configured",
            extra={"hint": "Set APP_API_KEYS; mobile requests will be rejected until then"},
        )

    scheduler: MaintenanceScheduler | None = None
    if settings.queue.maintenance_enabled:
        scheduler = MaintenanceScheduler(
            get_message_queue(),
            get_rate_limiter(),
            sweep_interval_seconds=settings.queue.sweep_interval_seconds,
            health_interval_seconds=settings.queue.health_interval_seconds,
        )
        await scheduler.start()
    app.state.maintenance = scheduler

    logger.info(
        "startup.complete",
        extra={
            "app_env": settings.app_env,
            "queue_ttl_s": settings.queue.ttl_seconds,
            "rate_limit": settings.app.rate_limit_requests,
            "rate_window_s": settings.app.rate_limit_window_seconds,
        },
    )
    try:
        yield
    finally:
        if scheduler is not None:
            await scheduler.stop()
        logger.info("shutdown.complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="Controller Relay API",
        description=(
            "Store-and-forward relay between mobile apps and controller devices. "
            "Mobile clients queue commands that controllers poll for; controllers "
            "post heartbeats that mobile clients poll for. Messages expire after "
            "11 minutes. Mobile routes require X-API-Key and are rate limited."
        ),
        version="0.1.0",
        license_info={
            "name": "MIT License",
            "url": "https://opensource.org/licenses/MIT",
        },
        lifespan=lifespan,
    )

    # Middleware
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(controller_router)
    app.include_router(mobile_router)
    app.include_router(health_router)

    # OpenAPI customizations (security scheme, tags, exemptions)
    apply_openapi_customizations(app)

    return app
