"""
Main entrypoint for the Home Services API.

This module assembles the FastAPI application, sets up logging and
includes the versioned routers.  ``create_app`` builds and configures
the app, which is then instantiated at import time as ``app``::

    uvicorn home_services_api.app.main:app --reload

The REST API is mounted under ``/api`` and the live dashboard websocket
at ``/ws/admin-dashboard``.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.v1.endpoints import realtime
from .api.v1.router import router as v1_router
from .core.config import settings
from .core.db import init_db
from .core.logging_config import setup_logging
from .services.notification_service import NotificationService

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Apply migrations at startup.  This creates the database file if it
    # does not exist and brings all tables up to date.
    init_db()
    logger.info("%s %s started", settings.project_name, settings.api_version)
    yield
    await NotificationService.drain_broadcasts()
    NotificationService.wait_for_pending_emails(timeout=10)
    NotificationService.shutdown()
    logger.info("%s stopped", settings.project_name)


def create_app() -> FastAPI:
    """Create and configure a FastAPI application.

    Returns
    -------
    FastAPI
        A configured FastAPI application instance.
    """
    # Initialise logging before anything else so that startup code can
    # log messages.
    setup_logging(settings.log_level, settings.log_file or None)

    app = FastAPI(title=settings.project_name, version=settings.api_version, lifespan=lifespan)

    origins = settings.cors_origin_list
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials="*" not in origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(v1_router, prefix="/api")
    app.include_router(realtime.router, tags=["realtime"])

    @app.get("/health", tags=["health"])
    async def health() -> dict:
        return {"status": "ok", "dashboard_subscribers": NotificationService.channel.subscriber_count}

    return app


# Create the application instance at import time so that uvicorn can
# discover it without calling create_app manually.
app = create_app()
