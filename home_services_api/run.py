"""Serve the Home Services API with Uvicorn.

Host and port come from the ``HOST`` and ``PORT`` environment variables
(defaults ``0.0.0.0`` and ``8000``).

Usage:
    home-services-api
"""
import asyncio
import logging

from uvicorn import Config, Server

from home_services_api.app.core.config import settings
from home_services_api.app.main import app


async def serve() -> None:
    """Run the API until the server is asked to stop."""
    config = Config(
        app=app,
        host=settings.host,
        port=settings.port,
        reload=False,
        log_level=settings.log_level.lower(),
    )
    await Server(config).serve()


def main() -> None:
    try:
        asyncio.run(serve())
    except KeyboardInterrupt:
        logging.getLogger(__name__).info("Shutdown requested")


if __name__ == "__main__":
    main()
