"""Entry point for the Subscriptions API server.

Starts the FastAPI application with Uvicorn.  Host and port are read
from the ``HOST`` and ``PORT`` environment variables (see
``subscriptions_api.app.core.config``).

Usage:
    python run.py
"""
import asyncio
import logging

from uvicorn import Config, Server

from subscriptions_api.app.core.config import settings
from subscriptions_api.app.main import app


async def main() -> None:
    """Serve the API until interrupted."""
    config = Config(
        app=app,
        host=settings.host,
        port=settings.port,
        reload=False,
        log_level=settings.log_level.lower(),
    )
    server = Server(config)
    await server.serve()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except (KeyboardInterrupt, SystemExit):
        logging.getLogger(__name__).info("Server stopped")
