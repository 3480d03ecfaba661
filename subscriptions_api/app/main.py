"""
Main entrypoint for the Subscriptions API.

This module assembles the FastAPI application, sets up logging and
middleware and includes versioned routers.  The ``create_app``
function builds and configures the app, which is then instantiated at
module import time as ``app``, e.g.::

    uvicorn subscriptions_api.app.main:app --reload

Interactive API documentation is served by FastAPI at ``/docs``.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .api.v1.router import router as v1_router
from .core.config import settings
from .core.db import init_db, wait_for_database
from .core.logging_config import setup_logging
from .core.middleware import RequestIdMiddleware, RequestLoggerMiddleware

logger = logging.getLogger(__name__)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed payloads and parameters as 400 Bad Request."""
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        messages.append(f"{location}: {error.get('msg')}" if location else error.get("msg"))
    logger.warning("Invalid request to %s: %s", request.url.path, "; ".join(messages))
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "; ".join(messages)},
    )


def create_app() -> FastAPI:
    """Create and configure a FastAPI application.

    Returns
    -------
    FastAPI
        A configured FastAPI application instance.
    """
    # Initialise logging before anything else so that the startup
    # sequence below is logged.
    setup_logging(settings.log_level, settings.log_file or None)

    app = FastAPI(title=settings.project_name, version=settings.api_version, debug=settings.debug)

    # The last middleware added runs first, so request ids are assigned
    # before the request logger writes its line.
    app.add_middleware(RequestLoggerMiddleware)
    app.add_middleware(RequestIdMiddleware)

    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    app.include_router(v1_router, prefix="/api/v1")

    @app.on_event("startup")
    async def startup_event() -> None:
        logger.info("Starting %s %s", settings.project_name, settings.api_version)
        wait_for_database()
        if settings.should_migrate:
            version = init_db()
            logger.info("Database schema at version %d", version)

    return app


# Create the application instance at import time so that tools such as
# uvicorn can discover it without calling create_app manually.
app = create_app()
