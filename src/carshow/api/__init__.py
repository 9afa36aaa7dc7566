"""carshow API service.

FastAPI application providing:
- Staff login with server-side sessions
- Event-scoped registration review and gate operations
- Staff assignment, competition rounds and audit history endpoints

This module provides the app factory for creating configured FastAPI
instances suitable for testing and production deployment.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from carshow.api.middleware import (
    ErrorHandlerMiddleware,
    RequestIDMiddleware,
    http_exception_handler,
    validation_exception_handler,
)
from carshow.api.routers import auth_router, events_router, rounds_router, staff_router

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from carshow.core.config import Settings
    from carshow.db import Database
    from carshow.services.notifications import Notifier

logger = logging.getLogger(__name__)

API_TITLE = "Car Show Staff API"
API_DESCRIPTION = """
Back-office API for car show event staff.

## Namespaces

- **/api/auth/** - Staff login, logout and identity
- **/api/events/{event_id}/** - Registrations, review and gate operations
- **/api/events/{event_id}/staff/** - Per-event staff assignment
- **/api/events/{event_id}/rounds/** - Competition rounds

## Documentation

- OpenAPI spec: `/api/openapi.json`
- Swagger UI: `/api/docs`
"""


def create_app(
    settings: Settings | None = None,
    database: Database | None = None,
    notifier: Notifier | None = None,
) -> FastAPI:
    """Create and configure a FastAPI application instance.

    Args:
        settings: Optional Settings instance. If not provided, settings are
            loaded from the environment on first use.
        database: Optional pre-built database handle. If not provided, one
            is created from settings at startup and disposed at shutdown.
        notifier: Optional participant notifier. Defaults to SMTP email, or no-op while
            notifications are disabled.

    Returns:
        Configured FastAPI application ready to serve requests.

    Example:
        app = create_app()

        # For testing
        app = create_app(Settings(database={"url": "postgresql://localhost/test"}))
    """
    version = settings.app_version if settings else "0.1.0"

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        owned = app.state.database is None
        if owned:
            from carshow.core.settings import get_settings
            from carshow.db import Database

            app.state.database = Database.from_settings(app.state.settings or get_settings())
            logger.info("Database handle created")
        try:
            yield
        finally:
            if owned and app.state.database is not None:
                await app.state.database.dispose()
                app.state.database = None
                logger.info("Database handle disposed")

    app = FastAPI(
        title=API_TITLE,
        description=API_DESCRIPTION,
        version=version,
        docs_url="/api/docs",
        redoc_url=None,
        openapi_url="/api/openapi.json",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.database = database
    app.state.notifier = notifier

    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    _add_middleware(app, settings)
    _include_routers(app)

    @app.get("/health", tags=["health"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint for container orchestration."""
        return {"status": "healthy"}

    logger.info("Car show API application created (version=%s)", version)

    return app


def _add_middleware(app: FastAPI, settings: Settings | None) -> None:
    """Add middleware to the application.

    The last middleware added is the outermost. RequestIDMiddleware wraps
    the error handler so error bodies can carry the request ID.
    """
    app.add_middleware(ErrorHandlerMiddleware)
    app.add_middleware(RequestIDMiddleware)

    allowed_origins = ["http://localhost:3000", "http://localhost:8000"]
    if settings and settings.is_production:
        allowed_origins = []

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )


def _include_routers(app: FastAPI) -> None:
    app.include_router(auth_router, prefix="/api")
    app.include_router(events_router, prefix="/api")
    app.include_router(staff_router, prefix="/api")
    app.include_router(rounds_router, prefix="/api")
