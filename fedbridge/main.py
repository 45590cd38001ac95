"""FastAPI application factory.

Run with ``uvicorn fedbridge.main:create_app --factory``.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI

from fedbridge.config import Settings, configure_structlog, get_settings
from fedbridge.connector import open_connector
from fedbridge.error_handlers import register_exception_handlers
from fedbridge.middleware import LoggingMiddleware, RequestContextMiddleware
from fedbridge.routers import connector, health


def create_app(
    settings: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()
    configure_structlog(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        app.state.connector = await open_connector(settings.connector, transport=transport)
        try:
            yield
        finally:
            await app.state.connector.close()

    app = FastAPI(title=settings.app.service, lifespan=lifespan)
    register_exception_handlers(app, environment=settings.app.environment)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestContextMiddleware)

    app.include_router(connector.router)
    app.include_router(health.router)
    return app
