# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""FastAPI Application Factory.

This module provides the application factory for the authcore API.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from authcore import __version__
from authcore.api.dependencies import AuthContainer, build_container
from authcore.api.errors import register_exception_handlers
from authcore.api.middleware.auth import AuthMiddleware
from authcore.api.middleware.rate_limit import RateLimitMiddleware
from authcore.api.routes import health
from authcore.api.v1 import router as v1_router
from authcore.core.config import Settings, get_settings
from authcore.infrastructure.database import close_database, init_database
from authcore.utils.logging import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Initializes and cleans up:
    - Database connections (when the SQL stores are used)
    - APScheduler maintenance jobs

    Args:
        app: The FastAPI application instance.

    Yields:
        None during application runtime.
    """
    container: AuthContainer = app.state.auth
    settings = container.settings
    logger.info("Starting authcore API (%s)", settings.environment)

    # Startup
    if container.uses_database:
        await init_database(settings, create_tables=settings.is_development)
        logger.info("Database connection initialized")

    if settings.scheduler.enabled:
        await container.scheduler.start()

    yield

    # Shutdown
    await container.scheduler.stop()

    if container.uses_database:
        await close_database()
        logger.info("Database connection closed")

    logger.info("Shutting down authcore API")


def create_app(
    settings: Settings | None = None,
    container: AuthContainer | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Settings to use, loaded from the environment by default.
        container: Pre-built components, e.g. with in-memory stores in tests.

    Returns:
        Configured FastAPI application instance.
    """
    settings = settings or (container.settings if container else get_settings())
    setup_logging(settings)
    container = container or build_container(settings)

    app = FastAPI(
        title="authcore API",
        description="Authentication and token lifecycle service",
        version=__version__,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
        # Redirects from /path to /path/ drop the Authorization header
        redirect_slashes=False,
    )

    # State
    app.state.auth = container

    # Exception handlers
    register_exception_handlers(app)

    # Middleware (order matters - last added is first executed)

    # Rate limiting runs after authentication so users are keyed by id
    app.add_middleware(
        RateLimitMiddleware,
        limiter=container.rate_limiter,
        enabled=settings.rate_limit.enabled,
    )

    # Auth middleware - validates JWT tokens
    app.add_middleware(AuthMiddleware, gate=container.gate)

    # CORS middleware (added last to execute first)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors.origins_list,
        allow_credentials=settings.cors.allow_credentials,
        allow_methods=settings.cors.allow_methods,
        allow_headers=settings.cors.allow_headers,
    )

    # Routes
    app.include_router(health.router, tags=["Health"])
    app.include_router(v1_router)

    return app
