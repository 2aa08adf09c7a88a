# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Health check endpoint."""

import time
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from authcore import __version__
from authcore.api.dependencies import get_container
from authcore.infrastructure.database import check_database_connection
from authcore.utils.datetime import utc_now

router = APIRouter()

# Track server start time for uptime calculation
_server_start_time = time.time()


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(description="Overall health status")
    timestamp: datetime = Field(description="Current server timestamp")
    version: str = Field(description="API version")
    environment: str = Field(description="Deployment environment")
    uptime_seconds: int = Field(description="Server uptime in seconds")
    database: str = Field(description="Database status: ok, unavailable or memory")
    rate_limit_windows: int = Field(description="Open rate limit windows")
    scheduler: dict[str, Any] = Field(default_factory=dict)


@router.get("/health", response_model=HealthResponse)
async def health(request: Request) -> HealthResponse:
    container = get_container(request)

    database = "memory"
    if container.uses_database:
        database = "ok" if await check_database_connection() else "unavailable"

    return HealthResponse(
        status="healthy" if database != "unavailable" else "degraded",
        timestamp=utc_now(),
        version=__version__,
        environment=container.settings.environment,
        uptime_seconds=int(time.time() - _server_start_time),
        database=database,
        rate_limit_windows=len(container.rate_limiter),
        scheduler=container.scheduler.get_stats(),
    )
