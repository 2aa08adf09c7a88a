# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Rate limiting middleware.

This module applies the general API policy to every request and provides
the client key used by the auth endpoints. Limits are applied per client:
user ID if authenticated, IP address otherwise. The limiter itself lives
in authcore.domains.auth.rate_limit.

Example:
    >>> app.add_middleware(RateLimitMiddleware, limiter=limiter)
"""

from fastapi import Request, Response
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import JSONResponse
from starlette.types import ASGIApp

from authcore.domains.auth.errors import AuthError
from authcore.domains.auth.rate_limit import POLICY_API, RateLimiter, enforce_rate_limit

# Paths the API policy does not count
EXEMPT_PATHS = frozenset({
    "/health",
    "/docs",
    "/redoc",
    "/openapi.json",
})


def get_client_identifier(request: Request) -> str:
    """Get a unique identifier for the client.

    Uses user ID if authenticated, otherwise uses IP address.

    Args:
        request: HTTP request.

    Returns:
        Client identifier string.
    """
    user = getattr(request.state, "user", None)
    if user:
        return f"user:{user.id}"
    return f"ip:{get_remote_address(request)}"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Applies the API policy to every request.

    Must be added before AuthMiddleware so that it runs after it and can
    key authenticated requests by user ID.

    Attributes:
        _limiter: Shared limiter.
        _policy_name: Policy applied to each request.
        _enabled: Whether limiting is on.

    Example:
        >>> app.add_middleware(RateLimitMiddleware, limiter=limiter)
        >>> app.add_middleware(AuthMiddleware, gate=gate)
    """

    def __init__(
        self,
        app: ASGIApp,
        limiter: RateLimiter,
        policy_name: str = POLICY_API,
        enabled: bool = True,
    ) -> None:
        super().__init__(app)
        self._limiter = limiter
        self._policy_name = policy_name
        self._enabled = enabled

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        if not self._enabled or request.url.path in EXEMPT_PATHS:
            return await call_next(request)

        key = get_client_identifier(request)
        try:
            decision = enforce_rate_limit(self._limiter, self._policy_name, key)
        except AuthError as e:
            return JSONResponse(
                status_code=e.status_code,
                content=e.to_dict(),
                headers=e.context["headers"],
            )

        response = await call_next(request)
        response.headers.update(decision.headers())
        return response
