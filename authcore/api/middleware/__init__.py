# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""API middleware components.

This package provides middleware for request processing:
- AuthMiddleware: JWT authentication through the AuthenticationGate.
- RateLimitMiddleware: Fixed-window rate limiting per client.

Exports:
    AuthMiddleware: JWT authentication middleware.
    AuthenticationGate: Resolves Authorization headers to users.
    RateLimitMiddleware: Rate limiting middleware.
    get_client_identifier: Rate limit key of a request.
"""

from authcore.api.middleware.auth import AuthenticationGate, AuthMiddleware
from authcore.api.middleware.rate_limit import RateLimitMiddleware, get_client_identifier

__all__ = [
    "AuthMiddleware",
    "AuthenticationGate",
    "RateLimitMiddleware",
    "get_client_identifier",
]
