# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""FastAPI dependency injection definitions.

The application holds one AuthContainer on ``app.state.auth`` with the
stores, the shared rate limiter and the services built on them.
Dependency functions read it from the request.

Example:
    @router.get("/me")
    async def me(
        current_user: CurrentUser = Depends(require_auth),
        auth_service: AuthService = Depends(get_auth_service),
    ):
        ...
"""

import logging
from dataclasses import dataclass

from fastapi import Request

from authcore.api.middleware.auth import AuthenticationGate, CurrentUser, require_user
from authcore.core.config import Settings
from authcore.domains.auth.jwt import JWTManager
from authcore.domains.auth.rate_limit import RateLimiter, default_policies
from authcore.domains.auth.service import AuthService
from authcore.domains.auth.stores import AccountStore, Notifier, SingleUseTokenStore, TokenStore
from authcore.infrastructure.background import MaintenanceScheduler
from authcore.infrastructure.database import SQLAccountStore, SQLSingleUseTokenStore, SQLTokenStore
from authcore.infrastructure.memory import MemoryAccountStore, MemorySingleUseTokenStore, MemoryTokenStore
from authcore.infrastructure.notifications import LoggingNotifier, SMTPNotifier

logger = logging.getLogger(__name__)


@dataclass
class AuthContainer:
    """Components shared by every request.

    Attributes:
        settings: Application settings.
        accounts: Account store.
        tokens: Refresh token store.
        single_use_tokens: Verification and reset token store.
        notifier: Outbound messages.
        rate_limiter: Shared rate limiter.
        jwt_manager: Token signer.
        service: Auth service facade.
        gate: Authentication gate used by AuthMiddleware.
        scheduler: Maintenance jobs.
        uses_database: Whether the stores are SQL-backed.
    """

    settings: Settings
    accounts: AccountStore
    tokens: TokenStore
    single_use_tokens: SingleUseTokenStore
    notifier: Notifier
    rate_limiter: RateLimiter
    jwt_manager: JWTManager
    service: AuthService
    gate: AuthenticationGate
    scheduler: MaintenanceScheduler
    uses_database: bool = False


def build_container(
    settings: Settings,
    accounts: AccountStore | None = None,
    tokens: TokenStore | None = None,
    single_use_tokens: SingleUseTokenStore | None = None,
    notifier: Notifier | None = None,
) -> AuthContainer:
    """Wire the stores and services.

    Stores default to the SQL stores when DATABASE_URL is set and to the
    in-memory stores otherwise. The notifier defaults to SMTP when SMTP is
    configured and to logging otherwise.

    Args:
        settings: Application settings.
        accounts: Account store override.
        tokens: Refresh token store override.
        single_use_tokens: Single-use token store override.
        notifier: Notifier override.

    Returns:
        AuthContainer.
    """
    uses_database = settings.database.is_configured and accounts is None
    if accounts is None:
        if uses_database:
            accounts = SQLAccountStore()
            tokens = tokens or SQLTokenStore()
            single_use_tokens = single_use_tokens or SQLSingleUseTokenStore()
        else:
            logger.warning("DATABASE_URL not set, using in-memory stores")
            accounts = MemoryAccountStore()
    tokens = tokens or MemoryTokenStore()
    single_use_tokens = single_use_tokens or MemorySingleUseTokenStore()

    if notifier is None:
        notifier = (
            SMTPNotifier(settings.smtp)
            if settings.smtp.is_configured
            else LoggingNotifier(settings.smtp.frontend_url, settings.smtp.from_name)
        )

    rate_limiter = RateLimiter(default_policies(settings.rate_limit))
    jwt_manager = JWTManager(settings.jwt)
    service = AuthService.from_settings(
        settings,
        accounts,
        tokens,
        single_use_tokens,
        notifier,
        rate_limiter,
    )

    return AuthContainer(
        settings=settings,
        accounts=accounts,
        tokens=tokens,
        single_use_tokens=single_use_tokens,
        notifier=notifier,
        rate_limiter=rate_limiter,
        jwt_manager=jwt_manager,
        service=service,
        gate=AuthenticationGate(jwt_manager, accounts),
        scheduler=MaintenanceScheduler(rate_limiter, tokens, single_use_tokens, settings),
        uses_database=uses_database,
    )


def get_container(request: Request) -> AuthContainer:
    return request.app.state.auth


def get_auth_service(request: Request) -> AuthService:
    """Get the auth service of the application."""
    return get_container(request).service


def get_rate_limiter(request: Request) -> RateLimiter:
    """Get the shared rate limiter of the application."""
    return get_container(request).rate_limiter


def require_auth(request: Request) -> CurrentUser:
    """Require an authenticated user.

    Raises:
        AuthError: AUTHENTICATION kind if not authenticated.
    """
    return require_user(request)
