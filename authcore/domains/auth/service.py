# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Authentication service.

This module provides the AuthService that orchestrates:
- Password login, registration and social login
- Token issuance, refresh token rotation and logout
- Email verification and password reset with single-use tokens
- Rate limit checks for the authentication endpoints

Notification delivery is best effort: a failed email is logged and never
fails the operation that triggered it.

Example:
    >>> auth_service = AuthService.from_settings(
    ...     settings, accounts, tokens, single_use, notifier, rate_limiter,
    ... )
    >>> result = await auth_service.login("user@example.com", "S3cure!pass")
    >>> result.tokens.access_token
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable

from authcore.core.config.settings import Settings, SingleUseTokenSettings
from authcore.domains.auth.credentials import CredentialVerifier
from authcore.domains.auth.errors import AuthError
from authcore.domains.auth.jwt import JWTManager, TokenPair
from authcore.domains.auth.models import Account, AuthProvider, SingleUseKind, normalize_email
from authcore.domains.auth.password import PasswordHasher
from authcore.domains.auth.rate_limit import (
    POLICY_LOGIN,
    RateLimitDecision,
    RateLimiter,
    default_policies,
    enforce_rate_limit,
)
from authcore.domains.auth.single_use import SingleUseTokenManager
from authcore.domains.auth.stores import AccountStore, Notifier, SingleUseTokenStore, TokenStore
from authcore.domains.auth.tokens import TokenIssuer, TokenRotator
from authcore.utils.datetime import utc_now
from authcore.utils.logging import mask_email

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoginResult:
    """Outcome of a successful login.

    Attributes:
        account: Authenticated account.
        tokens: Newly issued token pair.
    """

    account: Account
    tokens: TokenPair


class AuthService:
    """Facade over the authentication engine.

    Attributes:
        _accounts: Account store.
        _notifier: Outbound messages.
        _hasher: Password hasher.
        _rate_limiter: Shared rate limiter.
        _verifier: Credential verifier.
        _issuer: Token issuer.
        _rotator: Refresh token rotator.
        _single_use: Single-use token manager.
    """

    def __init__(
        self,
        accounts: AccountStore,
        tokens: TokenStore,
        single_use_tokens: SingleUseTokenStore,
        notifier: Notifier,
        hasher: PasswordHasher,
        jwt_manager: JWTManager,
        rate_limiter: RateLimiter,
        single_use_settings: SingleUseTokenSettings,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize the authentication service.

        Args:
            accounts: Account store.
            tokens: Refresh token store.
            single_use_tokens: Verification and reset token store.
            notifier: Outbound messages.
            hasher: Password hasher.
            jwt_manager: Token signer.
            rate_limiter: Shared rate limiter.
            single_use_settings: Single-use token lifetimes.
            clock: Source of the current time.
        """
        self._accounts = accounts
        self._notifier = notifier
        self._hasher = hasher
        self._rate_limiter = rate_limiter
        self._clock = clock
        self._verifier = CredentialVerifier(accounts, hasher, clock)
        self._issuer = TokenIssuer(jwt_manager, tokens, clock)
        self._rotator = TokenRotator(self._issuer, tokens, accounts, clock)
        self._single_use = SingleUseTokenManager(single_use_tokens, single_use_settings, clock)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        accounts: AccountStore,
        tokens: TokenStore,
        single_use_tokens: SingleUseTokenStore,
        notifier: Notifier,
        rate_limiter: RateLimiter | None = None,
    ) -> "AuthService":
        """Build a service with components configured from settings."""
        return cls(
            accounts=accounts,
            tokens=tokens,
            single_use_tokens=single_use_tokens,
            notifier=notifier,
            hasher=PasswordHasher(
                rounds=settings.password.bcrypt_rounds,
                min_length=settings.password.min_length,
                max_length=settings.password.max_length,
            ),
            jwt_manager=JWTManager(settings.jwt),
            rate_limiter=rate_limiter or RateLimiter(default_policies(settings.rate_limit)),
            single_use_settings=settings.single_use,
        )

    @property
    def rate_limiter(self) -> RateLimiter:
        return self._rate_limiter

    # Credentials

    async def authenticate(self, email: str, password: str) -> Account:
        """Verify an email and password. See CredentialVerifier.authenticate."""
        return await self._verifier.authenticate(email, password)

    async def login(
        self,
        email: str,
        password: str,
        client_key: str | None = None,
    ) -> LoginResult:
        """Authenticate and issue a token pair.

        When ``client_key`` is given, the attempt counts against the login
        rate limit; successful attempts are uncounted afterwards.

        Args:
            email: Email address.
            password: Plain text password.
            client_key: Rate limit key of the caller.

        Returns:
            LoginResult with the account and its tokens.

        Raises:
            AuthError: RATE_LIMITED kind when too many attempts were made,
                otherwise as raised by authenticate.
        """
        account = await self._attempt(
            client_key, lambda: self._verifier.authenticate(email, password)
        )
        return LoginResult(account=account, tokens=await self._issuer.issue(account))

    async def register(
        self,
        email: str,
        password: str,
        first_name: str = "",
        last_name: str = "",
        client_key: str | None = None,
    ) -> Account:
        """Register a local account and send its verification message.

        Counts against the login rate limit like a login attempt when
        ``client_key`` is given.
        """
        account = await self._attempt(
            client_key,
            lambda: self._verifier.register(email, password, first_name, last_name),
        )
        await self.issue_and_deliver_verification(account)
        return account

    async def social_login(
        self,
        provider: AuthProvider | str,
        provider_id: str,
        email: str,
        first_name: str = "",
        last_name: str = "",
        client_key: str | None = None,
    ) -> LoginResult:
        """Resolve a social provider assertion and issue a token pair.

        Counts against the login rate limit like a login attempt when
        ``client_key`` is given.
        """
        account = await self._attempt(
            client_key,
            lambda: self._verifier.social_login(
                provider, provider_id, email, first_name, last_name
            ),
        )
        return LoginResult(account=account, tokens=await self._issuer.issue(account))

    async def _attempt(
        self,
        client_key: str | None,
        operation: Callable[[], Awaitable[Account]],
    ) -> Account:
        if client_key is None:
            return await operation()

        enforce_rate_limit(self._rate_limiter, POLICY_LOGIN, client_key)
        try:
            account = await operation()
        except AuthError:
            self._rate_limiter.record_outcome(POLICY_LOGIN, client_key, succeeded=False)
            raise
        self._rate_limiter.record_outcome(POLICY_LOGIN, client_key, succeeded=True)
        return account

    # Tokens

    async def issue_tokens(self, account: Account) -> TokenPair:
        """Issue a token pair to an account that may log in.

        Raises:
            AuthError: AUTHORIZATION kind if the account cannot log in.
        """
        if not account.can_login:
            raise AuthError.authorization("Account is not active", account_id=account.id)
        return await self._issuer.issue(account)

    async def rotate_refresh_token(self, token: str) -> TokenPair:
        """Exchange a refresh token. See TokenRotator.rotate."""
        return await self._rotator.rotate(token)

    async def logout(self, subject_id: str) -> int:
        """Revoke every refresh token of an account.

        Returns:
            Number of revoked tokens.
        """
        return await self._issuer.revoke_all(subject_id)

    # Email verification

    async def issue_and_deliver_verification(self, account: Account) -> None:
        """Issue a verification token and email it.

        Accounts whose email is already verified are skipped.
        """
        if account.email_verified:
            logger.debug("Verification skipped, already verified: %s", account.id)
            return

        value = await self._single_use.issue_verification(account.id, account.email)
        await self._notify(
            "verification",
            self._notifier.send_verification_message,
            account.email,
            value,
            account.display_name,
        )

    async def resend_verification(self, email: str) -> None:
        """Send a fresh verification message to an unverified account.

        Unknown addresses are ignored without error.
        """
        normalized = normalize_email(email or "")
        account = await self._accounts.find_by_email(normalized) if normalized else None
        if account is None:
            logger.info("Verification resend ignored for %s", mask_email(normalized))
            return
        await self.issue_and_deliver_verification(account)

    async def consume_verification(self, token: str) -> Account:
        """Redeem a verification token.

        Args:
            token: Opaque value from the verification link.

        Returns:
            The verified account.

        Raises:
            AuthError: INVALID_TOKEN or TOKEN_EXPIRED kind for a bad
                token, including one issued for a previous email address.
                NOT_FOUND kind if the account no longer exists.
        """
        record = await self._single_use.consume(token, SingleUseKind.VERIFICATION)

        account = await self._accounts.find_by_id(record.subject_id)
        if account is None:
            raise AuthError.not_found("Account no longer exists", account_id=record.subject_id)
        if record.email != account.email:
            raise AuthError.invalid_token("Token was issued for another email address")
        if account.email_verified:
            return account

        account = await self._accounts.update(account.verify_email(self._clock()))
        logger.info("Email verified for account: %s", account.id)

        await self._notify(
            "welcome",
            self._notifier.send_welcome_message,
            account.email,
            account.display_name,
        )
        return account

    # Password reset

    async def issue_and_deliver_reset(self, email: str) -> None:
        """Issue a password reset token and email it.

        Unknown addresses and social-only accounts are ignored without
        error, so the response does not reveal whether an account exists.
        """
        normalized = normalize_email(email or "")
        account = await self._accounts.find_by_email(normalized) if normalized else None
        if account is None or account.is_social:
            logger.info("Password reset ignored for %s", mask_email(normalized))
            return

        value = await self._single_use.issue_reset(account.id)
        await self._notify(
            "password_reset",
            self._notifier.send_reset_message,
            account.email,
            value,
            account.display_name,
        )

    async def consume_reset(self, token: str, new_password: str) -> None:
        """Redeem a password reset token and set a new password.

        The new password is checked before the token is consumed, so a
        rejected password does not burn the token. Every refresh token of
        the account is revoked afterwards.

        Raises:
            AuthError: VALIDATION kind for a weak password, INVALID_TOKEN
                or TOKEN_EXPIRED kind for a bad token, NOT_FOUND kind if
                the account no longer exists.
        """
        self._hasher.ensure_acceptable(new_password or "")

        record = await self._single_use.consume(token, SingleUseKind.PASSWORD_RESET)

        account = await self._accounts.find_by_id(record.subject_id)
        if account is None:
            raise AuthError.not_found("Account no longer exists", account_id=record.subject_id)
        if account.is_social:
            raise AuthError.invalid_token("Account has no password")

        password_hash = await self._hasher.hash_async(new_password)
        await self._accounts.update(account.with_password(password_hash, self._clock()))
        await self._issuer.revoke_all(account.id)

        logger.info("Password reset for account: %s", account.id)

    # Rate limiting

    def check_rate(self, key: str, policy_name: str) -> RateLimitDecision:
        """Count a request against a named rate limit policy."""
        return self._rate_limiter.check_policy(policy_name, key)

    async def _notify(
        self,
        event: str,
        send: Callable[..., Awaitable[Any]],
        *args: Any,
    ) -> None:
        try:
            await send(*args)
        except Exception as e:
            logger.error("Failed to deliver %s message: %s", event, str(e), exc_info=True)
