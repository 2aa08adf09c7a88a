# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Credential verification for password and social logins.

The verifier answers "who is this caller" from an email and password, or
from a social provider assertion. Every credential failure is reported
with the same generic error so a caller cannot learn whether an account
exists, is social-only, or simply had a different password. The
specific reason is kept in the error context and in the logs.

Example:
    >>> verifier = CredentialVerifier(account_store, PasswordHasher())
    >>> account = await verifier.authenticate("user@example.com", "S3cure!pass")
"""

import logging
from datetime import datetime
from typing import Callable

from authcore.domains.auth.errors import AuthError
from authcore.domains.auth.models import (
    Account,
    AccountStatus,
    AuthProvider,
    is_valid_email,
    normalize_email,
)
from authcore.domains.auth.password import PasswordHasher
from authcore.domains.auth.stores import AccountStore
from authcore.utils.datetime import utc_now
from authcore.utils.logging import mask_email

logger = logging.getLogger(__name__)


class CredentialVerifier:
    """Verifies credentials and resolves them to accounts.

    Attributes:
        _accounts: Account store.
        _hasher: Password hasher.
        _clock: Source of the current time.
    """

    def __init__(
        self,
        accounts: AccountStore,
        hasher: PasswordHasher,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._accounts = accounts
        self._hasher = hasher
        self._clock = clock

    async def authenticate(self, email: str, password: str) -> Account:
        """Authenticate an account by email and password.

        The password is always checked against a bcrypt hash, a throwaway
        one when there is no usable account, so the three rejection paths
        take the same time.

        Args:
            email: Email address as typed by the user.
            password: Plain text password.

        Returns:
            The account with ``last_login_at`` updated.

        Raises:
            AuthError: AUTHENTICATION kind for unknown emails, social-only
                accounts and wrong passwords. AUTHORIZATION kind when the
                password is right but the email is unverified or the
                account is not active.
        """
        normalized = normalize_email(email or "")
        account = await self._accounts.find_by_email(normalized) if normalized else None
        password_hash = account.password_hash if account else None

        matched = await self._hasher.verify_async(password or "", password_hash)

        if account is None:
            logger.info("Login failed, unknown account: %s", mask_email(normalized))
            raise AuthError.invalid_credentials("unknown_account")

        if password_hash is None:
            logger.info("Login failed, social-only account: %s", account.id)
            raise AuthError.invalid_credentials("social_account", account_id=account.id)

        if not matched:
            logger.info("Login failed, password mismatch: %s", account.id)
            raise AuthError.invalid_credentials("password_mismatch", account_id=account.id)

        if not account.email_verified:
            logger.info("Login refused, email not verified: %s", account.id)
            raise AuthError.authorization(
                "Email address has not been verified",
                account_id=account.id,
            )

        if account.status is not AccountStatus.ACTIVE:
            logger.info("Login refused, account %s: %s", account.status.value, account.id)
            raise AuthError.authorization(
                "Account is not active",
                account_id=account.id,
                status=account.status.value,
            )

        now = self._clock()
        account = account.record_login(now)
        if self._hasher.needs_rehash(password_hash):
            account = account.with_password(await self._hasher.hash_async(password), now)
            logger.info("Password hash upgraded for account: %s", account.id)

        account = await self._accounts.update(account)
        logger.info("Login succeeded: %s", account.id)
        return account

    async def register(
        self,
        email: str,
        password: str,
        first_name: str = "",
        last_name: str = "",
    ) -> Account:
        """Create a pending local account.

        Args:
            email: Email address.
            password: Plain text password, checked against the strength policy.
            first_name: Given name.
            last_name: Family name.

        Returns:
            The stored account, pending email verification.

        Raises:
            AuthError: VALIDATION kind for a malformed email or a weak
                password, CONFLICT kind if the email is taken.
        """
        normalized = normalize_email(email or "")
        if not is_valid_email(normalized):
            raise AuthError.validation("Invalid email address", field="email")

        self._hasher.ensure_acceptable(password or "")

        if await self._accounts.find_by_email(normalized) is not None:
            raise AuthError.conflict("An account with this email already exists")

        now = self._clock()
        account = Account(
            email=normalized,
            password_hash=await self._hasher.hash_async(password),
            first_name=first_name.strip(),
            last_name=last_name.strip(),
            status=AccountStatus.PENDING,
            provider=AuthProvider.LOCAL,
            created_at=now,
            updated_at=now,
        )
        account = await self._accounts.save(account)

        logger.info("Account registered: %s", account.id)
        return account

    async def social_login(
        self,
        provider: AuthProvider | str,
        provider_id: str,
        email: str,
        first_name: str = "",
        last_name: str = "",
    ) -> Account:
        """Resolve a social provider assertion to an account.

        Lookup order is provider id, then email. A social account of the
        same provider that has no provider id yet is linked. A new
        account is created active and verified, since the provider has
        already confirmed the address.

        Args:
            provider: Social provider.
            provider_id: Subject identifier assigned by the provider.
            email: Email address asserted by the provider.
            first_name: Given name.
            last_name: Family name.

        Returns:
            The linked, found or created account.

        Raises:
            AuthError: VALIDATION kind for a bad provider, provider id or
                email. CONFLICT kind if the email belongs to a local
                account or to another provider identity. AUTHORIZATION
                kind for suspended accounts.
        """
        try:
            provider = AuthProvider(provider)
        except ValueError as e:
            raise AuthError.validation(f"Unknown provider: {provider}") from e
        if provider is AuthProvider.LOCAL:
            raise AuthError.validation("Social login requires a social provider")
        if not provider_id:
            raise AuthError.validation("Provider id is required")

        now = self._clock()
        account = await self._accounts.find_by_provider(provider, provider_id)

        if account is None:
            normalized = normalize_email(email or "")
            if not is_valid_email(normalized):
                raise AuthError.validation("Invalid email address", field="email")

            existing = await self._accounts.find_by_email(normalized)
            if existing is None:
                account = await self._accounts.save(
                    Account(
                        email=normalized,
                        first_name=first_name.strip(),
                        last_name=last_name.strip(),
                        email_verified=True,
                        status=AccountStatus.ACTIVE,
                        provider=provider,
                        provider_id=provider_id,
                        created_at=now,
                        updated_at=now,
                    )
                )
                logger.info("Social account created: %s (%s)", account.id, provider.value)
            elif existing.provider is provider and existing.provider_id is None:
                account = existing.link_provider(provider_id, now)
                logger.info("Social account linked: %s (%s)", account.id, provider.value)
            else:
                logger.warning(
                    "Social login refused, email %s already bound to %s account",
                    mask_email(normalized),
                    existing.provider.value,
                )
                raise AuthError.conflict(
                    "An account with this email already exists",
                    provider=provider.value,
                )

        if account.status is AccountStatus.SUSPENDED:
            logger.info("Social login refused, account suspended: %s", account.id)
            raise AuthError.authorization("Account has been suspended", account_id=account.id)

        return await self._accounts.update(account.record_login(now))
