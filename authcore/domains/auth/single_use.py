# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Single-use tokens for email verification and password reset.

Values are opaque URL-safe random strings delivered out of band. Only
their SHA-256 hash is stored. Issuing a new token removes the subject's
outstanding tokens of the same kind, and consumption is an atomic
conditional update, so each value works at most once.
"""

import logging
import secrets
from datetime import datetime, timedelta
from typing import Callable

from authcore.core.config.settings import SingleUseTokenSettings
from authcore.domains.auth.errors import AuthError
from authcore.domains.auth.jwt import JWTManager
from authcore.domains.auth.models import SingleUseKind, SingleUseToken
from authcore.domains.auth.stores import SingleUseTokenStore
from authcore.utils.datetime import utc_now

logger = logging.getLogger(__name__)


class SingleUseTokenManager:
    """Issues and consumes verification and password-reset tokens.

    Attributes:
        _store: Single-use token store.
        _settings: Lifetimes and value size.
        _clock: Source of the current time.

    Example:
        >>> manager = SingleUseTokenManager(store, settings.single_use)
        >>> value = await manager.issue_reset(account.id)
        >>> record = await manager.consume(value, SingleUseKind.PASSWORD_RESET)
    """

    def __init__(
        self,
        store: SingleUseTokenStore,
        settings: SingleUseTokenSettings,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._settings = settings
        self._clock = clock

    @property
    def verification_ttl(self) -> timedelta:
        return timedelta(hours=self._settings.verification_expire_hours)

    @property
    def reset_ttl(self) -> timedelta:
        return timedelta(minutes=self._settings.reset_expire_minutes)

    async def issue_verification(self, account_id: str, email: str) -> str:
        """Issue an email verification token.

        Args:
            account_id: Account whose email is being verified.
            email: Address the token is sent to.

        Returns:
            The opaque token value.
        """
        return await self._issue(SingleUseKind.VERIFICATION, account_id, self.verification_ttl, email)

    async def issue_reset(self, account_id: str) -> str:
        """Issue a password reset token.

        Args:
            account_id: Account whose password may be reset.

        Returns:
            The opaque token value.
        """
        return await self._issue(SingleUseKind.PASSWORD_RESET, account_id, self.reset_ttl)

    async def _issue(
        self,
        kind: SingleUseKind,
        account_id: str,
        ttl: timedelta,
        email: str | None = None,
    ) -> str:
        removed = await self._store.delete_all_for_subject(account_id, kind)
        if removed:
            logger.debug("Replaced %d outstanding %s tokens for %s", removed, kind.value, account_id)

        value = secrets.token_urlsafe(self._settings.token_bytes)
        now = self._clock()
        await self._store.save(
            SingleUseToken(
                subject_id=account_id,
                kind=kind,
                email=email,
                value_hash=JWTManager.hash_token(value),
                expires_at=now + ttl,
                created_at=now,
            )
        )

        logger.info("Issued %s token for account: %s", kind.value, account_id)
        return value

    async def consume(self, token: str, expected_kind: SingleUseKind) -> SingleUseToken:
        """Consume a single-use token.

        Args:
            token: Opaque value presented by the user.
            expected_kind: Kind the caller is redeeming.

        Returns:
            The consumed record, marked used.

        Raises:
            AuthError: INVALID_TOKEN kind if the value is unknown, of
                another kind or already used. TOKEN_EXPIRED kind if it
                has expired.
        """
        if not token:
            raise AuthError.invalid_token("Token is empty")

        record = await self._store.find_by_value(JWTManager.hash_token(token))
        if record is None:
            raise AuthError.invalid_token("Unknown token")

        if record.kind is not expected_kind:
            logger.warning(
                "Token kind mismatch: expected %s, got %s",
                expected_kind.value,
                record.kind.value,
            )
            raise AuthError.invalid_token("Unknown token")

        if record.used:
            raise AuthError.invalid_token("Token has already been used")

        if record.is_expired(self._clock()):
            raise AuthError.token_expired(f"{expected_kind.value} token has expired")

        if not await self._store.mark_used(record.id):
            raise AuthError.invalid_token("Token has already been used")

        logger.info("Consumed %s token for account: %s", record.kind.value, record.subject_id)
        return record.model_copy(update={"used": True})
