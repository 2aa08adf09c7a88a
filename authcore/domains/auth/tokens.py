# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Token issuance and refresh token rotation.

Refresh tokens are signed JWTs whose SHA-256 hash is persisted. A refresh
token can be exchanged exactly once: rotation flips the stored record to
used with a conditional update, so of two concurrent rotations of the
same token only one succeeds. Presenting a token that was already
rotated is treated as theft and revokes every refresh token of the
subject.

Example:
    >>> issuer = TokenIssuer(jwt_manager, token_store)
    >>> rotator = TokenRotator(issuer, token_store, account_store)
    >>> pair = await issuer.issue(account)
    >>> new_pair = await rotator.rotate(pair.refresh_token)
"""

import logging
from datetime import datetime, timedelta
from typing import Callable

from authcore.domains.auth.errors import AuthError
from authcore.domains.auth.jwt import JWTManager, TokenPair
from authcore.domains.auth.models import Account, RefreshTokenRecord, TokenKind
from authcore.domains.auth.stores import AccountStore, TokenStore
from authcore.utils.datetime import utc_now

logger = logging.getLogger(__name__)


class TokenIssuer:
    """Mints access and refresh token pairs.

    Attributes:
        _jwt_manager: Token signer.
        _tokens: Refresh token store.
        _clock: Source of the current time.
    """

    def __init__(
        self,
        jwt_manager: JWTManager,
        tokens: TokenStore,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._jwt_manager = jwt_manager
        self._tokens = tokens
        self._clock = clock

    @property
    def jwt_manager(self) -> JWTManager:
        return self._jwt_manager

    async def issue(self, account: Account, refresh_ttl: timedelta | None = None) -> TokenPair:
        """Issue a token pair and persist the refresh token.

        Args:
            account: Account the tokens are issued to.
            refresh_ttl: Overrides the configured refresh lifetime.

        Returns:
            New TokenPair.
        """
        if refresh_ttl is None:
            refresh_ttl = self._jwt_manager.refresh_ttl
        pair = self._jwt_manager.create_token_pair(
            subject=account.id,
            email=account.email,
            refresh_ttl=refresh_ttl,
        )

        now = self._clock()
        await self._tokens.save(
            RefreshTokenRecord(
                subject_id=account.id,
                value_hash=JWTManager.hash_token(pair.refresh_token),
                expires_at=now + refresh_ttl,
                created_at=now,
            )
        )

        logger.debug("Token pair issued for account: %s", account.id)
        return pair

    async def revoke_all(self, subject_id: str) -> int:
        """Revoke every refresh token of a subject.

        Args:
            subject_id: Account identifier.

        Returns:
            Number of revoked tokens.
        """
        revoked = await self._tokens.delete_all_for_subject(subject_id)
        logger.info("Revoked %d refresh tokens for account: %s", revoked, subject_id)
        return revoked


class TokenRotator:
    """Exchanges refresh tokens for new token pairs.

    Attributes:
        _issuer: Issuer used for the new pair.
        _tokens: Refresh token store.
        _accounts: Account store.
        _clock: Source of the current time.
    """

    def __init__(
        self,
        issuer: TokenIssuer,
        tokens: TokenStore,
        accounts: AccountStore,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._issuer = issuer
        self._tokens = tokens
        self._accounts = accounts
        self._clock = clock

    async def rotate(self, presented: str) -> TokenPair:
        """Rotate a refresh token.

        Args:
            presented: Refresh token presented by the client.

        Returns:
            New TokenPair. The presented token can never be used again.

        Raises:
            AuthError: TOKEN_EXPIRED kind if the token or its record has
                expired. INVALID_TOKEN kind if it is malformed, unknown,
                already used or lost a concurrent rotation. NOT_FOUND kind
                if the account no longer exists. AUTHORIZATION kind if the
                account may no longer log in.
        """
        claims = self._issuer.jwt_manager.decode_token(presented, expected_type=TokenKind.REFRESH)

        record = await self._tokens.find_by_value(JWTManager.hash_token(presented))
        if record is None or record.subject_id != claims.sub:
            logger.warning("Refresh token not recognized for subject: %s", claims.sub)
            raise AuthError.invalid_token("Refresh token not recognized")

        if record.used:
            revoked = await self._tokens.delete_all_for_subject(record.subject_id)
            logger.warning(
                "Refresh token reuse detected, revoked %d tokens for account: %s",
                revoked,
                record.subject_id,
            )
            raise AuthError.invalid_token("Refresh token has already been used", reuse=True)

        if record.is_expired(self._clock()):
            raise AuthError.token_expired("Refresh token has expired")

        if not await self._tokens.mark_used(record.id):
            logger.warning("Concurrent rotation lost for record: %s", record.id)
            raise AuthError.invalid_token("Refresh token has already been used")

        account = await self._accounts.find_by_id(record.subject_id)
        if account is None:
            raise AuthError.not_found("Account no longer exists", account_id=record.subject_id)
        if not account.can_login:
            raise AuthError.authorization("Account is not active", account_id=account.id)

        pair = await self._issuer.issue(account)
        logger.info("Tokens refreshed for account: %s", account.id)
        return pair

    async def revoke_all(self, subject_id: str) -> int:
        return await self._issuer.revoke_all(subject_id)
