# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""JWT token management utilities.

This module provides JWT token creation and validation using python-jose.
Every token carries its subject, its kind (access or refresh), issuer,
audience, a random token id, issued-at and expiry. Decoding checks the
signature, issuer, audience and expiry with no clock-skew leeway; a token
is expired from its exp second on.

Example:
    >>> from authcore.core.config import get_settings
    >>> jwt_manager = JWTManager(get_settings().jwt)
    >>> pair = jwt_manager.create_token_pair(subject="user-123")
    >>> claims = jwt_manager.decode_token(pair.access_token, expected_type="access")
"""

import hashlib
import logging
import secrets
from datetime import datetime, timedelta
from typing import Any, Callable, Literal
from uuid import UUID

from jose import ExpiredSignatureError, JWTError, jwt
from jose.exceptions import JWTClaimsError
from pydantic import BaseModel, ValidationError

from authcore.core.config.settings import JWTSettings
from authcore.domains.auth.errors import AuthError
from authcore.domains.auth.models import TokenKind
from authcore.utils.datetime import utc_now

logger = logging.getLogger(__name__)

# Claims set by sign(); extra_claims cannot override them
RESERVED_CLAIMS = frozenset({"sub", "type", "iss", "aud", "exp", "iat", "jti"})


class TokenPayload(BaseModel):
    """JWT token payload structure.

    Attributes:
        sub: Subject (account ID).
        type: Token kind (access or refresh).
        email: Account email, when embedded.
        iss: Issuer.
        aud: Audience.
        exp: Expiration timestamp.
        iat: Issued at timestamp.
        jti: JWT ID for token tracking.
    """

    sub: str
    type: Literal["access", "refresh"]
    email: str | None = None
    iss: str
    aud: str
    exp: int
    iat: int
    jti: str


class TokenPair(BaseModel):
    """Access and refresh token pair.

    Attributes:
        access_token: JWT access token string.
        refresh_token: JWT refresh token string.
        token_type: Token type (always "Bearer").
        expires_in: Access token expiration in seconds.
        refresh_expires_in: Refresh token expiration in seconds.
    """

    access_token: str
    refresh_token: str
    token_type: str = "Bearer"
    expires_in: int
    refresh_expires_in: int


class JWTManager:
    """JWT token creation and validation manager.

    Signs short-lived access tokens and long-lived refresh tokens with a
    shared secret and validates them. Decoding is pure: it never touches
    a store.

    Attributes:
        _settings: JWT configuration settings.
        _clock: Source of the current time used when issuing and decoding.

    Example:
        >>> jwt_manager = JWTManager(settings)
        >>> token = jwt_manager.sign("user-123", TokenKind.ACCESS, timedelta(minutes=5))
        >>> jwt_manager.decode_token(token).sub
        'user-123'
    """

    def __init__(
        self,
        settings: JWTSettings,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize the JWT manager.

        Args:
            settings: JWT configuration settings.
            clock: Returns the current aware UTC time.
        """
        self._settings = settings
        self._clock = clock

    @property
    def access_ttl(self) -> timedelta:
        return timedelta(minutes=self._settings.access_token_expire_minutes)

    @property
    def refresh_ttl(self) -> timedelta:
        return timedelta(days=self._settings.refresh_token_expire_days)

    def sign(
        self,
        subject: str | UUID,
        kind: TokenKind | str,
        ttl: timedelta,
        extra_claims: dict[str, Any] | None = None,
    ) -> str:
        """Create a signed token.

        Args:
            subject: Account identifier.
            kind: Token kind.
            ttl: Lifetime, must be positive.
            extra_claims: Additional non-reserved claims.

        Returns:
            Encoded JWT.

        Raises:
            AuthError: VALIDATION kind for a non-positive ttl,
                INTERNAL kind if signing fails.
        """
        if ttl <= timedelta(0):
            raise AuthError.validation("Token lifetime must be positive")

        kind = TokenKind(kind)
        now = self._clock()
        payload: dict[str, Any] = {
            key: value
            for key, value in (extra_claims or {}).items()
            if key not in RESERVED_CLAIMS
        }
        payload.update({
            "sub": str(subject),
            "type": kind.value,
            "iss": self._settings.issuer,
            "aud": self._settings.audience,
            "exp": int((now + ttl).timestamp()),
            "iat": int(now.timestamp()),
            "jti": secrets.token_urlsafe(16),
        })

        try:
            return jwt.encode(
                payload,
                self._settings.secret_key.get_secret_value(),
                algorithm=self._settings.algorithm,
            )
        except JWTError as e:
            logger.error("Token signing failed: %s", type(e).__name__)
            raise AuthError.internal("Failed to sign token", operation="sign") from e

    def create_access_token(self, subject: str | UUID, email: str | None = None) -> str:
        """Create an access token with the configured lifetime."""
        claims = {"email": email} if email else None
        return self.sign(subject, TokenKind.ACCESS, self.access_ttl, claims)

    def create_refresh_token(
        self,
        subject: str | UUID,
        email: str | None = None,
        ttl: timedelta | None = None,
    ) -> str:
        """Create a refresh token, by default with the configured lifetime."""
        claims = {"email": email} if email else None
        return self.sign(subject, TokenKind.REFRESH, self.refresh_ttl if ttl is None else ttl, claims)

    def create_token_pair(
        self,
        subject: str | UUID,
        email: str | None = None,
        refresh_ttl: timedelta | None = None,
    ) -> TokenPair:
        """Create an access and refresh token pair.

        Args:
            subject: Account identifier.
            email: Account email embedded in both tokens.
            refresh_ttl: Overrides the configured refresh lifetime.

        Returns:
            TokenPair with access and refresh tokens.
        """
        if refresh_ttl is None:
            refresh_ttl = self.refresh_ttl
        return TokenPair(
            access_token=self.create_access_token(subject, email),
            refresh_token=self.create_refresh_token(subject, email, refresh_ttl),
            token_type="Bearer",
            expires_in=int(self.access_ttl.total_seconds()),
            refresh_expires_in=int(refresh_ttl.total_seconds()),
        )

    def decode_token(
        self,
        token: str,
        expected_type: Literal["access", "refresh"] | TokenKind | None = None,
    ) -> TokenPayload:
        """Decode and validate a JWT token.

        Args:
            token: JWT token string.
            expected_type: Expected token kind.

        Returns:
            TokenPayload with decoded claims.

        Raises:
            AuthError: TOKEN_EXPIRED kind if the token has expired,
                INVALID_TOKEN kind if it is malformed, badly signed,
                for another issuer or audience, or of the wrong kind.
        """
        if not token:
            raise AuthError.invalid_token("Token is empty")

        try:
            payload = jwt.decode(
                token,
                self._settings.secret_key.get_secret_value(),
                algorithms=[self._settings.algorithm],
                audience=self._settings.audience,
                issuer=self._settings.issuer,
                options={"leeway": 0},
            )
        except ExpiredSignatureError as e:
            raise AuthError.token_expired() from e
        except JWTClaimsError as e:
            logger.warning("Token claims rejected: %s", str(e))
            raise AuthError.invalid_token(f"Invalid token claims: {e}") from e
        except JWTError as e:
            logger.warning("Token decode failed: %s", str(e))
            raise AuthError.invalid_token(f"Invalid token: {e}") from e

        try:
            claims = TokenPayload.model_validate(payload)
        except ValidationError as e:
            raise AuthError.invalid_token("Token payload is malformed") from e

        # expired from the exp second on
        if claims.exp <= self._clock().timestamp():
            raise AuthError.token_expired()

        if expected_type is not None:
            expected = TokenKind(expected_type).value
            if claims.type != expected:
                raise AuthError.invalid_token(
                    f"Expected {expected} token, got {claims.type}",
                    token_type=claims.type,
                )

        return claims

    def verify_token(
        self,
        token: str,
        expected_type: Literal["access", "refresh"] | TokenKind | None = None,
    ) -> bool:
        """Check whether a token is valid.

        Args:
            token: JWT token string.
            expected_type: Expected token kind.

        Returns:
            True if token is valid, False otherwise.
        """
        try:
            self.decode_token(token, expected_type)
            return True
        except AuthError:
            return False

    @staticmethod
    def hash_token(token: str) -> str:
        """Create a SHA-256 hash of a token.

        Stores keep the hash instead of the token itself.

        Args:
            token: Token string to hash.

        Returns:
            SHA-256 hash of the token as hex string.
        """
        return hashlib.sha256(token.encode()).hexdigest()
