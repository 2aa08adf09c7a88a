# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Request and response schemas for the auth endpoints."""

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field

from authcore.domains.auth.jwt import TokenPair
from authcore.domains.auth.models import Account


class RegisterRequest(BaseModel):
    """Registration request."""

    email: EmailStr
    password: str = Field(min_length=1, max_length=1024)
    first_name: str = Field(default="", max_length=100)
    last_name: str = Field(default="", max_length=100)


class LoginRequest(BaseModel):
    """Password login request."""

    email: EmailStr
    password: str = Field(min_length=1, max_length=1024)


class SocialLoginRequest(BaseModel):
    """Provider assertion forwarded by a trusted caller.

    The caller has already verified the user with the provider.
    """

    provider_id: str = Field(min_length=1, max_length=255)
    email: EmailStr
    first_name: str = Field(default="", max_length=100)
    last_name: str = Field(default="", max_length=100)


class RefreshTokenRequest(BaseModel):
    """Refresh token request."""

    refresh_token: str = Field(min_length=1)


class VerifyEmailRequest(BaseModel):
    """Email verification request with the token from the link."""

    token: str = Field(min_length=1)


class ResendVerificationRequest(BaseModel):
    email: EmailStr


class PasswordResetRequest(BaseModel):
    email: EmailStr


class PasswordResetConfirmRequest(BaseModel):
    """New password with the token from the reset link."""

    token: str = Field(min_length=1)
    new_password: str = Field(min_length=1, max_length=1024)


class TokenResponse(BaseModel):
    """Token pair returned by login and refresh.

    Attributes:
        access_token: JWT access token.
        refresh_token: JWT refresh token.
        token_type: Always "Bearer".
        expires_in: Access token lifetime in seconds.
        refresh_expires_in: Refresh token lifetime in seconds.
    """

    access_token: str
    refresh_token: str
    token_type: str = "Bearer"
    expires_in: int
    refresh_expires_in: int

    @classmethod
    def from_pair(cls, pair: TokenPair) -> "TokenResponse":
        return cls(**pair.model_dump())


class AccountResponse(BaseModel):
    """Public view of an account."""

    id: str
    email: str
    first_name: str
    last_name: str
    email_verified: bool
    status: str
    provider: str
    last_login_at: datetime | None = None

    @classmethod
    def from_account(cls, account: Account) -> "AccountResponse":
        return cls(
            id=account.id,
            email=account.email,
            first_name=account.first_name,
            last_name=account.last_name,
            email_verified=account.email_verified,
            status=account.status.value,
            provider=account.provider.value,
            last_login_at=account.last_login_at,
        )


class LoginResponse(BaseModel):
    """Login result: the account and its tokens."""

    account: AccountResponse
    tokens: TokenResponse


class MessageResponse(BaseModel):
    message: str
