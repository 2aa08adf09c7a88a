# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Domain entities for accounts and persisted tokens.

Entities are immutable Pydantic models. They are built from persisted
records through explicit factories (``from_record``) that receive the
full stored shape, and state transitions return updated copies.

Invariants enforced on construction:
- An account has a password hash iff its provider is ``local``.
- Emails are stored normalized (trimmed, lowercased).
- Token records are valid iff unused and ``now < expires_at``.
"""

from collections.abc import Mapping
from datetime import datetime
from enum import Enum
from typing import Any, Self
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, EmailStr, Field, TypeAdapter, ValidationError, model_validator

from authcore.utils.datetime import ensure_utc, utc_now

_email_adapter = TypeAdapter(EmailStr)


def normalize_email(email: str) -> str:
    """Normalize an email address for lookup and storage.

    Args:
        email: Raw email address.

    Returns:
        Trimmed, lowercased address.
    """
    return email.strip().lower()


def is_valid_email(email: str) -> bool:
    """Check that an address is syntactically valid.

    Args:
        email: Address to check.

    Returns:
        True if the address parses as an email.
    """
    try:
        _email_adapter.validate_python(email)
    except ValidationError:
        return False
    return True


def new_id() -> str:
    """Generate an opaque record identifier."""
    return str(uuid4())


class AccountStatus(str, Enum):
    """Account lifecycle: pending -> active -> suspended."""

    PENDING = "pending"
    ACTIVE = "active"
    SUSPENDED = "suspended"


class AuthProvider(str, Enum):
    """Where an account's credentials come from."""

    LOCAL = "local"
    GOOGLE = "google"
    GITHUB = "github"
    MICROSOFT = "microsoft"


class TokenKind(str, Enum):
    """Kinds of signed tokens."""

    ACCESS = "access"
    REFRESH = "refresh"


class SingleUseKind(str, Enum):
    """Kinds of opaque out-of-band tokens."""

    VERIFICATION = "verification"
    PASSWORD_RESET = "password_reset"


class Account(BaseModel):
    """A user account.

    Attributes:
        id: Opaque account identifier.
        email: Normalized, unique email address.
        password_hash: bcrypt hash, None for social-login-only accounts.
        first_name: Given name.
        last_name: Family name.
        email_verified: Whether the email address has been confirmed.
        status: Lifecycle status.
        provider: Credential provider tag.
        provider_id: Identifier assigned by a social provider.
        last_login_at: Last successful login.
        created_at: Creation timestamp.
        updated_at: Last modification timestamp.
    """

    model_config = ConfigDict(frozen=True, use_enum_values=False)

    id: str = Field(default_factory=new_id)
    email: str
    password_hash: str | None = None
    first_name: str = ""
    last_name: str = ""
    email_verified: bool = False
    status: AccountStatus = AccountStatus.PENDING
    provider: AuthProvider = AuthProvider.LOCAL
    provider_id: str | None = None
    last_login_at: datetime | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @model_validator(mode="before")
    @classmethod
    def _normalize(cls, data: Any) -> Any:
        if isinstance(data, Mapping) and isinstance(data.get("email"), str):
            data = {**data, "email": normalize_email(data["email"])}
        return data

    @model_validator(mode="after")
    def _check_credentials(self) -> Self:
        if self.provider is AuthProvider.LOCAL and not self.password_hash:
            raise ValueError("Local accounts require a password hash")
        if self.provider is not AuthProvider.LOCAL and self.password_hash:
            raise ValueError("Social-login accounts cannot carry a password hash")
        return self

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Account":
        """Build an account from a persisted record.

        Args:
            record: Full stored shape, keyed by field name.

        Returns:
            Validated Account.
        """
        return cls.model_validate(dict(record))

    def to_record(self) -> dict[str, Any]:
        """Serialize to the persisted shape."""
        return self.model_dump(mode="python")

    @property
    def display_name(self) -> str:
        """First and last name, or the email if both are empty."""
        name = f"{self.first_name} {self.last_name}".strip()
        return name or self.email

    @property
    def is_social(self) -> bool:
        return self.provider is not AuthProvider.LOCAL

    @property
    def can_login(self) -> bool:
        """Whether the account may be issued tokens."""
        return self.email_verified and self.status is AccountStatus.ACTIVE

    def verify_email(self, now: datetime | None = None) -> "Account":
        """Confirm the email address, activating a pending account."""
        status = AccountStatus.ACTIVE if self.status is AccountStatus.PENDING else self.status
        return self.model_copy(
            update={"email_verified": True, "status": status, "updated_at": now or utc_now()}
        )

    def suspend(self, now: datetime | None = None) -> "Account":
        return self.model_copy(
            update={"status": AccountStatus.SUSPENDED, "updated_at": now or utc_now()}
        )

    def record_login(self, now: datetime | None = None) -> "Account":
        stamp = now or utc_now()
        return self.model_copy(update={"last_login_at": stamp, "updated_at": stamp})

    def with_password(self, password_hash: str, now: datetime | None = None) -> "Account":
        """Replace the password hash of a local account.

        Raises:
            ValueError: If the account is not a local account.
        """
        if self.provider is not AuthProvider.LOCAL:
            raise ValueError("Only local accounts have passwords")
        return self.model_copy(
            update={"password_hash": password_hash, "updated_at": now or utc_now()}
        )

    def link_provider(self, provider_id: str, now: datetime | None = None) -> "Account":
        return self.model_copy(
            update={"provider_id": provider_id, "updated_at": now or utc_now()}
        )


class RefreshTokenRecord(BaseModel):
    """Persisted refresh token.

    Only the SHA-256 hash of the signed value is stored.

    Attributes:
        id: Record identifier.
        subject_id: Owning account.
        value_hash: SHA-256 hex digest of the signed token.
        expires_at: Expiry instant.
        used: Set once the token has been rotated.
        kind: Always ``refresh``.
        created_at: Creation timestamp.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    subject_id: str
    value_hash: str
    expires_at: datetime
    used: bool = False
    kind: TokenKind = TokenKind.REFRESH
    created_at: datetime = Field(default_factory=utc_now)

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "RefreshTokenRecord":
        data = dict(record)
        data["expires_at"] = ensure_utc(data["expires_at"])
        if data.get("created_at") is not None:
            data["created_at"] = ensure_utc(data["created_at"])
        return cls.model_validate(data)

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or utc_now()) >= self.expires_at

    def is_valid(self, now: datetime | None = None) -> bool:
        return not self.used and not self.is_expired(now)


class SingleUseToken(BaseModel):
    """Persisted email-verification or password-reset token.

    Attributes:
        id: Record identifier.
        subject_id: Owning account.
        kind: Verification or password reset.
        email: Target address (verification tokens only).
        value_hash: SHA-256 hex digest of the opaque value.
        expires_at: Expiry instant.
        used: Terminal once set.
        created_at: Creation timestamp.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    subject_id: str
    kind: SingleUseKind
    email: str | None = None
    value_hash: str
    expires_at: datetime
    used: bool = False
    created_at: datetime = Field(default_factory=utc_now)

    @model_validator(mode="after")
    def _check_email(self) -> Self:
        if self.kind is SingleUseKind.VERIFICATION and not self.email:
            raise ValueError("Verification tokens require a target email")
        return self

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "SingleUseToken":
        data = dict(record)
        data["expires_at"] = ensure_utc(data["expires_at"])
        if data.get("created_at") is not None:
            data["created_at"] = ensure_utc(data["created_at"])
        return cls.model_validate(data)

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or utc_now()) >= self.expires_at

    def is_valid(self, now: datetime | None = None) -> bool:
        return not self.used and not self.is_expired(now)
