# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for account and token entities."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from authcore.domains.auth.models import (
    Account,
    AccountStatus,
    AuthProvider,
    RefreshTokenRecord,
    SingleUseKind,
    SingleUseToken,
    is_valid_email,
    normalize_email,
)

HASH = "$2b$04$" + "a" * 53


class TestEmailHelpers:
    """Tests for email normalization and validation."""

    def test_normalize_email(self) -> None:
        """Test that emails are trimmed and lowercased."""
        assert normalize_email("  Jane.Doe@Example.COM ") == "jane.doe@example.com"

    def test_is_valid_email(self) -> None:
        """Test address syntax checks."""
        assert is_valid_email("jane@example.com") is True
        assert is_valid_email("not-an-email") is False
        assert is_valid_email("") is False


class TestAccount:
    """Tests for the Account entity."""

    def test_email_is_normalized_on_construction(self) -> None:
        """Test that the stored email is normalized."""
        account = Account(email=" Jane@Example.com", password_hash=HASH)

        assert account.email == "jane@example.com"

    def test_defaults(self) -> None:
        """Test that new accounts are pending local accounts."""
        account = Account(email="jane@example.com", password_hash=HASH)

        assert account.status is AccountStatus.PENDING
        assert account.provider is AuthProvider.LOCAL
        assert account.email_verified is False
        assert account.can_login is False
        assert account.id

    def test_local_account_requires_password_hash(self) -> None:
        """Test the local credential invariant."""
        with pytest.raises(ValidationError, match="Local accounts require a password hash"):
            Account(email="jane@example.com")

    def test_social_account_cannot_have_password_hash(self) -> None:
        """Test the social credential invariant."""
        with pytest.raises(ValidationError, match="cannot carry a password hash"):
            Account(
                email="jane@example.com",
                password_hash=HASH,
                provider=AuthProvider.GOOGLE,
                provider_id="g-1",
            )

    def test_is_frozen(self) -> None:
        """Test that accounts are immutable."""
        account = Account(email="jane@example.com", password_hash=HASH)

        with pytest.raises(ValidationError):
            account.email = "other@example.com"

    def test_verify_email_activates_pending_account(self) -> None:
        """Test the pending to active transition."""
        account = Account(email="jane@example.com", password_hash=HASH)

        verified = account.verify_email()

        assert verified.email_verified is True
        assert verified.status is AccountStatus.ACTIVE
        assert verified.can_login is True
        assert account.email_verified is False

    def test_verify_email_keeps_suspension(self) -> None:
        """Test that verifying does not lift a suspension."""
        account = Account(email="jane@example.com", password_hash=HASH).suspend()

        assert account.verify_email().status is AccountStatus.SUSPENDED

    def test_with_password_rejects_social_account(self) -> None:
        """Test that social accounts cannot receive a password."""
        account = Account(
            email="jane@example.com",
            provider=AuthProvider.GITHUB,
            provider_id="gh-1",
        )

        with pytest.raises(ValueError, match="Only local accounts"):
            account.with_password(HASH)

    def test_record_login_sets_timestamps(self) -> None:
        """Test that record_login stamps last_login_at."""
        now = datetime(2025, 1, 1, tzinfo=timezone.utc)
        account = Account(email="jane@example.com", password_hash=HASH).record_login(now)

        assert account.last_login_at == now
        assert account.updated_at == now

    def test_display_name(self) -> None:
        """Test that display_name falls back to the email."""
        named = Account(email="jane@example.com", password_hash=HASH, first_name="Jane", last_name="Doe")
        unnamed = Account(email="jane@example.com", password_hash=HASH)

        assert named.display_name == "Jane Doe"
        assert unnamed.display_name == "jane@example.com"

    def test_record_round_trip(self) -> None:
        """Test that from_record rebuilds an equal account."""
        account = Account(email="jane@example.com", password_hash=HASH).verify_email()

        assert Account.from_record(account.to_record()) == account


class TestTokenRecords:
    """Tests for refresh and single-use token records."""

    def test_refresh_record_expiry_is_strict(self) -> None:
        """Test that a record expiring at T is expired at T."""
        expires_at = datetime(2025, 1, 1, tzinfo=timezone.utc)
        record = RefreshTokenRecord(subject_id="a-1", value_hash="h", expires_at=expires_at)

        assert record.is_expired(expires_at - timedelta(microseconds=1)) is False
        assert record.is_expired(expires_at) is True
        assert record.is_valid(expires_at) is False

    def test_used_record_is_invalid(self) -> None:
        """Test that used records are never valid."""
        record = RefreshTokenRecord(
            subject_id="a-1",
            value_hash="h",
            expires_at=datetime.now(timezone.utc) + timedelta(days=1),
            used=True,
        )

        assert record.is_valid() is False

    def test_from_record_makes_naive_datetimes_aware(self) -> None:
        """Test that naive database timestamps are read as UTC."""
        record = RefreshTokenRecord.from_record({
            "id": "r-1",
            "subject_id": "a-1",
            "value_hash": "h",
            "expires_at": datetime(2030, 1, 1),
            "used": False,
            "created_at": datetime(2025, 1, 1),
        })

        assert record.expires_at.tzinfo is not None
        assert record.created_at.tzinfo is not None

    def test_verification_token_requires_email(self) -> None:
        """Test that verification tokens are bound to an address."""
        with pytest.raises(ValidationError, match="require a target email"):
            SingleUseToken(
                subject_id="a-1",
                kind=SingleUseKind.VERIFICATION,
                value_hash="h",
                expires_at=datetime.now(timezone.utc),
            )

    def test_reset_token_without_email(self) -> None:
        """Test that reset tokens need no email."""
        token = SingleUseToken(
            subject_id="a-1",
            kind=SingleUseKind.PASSWORD_RESET,
            value_hash="h",
            expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
        )

        assert token.is_valid() is True
