# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for verification and password reset tokens."""

import asyncio

import pytest

from authcore.core.config.settings import SingleUseTokenSettings
from authcore.domains.auth.errors import AuthError, ErrorKind
from authcore.domains.auth.jwt import JWTManager
from authcore.domains.auth.models import SingleUseKind
from authcore.domains.auth.single_use import SingleUseTokenManager
from authcore.infrastructure.memory import MemorySingleUseTokenStore

from conftest import FakeClock


@pytest.fixture
def manager(single_use_store: MemorySingleUseTokenStore, clock: FakeClock) -> SingleUseTokenManager:
    return SingleUseTokenManager(single_use_store, SingleUseTokenSettings(), clock)


class TestIssue:
    """Tests for issuing single-use tokens."""

    async def test_verification_token_is_stored_hashed(
        self,
        manager: SingleUseTokenManager,
        single_use_store: MemorySingleUseTokenStore,
        clock: FakeClock,
    ) -> None:
        """Test that only the hash of the value is stored."""
        value = await manager.issue_verification("a-1", "user@example.com")

        record = await single_use_store.find_by_value(JWTManager.hash_token(value))
        assert record.kind is SingleUseKind.VERIFICATION
        assert record.email == "user@example.com"
        assert record.expires_at == clock.now + manager.verification_ttl
        assert await single_use_store.find_by_value(value) is None

    async def test_values_are_url_safe_and_unique(self, manager: SingleUseTokenManager) -> None:
        """Test that issued values are long random URL-safe strings."""
        first = await manager.issue_reset("a-1")
        second = await manager.issue_reset("a-2")

        assert first != second
        assert len(first) >= 43
        assert all(c.isalnum() or c in "-_" for c in first)

    async def test_new_token_replaces_outstanding_of_same_kind(
        self,
        manager: SingleUseTokenManager,
        single_use_store: MemorySingleUseTokenStore,
    ) -> None:
        """Test that reissuing invalidates the previous value only for that kind."""
        old_reset = await manager.issue_reset("a-1")
        verification = await manager.issue_verification("a-1", "user@example.com")
        new_reset = await manager.issue_reset("a-1")

        with pytest.raises(AuthError):
            await manager.consume(old_reset, SingleUseKind.PASSWORD_RESET)
        assert (await manager.consume(new_reset, SingleUseKind.PASSWORD_RESET)).used is True
        assert (await manager.consume(verification, SingleUseKind.VERIFICATION)).subject_id == "a-1"


class TestConsume:
    """Tests for consuming single-use tokens."""

    async def test_consume_once(self, manager: SingleUseTokenManager) -> None:
        """Test that a value works exactly once."""
        value = await manager.issue_reset("a-1")

        record = await manager.consume(value, SingleUseKind.PASSWORD_RESET)

        assert record.subject_id == "a-1"
        assert record.used is True
        with pytest.raises(AuthError, match="already been used") as exc_info:
            await manager.consume(value, SingleUseKind.PASSWORD_RESET)
        assert exc_info.value.kind is ErrorKind.INVALID_TOKEN

    async def test_concurrent_consumption_has_one_winner(self, manager: SingleUseTokenManager) -> None:
        """Test that racing consumers succeed exactly once."""
        value = await manager.issue_reset("a-1")

        results = await asyncio.gather(
            *(manager.consume(value, SingleUseKind.PASSWORD_RESET) for _ in range(5)),
            return_exceptions=True,
        )

        assert sum(1 for r in results if not isinstance(r, BaseException)) == 1

    async def test_wrong_kind_is_unknown(self, manager: SingleUseTokenManager) -> None:
        """Test that a reset token cannot verify an email."""
        value = await manager.issue_reset("a-1")

        with pytest.raises(AuthError, match="Unknown token") as exc_info:
            await manager.consume(value, SingleUseKind.VERIFICATION)

        assert exc_info.value.kind is ErrorKind.INVALID_TOKEN

    async def test_expired_token(self, manager: SingleUseTokenManager, clock: FakeClock) -> None:
        """Test that a token is expired exactly at its expiry instant."""
        value = await manager.issue_reset("a-1")
        clock.advance(minutes=60)

        with pytest.raises(AuthError) as exc_info:
            await manager.consume(value, SingleUseKind.PASSWORD_RESET)

        assert exc_info.value.kind is ErrorKind.TOKEN_EXPIRED

    async def test_just_before_expiry(self, manager: SingleUseTokenManager, clock: FakeClock) -> None:
        """Test that a token is still valid just before expiry."""
        value = await manager.issue_verification("a-1", "user@example.com")
        clock.advance(hours=24, microseconds=-1)

        record = await manager.consume(value, SingleUseKind.VERIFICATION)

        assert record.used is True

    @pytest.mark.parametrize("value", ["", "never-issued"])
    async def test_unknown_values(self, manager: SingleUseTokenManager, value: str) -> None:
        """Test that empty and unknown values are invalid."""
        with pytest.raises(AuthError) as exc_info:
            await manager.consume(value, SingleUseKind.PASSWORD_RESET)

        assert exc_info.value.kind is ErrorKind.INVALID_TOKEN
