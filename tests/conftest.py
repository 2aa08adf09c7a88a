# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest configuration and shared fixtures.

This module provides fixtures used across all test types:
- Unit tests
- Integration tests

Settings use bcrypt rounds of 4 so hashing stays fast.
"""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import SecretStr

from authcore.core.config.settings import (
    JWTSettings,
    PasswordSettings,
    RateLimitSettings,
    SchedulerSettings,
    Settings,
    SingleUseTokenSettings,
    SocialLoginSettings,
)
from authcore.domains.auth.jwt import JWTManager
from authcore.domains.auth.models import Account, AccountStatus, AuthProvider
from authcore.domains.auth.password import PasswordHasher
from authcore.infrastructure.memory import (
    MemoryAccountStore,
    MemorySingleUseTokenStore,
    MemoryTokenStore,
)

TEST_PASSWORD = "S3cure!Passw0rd"


# =============================================================================
# Marker Configuration
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test (in-memory stores)"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )


# =============================================================================
# Test Doubles
# =============================================================================


class FakeClock:
    """Settable clock returning aware UTC datetimes."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime.now(timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class RecordingNotifier:
    """Notifier that keeps every message in memory."""

    def __init__(self) -> None:
        self.verifications: list[tuple[str, str]] = []
        self.resets: list[tuple[str, str]] = []
        self.welcomes: list[str] = []

    async def send_verification_message(self, to: str, token: str, name: str) -> None:
        self.verifications.append((to, token))

    async def send_reset_message(self, to: str, token: str, name: str) -> None:
        self.resets.append((to, token))

    async def send_welcome_message(self, to: str, name: str) -> None:
        self.welcomes.append(to)

    def last_verification_token(self) -> str:
        return self.verifications[-1][1]

    def last_reset_token(self) -> str:
        return self.resets[-1][1]


# =============================================================================
# Settings Fixtures
# =============================================================================


@pytest.fixture
def jwt_settings() -> JWTSettings:
    """Create JWT settings for tests."""
    return JWTSettings(
        secret_key=SecretStr("test-secret-key-for-jwt-testing-0123456789"),
        algorithm="HS256",
        issuer="authcore-test",
        audience="authcore-test-clients",
        access_token_expire_minutes=30,
        refresh_token_expire_days=7,
    )


@pytest.fixture
def settings(jwt_settings: JWTSettings) -> Settings:
    """Create application settings with in-memory stores and no scheduler."""
    return Settings(
        environment="development",
        debug=True,
        log_level="DEBUG",
        jwt=jwt_settings,
        password=PasswordSettings(bcrypt_rounds=4),
        single_use=SingleUseTokenSettings(),
        rate_limit=RateLimitSettings(),
        scheduler=SchedulerSettings(enabled=False),
        social=SocialLoginSettings(api_key=SecretStr("")),
    )


# =============================================================================
# Component Fixtures
# =============================================================================


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def hasher() -> PasswordHasher:
    """Create a fast password hasher."""
    return PasswordHasher(rounds=4)


@pytest.fixture
def jwt_manager(jwt_settings: JWTSettings) -> JWTManager:
    """Create JWT manager with test settings."""
    return JWTManager(jwt_settings)


@pytest.fixture
def account_store() -> MemoryAccountStore:
    return MemoryAccountStore()


@pytest.fixture
def token_store() -> MemoryTokenStore:
    return MemoryTokenStore()


@pytest.fixture
def single_use_store() -> MemorySingleUseTokenStore:
    return MemorySingleUseTokenStore()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def active_account(hasher: PasswordHasher) -> Account:
    """Provide a verified, active local account."""
    return Account(
        email="active@example.com",
        password_hash=hasher.hash(TEST_PASSWORD),
        first_name="Ada",
        last_name="Lovelace",
        email_verified=True,
        status=AccountStatus.ACTIVE,
        provider=AuthProvider.LOCAL,
    )
