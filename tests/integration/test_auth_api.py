# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Integration tests for the auth API.

Runs the full application from create_app with in-memory stores and a
recording notifier in place of SMTP.
"""

from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient
from pydantic import SecretStr

from authcore.api.app import create_app
from authcore.api.dependencies import AuthContainer, build_container
from authcore.api.v1.auth import RESET_REQUESTED_MESSAGE
from authcore.core.config.settings import RateLimitSettings, Settings, SocialLoginSettings
from authcore.domains.auth.errors import GENERIC_AUTH_MESSAGE
from authcore.infrastructure.memory import MemoryAccountStore

from conftest import TEST_PASSWORD, RecordingNotifier

AUTH = "/api/v1/auth"
NEW_PASSWORD = "N3w!Passw0rd-x"
SOCIAL_API_KEY = "trusted-caller-key"


@pytest.fixture
def container(settings: Settings, notifier: RecordingNotifier) -> AuthContainer:
    return build_container(settings, accounts=MemoryAccountStore(), notifier=notifier)


@pytest.fixture
def client(container: AuthContainer) -> Iterator[TestClient]:
    with TestClient(create_app(container=container)) as test_client:
        yield test_client


def _register_and_verify(client: TestClient, notifier: RecordingNotifier, email: str) -> dict:
    response = client.post(f"{AUTH}/register", json={"email": email, "password": TEST_PASSWORD})
    assert response.status_code == 201
    response = client.post(f"{AUTH}/verify-email", json={"token": notifier.last_verification_token()})
    assert response.status_code == 200
    return response.json()


def _login(client: TestClient, email: str, password: str = TEST_PASSWORD) -> dict:
    response = client.post(f"{AUTH}/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return response.json()


class TestHealth:
    """Tests for the health endpoint."""

    def test_health(self, client: TestClient) -> None:
        """Test that health reports the in-memory store."""
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["database"] == "memory"
        assert body["scheduler"]["running"] is False


class TestRegistration:
    """Tests for registration and email verification."""

    def test_register_and_verify(self, client: TestClient, notifier: RecordingNotifier) -> None:
        """Test the registration flow."""
        response = client.post(
            f"{AUTH}/register",
            json={"email": "New@Example.com", "password": TEST_PASSWORD, "first_name": "Grace"},
        )

        assert response.status_code == 201
        assert response.json()["email"] == "new@example.com"
        assert response.json()["status"] == "pending"
        assert "password_hash" not in response.json()

        verified = client.post(f"{AUTH}/verify-email", json={"token": notifier.last_verification_token()})

        assert verified.json()["email_verified"] is True
        assert verified.json()["status"] == "active"

    def test_duplicate_registration_conflicts(self, client: TestClient) -> None:
        """Test that a second registration of an address conflicts."""
        body = {"email": "dup@example.com", "password": TEST_PASSWORD}
        client.post(f"{AUTH}/register", json=body)

        response = client.post(f"{AUTH}/register", json=body)

        assert response.status_code == 409
        assert response.json()["code"] == "conflict"

    def test_weak_password_is_400(self, client: TestClient) -> None:
        """Test that weak passwords are a validation error."""
        response = client.post(f"{AUTH}/register", json={"email": "w@example.com", "password": "weak"})

        assert response.status_code == 400
        assert response.json()["code"] == "validation_error"

    def test_malformed_body_is_400(self, client: TestClient) -> None:
        """Test that schema violations answer 400 with the offending fields."""
        response = client.post(f"{AUTH}/register", json={"email": "not-an-email"})

        assert response.status_code == 400
        assert "body.email" in response.json()["fields"]
        assert "body.password" in response.json()["fields"]

    def test_invalid_verification_token(self, client: TestClient) -> None:
        """Test that an unknown token gets the generic 401."""
        response = client.post(f"{AUTH}/verify-email", json={"token": "bogus"})

        assert response.status_code == 401
        assert response.json()["message"] == GENERIC_AUTH_MESSAGE

    def test_resend_verification_is_uniform(self, client: TestClient, notifier: RecordingNotifier) -> None:
        """Test that resend answers the same for known and unknown addresses."""
        client.post(f"{AUTH}/register", json={"email": "r@example.com", "password": TEST_PASSWORD})

        known = client.post(f"{AUTH}/verify-email/resend", json={"email": "r@example.com"})
        unknown = client.post(f"{AUTH}/verify-email/resend", json={"email": "nobody@example.com"})

        assert known.status_code == unknown.status_code == 202
        assert known.json() == unknown.json()
        assert len(notifier.verifications) == 2


class TestLoginAndTokens:
    """Tests for login, me, refresh and logout."""

    def test_login_and_me(self, client: TestClient, notifier: RecordingNotifier) -> None:
        """Test that the access token authenticates /me."""
        _register_and_verify(client, notifier, "user@example.com")

        body = _login(client, "user@example.com")

        assert body["tokens"]["token_type"] == "Bearer"
        assert body["account"]["email"] == "user@example.com"
        me = client.get(
            f"{AUTH}/me",
            headers={"Authorization": f"Bearer {body['tokens']['access_token']}"},
        )
        assert me.status_code == 200
        assert me.json()["email"] == "user@example.com"

    def test_me_without_token(self, client: TestClient) -> None:
        """Test that /me requires authentication."""
        response = client.get(f"{AUTH}/me")

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_bad_credentials_are_indistinguishable(
        self,
        client: TestClient,
        notifier: RecordingNotifier,
    ) -> None:
        """Test that unknown email and wrong password answer identically."""
        _register_and_verify(client, notifier, "user@example.com")

        wrong = client.post(f"{AUTH}/login", json={"email": "user@example.com", "password": "Wrong!Passw0rd"})
        unknown = client.post(f"{AUTH}/login", json={"email": "ghost@example.com", "password": TEST_PASSWORD})

        assert wrong.status_code == unknown.status_code == 401
        assert wrong.json() == unknown.json()

    def test_unverified_login_is_403(self, client: TestClient) -> None:
        """Test that correct credentials on a pending account are forbidden."""
        client.post(f"{AUTH}/register", json={"email": "p@example.com", "password": TEST_PASSWORD})

        response = client.post(f"{AUTH}/login", json={"email": "p@example.com", "password": TEST_PASSWORD})

        assert response.status_code == 403

    def test_refresh_rotation_and_replay(self, client: TestClient, notifier: RecordingNotifier) -> None:
        """Test that a refresh token works once and replay revokes the new one."""
        _register_and_verify(client, notifier, "user@example.com")
        tokens = _login(client, "user@example.com")["tokens"]

        rotated = client.post(f"{AUTH}/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert rotated.status_code == 200

        replay = client.post(f"{AUTH}/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert replay.status_code == 401

        revoked = client.post(
            f"{AUTH}/refresh",
            json={"refresh_token": rotated.json()["refresh_token"]},
        )
        assert revoked.status_code == 401

    def test_logout_revokes_refresh_tokens(self, client: TestClient, notifier: RecordingNotifier) -> None:
        """Test that logout makes refresh tokens unusable."""
        _register_and_verify(client, notifier, "user@example.com")
        tokens = _login(client, "user@example.com")["tokens"]

        response = client.post(
            f"{AUTH}/logout",
            headers={"Authorization": f"Bearer {tokens['access_token']}"},
        )

        assert response.status_code == 204
        refresh = client.post(f"{AUTH}/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert refresh.status_code == 401


class TestPasswordReset:
    """Tests for the password reset endpoints."""

    def test_reset_flow(self, client: TestClient, notifier: RecordingNotifier) -> None:
        """Test requesting and confirming a reset."""
        _register_and_verify(client, notifier, "user@example.com")
        old_tokens = _login(client, "user@example.com")["tokens"]

        requested = client.post(f"{AUTH}/password/reset", json={"email": "user@example.com"})
        assert requested.status_code == 202
        assert requested.json()["message"] == RESET_REQUESTED_MESSAGE

        confirmed = client.post(
            f"{AUTH}/password/reset/confirm",
            json={"token": notifier.last_reset_token(), "new_password": NEW_PASSWORD},
        )
        assert confirmed.status_code == 204

        assert client.post(f"{AUTH}/refresh", json={"refresh_token": old_tokens["refresh_token"]}).status_code == 401
        _login(client, "user@example.com", NEW_PASSWORD)

    def test_reset_for_unknown_email_looks_the_same(
        self,
        client: TestClient,
        notifier: RecordingNotifier,
    ) -> None:
        """Test that reset requests do not reveal accounts."""
        response = client.post(f"{AUTH}/password/reset", json={"email": "ghost@example.com"})

        assert response.status_code == 202
        assert response.json()["message"] == RESET_REQUESTED_MESSAGE
        assert notifier.resets == []


class TestSocialLogin:
    """Tests for the social login endpoint."""

    @pytest.fixture
    def social_client(self, settings: Settings, notifier: RecordingNotifier) -> Iterator[TestClient]:
        settings = settings.model_copy(
            update={"social": SocialLoginSettings(api_key=SecretStr(SOCIAL_API_KEY))}
        )
        container = build_container(settings, accounts=MemoryAccountStore(), notifier=notifier)
        with TestClient(create_app(container=container)) as test_client:
            yield test_client

    def test_social_login_issues_tokens(self, social_client: TestClient) -> None:
        """Test that a trusted caller can log a provider identity in."""
        response = social_client.post(
            f"{AUTH}/social/google",
            json={"provider_id": "g-1", "email": "Social@Example.com", "first_name": "Ada"},
            headers={"X-API-Key": SOCIAL_API_KEY},
        )

        assert response.status_code == 200, response.text
        body = response.json()
        assert body["account"]["provider"] == "google"
        assert body["account"]["email_verified"] is True
        me = social_client.get(
            f"{AUTH}/me",
            headers={"Authorization": f"Bearer {body['tokens']['access_token']}"},
        )
        assert me.json()["email"] == "social@example.com"

    def test_caller_key_is_required(self, social_client: TestClient) -> None:
        """Test that a missing or wrong key is 401."""
        body = {"provider_id": "g-1", "email": "social@example.com"}

        missing = social_client.post(f"{AUTH}/social/google", json=body)
        wrong = social_client.post(f"{AUTH}/social/google", json=body, headers={"X-API-Key": "nope"})

        assert missing.status_code == wrong.status_code == 401

    def test_not_configured_is_403(self, client: TestClient) -> None:
        """Test that the endpoint is off without a configured key."""
        response = client.post(
            f"{AUTH}/social/google",
            json={"provider_id": "g-1", "email": "social@example.com"},
            headers={"X-API-Key": ""},
        )

        assert response.status_code == 403

    def test_local_email_conflicts(self, social_client: TestClient, notifier: RecordingNotifier) -> None:
        """Test that a provider identity cannot take over a local account."""
        _register_and_verify(social_client, notifier, "user@example.com")

        response = social_client.post(
            f"{AUTH}/social/github",
            json={"provider_id": "gh-1", "email": "user@example.com"},
            headers={"X-API-Key": SOCIAL_API_KEY},
        )

        assert response.status_code == 409

    def test_local_provider_is_rejected(self, social_client: TestClient) -> None:
        """Test that only social providers are accepted."""
        response = social_client.post(
            f"{AUTH}/social/local",
            json={"provider_id": "x", "email": "social@example.com"},
            headers={"X-API-Key": SOCIAL_API_KEY},
        )

        assert response.status_code == 400


class TestRateLimits:
    """Tests for the endpoint rate limits."""

    def test_login_attempts_are_limited(self, client: TestClient, notifier: RecordingNotifier) -> None:
        """Test that repeated failures are answered with 429."""
        _register_and_verify(client, notifier, "user@example.com")
        body = {"email": "user@example.com", "password": "Wrong!Passw0rd"}

        statuses = [client.post(f"{AUTH}/login", json=body).status_code for _ in range(6)]

        assert statuses == [401] * 5 + [429]

    def test_successful_logins_are_not_limited(self, client: TestClient, notifier: RecordingNotifier) -> None:
        """Test that successful logins do not count."""
        _register_and_verify(client, notifier, "user@example.com")

        for _ in range(8):
            _login(client, "user@example.com")

    def test_password_reset_requests_are_limited(self, client: TestClient) -> None:
        """Test the password reset policy and its headers."""
        statuses = []
        for _ in range(4):
            response = client.post(f"{AUTH}/password/reset", json={"email": "x@example.com"})
            statuses.append(response.status_code)

        assert statuses == [202, 202, 202, 429]
        assert int(response.headers["Retry-After"]) >= 1
        assert response.json()["retry_after"] >= 1

    def test_limits_can_be_disabled(self, settings: Settings, notifier: RecordingNotifier) -> None:
        """Test that RATE_LIMIT_ENABLED=false turns every policy off."""
        settings = settings.model_copy(update={"rate_limit": RateLimitSettings(enabled=False)})
        container = build_container(settings, accounts=MemoryAccountStore(), notifier=notifier)

        with TestClient(create_app(container=container)) as client:
            statuses = [
                client.post(f"{AUTH}/password/reset", json={"email": "x@example.com"}).status_code
                for _ in range(5)
            ]

        assert statuses == [202] * 5

    def test_failed_registrations_are_limited(self, client: TestClient) -> None:
        """Test that registration shares the login limit."""
        body = {"email": "dup@example.com", "password": TEST_PASSWORD}
        assert client.post(f"{AUTH}/register", json=body).status_code == 201

        statuses = [client.post(f"{AUTH}/register", json=body).status_code for _ in range(6)]

        assert statuses == [409] * 5 + [429]

    def test_email_verification_is_limited(self, client: TestClient) -> None:
        """Test that verification attempts are limited per client."""
        statuses = [
            client.post(f"{AUTH}/verify-email", json={"token": f"bogus-{i}"}).status_code
            for i in range(4)
        ]

        assert statuses == [401, 401, 401, 429]
