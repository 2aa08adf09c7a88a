# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Authentication API endpoints.

This module provides endpoints for account authentication:
- POST /register - Create a local account and send a verification email
- POST /login - Password login
- POST /social/{provider} - Login with a verified social provider assertion
- POST /refresh - Rotate a refresh token
- POST /logout - Revoke every refresh token of the current user
- POST /verify-email - Redeem an email verification token
- POST /verify-email/resend - Send a new verification email
- POST /password/reset - Send a password reset email
- POST /password/reset/confirm - Redeem a reset token with a new password
- GET /me - Get current user info

Errors are raised as AuthError and answered by the handlers in
authcore.api.errors.

Example:
    POST /api/v1/auth/login
    Body:
        {"email": "user@example.com", "password": "S3cure!pass"}
"""

import logging
import secrets

from fastapi import APIRouter, Depends, Header, Request, status

from authcore.api.dependencies import get_auth_service, get_container, get_rate_limiter, require_auth
from authcore.api.middleware.auth import CurrentUser
from authcore.api.middleware.rate_limit import get_client_identifier
from authcore.domains.auth.errors import AuthError
from authcore.domains.auth.rate_limit import (
    POLICY_EMAIL_VERIFICATION,
    POLICY_PASSWORD_RESET,
    enforce_rate_limit,
)
from authcore.domains.auth.service import AuthService
from authcore.models.auth import (
    AccountResponse,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    PasswordResetConfirmRequest,
    PasswordResetRequest,
    RefreshTokenRequest,
    RegisterRequest,
    ResendVerificationRequest,
    SocialLoginRequest,
    TokenResponse,
    VerifyEmailRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter()

# Same answer whether or not the address has an account
RESET_REQUESTED_MESSAGE = "If an account exists for this address, a reset link has been sent."
VERIFICATION_REQUESTED_MESSAGE = (
    "If an unverified account exists for this address, a verification link has been sent."
)


def _rate_limits_enabled(request: Request) -> bool:
    return get_container(request).settings.rate_limit.enabled


def _limit(request: Request, policy_name: str) -> None:
    if _rate_limits_enabled(request):
        enforce_rate_limit(get_rate_limiter(request), policy_name, get_client_identifier(request))


def _client_key(request: Request) -> str | None:
    return get_client_identifier(request) if _rate_limits_enabled(request) else None


def _check_social_caller(request: Request, api_key: str | None) -> None:
    social = get_container(request).settings.social
    if not social.is_configured:
        raise AuthError.authorization("Social login is not enabled")
    expected = social.api_key.get_secret_value()
    if api_key is None or not secrets.compare_digest(api_key.encode(), expected.encode()):
        raise AuthError.authentication("Invalid API key")


@router.post(
    "/register",
    response_model=AccountResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register",
    description="Create a local account. A verification email is sent to the address.",
)
async def register(
    request: Request,
    data: RegisterRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> AccountResponse:
    account = await auth_service.register(
        email=data.email,
        password=data.password,
        first_name=data.first_name,
        last_name=data.last_name,
        client_key=_client_key(request),
    )
    return AccountResponse.from_account(account)


@router.post(
    "/login",
    response_model=LoginResponse,
    summary="Login",
    description="Authenticate with email and password and receive a token pair.",
)
async def login(
    request: Request,
    data: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> LoginResponse:
    """Password login.

    Failed attempts count against the login rate limit of the client;
    successful ones do not.
    """
    result = await auth_service.login(data.email, data.password, client_key=_client_key(request))
    return LoginResponse(
        account=AccountResponse.from_account(result.account),
        tokens=TokenResponse.from_pair(result.tokens),
    )


@router.post(
    "/social/{provider}",
    response_model=LoginResponse,
    summary="Social login",
    description=(
        "Log in or sign up with a provider identity already verified by a trusted "
        "caller. The caller authenticates with the X-API-Key header."
    ),
)
async def social_login(
    request: Request,
    provider: str,
    data: SocialLoginRequest,
    x_api_key: str | None = Header(default=None),
    auth_service: AuthService = Depends(get_auth_service),
) -> LoginResponse:
    """Social login.

    Counts against the login rate limit of the client like a password
    login. The provider must be one of the social providers.
    """
    _check_social_caller(request, x_api_key)
    result = await auth_service.social_login(
        provider=provider,
        provider_id=data.provider_id,
        email=data.email,
        first_name=data.first_name,
        last_name=data.last_name,
        client_key=_client_key(request),
    )
    return LoginResponse(
        account=AccountResponse.from_account(result.account),
        tokens=TokenResponse.from_pair(result.tokens),
    )


@router.post(
    "/refresh",
    response_model=TokenResponse,
    summary="Refresh access token",
    description="Get new tokens using a refresh token. Implements token rotation.",
)
async def refresh_token(
    data: RefreshTokenRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> TokenResponse:
    tokens = await auth_service.rotate_refresh_token(data.refresh_token)
    return TokenResponse.from_pair(tokens)


@router.post(
    "/logout",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Logout",
    description="Revoke every refresh token of the current user.",
)
async def logout(
    current_user: CurrentUser = Depends(require_auth),
    auth_service: AuthService = Depends(get_auth_service),
) -> None:
    await auth_service.logout(current_user.id)


@router.post(
    "/verify-email",
    response_model=AccountResponse,
    summary="Verify email",
)
async def verify_email(
    request: Request,
    data: VerifyEmailRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> AccountResponse:
    _limit(request, POLICY_EMAIL_VERIFICATION)
    account = await auth_service.consume_verification(data.token)
    return AccountResponse.from_account(account)


@router.post(
    "/verify-email/resend",
    response_model=MessageResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Resend verification email",
)
async def resend_verification(
    request: Request,
    data: ResendVerificationRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    _limit(request, POLICY_EMAIL_VERIFICATION)
    await auth_service.resend_verification(data.email)
    return MessageResponse(message=VERIFICATION_REQUESTED_MESSAGE)


@router.post(
    "/password/reset",
    response_model=MessageResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Request password reset",
)
async def request_password_reset(
    request: Request,
    data: PasswordResetRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    _limit(request, POLICY_PASSWORD_RESET)
    await auth_service.issue_and_deliver_reset(data.email)
    return MessageResponse(message=RESET_REQUESTED_MESSAGE)


@router.post(
    "/password/reset/confirm",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Confirm password reset",
    description="Set a new password. Every session of the account is revoked.",
)
async def confirm_password_reset(
    request: Request,
    data: PasswordResetConfirmRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> None:
    _limit(request, POLICY_PASSWORD_RESET)
    await auth_service.consume_reset(data.token, data.new_password)


@router.get(
    "/me",
    response_model=AccountResponse,
    summary="Get current user",
)
async def get_me(current_user: CurrentUser = Depends(require_auth)) -> AccountResponse:
    return AccountResponse(
        id=current_user.id,
        email=current_user.email,
        first_name=current_user.first_name,
        last_name=current_user.last_name,
        email_verified=current_user.email_verified,
        status=current_user.status.value,
        provider=current_user.provider.value,
    )
