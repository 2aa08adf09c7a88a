# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Authentication domain services.

This module provides the authentication and token-lifecycle engine:
- Password hashing with bcrypt
- JWT access and refresh token creation and validation
- Credential verification for password and social logins
- Refresh token rotation with reuse detection
- Single-use email verification and password reset tokens

Exports:
    AuthError: The one exception type of the engine.
    ErrorKind: Kinds of AuthError.
    PasswordHasher: Secure password hashing using bcrypt.
    JWTManager: JWT token creation and validation.
    AuthService: Facade over the engine.
"""

from authcore.domains.auth.errors import AuthError, ErrorKind
from authcore.domains.auth.jwt import JWTManager, TokenPair, TokenPayload
from authcore.domains.auth.password import PasswordHasher
from authcore.domains.auth.service import AuthService, LoginResult

__all__ = [
    "AuthError",
    "ErrorKind",
    "PasswordHasher",
    "JWTManager",
    "TokenPair",
    "TokenPayload",
    "AuthService",
    "LoginResult",
]
