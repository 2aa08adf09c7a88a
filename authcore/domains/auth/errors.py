# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Error taxonomy for the authentication engine.

Every failure raised by the auth domain is an AuthError tagged with an
ErrorKind. The kind carries the HTTP status the boundary layer responds
with and decides whether the message may be shown to the caller. The
boundary switches on the kind instead of on exception subclasses.

Authentication-family kinds (bad credentials, invalid or expired token,
vanished subject) are always answered with the same generic message so a
caller cannot tell which check failed. The distinction survives only in
logs.

Example:
    >>> try:
    ...     raise AuthError.invalid_token("signature mismatch")
    ... except AuthError as e:
    ...     e.kind.status_code
    401
"""

from enum import Enum
from typing import Any

GENERIC_AUTH_MESSAGE = "Invalid credentials"
GENERIC_INTERNAL_MESSAGE = "An internal error occurred"


class ErrorKind(str, Enum):
    """Kinds of failure the engine can report."""

    VALIDATION = "validation_error"
    AUTHENTICATION = "authentication_error"
    TOKEN_EXPIRED = "token_expired"
    INVALID_TOKEN = "invalid_token"
    NOT_FOUND = "not_found"
    AUTHORIZATION = "authorization_error"
    CONFLICT = "conflict"
    RATE_LIMITED = "rate_limited"
    INTERNAL = "internal_error"

    @property
    def status_code(self) -> int:
        """HTTP status code the boundary answers with."""
        return _STATUS_CODES[self]

    @property
    def is_authentication_failure(self) -> bool:
        """Whether the kind is reported as a generic authentication failure."""
        return self in _AUTHENTICATION_FAMILY

    @property
    def public_code(self) -> str:
        """Error code exposed in response bodies."""
        if self.is_authentication_failure:
            return ErrorKind.AUTHENTICATION.value
        return self.value


_STATUS_CODES: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.AUTHENTICATION: 401,
    ErrorKind.TOKEN_EXPIRED: 401,
    ErrorKind.INVALID_TOKEN: 401,
    ErrorKind.NOT_FOUND: 401,
    ErrorKind.AUTHORIZATION: 403,
    ErrorKind.CONFLICT: 409,
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.INTERNAL: 500,
}

_AUTHENTICATION_FAMILY = frozenset({
    ErrorKind.AUTHENTICATION,
    ErrorKind.TOKEN_EXPIRED,
    ErrorKind.INVALID_TOKEN,
    ErrorKind.NOT_FOUND,
})


class AuthError(Exception):
    """Failure raised by the authentication engine.

    Attributes:
        kind: What went wrong.
        message: Internal description, logged but not always shown.
        context: Structured, secret-free details for logs and telemetry.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the error.

        Args:
            kind: Error kind.
            message: Human-readable description.
            context: Optional structured details. Must not contain secrets.
        """
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.context = context or {}

    def __repr__(self) -> str:
        return f"AuthError(kind={self.kind.value!r}, message={self.message!r})"

    @property
    def status_code(self) -> int:
        """HTTP status code for this error."""
        return self.kind.status_code

    @property
    def public_message(self) -> str:
        """Message safe to return to the caller."""
        if self.kind.is_authentication_failure:
            return GENERIC_AUTH_MESSAGE
        if self.kind is ErrorKind.INTERNAL:
            return GENERIC_INTERNAL_MESSAGE
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """Build the redacted response payload."""
        payload: dict[str, Any] = {
            "code": self.kind.public_code,
            "message": self.public_message,
            "status_code": self.status_code,
        }
        if self.kind is ErrorKind.RATE_LIMITED and "retry_after" in self.context:
            payload["retry_after"] = self.context["retry_after"]
        return payload

    # Constructors for the common kinds

    @classmethod
    def validation(cls, message: str, **context: Any) -> "AuthError":
        return cls(ErrorKind.VALIDATION, message, context)

    @classmethod
    def invalid_credentials(cls, reason: str, **context: Any) -> "AuthError":
        """Generic credential rejection. ``reason`` is for logs only."""
        return cls(ErrorKind.AUTHENTICATION, "Invalid email or password", {"reason": reason, **context})

    @classmethod
    def authentication(cls, message: str, **context: Any) -> "AuthError":
        return cls(ErrorKind.AUTHENTICATION, message, context)

    @classmethod
    def token_expired(cls, message: str = "Token has expired", **context: Any) -> "AuthError":
        return cls(ErrorKind.TOKEN_EXPIRED, message, context)

    @classmethod
    def invalid_token(cls, message: str = "Invalid token", **context: Any) -> "AuthError":
        return cls(ErrorKind.INVALID_TOKEN, message, context)

    @classmethod
    def not_found(cls, message: str, **context: Any) -> "AuthError":
        return cls(ErrorKind.NOT_FOUND, message, context)

    @classmethod
    def authorization(cls, message: str, **context: Any) -> "AuthError":
        return cls(ErrorKind.AUTHORIZATION, message, context)

    @classmethod
    def conflict(cls, message: str, **context: Any) -> "AuthError":
        return cls(ErrorKind.CONFLICT, message, context)

    @classmethod
    def rate_limited(cls, message: str, retry_after: int, **context: Any) -> "AuthError":
        return cls(ErrorKind.RATE_LIMITED, message, {"retry_after": retry_after, **context})

    @classmethod
    def internal(cls, message: str, **context: Any) -> "AuthError":
        return cls(ErrorKind.INTERNAL, message, context)
