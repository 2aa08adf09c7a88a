# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Password hashing utilities using bcrypt.

This module provides secure password hashing and verification using the
bcrypt library directly, plus random password generation and a strength
check used at registration and password reset.

bcrypt is deliberately slow. Async callers run it through
``asyncio.to_thread`` (see hash_async/verify_async) so the event loop is
never blocked by a hash.

Example:
    >>> hasher = PasswordHasher()
    >>> hashed = hasher.hash("my_password")
    >>> hasher.verify("my_password", hashed)
    True
"""

import asyncio
import logging
import re
import secrets
from dataclasses import dataclass, field

import bcrypt

from authcore.domains.auth.errors import AuthError

logger = logging.getLogger(__name__)

# bcrypt only consumes the first 72 bytes of its input
BCRYPT_MAX_BYTES = 72

UPPERCASE = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
LOWERCASE = "abcdefghijklmnopqrstuvwxyz"
DIGITS = "0123456789"
SYMBOLS = "!@#$%^&*"
CHARACTER_CLASSES = (UPPERCASE, LOWERCASE, DIGITS, SYMBOLS)
ALPHABET = "".join(CHARACTER_CLASSES)

_SYMBOL_RE = re.compile(r"[!@#$%^&*()_+\-=\[\]{};':\"\\|,.<>/?]")
_REPEAT_RE = re.compile(r"(.)\1{2,}")


@dataclass
class PasswordStrength:
    """Result of a password strength check.

    Attributes:
        valid: Whether the password is acceptable.
        score: Score from 0 to 6.
        feedback: Suggestions for a stronger password.
    """

    valid: bool
    score: int
    feedback: list[str] = field(default_factory=list)


def _encode(password: str) -> bytes:
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


class PasswordHasher:
    """Secure password hashing using bcrypt.

    Uses bcrypt with automatic salt generation. The default rounds value
    of 12 provides a good balance between security and performance.

    Attributes:
        _rounds: Number of bcrypt rounds for hashing.
        _min_length: Minimum accepted password length.
        _max_length: Maximum accepted password length.

    Example:
        >>> hasher = PasswordHasher()
        >>> hashed = hasher.hash("secure_password")
        >>> hasher.verify("secure_password", hashed)
        True
        >>> hasher.verify("wrong_password", hashed)
        False
    """

    def __init__(self, rounds: int = 12, min_length: int = 8, max_length: int = 128) -> None:
        """Initialize the password hasher.

        Args:
            rounds: Number of bcrypt rounds. Higher is more secure but slower.
            min_length: Minimum password length accepted by validate_strength.
            max_length: Maximum password length accepted by validate_strength.
        """
        if rounds < 12:
            logger.warning("bcrypt rounds %d is below the recommended 12", rounds)
        self._rounds = rounds
        self._min_length = min_length
        self._max_length = max_length
        self._dummy_hash: str | None = None

    @property
    def rounds(self) -> int:
        return self._rounds

    def hash(self, password: str) -> str:
        """Hash a password using bcrypt.

        Args:
            password: Plain text password to hash.

        Returns:
            Bcrypt hash string with salt embedded.

        Raises:
            AuthError: VALIDATION kind if the password is empty,
                INTERNAL kind if bcrypt fails.
        """
        if not password:
            raise AuthError.validation("Password cannot be empty")

        try:
            salt = bcrypt.gensalt(rounds=self._rounds)
            hashed = bcrypt.hashpw(_encode(password), salt)
        except (ValueError, TypeError) as e:
            logger.error("Password hashing failed: %s", type(e).__name__)
            raise AuthError.internal("Failed to hash password", operation="hash") from e
        return hashed.decode("utf-8")

    def verify(self, password: str, password_hash: str) -> bool:
        """Verify a password against a hash in constant time.

        Args:
            password: Plain text password to verify.
            password_hash: Bcrypt hash to verify against.

        Returns:
            True if password matches the hash, False otherwise.
        """
        if not password or not password_hash:
            return False

        try:
            return bcrypt.checkpw(_encode(password), password_hash.encode("utf-8"))
        except ValueError:
            logger.warning("Password verification against malformed hash")
            return False

    compare = verify

    async def hash_async(self, password: str) -> str:
        """Hash in a worker thread."""
        return await asyncio.to_thread(self.hash, password)

    async def verify_async(self, password: str, password_hash: str | None) -> bool:
        """Verify in a worker thread.

        A missing hash is checked against a throwaway hash of the same
        cost and always fails, so an unknown account costs the same time
        as a wrong password.
        """
        if not password_hash:
            await asyncio.to_thread(self._verify_dummy, password)
            return False
        return await asyncio.to_thread(self.verify, password, password_hash)

    def _verify_dummy(self, password: str) -> None:
        if self._dummy_hash is None:
            self._dummy_hash = self.hash(secrets.token_urlsafe(16))
        self.verify(password or "x", self._dummy_hash)

    def needs_rehash(self, password_hash: str) -> bool:
        """Check if a hash was produced with a different cost factor.

        Args:
            password_hash: Existing password hash to check.

        Returns:
            True if the hash should be updated, False otherwise.
        """
        if not password_hash:
            return False

        parts = password_hash.split("$")
        # "$2b$12$<salt+hash>" splits into ["", "2b", "12", "..."]
        if len(parts) < 4 or not parts[2].isdigit():
            return False
        return int(parts[2]) != self._rounds

    def generate_random(self, length: int = 16) -> str:
        """Generate a random password.

        When ``length`` allows it the result contains at least one
        uppercase letter, lowercase letter, digit and symbol.

        Args:
            length: Number of characters.

        Returns:
            Random password.

        Raises:
            AuthError: VALIDATION kind if length is not positive.
        """
        if length <= 0:
            raise AuthError.validation("Password length must be positive")

        chars: list[str] = []
        if length >= len(CHARACTER_CLASSES):
            chars.extend(secrets.choice(charset) for charset in CHARACTER_CLASSES)
        chars.extend(secrets.choice(ALPHABET) for _ in range(length - len(chars)))

        # Fisher-Yates with a CSPRNG so required characters are not at fixed positions
        for i in range(len(chars) - 1, 0, -1):
            j = secrets.randbelow(i + 1)
            chars[i], chars[j] = chars[j], chars[i]
        return "".join(chars)

    def validate_strength(self, password: str) -> PasswordStrength:
        """Score a password and explain how to improve it.

        Args:
            password: Candidate password.

        Returns:
            PasswordStrength. Passwords outside the length bounds are
            never valid.
        """
        feedback: list[str] = []
        score = 0

        if len(password) >= self._min_length:
            score += 1
        else:
            feedback.append(f"Password should be at least {self._min_length} characters long")

        if len(password) >= 12:
            score += 1
        elif len(password) >= self._min_length:
            feedback.append("Consider using 12+ characters for better security")

        if re.search(r"[a-z]", password):
            score += 1
        else:
            feedback.append("Add lowercase letters")

        if re.search(r"[A-Z]", password):
            score += 1
        else:
            feedback.append("Add uppercase letters")

        if re.search(r"\d", password):
            score += 1
        else:
            feedback.append("Add numbers")

        if _SYMBOL_RE.search(password):
            score += 1
        else:
            feedback.append("Add special characters")

        if _REPEAT_RE.search(password):
            score -= 1
            feedback.append("Avoid repeating characters")

        too_long = len(password) > self._max_length
        if too_long:
            feedback.append(f"Password must be at most {self._max_length} characters long")

        score = max(score, 0)
        valid = score >= 4 and len(password) >= self._min_length and not too_long
        return PasswordStrength(valid=valid, score=score, feedback=feedback)

    def ensure_acceptable(self, password: str) -> None:
        """Raise if a password fails the strength policy.

        Raises:
            AuthError: VALIDATION kind with the feedback in context.
        """
        strength = self.validate_strength(password)
        if not strength.valid:
            raise AuthError.validation(
                "Password does not meet the strength requirements",
                feedback=strength.feedback,
            )
