# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Interfaces the authentication engine consumes.

Stores own account and token records; the engine only holds them for the
duration of a request. ``mark_used`` must be a conditional update: it
succeeds for exactly one caller per record, which is what makes refresh
rotation and single-use consumption safe under concurrent requests.

Implementations:
    authcore.infrastructure.memory: in-process stores for tests and dev.
    authcore.infrastructure.database.stores: SQLAlchemy async stores.
"""

from datetime import datetime
from typing import Protocol

from authcore.domains.auth.models import (
    Account,
    AuthProvider,
    RefreshTokenRecord,
    SingleUseKind,
    SingleUseToken,
)


class AccountStore(Protocol):
    async def find_by_email(self, email: str) -> Account | None: ...

    async def find_by_id(self, account_id: str) -> Account | None: ...

    async def find_by_provider(
        self, provider: AuthProvider, provider_id: str
    ) -> Account | None: ...

    async def save(self, account: Account) -> Account:
        """Insert a new account.

        Raises:
            AuthError: CONFLICT kind if the email is already taken.
        """
        ...

    async def update(self, account: Account) -> Account: ...


class TokenStore(Protocol):
    """Refresh token records, looked up by the hash of the signed value."""

    async def find_by_value(self, value_hash: str) -> RefreshTokenRecord | None: ...

    async def save(self, record: RefreshTokenRecord) -> RefreshTokenRecord: ...

    async def mark_used(self, record_id: str) -> bool:
        """Atomically flip ``used`` from False to True.

        Returns:
            True for the single caller that performed the transition.
        """
        ...

    async def delete(self, record_id: str) -> bool: ...

    async def delete_expired(self, now: datetime) -> int: ...

    async def delete_all_for_subject(self, subject_id: str) -> int: ...


class SingleUseTokenStore(Protocol):
    """Verification and password-reset tokens, looked up by value hash."""

    async def find_by_value(self, value_hash: str) -> SingleUseToken | None: ...

    async def save(self, token: SingleUseToken) -> SingleUseToken: ...

    async def mark_used(self, token_id: str) -> bool: ...

    async def delete(self, token_id: str) -> bool: ...

    async def delete_expired(self, now: datetime) -> int: ...

    async def delete_all_for_subject(self, subject_id: str, kind: SingleUseKind) -> int: ...


class Notifier(Protocol):
    """Outbound messages. Delivery is best effort."""

    async def send_verification_message(self, to: str, token: str, name: str) -> None: ...

    async def send_reset_message(self, to: str, token: str, name: str) -> None: ...

    async def send_welcome_message(self, to: str, name: str) -> None: ...
