# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""In-memory stores for tests and local development.

Each store keeps its records in plain dicts behind an ``asyncio.Lock``.
``mark_used`` checks and flips the flag while holding the lock, which
gives it the same exactly-once semantics as the conditional UPDATE of
the SQL stores. State is lost when the process exits.
"""

import asyncio
from datetime import datetime
from typing import Generic, TypeVar

from authcore.domains.auth.errors import AuthError
from authcore.domains.auth.models import (
    Account,
    AuthProvider,
    RefreshTokenRecord,
    SingleUseKind,
    SingleUseToken,
    normalize_email,
)

RecordT = TypeVar("RecordT", RefreshTokenRecord, SingleUseToken)


class MemoryAccountStore:
    """Accounts keyed by id, with a unique email index."""

    def __init__(self) -> None:
        self._accounts: dict[str, Account] = {}
        self._by_email: dict[str, str] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._accounts)

    async def find_by_email(self, email: str) -> Account | None:
        async with self._lock:
            account_id = self._by_email.get(normalize_email(email))
            return self._accounts.get(account_id) if account_id else None

    async def find_by_id(self, account_id: str) -> Account | None:
        async with self._lock:
            return self._accounts.get(account_id)

    async def find_by_provider(self, provider: AuthProvider, provider_id: str) -> Account | None:
        async with self._lock:
            for account in self._accounts.values():
                if account.provider is provider and account.provider_id == provider_id:
                    return account
            return None

    async def save(self, account: Account) -> Account:
        async with self._lock:
            if account.email in self._by_email or account.id in self._accounts:
                raise AuthError.conflict("An account with this email already exists")
            self._accounts[account.id] = account
            self._by_email[account.email] = account.id
            return account

    async def update(self, account: Account) -> Account:
        async with self._lock:
            current = self._accounts.get(account.id)
            if current is None:
                raise AuthError.not_found("Account does not exist", account_id=account.id)
            if current.email != account.email:
                if account.email in self._by_email:
                    raise AuthError.conflict("An account with this email already exists")
                del self._by_email[current.email]
                self._by_email[account.email] = account.id
            self._accounts[account.id] = account
            return account


class _MemoryTokenTable(Generic[RecordT]):
    """Shared storage for hashed token records."""

    def __init__(self) -> None:
        self._records: dict[str, RecordT] = {}
        self._by_hash: dict[str, str] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._records)

    async def find_by_value(self, value_hash: str) -> RecordT | None:
        async with self._lock:
            record_id = self._by_hash.get(value_hash)
            return self._records.get(record_id) if record_id else None

    async def save(self, record: RecordT) -> RecordT:
        async with self._lock:
            self._records[record.id] = record
            self._by_hash[record.value_hash] = record.id
            return record

    async def mark_used(self, record_id: str) -> bool:
        async with self._lock:
            record = self._records.get(record_id)
            if record is None or record.used:
                return False
            self._records[record_id] = record.model_copy(update={"used": True})
            return True

    async def delete(self, record_id: str) -> bool:
        async with self._lock:
            return self._remove(record_id)

    async def delete_expired(self, now: datetime) -> int:
        async with self._lock:
            expired = [rid for rid, record in self._records.items() if record.is_expired(now)]
            for record_id in expired:
                self._remove(record_id)
            return len(expired)

    def _remove(self, record_id: str) -> bool:
        record = self._records.pop(record_id, None)
        if record is None:
            return False
        self._by_hash.pop(record.value_hash, None)
        return True


class MemoryTokenStore(_MemoryTokenTable[RefreshTokenRecord]):
    """Refresh token records."""

    async def delete_all_for_subject(self, subject_id: str) -> int:
        async with self._lock:
            owned = [rid for rid, record in self._records.items() if record.subject_id == subject_id]
            for record_id in owned:
                self._remove(record_id)
            return len(owned)


class MemorySingleUseTokenStore(_MemoryTokenTable[SingleUseToken]):
    """Verification and password-reset tokens."""

    async def delete_all_for_subject(self, subject_id: str, kind: SingleUseKind) -> int:
        async with self._lock:
            owned = [
                rid
                for rid, record in self._records.items()
                if record.subject_id == subject_id and record.kind is kind
            ]
            for record_id in owned:
                self._remove(record_id)
            return len(owned)
