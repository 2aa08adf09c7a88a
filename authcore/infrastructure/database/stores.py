# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""SQLAlchemy implementations of the account and token stores.

Every operation runs in its own session obtained from ``session_factory``
(``get_session`` by default), committed when the operation returns.
``mark_used`` is a single conditional UPDATE, so the database decides
which of several concurrent callers wins.

Example:
    >>> accounts = SQLAccountStore()
    >>> account = await accounts.find_by_email("user@example.com")
"""

import logging
from contextlib import AbstractAsyncContextManager
from datetime import datetime
from typing import Any, Callable

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from authcore.domains.auth.errors import AuthError
from authcore.domains.auth.models import (
    Account,
    AuthProvider,
    RefreshTokenRecord,
    SingleUseKind,
    SingleUseToken,
    TokenKind,
    normalize_email,
)
from authcore.infrastructure.database.connection import get_session
from authcore.infrastructure.database.models import AccountModel, AuthTokenModel
from authcore.utils.datetime import ensure_utc

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]

SINGLE_USE_KINDS = tuple(kind.value for kind in SingleUseKind)


def account_to_row(account: Account) -> dict[str, Any]:
    record = account.to_record()
    record["status"] = account.status.value
    record["provider"] = account.provider.value
    return record


def account_from_row(row: AccountModel) -> Account:
    return Account.from_record({
        "id": row.id,
        "email": row.email,
        "password_hash": row.password_hash,
        "first_name": row.first_name,
        "last_name": row.last_name,
        "email_verified": row.email_verified,
        "status": row.status,
        "provider": row.provider,
        "provider_id": row.provider_id,
        "last_login_at": ensure_utc(row.last_login_at),
        "created_at": ensure_utc(row.created_at),
        "updated_at": ensure_utc(row.updated_at),
    })


class SQLAccountStore:
    """Accounts in the ``accounts`` table."""

    def __init__(self, session_factory: SessionFactory = get_session) -> None:
        self._session_factory = session_factory

    async def _find_one(self, *criteria: Any) -> Account | None:
        async with self._session_factory() as session:
            result = await session.execute(select(AccountModel).where(*criteria))
            row = result.scalar_one_or_none()
            return account_from_row(row) if row is not None else None

    async def find_by_email(self, email: str) -> Account | None:
        return await self._find_one(AccountModel.email == normalize_email(email))

    async def find_by_id(self, account_id: str) -> Account | None:
        return await self._find_one(AccountModel.id == account_id)

    async def find_by_provider(self, provider: AuthProvider, provider_id: str) -> Account | None:
        return await self._find_one(
            AccountModel.provider == AuthProvider(provider).value,
            AccountModel.provider_id == provider_id,
        )

    async def save(self, account: Account) -> Account:
        """Insert an account.

        Raises:
            AuthError: CONFLICT kind if the email or provider identity
                is already taken.
        """
        async with self._session_factory() as session:
            session.add(AccountModel(**account_to_row(account)))
            try:
                await session.flush()
            except IntegrityError as e:
                logger.info("Account insert rejected by unique constraint")
                raise AuthError.conflict("An account with this email already exists") from e
        return account

    async def update(self, account: Account) -> Account:
        """Overwrite an existing account.

        Raises:
            AuthError: NOT_FOUND kind if no row has the account's id,
                CONFLICT kind if the new email is taken.
        """
        values = account_to_row(account)
        del values["id"]
        del values["created_at"]

        async with self._session_factory() as session:
            try:
                result = await session.execute(
                    update(AccountModel).where(AccountModel.id == account.id).values(**values)
                )
            except IntegrityError as e:
                raise AuthError.conflict("An account with this email already exists") from e
            if result.rowcount == 0:
                raise AuthError.not_found("Account does not exist", account_id=account.id)
        return account


class _SQLTokenTable:
    """Rows of ``auth_tokens`` restricted to some kinds."""

    kinds: tuple[str, ...] = ()

    def __init__(self, session_factory: SessionFactory = get_session) -> None:
        self._session_factory = session_factory

    def _in_kinds(self) -> Any:
        return AuthTokenModel.kind.in_(self.kinds)

    async def _find_row(self, value_hash: str) -> dict[str, Any] | None:
        async with self._session_factory() as session:
            result = await session.execute(
                select(AuthTokenModel).where(
                    AuthTokenModel.value_hash == value_hash,
                    self._in_kinds(),
                )
            )
            row = result.scalar_one_or_none()
            if row is None:
                return None
            return {
                "id": row.id,
                "subject_id": row.subject_id,
                "kind": row.kind,
                "email": row.email,
                "value_hash": row.value_hash,
                "expires_at": row.expires_at,
                "used": row.used,
                "created_at": row.created_at,
            }

    async def _insert(self, values: dict[str, Any]) -> None:
        async with self._session_factory() as session:
            session.add(AuthTokenModel(**values))
            await session.flush()

    async def mark_used(self, record_id: str) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(
                update(AuthTokenModel)
                .where(
                    AuthTokenModel.id == record_id,
                    AuthTokenModel.used.is_(False),
                    self._in_kinds(),
                )
                .values(used=True)
            )
            return result.rowcount == 1

    async def delete(self, record_id: str) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(
                delete(AuthTokenModel).where(AuthTokenModel.id == record_id, self._in_kinds())
            )
            return result.rowcount > 0

    async def delete_expired(self, now: datetime) -> int:
        async with self._session_factory() as session:
            result = await session.execute(
                delete(AuthTokenModel).where(AuthTokenModel.expires_at <= now, self._in_kinds())
            )
            return result.rowcount


class SQLTokenStore(_SQLTokenTable):
    """Refresh token records."""

    kinds = (TokenKind.REFRESH.value,)

    async def find_by_value(self, value_hash: str) -> RefreshTokenRecord | None:
        row = await self._find_row(value_hash)
        if row is None:
            return None
        row.pop("email")
        return RefreshTokenRecord.from_record(row)

    async def save(self, record: RefreshTokenRecord) -> RefreshTokenRecord:
        values = record.model_dump(mode="python")
        values["kind"] = TokenKind.REFRESH.value
        await self._insert(values)
        return record

    async def delete_all_for_subject(self, subject_id: str) -> int:
        async with self._session_factory() as session:
            result = await session.execute(
                delete(AuthTokenModel).where(
                    AuthTokenModel.subject_id == subject_id,
                    self._in_kinds(),
                )
            )
            return result.rowcount


class SQLSingleUseTokenStore(_SQLTokenTable):
    """Verification and password-reset tokens."""

    kinds = SINGLE_USE_KINDS

    async def find_by_value(self, value_hash: str) -> SingleUseToken | None:
        row = await self._find_row(value_hash)
        return SingleUseToken.from_record(row) if row is not None else None

    async def save(self, token: SingleUseToken) -> SingleUseToken:
        values = token.model_dump(mode="python")
        values["kind"] = token.kind.value
        await self._insert(values)
        return token

    async def delete_all_for_subject(self, subject_id: str, kind: SingleUseKind) -> int:
        async with self._session_factory() as session:
            result = await session.execute(
                delete(AuthTokenModel).where(
                    AuthTokenModel.subject_id == subject_id,
                    AuthTokenModel.kind == SingleUseKind(kind).value,
                )
            )
            return result.rowcount
