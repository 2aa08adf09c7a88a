# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the SQLAlchemy stores.

Sessions are mocked, so these tests check statement outcomes and row
mapping rather than SQL.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import IntegrityError

from authcore.domains.auth.errors import AuthError, ErrorKind
from authcore.domains.auth.models import (
    Account,
    AccountStatus,
    RefreshTokenRecord,
    SingleUseKind,
    SingleUseToken,
)
from authcore.infrastructure.database.models import AccountModel, AuthTokenModel
from authcore.infrastructure.database.stores import (
    SQLAccountStore,
    SQLSingleUseTokenStore,
    SQLTokenStore,
    account_from_row,
    account_to_row,
)


@pytest.fixture
def mock_session() -> MagicMock:
    """Create a mock async session."""
    session = MagicMock()
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    return session


@pytest.fixture
def session_factory(mock_session: MagicMock) -> Any:
    """Create a session factory yielding the mock session."""

    @asynccontextmanager
    async def factory():
        yield mock_session

    return factory


def _result(scalar: Any = None, rowcount: int = 0) -> MagicMock:
    result = MagicMock()
    result.scalar_one_or_none.return_value = scalar
    result.rowcount = rowcount
    return result


class TestAccountMapping:
    """Tests for account row conversion."""

    def test_round_trip(self, active_account: Account) -> None:
        """Test that an account survives conversion to and from a row."""
        row = AccountModel(**account_to_row(active_account))

        assert row.status == "active"
        assert row.provider == "local"
        assert account_from_row(row) == active_account

    def test_naive_timestamps_are_read_as_utc(self, active_account: Account) -> None:
        """Test that naive datetimes from the driver become aware."""
        values = account_to_row(active_account)
        values["created_at"] = datetime(2025, 1, 1)
        values["updated_at"] = datetime(2025, 1, 1)

        account = account_from_row(AccountModel(**values))

        assert account.created_at.tzinfo is not None


class TestSQLAccountStore:
    """Tests for SQLAccountStore."""

    async def test_find_by_email(
        self,
        session_factory: Any,
        mock_session: MagicMock,
        active_account: Account,
    ) -> None:
        """Test that a found row becomes an account."""
        mock_session.execute.return_value = _result(AccountModel(**account_to_row(active_account)))
        store = SQLAccountStore(session_factory)

        account = await store.find_by_email("ACTIVE@example.com")

        assert account == active_account

    async def test_find_by_id_missing(self, session_factory: Any, mock_session: MagicMock) -> None:
        """Test that a missing row is None."""
        mock_session.execute.return_value = _result(None)

        assert await SQLAccountStore(session_factory).find_by_id("missing") is None

    async def test_save_adds_row(
        self,
        session_factory: Any,
        mock_session: MagicMock,
        active_account: Account,
    ) -> None:
        """Test that save inserts and flushes."""
        await SQLAccountStore(session_factory).save(active_account)

        added = mock_session.add.call_args.args[0]
        assert isinstance(added, AccountModel)
        assert added.email == active_account.email
        mock_session.flush.assert_awaited_once()

    async def test_save_duplicate_is_conflict(
        self,
        session_factory: Any,
        mock_session: MagicMock,
        active_account: Account,
    ) -> None:
        """Test that a unique violation becomes a conflict."""
        mock_session.flush.side_effect = IntegrityError("INSERT", {}, Exception("duplicate"))

        with pytest.raises(AuthError) as exc_info:
            await SQLAccountStore(session_factory).save(active_account)

        assert exc_info.value.kind is ErrorKind.CONFLICT

    async def test_update_missing_is_not_found(
        self,
        session_factory: Any,
        mock_session: MagicMock,
        active_account: Account,
    ) -> None:
        """Test that an update touching no row fails."""
        mock_session.execute.return_value = _result(rowcount=0)

        with pytest.raises(AuthError) as exc_info:
            await SQLAccountStore(session_factory).update(active_account)

        assert exc_info.value.kind is ErrorKind.NOT_FOUND

    async def test_update(
        self,
        session_factory: Any,
        mock_session: MagicMock,
        active_account: Account,
    ) -> None:
        """Test a successful update."""
        mock_session.execute.return_value = _result(rowcount=1)
        suspended = active_account.suspend()

        assert await SQLAccountStore(session_factory).update(suspended) == suspended
        assert suspended.status is AccountStatus.SUSPENDED


class TestSQLTokenStores:
    """Tests for SQLTokenStore and SQLSingleUseTokenStore."""

    async def test_refresh_record_from_row(self, session_factory: Any, mock_session: MagicMock) -> None:
        """Test that a refresh row becomes a record."""
        row = AuthTokenModel(
            id="r-1",
            subject_id="a-1",
            kind="refresh",
            email=None,
            value_hash="h",
            expires_at=datetime(2030, 1, 1),
            used=False,
            created_at=datetime(2025, 1, 1),
        )
        mock_session.execute.return_value = _result(row)

        record = await SQLTokenStore(session_factory).find_by_value("h")

        assert isinstance(record, RefreshTokenRecord)
        assert record.subject_id == "a-1"
        assert record.expires_at == datetime(2030, 1, 1, tzinfo=timezone.utc)

    async def test_save_refresh_sets_kind(self, session_factory: Any, mock_session: MagicMock) -> None:
        """Test that refresh records are stored with their kind."""
        record = RefreshTokenRecord(
            subject_id="a-1",
            value_hash="h",
            expires_at=datetime.now(timezone.utc) + timedelta(days=1),
        )

        await SQLTokenStore(session_factory).save(record)

        added = mock_session.add.call_args.args[0]
        assert added.kind == "refresh"
        assert added.value_hash == "h"

    @pytest.mark.parametrize(("rowcount", "expected"), [(1, True), (0, False)])
    async def test_mark_used_reports_winner(
        self,
        session_factory: Any,
        mock_session: MagicMock,
        rowcount: int,
        expected: bool,
    ) -> None:
        """Test that mark_used is True only when a row changed."""
        mock_session.execute.return_value = _result(rowcount=rowcount)

        assert await SQLTokenStore(session_factory).mark_used("r-1") is expected

    async def test_delete_expired_returns_count(self, session_factory: Any, mock_session: MagicMock) -> None:
        """Test that purges report how many rows went."""
        mock_session.execute.return_value = _result(rowcount=4)

        removed = await SQLSingleUseTokenStore(session_factory).delete_expired(datetime.now(timezone.utc))

        assert removed == 4

    async def test_single_use_round_trip(self, session_factory: Any, mock_session: MagicMock) -> None:
        """Test that single-use tokens are saved and read back."""
        token = SingleUseToken(
            subject_id="a-1",
            kind=SingleUseKind.VERIFICATION,
            email="a@example.com",
            value_hash="v",
            expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
        )
        store = SQLSingleUseTokenStore(session_factory)

        await store.save(token)
        mock_session.execute.return_value = _result(mock_session.add.call_args.args[0])

        assert await store.find_by_value("v") == token

    async def test_delete_all_for_subject(self, session_factory: Any, mock_session: MagicMock) -> None:
        """Test subject-wide deletion counts."""
        mock_session.execute.return_value = _result(rowcount=2)

        assert await SQLTokenStore(session_factory).delete_all_for_subject("a-1") == 2
        assert (
            await SQLSingleUseTokenStore(session_factory).delete_all_for_subject(
                "a-1", SingleUseKind.PASSWORD_RESET
            )
            == 2
        )
