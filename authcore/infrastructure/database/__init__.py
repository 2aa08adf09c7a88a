# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""SQL persistence for accounts and tokens.

Exports:
    init_database: Create the connection pool.
    close_database: Dispose of the connection pool.
    get_session: Session context manager.
    SQLAccountStore, SQLTokenStore, SQLSingleUseTokenStore: Store adapters.
"""

from authcore.infrastructure.database.connection import (
    DatabaseError,
    check_database_connection,
    close_database,
    get_session,
    init_database,
)
from authcore.infrastructure.database.stores import (
    SQLAccountStore,
    SQLSingleUseTokenStore,
    SQLTokenStore,
)

__all__ = [
    "DatabaseError",
    "init_database",
    "close_database",
    "get_session",
    "check_database_connection",
    "SQLAccountStore",
    "SQLTokenStore",
    "SQLSingleUseTokenStore",
]
