"""
Connection handling helpers for SQLAlchemy-backed repositories.

Repositories accept either an AsyncEngine or an AsyncConnection. The helpers
here hide that difference:

- ``execute_with_connection`` for single statements (one short transaction
  per call when given an engine)
- ``scoped_transaction`` for the multi-statement order commit, which must be
  all-or-nothing whatever the caller handed us
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine


@asynccontextmanager
async def execute_with_connection(
    conn: AsyncConnection | AsyncEngine,
    transactional: bool = True,
) -> AsyncIterator[AsyncConnection]:
    """
    Context manager for executing database operations.

    Args:
        conn: Database connection or engine
        transactional: If True, wrap in transaction (begin).
                       If False, use bare connection (connect).
                       Only applies when conn is an AsyncEngine.

    Yields:
        AsyncConnection ready for execute() calls

    Example:
        >>> async with execute_with_connection(self.conn) as conn:
        ...     await conn.execute(update_session_query, params)

        >>> async with execute_with_connection(self.conn, transactional=False) as conn:
        ...     result = await conn.execute(select_rates_query, params)
        ...     return result.fetchall()

    Note:
        When passing an existing AsyncConnection, the transactional parameter
        has no effect. The caller owns transaction management.
    """
    if isinstance(conn, AsyncEngine):
        if transactional:
            async with conn.begin() as connection:
                yield connection
        else:
            async with conn.connect() as connection:
                yield connection
    else:
        yield conn


@asynccontextmanager
async def scoped_transaction(
    conn: AsyncConnection | AsyncEngine,
) -> AsyncIterator[AsyncConnection]:
    """
    Run a block of statements in one transaction that rolls back on any exception.

    An engine gets a fresh connection and transaction. A connection already
    inside a transaction gets a SAVEPOINT so the block can be undone without
    touching the caller's outer work. Any other connection begins a new
    transaction.

    Args:
        conn: Database connection or engine

    Yields:
        AsyncConnection bound to the scoped transaction
    """
    if isinstance(conn, AsyncEngine):
        async with conn.begin() as connection:
            yield connection
    elif conn.in_transaction():
        async with conn.begin_nested():
            yield conn
    else:
        async with conn.begin():
            yield conn
