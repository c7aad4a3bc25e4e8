"""
Connection handling helper for database operations.

Lets repositories and the provisioner accept either an AsyncEngine or an
already open AsyncConnection without duplicating the begin/connect logic.
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
    Yield a connection for executing statements.

    Args:
        conn: Database connection or engine
        transactional: Wrap in a transaction (begin) when True, use a bare
                       connection (connect) otherwise. Only applies when conn
                       is an AsyncEngine.

    Example:
        >>> async with execute_with_connection(engine) as conn:
        ...     await conn.execute(query, params)

    Note:
        An AsyncConnection passed in is yielded as-is; the caller owns its
        transaction.
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


def dialect_name(conn: AsyncConnection | AsyncEngine) -> str:
    """Return the SQLAlchemy dialect name ('sqlite', 'postgresql', ...)."""
    return conn.dialect.name
