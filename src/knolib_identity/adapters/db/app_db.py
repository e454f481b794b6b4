"""Identity database access over an asyncpg pool."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import asyncpg
import structlog
from sqlalchemy.dialects import postgresql
from sqlalchemy.schema import CreateIndex, CreateTable

from knolib_identity.models import BaseModel

logger = structlog.get_logger()


def schema_ddl() -> list[str]:
    """PostgreSQL DDL for every model table and index, idempotent."""
    dialect = postgresql.dialect()
    statements: list[str] = []
    for table in BaseModel.metadata.sorted_tables:
        statements.append(str(CreateTable(table, if_not_exists=True).compile(dialect=dialect)))
        for index in sorted(table.indexes, key=lambda ix: ix.name or ""):
            statements.append(
                str(CreateIndex(index, if_not_exists=True).compile(dialect=dialect))
            )
    return statements


class AppDatabase:
    """asyncpg pool holding users, linked identities and provider configs.

    Args:
        dsn: PostgreSQL connection string.
        min_connections: Connections kept open once connected.
        max_connections: Upper bound on pooled connections.
        query_timeout: Per-statement timeout in seconds.
    """

    def __init__(
        self,
        dsn: str,
        min_connections: int = 2,
        max_connections: int = 10,
        query_timeout: float = 30,
    ) -> None:
        self.dsn = dsn
        self.min_connections = min_connections
        self.max_connections = max_connections
        self.query_timeout = query_timeout
        self.pool: asyncpg.Pool[asyncpg.Connection[asyncpg.Record]] | None = None

    async def connect(self) -> None:
        """Open the pool."""
        self.pool = await asyncpg.create_pool(
            self.dsn,
            min_size=self.min_connections,
            max_size=self.max_connections,
            command_timeout=self.query_timeout,
        )
        # Never log credentials
        logger.info("identity_db_connected", host=self.dsn.rpartition("@")[2])

    async def close(self) -> None:
        """Close the pool if it was opened."""
        if self.pool is None:
            return
        await self.pool.close()
        self.pool = None
        logger.info("identity_db_closed")

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[asyncpg.Connection[asyncpg.Record]]:
        """Borrow a pooled connection."""
        if self.pool is None:
            raise RuntimeError("Identity database pool not initialized; call connect() first")
        async with self.pool.acquire() as conn:
            yield conn

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[asyncpg.Connection[asyncpg.Record]]:
        """Borrow a connection wrapped in a transaction.

        Commits on normal exit, rolls back when the block raises.
        """
        async with self.acquire() as conn, conn.transaction():
            yield conn

    async def fetch_one(self, query: str, *args: Any) -> dict[str, Any] | None:
        """Run ``query`` and return the first row as a dict, if any."""
        async with self.acquire() as conn:
            row = await conn.fetchrow(query, *args)
        return None if row is None else dict(row)

    async def fetch_all(self, query: str, *args: Any) -> list[dict[str, Any]]:
        """Run ``query`` and return every row as a dict, in result order."""
        async with self.acquire() as conn:
            return [dict(r) for r in await conn.fetch(query, *args)]

    async def execute(self, query: str, *args: Any) -> str:
        """Run a statement and return asyncpg's status tag, e.g. ``UPDATE 1``."""
        async with self.acquire() as conn:
            status: str = await conn.execute(query, *args)
        return status

    async def ensure_schema(self) -> None:
        """Create missing tables and indexes from the SQLAlchemy models."""
        async with self.transaction() as conn:
            for statement in schema_ddl():
                await conn.execute(statement)
        logger.info("identity_db_schema_ensured", tables=len(BaseModel.metadata.tables))
