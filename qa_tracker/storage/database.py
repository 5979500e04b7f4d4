"""asyncpg connection pool backing the Postgres record store."""

import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import asyncpg

from qa_tracker.config.settings import get_settings

logger = logging.getLogger(__name__)


async def _register_jsonb(conn: asyncpg.Connection) -> None:
    # Record bodies go in and out of the JSONB column as plain dicts
    await conn.set_type_codec(
        "jsonb",
        encoder=json.dumps,
        decoder=json.loads,
        schema="pg_catalog",
    )


class Database:
    """
    Pooled PostgreSQL connections for the ``records`` table.

    Pool bounds and the DSN default to ``Settings``; pass them explicitly
    to point the store at another database (the integration tests do).

    Usage:
        db = Database()
        await db.connect()
        store = PostgresRecordStore(db)
        ...
        await store.close()
    """

    def __init__(
        self,
        database_url: str | None = None,
        min_size: int | None = None,
        max_size: int | None = None,
    ):
        settings = get_settings()
        self._dsn = database_url or str(settings.database_url)
        self._min_size = min_size or settings.db_pool_min_size
        self._max_size = max_size or settings.db_pool_max_size
        self._pool: asyncpg.Pool | None = None

    @property
    def connected(self) -> bool:
        return self._pool is not None

    async def connect(self) -> None:
        """Open the pool; each new connection gets the JSONB codec."""
        try:
            self._pool = await asyncpg.create_pool(
                self._dsn,
                min_size=self._min_size,
                max_size=self._max_size,
                command_timeout=60,
                init=_register_jsonb,
            )
        except Exception as e:
            logger.error("Could not open record store pool: %s", e)
            raise
        logger.info("Record store pool open (%d-%d connections)", self._min_size, self._max_size)

    async def close(self) -> None:
        if self._pool is None:
            return
        await self._pool.close()
        self._pool = None
        logger.info("Record store pool closed")

    @property
    def pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._pool

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[asyncpg.Connection]:
        """Hold one connection inside a transaction for the block."""
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                yield conn

    async def execute(self, query: str, *args: Any) -> str:
        async with self.pool.acquire() as conn:
            return await conn.execute(query, *args)

    async def fetch(self, query: str, *args: Any) -> list[asyncpg.Record]:
        async with self.pool.acquire() as conn:
            return await conn.fetch(query, *args)

    async def fetchrow(self, query: str, *args: Any) -> asyncpg.Record | None:
        async with self.pool.acquire() as conn:
            return await conn.fetchrow(query, *args)

    async def health_check(self) -> bool:
        """True when a pooled connection answers ``SELECT 1``."""
        if self._pool is None:
            return False
        try:
            async with self._pool.acquire() as conn:
                return await conn.fetchval("SELECT 1") == 1
        except (asyncpg.PostgresError, OSError) as e:
            logger.warning("Record store health check failed: %s", e)
            return False
