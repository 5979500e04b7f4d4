"""PostgreSQL-backed record store.

All collections live in one ``records`` table keyed by
``(collection, id)`` with the record body in a JSONB column. Equality
filters use JSONB containment (``data @> $2``), served by a GIN index.

Inside ``transaction()`` every operation runs on the same pooled
connection, held in a context variable, so the block commits or rolls
back as a unit.
"""

import logging
from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from contextvars import ContextVar
from typing import Any

import asyncpg

from qa_tracker.errors import ConcurrentModificationError, StorageError
from qa_tracker.storage.database import Database
from qa_tracker.storage.record_store import Collection, Record, RecordStore

logger = logging.getLogger(__name__)

_current_conn: ContextVar[asyncpg.Connection | None] = ContextVar(
    "postgres_store_conn", default=None,
)

CREATE_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS records (
    collection TEXT NOT NULL,
    id TEXT NOT NULL,
    data JSONB NOT NULL DEFAULT '{}',
    revision INTEGER NOT NULL DEFAULT 1,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    PRIMARY KEY (collection, id)
);

CREATE INDEX IF NOT EXISTS idx_records_data
    ON records USING GIN (data jsonb_path_ops);
"""


class PostgresRecordStore(RecordStore):
    """Record store persisting to PostgreSQL through asyncpg."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def _fetch(self, sql: str, *args: Any) -> list[asyncpg.Record]:
        conn = _current_conn.get()
        try:
            if conn is not None:
                return await conn.fetch(sql, *args)
            return await self._db.fetch(sql, *args)
        except (asyncpg.PostgresError, OSError) as e:
            raise StorageError(f"Record store query failed: {e}") from e

    async def _fetchrow(self, sql: str, *args: Any) -> asyncpg.Record | None:
        conn = _current_conn.get()
        try:
            if conn is not None:
                return await conn.fetchrow(sql, *args)
            return await self._db.fetchrow(sql, *args)
        except (asyncpg.PostgresError, OSError) as e:
            raise StorageError(f"Record store query failed: {e}") from e

    async def create_schema(self) -> None:
        await self._db.execute(CREATE_SCHEMA_SQL)
        logger.info("Record store schema ensured")

    async def get_all(self, collection: Collection) -> list[Record]:
        sql = """
            SELECT id, data, revision FROM records
            WHERE collection = $1
            ORDER BY created_at, id
        """
        rows = await self._fetch(sql, collection.value)
        return [_row_to_record(row) for row in rows]

    async def get_by_id(self, collection: Collection, record_id: str) -> Record | None:
        sql = """
            SELECT id, data, revision FROM records
            WHERE collection = $1 AND id = $2
        """
        row = await self._fetchrow(sql, collection.value, record_id)
        return _row_to_record(row) if row is not None else None

    async def get_filtered(
        self,
        collection: Collection,
        criteria: Mapping[str, Any],
    ) -> list[Record]:
        sql = """
            SELECT id, data, revision FROM records
            WHERE collection = $1 AND data @> $2
            ORDER BY created_at, id
        """
        rows = await self._fetch(sql, collection.value, dict(criteria))
        return [_row_to_record(row) for row in rows]

    async def count(
        self,
        collection: Collection,
        criteria: Mapping[str, Any] | None = None,
    ) -> int:
        sql = """
            SELECT COUNT(*) AS total FROM records
            WHERE collection = $1 AND data @> $2
        """
        row = await self._fetchrow(sql, collection.value, dict(criteria or {}))
        return row["total"] if row else 0

    async def insert(self, collection: Collection, record: Mapping[str, Any]) -> str:
        record_id = record.get("id")
        if not record_id:
            raise StorageError(f"Cannot insert into {collection.value}: record has no id")

        body = {k: v for k, v in record.items() if k not in ("id", "revision")}
        sql = """
            INSERT INTO records (collection, id, data)
            VALUES ($1, $2, $3)
            ON CONFLICT (collection, id) DO NOTHING
            RETURNING id
        """
        row = await self._fetchrow(sql, collection.value, record_id, body)
        if row is None:
            raise StorageError(f"Duplicate id {record_id!r} in {collection.value}")
        return row["id"]

    async def update_by_id(
        self,
        collection: Collection,
        record_id: str,
        fields: Mapping[str, Any],
        *,
        expected_revision: int | None = None,
    ) -> Record | None:
        body = {k: v for k, v in fields.items() if k not in ("id", "revision")}
        sql = """
            UPDATE records
            SET data = data || $3, revision = revision + 1, updated_at = NOW()
            WHERE collection = $1 AND id = $2
              AND ($4::INTEGER IS NULL OR revision = $4::INTEGER)
            RETURNING id, data, revision
        """
        row = await self._fetchrow(
            sql, collection.value, record_id, body, expected_revision,
        )
        if row is not None:
            return _row_to_record(row)

        if expected_revision is not None and await self.get_by_id(collection, record_id):
            raise ConcurrentModificationError(
                f"Record {record_id} was modified by another operation. "
                "Reload and try again."
            )
        return None

    async def delete_by_id(self, collection: Collection, record_id: str) -> bool:
        sql = """
            DELETE FROM records
            WHERE collection = $1 AND id = $2
            RETURNING id
        """
        row = await self._fetchrow(sql, collection.value, record_id)
        return row is not None

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["PostgresRecordStore"]:
        conn = _current_conn.get()
        if conn is not None:
            # Nested: savepoint on the connection already in use
            async with conn.transaction():
                yield self
            return

        async with self._db.transaction() as conn:
            token = _current_conn.set(conn)
            try:
                yield self
            finally:
                _current_conn.reset(token)

    async def health_check(self) -> bool:
        return await self._db.health_check()

    async def close(self) -> None:
        await self._db.close()


def _row_to_record(row: Any) -> Record:
    """Convert an asyncpg Record to a flat record dict."""
    record = dict(row["data"])
    record["id"] = row["id"]
    record["revision"] = row["revision"]
    return record
