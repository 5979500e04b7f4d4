"""Storage layer - record store abstraction and backends."""

from qa_tracker.storage.database import Database
from qa_tracker.storage.postgres_store import PostgresRecordStore
from qa_tracker.storage.record_store import (
    Collection,
    InMemoryRecordStore,
    RecordStore,
    new_record_id,
)

__all__ = [
    "Collection",
    "Database",
    "InMemoryRecordStore",
    "PostgresRecordStore",
    "RecordStore",
    "new_record_id",
]
