"""Generic record store over named collections.

Every QA entity is persisted as a flat JSON-safe dict keyed by ``id``
inside a named collection. Repositories map typed records to and from
these dicts; nothing above the repositories sees raw rows.

Each stored row carries a ``revision`` counter maintained by the store.
Writers that guard on a status pass the revision they read as
``expected_revision``; a mismatch raises ``ConcurrentModificationError``.
"""

import asyncio
import copy
import enum
import logging
import uuid
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from contextvars import ContextVar
from typing import Any

from qa_tracker.errors import ConcurrentModificationError, StorageError

logger = logging.getLogger(__name__)

Record = dict[str, Any]


class Collection(str, enum.Enum):
    """Named collections held by the record store."""

    USERS = "users"
    QUESTION_SETS = "question_sets"
    QUESTIONS = "questions"
    AUDIT_QUEUE = "audit_queue"
    EVALUATIONS = "evaluations"
    EVALUATION_ANSWERS = "evaluation_answers"
    DISPUTES = "disputes"
    DISPUTE_RESOLUTIONS = "dispute_resolutions"
    SETTINGS = "settings"
    LOGS = "logs"


def new_record_id(prefix: str) -> str:
    """Generate a record identifier of the form ``{prefix}_{uuid_hex[:12]}``."""
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def matches(record: Mapping[str, Any], criteria: Mapping[str, Any]) -> bool:
    """Check that every criteria key equals the record's value."""
    return all(record.get(key) == value for key, value in criteria.items())


class RecordStore(ABC):
    """Abstract tabular store: read, filter, insert, update, delete by id."""

    @abstractmethod
    async def get_all(self, collection: Collection) -> list[Record]:
        """Return every record in a collection."""

    @abstractmethod
    async def get_by_id(self, collection: Collection, record_id: str) -> Record | None:
        """Return one record, or None if absent."""

    @abstractmethod
    async def get_filtered(
        self,
        collection: Collection,
        criteria: Mapping[str, Any],
    ) -> list[Record]:
        """Return records whose fields equal every value in ``criteria``."""

    @abstractmethod
    async def insert(self, collection: Collection, record: Mapping[str, Any]) -> str:
        """Insert a record carrying an ``id`` key and return that id.

        Raises:
            StorageError: If the id already exists.
        """

    @abstractmethod
    async def update_by_id(
        self,
        collection: Collection,
        record_id: str,
        fields: Mapping[str, Any],
        *,
        expected_revision: int | None = None,
    ) -> Record | None:
        """Merge ``fields`` into a record and bump its revision.

        Returns:
            The updated record, or None if the id does not exist.

        Raises:
            ConcurrentModificationError: If ``expected_revision`` is given
                and differs from the stored revision.
        """

    @abstractmethod
    async def delete_by_id(self, collection: Collection, record_id: str) -> bool:
        """Delete a record. Returns False if it did not exist."""

    @abstractmethod
    def transaction(self) -> Any:
        """Async context manager making the enclosed writes all-or-nothing."""

    async def count(
        self,
        collection: Collection,
        criteria: Mapping[str, Any] | None = None,
    ) -> int:
        """Count records, optionally filtered."""
        if criteria:
            return len(await self.get_filtered(collection, criteria))
        return len(await self.get_all(collection))

    async def create_schema(self) -> None:
        """Create backing tables if the backend needs them."""

    async def health_check(self) -> bool:
        """Check the backend is reachable."""
        return True

    async def close(self) -> None:
        """Release backend resources."""


_tx_depth: ContextVar[int] = ContextVar("memory_store_tx_depth", default=0)


class InMemoryRecordStore(RecordStore):
    """Record store held in process memory.

    Used for tests and single-process local runs. Transactions are
    serialized with an ``asyncio.Lock`` and roll back by restoring a
    snapshot of all collections taken on entry. Nested transactions
    join the outermost one.
    """

    def __init__(self) -> None:
        self._data: dict[Collection, dict[str, Record]] = {c: {} for c in Collection}
        self._lock = asyncio.Lock()

    async def get_all(self, collection: Collection) -> list[Record]:
        return [copy.deepcopy(r) for r in self._data[collection].values()]

    async def get_by_id(self, collection: Collection, record_id: str) -> Record | None:
        record = self._data[collection].get(record_id)
        return copy.deepcopy(record) if record is not None else None

    async def get_filtered(
        self,
        collection: Collection,
        criteria: Mapping[str, Any],
    ) -> list[Record]:
        return [
            copy.deepcopy(r)
            for r in self._data[collection].values()
            if matches(r, criteria)
        ]

    async def insert(self, collection: Collection, record: Mapping[str, Any]) -> str:
        record_id = record.get("id")
        if not record_id:
            raise StorageError(f"Cannot insert into {collection.value}: record has no id")
        rows = self._data[collection]
        if record_id in rows:
            raise StorageError(f"Duplicate id {record_id!r} in {collection.value}")

        stored = copy.deepcopy(dict(record))
        stored["revision"] = 1
        rows[record_id] = stored
        return record_id

    async def update_by_id(
        self,
        collection: Collection,
        record_id: str,
        fields: Mapping[str, Any],
        *,
        expected_revision: int | None = None,
    ) -> Record | None:
        current = self._data[collection].get(record_id)
        if current is None:
            return None
        if expected_revision is not None and current.get("revision") != expected_revision:
            raise ConcurrentModificationError(
                f"Record {record_id} was modified by another operation. "
                "Reload and try again."
            )

        updates = copy.deepcopy({k: v for k, v in fields.items() if k not in ("id", "revision")})
        current.update(updates)
        current["revision"] = current.get("revision", 0) + 1
        return copy.deepcopy(current)

    async def delete_by_id(self, collection: Collection, record_id: str) -> bool:
        return self._data[collection].pop(record_id, None) is not None

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["InMemoryRecordStore"]:
        depth = _tx_depth.get()
        if depth > 0:
            token = _tx_depth.set(depth + 1)
            try:
                yield self
            finally:
                _tx_depth.reset(token)
            return

        async with self._lock:
            snapshot = copy.deepcopy(self._data)
            token = _tx_depth.set(1)
            try:
                yield self
            except BaseException:
                self._data = snapshot
                logger.debug("In-memory transaction rolled back")
                raise
            finally:
                _tx_depth.reset(token)
