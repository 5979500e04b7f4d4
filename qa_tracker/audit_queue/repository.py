"""Audit queue repository."""

from typing import Any

from qa_tracker.audit_queue.schemas import QueueItem
from qa_tracker.storage.record_store import Collection, RecordStore


class AuditQueueRepository:
    """Persistence for audit queue items."""

    def __init__(self, store: RecordStore) -> None:
        self._store = store

    async def create(self, item: QueueItem) -> QueueItem:
        await self._store.insert(Collection.AUDIT_QUEUE, item.to_record())
        return await self.get_by_id(item.id)

    async def get_by_id(self, item_id: str) -> QueueItem | None:
        record = await self._store.get_by_id(Collection.AUDIT_QUEUE, item_id)
        return QueueItem.from_record(record) if record else None

    async def update(
        self,
        item_id: str,
        fields: dict[str, Any],
        *,
        expected_revision: int | None = None,
    ) -> QueueItem | None:
        record = await self._store.update_by_id(
            Collection.AUDIT_QUEUE, item_id, fields,
            expected_revision=expected_revision,
        )
        return QueueItem.from_record(record) if record else None

    async def list_items(
        self,
        *,
        status: str | None = None,
        assigned_to: str | None = None,
    ) -> list[QueueItem]:
        """List queue items, oldest first."""
        criteria: dict[str, Any] = {}
        if status is not None:
            criteria["status"] = status
        if assigned_to is not None:
            criteria["assigned_to"] = assigned_to
        if criteria:
            records = await self._store.get_filtered(Collection.AUDIT_QUEUE, criteria)
        else:
            records = await self._store.get_all(Collection.AUDIT_QUEUE)
        return sorted((QueueItem.from_record(r) for r in records), key=lambda i: i.created_at)
