"""Dispute and dispute resolution repository."""

import logging
from typing import Any

from qa_tracker.disputes.schemas import Dispute, DisputeResolution
from qa_tracker.storage.record_store import Collection, RecordStore

logger = logging.getLogger(__name__)


class DisputeRepository:
    """Persistence for disputes and their resolutions."""

    def __init__(self, store: RecordStore) -> None:
        self._store = store

    async def create(self, dispute: Dispute) -> Dispute:
        await self._store.insert(Collection.DISPUTES, dispute.to_record())
        return await self.get_by_id(dispute.id)

    async def get_by_id(self, dispute_id: str) -> Dispute | None:
        record = await self._store.get_by_id(Collection.DISPUTES, dispute_id)
        return Dispute.from_record(record) if record else None

    async def update(
        self,
        dispute_id: str,
        fields: dict[str, Any],
        *,
        expected_revision: int | None = None,
    ) -> Dispute | None:
        record = await self._store.update_by_id(
            Collection.DISPUTES, dispute_id, fields,
            expected_revision=expected_revision,
        )
        return Dispute.from_record(record) if record else None

    async def delete(self, dispute_id: str) -> bool:
        return await self._store.delete_by_id(Collection.DISPUTES, dispute_id)

    async def list_all(self) -> list[Dispute]:
        records = await self._store.get_all(Collection.DISPUTES)
        return [Dispute.from_record(r) for r in records]

    async def list_filtered(self, criteria: dict[str, Any]) -> list[Dispute]:
        if not criteria:
            return await self.list_all()
        records = await self._store.get_filtered(Collection.DISPUTES, criteria)
        return [Dispute.from_record(r) for r in records]

    async def for_evaluation(self, evaluation_id: str) -> list[Dispute]:
        """Disputes of an evaluation, oldest first."""
        disputes = await self.list_filtered({"evaluation_id": evaluation_id})
        return sorted(disputes, key=lambda d: d.submission_date)

    async def active_for_evaluation(self, evaluation_id: str) -> list[Dispute]:
        return [d for d in await self.for_evaluation(evaluation_id) if d.is_active]

    # -- resolutions --

    async def add_resolution(self, resolution: DisputeResolution) -> DisputeResolution:
        await self._store.insert(Collection.DISPUTE_RESOLUTIONS, resolution.to_record())
        return resolution

    async def resolutions_for(self, dispute_id: str) -> list[DisputeResolution]:
        records = await self._store.get_filtered(
            Collection.DISPUTE_RESOLUTIONS, {"dispute_id": dispute_id},
        )
        return sorted(
            (DisputeResolution.from_record(r) for r in records),
            key=lambda r: r.resolution_date,
        )

    async def get_resolution(self, resolution_id: str) -> DisputeResolution | None:
        record = await self._store.get_by_id(Collection.DISPUTE_RESOLUTIONS, resolution_id)
        return DisputeResolution.from_record(record) if record else None

    async def delete_resolution(self, resolution_id: str) -> bool:
        return await self._store.delete_by_id(Collection.DISPUTE_RESOLUTIONS, resolution_id)
