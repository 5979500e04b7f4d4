"""Append-only activity log over the ``logs`` collection.

Every successful engine write records one entry inside the same
transaction as the write, so the log never mentions a change that
was rolled back.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from qa_tracker.storage.record_store import Collection, RecordStore, new_record_id
from qa_tracker.storage.serialization import parse_datetime, to_iso, utc_now

logger = logging.getLogger(__name__)


@dataclass
class ActivityLogEntry:
    """A single audit entry."""

    user_id: str
    action: str
    entity_type: str
    entity_id: str
    details: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: new_record_id("log"))
    timestamp: datetime = field(default_factory=utc_now)

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": to_iso(self.timestamp),
            "user_id": self.user_id,
            "action": self.action,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "details": self.details,
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "ActivityLogEntry":
        return cls(
            id=record["id"],
            timestamp=parse_datetime(record.get("timestamp")) or utc_now(),
            user_id=record.get("user_id", ""),
            action=record.get("action", ""),
            entity_type=record.get("entity_type", ""),
            entity_id=record.get("entity_id", ""),
            details=record.get("details") or {},
        )


class ActivityLog:
    """Writes and reads activity entries."""

    def __init__(self, store: RecordStore) -> None:
        self._store = store

    async def record(
        self,
        user_id: str,
        action: str,
        entity_type: str,
        entity_id: str,
        **details: Any,
    ) -> ActivityLogEntry:
        entry = ActivityLogEntry(
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            details=details,
        )
        await self._store.insert(Collection.LOGS, entry.to_record())
        logger.debug("Activity %s on %s %s by %s", action, entity_type, entity_id, user_id)
        return entry

    async def recent(
        self,
        *,
        limit: int = 50,
        entity_type: str | None = None,
    ) -> list[ActivityLogEntry]:
        """Newest entries first."""
        if entity_type is not None:
            records = await self._store.get_filtered(
                Collection.LOGS, {"entity_type": entity_type},
            )
        else:
            records = await self._store.get_all(Collection.LOGS)
        entries = [ActivityLogEntry.from_record(r) for r in records]
        entries.sort(key=lambda e: e.timestamp, reverse=True)
        return entries[:limit]
