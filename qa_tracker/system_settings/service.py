"""Process-wide key/value settings stored in the ``settings`` collection.

Read on every scoring and dispute-window calculation; written only by
Admin. Protected keys can be changed but never deleted.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from qa_tracker.activity.log import ActivityLog
from qa_tracker.errors import InvalidStateError, NotFoundError, ValidationError
from qa_tracker.identity.permissions import require_role
from qa_tracker.identity.schemas import IdentityContext, Role
from qa_tracker.results import OperationResult, engine_operation
from qa_tracker.storage.record_store import Collection, RecordStore
from qa_tracker.storage.serialization import parse_datetime, to_iso, utc_now

logger = logging.getLogger(__name__)

PASSING_SCORE_PERCENTAGE = "passing_score_percentage"
DISPUTE_TIME_LIMIT_DAYS = "dispute_time_limit_days"

PROTECTED_KEYS: frozenset[str] = frozenset({
    PASSING_SCORE_PERCENTAGE,
    DISPUTE_TIME_LIMIT_DAYS,
})

DEFAULT_SETTINGS: dict[str, tuple[str, str]] = {
    PASSING_SCORE_PERCENTAGE: ("80", "Minimum score percentage counted as a pass"),
    DISPUTE_TIME_LIMIT_DAYS: ("7", "Days after an evaluation during which it can be disputed"),
}

# Keys whose values must parse as non-negative integers
_INTEGER_KEYS: frozenset[str] = frozenset({
    PASSING_SCORE_PERCENTAGE,
    DISPUTE_TIME_LIMIT_DAYS,
})


@dataclass
class Setting:
    """A single setting row; ``key`` is the record id."""

    key: str
    value: str
    description: str = ""
    updated_by: str | None = None
    updated_at: datetime = field(default_factory=utc_now)

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.key,
            "value": self.value,
            "description": self.description,
            "updated_by": self.updated_by,
            "updated_at": to_iso(self.updated_at),
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "Setting":
        return cls(
            key=record["id"],
            value=str(record.get("value", "")),
            description=record.get("description", ""),
            updated_by=record.get("updated_by"),
            updated_at=parse_datetime(record.get("updated_at")) or utc_now(),
        )


class SystemSettingsService:
    """Read and administer system settings."""

    def __init__(self, store: RecordStore, activity: ActivityLog) -> None:
        self._store = store
        self._activity = activity

    async def get_value(self, key: str, default: str | None = None) -> str | None:
        record = await self._store.get_by_id(Collection.SETTINGS, key)
        if record is None:
            if default is None and key in DEFAULT_SETTINGS:
                return DEFAULT_SETTINGS[key][0]
            return default
        return str(record.get("value", ""))

    async def get_int(self, key: str, default: int) -> int:
        """Read an integer setting, falling back to ``default`` on bad values."""
        raw = await self.get_value(key, str(default))
        try:
            return int(float(raw))
        except (TypeError, ValueError):
            logger.warning("Setting %s has non-numeric value %r, using %d", key, raw, default)
            return default

    async def list_settings(self) -> list[Setting]:
        records = await self._store.get_all(Collection.SETTINGS)
        return sorted((Setting.from_record(r) for r in records), key=lambda s: s.key)

    async def ensure_defaults(self, updated_by: str = "system") -> list[str]:
        """Insert any missing default settings.

        Returns:
            Keys that were created.
        """
        created: list[str] = []
        async with self._store.transaction():
            for key, (value, description) in DEFAULT_SETTINGS.items():
                if await self._store.get_by_id(Collection.SETTINGS, key) is None:
                    setting = Setting(
                        key=key, value=value, description=description, updated_by=updated_by,
                    )
                    await self._store.insert(Collection.SETTINGS, setting.to_record())
                    created.append(key)
        if created:
            logger.info("Default settings created: %s", created)
        return created

    @engine_operation("set_setting", "Failed to save setting")
    async def set_value(
        self,
        identity: IdentityContext,
        key: str,
        value: Any,
        description: str | None = None,
    ) -> OperationResult:
        require_role(identity, Role.ADMIN, "change settings")

        key = (key or "").strip()
        if not key:
            raise ValidationError("Setting key is required")
        value = "" if value is None else str(value).strip()
        if key in _INTEGER_KEYS:
            try:
                number = int(value)
            except ValueError:
                raise ValidationError(f"Setting {key} must be a whole number")
            if number < 0:
                raise ValidationError(f"Setting {key} cannot be negative")
            if key == PASSING_SCORE_PERCENTAGE and number > 100:
                raise ValidationError(f"Setting {key} must be between 0 and 100")

        async with self._store.transaction():
            existing = await self._store.get_by_id(Collection.SETTINGS, key)
            if existing is None:
                setting = Setting(
                    key=key,
                    value=value,
                    description=description or DEFAULT_SETTINGS.get(key, ("", ""))[1],
                    updated_by=identity.user_id,
                )
                await self._store.insert(Collection.SETTINGS, setting.to_record())
            else:
                fields: dict[str, Any] = {
                    "value": value,
                    "updated_by": identity.user_id,
                    "updated_at": to_iso(utc_now()),
                }
                if description is not None:
                    fields["description"] = description
                record = await self._store.update_by_id(Collection.SETTINGS, key, fields)
                setting = Setting.from_record(record)
            await self._activity.record(
                identity.user_id, "set_setting", "setting", key, value=value,
            )

        return OperationResult.ok("Setting saved", setting=setting)

    @engine_operation("delete_setting", "Failed to delete setting")
    async def delete_setting(self, identity: IdentityContext, key: str) -> OperationResult:
        require_role(identity, Role.ADMIN, "change settings")

        if key in PROTECTED_KEYS:
            raise InvalidStateError(f"Setting {key} is protected and cannot be deleted")

        async with self._store.transaction():
            if not await self._store.delete_by_id(Collection.SETTINGS, key):
                raise NotFoundError(f"Setting {key} not found")
            await self._activity.record(identity.user_id, "delete_setting", "setting", key)

        return OperationResult.ok("Setting deleted", key=key)
