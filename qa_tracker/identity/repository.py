"""User repository over the ``users`` collection."""

import logging

from qa_tracker.identity.schemas import Role, User
from qa_tracker.storage.record_store import Collection, RecordStore

logger = logging.getLogger(__name__)


class UserRepository:
    """Repository for user persistence and lookups."""

    def __init__(self, store: RecordStore) -> None:
        self._store = store

    async def create(self, user: User) -> User:
        await self._store.insert(Collection.USERS, user.to_record())
        return await self.get_by_id(user.id)

    async def get_by_id(self, user_id: str) -> User | None:
        record = await self._store.get_by_id(Collection.USERS, user_id)
        return User.from_record(record) if record else None

    async def update(self, user_id: str, fields: dict) -> User | None:
        record = await self._store.update_by_id(Collection.USERS, user_id, fields)
        return User.from_record(record) if record else None

    async def list_users(
        self,
        *,
        role: Role | None = None,
        active_only: bool = False,
    ) -> list[User]:
        """List users, optionally filtered by role and active flag.

        Returns:
            Users ordered by name.
        """
        criteria: dict = {}
        if role is not None:
            criteria["role"] = role.value
        if active_only:
            criteria["active"] = True

        if criteria:
            records = await self._store.get_filtered(Collection.USERS, criteria)
        else:
            records = await self._store.get_all(Collection.USERS)
        return sorted((User.from_record(r) for r in records), key=lambda u: u.name)

    async def direct_reports(self, manager_id: str) -> list[User]:
        records = await self._store.get_filtered(
            Collection.USERS, {"manager_id": manager_id},
        )
        return [User.from_record(r) for r in records]
