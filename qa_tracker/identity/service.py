"""User provisioning service (Admin only)."""

import logging
from collections.abc import Mapping
from typing import Any

from qa_tracker.activity.log import ActivityLog
from qa_tracker.errors import NotFoundError, ValidationError
from qa_tracker.identity.permissions import require_role
from qa_tracker.identity.repository import UserRepository
from qa_tracker.identity.schemas import VALID_ROLES, IdentityContext, Role, User
from qa_tracker.results import OperationResult, engine_operation
from qa_tracker.storage.record_store import RecordStore

logger = logging.getLogger(__name__)

UPDATABLE_USER_FIELDS: frozenset[str] = frozenset({
    "name",
    "role",
    "department",
    "manager_id",
    "active",
})


def _parse_role(value: Any) -> Role:
    if value not in VALID_ROLES:
        raise ValidationError(
            f"Invalid role {value!r}. Must be one of: {sorted(VALID_ROLES)}"
        )
    return Role(value)


class UserService:
    """Create, update, and look up users."""

    def __init__(self, store: RecordStore, activity: ActivityLog) -> None:
        self._store = store
        self._users = UserRepository(store)
        self._activity = activity

    @property
    def repository(self) -> UserRepository:
        return self._users

    async def _require_manager(self, manager_id: str | None, user_id: str) -> None:
        if not manager_id:
            return
        if manager_id == user_id:
            raise ValidationError("A user cannot be their own manager")
        if await self._users.get_by_id(manager_id) is None:
            raise NotFoundError(f"Manager {manager_id} not found")

    @engine_operation("create_user", "Failed to create user")
    async def create_user(
        self,
        identity: IdentityContext,
        data: Mapping[str, Any],
    ) -> OperationResult:
        require_role(identity, Role.ADMIN, "manage users")

        user_id = str(data.get("id") or data.get("email") or "").strip().lower()
        name = str(data.get("name") or "").strip()
        if not user_id or "@" not in user_id:
            raise ValidationError("A valid email address is required")
        if not name:
            raise ValidationError("Name is required")
        role = _parse_role(data.get("role"))
        manager_id = data.get("manager_id") or None
        if manager_id:
            manager_id = str(manager_id).strip().lower()

        async with self._store.transaction():
            if await self._users.get_by_id(user_id) is not None:
                raise ValidationError(f"User {user_id} already exists")
            await self._require_manager(manager_id, user_id)

            user = await self._users.create(User(
                id=user_id,
                name=name,
                role=role,
                department=str(data.get("department") or ""),
                manager_id=manager_id,
                active=bool(data.get("active", True)),
            ))
            await self._activity.record(
                identity.user_id, "create_user", "user", user_id, role=role.value,
            )

        logger.info("User %s created with role %s", user_id, role.value)
        return OperationResult.ok("User created successfully", user=user)

    @engine_operation("update_user", "Failed to update user")
    async def update_user(
        self,
        identity: IdentityContext,
        user_id: str,
        data: Mapping[str, Any],
    ) -> OperationResult:
        require_role(identity, Role.ADMIN, "manage users")

        unknown = set(data) - UPDATABLE_USER_FIELDS
        if unknown:
            raise ValidationError(
                f"Fields cannot be updated: {sorted(unknown)}. "
                f"Allowed: {sorted(UPDATABLE_USER_FIELDS)}"
            )

        updates: dict[str, Any] = {}
        if "name" in data:
            if not str(data["name"] or "").strip():
                raise ValidationError("Name cannot be empty")
            updates["name"] = str(data["name"]).strip()
        if "role" in data:
            updates["role"] = _parse_role(data["role"]).value
        if "department" in data:
            updates["department"] = str(data["department"] or "")
        if "active" in data:
            updates["active"] = bool(data["active"])
        if "manager_id" in data:
            manager_id = data["manager_id"]
            updates["manager_id"] = str(manager_id).strip().lower() if manager_id else None

        async with self._store.transaction():
            if await self._users.get_by_id(user_id) is None:
                raise NotFoundError(f"User {user_id} not found")
            if "manager_id" in updates:
                await self._require_manager(updates["manager_id"], user_id)

            user = await self._users.update(user_id, updates)
            await self._activity.record(
                identity.user_id, "update_user", "user", user_id,
                fields=sorted(updates),
            )

        return OperationResult.ok("User updated successfully", user=user)

    async def get_user(self, user_id: str) -> User | None:
        return await self._users.get_by_id(user_id)

    async def list_users(
        self,
        *,
        role: Role | None = None,
        active_only: bool = False,
    ) -> list[User]:
        return await self._users.list_users(role=role, active_only=active_only)

    async def direct_reports(self, manager_id: str) -> list[User]:
        return await self._users.direct_reports(manager_id)

    async def users_with_role(self, role: Role) -> list[User]:
        return await self._users.list_users(role=role, active_only=True)
