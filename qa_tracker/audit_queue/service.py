"""Audit queue operations.

QA managers add interactions to the queue and assign them to analysts.
Analysts see the items assigned to them; items are completed by the
evaluation engine when an evaluation references them.
"""

import logging
from collections.abc import Mapping
from typing import Any

from qa_tracker.activity.log import ActivityLog
from qa_tracker.audit_queue.repository import AuditQueueRepository
from qa_tracker.audit_queue.schemas import VALID_QUEUE_STATUSES, QueueItem, QueueStatus
from qa_tracker.errors import InvalidStateError, NotFoundError, ValidationError
from qa_tracker.identity.permissions import has_permission, require_role
from qa_tracker.identity.repository import UserRepository
from qa_tracker.identity.schemas import IdentityContext, Role
from qa_tracker.results import OperationResult, engine_operation
from qa_tracker.storage.record_store import RecordStore
from qa_tracker.storage.serialization import parse_datetime

logger = logging.getLogger(__name__)

ASSIGNABLE_ROLES: frozenset[Role] = frozenset({Role.QA_ANALYST, Role.QA_MANAGER})


class AuditQueueService:
    """Manage interactions waiting for evaluation."""

    def __init__(self, store: RecordStore, activity: ActivityLog) -> None:
        self._store = store
        self._repo = AuditQueueRepository(store)
        self._users = UserRepository(store)
        self._activity = activity

    @property
    def repository(self) -> AuditQueueRepository:
        return self._repo

    @engine_operation("add_queue_item", "Failed to add item to the audit queue")
    async def add_item(self, identity: IdentityContext, data: Mapping[str, Any]) -> OperationResult:
        require_role(identity, Role.QA_MANAGER, "manage the audit queue")

        agent_id = str(data.get("agent_id") or "").strip().lower()
        interaction_id = str(data.get("interaction_id") or "").strip()
        interaction_type = str(data.get("interaction_type") or "").strip()
        if not agent_id or not interaction_id or not interaction_type:
            raise ValidationError("agent_id, interaction_id and interaction_type are required")
        try:
            interaction_date = parse_datetime(data.get("interaction_date"))
        except ValueError:
            raise ValidationError("interaction_date must be an ISO-8601 date")

        async with self._store.transaction():
            if await self._users.get_by_id(agent_id) is None:
                raise NotFoundError(f"Agent {agent_id} not found")
            item = await self._repo.create(QueueItem(
                agent_id=agent_id,
                interaction_id=interaction_id,
                interaction_type=interaction_type,
                customer_id=str(data.get("customer_id") or ""),
                interaction_date=interaction_date,
            ))
            await self._activity.record(
                identity.user_id, "add_queue_item", "audit_queue", item.id,
                agent_id=agent_id,
            )

        return OperationResult.ok("Item added to the audit queue", item_id=item.id, item=item)

    @engine_operation("assign_queue_item", "Failed to assign audit queue item")
    async def assign_item(
        self,
        identity: IdentityContext,
        item_id: str,
        assignee_id: str,
    ) -> OperationResult:
        require_role(identity, Role.QA_MANAGER, "manage the audit queue")
        assignee_id = (assignee_id or "").strip().lower()

        async with self._store.transaction():
            item = await self._repo.get_by_id(item_id)
            if item is None:
                raise NotFoundError(f"Audit queue item {item_id} not found")
            if item.status == QueueStatus.COMPLETED:
                raise InvalidStateError("Audit queue item is already completed")

            assignee = await self._users.get_by_id(assignee_id)
            if assignee is None or not assignee.active:
                raise NotFoundError(f"User {assignee_id} not found")
            if assignee.role not in ASSIGNABLE_ROLES:
                raise ValidationError("Queue items can only be assigned to QA analysts or QA managers")

            item = await self._repo.update(
                item_id,
                {"assigned_to": assignee_id, "status": QueueStatus.ASSIGNED.value},
                expected_revision=item.revision,
            )
            await self._activity.record(
                identity.user_id, "assign_queue_item", "audit_queue", item_id,
                assigned_to=assignee_id,
            )

        return OperationResult.ok("Audit queue item assigned", item=item)

    async def list_items(
        self,
        identity: IdentityContext,
        *,
        status: str | None = None,
    ) -> list[QueueItem]:
        """Items visible to the identity.

        Managers see the whole queue, analysts only their assignments,
        and every other role nothing.
        """
        if status is not None and status not in VALID_QUEUE_STATUSES:
            return []
        if has_permission(identity, Role.QA_MANAGER):
            return await self._repo.list_items(status=status)
        if has_permission(identity, Role.QA_ANALYST):
            return await self._repo.list_items(status=status, assigned_to=identity.user_id)
        return []
