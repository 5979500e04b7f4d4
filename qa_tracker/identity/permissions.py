"""Permission gate: role resolution and the required-role policy.

Hierarchy rules: Admin passes every check,
QAManager additionally passes QAAnalyst checks, and every other role
passes only its own. AgentManager does not imply Agent, and QAManager
does not imply AgentManager.
"""

import logging

from qa_tracker.errors import PermissionDeniedError
from qa_tracker.identity.repository import UserRepository
from qa_tracker.identity.schemas import ROLE_LABELS, IdentityContext, Role

logger = logging.getLogger(__name__)


def has_permission(identity: IdentityContext | None, required_role: Role) -> bool:
    """Check whether the identity holds ``required_role``.

    Args:
        identity: Acting identity, or None when unauthenticated.
        required_role: Role the operation requires.

    Returns:
        True for Admin, for QAManager when QAAnalyst is required, and for
        an exact role match. False otherwise, including role None.
    """
    if identity is None or identity.role is None:
        return False
    if identity.role == Role.ADMIN:
        return True
    if required_role == Role.QA_ANALYST and identity.role == Role.QA_MANAGER:
        return True
    return identity.role == required_role


def permission_message(required_role: Role, action: str) -> str:
    """Fixed, role-specific denial message."""
    return f"Permission denied: {ROLE_LABELS[required_role]} role required to {action}"


def require_role(identity: IdentityContext | None, required_role: Role, action: str) -> None:
    """Raise PermissionDeniedError unless the identity holds the role."""
    if not has_permission(identity, required_role):
        logger.info(
            "Permission denied for %s: %s requires %s",
            identity.user_id if identity else "<anonymous>",
            action,
            required_role.value,
        )
        raise PermissionDeniedError(permission_message(required_role, action))


class PermissionGate:
    """Resolves user ids to identities via the Users collection."""

    def __init__(self, users: UserRepository) -> None:
        self._users = users

    async def resolve(self, user_id: str | None) -> IdentityContext:
        """Resolve an identity string to an IdentityContext.

        Unknown and inactive users get role None.
        """
        if not user_id:
            return IdentityContext(user_id="")

        user = await self._users.get_by_id(user_id.strip().lower())
        if user is None or not user.active:
            return IdentityContext(user_id=user_id)
        return IdentityContext(user_id=user.id, role=user.role)

    async def has_permission(self, user_id: str | None, required_role: Role) -> bool:
        """Resolve then check in one call."""
        return has_permission(await self.resolve(user_id), required_role)
