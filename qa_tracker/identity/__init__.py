"""Identity module - users, roles, and the permission gate.

Components:
- Role / User / IdentityContext: Typed records for users and the acting identity
- has_permission / PermissionGate: Required-role checks with hierarchy rules
- UserRepository: Persistence over the users collection
- UserService: Admin provisioning of users
"""

from qa_tracker.identity.permissions import (
    PermissionGate,
    has_permission,
    permission_message,
    require_role,
)
from qa_tracker.identity.repository import UserRepository
from qa_tracker.identity.schemas import VALID_ROLES, IdentityContext, Role, User
from qa_tracker.identity.service import UserService

__all__ = [
    "IdentityContext",
    "PermissionGate",
    "Role",
    "User",
    "UserRepository",
    "UserService",
    "VALID_ROLES",
    "has_permission",
    "permission_message",
    "require_role",
]
