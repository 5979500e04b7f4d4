"""Schema definitions for users, roles, and the acting identity.

Maps 1:1 to the ``users`` collection. A user's ``id`` is their email
address; ``manager_id`` points at another user and drives the
AgentManager visibility rule (direct reports).
"""

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from qa_tracker.storage.serialization import parse_datetime, to_iso, utc_now


class Role(str, enum.Enum):
    """Roles recognised by the permission gate."""

    AGENT = "Agent"
    AGENT_MANAGER = "AgentManager"
    QA_ANALYST = "QAAnalyst"
    QA_MANAGER = "QAManager"
    ADMIN = "Admin"


VALID_ROLES: frozenset[str] = frozenset(r.value for r in Role)

ROLE_LABELS: dict[Role, str] = {
    Role.AGENT: "Agent",
    Role.AGENT_MANAGER: "Agent Manager",
    Role.QA_ANALYST: "QA Analyst",
    Role.QA_MANAGER: "QA Manager",
    Role.ADMIN: "Admin",
}


@dataclass
class User:
    """A provisioned user.

    Attributes:
        id: Email address, unique.
        name: Display name.
        role: Assigned role.
        department: Free-text department.
        manager_id: Id of this user's manager, if any.
        active: Inactive users resolve to no role.
        created_at: When the user was provisioned.
        revision: Store revision at read time.
    """

    id: str
    name: str
    role: Role
    department: str = ""
    manager_id: str | None = None
    active: bool = True
    created_at: datetime = field(default_factory=utc_now)
    revision: int = 0

    def __post_init__(self) -> None:
        if not isinstance(self.role, Role):
            if self.role not in VALID_ROLES:
                raise ValueError(
                    f"Invalid role {self.role!r}. "
                    f"Must be one of: {sorted(VALID_ROLES)}"
                )
            self.role = Role(self.role)

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "role": self.role.value,
            "department": self.department,
            "manager_id": self.manager_id,
            "active": self.active,
            "created_at": to_iso(self.created_at),
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "User":
        return cls(
            id=record["id"],
            name=record.get("name", ""),
            role=record["role"],
            department=record.get("department", ""),
            manager_id=record.get("manager_id"),
            active=record.get("active", True),
            created_at=parse_datetime(record.get("created_at")) or utc_now(),
            revision=record.get("revision", 0),
        )


@dataclass(frozen=True)
class IdentityContext:
    """The acting identity threaded explicitly into every engine call.

    ``role`` is None for unknown or inactive identities; such callers
    fail every permission check.
    """

    user_id: str
    role: Role | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.role is not None
