"""Role-scoped read visibility for evaluations.

Agent sees their own evaluations, AgentManager those of their direct
reports, QAAnalyst those they authored, and QAManager and Admin see
everything. An identity without a role sees nothing.
"""

from dataclasses import dataclass, field

from qa_tracker.evaluations.schemas import Evaluation
from qa_tracker.identity.repository import UserRepository
from qa_tracker.identity.schemas import IdentityContext, Role


@dataclass(frozen=True)
class VisibilityScope:
    """Which evaluations an identity may read."""

    see_all: bool = False
    agent_ids: frozenset[str] = field(default_factory=frozenset)
    evaluator_id: str | None = None

    def allows(self, evaluation: Evaluation) -> bool:
        if self.see_all:
            return True
        if evaluation.agent_id in self.agent_ids:
            return True
        return self.evaluator_id is not None and evaluation.evaluator_id == self.evaluator_id

    def filter(self, evaluations: list[Evaluation]) -> list[Evaluation]:
        if self.see_all:
            return evaluations
        return [e for e in evaluations if self.allows(e)]


async def scope_for(identity: IdentityContext, users: UserRepository) -> VisibilityScope:
    """Build the visibility scope for an identity."""
    role = identity.role
    if role in (Role.QA_MANAGER, Role.ADMIN):
        return VisibilityScope(see_all=True)
    if role == Role.QA_ANALYST:
        return VisibilityScope(evaluator_id=identity.user_id)
    if role == Role.AGENT_MANAGER:
        reports = await users.direct_reports(identity.user_id)
        return VisibilityScope(agent_ids=frozenset(u.id for u in reports))
    if role == Role.AGENT:
        return VisibilityScope(agent_ids=frozenset({identity.user_id}))
    return VisibilityScope()
