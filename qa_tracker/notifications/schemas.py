"""Schema definitions for outbound notifications."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from qa_tracker.storage.record_store import new_record_id
from qa_tracker.storage.serialization import utc_now

VALID_NOTIFICATION_KINDS: frozenset[str] = frozenset({
    "evaluation_completed",
    "dispute_filed",
    "dispute_resolved",
})


class _KeepMissing(dict):
    """format_map mapping that leaves unknown placeholders in place."""

    def __missing__(self, key: str) -> str:
        return "{" + key + "}"


def render(template: str, context: dict[str, Any]) -> str:
    """Fill ``{placeholder}`` fields of a plain-text template."""
    return template.format_map(_KeepMissing(context))


@dataclass
class Notification:
    """A message addressed to one or more users.

    Attributes:
        kind: Domain event the notification reports.
        recipients: Recipient email addresses, deduplicated in order.
        subject: Rendered subject line.
        template: Plain-text body template with ``{placeholder}`` fields.
        context: Values substituted into the template.
        notification_id: Identifier (notif_{uuid_hex[:12]}).
        created_at: When the notification was composed.
    """

    kind: str
    recipients: list[str]
    subject: str
    template: str
    context: dict[str, Any] = field(default_factory=dict)
    notification_id: str = field(default_factory=lambda: new_record_id("notif"))
    created_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        if self.kind not in VALID_NOTIFICATION_KINDS:
            raise ValueError(
                f"Invalid kind {self.kind!r}. "
                f"Must be one of: {sorted(VALID_NOTIFICATION_KINDS)}"
            )
        self.recipients = list(dict.fromkeys(r for r in self.recipients if r))

    @property
    def body(self) -> str:
        return render(self.template, self.context)

    def to_dict(self) -> dict[str, Any]:
        return {
            "notification_id": self.notification_id,
            "kind": self.kind,
            "recipients": list(self.recipients),
            "subject": self.subject,
            "body": self.body,
            "timestamp": self.created_at.isoformat(),
            "context": {k: v for k, v in self.context.items() if _is_plain(v)},
        }


def _is_plain(value: Any) -> bool:
    return value is None or isinstance(value, (str, int, float, bool))
