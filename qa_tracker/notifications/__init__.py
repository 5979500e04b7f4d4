"""Notifications - outbound messages for evaluation and dispute events.

Components:
- Notification: Composed message with plain-text template and context
- NotificationChannel: ABC with webhook and Slack implementations
- CircuitBreaker: Channel wrapper that stops calling unhealthy services
- NotificationDispatcher: Per-channel delivery with retries
- Notifier: Domain hooks that compose messages and resolve recipients
"""

from qa_tracker.notifications.channels import (
    CircuitBreaker,
    CircuitState,
    NotificationChannel,
    SlackChannel,
    WebhookChannel,
)
from qa_tracker.notifications.dispatcher import NotificationConfig, NotificationDispatcher
from qa_tracker.notifications.notifier import Notifier
from qa_tracker.notifications.schemas import Notification, render

__all__ = [
    "CircuitBreaker",
    "CircuitState",
    "Notification",
    "NotificationChannel",
    "NotificationConfig",
    "NotificationDispatcher",
    "Notifier",
    "SlackChannel",
    "WebhookChannel",
    "render",
]
