"""Notification channels.

A channel delivers one composed ``Notification`` and reports success as a
bool; it never raises for delivery problems. ``WebhookChannel`` posts the
rendered message to a mail relay, ``SlackChannel`` posts Block Kit to an
incoming webhook, and ``CircuitBreaker`` wraps either one so a relay that
keeps failing is skipped for a while instead of delaying every dispute.
"""

import enum
import logging
import time
from abc import ABC, abstractmethod
from typing import Any

import httpx

from qa_tracker.notifications.schemas import Notification

logger = logging.getLogger(__name__)


class NotificationChannel(ABC):
    """Abstract base for notification delivery channels."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Channel identifier used in logs and metrics."""

    @abstractmethod
    async def send(self, notification: Notification) -> bool:
        """Deliver ``notification``; True when the receiver accepted it."""


class _HttpChannel(NotificationChannel):
    """Shared JSON POST with logging of non-2xx answers and transport errors."""

    def __init__(self, timeout: float) -> None:
        self._timeout = timeout

    async def _post(
        self,
        url: str,
        payload: dict[str, Any],
        notification: Notification,
        headers: dict[str, str] | None = None,
    ) -> bool:
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(url, json=payload, headers=headers)
        except httpx.TimeoutException:
            logger.warning(
                "%s delivery of %s (%s) timed out after %.1fs",
                self.name, notification.notification_id, notification.kind, self._timeout,
            )
            return False
        except httpx.HTTPError as e:
            logger.warning(
                "%s delivery of %s (%s) failed: %s",
                self.name, notification.notification_id, notification.kind, e,
            )
            return False

        if not resp.is_success:
            logger.warning(
                "%s rejected %s (%s) with HTTP %d",
                self.name, notification.notification_id, notification.kind, resp.status_code,
            )
            return False
        return True


class WebhookChannel(_HttpChannel):
    """POSTs ``Notification.to_dict()`` (recipients, subject, body) as JSON."""

    def __init__(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        timeout: float = 10.0,
    ) -> None:
        super().__init__(timeout)
        self._url = url
        self._headers = headers or {}

    @property
    def name(self) -> str:
        return "webhook"

    async def send(self, notification: Notification) -> bool:
        return await self._post(
            self._url, notification.to_dict(), notification, headers=self._headers,
        )


class SlackChannel(_HttpChannel):
    """Posts a header, the plain-text body and the recipient list to Slack."""

    KIND_EMOJI = {
        "evaluation_completed": ":clipboard:",
        "dispute_filed": ":warning:",
        "dispute_resolved": ":white_check_mark:",
    }

    def __init__(
        self,
        webhook_url: str,
        channel: str | None = None,
        timeout: float = 10.0,
    ) -> None:
        super().__init__(timeout)
        self._webhook_url = webhook_url
        self._channel = channel

    @property
    def name(self) -> str:
        return "slack"

    def _format_message(self, notification: Notification) -> dict[str, Any]:
        emoji = self.KIND_EMOJI.get(notification.kind, ":bell:")
        recipients = ", ".join(notification.recipients)
        payload: dict[str, Any] = {
            "blocks": [
                {
                    "type": "header",
                    "text": {"type": "plain_text", "text": f"{emoji} {notification.subject}"},
                },
                {
                    "type": "section",
                    "text": {"type": "mrkdwn", "text": notification.body},
                },
                {
                    "type": "context",
                    "elements": [{"type": "mrkdwn", "text": f"*To:* {recipients}"}],
                },
            ],
        }
        if self._channel:
            payload["channel"] = self._channel
        return payload

    async def send(self, notification: Notification) -> bool:
        return await self._post(self._webhook_url, self._format_message(notification), notification)


class CircuitState(enum.Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker(NotificationChannel):
    """Stops calling a channel after ``failure_threshold`` failures in a row.

    While OPEN every send returns False without touching the channel.
    Once ``recovery_timeout`` seconds have passed the next send is let
    through as a probe: success closes the circuit, failure re-opens it.
    """

    def __init__(
        self,
        channel: NotificationChannel,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0,
    ) -> None:
        self._channel = channel
        self._failure_threshold = failure_threshold
        self._recovery_timeout = recovery_timeout
        self._state = CircuitState.CLOSED
        self._failures = 0
        self._opened_at = 0.0

    @property
    def name(self) -> str:
        return self._channel.name

    @property
    def state(self) -> CircuitState:
        return self._state

    def _trip(self) -> None:
        self._state = CircuitState.OPEN
        self._opened_at = time.monotonic()

    async def send(self, notification: Notification) -> bool:
        if self._state == CircuitState.OPEN:
            if time.monotonic() - self._opened_at < self._recovery_timeout:
                logger.debug("%s circuit open; skipped %s", self.name, notification.notification_id)
                return False
            self._state = CircuitState.HALF_OPEN
            logger.info("%s circuit half-open; probing with %s", self.name, notification.notification_id)

        if await self._channel.send(notification):
            if self._state == CircuitState.HALF_OPEN:
                logger.info("%s circuit closed", self.name)
            self._state = CircuitState.CLOSED
            self._failures = 0
            return True

        self._failures += 1
        if self._state == CircuitState.HALF_OPEN:
            self._trip()
            logger.warning("%s probe failed; circuit re-opened", self.name)
        elif self._failures >= self._failure_threshold:
            self._trip()
            logger.warning("%s circuit opened after %d failures", self.name, self._failures)
        return False
