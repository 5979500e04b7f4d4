"""Fan-out of composed notifications to the configured channels.

Every channel gets its own retry loop behind a circuit breaker. Outcomes
are counted in Prometheus and logged; nothing is raised back to the
engines, whose transactions have already committed by the time a
notification is sent.
"""

import asyncio
import logging

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from qa_tracker.notifications.channels import CircuitBreaker, NotificationChannel
from qa_tracker.notifications.schemas import Notification
from qa_tracker.observability.metrics import get_metrics

logger = logging.getLogger(__name__)


class NotificationConfig(BaseSettings):
    """Retry and circuit-breaker tuning, read from ``NOTIFICATIONS_*`` env vars."""

    model_config = SettingsConfigDict(
        env_prefix="NOTIFICATIONS_",
        case_sensitive=False,
        extra="ignore",
    )

    retry_max_attempts: int = Field(default=3, ge=1, le=10)
    retry_delays: list[float] = Field(
        default=[1.0, 5.0, 30.0],
        description="Seconds to wait before each retry; the last value repeats",
    )
    circuit_breaker_threshold: int = Field(default=5, ge=1)
    circuit_breaker_recovery_seconds: float = Field(default=60.0, ge=0.0)
    request_timeout_seconds: float = Field(default=10.0, gt=0.0, le=120.0)

    def delay_before(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (1-based)."""
        if not self.retry_delays:
            return 0.0
        return self.retry_delays[min(attempt - 1, len(self.retry_delays) - 1)]


class NotificationDispatcher:
    """Sends each notification to every channel, one channel at a time."""

    def __init__(
        self,
        channels: list[NotificationChannel],
        config: NotificationConfig | None = None,
    ) -> None:
        self._config = config or NotificationConfig()
        self._channels = [self._guard(ch) for ch in channels]

    def _guard(self, channel: NotificationChannel) -> CircuitBreaker:
        if isinstance(channel, CircuitBreaker):
            return channel
        return CircuitBreaker(
            channel,
            failure_threshold=self._config.circuit_breaker_threshold,
            recovery_timeout=self._config.circuit_breaker_recovery_seconds,
        )

    @property
    def channels(self) -> list[CircuitBreaker]:
        return self._channels

    async def dispatch(self, notification: Notification) -> list[tuple[str, bool]]:
        """Deliver to all channels.

        Returns:
            ``(channel_name, delivered)`` per channel; empty when the
            notification has no recipients.
        """
        if not notification.recipients:
            logger.debug("%s has no recipients; not sent", notification.notification_id)
            return []

        results: list[tuple[str, bool]] = []
        for channel in self._channels:
            delivered = await self._deliver(channel, notification)
            get_metrics().record_notification(channel.name, delivered)
            results.append((channel.name, delivered))

        failed = [name for name, ok in results if not ok]
        if failed and len(failed) == len(results):
            logger.error(
                "%s notification %s reached no channel (%s)",
                notification.kind, notification.notification_id, ", ".join(failed),
            )
        elif failed:
            logger.warning(
                "%s notification %s not delivered to %s",
                notification.kind, notification.notification_id, ", ".join(failed),
            )
        return results

    async def _deliver(self, channel: CircuitBreaker, notification: Notification) -> bool:
        attempts = self._config.retry_max_attempts
        for attempt in range(1, attempts + 1):
            if attempt > 1:
                await asyncio.sleep(self._config.delay_before(attempt - 1))
            try:
                if await channel.send(notification):
                    if attempt > 1:
                        logger.info(
                            "%s delivered %s on attempt %d",
                            channel.name, notification.notification_id, attempt,
                        )
                    return True
            except Exception as e:
                logger.warning(
                    "%s raised on attempt %d for %s: %s",
                    channel.name, attempt, notification.notification_id, e,
                )
        logger.warning(
            "%s gave up on %s after %d attempts",
            channel.name, notification.notification_id, attempts,
        )
        return False
