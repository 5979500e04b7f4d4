"""Wires the record store, engines and notification pipeline together.

One ``QATracker`` instance is shared by the HTTP API and the CLI. It owns
the store backend chosen by ``Settings.store_backend`` and closes it on
shutdown after pending notifications have been delivered.
"""

import logging

from qa_tracker.activity.log import ActivityLog
from qa_tracker.audit_queue.service import AuditQueueService
from qa_tracker.config.settings import Settings, get_settings
from qa_tracker.disputes.config import DisputeConfig
from qa_tracker.disputes.service import DisputeService
from qa_tracker.evaluations.config import EvaluationConfig
from qa_tracker.evaluations.service import EvaluationService
from qa_tracker.identity.permissions import PermissionGate
from qa_tracker.identity.service import UserService
from qa_tracker.notifications.channels import NotificationChannel, SlackChannel, WebhookChannel
from qa_tracker.notifications.dispatcher import NotificationConfig, NotificationDispatcher
from qa_tracker.notifications.notifier import Notifier
from qa_tracker.question_sets.service import QuestionSetService
from qa_tracker.reporting.service import StatisticsService
from qa_tracker.storage.database import Database
from qa_tracker.storage.postgres_store import PostgresRecordStore
from qa_tracker.storage.record_store import InMemoryRecordStore, RecordStore
from qa_tracker.system_settings.service import SystemSettingsService

logger = logging.getLogger(__name__)


def build_channels(
    settings: Settings,
    config: NotificationConfig | None = None,
) -> list[NotificationChannel]:
    """Create the notification channels configured in settings."""
    config = config or NotificationConfig()
    channels: list[NotificationChannel] = []
    if settings.notification_webhook_url:
        headers = {}
        if settings.notification_webhook_token:
            headers["Authorization"] = f"Bearer {settings.notification_webhook_token}"
        channels.append(WebhookChannel(
            url=settings.notification_webhook_url,
            headers=headers,
            timeout=config.request_timeout_seconds,
        ))
    if settings.slack_webhook_url:
        channels.append(SlackChannel(
            webhook_url=settings.slack_webhook_url,
            channel=settings.slack_channel,
            timeout=config.request_timeout_seconds,
        ))
    return channels


class QATracker:
    """Container for every service of the application.

    Usage:
        tracker = await QATracker.from_settings()
        identity = await tracker.gate.resolve("analyst@example.com")
        result = await tracker.evaluations.create_evaluation(identity, data, answers)
        await tracker.close()
    """

    def __init__(
        self,
        store: RecordStore,
        *,
        settings: Settings | None = None,
        dispatcher: NotificationDispatcher | None = None,
        evaluation_config: EvaluationConfig | None = None,
        dispute_config: DisputeConfig | None = None,
    ) -> None:
        settings = settings or get_settings()
        self.store = store
        self.activity = ActivityLog(store)

        self.users = UserService(store, self.activity)
        self.gate = PermissionGate(self.users.repository)
        self.settings = SystemSettingsService(store, self.activity)
        self.question_sets = QuestionSetService(store, self.activity)
        self.audit_queue = AuditQueueService(store, self.activity)

        if dispatcher is None:
            dispatcher = NotificationDispatcher(build_channels(settings))
        self.dispatcher = dispatcher
        self.notifier = Notifier(
            dispatcher,
            self.users.repository,
            enabled=settings.notifications_enabled and bool(dispatcher.channels),
        )

        self.evaluations = EvaluationService(
            store, self.activity, self.notifier, evaluation_config,
        )
        self.disputes = DisputeService(
            store, self.activity, self.settings, self.notifier, dispute_config,
        )
        self.statistics = StatisticsService(store, self.settings)

    @classmethod
    async def from_settings(cls, settings: Settings | None = None) -> "QATracker":
        """Open the configured store backend and build the container."""
        settings = settings or get_settings()
        store: RecordStore
        if settings.uses_postgres:
            database = Database(
                database_url=str(settings.database_url),
                min_size=settings.db_pool_min_size,
                max_size=settings.db_pool_max_size,
            )
            await database.connect()
            store = PostgresRecordStore(database)
        else:
            store = InMemoryRecordStore()

        logger.info("QA tracker started with %s store", settings.store_backend)
        return cls(store, settings=settings)

    async def health_check(self) -> bool:
        return await self.store.health_check()

    async def close(self) -> None:
        await self.notifier.drain()
        await self.store.close()
