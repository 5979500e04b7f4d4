"""
Prometheus metrics for monitoring the QA workflow.

Defines and exposes metrics for:
- Evaluations created and deleted
- Disputes filed and resolved, by decision
- Engine operation failures, by error kind
- Notification delivery outcomes

Metrics are exposed via HTTP endpoint for Prometheus scraping.
"""

import logging

from prometheus_client import (
    REGISTRY,
    Counter,
    Histogram,
    start_http_server,
)

from qa_tracker.config.settings import get_settings

logger = logging.getLogger(__name__)

# Buckets for evaluation score percentages
SCORE_BUCKETS = (10.0, 20.0, 30.0, 40.0, 50.0, 60.0, 70.0, 80.0, 90.0, 100.0)


class MetricsCollector:
    """
    Prometheus metrics collector for qa-tracker.

    Usage:
        metrics = get_metrics()
        metrics.start_server()

        metrics.record_evaluation_created(percentage=82.5)
        metrics.record_dispute_resolved("Approved")
    """

    def __init__(self):
        """Initialize Prometheus metrics."""

        self.evaluations_created = Counter(
            "qa_tracker_evaluations_created_total",
            "Total number of evaluations created",
        )

        self.evaluations_deleted = Counter(
            "qa_tracker_evaluations_deleted_total",
            "Total number of evaluations deleted",
        )

        self.evaluation_score = Histogram(
            "qa_tracker_evaluation_score_percentage",
            "Distribution of evaluation score percentages at creation",
            buckets=SCORE_BUCKETS,
        )

        self.disputes_filed = Counter(
            "qa_tracker_disputes_filed_total",
            "Total number of disputes filed",
        )

        self.disputes_resolved = Counter(
            "qa_tracker_disputes_resolved_total",
            "Total number of disputes resolved",
            ["decision"],  # Approved, PartiallyApproved, Rejected
        )

        self.disputes_cancelled = Counter(
            "qa_tracker_disputes_cancelled_total",
            "Total number of disputes cancelled by their submitter",
        )

        self.operation_failures = Counter(
            "qa_tracker_operation_failures_total",
            "Engine operations that returned a failure result",
            ["operation", "error_kind"],
        )

        self.notifications_sent = Counter(
            "qa_tracker_notifications_sent_total",
            "Notification deliveries by channel and outcome",
            ["channel", "status"],  # status: success, failure
        )

        logger.info("Prometheus metrics initialized")

    def start_server(self, port: int | None = None) -> None:
        """
        Start Prometheus metrics HTTP server.

        Args:
            port: Port to expose metrics on (default from settings)
        """
        settings = get_settings()
        port = port or settings.metrics_port

        start_http_server(port, registry=REGISTRY)
        logger.info(f"Prometheus metrics server started on port {port}")

    # Convenience methods

    def record_evaluation_created(self, percentage: float) -> None:
        """Record a created evaluation and its score percentage."""
        self.evaluations_created.inc()
        self.evaluation_score.observe(percentage)

    def record_dispute_resolved(self, decision: str) -> None:
        """Record a dispute review decision."""
        self.disputes_resolved.labels(decision=decision).inc()

    def record_failure(self, operation: str, error_kind: str) -> None:
        """
        Record an engine operation failure.

        Args:
            operation: Engine operation name (e.g. "review_dispute")
            error_kind: ErrorKind value of the failure
        """
        self.operation_failures.labels(
            operation=operation, error_kind=error_kind,
        ).inc()

    def record_notification(self, channel: str, success: bool) -> None:
        """Record a notification delivery outcome."""
        status = "success" if success else "failure"
        self.notifications_sent.labels(channel=channel, status=status).inc()


# Global metrics instance
_metrics: MetricsCollector | None = None


def get_metrics() -> MetricsCollector:
    """Get global metrics collector instance."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics
