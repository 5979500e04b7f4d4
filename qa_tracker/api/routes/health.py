"""Liveness and dependency health for the QA tracker API."""

import time

import structlog
from fastapi import APIRouter, Depends

from qa_tracker.api.dependencies import get_tracker
from qa_tracker.api.models import ComponentHealth, HealthResponse
from qa_tracker.config.settings import get_settings
from qa_tracker.notifications.channels import CircuitState
from qa_tracker.services.container import QATracker

router = APIRouter()
logger = structlog.get_logger(__name__)


async def _record_store_health(tracker: QATracker) -> ComponentHealth:
    start = time.perf_counter()
    error: str | None = None
    try:
        healthy = await tracker.health_check()
    except Exception as e:
        logger.warning("Record store health check failed", error=str(e))
        healthy, error = False, str(e)

    return ComponentHealth(
        status="healthy" if healthy else "unhealthy",
        latency_ms=round((time.perf_counter() - start) * 1000, 2),
        details={"error": error} if error else None,
    )


def _notification_health(tracker: QATracker) -> ComponentHealth:
    """Channels whose circuit breaker is open are reported as degraded."""
    open_channels = [
        ch.name for ch in tracker.dispatcher.channels if ch.state == CircuitState.OPEN
    ]
    return ComponentHealth(
        status="degraded" if open_channels else "healthy",
        details={
            "channels": [ch.name for ch in tracker.dispatcher.channels],
            "open_circuits": open_channels,
        },
    )


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
    description=(
        "unhealthy when the record store cannot be reached; degraded when a "
        "notification channel is being skipped by its circuit breaker."
    ),
)
async def health_check(
    tracker: QATracker = Depends(get_tracker),
) -> HealthResponse:
    components = {
        "record_store": await _record_store_health(tracker),
        "notifications": _notification_health(tracker),
    }

    if components["record_store"].status != "healthy":
        overall = "unhealthy"
    elif components["notifications"].status != "healthy":
        overall = "degraded"
    else:
        overall = "healthy"

    return HealthResponse(
        status=overall,
        store_backend=get_settings().store_backend,
        notifications_enabled=tracker.notifier.enabled,
        components=components,
    )
