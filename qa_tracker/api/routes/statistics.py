"""Statistics endpoints: dashboard numbers and score trends."""

import time
from datetime import datetime

import structlog
from fastapi import APIRouter, Depends, Query

from qa_tracker.api.auth import get_identity
from qa_tracker.api.dependencies import get_tracker
from qa_tracker.api.errors import operation_response
from qa_tracker.api.models import ErrorResponse, OperationResponse
from qa_tracker.identity.schemas import IdentityContext
from qa_tracker.services.container import QATracker

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.get(
    "/statistics/dashboard",
    response_model=OperationResponse,
    summary="Dashboard",
    description=(
        "Evaluation count, average and pass rate against the passing score, "
        "dispute rate and per-agent summaries over the caller's visible evaluations."
    ),
)
async def dashboard(
    start_date: datetime | None = Query(default=None, description="Inclusive lower bound"),
    end_date: datetime | None = Query(default=None, description="Inclusive upper bound"),
    identity: IdentityContext = Depends(get_identity),
    tracker: QATracker = Depends(get_tracker),
) -> OperationResponse:
    start_time = time.perf_counter()

    result = await tracker.statistics.dashboard(identity, start_date, end_date)
    response = operation_response(result, start_time)

    logger.info(
        "Dashboard computed",
        user_id=identity.user_id,
        total_evaluations=result.data["total_evaluations"],
        latency_ms=response.latency_ms,
    )
    return response


@router.get(
    "/statistics/trends",
    response_model=OperationResponse,
    responses={422: {"model": ErrorResponse, "description": "Invalid period"}},
    summary="Score trends",
    description="Per-week or per-month averages, pass rates and dispute counts.",
)
async def trends(
    period: str = Query(default="week", description="week or month"),
    start_date: datetime | None = Query(default=None, description="Inclusive lower bound"),
    end_date: datetime | None = Query(default=None, description="Inclusive upper bound"),
    identity: IdentityContext = Depends(get_identity),
    tracker: QATracker = Depends(get_tracker),
) -> OperationResponse:
    start_time = time.perf_counter()

    result = await tracker.statistics.trends(identity, period, start_date, end_date)
    return operation_response(result, start_time)
