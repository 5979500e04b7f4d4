"""Dispute endpoints: file, review, and report on score disputes."""

import time
from datetime import datetime

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status

from qa_tracker.api.auth import get_identity, require_known_user
from qa_tracker.api.dependencies import get_tracker
from qa_tracker.api.errors import operation_response, raise_for_result
from qa_tracker.api.models import (
    DisputeCreateRequest,
    DisputeDetailResponse,
    DisputeItem,
    DisputeListResponse,
    DisputeReviewRequest,
    DisputeStatsResponse,
    DisputeUpdateRequest,
    ErrorResponse,
    EvaluationItem,
    OperationResponse,
    ResolutionItem,
)
from qa_tracker.disputes.schemas import DisputeStatus
from qa_tracker.identity.schemas import IdentityContext
from qa_tracker.services.container import QATracker

logger = structlog.get_logger(__name__)
router = APIRouter()

_WRITE_ERRORS = {
    403: {"model": ErrorResponse, "description": "Permission denied"},
    404: {"model": ErrorResponse, "description": "Dispute or evaluation not found"},
    409: {"model": ErrorResponse, "description": "Invalid state, expired window, or conflict"},
    422: {"model": ErrorResponse, "description": "Invalid request"},
    503: {"model": ErrorResponse, "description": "Record store unavailable"},
}


@router.post(
    "/disputes",
    response_model=OperationResponse,
    status_code=status.HTTP_201_CREATED,
    responses=_WRITE_ERRORS,
    summary="File dispute",
    description=(
        "Challenge an evaluation's score. The evaluation must have no active "
        "dispute and be inside the dispute window. Requires the Agent Manager role."
    ),
)
async def file_dispute(
    request: DisputeCreateRequest,
    identity: IdentityContext = Depends(get_identity),
    tracker: QATracker = Depends(get_tracker),
) -> OperationResponse:
    start_time = time.perf_counter()

    result = await tracker.disputes.file_dispute(
        identity,
        request.evaluation_id,
        request.reason,
        details=request.details,
        additional_evidence=request.additional_evidence,
        requested_score_change=request.requested_score_change,
    )
    response = operation_response(result, start_time)

    logger.info(
        "Dispute filed",
        dispute_id=result.data["dispute_id"],
        evaluation_id=request.evaluation_id,
        latency_ms=response.latency_ms,
    )
    return response


@router.get(
    "/disputes",
    response_model=DisputeListResponse,
    summary="List disputes",
    description="List disputes visible to the caller, newest first.",
)
async def list_disputes(
    status_filter: DisputeStatus | None = Query(
        default=None, alias="status", description="Filter by status",
    ),
    evaluation_id: str | None = Query(default=None, description="Filter by evaluation"),
    submitted_by: str | None = Query(default=None, description="Filter by submitter"),
    start_date: datetime | None = Query(default=None, description="Inclusive lower bound"),
    end_date: datetime | None = Query(default=None, description="Inclusive upper bound"),
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    identity: IdentityContext = Depends(get_identity),
    tracker: QATracker = Depends(get_tracker),
) -> DisputeListResponse:
    start_time = time.perf_counter()

    try:
        disputes = await tracker.disputes.list_disputes(
            identity,
            status=status_filter.value if status_filter else None,
            evaluation_id=evaluation_id,
            submitted_by=submitted_by,
            start_date=start_date,
            end_date=end_date,
        )
        latency_ms = (time.perf_counter() - start_time) * 1000

        return DisputeListResponse(
            disputes=[DisputeItem.model_validate(d) for d in disputes[offset:offset + limit]],
            total=len(disputes),
            latency_ms=round(latency_ms, 2),
        )

    except HTTPException:
        raise
    except Exception as e:
        logger.error("list_disputes_failed", error=str(e), exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to list disputes",
        )


@router.get(
    "/disputes/stats",
    response_model=DisputeStatsResponse,
    responses={403: {"model": ErrorResponse, "description": "Unknown user"}},
    summary="Dispute statistics",
    description=(
        "Counts by status, reason and submitter, the approval rate and the "
        "average approved adjustment, over disputes submitted in the window."
    ),
)
async def get_dispute_stats(
    start_date: datetime | None = Query(default=None, description="Inclusive lower bound"),
    end_date: datetime | None = Query(default=None, description="Inclusive upper bound"),
    identity: IdentityContext = Depends(require_known_user),
    tracker: QATracker = Depends(get_tracker),
) -> DisputeStatsResponse:
    start_time = time.perf_counter()

    try:
        stats = await tracker.disputes.get_statistics(start_date, end_date)
        latency_ms = (time.perf_counter() - start_time) * 1000

        logger.info(
            "Dispute stats retrieved",
            total=stats["total"],
            approval_rate=stats["approval_rate"],
            latency_ms=round(latency_ms, 2),
        )
        return DisputeStatsResponse(**stats, latency_ms=round(latency_ms, 2))

    except HTTPException:
        raise
    except Exception as e:
        logger.error("get_dispute_stats_failed", error=str(e), exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get dispute statistics",
        )


@router.get(
    "/disputes/{dispute_id}",
    response_model=DisputeDetailResponse,
    responses={
        403: {"model": ErrorResponse, "description": "Dispute not visible to caller"},
        404: {"model": ErrorResponse, "description": "Dispute not found"},
    },
    summary="Get dispute",
)
async def get_dispute(
    dispute_id: str,
    identity: IdentityContext = Depends(get_identity),
    tracker: QATracker = Depends(get_tracker),
) -> DisputeDetailResponse:
    start_time = time.perf_counter()

    result = raise_for_result(await tracker.disputes.get_dispute(identity, dispute_id))
    evaluation = result.data["evaluation"]
    resolution = result.data["resolution"]
    latency_ms = (time.perf_counter() - start_time) * 1000

    return DisputeDetailResponse(
        dispute=DisputeItem.model_validate(result.data["dispute"]),
        evaluation=EvaluationItem.model_validate(evaluation) if evaluation else None,
        resolution=ResolutionItem.model_validate(resolution) if resolution else None,
        latency_ms=round(latency_ms, 2),
    )


@router.patch(
    "/disputes/{dispute_id}",
    response_model=OperationResponse,
    responses=_WRITE_ERRORS,
    summary="Update pending dispute",
    description="Edit a pending dispute. Only its submitter or an Admin may edit.",
)
async def update_dispute(
    dispute_id: str,
    request: DisputeUpdateRequest,
    identity: IdentityContext = Depends(get_identity),
    tracker: QATracker = Depends(get_tracker),
) -> OperationResponse:
    start_time = time.perf_counter()

    data = request.model_dump(exclude_unset=True)
    result = await tracker.disputes.update_dispute(identity, dispute_id, data)
    return operation_response(result, start_time)


@router.delete(
    "/disputes/{dispute_id}",
    response_model=OperationResponse,
    responses=_WRITE_ERRORS,
    summary="Cancel pending dispute",
    description="Withdraw a pending dispute; the evaluation returns to Completed.",
)
async def cancel_dispute(
    dispute_id: str,
    identity: IdentityContext = Depends(get_identity),
    tracker: QATracker = Depends(get_tracker),
) -> OperationResponse:
    start_time = time.perf_counter()

    result = await tracker.disputes.cancel_dispute(identity, dispute_id)
    return operation_response(result, start_time)


@router.post(
    "/disputes/{dispute_id}/start-review",
    response_model=OperationResponse,
    responses=_WRITE_ERRORS,
    summary="Start dispute review",
    description="Move a pending dispute to InProgress. Requires the QA Manager role.",
)
async def start_review(
    dispute_id: str,
    identity: IdentityContext = Depends(get_identity),
    tracker: QATracker = Depends(get_tracker),
) -> OperationResponse:
    start_time = time.perf_counter()

    result = await tracker.disputes.start_review(identity, dispute_id)
    return operation_response(result, start_time)


@router.post(
    "/disputes/{dispute_id}/review",
    response_model=OperationResponse,
    responses=_WRITE_ERRORS,
    summary="Resolve dispute",
    description=(
        "Approve, partially approve or reject an active dispute. Approvals add "
        "the adjustment to the score, clamped to [0, max possible]. Requires "
        "the QA Manager role."
    ),
)
async def review_dispute(
    dispute_id: str,
    request: DisputeReviewRequest,
    identity: IdentityContext = Depends(get_identity),
    tracker: QATracker = Depends(get_tracker),
) -> OperationResponse:
    start_time = time.perf_counter()

    result = await tracker.disputes.review_dispute(
        identity,
        dispute_id,
        request.status,
        request.review_notes,
        request.score_adjustment,
    )
    response = operation_response(result, start_time)

    logger.info(
        "Dispute reviewed",
        dispute_id=dispute_id,
        decision=result.data["decision"],
        score_before=result.data["score_before"],
        new_score=result.data["new_score"],
    )
    return response
