"""Evaluation endpoints: score interactions and browse visible evaluations."""

import time
from datetime import datetime

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status

from qa_tracker.api.auth import get_identity
from qa_tracker.api.dependencies import get_tracker
from qa_tracker.api.errors import operation_response, raise_for_result
from qa_tracker.api.models import (
    AnswerItem,
    DisputeItem,
    ErrorResponse,
    EvaluationCreateRequest,
    EvaluationDetailResponse,
    EvaluationItem,
    EvaluationListResponse,
    EvaluationUpdateRequest,
    OperationResponse,
)
from qa_tracker.evaluations.schemas import EvaluationStatus
from qa_tracker.identity.schemas import IdentityContext
from qa_tracker.services.container import QATracker

logger = structlog.get_logger(__name__)
router = APIRouter()

_WRITE_ERRORS = {
    403: {"model": ErrorResponse, "description": "Permission denied"},
    404: {"model": ErrorResponse, "description": "Referenced record not found"},
    409: {"model": ErrorResponse, "description": "Invalid state or concurrent change"},
    422: {"model": ErrorResponse, "description": "Invalid request"},
    503: {"model": ErrorResponse, "description": "Record store unavailable"},
}


@router.post(
    "/evaluations",
    response_model=OperationResponse,
    status_code=status.HTTP_201_CREATED,
    responses=_WRITE_ERRORS,
    summary="Create evaluation",
    description=(
        "Score an interaction against a question set. The score and maximum "
        "are totals of the answers. Requires the QA Analyst role."
    ),
)
async def create_evaluation(
    request: EvaluationCreateRequest,
    identity: IdentityContext = Depends(get_identity),
    tracker: QATracker = Depends(get_tracker),
) -> OperationResponse:
    start_time = time.perf_counter()

    data = request.model_dump(exclude={"answers", "notify"}, exclude_none=True)
    answers = [a.model_dump(exclude_none=True) for a in request.answers]
    result = await tracker.evaluations.create_evaluation(
        identity, data, answers, notify=request.notify,
    )
    response = operation_response(result, start_time)

    logger.info(
        "Evaluation created",
        evaluation_id=result.data["evaluation_id"],
        agent_id=request.agent_id,
        score=result.data["score"],
        latency_ms=response.latency_ms,
    )
    return response


@router.get(
    "/evaluations",
    response_model=EvaluationListResponse,
    responses={422: {"model": ErrorResponse, "description": "Invalid filter parameter"}},
    summary="List evaluations",
    description=(
        "List evaluations visible to the caller, newest first. Agents see "
        "their own, agent managers their direct reports, QA roles all."
    ),
)
async def list_evaluations(
    agent_id: str | None = Query(default=None, description="Filter by agent"),
    evaluator_id: str | None = Query(default=None, description="Filter by evaluator"),
    status_filter: EvaluationStatus | None = Query(
        default=None, alias="status", description="Filter by status",
    ),
    question_set_id: str | None = Query(default=None, description="Filter by question set"),
    start_date: datetime | None = Query(default=None, description="Inclusive lower bound"),
    end_date: datetime | None = Query(default=None, description="Inclusive upper bound"),
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    identity: IdentityContext = Depends(get_identity),
    tracker: QATracker = Depends(get_tracker),
) -> EvaluationListResponse:
    start_time = time.perf_counter()

    try:
        evaluations = await tracker.evaluations.list_evaluations(
            identity,
            agent_id=agent_id,
            evaluator_id=evaluator_id,
            status=status_filter.value if status_filter else None,
            question_set_id=question_set_id,
            start_date=start_date,
            end_date=end_date,
        )
        page = evaluations[offset:offset + limit]
        latency_ms = (time.perf_counter() - start_time) * 1000

        return EvaluationListResponse(
            evaluations=[EvaluationItem.model_validate(e) for e in page],
            total=len(evaluations),
            latency_ms=round(latency_ms, 2),
        )

    except HTTPException:
        raise
    except Exception as e:
        logger.error("list_evaluations_failed", error=str(e), exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to list evaluations",
        )


@router.get(
    "/evaluations/{evaluation_id}",
    response_model=EvaluationDetailResponse,
    responses={
        403: {"model": ErrorResponse, "description": "Evaluation not visible to caller"},
        404: {"model": ErrorResponse, "description": "Evaluation not found"},
    },
    summary="Get evaluation",
)
async def get_evaluation(
    evaluation_id: str,
    identity: IdentityContext = Depends(get_identity),
    tracker: QATracker = Depends(get_tracker),
) -> EvaluationDetailResponse:
    start_time = time.perf_counter()

    result = raise_for_result(await tracker.evaluations.get_evaluation(identity, evaluation_id))
    latency_ms = (time.perf_counter() - start_time) * 1000

    return EvaluationDetailResponse(
        evaluation=EvaluationItem.model_validate(result.data["evaluation"]),
        answers=[AnswerItem.model_validate(a) for a in result.data["answers"]],
        disputes=[DisputeItem.model_validate(d) for d in result.data["disputes"]],
        latency_ms=round(latency_ms, 2),
    )


@router.patch(
    "/evaluations/{evaluation_id}",
    response_model=OperationResponse,
    responses=_WRITE_ERRORS,
    summary="Update evaluation",
    description=(
        "Edit feedback, status or answers. Only the original evaluator or a "
        "QA Manager may edit, and never while a dispute is active."
    ),
)
async def update_evaluation(
    evaluation_id: str,
    request: EvaluationUpdateRequest,
    identity: IdentityContext = Depends(get_identity),
    tracker: QATracker = Depends(get_tracker),
) -> OperationResponse:
    start_time = time.perf_counter()

    data = request.model_dump(exclude={"answers"}, exclude_unset=True, mode="json")
    answers = (
        [a.model_dump(exclude_none=True) for a in request.answers]
        if request.answers is not None
        else None
    )
    result = await tracker.evaluations.update_evaluation(identity, evaluation_id, data, answers)
    return operation_response(result, start_time)


@router.delete(
    "/evaluations/{evaluation_id}",
    response_model=OperationResponse,
    responses=_WRITE_ERRORS,
    summary="Delete evaluation",
    description=(
        "Delete an evaluation with its answers, disputes and dispute "
        "resolutions. Requires the QA Manager role."
    ),
)
async def delete_evaluation(
    evaluation_id: str,
    identity: IdentityContext = Depends(get_identity),
    tracker: QATracker = Depends(get_tracker),
) -> OperationResponse:
    start_time = time.perf_counter()

    result = await tracker.evaluations.delete_evaluation(identity, evaluation_id)
    response = operation_response(result, start_time)

    logger.info(
        "Evaluation deleted",
        evaluation_id=evaluation_id,
        disputes_removed=result.data["disputes_removed"],
    )
    return response
