"""Question set endpoints: scoring templates and their questions."""

import time

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status

from qa_tracker.api.auth import get_identity
from qa_tracker.api.dependencies import get_tracker
from qa_tracker.api.errors import operation_response
from qa_tracker.api.models import (
    ErrorResponse,
    OperationResponse,
    QuestionInput,
    QuestionItem,
    QuestionSetCreateRequest,
    QuestionSetDetailResponse,
    QuestionSetItem,
    QuestionSetListResponse,
    QuestionSetUpdateRequest,
    QuestionUpdateRequest,
)
from qa_tracker.identity.schemas import IdentityContext
from qa_tracker.services.container import QATracker

logger = structlog.get_logger(__name__)
router = APIRouter()

_WRITE_ERRORS = {
    403: {"model": ErrorResponse, "description": "QA Manager role required"},
    404: {"model": ErrorResponse, "description": "Question set or question not found"},
    409: {"model": ErrorResponse, "description": "Question set is in use"},
    422: {"model": ErrorResponse, "description": "Invalid request"},
}


@router.get(
    "/question-sets",
    response_model=QuestionSetListResponse,
    summary="List question sets",
)
async def list_question_sets(
    active_only: bool = Query(default=False, description="Only active sets"),
    tracker: QATracker = Depends(get_tracker),
) -> QuestionSetListResponse:
    start_time = time.perf_counter()

    try:
        question_sets = await tracker.question_sets.list_question_sets(active_only=active_only)
        latency_ms = (time.perf_counter() - start_time) * 1000
        return QuestionSetListResponse(
            question_sets=[QuestionSetItem.model_validate(s) for s in question_sets],
            total=len(question_sets),
            latency_ms=round(latency_ms, 2),
        )

    except Exception as e:
        logger.error("list_question_sets_failed", error=str(e), exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to list question sets",
        )


@router.get(
    "/question-sets/{question_set_id}",
    response_model=QuestionSetDetailResponse,
    responses={404: {"model": ErrorResponse, "description": "Question set not found"}},
    summary="Get question set with its questions",
)
async def get_question_set(
    question_set_id: str,
    active_questions_only: bool = Query(default=False),
    tracker: QATracker = Depends(get_tracker),
) -> QuestionSetDetailResponse:
    start_time = time.perf_counter()

    found = await tracker.question_sets.get_question_set(
        question_set_id, active_questions_only=active_questions_only,
    )
    if found is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Question set {question_set_id} not found",
        )
    question_set, questions = found
    latency_ms = (time.perf_counter() - start_time) * 1000

    return QuestionSetDetailResponse(
        question_set=QuestionSetItem.model_validate(question_set),
        questions=[QuestionItem.model_validate(q) for q in questions],
        latency_ms=round(latency_ms, 2),
    )


@router.post(
    "/question-sets",
    response_model=OperationResponse,
    status_code=status.HTTP_201_CREATED,
    responses=_WRITE_ERRORS,
    summary="Create question set",
)
async def create_question_set(
    request: QuestionSetCreateRequest,
    identity: IdentityContext = Depends(get_identity),
    tracker: QATracker = Depends(get_tracker),
) -> OperationResponse:
    start_time = time.perf_counter()

    data = request.model_dump(exclude={"questions"})
    questions = [q.model_dump(mode="json") for q in request.questions]
    result = await tracker.question_sets.create_question_set(identity, data, questions)
    return operation_response(result, start_time)


@router.patch(
    "/question-sets/{question_set_id}",
    response_model=OperationResponse,
    responses=_WRITE_ERRORS,
    summary="Update question set",
)
async def update_question_set(
    question_set_id: str,
    request: QuestionSetUpdateRequest,
    identity: IdentityContext = Depends(get_identity),
    tracker: QATracker = Depends(get_tracker),
) -> OperationResponse:
    start_time = time.perf_counter()

    result = await tracker.question_sets.update_question_set(
        identity, question_set_id, request.model_dump(exclude_unset=True),
    )
    return operation_response(result, start_time)


@router.delete(
    "/question-sets/{question_set_id}",
    response_model=OperationResponse,
    responses=_WRITE_ERRORS,
    summary="Delete question set",
    description="Delete a question set and its questions. Sets used by evaluations cannot be deleted.",
)
async def delete_question_set(
    question_set_id: str,
    identity: IdentityContext = Depends(get_identity),
    tracker: QATracker = Depends(get_tracker),
) -> OperationResponse:
    start_time = time.perf_counter()

    result = await tracker.question_sets.delete_question_set(identity, question_set_id)
    return operation_response(result, start_time)


@router.post(
    "/question-sets/{question_set_id}/questions",
    response_model=OperationResponse,
    status_code=status.HTTP_201_CREATED,
    responses=_WRITE_ERRORS,
    summary="Add question",
)
async def add_question(
    question_set_id: str,
    request: QuestionInput,
    identity: IdentityContext = Depends(get_identity),
    tracker: QATracker = Depends(get_tracker),
) -> OperationResponse:
    start_time = time.perf_counter()

    result = await tracker.question_sets.add_question(
        identity, question_set_id, request.model_dump(mode="json"),
    )
    return operation_response(result, start_time)


@router.patch(
    "/questions/{question_id}",
    response_model=OperationResponse,
    responses=_WRITE_ERRORS,
    summary="Update question",
)
async def update_question(
    question_id: str,
    request: QuestionUpdateRequest,
    identity: IdentityContext = Depends(get_identity),
    tracker: QATracker = Depends(get_tracker),
) -> OperationResponse:
    start_time = time.perf_counter()

    result = await tracker.question_sets.update_question(
        identity, question_id, request.model_dump(exclude_unset=True, mode="json"),
    )
    return operation_response(result, start_time)


@router.delete(
    "/questions/{question_id}",
    response_model=OperationResponse,
    responses=_WRITE_ERRORS,
    summary="Delete question",
    description="Questions already answered in an evaluation are deactivated instead.",
)
async def delete_question(
    question_id: str,
    identity: IdentityContext = Depends(get_identity),
    tracker: QATracker = Depends(get_tracker),
) -> OperationResponse:
    start_time = time.perf_counter()

    result = await tracker.question_sets.delete_question(identity, question_id)
    return operation_response(result, start_time)
