"""Audit queue endpoints: interactions waiting to be evaluated."""

import time

import structlog
from fastapi import APIRouter, Depends, Query, status

from qa_tracker.api.auth import get_identity
from qa_tracker.api.dependencies import get_tracker
from qa_tracker.api.errors import operation_response
from qa_tracker.api.models import (
    AuditQueueItem,
    AuditQueueListResponse,
    ErrorResponse,
    OperationResponse,
    QueueAssignRequest,
    QueueItemCreateRequest,
)
from qa_tracker.audit_queue.schemas import QueueStatus
from qa_tracker.identity.schemas import IdentityContext
from qa_tracker.services.container import QATracker

logger = structlog.get_logger(__name__)
router = APIRouter()

_WRITE_ERRORS = {
    403: {"model": ErrorResponse, "description": "QA Manager role required"},
    404: {"model": ErrorResponse, "description": "Item, agent or assignee not found"},
    409: {"model": ErrorResponse, "description": "Item already completed"},
    422: {"model": ErrorResponse, "description": "Invalid request"},
}


@router.get(
    "/audit-queue",
    response_model=AuditQueueListResponse,
    summary="List audit queue",
    description="QA managers see the whole queue; QA analysts see their assignments.",
)
async def list_queue(
    status_filter: QueueStatus | None = Query(default=None, alias="status"),
    identity: IdentityContext = Depends(get_identity),
    tracker: QATracker = Depends(get_tracker),
) -> AuditQueueListResponse:
    start_time = time.perf_counter()

    items = await tracker.audit_queue.list_items(
        identity, status=status_filter.value if status_filter else None,
    )
    latency_ms = (time.perf_counter() - start_time) * 1000

    return AuditQueueListResponse(
        items=[AuditQueueItem.model_validate(i) for i in items],
        total=len(items),
        latency_ms=round(latency_ms, 2),
    )


@router.post(
    "/audit-queue",
    response_model=OperationResponse,
    status_code=status.HTTP_201_CREATED,
    responses=_WRITE_ERRORS,
    summary="Add interaction to the audit queue",
)
async def add_queue_item(
    request: QueueItemCreateRequest,
    identity: IdentityContext = Depends(get_identity),
    tracker: QATracker = Depends(get_tracker),
) -> OperationResponse:
    start_time = time.perf_counter()

    result = await tracker.audit_queue.add_item(identity, request.model_dump(exclude_none=True))
    return operation_response(result, start_time)


@router.post(
    "/audit-queue/{item_id}/assign",
    response_model=OperationResponse,
    responses=_WRITE_ERRORS,
    summary="Assign audit queue item",
)
async def assign_queue_item(
    item_id: str,
    request: QueueAssignRequest,
    identity: IdentityContext = Depends(get_identity),
    tracker: QATracker = Depends(get_tracker),
) -> OperationResponse:
    start_time = time.perf_counter()

    result = await tracker.audit_queue.assign_item(identity, item_id, request.assignee_id)
    return operation_response(result, start_time)
