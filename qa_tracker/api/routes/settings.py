"""System settings endpoints (writes are Admin only)."""

import time

import structlog
from fastapi import APIRouter, Depends

from qa_tracker.api.auth import get_identity, require_known_user
from qa_tracker.api.dependencies import get_tracker
from qa_tracker.api.errors import operation_response
from qa_tracker.api.models import (
    ErrorResponse,
    OperationResponse,
    SettingItem,
    SettingListResponse,
    SettingUpdateRequest,
)
from qa_tracker.identity.schemas import IdentityContext
from qa_tracker.services.container import QATracker

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.get(
    "/settings",
    response_model=SettingListResponse,
    responses={403: {"model": ErrorResponse, "description": "Unknown user"}},
    summary="List settings",
)
async def list_settings(
    identity: IdentityContext = Depends(require_known_user),
    tracker: QATracker = Depends(get_tracker),
) -> SettingListResponse:
    start_time = time.perf_counter()

    settings = await tracker.settings.list_settings()
    latency_ms = (time.perf_counter() - start_time) * 1000

    return SettingListResponse(
        settings=[SettingItem.model_validate(s) for s in settings],
        total=len(settings),
        latency_ms=round(latency_ms, 2),
    )


@router.put(
    "/settings/{key}",
    response_model=OperationResponse,
    responses={
        403: {"model": ErrorResponse, "description": "Admin role required"},
        422: {"model": ErrorResponse, "description": "Invalid value"},
    },
    summary="Set setting",
)
async def set_setting(
    key: str,
    request: SettingUpdateRequest,
    identity: IdentityContext = Depends(get_identity),
    tracker: QATracker = Depends(get_tracker),
) -> OperationResponse:
    start_time = time.perf_counter()

    result = await tracker.settings.set_value(identity, key, request.value, request.description)
    response = operation_response(result, start_time)

    logger.info("Setting changed", key=key, user_id=identity.user_id)
    return response


@router.delete(
    "/settings/{key}",
    response_model=OperationResponse,
    responses={
        403: {"model": ErrorResponse, "description": "Admin role required"},
        404: {"model": ErrorResponse, "description": "Setting not found"},
        409: {"model": ErrorResponse, "description": "Setting is protected"},
    },
    summary="Delete setting",
)
async def delete_setting(
    key: str,
    identity: IdentityContext = Depends(get_identity),
    tracker: QATracker = Depends(get_tracker),
) -> OperationResponse:
    start_time = time.perf_counter()

    result = await tracker.settings.delete_setting(identity, key)
    return operation_response(result, start_time)
