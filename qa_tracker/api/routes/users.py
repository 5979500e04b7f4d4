"""User provisioning endpoints."""

import time

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status

from qa_tracker.api.auth import get_identity, require_known_user
from qa_tracker.api.dependencies import get_tracker
from qa_tracker.api.errors import operation_response
from qa_tracker.api.models import (
    ErrorResponse,
    OperationResponse,
    UserCreateRequest,
    UserItem,
    UserListResponse,
    UserUpdateRequest,
)
from qa_tracker.identity.schemas import IdentityContext, Role
from qa_tracker.services.container import QATracker

logger = structlog.get_logger(__name__)
router = APIRouter()

_WRITE_ERRORS = {
    403: {"model": ErrorResponse, "description": "Admin role required"},
    404: {"model": ErrorResponse, "description": "User or manager not found"},
    422: {"model": ErrorResponse, "description": "Invalid request"},
}


@router.get(
    "/users/me",
    response_model=UserItem,
    responses={403: {"model": ErrorResponse, "description": "Unknown user"}},
    summary="Current user",
)
async def current_user(
    identity: IdentityContext = Depends(require_known_user),
    tracker: QATracker = Depends(get_tracker),
) -> UserItem:
    user = await tracker.users.get_user(identity.user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return UserItem.model_validate(user)


@router.get(
    "/users",
    response_model=UserListResponse,
    responses={403: {"model": ErrorResponse, "description": "Unknown user"}},
    summary="List users",
)
async def list_users(
    role: Role | None = Query(default=None, description="Filter by role"),
    active_only: bool = Query(default=False),
    identity: IdentityContext = Depends(require_known_user),
    tracker: QATracker = Depends(get_tracker),
) -> UserListResponse:
    start_time = time.perf_counter()

    users = await tracker.users.list_users(role=role, active_only=active_only)
    latency_ms = (time.perf_counter() - start_time) * 1000

    return UserListResponse(
        users=[UserItem.model_validate(u) for u in users],
        total=len(users),
        latency_ms=round(latency_ms, 2),
    )


@router.post(
    "/users",
    response_model=OperationResponse,
    status_code=status.HTTP_201_CREATED,
    responses=_WRITE_ERRORS,
    summary="Create user",
)
async def create_user(
    request: UserCreateRequest,
    identity: IdentityContext = Depends(get_identity),
    tracker: QATracker = Depends(get_tracker),
) -> OperationResponse:
    start_time = time.perf_counter()

    result = await tracker.users.create_user(identity, request.model_dump(mode="json"))
    return operation_response(result, start_time)


@router.patch(
    "/users/{user_id}",
    response_model=OperationResponse,
    responses=_WRITE_ERRORS,
    summary="Update user",
)
async def update_user(
    user_id: str,
    request: UserUpdateRequest,
    identity: IdentityContext = Depends(get_identity),
    tracker: QATracker = Depends(get_tracker),
) -> OperationResponse:
    start_time = time.perf_counter()

    result = await tracker.users.update_user(
        identity, user_id.strip().lower(), request.model_dump(exclude_unset=True, mode="json"),
    )
    return operation_response(result, start_time)
