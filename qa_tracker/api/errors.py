"""Mapping of engine operation results to HTTP responses."""

import time

from fastapi import HTTPException, status
from fastapi.encoders import jsonable_encoder

from qa_tracker.api.models import OperationResponse
from qa_tracker.errors import ErrorKind
from qa_tracker.results import OperationResult

STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.PERMISSION_DENIED: status.HTTP_403_FORBIDDEN,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.INVALID_STATE: status.HTTP_409_CONFLICT,
    ErrorKind.VALIDATION_ERROR: 422,
    ErrorKind.WINDOW_EXPIRED: status.HTTP_409_CONFLICT,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.STORAGE_ERROR: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.INTERNAL: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def raise_for_result(result: OperationResult) -> OperationResult:
    """Raise an HTTPException for a failed result, else return it.

    The result message becomes the ``detail`` verbatim.
    """
    if result.success:
        return result
    kind = result.error or ErrorKind.INTERNAL
    raise HTTPException(
        status_code=STATUS_BY_KIND.get(kind, status.HTTP_500_INTERNAL_SERVER_ERROR),
        detail=result.message,
        headers={"X-Error-Kind": kind.value},
    )


def operation_response(result: OperationResult, start_time: float) -> OperationResponse:
    """Raise for a failed result, else wrap it for the response body."""
    raise_for_result(result)
    return OperationResponse(
        success=True,
        message=result.message,
        data=jsonable_encoder(result.data),
        latency_ms=round((time.perf_counter() - start_time) * 1000, 2),
    )
