"""Per-request time limit for the QA tracker API."""

import asyncio

import structlog
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = structlog.get_logger(__name__)

# Liveness probes must answer even when the store is slow
UNBOUNDED_PATHS = ("/health",)


class TimeoutMiddleware(BaseHTTPMiddleware):
    """Answer 504 when handling a request takes longer than ``timeout_seconds``.

    The body mirrors the API's error responses and the ``X-Error-Kind``
    header is set to ``timeout``. A write cut off here is still committed
    or rolled back by the engine's own transaction.
    """

    def __init__(self, app, timeout_seconds: float = 30.0):
        super().__init__(app)
        self.timeout_seconds = timeout_seconds

    async def dispatch(self, request: Request, call_next):
        if request.url.path.startswith(UNBOUNDED_PATHS):
            return await call_next(request)

        try:
            async with asyncio.timeout(self.timeout_seconds):
                return await call_next(request)
        except TimeoutError:
            logger.warning(
                "Request exceeded time limit",
                method=request.method,
                path=request.url.path,
                user_id=request.headers.get("X-User-Id"),
                timeout_seconds=self.timeout_seconds,
            )
            return JSONResponse(
                status_code=504,
                content={
                    "detail": f"Request timed out after {self.timeout_seconds}s",
                    "error_type": "timeout",
                },
                headers={"X-Error-Kind": "timeout"},
            )
