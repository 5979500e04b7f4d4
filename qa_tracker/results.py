"""Structured operation results returned by engine writes and checked reads.

Plain-value reads (lists, statistics, lookups) return records instead; a
``StorageError`` from them reaches the caller unchanged.
"""

import functools
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from qa_tracker.errors import ERROR_TYPES, ErrorKind, QATrackerError, StorageError
from qa_tracker.observability.metrics import get_metrics

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OperationResult:
    """Outcome of an engine operation.

    Attributes:
        success: Whether the operation committed.
        message: Human-readable message, safe to display verbatim.
        error: Failure category, None on success.
        data: Operation-specific payload (ids, recomputed scores, records).
    """

    success: bool
    message: str
    error: ErrorKind | None = None
    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, message: str, **data: Any) -> "OperationResult":
        return cls(success=True, message=message, data=data)

    @classmethod
    def fail(cls, error: QATrackerError) -> "OperationResult":
        return cls(success=False, message=error.message, error=error.kind)

    @classmethod
    def failure(cls, message: str, kind: ErrorKind) -> "OperationResult":
        return cls(success=False, message=message, error=kind)

    def to_dict(self) -> dict[str, Any]:
        """Flatten into ``{success, message, error?, ...payload}``."""
        result: dict[str, Any] = {"success": self.success, "message": self.message}
        if self.error is not None:
            result["error"] = self.error.value
        result.update(self.data)
        return result

    def raise_for_failure(self) -> "OperationResult":
        """Raise the named error for a failed result, else return self."""
        if self.success:
            return self
        error_type = ERROR_TYPES.get(self.error or ErrorKind.INTERNAL, QATrackerError)
        raise error_type(self.message)


def engine_operation(
    operation: str,
    failure_message: str,
) -> Callable[[Callable[..., Awaitable[OperationResult]]], Callable[..., Awaitable[OperationResult]]]:
    """Convert every exception raised by an engine method into a failure.

    Domain errors keep their message. Storage errors and unexpected
    exceptions are logged with traceback and reported with
    ``failure_message`` only, so no internal identifiers reach callers.

    Args:
        operation: Operation name used in logs and metrics.
        failure_message: Message shown when the failure is not a domain error.
    """

    def decorator(
        func: Callable[..., Awaitable[OperationResult]],
    ) -> Callable[..., Awaitable[OperationResult]]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> OperationResult:
            try:
                return await func(*args, **kwargs)
            except StorageError as e:
                logger.error("%s failed in storage: %s", operation, e)
                get_metrics().record_failure(operation, e.kind.value)
                return OperationResult.failure(
                    f"{failure_message}: storage unavailable", e.kind,
                )
            except QATrackerError as e:
                logger.info("%s rejected (%s): %s", operation, e.kind.value, e.message)
                get_metrics().record_failure(operation, e.kind.value)
                return OperationResult.fail(e)
            except Exception:
                logger.exception("%s failed unexpectedly", operation)
                get_metrics().record_failure(operation, ErrorKind.INTERNAL.value)
                return OperationResult.failure(failure_message, ErrorKind.INTERNAL)

        return wrapper

    return decorator
