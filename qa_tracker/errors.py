"""Error taxonomy shared by the evaluation and dispute engines.

Engines raise these internally and convert them to ``OperationResult``
failures at their public boundary. UI-style callers can turn a failure
back into the matching exception with ``OperationResult.raise_for_failure``.
"""

import enum


class ErrorKind(str, enum.Enum):
    """Category of a failed operation."""

    PERMISSION_DENIED = "permission_denied"
    NOT_FOUND = "not_found"
    INVALID_STATE = "invalid_state"
    VALIDATION_ERROR = "validation_error"
    WINDOW_EXPIRED = "window_expired"
    CONFLICT = "conflict"
    STORAGE_ERROR = "storage_error"
    INTERNAL = "internal"


class QATrackerError(Exception):
    """Base exception for domain failures with a user-facing message."""

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class PermissionDeniedError(QATrackerError):
    """Raised when the acting identity lacks the required role."""

    kind = ErrorKind.PERMISSION_DENIED


class NotFoundError(QATrackerError):
    """Raised when a referenced record does not exist."""

    kind = ErrorKind.NOT_FOUND


class InvalidStateError(QATrackerError):
    """Raised when a record is not in a state that allows the operation."""

    kind = ErrorKind.INVALID_STATE


class ValidationError(QATrackerError):
    """Raised for missing fields, bad enum values, or non-numeric scores."""

    kind = ErrorKind.VALIDATION_ERROR


class WindowExpiredError(QATrackerError):
    """Raised when a dispute is filed after the dispute window closed."""

    kind = ErrorKind.WINDOW_EXPIRED


class ConcurrentModificationError(QATrackerError):
    """Raised when a record changed between read and write."""

    kind = ErrorKind.CONFLICT


class StorageError(QATrackerError):
    """Raised when the record store is unavailable or rejects a write."""

    kind = ErrorKind.STORAGE_ERROR


ERROR_TYPES: dict[ErrorKind, type[QATrackerError]] = {
    ErrorKind.PERMISSION_DENIED: PermissionDeniedError,
    ErrorKind.NOT_FOUND: NotFoundError,
    ErrorKind.INVALID_STATE: InvalidStateError,
    ErrorKind.VALIDATION_ERROR: ValidationError,
    ErrorKind.WINDOW_EXPIRED: WindowExpiredError,
    ErrorKind.CONFLICT: ConcurrentModificationError,
    ErrorKind.STORAGE_ERROR: StorageError,
    ErrorKind.INTERNAL: QATrackerError,
}
