"""
This file contains custom, application-specific exceptions.

Every scheduling error is an HTTPException so services can raise it directly,
while the `kind` lets callers (and the bulk/batch operations) tell the failure
categories apart without parsing messages.
"""
import enum
from typing import Any, Optional

from fastapi import HTTPException, status


class ErrorKind(str, enum.Enum):
    VALIDATION = "VALIDATION"
    CONFLICT = "CONFLICT"
    LIMIT_EXCEEDED = "LIMIT_EXCEEDED"
    NOT_FOUND = "NOT_FOUND"
    STATE_INVALID = "STATE_INVALID"
    DUPLICATE = "DUPLICATE"


class SchedulingError(HTTPException):
    """Base class for all lesson scheduling errors."""
    kind: ErrorKind = ErrorKind.VALIDATION
    status_code_for_kind: int = status.HTTP_422_UNPROCESSABLE_ENTITY

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(status_code=self.status_code_for_kind, detail=message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        body = {"code": self.kind.value, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class SchedulingValidationError(SchedulingError):
    """Raised for a malformed pattern, time or teacher pair."""
    kind = ErrorKind.VALIDATION
    status_code_for_kind = status.HTTP_422_UNPROCESSABLE_ENTITY


class ConflictError(SchedulingError):
    """Raised when a teacher or a student would be double-booked."""
    kind = ErrorKind.CONFLICT
    status_code_for_kind = status.HTTP_409_CONFLICT


class LimitExceededError(SchedulingError):
    """Raised when a student has used up their cancellations for the period."""
    kind = ErrorKind.LIMIT_EXCEEDED
    status_code_for_kind = status.HTTP_403_FORBIDDEN


class NotFoundError(SchedulingError):
    """Raised when a lesson, teacher, student or substitution is missing."""
    kind = ErrorKind.NOT_FOUND
    status_code_for_kind = status.HTTP_404_NOT_FOUND


class StateInvalidError(SchedulingError):
    """Raised when a status transition is not legal from the current status."""
    kind = ErrorKind.STATE_INVALID
    status_code_for_kind = status.HTTP_400_BAD_REQUEST


class DuplicateError(SchedulingError):
    """Raised when a substitution already exists for a lesson."""
    kind = ErrorKind.DUPLICATE
    status_code_for_kind = status.HTTP_409_CONFLICT


# Per-item code reported by batch operations for failures that are not scheduling errors.
INTERNAL_ERROR_CODE = "INTERNAL_ERROR"
