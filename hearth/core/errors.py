"""Domain exceptions and their classification into API error responses."""

from enum import Enum

from pydantic import BaseModel, ValidationError

from hearth.core.config import Constants


class ConflictError(Exception):
    """The requested change conflicts with the current state of an aggregate."""


class InvalidStateTransitionError(ConflictError):
    """A task execution cannot move from its current status with the requested action."""


class DeletedDefinitionError(ConflictError):
    """The task definition has been logically deleted and no longer accepts work."""


class NotFoundError(KeyError):
    """A requested aggregate does not exist."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else "not found"


class UnknownEventTypeError(LookupError):
    """An outbox record names an event type that has no registered effect."""


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCode:
    """Error codes for specific error conditions."""

    # Task errors
    ERR_INVALID_STATE_TRANSITION = "ERR_INVALID_STATE_TRANSITION"
    ERR_TASK_DELETED = "ERR_TASK_DELETED"
    ERR_NOT_FOUND = "ERR_NOT_FOUND"
    ERR_VALIDATION = "ERR_VALIDATION"

    # Permission errors
    ERR_PERMISSION_DENIED = "ERR_PERMISSION_DENIED"

    # Generic errors
    ERR_UNKNOWN = "ERR_UNKNOWN"


class ErrorResponse(BaseModel):
    """Structured error response with user-friendly messaging."""

    code: str
    message: str
    suggestion: str
    severity: ErrorSeverity
    status_code: int


def classify_error(exception: Exception) -> ErrorResponse:  # noqa: PLR0911
    """Classify an error and return a structured response with recovery suggestions.

    Args:
        exception: The exception raised while handling a request

    Returns:
        ErrorResponse with code, message, suggestion, severity and HTTP status
    """
    if isinstance(exception, DeletedDefinitionError):
        return ErrorResponse(
            code=ErrorCode.ERR_TASK_DELETED,
            message=str(exception),
            suggestion="This task has been deleted. Refresh your task list.",
            severity=ErrorSeverity.LOW,
            status_code=Constants.HTTP_CONFLICT,
        )

    if isinstance(exception, ConflictError):
        return ErrorResponse(
            code=ErrorCode.ERR_INVALID_STATE_TRANSITION,
            message=str(exception),
            suggestion="Check the task status and try again.",
            severity=ErrorSeverity.LOW,
            status_code=Constants.HTTP_CONFLICT,
        )

    if isinstance(exception, PermissionError):
        return ErrorResponse(
            code=ErrorCode.ERR_PERMISSION_DENIED,
            message="You don't have permission for this action.",
            suggestion="Personal tasks can only be changed by their owner.",
            severity=ErrorSeverity.MEDIUM,
            status_code=Constants.HTTP_FORBIDDEN,
        )

    if isinstance(exception, KeyError):
        return ErrorResponse(
            code=ErrorCode.ERR_NOT_FOUND,
            message=str(exception),
            suggestion="Make sure the id is correct.",
            severity=ErrorSeverity.LOW,
            status_code=Constants.HTTP_NOT_FOUND,
        )

    if isinstance(exception, ValidationError | ValueError):
        return ErrorResponse(
            code=ErrorCode.ERR_VALIDATION,
            message=str(exception),
            suggestion="Fix the highlighted fields and try again.",
            severity=ErrorSeverity.LOW,
            status_code=Constants.HTTP_BAD_REQUEST,
        )

    return ErrorResponse(
        code=ErrorCode.ERR_UNKNOWN,
        message="An unexpected error occurred.",
        suggestion="Please try again later. If the problem persists, contact support.",
        severity=ErrorSeverity.MEDIUM,
        status_code=Constants.HTTP_SERVER_ERROR,
    )
