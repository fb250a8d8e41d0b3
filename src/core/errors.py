"""Error taxonomy and classification utilities for the task engine."""

from enum import Enum

from pydantic import BaseModel


class EngineError(Exception):
    """Base class for every classified engine failure.

    Carries the entity id and the operation that failed so callers can act on it.
    """

    def __init__(self, message: str, *, entity_id: str | None = None, operation: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.entity_id = entity_id
        self.operation = operation

    def context(self) -> dict[str, str | None]:
        """Return the structured context for logging."""
        return {"entity_id": self.entity_id, "operation": self.operation, "error_type": type(self).__name__}


class ValidationError(EngineError, ValueError):
    """Malformed input, rejected before any write."""


class NotFoundError(EngineError, KeyError):
    """Referenced id does not exist."""

    def __str__(self) -> str:
        return self.message


class ConflictError(EngineError):
    """The requested action conflicts with current state; try a different action."""


class CycleError(ConflictError):
    """Adding the dependency edge would close a cycle."""


class ActiveAssignmentError(ConflictError):
    """The user already holds an active assignment."""


class IneligibleTaskError(ConflictError):
    """The task is not eligible at the moment of commit."""

    def __init__(
        self,
        message: str,
        *,
        rule: str | None = None,
        entity_id: str | None = None,
        operation: str | None = None,
    ) -> None:
        super().__init__(message, entity_id=entity_id, operation=operation)
        self.rule = rule


class InvalidTransitionError(ConflictError):
    """The task or assignment state does not allow this transition."""


class CollaboratorError(EngineError):
    """A natural-language or geolocation collaborator call did not succeed."""


class CollaboratorTimeoutError(CollaboratorError):
    """A collaborator call exceeded its time budget."""


class CollaboratorFailure(CollaboratorError):
    """A collaborator call failed or returned unusable output."""


class DataIntegrityError(EngineError):
    """A stored invariant was found violated; requires operator attention."""


class ErrorCategory(Enum):
    """Categories of errors surfaced to callers and operators."""

    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    DEPENDENCY_CYCLE = "dependency_cycle"
    ACTIVE_ASSIGNMENT_EXISTS = "active_assignment_exists"
    TASK_NOT_ELIGIBLE = "task_not_eligible"
    INVALID_STATE_TRANSITION = "invalid_state_transition"
    COLLABORATOR_TIMEOUT = "collaborator_timeout"
    COLLABORATOR_FAILURE = "collaborator_failure"
    DATA_INTEGRITY = "data_integrity"
    SCHEDULED_JOB_FAILURE = "scheduled_job_failure"
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCode:
    """Error codes for specific error conditions."""

    ERR_VALIDATION = "ERR_VALIDATION"
    ERR_NOT_FOUND = "ERR_NOT_FOUND"
    ERR_DEPENDENCY_CYCLE = "ERR_DEPENDENCY_CYCLE"
    ERR_ACTIVE_ASSIGNMENT_EXISTS = "ERR_ACTIVE_ASSIGNMENT_EXISTS"
    ERR_TASK_NOT_ELIGIBLE = "ERR_TASK_NOT_ELIGIBLE"
    ERR_INVALID_STATE_TRANSITION = "ERR_INVALID_STATE_TRANSITION"
    ERR_COLLABORATOR_TIMEOUT = "ERR_COLLABORATOR_TIMEOUT"
    ERR_COLLABORATOR_FAILURE = "ERR_COLLABORATOR_FAILURE"
    ERR_DATA_INTEGRITY = "ERR_DATA_INTEGRITY"
    ERR_UNKNOWN = "ERR_UNKNOWN"


class ErrorResponse(BaseModel):
    """Structured error response with user-friendly messaging."""

    code: str
    category: ErrorCategory
    message: str
    suggestion: str
    severity: ErrorSeverity
    retryable: bool = False
    entity_id: str | None = None
    operation: str | None = None


_RESPONSES: list[tuple[type[Exception], ErrorCategory, str, str, str, ErrorSeverity, bool]] = [
    (
        CycleError,
        ErrorCategory.DEPENDENCY_CYCLE,
        ErrorCode.ERR_DEPENDENCY_CYCLE,
        "That dependency would make tasks wait on each other forever.",
        "Link the tasks the other way round or pick a different prerequisite.",
        ErrorSeverity.LOW,
        False,
    ),
    (
        ActiveAssignmentError,
        ErrorCategory.ACTIVE_ASSIGNMENT_EXISTS,
        ErrorCode.ERR_ACTIVE_ASSIGNMENT_EXISTS,
        "You are already working on a task.",
        "Finish or cancel your current task first.",
        ErrorSeverity.LOW,
        False,
    ),
    (
        IneligibleTaskError,
        ErrorCategory.TASK_NOT_ELIGIBLE,
        ErrorCode.ERR_TASK_NOT_ELIGIBLE,
        "That task can't be done right now.",
        "Ask for your next task to get something you can do now.",
        ErrorSeverity.LOW,
        False,
    ),
    (
        InvalidTransitionError,
        ErrorCategory.INVALID_STATE_TRANSITION,
        ErrorCode.ERR_INVALID_STATE_TRANSITION,
        "This action cannot be performed in the current state.",
        "Check the task status and try again.",
        ErrorSeverity.LOW,
        False,
    ),
    (
        ConflictError,
        ErrorCategory.INVALID_STATE_TRANSITION,
        ErrorCode.ERR_INVALID_STATE_TRANSITION,
        "This action conflicts with the current state.",
        "Try a different action.",
        ErrorSeverity.LOW,
        False,
    ),
    (
        ValidationError,
        ErrorCategory.VALIDATION,
        ErrorCode.ERR_VALIDATION,
        "Some of the details provided are invalid.",
        "Check the input and try again.",
        ErrorSeverity.LOW,
        False,
    ),
    (
        NotFoundError,
        ErrorCategory.NOT_FOUND,
        ErrorCode.ERR_NOT_FOUND,
        "I couldn't find that item.",
        "Check the id and try again.",
        ErrorSeverity.LOW,
        False,
    ),
    (
        CollaboratorTimeoutError,
        ErrorCategory.COLLABORATOR_TIMEOUT,
        ErrorCode.ERR_COLLABORATOR_TIMEOUT,
        "A helper service took too long to respond.",
        "Please try again in a moment.",
        ErrorSeverity.MEDIUM,
        True,
    ),
    (
        CollaboratorFailure,
        ErrorCategory.COLLABORATOR_FAILURE,
        ErrorCode.ERR_COLLABORATOR_FAILURE,
        "A helper service is unavailable.",
        "Please try again later.",
        ErrorSeverity.MEDIUM,
        True,
    ),
    (
        DataIntegrityError,
        ErrorCategory.DATA_INTEGRITY,
        ErrorCode.ERR_DATA_INTEGRITY,
        "Something is wrong with the stored task data.",
        "An operator has been notified.",
        ErrorSeverity.CRITICAL,
        False,
    ),
]


def classify_error(exception: Exception) -> ErrorCategory:
    """Return the category of an exception."""
    return classify_error_with_response(exception).category


def classify_error_with_response(exception: Exception) -> ErrorResponse:
    """Classify an error and return a structured response with recovery suggestions.

    Args:
        exception: The exception raised during execution

    Returns:
        ErrorResponse with code, message, suggestion, and severity
    """
    entity_id = getattr(exception, "entity_id", None)
    operation = getattr(exception, "operation", None)

    # Order matters: subclasses are listed before their parents
    for exc_type, category, code, message, suggestion, severity, retryable in _RESPONSES:
        if isinstance(exception, exc_type):
            return ErrorResponse(
                code=code,
                category=category,
                message=message,
                suggestion=suggestion,
                severity=severity,
                retryable=retryable,
                entity_id=entity_id,
                operation=operation,
            )

    if isinstance(exception, TimeoutError):
        return ErrorResponse(
            code=ErrorCode.ERR_COLLABORATOR_TIMEOUT,
            category=ErrorCategory.COLLABORATOR_TIMEOUT,
            message="A helper service took too long to respond.",
            suggestion="Please try again in a moment.",
            severity=ErrorSeverity.MEDIUM,
            retryable=True,
        )

    return ErrorResponse(
        code=ErrorCode.ERR_UNKNOWN,
        category=ErrorCategory.UNKNOWN,
        message="An unexpected error occurred.",
        suggestion="Please try again later. If the problem persists, contact support.",
        severity=ErrorSeverity.MEDIUM,
    )
