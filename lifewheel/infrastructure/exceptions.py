"""
Custom exception classes for the wheel of life application.

Provides structured error handling with user-friendly messages and proper
error categorization for different failure scenarios.
"""

from __future__ import annotations

from typing import Any


class WheelOfLifeError(Exception):
    """Base exception for all application errors."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        user_message: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.user_message = user_message or self._get_default_user_message()

    def _get_default_user_message(self) -> str:
        """Provide a user-friendly version of the error message."""
        return "An unexpected error occurred. Please try again."

    def __str__(self) -> str:
        return f"{self.__class__.__name__}: {self.message}"


class ValidationError(WheelOfLifeError):
    """Raised when input validation fails."""

    def __init__(
        self, field: str, message: str, value: Any = None, details: dict[str, Any] | None = None
    ):
        self.field = field
        self.value = value
        super().__init__(
            message=f"Validation failed for field '{field}': {message}",
            details=details or {"field": field, "value": value},
            user_message=f"Invalid {field.replace('_', ' ')}: {message}",
        )

    def _get_default_user_message(self) -> str:
        return f"Please check your input for {self.field.replace('_', ' ')} and try again."


class MultipleValidationError(WheelOfLifeError):
    """Raised when multiple validation errors occur."""

    def __init__(self, errors: list[ValidationError]):
        self.validation_errors = errors
        messages = [f"{e.field}: {e.message}" for e in errors]
        super().__init__(
            message=f"Multiple validation errors: {'; '.join(messages)}",
            details={
                "errors": [
                    {"field": e.field, "message": e.message, "value": e.value} for e in errors
                ]
            },
            user_message="Please correct the following errors and try again.",
        )


class DatabaseError(WheelOfLifeError):
    """Raised when database operations fail."""

    def __init__(self, message: str, operation: str, details: dict[str, Any] | None = None):
        self.operation = operation
        super().__init__(
            message=f"Database error during {operation}: {message}",
            details=details or {"operation": operation},
            user_message="A database error occurred. Please try again in a moment.",
        )


class ConnectionError(DatabaseError):
    """Raised when database connection fails."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message=message, operation="connection", details=details)

    def _get_default_user_message(self) -> str:
        return "Unable to connect to the database. Please check your connection and try again."


class IntegrityError(DatabaseError):
    """Raised when database integrity constraints are violated."""

    def __init__(
        self,
        message: str,
        constraint: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.constraint = constraint
        super().__init__(
            message=message,
            operation="integrity_check",
            details=details or {"constraint": constraint},
        )


class PersistenceError(DatabaseError):
    """Raised when a history or settings write is rejected. Never aborts an assessment."""

    def __init__(self, message: str, operation: str = "persist", details: dict[str, Any] | None = None):
        super().__init__(message=message, operation=operation, details=details)
        self.user_message = "Your result could not be saved yet. You can retry saving it."


class UserNotFoundError(WheelOfLifeError):
    """Raised when a user is not found."""

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(
            message=f"User with ID {user_id} not found",
            details={"user_id": user_id},
            user_message="The user could not be found. Please register again.",
        )


class AssessmentNotFoundError(WheelOfLifeError):
    """Raised when an assessment session token is unknown."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(
            message=f"Assessment session {session_id} not found",
            details={"session_id": session_id},
            user_message="This assessment has expired. Please start a new one.",
        )


class CategoryNotFoundError(WheelOfLifeError):
    """Raised when a category id is not part of the configured wheel."""

    def __init__(self, category_id: str):
        self.category_id = category_id
        super().__init__(
            message=f"Category {category_id!r} is not part of the wheel",
            details={"category_id": category_id},
            user_message="Unknown life area. Please pick one from the wheel.",
        )


class InvalidTransitionError(WheelOfLifeError):
    """Raised when the assessment is asked to move to a step it cannot reach."""

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(
            message=f"Cannot move from '{current}' to '{requested}'",
            details={"current": current, "requested": requested},
            user_message="That action is not available at this step.",
        )


class IncompleteScoreBoardError(WheelOfLifeError):
    """Raised when a board missing categories is classified. Programmer error."""

    def __init__(self, missing: list[str]):
        self.missing = missing
        super().__init__(
            message=f"Score board is missing categories: {', '.join(missing)}",
            details={"missing": missing},
        )


class NarrativeError(WheelOfLifeError):
    """Raised inside the narrative boundary; translated to an apology before leaving it."""

    def __init__(self, message: str, reason: str = "transport", details: dict[str, Any] | None = None):
        self.reason = reason
        super().__init__(
            message=message,
            details=details or {"reason": reason},
            user_message="The personalised analysis is unavailable right now.",
        )


class PermissionError(WheelOfLifeError):
    """Raised when user lacks required permissions."""

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.operation = operation
        super().__init__(
            message=message,
            details=details or {"operation": operation},
            user_message="You don't have permission to perform this operation.",
        )


class ConfigurationError(WheelOfLifeError):
    """Raised when configuration is invalid."""

    def __init__(
        self,
        message: str,
        config_key: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.config_key = config_key
        super().__init__(
            message=message,
            details=details or {"config_key": config_key},
            user_message="Configuration error. Please check your settings.",
        )


def handle_database_error(e: Exception, operation: str = "database operation") -> DatabaseError:
    """
    Convert generic database exceptions to appropriate custom exceptions.

    Args:
        e: The original exception
        operation: Description of the operation that failed

    Returns:
        Appropriate DatabaseError subclass

    Example:
        >>> try:
        ...     session.commit()
        >>> except Exception as e:
        ...     raise handle_database_error(e, "commit transaction")
    """
    error_msg = str(e).lower()

    if "connection" in error_msg or "timeout" in error_msg:
        return ConnectionError(str(e))
    elif "unique constraint" in error_msg or "duplicate" in error_msg:
        return IntegrityError(str(e), constraint="unique")
    elif "foreign key" in error_msg or "foreign_key" in error_msg:
        return IntegrityError(str(e), constraint="foreign_key")
    else:
        return DatabaseError(str(e), operation)


def create_user_friendly_error_message(error: Exception) -> str:
    """
    Create a user-friendly error message from any exception.

    Example:
        >>> error = ValidationError("email", "is not a valid address")
        >>> create_user_friendly_error_message(error)
        'Invalid email: is not a valid address'
    """
    if isinstance(error, WheelOfLifeError):
        return error.user_message

    error_type = type(error).__name__
    messages = {
        "ValueError": "Invalid input provided. Please check your data and try again.",
        "KeyError": "Required information is missing. Please check your input.",
        "TypeError": "Incorrect data type provided. Please check your input format.",
    }
    return messages.get(
        error_type, "An unexpected error occurred. Please try again or contact support."
    )


def log_error_details(error: Exception, context: dict[str, Any] | None = None) -> dict[str, Any]:
    """
    Create structured error details for logging.

    Example:
        >>> details = log_error_details(DatabaseError("locked", "append"), {"user_id": "u1"})
        >>> details["error_type"]
        'DatabaseError'
    """
    details = {
        "error_type": type(error).__name__,
        "error_message": str(error),
        "context": context or {},
    }

    if isinstance(error, WheelOfLifeError):
        details.update({"user_message": error.user_message, "error_details": error.details})

    return details
