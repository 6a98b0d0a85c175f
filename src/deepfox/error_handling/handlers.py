"""
Centralized error handling utilities for the booking conversation.

This module provides utilities for:
- Categorising exceptions into the conversation's error taxonomy
- Error logging with context
- Timing and logging of backend calls
"""
import time
import functools
from enum import Enum
from typing import Optional, Callable, Any, Dict, List
from datetime import datetime
from loguru import logger

from .exceptions import (
    BookingSystemError,
    TransientBackendError,
    LocalValidationError,
    PreconditionError,
    NotFoundError,
    StateTransitionError,
)
from .error_messages import get_error_message, suggest_next_action


class ErrorCategory(str, Enum):
    """How the conversation reacts to an error."""

    TRANSIENT = "transient"
    """Backend failure; offer a retry that re-issues the same request."""

    VALIDATION = "validation"
    """Bad user input; re-prompt in place."""

    PRECONDITION = "precondition"
    """Required context missing; report and do not advance."""

    NOT_FOUND = "not_found"
    """Referenced entity missing; re-prompt for corrected input."""

    DEFECT = "defect"
    """Programming error inside the conversation core."""


_SEVERITY = {
    ErrorCategory.TRANSIENT: "WARNING",
    ErrorCategory.VALIDATION: "INFO",
    ErrorCategory.PRECONDITION: "ERROR",
    ErrorCategory.NOT_FOUND: "INFO",
    ErrorCategory.DEFECT: "ERROR",
}


def categorize_error(error: Exception) -> ErrorCategory:
    """
    Map an exception onto the error taxonomy.

    Exceptions that are not part of the booking hierarchy are raised by
    backend collaborators and count as transient.

    Args:
        error: Exception that occurred

    Returns:
        ErrorCategory for the exception
    """
    if isinstance(error, TransientBackendError):
        return ErrorCategory.TRANSIENT
    if isinstance(error, LocalValidationError):
        return ErrorCategory.VALIDATION
    if isinstance(error, PreconditionError):
        return ErrorCategory.PRECONDITION
    if isinstance(error, NotFoundError):
        return ErrorCategory.NOT_FOUND
    if isinstance(error, StateTransitionError):
        return ErrorCategory.DEFECT
    return ErrorCategory.TRANSIENT


class ErrorContext:
    """
    Tracks error history for one conversation.

    Tracks:
    - Conversation id and current state
    - Error history
    """

    def __init__(
        self,
        conversation_id: Optional[str] = None,
        conversation_state: Optional[str] = None
    ):
        self.conversation_id = conversation_id
        self.conversation_state = conversation_state
        self.error_count = 0
        self.error_history: List[Dict[str, Any]] = []
        self.start_time = datetime.now()

    def log_error(
        self,
        error: Exception,
        additional_context: Optional[Dict[str, Any]] = None
    ) -> ErrorCategory:
        """
        Log error with full context.

        Args:
            error: Exception that occurred
            additional_context: Additional context information

        Returns:
            The category the error was logged under
        """
        self.error_count += 1
        category = categorize_error(error)

        error_entry = {
            "timestamp": datetime.now().isoformat(),
            "error_type": type(error).__name__,
            "error_message": str(error),
            "category": category.value,
            "conversation_id": self.conversation_id,
            "conversation_state": self.conversation_state,
            "error_number": self.error_count,
        }

        if isinstance(error, BookingSystemError):
            error_entry["error_context"] = error.context
            error_entry["recoverable"] = error.recoverable

        if additional_context:
            error_entry["additional_context"] = additional_context

        self.error_history.append(error_entry)

        severity = _SEVERITY[category]
        logger.log(
            severity,
            f"{error_entry['error_type']}: {error_entry['error_message']} | "
            f"category={category.value} | state={self.conversation_state} | "
            f"error #{self.error_count}"
        )

        # Stack traces only for errors that were not modelled
        if not isinstance(error, BookingSystemError):
            logger.opt(exception=error).debug("Unmodelled backend exception")

        return category

    def get_error_summary(self) -> Dict[str, Any]:
        """Get summary of errors in this context."""
        return {
            "total_errors": self.error_count,
            "error_types": [e["error_type"] for e in self.error_history],
            "session_duration": (datetime.now() - self.start_time).total_seconds(),
        }


def handle_error_with_context(
    error: Exception,
    error_context: ErrorContext,
    additional_context: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """
    Log an error and build the response the conversation should give.

    Args:
        error: Exception that occurred
        error_context: Error tracking context
        additional_context: Extra fields for the log entry

    Returns:
        Dictionary with error response information:
        - user_message: Message to show the user
        - next_action: Suggested next action or None
        - category: ErrorCategory of the error
        - should_retry: Whether a retry affordance should be offered
    """
    category = error_context.log_error(error, additional_context)

    return {
        "user_message": get_error_message(error),
        "next_action": suggest_next_action(error),
        "category": category,
        "should_retry": category == ErrorCategory.TRANSIENT,
        "error_type": type(error).__name__,
    }


def log_backend_call(operation: Optional[str] = None):
    """
    Decorator for logging async backend calls and their execution time.

    Args:
        operation: Name of operation (defaults to function name)

    Returns:
        Decorator for coroutine functions
    """
    def decorator(func: Callable) -> Callable:
        name = operation or func.__name__

        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            start_time = time.perf_counter()
            logger.debug(f"Calling {name}")

            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                duration = time.perf_counter() - start_time
                logger.bind(category="API").warning(
                    f"API {name} | success=False | duration={duration:.3f}s | "
                    f"error={type(e).__name__}"
                )
                raise

            duration = time.perf_counter() - start_time
            logger.bind(category="API").debug(
                f"API {name} | success=True | duration={duration:.3f}s"
            )
            return result

        return wrapper
    return decorator
