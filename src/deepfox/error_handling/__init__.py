"""
Error handling module for the booking assistant.

This module provides error handling infrastructure including:
- Custom exception hierarchy mirroring the conversation's error taxonomy
- User-facing message generation
- Error categorisation and logging helpers
- Logging configuration

Main Components:
    - exceptions: Custom exception classes for all error scenarios
    - error_messages: User-friendly message generation
    - handlers: Categorisation and logging utilities
    - logging_config: loguru sinks and audit helpers
"""

from .exceptions import (
    # Base exceptions
    BookingSystemError,

    # Transient backend errors
    TransientBackendError,
    IntentClassificationError,
    SchedulingError,
    OtpDeliveryError,
    VerificationServiceError,
    PaymentDeclinedError,
    StoreError,
    DatabaseError,

    # Local validation errors
    LocalValidationError,
    ContactDetailsError,
    InvalidOtpError,

    # Precondition errors
    PreconditionError,
    MissingContextError,

    # Not-found errors
    NotFoundError,
    BookingNotFoundError,
    BookingNotActiveError,
    SlotNotFoundError,
    CatalogItemNotFoundError,

    # State management errors
    StateTransitionError,
)

from .error_messages import (
    get_error_message,
    suggest_next_action,
    format_date_friendly,
    format_date_long,
    format_time_friendly,
)

from .handlers import (
    ErrorCategory,
    ErrorContext,
    categorize_error,
    handle_error_with_context,
    log_backend_call,
)

from .logging_config import (
    init_logging,
    log_booking_event,
    log_conversation_event,
    mask_phone,
    LogContext,
)

__all__ = [
    "BookingSystemError",
    "TransientBackendError",
    "IntentClassificationError",
    "SchedulingError",
    "OtpDeliveryError",
    "VerificationServiceError",
    "PaymentDeclinedError",
    "StoreError",
    "DatabaseError",
    "LocalValidationError",
    "ContactDetailsError",
    "InvalidOtpError",
    "PreconditionError",
    "MissingContextError",
    "NotFoundError",
    "BookingNotFoundError",
    "BookingNotActiveError",
    "SlotNotFoundError",
    "CatalogItemNotFoundError",
    "StateTransitionError",
    "get_error_message",
    "suggest_next_action",
    "format_date_friendly",
    "format_date_long",
    "format_time_friendly",
    "ErrorCategory",
    "ErrorContext",
    "categorize_error",
    "handle_error_with_context",
    "log_backend_call",
    "init_logging",
    "log_booking_event",
    "log_conversation_event",
    "mask_phone",
    "LogContext",
]
