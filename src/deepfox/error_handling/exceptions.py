"""
Custom Exception Classes for the Deep Fox booking assistant.

This module defines exception classes for the four error categories the
conversation recognises:
- Transient backend failures (classifier, scheduling, OTP, payment, store)
- Local validation failures (malformed contact details, wrong OTP)
- Precondition failures (required context missing)
- Not-found conditions (booking id, slot, catalog entry)

Each exception includes context for error recovery and logging.
"""

from typing import Optional, Any, Dict, List


class BookingSystemError(Exception):
    """Base exception for all booking system errors."""

    def __init__(
        self,
        message: str,
        user_message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        recoverable: bool = True
    ):
        """
        Initialize booking system error.

        Args:
            message: Technical error message for logging
            user_message: User-friendly message for the chat timeline
            context: Additional context for error recovery
            recoverable: Whether the error is recoverable
        """
        super().__init__(message)
        self.message = message
        self.user_message = user_message or message
        self.context = context or {}
        self.recoverable = recoverable


# ============================================================================
# Transient Backend Errors
# ============================================================================

class TransientBackendError(BookingSystemError):
    """
    Raised when a backend call fails in a way that a retry may fix.

    Examples:
    - Intent classifier network or parse failure
    - Slot lookup failure
    - SMS gateway failure
    - Payment declined
    - Store unavailable
    """

    def __init__(
        self,
        message: str,
        operation: str = "unknown",
        user_message: Optional[str] = None,
        original_error: Optional[Exception] = None,
        **kwargs
    ):
        """
        Initialize transient backend error.

        Args:
            message: Error message
            operation: Backend operation that failed
            user_message: User-friendly message
            original_error: Original exception if any
            **kwargs: Additional context
        """
        context = {
            "operation": operation,
            "original_error": str(original_error) if original_error else None,
            **kwargs
        }
        super().__init__(message, user_message, context, recoverable=True)
        self.operation = operation
        self.original_error = original_error


class IntentClassificationError(TransientBackendError):
    """Raised when the intent classifier cannot be reached or returns garbage."""

    def __init__(self, message: str, provider: str = "gemini", **kwargs):
        super().__init__(
            message=message,
            operation="classify",
            provider=provider,
            **kwargs
        )
        self.provider = provider


class SchedulingError(TransientBackendError):
    """Raised when available slots cannot be retrieved."""

    def __init__(self, message: str = "Failed to retrieve time slots", **kwargs):
        super().__init__(message=message, operation="get_available_slots", **kwargs)


class OtpDeliveryError(TransientBackendError):
    """Raised when the one-time code could not be sent."""

    def __init__(self, phone: str, **kwargs):
        super().__init__(
            message="Failed to send OTP",
            operation="send_otp",
            recipient=phone,
            **kwargs
        )
        self.phone = phone


class VerificationServiceError(TransientBackendError):
    """Raised when the verification service cannot check a code."""

    def __init__(self, message: str = "Verification service unavailable", **kwargs):
        super().__init__(message=message, operation="verify_otp", **kwargs)


class PaymentDeclinedError(TransientBackendError):
    """Raised when a charge is declined or the payment processor fails."""

    def __init__(self, amount: float, reason: str = "Transaction declined", **kwargs):
        super().__init__(
            message=reason,
            operation="charge",
            amount=amount,
            **kwargs
        )
        self.amount = amount
        self.reason = reason


class StoreError(TransientBackendError):
    """Raised when an appointment store operation fails."""

    def __init__(self, message: str, operation: str = "store", **kwargs):
        super().__init__(message=message, operation=operation, **kwargs)


class DatabaseError(StoreError):
    """
    Raised when database operations fail.

    Examples:
    - Connection errors
    - Query failures
    - Transaction errors
    """

    def __init__(
        self,
        message: str,
        operation: str = "query",
        original_error: Optional[Exception] = None,
        **kwargs
    ):
        super().__init__(
            message=message,
            operation=operation,
            original_error=original_error,
            **kwargs
        )


# ============================================================================
# Local Validation Errors
# ============================================================================

class LocalValidationError(BookingSystemError):
    """
    Raised when user input fails local validation.

    The conversation re-prompts in place; no retry is offered and the state
    does not change.
    """

    def __init__(
        self,
        message: str,
        user_message: Optional[str] = None,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        **kwargs
    ):
        context = {
            "field": field,
            "value": value,
            **kwargs
        }
        super().__init__(message, user_message, context, recoverable=True)
        self.field = field
        self.value = value


class ContactDetailsError(LocalValidationError):
    """Raised when contact details cannot be parsed or validated."""

    def __init__(self, raw_text: str, reason: str = "expected Name, Email, Phone", field: Optional[str] = None):
        super().__init__(
            message=f"Invalid contact details: {reason}",
            field=field or "contact_details",
            value=raw_text,
            reason=reason,
        )
        self.reason = reason


class InvalidOtpError(LocalValidationError):
    """Raised when the supplied one-time code is rejected."""

    def __init__(self, **kwargs):
        # Never carries the submitted code
        super().__init__(message="Invalid OTP", field="otp", **kwargs)


# ============================================================================
# Precondition Errors
# ============================================================================

class PreconditionError(BookingSystemError):
    """
    Raised when a required context field is missing on entering a step.

    This indicates a caller ordering violation.
    """

    def __init__(self, message: str, **kwargs):
        super().__init__(message, context=kwargs, recoverable=True)


class MissingContextError(PreconditionError):
    """Raised when selection context lacks fields an operation needs."""

    def __init__(self, missing_fields: List[str], operation: Optional[str] = None):
        super().__init__(
            f"Missing booking details: {', '.join(missing_fields)}",
            missing_fields=missing_fields,
            operation=operation,
        )
        self.missing_fields = missing_fields
        self.operation = operation


# ============================================================================
# Not-Found Errors
# ============================================================================

class NotFoundError(BookingSystemError):
    """Raised when a referenced entity does not exist."""

    def __init__(self, message: str, entity: str, identifier: Any, **kwargs):
        context = {"entity": entity, "identifier": identifier, **kwargs}
        super().__init__(message, context=context, recoverable=True)
        self.entity = entity
        self.identifier = identifier


class BookingNotFoundError(NotFoundError):
    """Raised when no booking exists with the given id."""

    def __init__(self, booking_id: str):
        super().__init__(
            f"Booking {booking_id} not found",
            entity="booking",
            identifier=booking_id,
        )
        self.booking_id = booking_id


class BookingNotActiveError(NotFoundError):
    """Raised when a booking exists but is no longer confirmed."""

    def __init__(self, booking_id: str, status: str):
        super().__init__(
            f"Booking {booking_id} is {status}",
            entity="booking",
            identifier=booking_id,
            status=status,
        )
        self.booking_id = booking_id
        self.status = status


class SlotNotFoundError(NotFoundError):
    """Raised when a selected slot is unknown or no longer available."""

    def __init__(self, slot_id: str):
        super().__init__(
            f"Slot {slot_id} is not available",
            entity="slot",
            identifier=slot_id,
        )
        self.slot_id = slot_id


class CatalogItemNotFoundError(NotFoundError):
    """Raised when a service or consultant id is not in the catalog."""

    def __init__(self, entity: str, identifier: str):
        super().__init__(
            f"Unknown {entity}: {identifier}",
            entity=entity,
            identifier=identifier,
        )


# ============================================================================
# State Management Errors
# ============================================================================

class StateTransitionError(BookingSystemError):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, message: str, from_state: Optional[str] = None, to_state: Optional[str] = None):
        super().__init__(
            message,
            context={"from_state": from_state, "to_state": to_state},
            recoverable=False,
        )
        self.from_state = from_state
        self.to_state = to_state
