"""
User-facing error message generation for the chat booking assistant.

This module turns exceptions into short, friendly chat lines. Messages for
transient failures are shown next to a retry button; local validation and
not-found messages are plain re-prompts.
"""
from datetime import date, datetime, time
from typing import Optional
from loguru import logger

from .exceptions import (
    BookingSystemError,
    IntentClassificationError,
    SchedulingError,
    OtpDeliveryError,
    VerificationServiceError,
    PaymentDeclinedError,
    StoreError,
    ContactDetailsError,
    InvalidOtpError,
    PreconditionError,
    MissingContextError,
    NotFoundError,
    BookingNotFoundError,
    BookingNotActiveError,
    SlotNotFoundError,
    CatalogItemNotFoundError,
)


def format_date_friendly(date_obj: date) -> str:
    """
    Format a date the way the chat shows it (e.g. "Mar 4").

    Args:
        date_obj: Date to format

    Returns:
        Short month/day string
    """
    return f"{date_obj.strftime('%b')} {date_obj.day}"


def format_date_long(date_obj: date) -> str:
    """Format a date with weekday and year, e.g. "Tuesday, March 4, 2025"."""
    return f"{date_obj.strftime('%A, %B')} {date_obj.day}, {date_obj.year}"


def format_time_friendly(time_value) -> str:
    """
    Format a slot time (``HH:MM`` string or ``time``) as "2:00 PM".

    Args:
        time_value: Time to format

    Returns:
        Friendly 12-hour time string, or the input unchanged if unparseable
    """
    if isinstance(time_value, str):
        try:
            time_value = datetime.strptime(time_value, "%H:%M").time()
        except ValueError:
            return time_value

    if not isinstance(time_value, time):
        return str(time_value)

    hour = time_value.hour
    period = "PM" if hour >= 12 else "AM"
    display_hour = hour % 12 or 12
    return f"{display_hour}:{time_value.minute:02d} {period}"


# ============================================================================
# Transient Backend Error Messages
# ============================================================================

def get_classification_error_message(error: IntentClassificationError) -> str:
    return (
        "I'm having trouble connecting to my brain. "
        "Please check your internet connection and try again."
    )


def get_scheduling_error_message(error: SchedulingError) -> str:
    return "Failed to retrieve time slots. Please try again."


def get_payment_error_message(error: PaymentDeclinedError) -> str:
    return (
        f"{error.reason}. Please ensure your card details are correct "
        "or try a different method."
    )


def get_store_error_message(error: StoreError) -> str:
    """Generate message for store errors, keyed on the failed operation."""
    operation = error.operation
    if operation == "reschedule":
        return "Unable to reschedule at this time."
    elif operation == "cancel":
        return "Failed to cancel booking."
    elif operation == "get":
        return "Could not retrieve booking details."
    elif operation == "create":
        return "Your payment went through but we could not save the booking. Please try again."
    return "I'm experiencing a technical issue with our booking system. Please try again in a moment."


# ============================================================================
# Re-prompt Messages
# ============================================================================

def get_contact_details_message(error: ContactDetailsError) -> str:
    """Generate message for unparseable or invalid contact details."""
    if error.field == "email":
        return "That email address doesn't look right. Please try format: Name, Email, Phone"
    elif error.field == "phone":
        return "That phone number doesn't look right. Please try format: Name, Email, Phone"
    elif error.field == "name":
        return "I need your name as well. Please try format: Name, Email, Phone"
    return "I couldn't parse that. Please try format: Name, Email, Phone"


def get_not_found_message(error: BookingSystemError) -> str:
    """Generate message for not-found conditions."""
    if isinstance(error, BookingNotActiveError):
        return (
            f"Booking {error.booking_id} has already been {error.status.lower()}. "
            "Please check the ID and try again, or type 'cancel' to exit."
        )
    elif isinstance(error, BookingNotFoundError):
        return (
            "I couldn't find a booking with that ID. "
            "Please check and try again, or type 'cancel' to exit."
        )
    elif isinstance(error, SlotNotFoundError):
        return "That time slot isn't available. Please pick another one from the list above."
    elif isinstance(error, CatalogItemNotFoundError):
        return f"I don't recognise that {error.entity}. Please pick one from the list above."
    return "I couldn't find that. Please try again."


# ============================================================================
# Main Error Message Router
# ============================================================================

def get_error_message(error: Exception) -> str:
    """
    Get the chat message for any exception.

    Args:
        error: Exception that occurred

    Returns:
        User-facing message
    """
    if isinstance(error, IntentClassificationError):
        return get_classification_error_message(error)
    elif isinstance(error, SchedulingError):
        return get_scheduling_error_message(error)
    elif isinstance(error, OtpDeliveryError):
        return "Failed to send SMS. Please check the number."
    elif isinstance(error, VerificationServiceError):
        return "Verification service unavailable."
    elif isinstance(error, PaymentDeclinedError):
        return get_payment_error_message(error)
    elif isinstance(error, StoreError):
        return get_store_error_message(error)
    elif isinstance(error, ContactDetailsError):
        return get_contact_details_message(error)
    elif isinstance(error, InvalidOtpError):
        return "Invalid OTP. Please try again."
    elif isinstance(error, MissingContextError) and "consultant" in error.missing_fields:
        return "Something went wrong. Please select a consultant again."
    elif isinstance(error, PreconditionError):
        return "Something went wrong. Please re-select your options, or type 'cancel' to restart."
    elif isinstance(error, NotFoundError):
        return get_not_found_message(error)
    elif isinstance(error, BookingSystemError):
        return error.user_message if error.user_message else "I'm sorry, something went wrong. Could you try that again?"
    else:
        logger.error(f"Unhandled error type: {type(error).__name__}: {str(error)}")
        return "I'm sorry, something unexpected happened. Please try again."


def suggest_next_action(error: Exception) -> Optional[str]:
    """
    Suggest what the user should do next after an error.

    Args:
        error: Exception that occurred

    Returns:
        Suggestion message or None
    """
    if isinstance(error, PreconditionError):
        return "Type 'cancel' to start over."
    elif isinstance(error, PaymentDeclinedError):
        return "Tap retry to attempt the payment again."
    elif isinstance(error, StoreError):
        return "Please try again in a moment."
    return None
