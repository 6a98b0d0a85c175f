"""
Conversation state definitions for the booking assistant.

This module defines all possible states in the booking conversation and the
transitions allowed between them.
"""

from enum import Enum
from typing import Dict, FrozenSet


class ConversationState(str, Enum):
    """
    Enum representing all possible states in a booking conversation.

    A new booking flows:
    idle -> (awaiting_service_confirmation) -> selecting_service
    -> selecting_consultant -> selecting_date -> fetching_slots
    -> selecting_slot -> collecting_contact_details -> verifying_otp
    -> processing_payment -> confirmed -> idle

    Reschedule and cancel flows start from idle as well and end in idle.
    """

    IDLE = "idle"
    """Waiting for the user to say what they want."""

    AWAITING_SERVICE_CONFIRMATION = "awaiting_service_confirmation"
    """A service was recommended from free text; waiting for yes/no."""

    SELECTING_SERVICE = "selecting_service"
    """Showing the full service catalog."""

    SELECTING_CONSULTANT = "selecting_consultant"
    """Showing consultants of the chosen service."""

    SELECTING_DATE = "selecting_date"
    """Waiting for an appointment date."""

    FETCHING_SLOTS = "fetching_slots"
    """Slot lookup in flight."""

    SELECTING_SLOT = "selecting_slot"
    """Showing the slots of the chosen date."""

    COLLECTING_CONTACT_DETAILS = "collecting_contact_details"
    """Waiting for "Name, Email, Phone"."""

    VERIFYING_OTP = "verifying_otp"
    """A code was sent; waiting for the user to type it."""

    PROCESSING_PAYMENT = "processing_payment"
    """Payment form shown; waiting for the pay action."""

    CONFIRMED = "confirmed"
    """Booking stored; resets to idle after the quiescence interval."""

    FINDING_BOOKING_TO_RESCHEDULE = "finding_booking_to_reschedule"
    """Waiting for the id of the booking to move."""

    FINDING_BOOKING_TO_CANCEL = "finding_booking_to_cancel"
    """Waiting for the id of the booking to cancel, then for confirmation."""

    SELECTING_RESCHEDULE_DATE = "selecting_reschedule_date"
    """Waiting for the new date of a booking being rescheduled."""

    ERRORED = "errored"
    """Flow broken by an internal fault; next input starts over."""

    def __str__(self) -> str:
        """Return the string value of the state."""
        return self.value

    @property
    def is_date_selection(self) -> bool:
        return self in (ConversationState.SELECTING_DATE, ConversationState.SELECTING_RESCHEDULE_DATE)

    @property
    def is_finding_booking(self) -> bool:
        return self in (
            ConversationState.FINDING_BOOKING_TO_RESCHEDULE,
            ConversationState.FINDING_BOOKING_TO_CANCEL,
        )


S = ConversationState

# Forward transitions. Reset to IDLE and entering ERRORED are always allowed.
ALLOWED_TRANSITIONS: Dict[ConversationState, FrozenSet[ConversationState]] = {
    S.IDLE: frozenset({
        S.AWAITING_SERVICE_CONFIRMATION,
        S.SELECTING_SERVICE,
        S.FINDING_BOOKING_TO_RESCHEDULE,
        S.FINDING_BOOKING_TO_CANCEL,
    }),
    S.AWAITING_SERVICE_CONFIRMATION: frozenset({S.SELECTING_SERVICE, S.SELECTING_CONSULTANT}),
    S.SELECTING_SERVICE: frozenset({S.SELECTING_CONSULTANT}),
    S.SELECTING_CONSULTANT: frozenset({S.SELECTING_DATE}),
    S.SELECTING_DATE: frozenset({S.FETCHING_SLOTS}),
    S.SELECTING_RESCHEDULE_DATE: frozenset({S.FETCHING_SLOTS}),
    S.FETCHING_SLOTS: frozenset({S.SELECTING_SLOT, S.SELECTING_DATE, S.SELECTING_RESCHEDULE_DATE}),
    S.SELECTING_SLOT: frozenset({S.COLLECTING_CONTACT_DETAILS}),
    S.COLLECTING_CONTACT_DETAILS: frozenset({S.VERIFYING_OTP}),
    S.VERIFYING_OTP: frozenset({S.PROCESSING_PAYMENT}),
    S.PROCESSING_PAYMENT: frozenset({S.CONFIRMED}),
    S.CONFIRMED: frozenset(),
    S.FINDING_BOOKING_TO_RESCHEDULE: frozenset({S.SELECTING_RESCHEDULE_DATE}),
    S.FINDING_BOOKING_TO_CANCEL: frozenset(),
    S.ERRORED: frozenset(),
}
