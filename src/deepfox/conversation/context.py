"""
Selection context accumulated while a booking, reschedule or cancel flow
is in progress.

This module defines the SelectionContext Pydantic model and the parser for
the "Name, Email, Phone" contact line.
"""

import datetime as dt
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..models.schemas import Booking, Consultant, ContactDetails, Service, TimeSlot
from ..error_handling.exceptions import ContactDetailsError


BOOKING_FIELDS = ("service", "consultant", "date", "slot", "contact_details")


class SelectionContext(BaseModel):
    """
    Scratch state of the current flow.

    Fields are filled in flow order. The whole object is replaced on reset,
    so nothing from one flow leaks into the next.

    Attributes:
        recommended_service: Service suggested by the classifier, pending confirmation
        preferred_date: Date mentioned in the user's first message, if any
        service: Chosen service
        consultant: Chosen consultant
        date: Chosen appointment date
        available_slots: Slots returned for ``date``
        slot: Chosen slot
        contact_details: Parsed contact details
        booking_being_modified: Booking found by a reschedule or cancel lookup
        pending_transaction_id: Charge that succeeded but whose booking is not saved yet
    """

    recommended_service: Optional[Service] = None
    preferred_date: Optional[dt.date] = None
    service: Optional[Service] = None
    consultant: Optional[Consultant] = None
    date: Optional[dt.date] = None
    available_slots: List[TimeSlot] = Field(default_factory=list)
    slot: Optional[TimeSlot] = None
    contact_details: Optional[ContactDetails] = None
    booking_being_modified: Optional[Booking] = None
    pending_transaction_id: Optional[str] = None

    model_config = ConfigDict(validate_assignment=True)

    @property
    def is_rescheduling(self) -> bool:
        return self.booking_being_modified is not None

    def find_slot(self, slot_id: str) -> Optional[TimeSlot]:
        """Return the slot with this id from the last availability query."""
        for slot in self.available_slots:
            if slot.id == slot_id:
                return slot
        return None

    def missing_fields(self, *field_names: str) -> List[str]:
        """
        List which of the named fields are still unset.

        Args:
            *field_names: Fields to check (defaults to everything a booking needs)

        Returns:
            Names of the fields that are None, in the order given
        """
        names = field_names or BOOKING_FIELDS
        return [name for name in names if getattr(self, name) is None]

    def get_collected_fields(self) -> List[str]:
        """Names of fields that hold a value."""
        collected = []
        for name in type(self).model_fields:
            value = getattr(self, name)
            if value is not None and value != []:
                collected.append(name)
        return collected

    def is_empty(self) -> bool:
        return not self.get_collected_fields()


def parse_contact_details(text: str) -> ContactDetails:
    """
    Parse a "Name, Email, Phone" line.

    Each comma-delimited field is trimmed. Exactly three fields are
    expected; email and phone are checked with the booking schema rules.

    Args:
        text: Raw user input

    Returns:
        Validated ContactDetails

    Raises:
        ContactDetailsError: If the line has the wrong shape or a field is invalid
    """
    parts = [part.strip() for part in (text or "").split(",")]

    if len(parts) != 3:
        raise ContactDetailsError(text, reason=f"expected 3 fields, got {len(parts)}")

    name, email, phone = parts
    try:
        return ContactDetails(name=name, email=email, phone=phone)
    except ValidationError as e:
        first = e.errors()[0]
        field = str(first["loc"][0]) if first.get("loc") else None
        raise ContactDetailsError(text, reason=first.get("msg", "invalid"), field=field)
