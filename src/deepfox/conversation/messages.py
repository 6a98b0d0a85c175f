"""
Chat timeline and widget intents.

The orchestrator never renders anything. It appends Messages to an
append-only Timeline; a message may carry a WidgetIntent telling the
renderer which control to show and which event to send back.
"""
import itertools
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field

from ..models.schemas import Booking, Consultant, Service, TimeSlot
from .events import CHOICE_LABELS, Choice


class Sender(str, Enum):
    USER = "user"
    BOT = "bot"


class WidgetKind(str, Enum):
    """Interactive controls the renderer knows how to show."""

    SERVICE_LIST = "service_list"
    CONSULTANT_LIST = "consultant_list"
    DATE_PICKER = "date_picker"
    SLOT_GRID = "slot_grid"
    PAYMENT_FORM = "payment_form"
    SUCCESS_CARD = "success_card"
    RETRY_BUTTON = "retry_button"
    SUGGESTION_CHIPS = "suggestion_chips"
    CHOICE_BUTTONS = "choice_buttons"
    BOOKING_CARD = "booking_card"


class WidgetIntent(BaseModel):
    """
    Serializable description of a control.

    ``payload["event"]`` names the event kind the control sends back, if any.
    """
    kind: WidgetKind
    payload: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)


class Message(BaseModel):
    id: int
    sender: Sender
    text: Optional[str] = None
    widget: Optional[WidgetIntent] = None
    timestamp: datetime = Field(default_factory=datetime.now)

    model_config = ConfigDict(frozen=True)


class Timeline:
    """Append-only, ordered list of messages."""

    def __init__(self):
        self._messages: List[Message] = []
        self._ids = itertools.count(1)

    def append(
        self,
        sender: Sender,
        text: Optional[str] = None,
        widget: Optional[WidgetIntent] = None,
    ) -> Message:
        if text is None and widget is None:
            raise ValueError("A message needs text, a widget, or both")
        message = Message(id=next(self._ids), sender=sender, text=text, widget=widget)
        self._messages.append(message)
        return message

    @property
    def messages(self) -> Tuple[Message, ...]:
        return tuple(self._messages)

    def since(self, index: int) -> Tuple[Message, ...]:
        """Messages appended after the first ``index`` ones."""
        return tuple(self._messages[index:])

    def last(self, sender: Optional[Sender] = None) -> Optional[Message]:
        for message in reversed(self._messages):
            if sender is None or message.sender == sender:
                return message
        return None

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(tuple(self._messages))


# ============================================================================
# Widget builders
# ============================================================================

def service_list(services: Sequence[Service]) -> WidgetIntent:
    return WidgetIntent(
        kind=WidgetKind.SERVICE_LIST,
        payload={
            "event": "service_selected",
            "services": [s.model_dump() for s in services],
        },
    )


def consultant_list(consultants: Sequence[Consultant]) -> WidgetIntent:
    return WidgetIntent(
        kind=WidgetKind.CONSULTANT_LIST,
        payload={
            "event": "consultant_selected",
            "consultants": [c.model_dump() for c in consultants],
        },
    )


def date_picker(min_date: date, suggested_date: Optional[date] = None) -> WidgetIntent:
    return WidgetIntent(
        kind=WidgetKind.DATE_PICKER,
        payload={
            "event": "date_selected",
            "min_date": min_date.isoformat(),
            "suggested_date": suggested_date.isoformat() if suggested_date else None,
        },
    )


def slot_grid(slots: Sequence[TimeSlot]) -> WidgetIntent:
    return WidgetIntent(
        kind=WidgetKind.SLOT_GRID,
        payload={
            "event": "slot_selected",
            "slots": [s.model_dump() for s in slots],
        },
    )


def payment_form(amount: float) -> WidgetIntent:
    return WidgetIntent(
        kind=WidgetKind.PAYMENT_FORM,
        payload={"event": "pay", "amount": amount},
    )


def success_card(booking: Booking) -> WidgetIntent:
    return WidgetIntent(
        kind=WidgetKind.SUCCESS_CARD,
        payload={"booking": booking.model_dump(mode="json")},
    )


def retry_button(retry_id: str, message: str) -> WidgetIntent:
    return WidgetIntent(
        kind=WidgetKind.RETRY_BUTTON,
        payload={"event": "retry", "retry_id": retry_id, "message": message},
    )


def suggestion_chips(options: Sequence[str]) -> WidgetIntent:
    """Chips send their label back as text."""
    return WidgetIntent(
        kind=WidgetKind.SUGGESTION_CHIPS,
        payload={"event": "text", "options": list(options)},
    )


def _choice_options(choices: Sequence[Choice]) -> List[Dict[str, str]]:
    return [{"choice": c.value, "label": CHOICE_LABELS[c]} for c in choices]


def choice_buttons(choices: Sequence[Choice]) -> WidgetIntent:
    return WidgetIntent(
        kind=WidgetKind.CHOICE_BUTTONS,
        payload={"event": "choice_made", "options": _choice_options(choices)},
    )


def booking_card(booking: Booking, title: str, choices: Sequence[Choice]) -> WidgetIntent:
    return WidgetIntent(
        kind=WidgetKind.BOOKING_CARD,
        payload={
            "event": "choice_made",
            "title": title,
            "booking": booking.model_dump(mode="json"),
            "options": _choice_options(choices),
        },
    )
