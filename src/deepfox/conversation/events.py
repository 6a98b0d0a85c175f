"""
Events the conversation accepts.

Every interaction with the orchestrator is one of these pydantic models:
free text typed by the user, or a structured selection sent back by a
widget. ``parse_event`` turns a renderer's JSON payload into the right
variant using the ``kind`` discriminator.
"""
from datetime import date
from enum import Enum
from typing import Annotated, Any, Dict, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class Choice(str, Enum):
    """Buttons offered by choice widgets."""

    ACCEPT_SERVICE = "accept_service"
    SHOW_ALL_SERVICES = "show_all_services"
    CONFIRM_CANCEL = "confirm_cancel"
    KEEP_BOOKING = "keep_booking"


CHOICE_LABELS = {
    Choice.ACCEPT_SERVICE: "Yes, proceed",
    Choice.SHOW_ALL_SERVICES: "No, show all services",
    Choice.CONFIRM_CANCEL: "Yes, Cancel It",
    Choice.KEEP_BOOKING: "Keep It",
}


class _Event(BaseModel):
    model_config = ConfigDict(frozen=True)


class TextInput(_Event):
    kind: Literal["text"] = "text"
    text: str


class ServiceSelected(_Event):
    kind: Literal["service_selected"] = "service_selected"
    service_id: str


class ConsultantSelected(_Event):
    kind: Literal["consultant_selected"] = "consultant_selected"
    consultant_id: str


class DateSelected(_Event):
    kind: Literal["date_selected"] = "date_selected"
    date: date


class SlotSelected(_Event):
    kind: Literal["slot_selected"] = "slot_selected"
    slot_id: str


class ChoiceMade(_Event):
    kind: Literal["choice_made"] = "choice_made"
    choice: Choice


class PayAction(_Event):
    """Submitted payment form. The token ``"fail"`` is always declined."""

    kind: Literal["pay"] = "pay"
    payment_token: str = "tok_valid"


class RetryRequested(_Event):
    """Retry button pressed for a failed backend call."""

    kind: Literal["retry"] = "retry"
    retry_id: str


class AutoReset(_Event):
    """
    Internal timer event that returns a confirmed conversation to idle.

    ``generation`` identifies the flow that scheduled it; the event is
    ignored once that flow has ended.
    """

    kind: Literal["auto_reset"] = "auto_reset"
    generation: int


UserEvent = Annotated[
    Union[
        TextInput,
        ServiceSelected,
        ConsultantSelected,
        DateSelected,
        SlotSelected,
        ChoiceMade,
        PayAction,
        RetryRequested,
    ],
    Field(discriminator="kind"),
]

_user_event_adapter = TypeAdapter(UserEvent)


def parse_event(data: Dict[str, Any]) -> UserEvent:
    """
    Build a user event from a renderer payload.

    Args:
        data: Mapping with a ``kind`` key and the variant's fields

    Returns:
        The matching event model

    Raises:
        pydantic.ValidationError: If the payload matches no variant
    """
    return _user_event_adapter.validate_python(data)
