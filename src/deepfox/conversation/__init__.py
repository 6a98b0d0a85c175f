"""
Conversation management module for the booking assistant.

This module provides state management, selection context, events and the
message timeline for booking conversations.
"""

from .states import ConversationState, ALLOWED_TRANSITIONS
from .context import SelectionContext, parse_contact_details
from .events import (
    Choice,
    CHOICE_LABELS,
    TextInput,
    ServiceSelected,
    ConsultantSelected,
    DateSelected,
    SlotSelected,
    ChoiceMade,
    PayAction,
    RetryRequested,
    AutoReset,
    UserEvent,
    parse_event,
)
from .messages import Sender, WidgetKind, WidgetIntent, Message, Timeline
from .state_manager import ConversationStateManager

__all__ = [
    "ConversationState",
    "ALLOWED_TRANSITIONS",
    "SelectionContext",
    "parse_contact_details",
    "Choice",
    "CHOICE_LABELS",
    "TextInput",
    "ServiceSelected",
    "ConsultantSelected",
    "DateSelected",
    "SlotSelected",
    "ChoiceMade",
    "PayAction",
    "RetryRequested",
    "AutoReset",
    "UserEvent",
    "parse_event",
    "Sender",
    "WidgetKind",
    "WidgetIntent",
    "Message",
    "Timeline",
    "ConversationStateManager",
]
