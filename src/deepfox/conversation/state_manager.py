"""
Conversation state manager for the booking flow.

This module provides the ConversationStateManager class that manages:
- State transitions with validation
- Context updates with logging
- Atomic reset of state and context
- Flow generations used to discard stale timer events
"""

from typing import Any, Dict, List, Tuple
from loguru import logger

from ..error_handling.exceptions import StateTransitionError
from ..error_handling.logging_config import log_conversation_event
from .states import ConversationState, ALLOWED_TRANSITIONS
from .context import SelectionContext


class ConversationStateManager:
    """
    Owns the current state and the selection context of one conversation.

    Attributes:
        context: Scratch state of the flow in progress
        generation: Incremented on every reset; identifies the current flow
    """

    def __init__(self, initial_state: ConversationState = ConversationState.IDLE):
        """
        Initialize the conversation state manager.

        Args:
            initial_state: Starting state for the conversation (default: IDLE)
        """
        self._state = initial_state
        self.context = SelectionContext()
        self.generation = 0

        logger.debug(f"ConversationStateManager initialized with state: {initial_state}")

    @property
    def state(self) -> ConversationState:
        return self._state

    def get_current_state(self) -> ConversationState:
        """
        Get the current conversation state.

        Returns:
            Current ConversationState
        """
        return self._state

    def get_context(self) -> SelectionContext:
        return self.context

    def can_transition_to(self, target_state: ConversationState) -> Tuple[bool, str]:
        """
        Check if transition to target state is valid.

        Validates:
        - IDLE and ERRORED are reachable from anywhere
        - Other targets must be listed for the current state
        - SELECTING_CONSULTANT needs a service, SELECTING_DATE a consultant

        Args:
            target_state: State to transition to

        Returns:
            Tuple of (is_valid, reason). If valid, reason is empty string.
        """
        current = self._state

        if target_state in (ConversationState.IDLE, ConversationState.ERRORED):
            return True, ""

        if target_state not in ALLOWED_TRANSITIONS[current]:
            return False, f"{current} does not lead to {target_state}"

        if target_state == ConversationState.SELECTING_CONSULTANT and self.context.service is None:
            return False, "Cannot select a consultant before a service"

        if target_state == ConversationState.SELECTING_DATE and self.context.consultant is None:
            return False, "Cannot select a date before a consultant"

        if target_state == ConversationState.CONFIRMED:
            missing = self.context.missing_fields()
            if missing:
                return False, f"Cannot confirm: missing fields {missing}"

        return True, ""

    def transition_to(self, new_state: ConversationState) -> None:
        """
        Transition to a new conversation state with validation.

        Args:
            new_state: State to transition to

        Raises:
            StateTransitionError: If transition is not valid
        """
        old_state = self._state

        can_transition, reason = self.can_transition_to(new_state)
        if not can_transition:
            logger.warning(
                f"Invalid state transition from {old_state} to {new_state}: {reason}"
            )
            raise StateTransitionError(reason, from_state=str(old_state), to_state=str(new_state))

        self._state = new_state
        log_conversation_event("STATE_CHANGE", str(new_state), {"from": str(old_state)})

    def update_context(self, **kwargs: Any) -> List[str]:
        """
        Set context fields.

        Args:
            **kwargs: SelectionContext field values

        Returns:
            Names of the fields that were set

        Raises:
            AttributeError: If a name is not a context field
            pydantic.ValidationError: If a value has the wrong type
        """
        for field_name, value in kwargs.items():
            if field_name not in SelectionContext.model_fields:
                raise AttributeError(f"Unknown context field: {field_name}")
            setattr(self.context, field_name, value)

        logger.debug(f"Context updated: {sorted(kwargs)}")
        return list(kwargs)

    def reset(self, reason: str = "reset") -> None:
        """
        Clear the context and return to IDLE in one step.

        Args:
            reason: Why the flow ended (logged)
        """
        old_state = self._state
        cleared = self.context.get_collected_fields()

        self.context = SelectionContext()
        self._state = ConversationState.IDLE
        self.generation += 1

        log_conversation_event("RESET", str(ConversationState.IDLE), {
            "from": str(old_state),
            "reason": reason,
            "cleared": cleared,
        })

    def enter_error_state(self, reason: str) -> None:
        """Move to ERRORED, keeping the context until the next reset."""
        old_state = self._state
        self._state = ConversationState.ERRORED
        logger.error(f"Conversation errored in {old_state}: {reason}")

    def get_progress_summary(self) -> Dict[str, Any]:
        """
        Get a summary of conversation progress.

        Returns:
            Dictionary containing:
            - current_state: current conversation state
            - collected_fields: list of collected field names
            - missing_fields: booking fields not collected yet
            - generation: current flow generation
        """
        return {
            "current_state": str(self._state),
            "collected_fields": self.context.get_collected_fields(),
            "missing_fields": self.context.missing_fields(),
            "generation": self.generation,
        }
