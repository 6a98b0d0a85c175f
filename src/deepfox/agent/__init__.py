"""
Agent Module - conversation orchestration for the booking assistant.
"""

from .orchestrator import (
    ConversationOrchestrator,
    RetryDescriptor,
    create_orchestrator,
    is_cancel_command,
)

__all__ = [
    "ConversationOrchestrator",
    "RetryDescriptor",
    "create_orchestrator",
    "is_cancel_command",
]
