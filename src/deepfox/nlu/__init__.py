"""
Natural language understanding: intent classification of free text.
"""
from .intent import Intent, IntentAnalysis
from .prompts import build_system_instruction
from .classifier import (
    IntentClassifier,
    GeminiIntentClassifier,
    KeywordIntentClassifier,
    create_classifier,
)

__all__ = [
    "Intent",
    "IntentAnalysis",
    "build_system_instruction",
    "IntentClassifier",
    "GeminiIntentClassifier",
    "KeywordIntentClassifier",
    "create_classifier",
]
