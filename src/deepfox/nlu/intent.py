"""
Intent types returned by the intent classifier.
"""
from datetime import date
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Intent(str, Enum):
    """What the user wants from the conversation."""

    BOOK = "BOOK"
    RESCHEDULE = "RESCHEDULE"
    CANCEL = "CANCEL"
    GENERAL_QUERY = "GENERAL_QUERY"
    UNKNOWN = "UNKNOWN"


class IntentAnalysis(BaseModel):
    """
    Structured result of classifying one user message.

    Field aliases match the JSON the Gemini model is asked to produce.
    """
    intent: Intent = Intent.UNKNOWN
    recommended_service_id: Optional[str] = Field(default=None, alias="recommendedServiceId")
    extracted_date: Optional[date] = Field(default=None, alias="extractedDate")
    reply_text: str = Field(default="", alias="replyText")

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @field_validator("intent", mode="before")
    @classmethod
    def normalize_intent(cls, v):
        """Accept lower-case or unrecognised intent labels."""
        if isinstance(v, str):
            v = v.strip().upper()
            if v not in Intent.__members__:
                return Intent.UNKNOWN
        return v

    @field_validator("recommended_service_id", mode="before")
    @classmethod
    def blank_service_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("extracted_date", mode="before")
    @classmethod
    def lenient_date(cls, v):
        """Drop dates the model could not express as YYYY-MM-DD."""
        if isinstance(v, str):
            try:
                return date.fromisoformat(v.strip())
            except ValueError:
                return None
        return v
