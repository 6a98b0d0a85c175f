"""
Intent classifiers.

Provides:
- GeminiIntentClassifier: Google Gemini with JSON output and tenacity retries
- KeywordIntentClassifier: offline rules used when no API key is configured
- create_classifier(): picks one based on settings
"""
import asyncio
import json
import re
import time
from typing import Dict, List, Optional, Tuple
from loguru import logger
from pydantic import ValidationError
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
)

import google.generativeai as genai

from ..config import Settings, get_settings
from ..models.catalog import Catalog
from ..error_handling.exceptions import IntentClassificationError
from .intent import Intent, IntentAnalysis
from .prompts import build_system_instruction


class IntentClassifier:
    """Base class: text in, IntentAnalysis out."""

    name = "base"

    async def classify(self, text: str) -> IntentAnalysis:
        """
        Classify one user message.

        Raises:
            IntentClassificationError: If the classifier could not be reached
                or returned something unusable
        """
        raise NotImplementedError


class GeminiIntentClassifier(IntentClassifier):
    """
    Intent classification with Google Gemini.

    The blocking SDK call runs in a worker thread and is retried with
    exponential backoff before the failure is surfaced.
    """

    name = "gemini"

    def __init__(
        self,
        api_key: str,
        catalog: Catalog,
        model_name: str = "gemini-2.5-flash",
        business_name: str = "Consultancy Deep Fox",
        max_attempts: int = 3,
        retry_backoff: float = 1.0,
        temperature: float = 0.2,
    ):
        genai.configure(api_key=api_key)
        self.model_name = model_name
        self.temperature = temperature
        self._model = genai.GenerativeModel(
            model_name,
            system_instruction=build_system_instruction(catalog, business_name),
        )
        self._generate = retry(
            stop=stop_after_attempt(max_attempts),
            wait=wait_exponential(multiplier=retry_backoff, min=0, max=10),
            reraise=True,
        )(self._generate_once)

    def _generate_once(self, text: str) -> str:
        response = self._model.generate_content(
            text,
            generation_config=genai.types.GenerationConfig(
                temperature=self.temperature,
                response_mime_type="application/json",
            ),
        )
        content = response.text
        if not content:
            raise ValueError("Empty response from Gemini")
        return content

    async def classify(self, text: str) -> IntentAnalysis:
        start_time = time.time()
        try:
            raw = await asyncio.to_thread(self._generate, text)
        except Exception as e:
            logger.error(f"Gemini API call failed: {e}")
            raise IntentClassificationError(
                f"Gemini API call failed: {e}",
                provider=self.name,
                original_error=e,
            )

        try:
            analysis = IntentAnalysis.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError, TypeError) as e:
            logger.error(f"Unparseable Gemini response: {raw[:200]!r}")
            raise IntentClassificationError(
                f"Unparseable classifier response: {e}",
                provider=self.name,
                original_error=e,
            )

        duration = time.time() - start_time
        logger.info(
            f"Gemini classification | intent: {analysis.intent.value} | "
            f"service: {analysis.recommended_service_id} | "
            f"duration: {duration:.2f}s | model: {self.model_name}"
        )
        return analysis


# Keywords that point at a catalog service id
SERVICE_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "financial": ("tax", "taxes", "audit", "invest", "investment", "finance", "financial", "accounting"),
    "legal": ("legal", "lawyer", "law", "contract", "compliance", "attorney", "incorporate"),
    "marketing": ("marketing", "seo", "brand", "branding", "social media", "campaign", "growth"),
    "tech": ("tech", "software", "cloud", "it support", "architecture", "migration", "devops"),
}

RESCHEDULE_KEYWORDS = ("reschedule", "rescheduling", "move my", "change my", "different time")
CANCEL_KEYWORDS = ("cancel", "cancellation", "call off")
BOOK_KEYWORDS = ("book", "appointment", "consultation", "schedule", "meet", "help", "need")
GREETING_KEYWORDS = ("hi", "hello", "hey", "good morning", "good afternoon", "good evening")
SERVICES_QUERY_KEYWORDS = ("services", "offer", "what do you do")


def _contains_any(text: str, keywords) -> bool:
    return any(re.search(rf"\b{re.escape(k)}\b", text) for k in keywords)


class KeywordIntentClassifier(IntentClassifier):
    """
    Rule-based classifier for demo mode.

    Reschedule and cancel wording win over booking wording; a service
    keyword turns a request into a BOOK with that service recommended.
    """

    name = "keyword"

    def __init__(self, catalog: Catalog):
        self.catalog = catalog

    def _match_service(self, text: str) -> Optional[str]:
        for service_id, keywords in SERVICE_KEYWORDS.items():
            if self.catalog.find_service(service_id) and _contains_any(text, keywords):
                return service_id
        return None

    def _service_names(self) -> str:
        names: List[str] = [s.name for s in self.catalog.services]
        if len(names) <= 1:
            return "".join(names)
        return ", ".join(names[:-1]) + f" and {names[-1]}"

    async def classify(self, text: str) -> IntentAnalysis:
        lowered = (text or "").lower().strip()

        if _contains_any(lowered, RESCHEDULE_KEYWORDS):
            analysis = IntentAnalysis(
                intent=Intent.RESCHEDULE,
                reply_text="Sure, I can help you move your appointment.",
            )
        elif _contains_any(lowered, CANCEL_KEYWORDS):
            analysis = IntentAnalysis(
                intent=Intent.CANCEL,
                reply_text="I can help you cancel a booking.",
            )
        elif _contains_any(lowered, SERVICES_QUERY_KEYWORDS) and not _contains_any(lowered, ("book",)):
            analysis = IntentAnalysis(
                intent=Intent.GENERAL_QUERY,
                reply_text=f"We offer {self._service_names()}. Would you like to book one?",
            )
        else:
            service_id = self._match_service(lowered)
            if service_id:
                service = self.catalog.find_service(service_id)
                analysis = IntentAnalysis(
                    intent=Intent.BOOK,
                    recommended_service_id=service_id,
                    reply_text=f"It sounds like our {service.name} team can help with that.",
                )
            elif _contains_any(lowered, BOOK_KEYWORDS):
                analysis = IntentAnalysis(
                    intent=Intent.BOOK,
                    reply_text="I'd be happy to help you book an appointment.",
                )
            elif _contains_any(lowered, GREETING_KEYWORDS):
                analysis = IntentAnalysis(
                    intent=Intent.GENERAL_QUERY,
                    reply_text="Hello! How can I help you today?",
                )
            else:
                analysis = IntentAnalysis(
                    intent=Intent.UNKNOWN,
                    reply_text=(
                        "I'm running in demo mode without an API key. "
                        "I can still help you book an appointment manually!"
                    ),
                )

        logger.debug(
            f"Keyword classification | intent: {analysis.intent.value} | "
            f"service: {analysis.recommended_service_id}"
        )
        return analysis


def create_classifier(catalog: Catalog, settings: Optional[Settings] = None) -> IntentClassifier:
    """
    Create the configured intent classifier.

    Args:
        catalog: Catalog the classifier recommends services from
        settings: Settings to read the API key from (defaults to global settings)

    Returns:
        Gemini classifier when GEMINI_API_KEY is set, keyword classifier otherwise
    """
    settings = settings or get_settings()

    if settings.gemini_api_key:
        logger.info(f"Using Gemini intent classifier ({settings.gemini_model})")
        return GeminiIntentClassifier(
            api_key=settings.gemini_api_key,
            catalog=catalog,
            model_name=settings.gemini_model,
            business_name=settings.business_name,
        )

    logger.warning("GEMINI_API_KEY not set, using offline keyword classifier")
    return KeywordIntentClassifier(catalog)
