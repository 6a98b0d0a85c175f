"""
Unit tests for intent classification.

Tests:
- Mock the Gemini SDK (no network calls)
- JSON responses are parsed into IntentAnalysis
- Transient failures are retried, persistent ones surface as errors
- Lenient parsing of classifier output
- Keyword classifier used without an API key
- Classifier selection from settings
"""
import json
from datetime import date
from unittest.mock import Mock, patch

import pytest

from deepfox.config import Settings
from deepfox.error_handling.exceptions import IntentClassificationError
from deepfox.nlu.classifier import (
    GeminiIntentClassifier,
    KeywordIntentClassifier,
    create_classifier,
)
from deepfox.nlu.intent import Intent, IntentAnalysis
from deepfox.nlu.prompts import build_system_instruction


def gemini_response(payload) -> Mock:
    response = Mock()
    response.text = payload if isinstance(payload, str) else json.dumps(payload)
    return response


@pytest.fixture(scope="function")
def mock_genai():
    """Patch the Gemini SDK as imported by the classifier module."""
    with patch("deepfox.nlu.classifier.genai") as genai:
        yield genai


@pytest.fixture(scope="function")
def gemini_model(mock_genai) -> Mock:
    """The GenerativeModel instance the classifier will use."""
    model = Mock()
    mock_genai.GenerativeModel.return_value = model
    return model


@pytest.fixture(scope="function")
def gemini_classifier(mock_genai, gemini_model, catalog) -> GeminiIntentClassifier:
    """Gemini classifier with instant retries."""
    return GeminiIntentClassifier(
        api_key="test-key",
        catalog=catalog,
        max_attempts=3,
        retry_backoff=0,
    )


class TestGeminiIntentClassifier:
    """Test the Gemini-backed classifier."""

    def test_model_configured_with_catalog(self, mock_genai, gemini_classifier):
        """Test the API key and the catalog-aware system instruction are passed to the SDK."""
        mock_genai.configure.assert_called_once_with(api_key="test-key")

        args, kwargs = mock_genai.GenerativeModel.call_args
        assert args[0] == "gemini-2.5-flash"
        assert "ID: financial" in kwargs["system_instruction"]
        assert "ID: tech" in kwargs["system_instruction"]

    @pytest.mark.asyncio
    async def test_classify_parses_json(self, gemini_classifier, gemini_model):
        """Test a well-formed response becomes an IntentAnalysis."""
        gemini_model.generate_content.return_value = gemini_response({
            "intent": "BOOK",
            "recommendedServiceId": "financial",
            "extractedDate": "2030-03-04",
            "replyText": "Our financial team can help.",
        })

        analysis = await gemini_classifier.classify("I need tax filing help")

        assert analysis.intent == Intent.BOOK
        assert analysis.recommended_service_id == "financial"
        assert analysis.extracted_date == date(2030, 3, 4)
        assert analysis.reply_text == "Our financial team can help."
        assert gemini_model.generate_content.call_args.args[0] == "I need tax filing help"

    @pytest.mark.asyncio
    async def test_requests_json_output(self, mock_genai, gemini_classifier, gemini_model):
        """Test the generation config asks for JSON."""
        gemini_model.generate_content.return_value = gemini_response({"intent": "GENERAL_QUERY"})

        await gemini_classifier.classify("hi")

        config_kwargs = mock_genai.types.GenerationConfig.call_args.kwargs
        assert config_kwargs["response_mime_type"] == "application/json"

    @pytest.mark.asyncio
    async def test_transient_failure_is_retried(self, gemini_classifier, gemini_model):
        """Test a failed call is retried before giving up."""
        gemini_model.generate_content.side_effect = [
            RuntimeError("503 Service Unavailable"),
            gemini_response({"intent": "CANCEL", "replyText": "Sure."}),
        ]

        analysis = await gemini_classifier.classify("cancel my booking")

        assert analysis.intent == Intent.CANCEL
        assert gemini_model.generate_content.call_count == 2

    @pytest.mark.asyncio
    async def test_persistent_failure_raises(self, gemini_classifier, gemini_model):
        """Test exhausting the attempts raises IntentClassificationError."""
        gemini_model.generate_content.side_effect = RuntimeError("network unreachable")

        with pytest.raises(IntentClassificationError) as exc_info:
            await gemini_classifier.classify("hello")

        assert gemini_model.generate_content.call_count == 3
        assert exc_info.value.provider == "gemini"
        assert isinstance(exc_info.value.original_error, RuntimeError)

    @pytest.mark.asyncio
    async def test_empty_response_raises(self, gemini_classifier, gemini_model):
        """Test an empty body counts as a failure."""
        gemini_model.generate_content.return_value = gemini_response("")

        with pytest.raises(IntentClassificationError):
            await gemini_classifier.classify("hello")

    @pytest.mark.asyncio
    async def test_malformed_json_raises(self, gemini_classifier, gemini_model):
        """Test a non-JSON body is a classification error, not an UNKNOWN intent."""
        gemini_model.generate_content.return_value = gemini_response("Sure! Here's what I found")

        with pytest.raises(IntentClassificationError, match="Unparseable"):
            await gemini_classifier.classify("hello")


class TestIntentAnalysis:
    """Test lenient parsing of classifier output."""

    def test_lowercase_intent_accepted(self):
        assert IntentAnalysis.model_validate({"intent": "reschedule"}).intent == Intent.RESCHEDULE

    def test_unrecognised_intent_is_unknown(self):
        assert IntentAnalysis.model_validate({"intent": "ORDER_PIZZA"}).intent == Intent.UNKNOWN

    def test_blank_service_is_none(self):
        analysis = IntentAnalysis.model_validate({"intent": "BOOK", "recommendedServiceId": "  "})
        assert analysis.recommended_service_id is None

    def test_unparseable_date_dropped(self):
        analysis = IntentAnalysis.model_validate({"intent": "BOOK", "extractedDate": "next Tuesday"})
        assert analysis.extracted_date is None

    def test_missing_fields_default(self):
        """Test an empty object is a valid UNKNOWN analysis."""
        analysis = IntentAnalysis.model_validate({})
        assert analysis.intent == Intent.UNKNOWN
        assert analysis.reply_text == ""


class TestKeywordIntentClassifier:
    """Test the offline classifier."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text,intent,service_id", [
        ("I need help with tax filing", Intent.BOOK, "financial"),
        ("Book a legal consultation", Intent.BOOK, "legal"),
        ("our SEO is terrible", Intent.BOOK, "marketing"),
        ("we're planning a cloud migration", Intent.BOOK, "tech"),
        ("I'd like to book an appointment", Intent.BOOK, None),
        ("Reschedule my appointment", Intent.RESCHEDULE, None),
        ("Cancel a booking", Intent.CANCEL, None),
        ("What services do you offer?", Intent.GENERAL_QUERY, None),
        ("Hello there", Intent.GENERAL_QUERY, None),
        ("purple monkey dishwasher", Intent.UNKNOWN, None),
    ])
    async def test_classification(self, catalog, text, intent, service_id):
        """Test keyword rules map text to intents and services."""
        analysis = await KeywordIntentClassifier(catalog).classify(text)

        assert analysis.intent == intent
        assert analysis.recommended_service_id == service_id
        assert analysis.reply_text

    @pytest.mark.asyncio
    async def test_reschedule_wins_over_service_words(self, catalog):
        """Test changing an existing tax appointment is not a new booking."""
        analysis = await KeywordIntentClassifier(catalog).classify("reschedule my tax appointment")
        assert analysis.intent == Intent.RESCHEDULE

    @pytest.mark.asyncio
    async def test_unknown_reply_mentions_demo_mode(self, catalog):
        analysis = await KeywordIntentClassifier(catalog).classify("zzz")
        assert "demo mode" in analysis.reply_text


class TestCreateClassifier:
    """Test classifier selection."""

    def test_keyword_classifier_without_api_key(self, catalog):
        settings = Settings(_env_file=None, GEMINI_API_KEY=None)

        classifier = create_classifier(catalog, settings)

        assert isinstance(classifier, KeywordIntentClassifier)
        assert classifier.name == "keyword"

    def test_gemini_classifier_with_api_key(self, catalog, mock_genai):
        settings = Settings(_env_file=None, GEMINI_API_KEY="abc", GEMINI_MODEL="gemini-test")

        classifier = create_classifier(catalog, settings)

        assert isinstance(classifier, GeminiIntentClassifier)
        assert classifier.model_name == "gemini-test"
        mock_genai.configure.assert_called_once_with(api_key="abc")


def test_system_instruction_names_business(catalog):
    """Test the business name and JSON keys appear in the prompt."""
    instruction = build_system_instruction(catalog, business_name="Acme Advisors")

    assert '"Acme Advisors"' in instruction
    assert "recommendedServiceId" in instruction
    assert "Legal Advisory" in instruction
