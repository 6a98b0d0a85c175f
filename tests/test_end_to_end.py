"""
End-to-end integration tests for complete conversations.

Tests:
- Orchestrator wired by create_orchestrator with the offline classifier
- Simulate the booking, cancel and reschedule conversations
- Verify bookings are written to the database
- Test the conversation returns to idle after a confirmation
- Console renderer maps typed input to events
"""
import asyncio
from datetime import timedelta

import pytest
import pytest_asyncio

from deepfox.agent.orchestrator import ANYTHING_ELSE_MESSAGE, create_orchestrator
from deepfox.config import Settings
from deepfox.conversation.events import (
    Choice,
    ChoiceMade,
    ConsultantSelected,
    DateSelected,
    PayAction,
    RetryRequested,
    ServiceSelected,
    SlotSelected,
    TextInput,
)
from deepfox.conversation.messages import (
    Sender,
    Timeline,
    consultant_list,
    date_picker,
    payment_form,
    retry_button,
    suggestion_chips,
)
from deepfox.conversation.states import ConversationState
from deepfox.db_init import initialize_database
from deepfox.main import ConsoleRenderer
from deepfox.models.schemas import BookingStatus
from deepfox.nlu.classifier import KeywordIntentClassifier

S = ConversationState


@pytest.fixture(scope="function")
def settings() -> Settings:
    """Offline settings: no API key, no latency, short quiescence."""
    return Settings(
        _env_file=None,
        DATABASE_URL="sqlite:///:memory:",
        GEMINI_API_KEY=None,
        BACKEND_LATENCY_SCALE=0,
        QUIESCENCE_SECONDS=0.05,
        MOCK_OTP_CODE="1234",
    )


@pytest_asyncio.fixture(scope="function")
async def assistant(settings, session_factory):
    """Fully wired orchestrator on the test database."""
    orchestrator = create_orchestrator(settings, session_factory=session_factory)
    yield orchestrator
    await orchestrator.aclose()


class TestEndToEndConversations:
    """Test complete conversations through the public API."""

    @pytest.mark.asyncio
    async def test_booking_conversation(self, assistant, next_monday, contact_line):
        """
        Test the complete happy path conversation:
        1. Greeting
        2. Problem description recommends Financial Consulting
        3. Consultant, date and slot
        4. Contact details and OTP
        5. Payment and confirmation
        6. Return to idle
        """
        assert isinstance(assistant.classifier, KeywordIntentClassifier)

        await assistant.start()
        await assistant.send_text("I need help with tax filing")
        assert assistant.state == S.AWAITING_SERVICE_CONFIRMATION
        assert assistant.context.recommended_service.id == "financial"

        await assistant.handle(ChoiceMade(choice=Choice.ACCEPT_SERVICE))
        await assistant.handle(ConsultantSelected(consultant_id="c1"))
        await assistant.handle(DateSelected(date=next_monday))
        assert assistant.state == S.SELECTING_SLOT

        # s3 is never contended
        await assistant.handle(SlotSelected(slot_id="s3"))
        await assistant.send_text(contact_line)
        assert assistant.state == S.VERIFYING_OTP
        assert assistant.timeline.last(Sender.BOT).text.endswith("(Hint: use 1234).")

        await assistant.send_text("1234")
        await assistant.handle(PayAction(payment_token="tok_visa"))
        assert assistant.state == S.CONFIRMED

        booking_id = assistant.timeline.last(Sender.BOT).widget.payload["booking"]["id"]
        booking = await assistant.store.get(booking_id)
        assert booking.status == BookingStatus.CONFIRMED
        assert booking.date == next_monday

        await asyncio.sleep(0.2)
        await assistant.drain()
        assert assistant.state == S.IDLE
        assert assistant.timeline.last(Sender.BOT).text == ANYTHING_ELSE_MESSAGE

    @pytest.mark.asyncio
    async def test_manual_service_choice_then_cancel(self, assistant, next_monday, contact_line):
        """Test booking via the service list, then cancelling by id in the same chat."""
        await assistant.start()
        await assistant.send_text("I'd like to book an appointment")
        assert assistant.state == S.SELECTING_SERVICE

        await assistant.handle(ServiceSelected(service_id="marketing"))
        await assistant.handle(ConsultantSelected(consultant_id="c3"))
        await assistant.handle(DateSelected(date=next_monday))
        await assistant.handle(SlotSelected(slot_id="s1"))
        await assistant.send_text(contact_line)
        await assistant.send_text("1234")
        await assistant.handle(PayAction())
        booking_id = assistant.timeline.last(Sender.BOT).widget.payload["booking"]["id"]

        await assistant.send_text("Cancel a booking")
        assert assistant.state == S.FINDING_BOOKING_TO_CANCEL

        await assistant.send_text(booking_id.lower())
        await assistant.handle(ChoiceMade(choice=Choice.CONFIRM_CANCEL))

        assert assistant.state == S.IDLE
        assert (await assistant.store.get(booking_id)).status == BookingStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_reschedule_conversation(self, assistant, stored_booking, next_monday):
        """Test moving a booking made earlier to another day."""
        wednesday = next_monday + timedelta(days=2)

        await assistant.start()
        await assistant.send_text("I need to reschedule")
        await assistant.send_text(stored_booking.id)
        await assistant.handle(DateSelected(date=wednesday))
        await assistant.handle(SlotSelected(slot_id="s6"))

        assert assistant.state == S.IDLE
        updated = await assistant.store.get(stored_booking.id)
        assert updated.date == wednesday
        assert updated.slot.time == "16:00"


class TestCreateOrchestrator:
    """Test wiring from settings."""

    @pytest.mark.asyncio
    async def test_uses_global_database_when_no_factory(self, settings):
        """Test the store is backed by the configured database URL."""
        orchestrator = create_orchestrator(settings)
        try:
            assert orchestrator.quiescence_seconds == 0.05
            assert orchestrator.otp_hint == "1234"
            assert orchestrator.scheduling.latency_scale == 0
            assert await orchestrator.store.get("BK-1") is None
        finally:
            await orchestrator.aclose()

    def test_initialize_database(self):
        """Test the init script creates the table on a fresh database."""
        assert initialize_database("sqlite:///:memory:") == 0


class TestConsoleRenderer:
    """Test mapping console input to events."""

    def test_numbers_select_options(self, capsys, catalog):
        renderer = ConsoleRenderer()
        renderer.render([_bot_message(consultant_list(catalog.consultants_for("legal")))])

        assert renderer.parse("1") == ConsultantSelected(consultant_id="c2")
        assert "Robert Smith" in capsys.readouterr().out

    def test_out_of_range_number_is_text(self, catalog):
        renderer = ConsoleRenderer()
        renderer.render([_bot_message(consultant_list(catalog.consultants_for("legal")))])

        assert renderer.parse("7") == TextInput(text="7")

    def test_date_picker_accepts_iso_dates(self, next_monday):
        renderer = ConsoleRenderer()
        renderer.render([_bot_message(date_picker(next_monday))])

        assert renderer.parse(next_monday.isoformat()) == DateSelected(date=next_monday)
        assert renderer.parse("1") == DateSelected(date=next_monday)

    def test_pay_and_retry_commands(self):
        renderer = ConsoleRenderer()
        renderer.render([_bot_message(payment_form(150))])
        assert renderer.parse("pay") == PayAction()
        assert renderer.parse("pay fail") == PayAction(payment_token="fail")

        renderer.render([_bot_message(retry_button("retry-3", "Transaction declined."))])
        assert renderer.parse("retry") == RetryRequested(retry_id="retry-3")

    def test_chips_send_their_label(self):
        renderer = ConsoleRenderer()
        renderer.render([_bot_message(suggestion_chips(["Check services"]))])

        assert renderer.parse("1") == TextInput(text="Check services")
        assert renderer.parse("something else") == TextInput(text="something else")


def _bot_message(widget):
    return Timeline().append(Sender.BOT, "prompt", widget)
