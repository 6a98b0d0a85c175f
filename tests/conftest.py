"""
Pytest configuration and shared fixtures.
"""
import random
from datetime import date, timedelta

import pytest
import pytest_asyncio
from sqlalchemy.orm import sessionmaker

from deepfox.agent.orchestrator import ConversationOrchestrator
from deepfox.conversation.events import (
    Choice,
    ChoiceMade,
    ConsultantSelected,
    DateSelected,
    PayAction,
    SlotSelected,
    TextInput,
)
from deepfox.conversation.states import ConversationState
from deepfox.models.catalog import Catalog, default_catalog
from deepfox.models.database import Base, build_engine, create_session_factory
from deepfox.models.schemas import BookingCreate, ContactDetails, TimeSlot
from deepfox.nlu.classifier import KeywordIntentClassifier
from deepfox.services.appointment_store import AppointmentStore
from deepfox.services.payment_service import PaymentService
from deepfox.services.scheduling_service import SchedulingService
from deepfox.services.verification_service import VerificationService

S = ConversationState

CONTACT_LINE = "Wade Wilson, wade@xforce.com, 555-0100"


class FixedRandom(random.Random):
    """Random source that always draws the same value."""

    def __init__(self, value: float):
        super().__init__(0)
        self.value = value

    def random(self) -> float:
        return self.value


@pytest.fixture(scope="function")
def today() -> date:
    """Today's date as seen by the orchestrator."""
    return date.today()


@pytest.fixture(scope="function")
def next_monday(today: date) -> date:
    """
    The first Monday strictly after today.
    Always a business day and never in the past.
    """
    return today + timedelta(days=7 - today.weekday())


@pytest.fixture(scope="function")
def db_engine():
    """
    Create an in-memory database engine with all tables.
    Each test gets a fresh database.
    """
    engine = build_engine("sqlite:///:memory:")
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine) -> sessionmaker:
    """Session factory bound to the test engine."""
    return create_session_factory(db_engine)


@pytest.fixture(scope="function")
def store(session_factory: sessionmaker) -> AppointmentStore:
    """Appointment store without simulated latency."""
    return AppointmentStore(session_factory, latency_scale=0)


@pytest.fixture(scope="function")
def catalog() -> Catalog:
    """The consultancy's standard catalog."""
    return default_catalog()


@pytest.fixture(scope="function")
def contact_details() -> ContactDetails:
    return ContactDetails(name="Wade Wilson", email="wade@xforce.com", phone="555-0100")


@pytest.fixture(scope="function")
def booking_create(catalog: Catalog, contact_details: ContactDetails, next_monday: date) -> BookingCreate:
    """
    Booking fields for a financial consultation with Alice on next Monday at 11:00.
    """
    return BookingCreate(
        service=catalog.find_service("financial"),
        consultant=catalog.find_consultant("c1"),
        date=next_monday,
        slot=TimeSlot(id="s3", time="11:00", available=True),
        contact_details=contact_details,
        payment_id="txn_test",
    )


@pytest_asyncio.fixture(scope="function")
async def make_orchestrator(catalog: Catalog, store: AppointmentStore, today: date):
    """
    Factory for orchestrators wired to instant backends.

    Every slot is available, the OTP is "1234", and confirmed
    conversations stay confirmed for a minute unless overridden.
    All created orchestrators are closed after the test.
    """
    created = []

    def _make(**overrides) -> ConversationOrchestrator:
        kwargs = dict(
            catalog=catalog,
            classifier=KeywordIntentClassifier(catalog),
            scheduling=SchedulingService(rng=FixedRandom(0.0), latency_scale=0),
            verification=VerificationService(expected_code="1234", latency_scale=0),
            payment=PaymentService(latency_scale=0),
            store=store,
            quiescence_seconds=60.0,
            otp_hint="1234",
            conversation_id="conv-test",
            today=lambda: today,
        )
        kwargs.update(overrides)
        orchestrator = ConversationOrchestrator(**kwargs)
        created.append(orchestrator)
        return orchestrator

    yield _make

    for orchestrator in created:
        await orchestrator.aclose()


@pytest.fixture(scope="function")
def orchestrator(make_orchestrator) -> ConversationOrchestrator:
    """Orchestrator with default test wiring."""
    return make_orchestrator()


@pytest.fixture(scope="function")
def walk_to(next_monday: date):
    """
    Drive an orchestrator along the happy booking path until it reaches
    the requested state (CONFIRMED by default).
    """
    steps = [
        (S.AWAITING_SERVICE_CONFIRMATION, TextInput(text="I need tax filing help")),
        (S.SELECTING_CONSULTANT, ChoiceMade(choice=Choice.ACCEPT_SERVICE)),
        (S.SELECTING_DATE, ConsultantSelected(consultant_id="c1")),
        (S.SELECTING_SLOT, DateSelected(date=next_monday)),
        (S.COLLECTING_CONTACT_DETAILS, SlotSelected(slot_id="s3")),
        (S.VERIFYING_OTP, TextInput(text=CONTACT_LINE)),
        (S.PROCESSING_PAYMENT, TextInput(text="1234")),
        (S.CONFIRMED, PayAction()),
    ]

    async def _walk(orchestrator: ConversationOrchestrator, target: ConversationState = S.CONFIRMED):
        await orchestrator.start()
        for expected, event in steps:
            if orchestrator.state == target:
                break
            await orchestrator.handle(event)
            assert orchestrator.state == expected, (
                f"expected {expected} after {event.kind}, got {orchestrator.state}: "
                f"{orchestrator.timeline.last().text!r}"
            )
        assert orchestrator.state == target

    return _walk


@pytest_asyncio.fixture(scope="function")
async def stored_booking(store: AppointmentStore, booking_create: BookingCreate):
    """A confirmed booking already in the store."""
    return await store.create(booking_create)


def bot_texts(orchestrator: ConversationOrchestrator) -> list:
    """Text of every bot message on the timeline."""
    return [m.text for m in orchestrator.timeline if m.sender.value == "bot" and m.text]


@pytest.fixture(scope="function")
def bot_messages():
    """Helper returning the text of every bot message."""
    return bot_texts


@pytest.fixture(scope="function")
def fixed_random():
    """Factory for random sources that always draw the given value."""
    return FixedRandom


@pytest.fixture(scope="function")
def contact_line() -> str:
    return CONTACT_LINE
