"""
Conversation Orchestrator - the booking conversation state machine.

This module provides the ConversationOrchestrator class that:
- Serializes events for one conversation through a single-consumer queue
- Dispatches each event on the current state
- Calls the scheduling, verification, payment and store backends
- Appends bot messages and widget intents to the timeline
- Turns backend failures into retry buttons and bad input into re-prompts
"""
import asyncio
import contextlib
import functools
import itertools
import uuid
from dataclasses import dataclass
from datetime import date
from typing import Awaitable, Callable, Dict, Optional, Tuple
from loguru import logger
from sqlalchemy.orm import sessionmaker

from ..config import Settings, get_settings
from ..conversation.context import parse_contact_details
from ..conversation.events import (
    AutoReset,
    CHOICE_LABELS,
    Choice,
    ChoiceMade,
    ConsultantSelected,
    DateSelected,
    PayAction,
    RetryRequested,
    ServiceSelected,
    SlotSelected,
    TextInput,
    UserEvent,
)
from ..conversation.messages import (
    Message,
    Sender,
    Timeline,
    WidgetIntent,
    booking_card,
    choice_buttons,
    consultant_list,
    date_picker,
    payment_form,
    retry_button,
    service_list,
    slot_grid,
    success_card,
    suggestion_chips,
)
from ..conversation.state_manager import ConversationStateManager
from ..conversation.states import ConversationState
from ..error_handling.exceptions import (
    BookingNotActiveError,
    BookingNotFoundError,
    BookingSystemError,
    CatalogItemNotFoundError,
    IntentClassificationError,
    InvalidOtpError,
    LocalValidationError,
    MissingContextError,
    OtpDeliveryError,
    PaymentDeclinedError,
    SchedulingError,
    SlotNotFoundError,
    StoreError,
    VerificationServiceError,
)
from ..error_handling.error_messages import format_date_friendly, format_time_friendly
from ..error_handling.handlers import ErrorCategory, ErrorContext, handle_error_with_context
from ..error_handling.logging_config import LogContext, mask_phone
from ..models import database
from ..models.catalog import Catalog, default_catalog
from ..models.database import create_tables, init_db
from ..models.schemas import BookingCreate, Service, TimeSlot
from ..nlu.classifier import IntentClassifier, create_classifier
from ..nlu.intent import Intent
from ..services.appointment_store import AppointmentStore
from ..services.payment_service import PaymentService
from ..services.scheduling_service import SchedulingService
from ..services.verification_service import VerificationService

S = ConversationState

CANCEL_COMMAND = "cancel"

GREETING_CHIPS = (
    "I need help with tax filing",
    "Book a legal consultation",
    "Reschedule my appointment",
    "Cancel a booking",
    "What services do you offer?",
)

RESTART_CHIPS = ("Book a new appointment", "Check services", "Contact support")

USE_OPTIONS_MESSAGE = "Please use the options above, or type 'cancel' to restart."
ANYTHING_ELSE_MESSAGE = "Is there anything else I can help you with?"
CONTACT_PROMPT = (
    "Almost there! Please enter your full name, email, and phone number separated "
    "by commas (e.g., Wade Wilson, wade@xforce.com, 555-0100)."
)

YES_WORDS = {"yes", "y", "yes, proceed", "correct", "yep", "sure"}
NO_WORDS = {"no", "n", "no, show all services", "nope"}


def is_cancel_command(text: str) -> bool:
    """True if the text is the literal restart command, ignoring case and padding."""
    return (text or "").strip().lower() == CANCEL_COMMAND


@dataclass
class RetryDescriptor:
    """A failed backend operation bound to its original arguments."""

    retry_id: str
    label: str
    operation: Callable[[], Awaitable[None]]
    state: ConversationState


class ConversationOrchestrator:
    """
    Drives one booking conversation.

    Events are processed strictly one at a time: ``handle`` enqueues the
    event and waits until the worker has fully processed it, including
    every backend call it triggers. The automatic return to idle after a
    confirmation is injected into the same queue.

    Features:
    - Intent classification of free text
    - New booking: service, consultant, date, slot, contact details, OTP, payment
    - Rescheduling and cancelling by booking id
    - Universal "cancel" command
    - Retry buttons that re-issue the exact failed request
    """

    def __init__(
        self,
        catalog: Catalog,
        classifier: IntentClassifier,
        scheduling: SchedulingService,
        verification: VerificationService,
        payment: PaymentService,
        store: AppointmentStore,
        quiescence_seconds: float = 6.0,
        business_name: str = "Consultancy Deep Fox",
        otp_hint: Optional[str] = None,
        conversation_id: Optional[str] = None,
        today: Optional[Callable[[], date]] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            catalog: Services and consultants on offer
            classifier: Intent classifier for free text typed in idle
            scheduling: Slot availability backend
            verification: OTP backend
            payment: Payment backend
            store: Appointment store
            quiescence_seconds: Delay before a confirmed conversation resets to idle
            business_name: Name used in the greeting
            otp_hint: Code to mention in the OTP prompt (demo mode only)
            conversation_id: Id bound to every log record of this conversation
            today: Clock for the date picker's lower bound
        """
        self.catalog = catalog
        self.classifier = classifier
        self.scheduling = scheduling
        self.verification = verification
        self.payment = payment
        self.store = store
        self.quiescence_seconds = quiescence_seconds
        self.business_name = business_name
        self.otp_hint = otp_hint
        self.conversation_id = conversation_id or f"conv-{uuid.uuid4().hex[:8]}"
        self._today = today or date.today

        self.timeline = Timeline()
        self.state_manager = ConversationStateManager()
        self.error_context = ErrorContext(conversation_id=self.conversation_id)

        self._retries: Dict[str, RetryDescriptor] = {}
        self._retry_ids = itertools.count(1)
        self._queue: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None
        self._auto_reset_task: Optional[asyncio.Task] = None
        self._started = False

        self._handlers = {
            S.IDLE: self._on_idle,
            S.AWAITING_SERVICE_CONFIRMATION: self._on_awaiting_service_confirmation,
            S.SELECTING_SERVICE: self._on_selecting_service,
            S.SELECTING_CONSULTANT: self._on_selecting_consultant,
            S.SELECTING_DATE: self._on_selecting_date,
            S.SELECTING_RESCHEDULE_DATE: self._on_selecting_date,
            S.SELECTING_SLOT: self._on_selecting_slot,
            S.COLLECTING_CONTACT_DETAILS: self._on_collecting_contact_details,
            S.VERIFYING_OTP: self._on_verifying_otp,
            S.PROCESSING_PAYMENT: self._on_processing_payment,
            S.FINDING_BOOKING_TO_RESCHEDULE: self._on_finding_booking,
            S.FINDING_BOOKING_TO_CANCEL: self._on_finding_booking,
        }

        logger.info(f"ConversationOrchestrator created: {self.conversation_id}")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def state(self) -> ConversationState:
        return self.state_manager.state

    @property
    def context(self):
        return self.state_manager.context

    @property
    def pending_retry_ids(self) -> Tuple[str, ...]:
        return tuple(self._retries)

    async def start(self) -> Optional[Message]:
        """
        Append the welcome message. Only the first call has an effect.

        Returns:
            The greeting message, or None if already started
        """
        self._ensure_worker()
        if self._started:
            return None
        self._started = True
        return self._bot(
            f"Hello! I'm {self.business_name}. I can help you book an appointment with "
            "our experts, reschedule existing bookings, or answer generic queries. "
            "How can I assist you today?",
            suggestion_chips(GREETING_CHIPS),
        )

    async def handle(self, event: UserEvent) -> None:
        """
        Process one user event to completion.

        Args:
            event: Text or a structured widget selection
        """
        self._ensure_worker()
        done = asyncio.get_running_loop().create_future()
        await self._queue.put((event, done))
        await done

    async def send_text(self, text: str) -> None:
        """Shorthand for ``handle(TextInput(text=text))``."""
        await self.handle(TextInput(text=text))

    async def drain(self) -> None:
        """Wait until every event queued so far has been processed."""
        if self._queue is not None:
            await self._queue.join()

    async def aclose(self) -> None:
        """Stop the worker and any pending auto-reset timer."""
        for task in (self._auto_reset_task, self._worker):
            if task is not None and not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        self._auto_reset_task = None
        self._worker = None
        logger.info(f"ConversationOrchestrator closed: {self.conversation_id}")

    # ------------------------------------------------------------------
    # Event loop
    # ------------------------------------------------------------------

    def _ensure_worker(self) -> None:
        if self._queue is None:
            self._queue = asyncio.Queue()
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run_worker())

    async def _run_worker(self) -> None:
        while True:
            event, done = await self._queue.get()
            try:
                with LogContext(conversation_id=self.conversation_id):
                    await self._dispatch(event)
            except Exception as e:
                self._enter_errored(e)
            finally:
                self._queue.task_done()
                if done is not None and not done.done():
                    done.set_result(None)

    async def _dispatch(self, event) -> None:
        if isinstance(event, AutoReset):
            self._on_auto_reset(event)
            return

        self._echo(event)

        if isinstance(event, TextInput) and is_cancel_command(event.text):
            self._cancel_command()
            return

        if self.state == S.ERRORED:
            self._reset("input after error")
            self._bot("Let's start over. How can I help?")
            return

        if isinstance(event, RetryRequested):
            await self._retry(event.retry_id)
            return

        if self.state == S.CONFIRMED:
            self._reset("input after confirmation")

        handler = self._handlers.get(self.state)
        if handler is None:
            self._unexpected(event)
            return
        await handler(event)

    # ------------------------------------------------------------------
    # State handlers
    # ------------------------------------------------------------------

    async def _on_idle(self, event) -> None:
        if isinstance(event, TextInput):
            await self._attempt(functools.partial(self._classify, event.text), "classify")
        else:
            self._unexpected(event)

    async def _on_awaiting_service_confirmation(self, event) -> None:
        choice = self._choice_from(event, yes=Choice.ACCEPT_SERVICE, no=Choice.SHOW_ALL_SERVICES)
        if choice == Choice.ACCEPT_SERVICE:
            await self._select_service(self.context.recommended_service)
        elif choice == Choice.SHOW_ALL_SERVICES:
            await self._start_service_selection()
        else:
            self._unexpected(event)

    async def _on_selecting_service(self, event) -> None:
        if not isinstance(event, ServiceSelected):
            self._unexpected(event)
            return
        service = self.catalog.find_service(event.service_id)
        if service is None:
            self._recover(CatalogItemNotFoundError("service", event.service_id))
            return
        await self._select_service(service)

    async def _on_selecting_consultant(self, event) -> None:
        if not isinstance(event, ConsultantSelected):
            self._unexpected(event)
            return
        consultant = self.catalog.find_consultant(event.consultant_id)
        service = self.context.service
        if consultant is None or (service is not None and consultant.service_id != service.id):
            self._recover(CatalogItemNotFoundError("consultant", event.consultant_id))
            return

        self.state_manager.update_context(consultant=consultant)
        self.state_manager.transition_to(S.SELECTING_DATE)
        self._bot(
            "When would you like to meet?",
            date_picker(self._today(), self.context.preferred_date),
        )

    async def _on_selecting_date(self, event) -> None:
        if not isinstance(event, DateSelected):
            self._unexpected(event)
            return
        if event.date < self._today():
            self._recover(LocalValidationError(
                f"Date in the past: {event.date}",
                user_message="Please pick a date from today onwards.",
                field="date",
                value=event.date.isoformat(),
            ))
            return
        await self._attempt(functools.partial(self._fetch_slots, event.date), "get_available_slots")

    async def _on_selecting_slot(self, event) -> None:
        if not isinstance(event, SlotSelected):
            self._unexpected(event)
            return

        slot = self.context.find_slot(event.slot_id)
        if slot is None or not slot.available:
            self._recover(SlotNotFoundError(event.slot_id))
            return

        self.state_manager.update_context(slot=slot)

        if self.context.is_rescheduling:
            booking_id = self.context.booking_being_modified.id
            await self._attempt(
                functools.partial(self._finalize_reschedule, booking_id, self.context.date, slot),
                "reschedule",
            )
            return

        self.state_manager.transition_to(S.COLLECTING_CONTACT_DETAILS)
        self._bot(CONTACT_PROMPT)

    async def _on_collecting_contact_details(self, event) -> None:
        if not isinstance(event, TextInput):
            self._unexpected(event)
            return
        await self._attempt(functools.partial(self._submit_contact_details, event.text), "send_otp")

    async def _on_verifying_otp(self, event) -> None:
        if not isinstance(event, TextInput):
            self._unexpected(event)
            return
        await self._attempt(functools.partial(self._verify_otp, event.text.strip()), "verify_otp")

    async def _on_processing_payment(self, event) -> None:
        if not isinstance(event, PayAction):
            self._unexpected(event)
            return
        await self._attempt(functools.partial(self._process_payment, event.payment_token), "charge")

    async def _on_finding_booking(self, event) -> None:
        pending = self.context.booking_being_modified
        if self.state == S.FINDING_BOOKING_TO_CANCEL and pending is not None:
            choice = self._choice_from(event, yes=Choice.CONFIRM_CANCEL, no=Choice.KEEP_BOOKING)
            if choice == Choice.CONFIRM_CANCEL:
                await self._attempt(functools.partial(self._confirm_cancellation, pending.id), "cancel")
                return
            if choice == Choice.KEEP_BOOKING:
                self._reset("cancellation aborted")
                self._bot("Cancellation aborted.")
                return

        if isinstance(event, TextInput):
            # A new lookup replaces whatever booking was shown before
            self.state_manager.update_context(booking_being_modified=None)
            await self._attempt(functools.partial(self._find_booking, event.text.strip()), "get")
        else:
            self._unexpected(event)

    def _on_auto_reset(self, event: AutoReset) -> None:
        if self.state != S.CONFIRMED or event.generation != self.state_manager.generation:
            logger.debug(f"Stale auto-reset for generation {event.generation} ignored")
            return
        self._reset("quiescence elapsed")
        self._bot(ANYTHING_ELSE_MESSAGE)

    # ------------------------------------------------------------------
    # Flow steps (bound into retry descriptors)
    # ------------------------------------------------------------------

    async def _classify(self, text: str) -> None:
        try:
            analysis = await self.classifier.classify(text)
        except BookingSystemError:
            raise
        except Exception as e:
            raise IntentClassificationError(
                f"Classifier failed: {e}",
                provider=getattr(self.classifier, "name", "unknown"),
                original_error=e,
            )

        if analysis.reply_text:
            self._bot(analysis.reply_text)

        if analysis.extracted_date is not None:
            self.state_manager.update_context(preferred_date=analysis.extracted_date)

        if analysis.intent == Intent.BOOK:
            service = self.catalog.find_service(analysis.recommended_service_id)
            if service is None:
                if analysis.recommended_service_id:
                    logger.info(
                        f"Ignoring unknown recommended service: {analysis.recommended_service_id!r}"
                    )
                await self._start_service_selection()
                return

            self.state_manager.update_context(recommended_service=service)
            self.state_manager.transition_to(S.AWAITING_SERVICE_CONFIRMATION)
            self._bot(
                f"I've selected {service.name} based on your request. Is that correct?",
                choice_buttons([Choice.ACCEPT_SERVICE, Choice.SHOW_ALL_SERVICES]),
            )
        elif analysis.intent == Intent.RESCHEDULE:
            self.state_manager.transition_to(S.FINDING_BOOKING_TO_RESCHEDULE)
            self._bot("Please provide your Booking ID (e.g., BK-1234) to proceed.")
        elif analysis.intent == Intent.CANCEL:
            self.state_manager.transition_to(S.FINDING_BOOKING_TO_CANCEL)
            self._bot("Please provide your Booking ID to cancel.")
        elif not analysis.reply_text:
            self._bot("How can I help you today?", suggestion_chips(GREETING_CHIPS))

    async def _start_service_selection(self) -> None:
        self.state_manager.transition_to(S.SELECTING_SERVICE)
        self._bot("Please select a service category:", service_list(self.catalog.services))

    async def _select_service(self, service: Optional[Service]) -> None:
        if service is None:
            self._recover(MissingContextError(["service"], operation="select_service"))
            return

        self.state_manager.update_context(service=service)
        self.state_manager.transition_to(S.SELECTING_CONSULTANT)
        self._bot(
            "Great choice. Do you have a preferred consultant?",
            consultant_list(self.catalog.consultants_for(service.id)),
        )

    async def _fetch_slots(self, target_date: date) -> None:
        consultant = self.context.consultant
        if consultant is None:
            raise MissingContextError(["consultant"], operation="get_available_slots")

        return_state = self.state
        self.state_manager.update_context(date=target_date, slot=None, available_slots=[])
        self.state_manager.transition_to(S.FETCHING_SLOTS)
        self._bot("Checking availability...")

        try:
            slots = await self.scheduling.get_available_slots(consultant.id, target_date)
        except Exception as e:
            self.state_manager.transition_to(return_state)
            if isinstance(e, BookingSystemError):
                raise
            raise SchedulingError(original_error=e)

        if not any(slot.available for slot in slots):
            self.state_manager.transition_to(return_state)
            self._bot(
                f"Sorry, {consultant.name} has no openings on {format_date_friendly(target_date)}. "
                "Please choose another date:",
                date_picker(self._today(), None),
            )
            return

        self.state_manager.update_context(available_slots=slots)
        self.state_manager.transition_to(S.SELECTING_SLOT)
        self._bot(
            f"Available slots for {consultant.name} on {format_date_friendly(target_date)}:",
            slot_grid(slots),
        )

    async def _finalize_reschedule(self, booking_id: str, new_date: date, slot: TimeSlot) -> None:
        try:
            updated = await self.store.reschedule(booking_id, new_date, slot)
        except BookingSystemError:
            raise
        except Exception as e:
            raise StoreError(f"Reschedule failed: {e}", operation="reschedule", original_error=e)

        if updated is None:
            self._reset("booking no longer active")
            self._bot(
                f"Booking {booking_id} is no longer active, so it could not be rescheduled.",
                suggestion_chips(RESTART_CHIPS),
            )
            return

        self._bot("Your appointment has been successfully rescheduled.", success_card(updated))
        self._reset("rescheduled")

    async def _submit_contact_details(self, raw_text: str) -> None:
        details = parse_contact_details(raw_text)
        self.state_manager.update_context(contact_details=details)

        try:
            sent = await self.verification.send_otp(details.phone)
        except BookingSystemError:
            raise
        except Exception as e:
            raise OtpDeliveryError(mask_phone(details.phone), original_error=e)
        if not sent:
            raise OtpDeliveryError(mask_phone(details.phone))

        self.state_manager.transition_to(S.VERIFYING_OTP)
        text = f"I've sent an OTP to {details.phone}. Please enter the code"
        if self.otp_hint:
            text += f" (Hint: use {self.otp_hint})"
        self._bot(text + ".")

    async def _verify_otp(self, code: str) -> None:
        try:
            valid = await self.verification.verify_otp(code)
        except BookingSystemError:
            raise
        except Exception as e:
            raise VerificationServiceError(original_error=e)

        if not valid:
            raise InvalidOtpError()

        service = self.context.service
        if service is None:
            raise MissingContextError(["service"], operation="verify_otp")

        self.state_manager.transition_to(S.PROCESSING_PAYMENT)
        self._bot(
            "Verification successful. Please complete the payment to confirm.",
            payment_form(service.price),
        )

    async def _process_payment(self, payment_token: str) -> None:
        missing = self.context.missing_fields()
        if missing:
            raise MissingContextError(missing, operation="charge")

        if self.context.pending_transaction_id:
            logger.info(f"Reusing transaction {self.context.pending_transaction_id} instead of charging again")
            await self._attempt(
                functools.partial(self._create_booking, self.context.pending_transaction_id), "create"
            )
            return

        amount = self.context.service.price
        try:
            result = await self.payment.charge(amount, payment_token)
        except BookingSystemError:
            raise
        except Exception as e:
            raise PaymentDeclinedError(amount, reason="Payment processing error", original_error=e)

        if not result.success:
            raise PaymentDeclinedError(amount)

        self.state_manager.update_context(pending_transaction_id=result.transaction_id)
        self._drop_retries("charge")

        # A failed save is retried on its own so the card is not charged twice
        await self._attempt(functools.partial(self._create_booking, result.transaction_id), "create")

    async def _create_booking(self, transaction_id: str) -> None:
        missing = self.context.missing_fields()
        if missing:
            raise MissingContextError(missing, operation="create")

        ctx = self.context
        data = BookingCreate(
            service=ctx.service,
            consultant=ctx.consultant,
            date=ctx.date,
            slot=ctx.slot,
            contact_details=ctx.contact_details,
            payment_id=transaction_id,
        )

        try:
            booking = await self.store.create(data)
        except BookingSystemError:
            raise
        except Exception as e:
            raise StoreError(f"Create failed: {e}", operation="create", original_error=e)

        self.state_manager.transition_to(S.CONFIRMED)
        self._bot(f"You're all set! Your booking ID is {booking.id}.", success_card(booking))
        self._schedule_auto_reset()

    async def _find_booking(self, booking_id: str) -> None:
        try:
            booking = await self.store.get(booking_id)
        except BookingSystemError:
            raise
        except Exception as e:
            raise StoreError(f"Lookup failed: {e}", operation="get", original_error=e)

        if booking is None:
            raise BookingNotFoundError(booking_id)
        if not booking.is_active:
            raise BookingNotActiveError(booking.id, booking.status.value)

        if self.state == S.FINDING_BOOKING_TO_CANCEL:
            self.state_manager.update_context(booking_being_modified=booking)
            self._bot(
                "Found your booking:",
                booking_card(
                    booking,
                    title="Cancel this booking?",
                    choices=[Choice.CONFIRM_CANCEL, Choice.KEEP_BOOKING],
                ),
            )
            return

        self.state_manager.update_context(
            booking_being_modified=booking,
            service=booking.service,
            consultant=booking.consultant,
        )
        self.state_manager.transition_to(S.SELECTING_RESCHEDULE_DATE)
        self._bot(
            f"Rescheduling for {booking.service.name} with {booking.consultant.name}. "
            "Please select a new date:",
            date_picker(self._today(), None),
        )

    async def _confirm_cancellation(self, booking_id: str) -> None:
        try:
            cancelled = await self.store.cancel(booking_id)
        except BookingSystemError:
            raise
        except Exception as e:
            raise StoreError(f"Cancel failed: {e}", operation="cancel", original_error=e)

        if not cancelled:
            self.state_manager.update_context(booking_being_modified=None)
            raise BookingNotActiveError(booking_id, "cancelled")

        self._reset("booking cancelled")
        self._bot("Your booking has been successfully cancelled. Refund initiated (if applicable).")

    # ------------------------------------------------------------------
    # Errors and retries
    # ------------------------------------------------------------------

    async def _attempt(self, operation: Callable[[], Awaitable[None]], label: str) -> None:
        """Run a flow step, turning any failure into the matching reply."""
        state_before = self.state
        try:
            await operation()
        except BookingSystemError as e:
            self._recover(e, operation=operation, label=label, retry_state=state_before)

    def _recover(
        self,
        error: BookingSystemError,
        operation: Optional[Callable[[], Awaitable[None]]] = None,
        label: str = "",
        retry_state: Optional[ConversationState] = None,
    ) -> None:
        self.error_context.conversation_state = str(self.state)
        response = handle_error_with_context(error, self.error_context, {"operation": label})
        category = response["category"]

        if category == ErrorCategory.TRANSIENT and operation is not None:
            descriptor = self._register_retry(label, operation, retry_state or self.state)
            self._bot(response["user_message"], retry_button(descriptor.retry_id, response["user_message"]))
        elif category == ErrorCategory.PRECONDITION and getattr(error, "operation", None) in ("charge", "create"):
            self._retries.clear()
            self.state_manager.enter_error_state(str(error))
            self._bot(response["user_message"])
        elif category == ErrorCategory.DEFECT:
            self._enter_errored(error)
        else:
            self._bot(response["user_message"])

    def _register_retry(
        self,
        label: str,
        operation: Callable[[], Awaitable[None]],
        state: ConversationState,
    ) -> RetryDescriptor:
        retry_id = f"retry-{next(self._retry_ids)}"
        descriptor = RetryDescriptor(retry_id=retry_id, label=label, operation=operation, state=state)
        self._retries[retry_id] = descriptor
        logger.debug(f"Registered {retry_id} for {label} in {state}")
        return descriptor

    def _drop_retries(self, label: str) -> None:
        for retry_id in [r for r, d in self._retries.items() if d.label == label]:
            del self._retries[retry_id]

    async def _retry(self, retry_id: str) -> None:
        descriptor = self._retries.get(retry_id)
        if descriptor is None or descriptor.state != self.state:
            logger.warning(f"Retry {retry_id} is no longer applicable in {self.state}")
            self._bot("That action is no longer available. " + USE_OPTIONS_MESSAGE)
            return

        del self._retries[retry_id]
        logger.info(f"Retrying {descriptor.label} ({retry_id})")
        await self._attempt(descriptor.operation, descriptor.label)

    def _enter_errored(self, error: Exception) -> None:
        logger.opt(exception=error).error(f"Unexpected failure in {self.state}")
        self._cancel_auto_reset()
        self._retries.clear()
        self.state_manager.enter_error_state(f"{type(error).__name__}: {error}")
        self._bot("I'm sorry, something went wrong on my side. Send any message to start over.")

    # ------------------------------------------------------------------
    # Resets
    # ------------------------------------------------------------------

    def _cancel_command(self) -> None:
        self._reset("cancel command")
        self._bot(
            "Operation cancelled. Is there anything else I can do?",
            suggestion_chips(RESTART_CHIPS),
        )

    def _reset(self, reason: str) -> None:
        self._cancel_auto_reset()
        self._retries.clear()
        self.state_manager.reset(reason)

    def _schedule_auto_reset(self) -> None:
        self._cancel_auto_reset()
        generation = self.state_manager.generation
        self._auto_reset_task = asyncio.create_task(self._auto_reset_after(generation))

    async def _auto_reset_after(self, generation: int) -> None:
        await asyncio.sleep(self.quiescence_seconds)
        await self._queue.put((AutoReset(generation=generation), None))

    def _cancel_auto_reset(self) -> None:
        task = self._auto_reset_task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
        self._auto_reset_task = None

    # ------------------------------------------------------------------
    # Timeline helpers
    # ------------------------------------------------------------------

    def _bot(self, text: Optional[str], widget: Optional[WidgetIntent] = None) -> Message:
        message = self.timeline.append(Sender.BOT, text, widget)
        logger.debug(
            f"Bot: {text!r}" + (f" [{widget.kind.value}]" if widget else "")
        )
        return message

    def _user(self, text: str) -> Message:
        return self.timeline.append(Sender.USER, text)

    def _echo(self, event) -> None:
        """Record the user's side of an interaction."""
        if isinstance(event, TextInput):
            self._user(event.text)
        elif isinstance(event, DateSelected):
            self._user(format_date_friendly(event.date))
        elif isinstance(event, SlotSelected):
            slot = self.context.find_slot(event.slot_id)
            self._user(f"Selected: {format_time_friendly(slot.time) if slot else event.slot_id}")
        elif isinstance(event, ServiceSelected):
            service = self.catalog.find_service(event.service_id)
            self._user(f"Selected: {service.name if service else event.service_id}")
        elif isinstance(event, ConsultantSelected):
            consultant = self.catalog.find_consultant(event.consultant_id)
            self._user(f"Selected: {consultant.name if consultant else event.consultant_id}")
        elif isinstance(event, ChoiceMade):
            self._user(CHOICE_LABELS[event.choice])
        elif isinstance(event, PayAction):
            self._user("Payment submitted.")
        elif isinstance(event, RetryRequested):
            self._user("Retry")

    @staticmethod
    def _choice_from(event, yes: Choice, no: Choice) -> Optional[Choice]:
        """Read a button press, or a typed yes/no mapped onto the two buttons."""
        if isinstance(event, ChoiceMade):
            return event.choice
        if isinstance(event, TextInput):
            text = event.text.strip().lower()
            if text in YES_WORDS:
                return yes
            if text in NO_WORDS:
                return no
        return None

    def _unexpected(self, event) -> None:
        if not isinstance(event, TextInput):
            logger.warning(f"Ignoring {event.kind} event in {self.state}")
        self._bot(USE_OPTIONS_MESSAGE)


def create_orchestrator(
    settings: Optional[Settings] = None,
    catalog: Optional[Catalog] = None,
    session_factory: Optional[sessionmaker] = None,
) -> ConversationOrchestrator:
    """
    Wire an orchestrator with the configured backends.

    Args:
        settings: Settings to use (defaults to global settings)
        catalog: Catalog to offer (defaults to the consultancy catalog)
        session_factory: Session factory for the store (defaults to the
            global one created by ``init_db``)

    Returns:
        ConversationOrchestrator ready to ``start()``
    """
    settings = settings or get_settings()
    catalog = catalog or default_catalog()

    if session_factory is None:
        init_db(settings.database_url)
        create_tables()
        session_factory = database.SessionLocal

    scale = settings.backend_latency_scale
    return ConversationOrchestrator(
        catalog=catalog,
        classifier=create_classifier(catalog, settings),
        scheduling=SchedulingService(latency_scale=scale),
        verification=VerificationService(expected_code=settings.mock_otp_code, latency_scale=scale),
        payment=PaymentService(latency_scale=scale),
        store=AppointmentStore(session_factory, latency_scale=scale),
        quiescence_seconds=settings.quiescence_seconds,
        business_name=settings.business_name,
        otp_hint=settings.mock_otp_code,
    )
