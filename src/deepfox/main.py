"""
Main entry point for the Deep Fox booking assistant.

Runs the conversation in a terminal. Widgets are printed as numbered
options; typing a number sends the matching selection back to the
orchestrator, anything else is sent as free text.
"""
import asyncio
import sys
from datetime import date, timedelta
from typing import List, Optional

from dotenv import load_dotenv
from loguru import logger

from .agent.orchestrator import ConversationOrchestrator, create_orchestrator
from .config import get_settings
from .conversation.events import (
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
from .conversation.messages import Message, Sender, WidgetIntent, WidgetKind
from .error_handling.error_messages import format_date_long, format_time_friendly
from .error_handling.logging_config import init_logging

EXIT_WORDS = {"quit", "exit"}


class ConsoleRenderer:
    """
    Prints timeline messages and maps console input to events.

    Only the most recent interactive widget is selectable.
    """

    def __init__(self, today=date.today):
        self._today = today
        self._options: List[UserEvent] = []
        self._widget: Optional[WidgetIntent] = None
        self._retry_id: Optional[str] = None

    def render(self, messages) -> None:
        for message in messages:
            self._render_message(message)

    def _render_message(self, message: Message) -> None:
        if message.sender == Sender.USER:
            return

        if message.text:
            print(f"\nDeep Fox: {message.text}")

        widget = message.widget
        if widget is None:
            return

        payload = widget.payload
        options: List[UserEvent] = []
        lines: List[str] = []

        if widget.kind == WidgetKind.SERVICE_LIST:
            for s in payload["services"]:
                options.append(ServiceSelected(service_id=s["id"]))
                lines.append(f"{s['name']} (${s['price']:.0f}) - {s['description']}")
        elif widget.kind == WidgetKind.CONSULTANT_LIST:
            for c in payload["consultants"]:
                options.append(ConsultantSelected(consultant_id=c["id"]))
                lines.append(f"{c['name']}, {c['specialty']}")
        elif widget.kind == WidgetKind.SLOT_GRID:
            for s in payload["slots"]:
                if s["available"]:
                    options.append(SlotSelected(slot_id=s["id"]))
                    lines.append(format_time_friendly(s["time"]))
                else:
                    print(f"     {format_time_friendly(s['time'])} (booked)")
        elif widget.kind == WidgetKind.DATE_PICKER:
            start = date.fromisoformat(payload["min_date"])
            for offset in range(7):
                day = start + timedelta(days=offset)
                options.append(DateSelected(date=day))
                lines.append(format_date_long(day))
            print("     (or type a date as YYYY-MM-DD)")
        elif widget.kind in (WidgetKind.CHOICE_BUTTONS, WidgetKind.BOOKING_CARD):
            if widget.kind == WidgetKind.BOOKING_CARD:
                self._print_booking(payload["booking"], payload.get("title"))
            for option in payload["options"]:
                options.append(ChoiceMade(choice=Choice(option["choice"])))
                lines.append(option["label"])
        elif widget.kind == WidgetKind.SUGGESTION_CHIPS:
            for label in payload["options"]:
                options.append(TextInput(text=label))
                lines.append(label)
        elif widget.kind == WidgetKind.PAYMENT_FORM:
            print(f"     Amount due: ${payload['amount']:.2f}")
            print("     Type 'pay' to submit the card on file, or 'pay <token>' to use a token.")
        elif widget.kind == WidgetKind.RETRY_BUTTON:
            self._retry_id = payload["retry_id"]
            print("     Type 'retry' to try again.")
        elif widget.kind == WidgetKind.SUCCESS_CARD:
            self._print_booking(payload["booking"], "Booking confirmed")

        for number, line in enumerate(lines, start=1):
            print(f"  {number}. {line}")

        if widget.kind not in (WidgetKind.RETRY_BUTTON, WidgetKind.SUCCESS_CARD):
            self._widget = widget
            self._options = options

    @staticmethod
    def _print_booking(booking: dict, title: Optional[str]) -> None:
        if title:
            print(f"  == {title} ==")
        print(f"     ID:         {booking['id']}")
        print(f"     Service:    {booking['service']['name']}")
        print(f"     Consultant: {booking['consultant']['name']}")
        print(f"     Date:       {booking['date']} at {format_time_friendly(booking['slot']['time'])}")
        print(f"     Status:     {booking['status']}")

    def parse(self, raw: str) -> UserEvent:
        """Turn one line of console input into an event."""
        text = raw.strip()
        lowered = text.lower()

        if lowered == "retry" and self._retry_id:
            return RetryRequested(retry_id=self._retry_id)

        if self._widget is not None and self._widget.kind == WidgetKind.PAYMENT_FORM:
            if lowered == "pay":
                return PayAction()
            if lowered.startswith("pay "):
                return PayAction(payment_token=text[4:].strip())

        if text.isdigit() and self._options:
            index = int(text) - 1
            if 0 <= index < len(self._options):
                return self._options[index]

        if self._widget is not None and self._widget.kind == WidgetKind.DATE_PICKER:
            try:
                return DateSelected(date=date.fromisoformat(text))
            except ValueError:
                pass

        return TextInput(text=text)


async def run_console(orchestrator: ConversationOrchestrator) -> None:
    """
    Chat loop: print new messages, read a line, hand it to the orchestrator.
    """
    renderer = ConsoleRenderer()
    seen = 0

    await orchestrator.start()

    try:
        while True:
            renderer.render(orchestrator.timeline.since(seen))
            seen = len(orchestrator.timeline)

            try:
                raw = await asyncio.to_thread(input, "\nYou: ")
            except EOFError:
                break

            if raw.strip().lower() in EXIT_WORDS:
                break
            if not raw.strip():
                continue

            await orchestrator.handle(renderer.parse(raw))
    finally:
        await orchestrator.aclose()


def main() -> int:
    """
    Main entry point for the console booking assistant.
    """
    load_dotenv()
    settings = get_settings()
    init_logging(settings.environment, settings.log_level, settings.log_dir)

    logger.info("=" * 80)
    logger.info(f"{settings.business_name} booking assistant")
    logger.info("=" * 80)

    try:
        orchestrator = create_orchestrator(settings)
        asyncio.run(run_console(orchestrator))
        return 0

    except KeyboardInterrupt:
        logger.info("Application interrupted by user")
        return 130

    except Exception as e:
        logger.opt(exception=e).error(f"Unexpected error: {e}")
        return 3

    finally:
        logger.info("Application shutting down...")


def run() -> None:
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
