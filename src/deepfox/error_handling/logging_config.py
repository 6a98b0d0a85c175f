"""
Logging setup for the booking assistant.

The chat itself is printed to stdout, so loguru writes to stderr and to
rotating files under the log directory. Every record carries the id of the
conversation it belongs to; booking mutations also go to a separate audit
file.
"""
import re
import sys
from pathlib import Path
from typing import Optional
from loguru import logger


CONSOLE_FORMAT = "<level>{level: <8}</level> | {extra[conversation_id]} | <level>{message}</level>"

FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | "
    "{extra[conversation_id]} | {name}:{function}:{line} | {message}"
)

# environment -> (console level, write files, retention)
PRESETS = {
    "development": ("WARNING", True, "7 days"),
    "production": ("ERROR", True, "90 days"),
    "test": ("WARNING", False, None),
}


def _is_booking_record(record) -> bool:
    return record["extra"].get("category") == "BOOKING"


def init_logging(
    environment: str = "development",
    log_level: Optional[str] = None,
    log_dir: str = "logs",
) -> None:
    """
    Configure loguru sinks for the given environment.

    The console level is kept high by default so log lines do not interleave
    with the chat; log_level overrides it. File sinks always record DEBUG.

    Args:
        environment: "development", "production" or "test"
        log_level: Console level override
        log_dir: Directory for the rotating log files
    """
    console_level, to_files, retention = PRESETS.get(environment, PRESETS["development"])
    console_level = log_level or console_level

    logger.remove()
    logger.configure(extra={"conversation_id": "-"})

    logger.add(
        sys.stderr,
        format=CONSOLE_FORMAT,
        level=console_level,
        colorize=True,
        backtrace=True,
        diagnose=False
    )

    if to_files:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)

        logger.add(
            log_path / "deepfox_{time:YYYY-MM-DD}.log",
            format=FILE_FORMAT,
            level="DEBUG",
            rotation="50 MB",
            retention=retention,
            compression="zip",
            diagnose=False
        )

        logger.add(
            log_path / "bookings_{time:YYYY-MM-DD}.log",
            format=FILE_FORMAT,
            level="INFO",
            rotation="1 day",
            retention="1 year",
            filter=_is_booking_record
        )

    logger.info(
        f"Logging initialized: environment={environment}, "
        f"console_level={console_level}, files={to_files}"
    )


def mask_phone(phone: Optional[str]) -> str:
    """Mask all but the last two digits of a phone number."""
    if not phone:
        return "***"
    digits = re.sub(r"\D", "", phone)
    if len(digits) <= 2:
        return "***"
    return "*" * (len(digits) - 2) + digits[-2:]


def log_booking_event(
    event_type: str,
    booking_id: Optional[str] = None,
    details: Optional[dict] = None
) -> None:
    """
    Write an audit record for a booking mutation.

    Args:
        event_type: "CREATED", "RESCHEDULED" or "CANCELLED"
        booking_id: Booking reference (BK-...)
        details: Fields worth keeping in the audit trail. Never contact details.
    """
    logger.bind(category="BOOKING").info(
        f"BOOKING {event_type} | booking_id={booking_id} | details={details or {}}"
    )


def log_conversation_event(
    event_type: str,
    state: Optional[str] = None,
    details: Optional[dict] = None
) -> None:
    """Log a state change or reset of the conversation."""
    logger.bind(category="CONVERSATION").debug(
        f"CONVERSATION {event_type} | state={state} | details={details or {}}"
    )


class LogContext:
    """
    Tag every log record inside the block with the given fields.

    Example:
        with LogContext(conversation_id="conv-3f2a"):
            await orchestrator.handle(event)
    """

    def __init__(self, **context):
        self.context = context
        self._token = None

    def __enter__(self):
        self._token = logger.contextualize(**self.context)
        self._token.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._token:
            self._token.__exit__(exc_type, exc_val, exc_tb)
