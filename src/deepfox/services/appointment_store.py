"""
AppointmentStore - persistence of bookings.

This service handles:
- Booking creation with id assignment
- Lookup by booking id (cancelled bookings stay retrievable)
- Cancellation (CONFIRMED -> CANCELLED only)
- Rescheduling (date and slot of a CONFIRMED booking)

Blocking SQLAlchemy work runs in a worker thread. Mutations of one booking
are serialized by a striped lock table (one lock per id modulo
LOCK_STRIPES) so concurrent conversations cannot interleave a cancel and a
reschedule of the same booking.
"""
import asyncio
import threading
from datetime import date, datetime
from typing import Callable, List, Optional, TypeVar
from sqlalchemy.orm import sessionmaker
from sqlalchemy.exc import SQLAlchemyError
from loguru import logger

from ..models.database import BookingRecord, parse_booking_id, session_scope
from ..models.schemas import Booking, BookingCreate, BookingStatus, TimeSlot
from ..error_handling.exceptions import DatabaseError
from ..error_handling.handlers import log_backend_call
from ..error_handling.logging_config import log_booking_event

T = TypeVar("T")

WRITE_LATENCY_SECONDS = 1.0
READ_LATENCY_SECONDS = 0.8

LOCK_STRIPES = 64


class AppointmentStore:
    """
    Booking CRUD over a SQLAlchemy session factory.

    Args:
        session_factory: sessionmaker bound to an engine with the bookings table
        latency_scale: Multiplier for the simulated round-trip delay
    """

    def __init__(self, session_factory: sessionmaker, latency_scale: float = 1.0):
        self._session_factory = session_factory
        self.latency_scale = latency_scale
        self._locks: List[threading.Lock] = [threading.Lock() for _ in range(LOCK_STRIPES)]

    def _lock_for(self, key: int) -> threading.Lock:
        return self._locks[key % LOCK_STRIPES]

    async def _run(self, operation: str, latency: float, func: Callable[[], T]) -> T:
        if self.latency_scale > 0:
            await asyncio.sleep(latency * self.latency_scale)
        try:
            return await asyncio.to_thread(func)
        except SQLAlchemyError as e:
            logger.error(f"Database error during {operation}: {e}")
            raise DatabaseError(
                f"Database operation failed: {operation}",
                operation=operation,
                original_error=e,
            )

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    @log_backend_call("store.create")
    async def create(self, data: BookingCreate) -> Booking:
        """
        Persist a new booking with status CONFIRMED.

        Args:
            data: Validated booking fields

        Returns:
            The stored Booking with its assigned ``BK-`` id

        Raises:
            DatabaseError: If the insert fails
        """
        def _create() -> Booking:
            with session_scope(self._session_factory) as session:
                record = BookingRecord.from_create(data)
                session.add(record)
                session.flush()
                return record.to_domain()

        booking = await self._run("create", WRITE_LATENCY_SECONDS, _create)

        log_booking_event("CREATED", booking.id, {
            "service": booking.service.id,
            "consultant": booking.consultant.id,
            "date": booking.date.isoformat(),
            "time": booking.slot.time,
            "payment_id": booking.payment_id,
        })
        return booking

    @log_backend_call("store.get")
    async def get(self, booking_id: str) -> Optional[Booking]:
        """
        Look up a booking by id.

        Args:
            booking_id: ``BK-<n>`` identifier (case-insensitive)

        Returns:
            The booking in any status, or None if no such booking exists
        """
        key = parse_booking_id(booking_id)

        def _get() -> Optional[Booking]:
            if key is None:
                return None
            with session_scope(self._session_factory) as session:
                record = session.get(BookingRecord, key)
                return record.to_domain() if record else None

        booking = await self._run("get", READ_LATENCY_SECONDS, _get)
        if booking is None:
            logger.info(f"Booking lookup miss: {booking_id!r}")
        return booking

    @log_backend_call("store.cancel")
    async def cancel(self, booking_id: str) -> bool:
        """
        Cancel a confirmed booking.

        Cancelling an unknown or already-cancelled booking changes nothing
        and reports not-found.

        Args:
            booking_id: ``BK-<n>`` identifier

        Returns:
            True if the booking moved to CANCELLED
        """
        key = parse_booking_id(booking_id)

        def _cancel() -> bool:
            if key is None:
                return False
            with self._lock_for(key):
                with session_scope(self._session_factory) as session:
                    record = (
                        session.query(BookingRecord)
                        .filter(BookingRecord.id == key)
                        .with_for_update()
                        .first()
                    )
                    if record is None or record.status != BookingStatus.CONFIRMED:
                        return False
                    record.status = BookingStatus.CANCELLED
                    record.updated_at = datetime.utcnow()
                    return True

        cancelled = await self._run("cancel", WRITE_LATENCY_SECONDS, _cancel)

        if cancelled:
            log_booking_event("CANCELLED", booking_id.strip().upper())
        else:
            logger.info(f"Cancel rejected for {booking_id!r}: not found or not confirmed")
        return cancelled

    @log_backend_call("store.reschedule")
    async def reschedule(self, booking_id: str, new_date: date, new_slot: TimeSlot) -> Optional[Booking]:
        """
        Move a confirmed booking to a new date and slot.

        Only ``date`` and ``slot`` change; id, service, consultant, status
        and payment are kept.

        Args:
            booking_id: ``BK-<n>`` identifier
            new_date: New appointment date
            new_slot: New time slot

        Returns:
            The updated booking, or None if it does not exist or is cancelled
        """
        key = parse_booking_id(booking_id)

        def _reschedule() -> Optional[Booking]:
            if key is None:
                return None
            with self._lock_for(key):
                with session_scope(self._session_factory) as session:
                    record = (
                        session.query(BookingRecord)
                        .filter(BookingRecord.id == key)
                        .with_for_update()
                        .first()
                    )
                    if record is None or record.status != BookingStatus.CONFIRMED:
                        return None
                    record.date = new_date
                    record.slot_id = new_slot.id
                    record.slot_time = new_slot.time
                    record.slot_available = new_slot.available
                    record.updated_at = datetime.utcnow()
                    session.flush()
                    return record.to_domain()

        booking = await self._run("reschedule", WRITE_LATENCY_SECONDS, _reschedule)

        if booking is not None:
            log_booking_event("RESCHEDULED", booking.id, {
                "date": new_date.isoformat(),
                "time": new_slot.time,
            })
        else:
            logger.info(f"Reschedule rejected for {booking_id!r}: not found or not confirmed")
        return booking
