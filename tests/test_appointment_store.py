"""
Unit tests for the appointment store.

Tests:
- Creating bookings assigns BK- ids and CONFIRMED status
- Looking bookings up by id
- Cancelling is strict: only confirmed bookings can be cancelled
- Rescheduling changes only date and slot
- Concurrent writes to the same booking are serialized
- Database failures surface as DatabaseError
"""
import asyncio
from datetime import timedelta
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from deepfox.error_handling.exceptions import DatabaseError
from deepfox.models.database import BookingRecord, parse_booking_id
from deepfox.models.schemas import BookingCreate, BookingStatus, TimeSlot
from deepfox.services.appointment_store import LOCK_STRIPES, AppointmentStore


class TestCreateBooking:
    """Test storing new bookings."""

    @pytest.mark.asyncio
    async def test_create_assigns_id_and_confirmed_status(self, store: AppointmentStore, booking_create: BookingCreate):
        """Test a new booking gets a BK- id and starts CONFIRMED."""
        booking = await store.create(booking_create)

        assert booking.id.startswith("BK-")
        assert booking.status == BookingStatus.CONFIRMED
        assert booking.is_active
        assert booking.payment_id == "txn_test"
        assert booking.service.id == "financial"
        assert booking.consultant.id == "c1"
        assert booking.slot.time == "11:00"
        assert booking.contact_details.email == "wade@xforce.com"
        assert booking.created_at is not None

    @pytest.mark.asyncio
    async def test_create_assigns_distinct_ids(self, store: AppointmentStore, booking_create: BookingCreate):
        """Test every booking gets its own id."""
        first = await store.create(booking_create)
        second = await store.create(booking_create)

        assert first.id != second.id

    @pytest.mark.asyncio
    async def test_create_persists_record(self, store: AppointmentStore, booking_create: BookingCreate, session_factory):
        """Test the booking row is written to the database."""
        booking = await store.create(booking_create)

        session = session_factory()
        try:
            record = session.get(BookingRecord, parse_booking_id(booking.id))
            assert record is not None
            assert record.status == BookingStatus.CONFIRMED
            assert record.contact_phone == "555-0100"
        finally:
            session.close()


class TestGetBooking:
    """Test looking up bookings."""

    @pytest.mark.asyncio
    async def test_get_existing_booking(self, store: AppointmentStore, stored_booking):
        """Test a stored booking can be fetched by id."""
        found = await store.get(stored_booking.id)

        assert found is not None
        assert found.id == stored_booking.id
        assert found.date == stored_booking.date

    @pytest.mark.asyncio
    async def test_get_is_case_insensitive(self, store: AppointmentStore, stored_booking):
        """Test ids are matched regardless of case and padding."""
        found = await store.get(f"  {stored_booking.id.lower()} ")

        assert found is not None
        assert found.id == stored_booking.id

    @pytest.mark.asyncio
    @pytest.mark.parametrize("booking_id", ["BK-9999", "BK-", "1234", "", "hello"])
    async def test_get_unknown_or_malformed_id(self, store: AppointmentStore, booking_id):
        """Test unknown and malformed ids return None."""
        assert await store.get(booking_id) is None


class TestCancelBooking:
    """Test cancelling bookings."""

    @pytest.mark.asyncio
    async def test_cancel_confirmed_booking(self, store: AppointmentStore, stored_booking):
        """Test cancelling moves the booking to CANCELLED but keeps it retrievable."""
        assert await store.cancel(stored_booking.id) is True

        found = await store.get(stored_booking.id)
        assert found is not None
        assert found.status == BookingStatus.CANCELLED
        assert not found.is_active

    @pytest.mark.asyncio
    async def test_cancel_twice_is_rejected(self, store: AppointmentStore, stored_booking):
        """Test a cancelled booking cannot be cancelled again."""
        assert await store.cancel(stored_booking.id) is True
        assert await store.cancel(stored_booking.id) is False

    @pytest.mark.asyncio
    async def test_cancel_unknown_booking(self, store: AppointmentStore):
        """Test cancelling a missing booking reports not-found."""
        assert await store.cancel("BK-424242") is False


class TestRescheduleBooking:
    """Test moving bookings to a new date and slot."""

    @pytest.mark.asyncio
    async def test_reschedule_changes_only_date_and_slot(self, store: AppointmentStore, stored_booking):
        """Test id, service, consultant, contact, status and payment survive."""
        new_date = stored_booking.date + timedelta(days=1)
        new_slot = TimeSlot(id="s5", time="15:00", available=True)

        updated = await store.reschedule(stored_booking.id, new_date, new_slot)

        assert updated is not None
        assert updated.date == new_date
        assert updated.slot.id == "s5"
        assert updated.slot.time == "15:00"
        assert updated.id == stored_booking.id
        assert updated.service == stored_booking.service
        assert updated.consultant == stored_booking.consultant
        assert updated.contact_details == stored_booking.contact_details
        assert updated.status == BookingStatus.CONFIRMED
        assert updated.payment_id == stored_booking.payment_id

        found = await store.get(stored_booking.id)
        assert found.date == new_date
        assert found.slot.id == "s5"

    @pytest.mark.asyncio
    async def test_reschedule_cancelled_booking_is_rejected(self, store: AppointmentStore, stored_booking):
        """Test a cancelled booking cannot be rescheduled."""
        await store.cancel(stored_booking.id)

        updated = await store.reschedule(
            stored_booking.id,
            stored_booking.date + timedelta(days=1),
            TimeSlot(id="s1", time="09:00", available=True),
        )

        assert updated is None
        found = await store.get(stored_booking.id)
        assert found.date == stored_booking.date

    @pytest.mark.asyncio
    async def test_reschedule_unknown_booking(self, store: AppointmentStore, next_monday):
        """Test rescheduling a missing booking returns None."""
        updated = await store.reschedule("BK-31337", next_monday, TimeSlot(id="s1", time="09:00", available=True))
        assert updated is None


class TestConcurrentWrites:
    """Test writes to one booking are linearizable."""

    @pytest.mark.asyncio
    async def test_concurrent_cancels_succeed_once(self, store: AppointmentStore, stored_booking):
        """Test only one of several simultaneous cancels wins."""
        results = await asyncio.gather(*(store.cancel(stored_booking.id) for _ in range(5)))

        assert results.count(True) == 1
        assert results.count(False) == 4

    @pytest.mark.asyncio
    async def test_cancel_and_reschedule_race(self, store: AppointmentStore, stored_booking):
        """Test a cancel racing a reschedule leaves a consistent booking."""
        new_date = stored_booking.date + timedelta(days=2)
        cancelled, updated = await asyncio.gather(
            store.cancel(stored_booking.id),
            store.reschedule(stored_booking.id, new_date, TimeSlot(id="s6", time="16:00", available=True)),
        )

        found = await store.get(stored_booking.id)
        assert cancelled is True
        assert found.status == BookingStatus.CANCELLED
        if updated is not None:
            assert found.date == new_date
        else:
            assert found.date == stored_booking.date

    @pytest.mark.asyncio
    async def test_lock_table_does_not_grow(self, store: AppointmentStore, booking_create: BookingCreate):
        """Test cancelling many bookings reuses a fixed set of locks."""
        bookings = [await store.create(booking_create) for _ in range(LOCK_STRIPES + 6)]

        for booking in bookings:
            assert await store.cancel(booking.id) is True

        assert len(store._locks) == LOCK_STRIPES
        first_key = parse_booking_id(bookings[0].id)
        assert store._lock_for(first_key) is store._lock_for(first_key + LOCK_STRIPES)


class TestDatabaseFailures:
    """Test SQLAlchemy errors become typed store errors."""

    @pytest.mark.asyncio
    async def test_database_error_is_wrapped(self, session_factory, booking_create: BookingCreate):
        """Test a failing session surfaces as DatabaseError with the operation name."""
        store = AppointmentStore(session_factory, latency_scale=0)

        with patch(
            "deepfox.services.appointment_store.session_scope",
            side_effect=OperationalError("INSERT", {}, Exception("disk I/O error")),
        ):
            with pytest.raises(DatabaseError) as exc_info:
                await store.create(booking_create)

        assert exc_info.value.operation == "create"
