"""
Models package - pydantic domain models, the service catalog and the
SQLAlchemy booking table.
"""
from .schemas import (
    Service,
    Consultant,
    TimeSlot,
    ContactDetails,
    BookingStatus,
    Booking,
    BookingCreate,
    PaymentResult,
)

from .catalog import Catalog, default_catalog

from .database import (
    Base,
    BookingRecord,
    build_engine,
    create_session_factory,
    init_db,
    create_tables,
    get_db_session,
    session_scope,
    parse_booking_id,
)

__all__ = [
    # Pydantic schemas
    "Service",
    "Consultant",
    "TimeSlot",
    "ContactDetails",
    "BookingStatus",
    "Booking",
    "BookingCreate",
    "PaymentResult",
    # Catalog
    "Catalog",
    "default_catalog",
    # Database
    "Base",
    "BookingRecord",
    "build_engine",
    "create_session_factory",
    "init_db",
    "create_tables",
    "get_db_session",
    "session_scope",
    "parse_booking_id",
]
