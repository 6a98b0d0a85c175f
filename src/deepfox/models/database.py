"""
SQLAlchemy database models and session management for the appointment store.
"""
from contextlib import contextmanager
from datetime import datetime
from typing import Generator, Optional
from loguru import logger

from sqlalchemy import (
    create_engine,
    Column,
    Integer,
    String,
    Float,
    Boolean,
    Date,
    DateTime,
    Enum,
    Index,
)
from sqlalchemy.orm import declarative_base, Session, sessionmaker
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from .schemas import (
    Booking,
    BookingCreate,
    BookingStatus,
    Consultant,
    ContactDetails,
    Service,
    TimeSlot,
)

BOOKING_ID_PREFIX = "BK-"

# Create declarative base
Base = declarative_base()

# Database engine and session factory (initialized by init_db)
engine: Engine | None = None
SessionLocal: sessionmaker | None = None


class BookingRecord(Base):
    """
    Persisted booking.

    Service, consultant and slot are stored as snapshots taken at booking
    time so a record stays readable if the catalog changes.
    """
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, autoincrement=True)

    service_id = Column(String(64), nullable=False)
    service_name = Column(String(255), nullable=False)
    service_price = Column(Float, nullable=False)

    consultant_id = Column(String(64), nullable=False)
    consultant_name = Column(String(255), nullable=False)

    date = Column(Date, nullable=False)
    slot_id = Column(String(64), nullable=False)
    slot_time = Column(String(5), nullable=False)
    slot_available = Column(Boolean, nullable=False, default=True)

    contact_name = Column(String(255), nullable=False)
    contact_email = Column(String(255), nullable=False)
    contact_phone = Column(String(50), nullable=False)

    status = Column(
        Enum(BookingStatus, name="booking_status"),
        nullable=False,
        default=BookingStatus.CONFIRMED,
    )
    payment_id = Column(String(128), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_booking_consultant_date", "consultant_id", "date"),
    )

    @property
    def reference(self) -> str:
        """Public booking id, e.g. ``BK-7``."""
        return f"{BOOKING_ID_PREFIX}{self.id}"

    @classmethod
    def from_create(cls, data: BookingCreate) -> "BookingRecord":
        return cls(
            service_id=data.service.id,
            service_name=data.service.name,
            service_price=data.service.price,
            consultant_id=data.consultant.id,
            consultant_name=data.consultant.name,
            date=data.date,
            slot_id=data.slot.id,
            slot_time=data.slot.time,
            slot_available=data.slot.available,
            contact_name=data.contact_details.name,
            contact_email=data.contact_details.email,
            contact_phone=data.contact_details.phone,
            status=BookingStatus.CONFIRMED,
            payment_id=data.payment_id,
        )

    def to_domain(self) -> Booking:
        """Convert the row to the pydantic ``Booking`` model."""
        return Booking(
            id=self.reference,
            service=Service(id=self.service_id, name=self.service_name, price=self.service_price),
            consultant=Consultant(
                id=self.consultant_id,
                name=self.consultant_name,
                service_id=self.service_id,
            ),
            date=self.date,
            slot=TimeSlot(id=self.slot_id, time=self.slot_time, available=self.slot_available),
            contact_details=ContactDetails(
                name=self.contact_name,
                email=self.contact_email,
                phone=self.contact_phone,
            ),
            status=self.status,
            payment_id=self.payment_id,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    def __repr__(self) -> str:
        return (
            f"<BookingRecord(id={self.reference}, service_id='{self.service_id}', "
            f"consultant_id='{self.consultant_id}', date={self.date}, "
            f"slot_time='{self.slot_time}', status='{self.status}')>"
        )


def parse_booking_id(booking_id: str) -> Optional[int]:
    """
    Extract the integer key from a ``BK-<n>`` booking id.

    Returns:
        The integer key, or None if the id is malformed
    """
    if not booking_id:
        return None
    value = booking_id.strip().upper()
    if not value.startswith(BOOKING_ID_PREFIX):
        return None
    number = value[len(BOOKING_ID_PREFIX):]
    if not number.isdigit():
        return None
    return int(number)


def build_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create an engine suitable for the given URL.

    SQLite connections are shared across worker threads, and in-memory
    databases use a single static connection so every session sees the
    same data.

    Args:
        database_url: SQLAlchemy database URL
        echo: Log emitted SQL

    Returns:
        SQLAlchemy Engine instance
    """
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url or database_url in ("sqlite://", "sqlite:///"):
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, echo=echo, **kwargs)

    return create_engine(
        database_url,
        echo=echo,
        pool_pre_ping=True,  # Enable connection health checks
        pool_size=5,
        max_overflow=10,
    )


def create_session_factory(bind: Engine) -> sessionmaker:
    """Create a session factory bound to an engine."""
    return sessionmaker(
        bind=bind,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )


def init_db(database_url: str | None = None) -> Engine:
    """
    Initialize database engine and session factory.

    Args:
        database_url: Optional database connection string. If not provided,
                     the configured DATABASE_URL is used.

    Returns:
        SQLAlchemy Engine instance
    """
    global engine, SessionLocal

    if database_url is None:
        from ..config import get_settings
        database_url = get_settings().database_url

    engine = build_engine(database_url)
    SessionLocal = create_session_factory(engine)

    logger.info(f"Database initialized: {engine.url.render_as_string(hide_password=True)}")
    return engine


def create_tables() -> None:
    """
    Create all tables in the database.

    Raises:
        RuntimeError: If database engine is not initialized
    """
    if engine is None:
        raise RuntimeError("Database engine not initialized. Call init_db() first.")

    Base.metadata.create_all(bind=engine)


@contextmanager
def session_scope(factory: sessionmaker) -> Generator[Session, None, None]:
    """
    Transactional scope around a series of operations.

    Commits on success, rolls back on any exception and always closes.
    """
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@contextmanager
def get_db_session() -> Generator[Session, None, None]:
    """
    Context manager for database sessions with automatic cleanup.

    Yields:
        SQLAlchemy Session instance

    Example:
        with get_db_session() as session:
            record = session.query(BookingRecord).first()

    Raises:
        RuntimeError: If session factory is not initialized
    """
    if SessionLocal is None:
        raise RuntimeError("Session factory not initialized. Call init_db() first.")

    with session_scope(SessionLocal) as session:
        yield session
