"""
Pydantic models for data validation and serialization.
"""
import re
from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator, ConfigDict


EMAIL_PATTERN = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
PHONE_PATTERN = r'^\+?\d{7,15}$'


class Service(BaseModel):
    """
    A bookable consultancy service.
    """
    id: str = Field(..., min_length=1, description="Catalog identifier")
    name: str = Field(..., min_length=1, description="Display name")
    description: str = Field(default="", description="Short description")
    icon: str = Field(default="", description="Icon name for the renderer")
    price: float = Field(..., ge=0, description="Price charged at booking")

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "id": "financial",
                "name": "Financial Consulting",
                "description": "Tax filing, audits, and investment strategies.",
                "icon": "Calculator",
                "price": 150
            }
        }
    )


class Consultant(BaseModel):
    """
    A consultant offering exactly one service.
    """
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    specialty: str = Field(default="")
    service_id: str = Field(..., min_length=1, description="Service this consultant provides")
    avatar_url: str = Field(default="")

    model_config = ConfigDict(frozen=True)


class TimeSlot(BaseModel):
    """
    One candidate appointment time on a given day.

    ``time`` is HH:MM local to the business.
    """
    id: str
    time: str = Field(..., pattern=r'^\d{2}:\d{2}$')
    available: bool

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {"id": "s3", "time": "11:00", "available": True}
        }
    )


class ContactDetails(BaseModel):
    """
    Contact details collected before verification.
    """
    name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., max_length=255)
    phone: str = Field(..., min_length=7, max_length=50)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Validate name is not empty after stripping whitespace."""
        if not v.strip():
            raise ValueError("Name cannot be empty")
        return v.strip()

    @field_validator("email")
    @classmethod
    def validate_email_format(cls, v: str) -> str:
        """Validate email format."""
        v = v.strip()
        if not re.match(EMAIL_PATTERN, v):
            raise ValueError("Invalid email format")
        return v

    @field_validator("phone")
    @classmethod
    def validate_phone_format(cls, v: str) -> str:
        """
        Validate phone number format.
        Accepts formats like: +1234567890, (123) 456-7890, 555-0100
        """
        v = v.strip()
        cleaned = re.sub(r'[\s\-\(\)\.]', '', v)

        if not re.match(PHONE_PATTERN, cleaned):
            raise ValueError(
                "Phone number must contain 7-15 digits and may include spaces, "
                "dashes, parentheses, or a leading +"
            )

        return v

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "name": "Wade Wilson",
                "email": "wade@xforce.com",
                "phone": "555-0100"
            }
        }
    )


class BookingStatus(str, Enum):
    """Lifecycle of a booking. Only CONFIRMED -> CANCELLED is allowed."""

    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"

    def __str__(self) -> str:
        return self.value


class Booking(BaseModel):
    """
    A booking as returned by the appointment store.
    """
    id: str = Field(..., pattern=r'^BK-\d+$')
    service: Service
    consultant: Consultant
    date: date
    slot: TimeSlot
    contact_details: ContactDetails
    status: BookingStatus = BookingStatus.CONFIRMED
    payment_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status == BookingStatus.CONFIRMED

    model_config = ConfigDict(
        from_attributes=True,
        json_schema_extra={
            "example": {
                "id": "BK-1042",
                "service": {"id": "financial", "name": "Financial Consulting", "price": 150},
                "consultant": {"id": "c1", "name": "Alice Johnson", "service_id": "financial"},
                "date": "2025-03-04",
                "slot": {"id": "s3", "time": "11:00", "available": True},
                "contact_details": {
                    "name": "Wade Wilson",
                    "email": "wade@xforce.com",
                    "phone": "555-0100"
                },
                "status": "CONFIRMED",
                "payment_id": "txn_4f9a1c2b7"
            }
        }
    )


class BookingCreate(BaseModel):
    """
    Pydantic model for validating a booking about to be stored.
    """
    service: Service
    consultant: Consultant
    date: date
    slot: TimeSlot
    contact_details: ContactDetails
    payment_id: Optional[str] = Field(None, description="Transaction id of the charge")

    @field_validator("consultant")
    @classmethod
    def validate_consultant_offers_service(cls, v: Consultant, info) -> Consultant:
        """Validate the consultant provides the selected service."""
        service = info.data.get("service")
        if service is not None and v.service_id != service.id:
            raise ValueError(
                f"Consultant {v.id} does not offer service {service.id}"
            )
        return v


class PaymentResult(BaseModel):
    """
    Outcome of a charge. ``transaction_id`` is non-empty only on success.
    """
    success: bool
    transaction_id: str = ""
    amount: float = 0

    @field_validator("transaction_id")
    @classmethod
    def validate_transaction_id(cls, v: str, info) -> str:
        success = info.data.get("success")
        if success and not v:
            raise ValueError("Successful charges must carry a transaction id")
        if not success and v:
            raise ValueError("Failed charges cannot carry a transaction id")
        return v
