"""
Services package - the backend contracts the conversation depends on.
"""
from .scheduling_service import SchedulingService, is_business_day
from .verification_service import VerificationService
from .payment_service import PaymentService
from .appointment_store import AppointmentStore

__all__ = [
    "SchedulingService",
    "is_business_day",
    "VerificationService",
    "PaymentService",
    "AppointmentStore",
]
