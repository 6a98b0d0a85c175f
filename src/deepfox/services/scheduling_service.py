"""
SchedulingService - slot availability per consultant and date.

The consultancy works weekdays only. Each working day offers the same six
candidate times; a few of them are contended and come back unavailable
at random, so two queries for the same consultant and day may differ.
"""
import asyncio
import random
from datetime import date
from typing import List, Optional, Tuple
from loguru import logger

from ..models.schemas import TimeSlot
from ..error_handling.handlers import log_backend_call


# (slot id, HH:MM, probability the slot is free)
SLOT_TEMPLATE: Tuple[Tuple[str, str, float], ...] = (
    ("s1", "09:00", 1.0),
    ("s2", "10:00", 0.7),
    ("s3", "11:00", 1.0),
    ("s4", "14:00", 0.5),
    ("s5", "15:00", 1.0),
    ("s6", "16:00", 1.0),
)

WEEKEND_DAYS = (5, 6)  # Saturday, Sunday

BASE_LATENCY_SECONDS = 0.8


def is_business_day(target_date: date) -> bool:
    """Return True unless the date falls on a Saturday or Sunday."""
    return target_date.weekday() not in WEEKEND_DAYS


class SchedulingService:
    """
    Computes available time slots.

    Args:
        rng: Random source for contended slots (inject a seeded one in tests)
        latency_scale: Multiplier for the simulated lookup delay
    """

    def __init__(self, rng: Optional[random.Random] = None, latency_scale: float = 1.0):
        self._rng = rng or random.Random()
        self.latency_scale = latency_scale

    @log_backend_call("get_available_slots")
    async def get_available_slots(self, consultant_id: str, target_date: date) -> List[TimeSlot]:
        """
        Get the slots for a consultant on a date.

        Args:
            consultant_id: Consultant identifier
            target_date: Day to query

        Returns:
            Slots in ascending time order; empty on weekends
        """
        if self.latency_scale > 0:
            await asyncio.sleep(BASE_LATENCY_SECONDS * self.latency_scale)

        if not is_business_day(target_date):
            logger.info(f"No slots for {consultant_id} on {target_date}: business closed")
            return []

        slots = [
            TimeSlot(id=slot_id, time=slot_time, available=self._rng.random() < p_free)
            for slot_id, slot_time, p_free in SLOT_TEMPLATE
        ]

        available = sum(1 for s in slots if s.available)
        logger.debug(
            f"Slots for {consultant_id} on {target_date}: {available}/{len(slots)} available"
        )
        return slots
