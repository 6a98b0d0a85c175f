"""
VerificationService - one-time code delivery and validation.

SMS delivery is simulated. The expected code lives only inside the service;
``verify_otp`` answers valid/invalid and never echoes it back.
"""
import asyncio
import hmac
from typing import Optional
from loguru import logger

from ..error_handling.handlers import log_backend_call
from ..error_handling.logging_config import mask_phone


SEND_LATENCY_SECONDS = 1.0
VERIFY_LATENCY_SECONDS = 0.6


class VerificationService:
    """
    Mock OTP gateway.

    Attributes:
        sent_count: Number of codes sent so far
    """

    def __init__(self, expected_code: str = "1234", latency_scale: float = 1.0):
        self._expected_code = expected_code
        self.latency_scale = latency_scale
        self.sent_count = 0
        self._last_recipient: Optional[str] = None

    async def _delay(self, seconds: float) -> None:
        if self.latency_scale > 0:
            await asyncio.sleep(seconds * self.latency_scale)

    @log_backend_call("send_otp")
    async def send_otp(self, phone: str) -> bool:
        """
        Send a one-time code to a phone number.

        Args:
            phone: Recipient phone number

        Returns:
            True if the code was handed to the SMS gateway
        """
        await self._delay(SEND_LATENCY_SECONDS)

        if not phone or not phone.strip():
            logger.warning("OTP not sent: empty phone number")
            return False

        self.sent_count += 1
        self._last_recipient = phone
        logger.info(f"OTP sent to {mask_phone(phone)}")
        return True

    @log_backend_call("verify_otp")
    async def verify_otp(self, code: str) -> bool:
        """
        Check a one-time code.

        Args:
            code: Code typed by the user

        Returns:
            True if the code matches
        """
        await self._delay(VERIFY_LATENCY_SECONDS)

        submitted = (code or "").strip()
        valid = hmac.compare_digest(submitted.encode(), self._expected_code.encode())

        logger.info(
            f"OTP verification for {mask_phone(self._last_recipient)}: "
            f"{'valid' if valid else 'invalid'}"
        )
        return valid

    def __repr__(self) -> str:
        return f"<VerificationService(sent_count={self.sent_count})>"
