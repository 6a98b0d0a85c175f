"""
PaymentService - simulated card charges.
"""
import asyncio
import uuid
from loguru import logger

from ..models.schemas import PaymentResult
from ..error_handling.handlers import log_backend_call


DECLINE_TOKEN = "fail"
CHARGE_LATENCY_SECONDS = 2.0


class PaymentService:
    """
    Authorizes charges against a payment token.

    The token ``"fail"`` is always declined; any other token is approved
    and receives a fresh ``txn_`` transaction id.
    """

    def __init__(self, latency_scale: float = 1.0):
        self.latency_scale = latency_scale

    @log_backend_call("charge")
    async def charge(self, amount: float, payment_token: str) -> PaymentResult:
        """
        Charge an amount.

        Args:
            amount: Amount to charge
            payment_token: Opaque token from the payment form

        Returns:
            PaymentResult with a unique transaction id on success

        Raises:
            ValueError: If the amount is negative
        """
        if amount < 0:
            raise ValueError(f"Cannot charge a negative amount: {amount}")

        if self.latency_scale > 0:
            await asyncio.sleep(CHARGE_LATENCY_SECONDS * self.latency_scale)

        if payment_token == DECLINE_TOKEN:
            logger.warning(f"Charge of ${amount:.2f} declined")
            return PaymentResult(success=False, amount=amount)

        transaction_id = f"txn_{uuid.uuid4().hex[:12]}"
        logger.info(f"Charge of ${amount:.2f} approved: {transaction_id}")
        return PaymentResult(success=True, transaction_id=transaction_id, amount=amount)
