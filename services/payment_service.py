"""
Payment collaborator.
Creates Stripe payment intents for lesson bookings and verifies them before a
booking is written. The Stripe SDK is blocking, so calls run in a worker thread.
"""
import asyncio
import logging
from typing import Dict, Optional, Protocol

import stripe

from domain.errors import PaymentError


logger = logging.getLogger(__name__)


class PaymentGateway(Protocol):
    """Operations the booking flow needs from a payment processor."""

    async def create_payment_intent(
        self,
        amount: int,
        currency: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> str:
        """Create a payment intent and return its client secret."""
        ...

    async def verify_payment(self, intent_id: str, amount: int, currency: str) -> None:
        """Raise PaymentError unless the intent succeeded for exactly `amount`."""
        ...


class StripePaymentGateway:
    """PaymentGateway backed by the Stripe API."""

    def __init__(self, api_key: str, max_network_retries: int = 2):
        self._api_key = api_key
        if api_key:
            stripe.api_key = api_key
            stripe.max_network_retries = max_network_retries
        else:
            logger.warning("Stripe secret key not configured; card payments are disabled")

    def _check_configured(self) -> None:
        if not self._api_key:
            raise PaymentError("Stripe is not configured")

    async def create_payment_intent(
        self,
        amount: int,
        currency: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> str:
        """
        Create a payment intent.

        Args:
            amount: Amount in the smallest currency unit (yen for JPY)
            currency: ISO currency code
            metadata: Extra key/value pairs stored on the intent

        Returns:
            The intent client secret for the payment form

        Raises:
            PaymentError: If Stripe rejects the request
        """
        self._check_configured()
        try:
            intent = await asyncio.to_thread(
                stripe.PaymentIntent.create,
                amount=amount,
                currency=currency,
                automatic_payment_methods={"enabled": True},
                metadata=metadata or {},
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe error creating payment intent: {e}")
            raise PaymentError(f"Failed to create payment intent: {e}") from e

        logger.info(
            "Payment intent created",
            extra={"intent_id": intent.id, "amount": amount, "currency": currency},
        )
        return intent.client_secret

    async def verify_payment(self, intent_id: str, amount: int, currency: str) -> None:
        """
        Confirm that an intent was paid in full.

        Raises:
            PaymentError: If the intent is unknown, unpaid, or for another amount
        """
        self._check_configured()
        try:
            intent = await asyncio.to_thread(stripe.PaymentIntent.retrieve, intent_id)
        except stripe.StripeError as e:
            logger.error(f"Stripe error retrieving payment intent {intent_id}: {e}")
            raise PaymentError(f"Failed to retrieve payment intent: {e}", intent_id) from e

        if intent.status != "succeeded":
            raise PaymentError(f"Payment intent status is {intent.status}", intent_id)
        if intent.amount != amount or intent.currency.lower() != currency.lower():
            raise PaymentError(
                f"Payment intent is for {intent.amount} {intent.currency}, expected {amount} {currency}",
                intent_id,
            )
