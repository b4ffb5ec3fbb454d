"""Payment intent endpoint."""

import logging

from fastapi import APIRouter, Depends, HTTPException

from apps.api.deps import get_booking_service
from domain.errors import LookupFailureError, PaymentError
from domain.models import PaymentIntentRequest
from domain.results import LOOKUP_FAILED_MESSAGE, PAYMENT_FAILED_MESSAGE
from services.booking_service import BookingService


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/intent")
async def create_payment_intent(
    body: PaymentIntentRequest,
    service: BookingService = Depends(get_booking_service),
):
    """
    Quote a lesson and create a payment intent for it.

    Returns:
        {"free": true} for fully discounted lessons, otherwise
        {"client_secret", "amount", "currency"}
    """
    try:
        return await service.quote_payment(body)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except LookupFailureError:
        raise HTTPException(status_code=503, detail=LOOKUP_FAILED_MESSAGE)
    except PaymentError as e:
        logger.error(f"Payment intent creation failed: {e}")
        raise HTTPException(status_code=402, detail=PAYMENT_FAILED_MESSAGE)
