"""Booking endpoints: booked intervals, free trial eligibility and submission."""

from datetime import date
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from fastapi.responses import JSONResponse

from apps.api.deps import get_booking_service, get_conflict_guard
from domain.errors import LookupFailureError
from domain.models import EMAIL_PATTERN, BookedInterval
from domain.results import (
    LOOKUP_FAILED_MESSAGE,
    BookingCreated,
    BookingOutcome,
    DuplicateSlot,
    LookupFailure,
    SlotConflict,
    ValidationFailure,
)
from services.booking_service import BookingService
from services.conflict_guard import ConflictGuard


router = APIRouter(prefix="/bookings", tags=["bookings"])


def outcome_response(outcome: BookingOutcome) -> JSONResponse:
    """Map a booking outcome to its HTTP status and body."""
    if isinstance(outcome, BookingCreated):
        return JSONResponse(
            status_code=outcome.status_code,
            content={"success": True, "booking": outcome.booking.model_dump(mode="json")},
        )

    content: Dict[str, Any] = {"success": False, "error": outcome.message}
    if isinstance(outcome, ValidationFailure):
        content["errors"] = outcome.errors
    elif isinstance(outcome, SlotConflict):
        content["code"] = "SLOT_CONFLICT"
    elif isinstance(outcome, DuplicateSlot):
        content["code"] = "DUPLICATE_SLOT"
    elif isinstance(outcome, LookupFailure):
        content["retryable"] = outcome.retryable
    return JSONResponse(status_code=outcome.status_code, content=content)


@router.get("", response_model=List[BookedInterval])
async def list_booked_intervals(
    day: Optional[date] = Query(None, alias="date", description="Single calendar date"),
    start: Optional[date] = Query(None, description="First date of a range"),
    end: Optional[date] = Query(None, description="Last date of a range, inclusive"),
    guard: ConflictGuard = Depends(get_conflict_guard),
):
    """
    Booked intervals for one date or an inclusive date range.

    Args:
        day: Calendar date (takes precedence over start/end)
        start: Range start date
        end: Range end date
    """
    try:
        if day is not None:
            return await guard.fetch_bookings_for_date(day)
        if start is not None and end is not None:
            if end < start:
                raise HTTPException(status_code=400, detail="end must not be before start")
            return await guard.fetch_bookings_for_dates(start, end)
    except LookupFailureError:
        raise HTTPException(status_code=503, detail=LOOKUP_FAILED_MESSAGE)
    raise HTTPException(status_code=400, detail="Provide either date or start and end")


@router.get("/free-trial")
async def free_trial_eligibility(
    email: str = Query(..., pattern=EMAIL_PATTERN, max_length=254),
    service: BookingService = Depends(get_booking_service),
):
    """Whether the customer may still use the free trial coupon."""
    try:
        eligible = await service.is_free_trial_eligible(email)
    except LookupFailureError:
        raise HTTPException(status_code=503, detail=LOOKUP_FAILED_MESSAGE)
    return {"email": email, "eligible": eligible}


@router.post("")
async def create_booking(
    payload: Dict[str, Any] = Body(...),
    service: BookingService = Depends(get_booking_service),
):
    """
    Submit a booking.

    Returns 201 with the stored booking, 400 for invalid input, 402 when the
    payment was not verified, 409 when the slot is taken and 503 when
    existing bookings could not be checked.
    """
    outcome = await service.submit(payload)
    return outcome_response(outcome)
