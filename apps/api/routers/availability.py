"""Availability endpoints for the date and slot pickers."""

from datetime import date
from typing import List

from fastapi import APIRouter, Depends, HTTPException

from apps.api.deps import get_availability_service, get_conflict_guard
from domain.errors import LookupFailureError
from domain.models import AvailabilityCheckRequest, BookableDate, TimeSlotOption, WeeklyAvailabilityEntry
from domain.results import LOOKUP_FAILED_MESSAGE
from services.availability_service import AvailabilityService
from services.conflict_guard import ConflictGuard


router = APIRouter(tags=["availability"])


@router.get("/availability", response_model=List[WeeklyAvailabilityEntry])
async def get_weekly_availability(
    service: AvailabilityService = Depends(get_availability_service),
):
    """
    Weekly availability.

    Falls back to the default weekday schedule when the table is unreadable.
    """
    return await service.fetch_weekly_availability()


@router.get("/availability/dates", response_model=List[BookableDate])
async def get_bookable_dates(
    service: AvailabilityService = Depends(get_availability_service),
):
    """Dates offered in the date picker, with fully booked dates flagged."""
    try:
        return await service.bookable_dates()
    except LookupFailureError:
        raise HTTPException(status_code=503, detail=LOOKUP_FAILED_MESSAGE)


@router.get("/availability/{day}/slots", response_model=List[TimeSlotOption])
async def get_time_options(
    day: date,
    service: AvailabilityService = Depends(get_availability_service),
):
    """
    Time options for a date.

    Args:
        day: Calendar date, YYYY-MM-DD

    Returns:
        List[TimeSlotOption]: Options with booked slots disabled
    """
    try:
        return await service.time_options(day)
    except LookupFailureError:
        raise HTTPException(status_code=503, detail=LOOKUP_FAILED_MESSAGE)


@router.post("/check-availability")
async def check_availability(
    body: AvailabilityCheckRequest,
    guard: ConflictGuard = Depends(get_conflict_guard),
):
    """Whether a candidate slot is free. Lookup failures report the slot as unavailable."""
    check = await guard.check(body.date, body.duration)
    response = {
        "available": check.available,
        "date": body.date.isoformat(),
        "duration": body.duration,
    }
    if check.lookup_failed:
        response["error"] = LOOKUP_FAILED_MESSAGE
        response["retryable"] = True
    return response
