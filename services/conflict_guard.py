"""
Conflict guard for candidate bookings.

Loads the existing bookings around a candidate start and applies the
half-open overlap test. Lookups are bounded by a timeout and retried with
exponential backoff; when they still fail the guard fails closed and reports
the slot as unavailable. The guard is a check, not a lock.
"""
import asyncio
import logging
from datetime import date, datetime
from typing import Awaitable, Callable, List, Optional, Protocol, Tuple, TypeVar

from core.settings import Settings
from core.utils_datetime import ensure_aware, local_day_bounds, local_range_bounds, to_local
from domain.errors import LookupFailureError
from domain.models import BookedInterval
from domain.results import AvailabilityCheck
from domain.scheduling import find_conflict


logger = logging.getLogger(__name__)

T = TypeVar("T")


class BookingLookup(Protocol):
    async def get_bookings_by_date_range(self, start: datetime, end: datetime) -> List[BookedInterval]:
        ...


async def call_with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    description: str,
    attempts: int = 3,
    timeout: float = 5.0,
    backoff: float = 0.2,
) -> T:
    """
    Run a lookup with a per-attempt timeout and exponential backoff.

    Raises:
        LookupFailureError: If every attempt failed or timed out.
    """
    last_error: Optional[BaseException] = None
    for attempt in range(1, attempts + 1):
        try:
            return await asyncio.wait_for(operation(), timeout=timeout)
        except (LookupFailureError, asyncio.TimeoutError) as e:
            last_error = e
            logger.warning(
                f"{description} failed (attempt {attempt}/{attempts}): {e!r}",
                extra={"attempt": attempt, "attempts": attempts},
            )
            if attempt < attempts and backoff > 0:
                await asyncio.sleep(backoff * 2 ** (attempt - 1))
    raise LookupFailureError(f"{description} failed after {attempts} attempts") from last_error


class ConflictGuard:
    """Advisory double-booking check against stored bookings."""

    def __init__(self, bookings: BookingLookup, settings: Settings):
        self._bookings = bookings
        self._settings = settings

    async def fetch_bookings_for_range(self, start: datetime, end: datetime) -> List[BookedInterval]:
        """
        Bookings starting in [start, end).

        Raises:
            LookupFailureError: If the store stayed unreachable.
        """
        return await call_with_retry(
            lambda: self._bookings.get_bookings_by_date_range(start, end),
            description="Existing-bookings lookup",
            attempts=self._settings.lookup_retry_attempts,
            timeout=self._settings.lookup_timeout_seconds,
            backoff=self._settings.lookup_retry_backoff_seconds,
        )

    async def fetch_bookings_for_date(self, day: date) -> List[BookedInterval]:
        """Bookings on one calendar day of the site timezone."""
        start, end = local_day_bounds(day, self._settings.site_timezone)
        return await self.fetch_bookings_for_range(start, end)

    async def fetch_bookings_for_dates(self, start_day: date, end_day: date) -> List[BookedInterval]:
        """Bookings from start_day to end_day inclusive."""
        start, end = local_range_bounds(start_day, end_day, self._settings.site_timezone)
        return await self.fetch_bookings_for_range(start, end)

    async def check(
        self,
        start: datetime,
        duration: Optional[int] = None,
        window: Optional[Tuple[datetime, datetime]] = None,
    ) -> AvailabilityCheck:
        """
        Decide whether a candidate overlaps any stored booking.

        Naive starts are read in the site timezone. By default the
        candidate's local calendar day is searched; `window` overrides it.
        """
        start = ensure_aware(start, self._settings.site_timezone)
        duration = duration or self._settings.lesson_duration_minutes
        try:
            if window is not None:
                existing = await self.fetch_bookings_for_range(*window)
            else:
                local_day = to_local(start, self._settings.site_timezone).date()
                existing = await self.fetch_bookings_for_date(local_day)
        except LookupFailureError as e:
            logger.error(
                "Availability lookup failed, treating slot as unavailable",
                extra={"start": start.isoformat(), "duration": duration},
            )
            return AvailabilityCheck(available=False, error=str(e))

        conflict = find_conflict(start, duration, existing)
        if conflict is not None:
            logger.info(
                "Slot conflict detected",
                extra={"start": start.isoformat(), "conflict_start": conflict.date.isoformat()},
            )
            return AvailabilityCheck(available=False, conflict=conflict)
        return AvailabilityCheck(available=True)

    async def check_availability(self, start: datetime, duration: Optional[int] = None) -> bool:
        """True only when the lookup succeeded and nothing overlaps."""
        return (await self.check(start, duration)).available
