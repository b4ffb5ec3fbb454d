"""
Availability service.
Serves the weekly availability table and the slot picker views derived from it.
"""
import logging
from datetime import date, datetime, timedelta
from typing import Callable, Dict, List, Optional

from core.settings import Settings
from core.utils_datetime import get_current_datetime
from db.repositories import AvailabilityRepository, default_weekly_availability
from domain.errors import BookingError
from domain.models import BookableDate, TimeSlotOption, WeeklyAvailabilityEntry
from domain.scheduling import bookable_dates, expand_slots, group_booked_times, time_options_for_date
from services.conflict_guard import ConflictGuard, call_with_retry


logger = logging.getLogger(__name__)


class AvailabilityService:
    """Weekly availability and slot picker queries."""

    def __init__(
        self,
        repository: AvailabilityRepository,
        guard: ConflictGuard,
        settings: Settings,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._repository = repository
        self._guard = guard
        self._settings = settings
        self._clock = clock or (lambda: get_current_datetime(settings.site_timezone))
        self._seeded = False

    def today(self) -> date:
        return self._clock().date()

    async def _load_weekly_availability(self) -> List[WeeklyAvailabilityEntry]:
        if not self._seeded:
            await self._repository.initialize_default_availability()
            self._seeded = True
        return await self._repository.get_weekly_availability()

    async def fetch_weekly_availability(self) -> List[WeeklyAvailabilityEntry]:
        """
        Return the weekly availability.

        An empty table is seeded with the default schedule; if the table
        cannot be read at all, the default schedule is served instead.
        """
        try:
            return await call_with_retry(
                self._load_weekly_availability,
                description="Weekly availability lookup",
                attempts=self._settings.lookup_retry_attempts,
                timeout=self._settings.lookup_timeout_seconds,
                backoff=self._settings.lookup_retry_backoff_seconds,
            )
        except BookingError as e:
            logger.warning(f"Availability table unavailable, using fallback schedule: {e}")
            return default_weekly_availability()

    async def slots_for_date(self, day: date) -> List[str]:
        """Bookable "HH:mm" start times for a date, ignoring existing bookings."""
        return expand_slots(day, await self.fetch_weekly_availability())

    async def booked_times_by_date(self, start_day: date, end_day: date) -> Dict[str, List[str]]:
        bookings = await self._guard.fetch_bookings_for_dates(start_day, end_day)
        return group_booked_times(bookings, self._settings.site_timezone)

    async def time_options(self, day: date) -> List[TimeSlotOption]:
        """
        Slot picker options for a date with booked slots disabled.

        Raises:
            LookupFailureError: If existing bookings cannot be read.
        """
        availability = await self.fetch_weekly_availability()
        booked = await self.booked_times_by_date(day, day)
        return time_options_for_date(day, availability, booked.get(day.isoformat(), []))

    async def bookable_dates(self) -> List[BookableDate]:
        """
        Dates offered by the date picker, flagged when fully booked.

        Raises:
            LookupFailureError: If existing bookings cannot be read.
        """
        availability = await self.fetch_weekly_availability()
        lead = self._settings.booking_lead_days
        horizon = self._settings.booking_horizon_days
        first_day = self.today() + timedelta(days=lead)
        last_day = first_day + timedelta(days=horizon - 1)
        booked = await self.booked_times_by_date(first_day, last_day)
        return bookable_dates(
            self.today(),
            availability,
            booked,
            lead_days=lead,
            horizon_days=horizon,
        )
