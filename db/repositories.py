"""Repositories over the bookings and availability tables.

Repositories return domain models and translate storage errors into
domain errors; callers never see SQLAlchemy exceptions.
"""

import logging
from datetime import datetime
from typing import Dict, Iterable, List, Sequence

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from core.utils_datetime import to_utc
from domain.enums import BookingStatus, DayOfWeek
from domain.errors import (
    DuplicateAvailabilityError,
    DuplicateSlotError,
    LookupFailureError,
    PaymentIntentReusedError,
    StorageError,
)
from domain.models import BookedInterval, BookingCandidate, BookingRecord, TimeRange, WeeklyAvailabilityEntry
from .models_sqlalchemy import Availability, Booking
from .session import Database


logger = logging.getLogger(__name__)


# Default schedule: Monday to Friday, hourly ranges from 12:00 to 20:00
DEFAULT_WEEKDAYS = [
    DayOfWeek.MONDAY,
    DayOfWeek.TUESDAY,
    DayOfWeek.WEDNESDAY,
    DayOfWeek.THURSDAY,
    DayOfWeek.FRIDAY,
]
DEFAULT_RANGES = [(f"{hour:02d}:00", f"{hour + 1:02d}:00") for hour in range(12, 20)]


def default_weekly_availability() -> List[WeeklyAvailabilityEntry]:
    """The schedule used to seed an empty table and as a fallback."""
    return [
        WeeklyAvailabilityEntry(
            day=day,
            ranges=[TimeRange(start=start, end=end) for start, end in DEFAULT_RANGES],
        )
        for day in DEFAULT_WEEKDAYS
    ]


def _is_unique_violation(exc: IntegrityError) -> bool:
    message = str(exc.orig).lower()
    return "unique" in message or "duplicate key" in message


def _to_record(row: Booking) -> BookingRecord:
    record = BookingRecord.model_validate(row)
    return record.model_copy(update={"date": to_utc(row.date)})


class BookingRepository:
    """Reads and inserts bookings. Rows are never updated here."""

    def __init__(self, database: Database):
        self._database = database

    async def get_bookings_by_date_range(self, start: datetime, end: datetime) -> List[BookedInterval]:
        """
        Return bookings starting in the half-open window [start, end).

        Cancelled bookings no longer hold their slot and are left out.

        Raises:
            LookupFailureError: If the store cannot be read.
        """
        try:
            async with self._database.session() as session:
                result = await session.execute(
                    select(Booking.date, Booking.duration, Booking.participants)
                    .where(Booking.date >= to_utc(start))
                    .where(Booking.date < to_utc(end))
                    .where(Booking.status != BookingStatus.CANCELLED.value)
                    .order_by(Booking.date)
                )
                rows = result.all()
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Error fetching bookings: {e}")
            raise LookupFailureError(f"Failed to fetch bookings: {e}") from e

        return [
            BookedInterval(date=to_utc(row.date), duration=row.duration, participants=row.participants)
            for row in rows
        ]

    async def count_bookings_for_email(self, email: str) -> int:
        """
        Count previous bookings made with an email address.

        Raises:
            LookupFailureError: If the store cannot be read.
        """
        try:
            async with self._database.session() as session:
                result = await session.execute(
                    select(func.count()).select_from(Booking).where(
                        func.lower(Booking.email) == email.strip().lower()
                    )
                )
                return int(result.scalar_one())
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Error counting bookings for email: {e}")
            raise LookupFailureError(f"Failed to count bookings: {e}") from e

    async def payment_intent_used(self, intent_id: str) -> bool:
        """
        Whether a booking already carries this payment intent.

        Raises:
            LookupFailureError: If the store cannot be read.
        """
        try:
            async with self._database.session() as session:
                result = await session.execute(
                    select(func.count()).select_from(Booking).where(Booking.payment_intent_id == intent_id)
                )
                return int(result.scalar_one()) > 0
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Error looking up payment intent: {e}")
            raise LookupFailureError(f"Failed to look up payment intent: {e}") from e

    async def create(self, candidate: BookingCandidate) -> BookingRecord:
        """
        Insert a booking.

        Raises:
            DuplicateSlotError: If a booking already starts at the same timestamp.
            PaymentIntentReusedError: If the payment intent backs another booking.
            StorageError: If the insert fails for any other reason.
        """
        data = candidate.model_dump()
        data["date"] = to_utc(candidate.date)
        data["lesson_type"] = candidate.lesson_type.value
        data["payment_method"] = candidate.payment_method.value
        row = Booking(**data)

        try:
            async with self._database.session() as session:
                session.add(row)
                await session.flush()
                await session.refresh(row)
        except IntegrityError as e:
            if _is_unique_violation(e) and "payment_intent_id" in str(e.orig):
                logger.warning(
                    "Payment intent reuse rejected by storage",
                    extra={"intent_id": candidate.payment_intent_id},
                )
                raise PaymentIntentReusedError(candidate.payment_intent_id) from e
            if _is_unique_violation(e):
                logger.warning(
                    "Duplicate booking slot rejected by storage",
                    extra={"start": data["date"].isoformat()},
                )
                raise DuplicateSlotError(candidate.date) from e
            logger.error(f"Error creating booking: {e}")
            raise StorageError(f"Failed to create booking: {e}") from e
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Error creating booking: {e}")
            raise StorageError(f"Failed to create booking: {e}") from e

        return _to_record(row)


class AvailabilityRepository:
    """Reads and seeds the weekly availability table."""

    def __init__(self, database: Database):
        self._database = database

    async def get_weekly_availability(self) -> List[WeeklyAvailabilityEntry]:
        """
        Return active ranges grouped by day, in Monday-first day order.

        Raises:
            LookupFailureError: If the store cannot be read.
        """
        try:
            async with self._database.session() as session:
                result = await session.execute(
                    select(Availability)
                    .where(Availability.is_active.is_(True))
                    .order_by(Availability.day_of_week, Availability.start_time)
                )
                rows: Sequence[Availability] = result.scalars().all()
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Error fetching availability: {e}")
            raise LookupFailureError(f"Failed to fetch availability: {e}") from e

        grouped: Dict[DayOfWeek, List[TimeRange]] = {}
        for row in rows:
            day = DayOfWeek.from_sunday_index(row.day_of_week)
            grouped.setdefault(day, []).append(TimeRange(start=row.start_time, end=row.end_time))

        return [
            WeeklyAvailabilityEntry(day=day, ranges=grouped[day])
            for day in DayOfWeek
            if day in grouped
        ]

    async def is_empty(self) -> bool:
        try:
            async with self._database.session() as session:
                result = await session.execute(select(func.count()).select_from(Availability))
                return int(result.scalar_one()) == 0
        except (SQLAlchemyError, OSError) as e:
            raise LookupFailureError(f"Availability table may not exist: {e}") from e

    async def add_entries(self, entries: Iterable[WeeklyAvailabilityEntry]) -> int:
        """
        Insert one row per range; returns the number of rows written.

        Raises:
            DuplicateAvailabilityError: If a range already exists for its day.
            StorageError: If the insert fails for any other reason.
        """
        rows = [
            Availability(
                day_of_week=entry.day.sunday_index,
                start_time=time_range.start,
                end_time=time_range.end,
                is_active=True,
            )
            for entry in entries
            for time_range in entry.ranges
        ]
        try:
            async with self._database.session() as session:
                session.add_all(rows)
        except IntegrityError as e:
            if _is_unique_violation(e):
                raise DuplicateAvailabilityError(f"Availability range already exists: {e}") from e
            logger.error(f"Error initializing availability: {e}")
            raise StorageError(f"Failed to initialize availability: {e}") from e
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Error initializing availability: {e}")
            raise StorageError(f"Failed to initialize availability: {e}") from e
        return len(rows)

    async def initialize_default_availability(self) -> bool:
        """
        Seed the default schedule when the table is empty. Returns True if seeded.

        Two callers may both see an empty table; the unique range key lets
        only one of them write, the other reports the table as seeded.
        """
        if not await self.is_empty():
            logger.debug("Availability already initialized")
            return False
        try:
            count = await self.add_entries(default_weekly_availability())
        except DuplicateAvailabilityError:
            logger.debug("Availability initialized concurrently")
            return False
        logger.info(f"Default availability initialized with {count} ranges")
        return True
