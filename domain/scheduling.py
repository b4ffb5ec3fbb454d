"""
Slot expansion and overlap detection.

Pure functions over small in-memory lists: weekly availability is expanded
into 60-minute start times for a calendar date, and candidate bookings are
tested against existing bookings with half-open interval semantics.
"""

from datetime import date, datetime, time, timedelta
from typing import Dict, Iterable, List, Optional, Sequence

from core.utils_datetime import DEFAULT_TIMEZONE, format_hhmm, minutes_of_day, parse_hhmm, to_local
from .enums import DayOfWeek
from .models import BookableDate, BookedInterval, TimeSlotOption, WeeklyAvailabilityEntry


SLOT_MINUTES = 60
DEFAULT_DURATION_MINUTES = 60
BOOKED_SUFFIX = "（予約済み）"


def availability_for_date(
    day: date,
    availability: Sequence[WeeklyAvailabilityEntry],
) -> Optional[WeeklyAvailabilityEntry]:
    """Return the availability entry matching the weekday of `day`, if any."""
    weekday = DayOfWeek.from_weekday(day.weekday())
    for entry in availability:
        if entry.day == weekday:
            return entry
    return None


def expand_slots(day: date, availability: Sequence[WeeklyAvailabilityEntry]) -> List[str]:
    """
    Expand weekly availability into bookable "HH:mm" start times for a date.

    Each range yields a slot every 60 minutes from its start, as long as the
    whole slot fits before the range end. Slots from several ranges are
    concatenated in range order. A date without an entry, or with no ranges,
    yields an empty list.
    """
    entry = availability_for_date(day, availability)
    if entry is None:
        return []

    slots: List[str] = []
    for time_range in entry.ranges:
        current = minutes_of_day(parse_hhmm(time_range.start))
        end = minutes_of_day(parse_hhmm(time_range.end))
        while current + SLOT_MINUTES <= end:
            slots.append(format_hhmm(time(current // 60, current % 60)))
            current += SLOT_MINUTES
    return slots


def slot_end_label(slot: str) -> str:
    """End time of a 60-minute slot, "24:00" for a slot starting at 23:00."""
    start = minutes_of_day(parse_hhmm(slot)) + SLOT_MINUTES
    return f"{start // 60:02d}:{start % 60:02d}"


def time_options_for_date(
    day: date,
    availability: Sequence[WeeklyAvailabilityEntry],
    booked_times: Iterable[str] = (),
) -> List[TimeSlotOption]:
    """Slot picker options for a date; booked start times are disabled."""
    booked = set(booked_times)
    options = []
    for slot in expand_slots(day, availability):
        is_booked = slot in booked
        label = f"{slot} - {slot_end_label(slot)}"
        options.append(
            TimeSlotOption(
                value=slot,
                label=label + (BOOKED_SUFFIX if is_booked else ""),
                disabled=is_booked,
            )
        )
    return options


def is_date_fully_booked(
    day: date,
    availability: Sequence[WeeklyAvailabilityEntry],
    booked_times: Iterable[str] = (),
) -> bool:
    """True when the date offers at least one slot and every slot is booked."""
    slots = expand_slots(day, availability)
    booked = set(booked_times)
    return bool(slots) and all(slot in booked for slot in slots)


def bookable_dates(
    today: date,
    availability: Sequence[WeeklyAvailabilityEntry],
    booked_by_date: Optional[Dict[str, List[str]]] = None,
    lead_days: int = 3,
    horizon_days: int = 30,
) -> List[BookableDate]:
    """Dates offered in the date picker, starting `lead_days` after today."""
    booked_by_date = booked_by_date or {}
    dates = []
    for offset in range(lead_days, lead_days + horizon_days):
        day = today + timedelta(days=offset)
        if availability_for_date(day, availability) is None:
            continue
        dates.append(
            BookableDate(
                date=day,
                fully_booked=is_date_fully_booked(
                    day, availability, booked_by_date.get(day.isoformat(), [])
                ),
            )
        )
    return dates


def group_booked_times(
    bookings: Iterable[BookedInterval],
    tz_name: str = DEFAULT_TIMEZONE,
) -> Dict[str, List[str]]:
    """Group booking start times by local date: {"YYYY-MM-DD": ["HH:mm", ...]}."""
    grouped: Dict[str, List[str]] = {}
    for booking in bookings:
        local = to_local(booking.date, tz_name)
        grouped.setdefault(local.date().isoformat(), []).append(format_hhmm(local.time()))
    return grouped


def intervals_overlap(a: datetime, b: datetime, c: datetime, d: datetime) -> bool:
    """Half-open overlap of [a, b) and [c, d)."""
    return a < d and c < b


def booking_end(start: datetime, duration: Optional[int]) -> datetime:
    return start + timedelta(minutes=duration or DEFAULT_DURATION_MINUTES)


def find_conflict(
    start: datetime,
    duration: Optional[int],
    existing: Iterable[BookedInterval],
) -> Optional[BookedInterval]:
    """
    Return the first existing booking overlapping the candidate, or None.

    Back-to-back bookings do not conflict; identical starts always do.
    """
    end = booking_end(start, duration)
    for booking in existing:
        if intervals_overlap(start, end, booking.date, booking_end(booking.date, booking.duration)):
            return booking
    return None


def is_slot_available(
    start: datetime,
    duration: Optional[int],
    existing: Iterable[BookedInterval],
) -> bool:
    return find_conflict(start, duration, existing) is None
