"""Domain layer for the lesson booking service."""

from .enums import (
    BookingStatus,
    DayOfWeek,
    LessonType,
    PaymentMethod,
)
from .models import (
    TimeRange,
    WeeklyAvailabilityEntry,
    BookedInterval,
    BookingRequest,
    BookingCandidate,
    BookingRecord,
    AvailabilityCheckRequest,
    TimeSlotOption,
    BookableDate,
    PriceQuote,
    PaymentIntentRequest,
    ContactMessage,
)
from .results import (
    AvailabilityCheck,
    BookingCreated,
    SlotConflict,
    DuplicateSlot,
    LookupFailure,
    ValidationFailure,
    PaymentFailure,
    BookingOutcome,
)

__all__ = [
    # Enums
    "BookingStatus",
    "DayOfWeek",
    "LessonType",
    "PaymentMethod",
    # Models
    "TimeRange",
    "WeeklyAvailabilityEntry",
    "BookedInterval",
    "BookingRequest",
    "BookingCandidate",
    "BookingRecord",
    "AvailabilityCheckRequest",
    "TimeSlotOption",
    "BookableDate",
    "PriceQuote",
    "PaymentIntentRequest",
    "ContactMessage",
    # Outcomes
    "AvailabilityCheck",
    "BookingCreated",
    "SlotConflict",
    "DuplicateSlot",
    "LookupFailure",
    "ValidationFailure",
    "PaymentFailure",
    "BookingOutcome",
]
