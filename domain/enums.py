"""Domain enums for the lesson booking service."""

from enum import Enum


class BookingStatus(str, Enum):
    """Known booking status values. The stored column stays free-form."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class LessonType(str, Enum):
    """Lesson formats offered."""

    ONLINE = "online"
    IN_PERSON = "in-person"


class PaymentMethod(str, Enum):
    """How a booking is paid for."""

    CARD = "card"
    CASH = "cash"
    FREE = "free"


class DayOfWeek(str, Enum):
    """Days of the week, in date.weekday() order."""

    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

    @classmethod
    def from_weekday(cls, weekday: int) -> "DayOfWeek":
        """Map date.weekday() (0 = Monday) to a day identifier."""
        return list(cls)[weekday]

    @classmethod
    def from_sunday_index(cls, index: int) -> "DayOfWeek":
        """Map a 0 = Sunday index, as kept in the availability table."""
        return cls.from_weekday((index - 1) % 7)

    @property
    def sunday_index(self) -> int:
        """0 = Sunday ... 6 = Saturday."""
        return (list(DayOfWeek).index(self) + 1) % 7
