"""Domain exceptions raised by stores and collaborators."""

from datetime import datetime
from typing import Optional


class BookingError(Exception):
    """Base class for booking domain errors."""


class DuplicateSlotError(BookingError):
    """The storage uniqueness constraint rejected a booking start time."""

    def __init__(self, start: datetime) -> None:
        super().__init__(f"A booking already exists at {start.isoformat()}")
        self.start = start


class LookupFailureError(BookingError):
    """Existing bookings or availability could not be read."""

    retryable = True


class StorageError(BookingError):
    """A write failed for a reason other than a duplicate slot."""


class PaymentError(BookingError):
    """A payment could not be created or verified."""

    def __init__(self, message: str, intent_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.intent_id = intent_id


class PaymentIntentReusedError(PaymentError):
    """The payment intent is already attached to another booking."""

    def __init__(self, intent_id: str) -> None:
        super().__init__(f"Payment {intent_id} has already been used for a booking", intent_id)


class NotificationError(BookingError):
    """An email could not be delivered."""


class DuplicateAvailabilityError(StorageError):
    """An availability range already exists for the same day and times."""
