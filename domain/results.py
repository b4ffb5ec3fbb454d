"""Typed outcomes of availability checks and booking submissions."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Union

from .models import BookedInterval, BookingRecord


SLOT_TAKEN_MESSAGE = "この時間はすでに予約されています。別の時間をお選びください。"
LOOKUP_FAILED_MESSAGE = "予約状況を確認できませんでした。しばらくしてからもう一度お試しください。"
VALIDATION_FAILED_MESSAGE = "入力内容に誤りがあります。"
PAYMENT_FAILED_MESSAGE = "お支払いを確認できませんでした。"


@dataclass(frozen=True)
class AvailabilityCheck:
    """Result of the conflict guard for one candidate slot."""

    available: bool
    conflict: Optional[BookedInterval] = None
    error: Optional[str] = None

    @property
    def lookup_failed(self) -> bool:
        return self.error is not None


@dataclass(frozen=True)
class BookingCreated:
    booking: BookingRecord
    status_code: int = 201


@dataclass(frozen=True)
class SlotConflict:
    """The conflict guard found an overlapping booking."""

    conflict: Optional[BookedInterval] = None
    message: str = SLOT_TAKEN_MESSAGE
    status_code: int = 409


@dataclass(frozen=True)
class DuplicateSlot:
    """Storage rejected the write; reported to users exactly like SlotConflict."""

    start: datetime
    message: str = SLOT_TAKEN_MESSAGE
    status_code: int = 409


@dataclass(frozen=True)
class LookupFailure:
    reason: str
    message: str = LOOKUP_FAILED_MESSAGE
    retryable: bool = True
    status_code: int = 503


@dataclass(frozen=True)
class ValidationFailure:
    errors: List[str] = field(default_factory=list)
    message: str = VALIDATION_FAILED_MESSAGE
    status_code: int = 400


@dataclass(frozen=True)
class PaymentFailure:
    reason: str
    message: str = PAYMENT_FAILED_MESSAGE
    status_code: int = 402


BookingOutcome = Union[
    BookingCreated,
    SlotConflict,
    DuplicateSlot,
    LookupFailure,
    ValidationFailure,
    PaymentFailure,
]
