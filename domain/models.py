"""Domain models using Pydantic v2 for the lesson booking service."""

from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator

from core.utils_datetime import parse_hhmm
from .enums import DayOfWeek, LessonType, PaymentMethod


EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"


class TimeRange(BaseModel):
    """Wall-clock range within one day, "HH:mm" to "HH:mm"."""

    start: str = Field(..., description="Range start, HH:mm")
    end: str = Field(..., description="Range end, HH:mm")

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    @field_validator("start", "end")
    @classmethod
    def validate_hhmm(cls, v: str) -> str:
        """Ensure times are zero-padded 24-hour HH:mm."""
        parse_hhmm(v)
        return v

    @model_validator(mode="after")
    def validate_order(self) -> "TimeRange":
        """Start must come before end on the same day."""
        if parse_hhmm(self.start) >= parse_hhmm(self.end):
            raise ValueError(f"Range start {self.start} must be before end {self.end}")
        return self


class WeeklyAvailabilityEntry(BaseModel):
    """A weekday and the ranges during which lessons may be booked."""

    day: DayOfWeek
    ranges: List[TimeRange] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)


class BookedInterval(BaseModel):
    """An existing booking as seen by the slot picker and the conflict guard."""

    date: datetime
    duration: Optional[int] = Field(default=None, ge=1)
    participants: Optional[int] = Field(default=None, ge=1)

    model_config = ConfigDict(from_attributes=True)


class BookingRequest(BaseModel):
    """Booking submission from the booking form."""

    date: datetime = Field(..., description="Lesson start, ISO-8601 with offset")
    duration: int = Field(default=60, ge=1, le=240, description="Lesson length in minutes")
    participant_count: int = Field(..., ge=1, description="Number of participants")
    customer_name: str = Field(..., min_length=1, max_length=100)
    customer_kana: str = Field(default="", max_length=100)
    customer_email: str = Field(..., pattern=EMAIL_PATTERN, max_length=254)
    lesson_type: LessonType = LessonType.ONLINE
    price: int = Field(..., gt=0, description="Regular price before discounts, JPY")
    coupon_code: Optional[str] = Field(default=None, max_length=50)
    coupon_discount: int = Field(default=0, ge=0)
    payment_method: PaymentMethod = PaymentMethod.CARD
    payment_intent_id: Optional[str] = Field(default=None, max_length=255)
    notes: str = Field(default="", max_length=2000)

    model_config = ConfigDict(str_strip_whitespace=True)

    @field_validator("coupon_code")
    @classmethod
    def normalize_coupon(cls, v: Optional[str]) -> Optional[str]:
        """Blank coupon codes count as no coupon."""
        if v is None:
            return None
        v = v.strip().lower()
        return v or None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def final_price(self) -> int:
        """Regular price minus discount, never below zero."""
        return max(self.price - self.coupon_discount, 0)


class BookingCandidate(BaseModel):
    """A validated booking ready to be written."""

    name: str
    kana: str = ""
    email: str
    date: datetime
    duration: int = 60
    details: str = ""
    lesson_type: LessonType
    participants: int = Field(..., ge=1)
    coupon: Optional[str] = None
    regular_price: int = Field(..., ge=0)
    discount_amount: int = Field(default=0, ge=0)
    final_price: int = Field(..., ge=0)
    payment_method: PaymentMethod
    payment_intent_id: Optional[str] = None
    status: str = "confirmed"


class BookingRecord(BookingCandidate):
    """Complete booking record from the database."""

    id: UUID
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class AvailabilityCheckRequest(BaseModel):
    """Query model for checking a single candidate slot."""

    date: datetime
    duration: int = Field(default=60, ge=1, le=240)


class TimeSlotOption(BaseModel):
    """A time option shown in the slot picker."""

    value: str
    label: str
    disabled: bool = False


class BookableDate(BaseModel):
    """A date offered in the date picker."""

    date: date
    fully_booked: bool = False


class PriceQuote(BaseModel):
    """Server-side price for a lesson."""

    lesson_type: LessonType
    participants: int
    regular_price: int
    discount_amount: int = 0
    coupon: Optional[str] = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def final_price(self) -> int:
        """Price to charge after discounts."""
        return max(self.regular_price - self.discount_amount, 0)


class PaymentIntentRequest(BaseModel):
    """Request for a price quote and payment intent."""

    lesson_type: LessonType
    participants: int = Field(..., ge=1)
    coupon: Optional[str] = Field(default=None, max_length=50)
    customer_email: Optional[str] = Field(default=None, pattern=EMAIL_PATTERN)

    @field_validator("coupon")
    @classmethod
    def normalize_coupon(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip().lower()
        return v or None


class ContactMessage(BaseModel):
    """Contact form submission."""

    name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., pattern=EMAIL_PATTERN, max_length=254)
    subject: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1, max_length=5000)

    model_config = ConfigDict(str_strip_whitespace=True)
