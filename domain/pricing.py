"""Lesson pricing rules (JPY)."""

from typing import Optional

from .enums import LessonType
from .models import PriceQuote


FREE_TRIAL_COUPON = "freelesson"

BASE_PRICES = {
    LessonType.ONLINE: 2500,
    LessonType.IN_PERSON: 3000,
}

EXTRA_PARTICIPANT_PRICES = {
    LessonType.ONLINE: 500,
    LessonType.IN_PERSON: 1000,
}


def regular_price(lesson_type: LessonType, participants: int) -> int:
    """Base price plus a surcharge for every participant after the first."""
    if participants < 1:
        raise ValueError("participants must be at least 1")
    return BASE_PRICES[lesson_type] + (participants - 1) * EXTRA_PARTICIPANT_PRICES[lesson_type]


def is_known_coupon(code: Optional[str]) -> bool:
    return code in (None, FREE_TRIAL_COUPON)


def quote(lesson_type: LessonType, participants: int, coupon: Optional[str] = None) -> PriceQuote:
    """
    Price a lesson.

    The free trial coupon discounts the whole price. Eligibility is checked
    by the caller; unknown coupons are ignored here.
    """
    price = regular_price(lesson_type, participants)
    discount = price if coupon == FREE_TRIAL_COUPON else 0
    return PriceQuote(
        lesson_type=lesson_type,
        participants=participants,
        regular_price=price,
        discount_amount=discount,
        coupon=coupon if discount else None,
    )
