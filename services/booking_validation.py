"""
Booking validation and normalization.
Business rules applied to a parsed booking request before the conflict guard
runs: lesson time, pricing, coupons and payment fields.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from core.utils_datetime import ensure_aware, format_hhmm, to_local
from domain.enums import PaymentMethod
from domain.models import BookingCandidate, BookingRequest, WeeklyAvailabilityEntry
from domain.pricing import FREE_TRIAL_COUPON, is_known_coupon, quote
from domain.scheduling import expand_slots


logger = logging.getLogger(__name__)


class ValidationCategory(Enum):
    """Validation error categories."""
    DATE_TIME = "datetime"
    PRICE = "price"
    COUPON = "coupon"
    PAYMENT = "payment"


@dataclass
class ValidationError:
    """A single failed business rule."""
    category: ValidationCategory
    message: str
    field: Optional[str] = None
    code: Optional[str] = None
    details: Optional[Dict[str, Any]] = None


@dataclass
class ValidationResult:
    """Result of validation with all errors and the normalized candidate."""
    is_valid: bool = True
    errors: List[ValidationError] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    candidate: Optional[BookingCandidate] = None

    def add_error(self, error: ValidationError):
        self.errors.append(error)
        self.is_valid = False

    def merge(self, other: "ValidationResult"):
        for error in other.errors:
            self.add_error(error)
        self.warnings.extend(other.warnings)

    def get_error_messages(self) -> List[str]:
        return [e.message for e in self.errors]


MULTIPLE_BLANK_LINES = re.compile(r'\n{3,}')
HTML_TAG = re.compile(r'<[^>]+>')


def sanitize_notes(notes: Optional[str], max_length: int = 2000) -> Tuple[str, List[str]]:
    """
    Strip markup from free-text lesson notes.

    Returns:
        Tuple of (sanitized_notes, list of warnings)
    """
    if not notes or not notes.strip():
        return "", []

    warnings = []
    sanitized = HTML_TAG.sub('', notes.strip())
    if sanitized != notes.strip():
        warnings.append("Markup was removed from notes")
    sanitized = MULTIPLE_BLANK_LINES.sub('\n\n', sanitized).strip()

    if len(sanitized) > max_length:
        sanitized = sanitized[:max_length]
        warnings.append(f"Notes were truncated to {max_length} characters")
    return sanitized, warnings


def validate_lesson_datetime(
    start: datetime,
    now: datetime,
    availability: Sequence[WeeklyAvailabilityEntry],
    tz_name: str,
    enforce_slot_alignment: bool = True,
) -> ValidationResult:
    """
    Validate a lesson start against the clock and the weekly availability.

    Args:
        start: Aware lesson start
        now: Current time
        availability: Weekly availability used to expand offered slots
        tz_name: Site timezone
        enforce_slot_alignment: Require the start to be one of the offered slots
    """
    result = ValidationResult()

    if start <= now:
        result.add_error(ValidationError(
            category=ValidationCategory.DATE_TIME,
            message="Lesson time is in the past",
            field="date",
            code="PAST_DATETIME",
        ))
        return result

    if enforce_slot_alignment:
        local = to_local(start, tz_name)
        slots = expand_slots(local.date(), availability)
        if not slots:
            result.add_error(ValidationError(
                category=ValidationCategory.DATE_TIME,
                message="No lessons are offered on this date",
                field="date",
                code="CLOSED_DATE",
            ))
        elif local.second or local.microsecond or format_hhmm(local.time()) not in slots:
            result.add_error(ValidationError(
                category=ValidationCategory.DATE_TIME,
                message="Lesson time is not one of the offered slots",
                field="date",
                code="INVALID_TIME_SLOT",
                details={"slots": slots},
            ))
    return result


def validate_pricing(request: BookingRequest, prior_bookings: int = 0) -> ValidationResult:
    """
    Check the submitted prices against the server quote.

    Args:
        request: Parsed booking request
        prior_bookings: Number of earlier bookings under the customer's email
    """
    result = ValidationResult()

    if not is_known_coupon(request.coupon_code):
        result.add_error(ValidationError(
            category=ValidationCategory.COUPON,
            message=f"Unknown coupon code '{request.coupon_code}'",
            field="coupon_code",
            code="UNKNOWN_COUPON",
        ))
        return result

    if request.coupon_code == FREE_TRIAL_COUPON and prior_bookings > 0:
        result.add_error(ValidationError(
            category=ValidationCategory.COUPON,
            message="The free trial is only available for a first booking",
            field="coupon_code",
            code="COUPON_NOT_ELIGIBLE",
            details={"prior_bookings": prior_bookings},
        ))
        return result

    expected = quote(request.lesson_type, request.participant_count, request.coupon_code)
    if request.price != expected.regular_price:
        result.add_error(ValidationError(
            category=ValidationCategory.PRICE,
            message=f"Price {request.price} does not match the lesson price {expected.regular_price}",
            field="price",
            code="PRICE_MISMATCH",
            details={"expected": expected.regular_price},
        ))
    if request.coupon_discount != expected.discount_amount:
        result.add_error(ValidationError(
            category=ValidationCategory.PRICE,
            message=f"Discount {request.coupon_discount} does not match {expected.discount_amount}",
            field="coupon_discount",
            code="DISCOUNT_MISMATCH",
            details={"expected": expected.discount_amount},
        ))
    return result


def resolve_payment_method(request: BookingRequest) -> PaymentMethod:
    """Fully discounted lessons are recorded as free whatever the form said."""
    if request.final_price == 0:
        return PaymentMethod.FREE
    return request.payment_method


def validate_payment_fields(request: BookingRequest) -> ValidationResult:
    result = ValidationResult()
    method = resolve_payment_method(request)
    if method == PaymentMethod.FREE and request.final_price > 0:
        result.add_error(ValidationError(
            category=ValidationCategory.PAYMENT,
            message="Only fully discounted lessons can be booked free of charge",
            field="payment_method",
            code="FREE_NOT_ALLOWED",
        ))
    elif method == PaymentMethod.CARD and not request.payment_intent_id:
        result.add_error(ValidationError(
            category=ValidationCategory.PAYMENT,
            message="Card payments require a payment intent",
            field="payment_intent_id",
            code="MISSING_PAYMENT_INTENT",
        ))
    return result


def validate_booking(
    request: BookingRequest,
    *,
    now: datetime,
    availability: Sequence[WeeklyAvailabilityEntry],
    tz_name: str,
    prior_bookings: int = 0,
    enforce_slot_alignment: bool = True,
) -> ValidationResult:
    """
    Apply every business rule and build the candidate to persist.

    Returns:
        ValidationResult; `candidate` is set only when the request is valid
    """
    result = ValidationResult()
    start = ensure_aware(request.date, tz_name)

    result.merge(validate_lesson_datetime(start, now, availability, tz_name, enforce_slot_alignment))
    result.merge(validate_pricing(request, prior_bookings))
    result.merge(validate_payment_fields(request))

    details, warnings = sanitize_notes(request.notes)
    result.warnings.extend(warnings)

    if not result.is_valid:
        logger.info(
            "Booking validation failed",
            extra={"codes": [e.code for e in result.errors], "email": request.customer_email},
        )
        return result

    payment_method = resolve_payment_method(request)
    # Only card bookings are backed by a payment intent
    payment_intent_id = request.payment_intent_id if payment_method == PaymentMethod.CARD else None

    result.candidate = BookingCandidate(
        name=request.customer_name,
        kana=request.customer_kana,
        email=request.customer_email.lower(),
        date=start,
        duration=request.duration,
        details=details,
        lesson_type=request.lesson_type,
        participants=request.participant_count,
        coupon=request.coupon_code,
        regular_price=request.price,
        discount_amount=request.coupon_discount,
        final_price=request.final_price,
        payment_method=payment_method,
        payment_intent_id=payment_intent_id,
    )
    return result
