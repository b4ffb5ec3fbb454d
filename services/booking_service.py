"""
Booking service.
Runs a booking submission end to end: validation, conflict checks, payment
verification, persistence and confirmation emails.
"""
import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Set, Union

from pydantic import ValidationError as PydanticValidationError

from core.settings import Settings
from core.utils_datetime import get_current_datetime
from db.repositories import BookingRepository
from domain.enums import PaymentMethod
from domain.errors import (
    DuplicateSlotError,
    LookupFailureError,
    NotificationError,
    PaymentError,
    PaymentIntentReusedError,
)
from domain.models import BookingCandidate, BookingRecord, BookingRequest, ContactMessage, PaymentIntentRequest
from domain.pricing import FREE_TRIAL_COUPON, is_known_coupon, quote
from domain.results import (
    BookingCreated,
    BookingOutcome,
    DuplicateSlot,
    LookupFailure,
    PaymentFailure,
    SlotConflict,
    ValidationFailure,
)
from services.availability_service import AvailabilityService
from services.booking_validation import validate_booking
from services.conflict_guard import ConflictGuard, call_with_retry
from services.notification_service import Notifier
from services.payment_service import PaymentGateway


logger = logging.getLogger(__name__)


def format_pydantic_errors(error: PydanticValidationError) -> List[str]:
    """Flatten pydantic errors into "field: message" strings."""
    messages = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ()))
        messages.append(f"{location}: {item.get('msg')}" if location else item.get("msg"))
    return messages


class BookingService:
    """Service for submitting lesson bookings."""

    def __init__(
        self,
        repository: BookingRepository,
        guard: ConflictGuard,
        availability: AvailabilityService,
        payments: PaymentGateway,
        notifier: Notifier,
        settings: Settings,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._repository = repository
        self._guard = guard
        self._availability = availability
        self._payments = payments
        self._notifier = notifier
        self._settings = settings
        self._clock = clock or (lambda: get_current_datetime(settings.site_timezone))
        self._pending_notifications: Set[asyncio.Task] = set()

    async def count_prior_bookings(self, email: str) -> int:
        """
        Raises:
            LookupFailureError: If the store stayed unreachable.
        """
        return await call_with_retry(
            lambda: self._repository.count_bookings_for_email(email),
            description="Prior-bookings lookup",
            attempts=self._settings.lookup_retry_attempts,
            timeout=self._settings.lookup_timeout_seconds,
            backoff=self._settings.lookup_retry_backoff_seconds,
        )

    async def is_free_trial_eligible(self, email: str) -> bool:
        """Only customers without any previous booking may use the free trial."""
        return await self.count_prior_bookings(email) == 0

    async def check_availability(self, start: datetime, duration: Optional[int] = None) -> bool:
        return await self._guard.check_availability(start, duration)

    async def create_booking(self, candidate: BookingCandidate) -> BookingRecord:
        """
        Write a validated candidate without running the submission checks.

        Raises:
            DuplicateSlotError: If a booking already starts at the same time.
            StorageError: If the insert failed.
        """
        return await self._repository.create(candidate)

    async def _guard_outcome(self, candidate: BookingCandidate) -> Optional[BookingOutcome]:
        check = await self._guard.check(candidate.date, candidate.duration)
        if check.available:
            return None
        if check.lookup_failed:
            return LookupFailure(reason=check.error or "lookup failed")
        return SlotConflict(conflict=check.conflict)

    async def _collect_payment(self, candidate: BookingCandidate) -> None:
        """
        Raises:
            PaymentError: If a card payment was not completed for the final price
                or already pays for another booking.
            LookupFailureError: If earlier use of the intent could not be checked.
        """
        if candidate.payment_method != PaymentMethod.CARD:
            return
        intent_id = candidate.payment_intent_id
        used = await call_with_retry(
            lambda: self._repository.payment_intent_used(intent_id),
            description="Payment intent lookup",
            attempts=self._settings.lookup_retry_attempts,
            timeout=self._settings.lookup_timeout_seconds,
            backoff=self._settings.lookup_retry_backoff_seconds,
        )
        if used:
            raise PaymentIntentReusedError(intent_id)
        await self._payments.verify_payment(
            intent_id,
            candidate.final_price,
            self._settings.payment_currency,
        )

    async def submit(self, payload: Union[BookingRequest, Mapping[str, Any]]) -> BookingOutcome:
        """
        Submit a booking.

        The slot is checked before payment is verified and again right
        before the write; the storage uniqueness constraint is the last
        line. Confirmation emails are sent in the background and never
        affect the outcome.

        Args:
            payload: Parsed request or raw form fields

        Returns:
            One of the BookingOutcome variants
        """
        try:
            request = (
                payload if isinstance(payload, BookingRequest)
                else BookingRequest.model_validate(payload)
            )
        except PydanticValidationError as e:
            return ValidationFailure(errors=format_pydantic_errors(e))

        try:
            prior_bookings = 0
            if request.coupon_code == FREE_TRIAL_COUPON:
                prior_bookings = await self.count_prior_bookings(request.customer_email)
        except LookupFailureError as e:
            return LookupFailure(reason=str(e))

        availability = await self._availability.fetch_weekly_availability()
        validation = validate_booking(
            request,
            now=self._clock(),
            availability=availability,
            tz_name=self._settings.site_timezone,
            prior_bookings=prior_bookings,
            enforce_slot_alignment=self._settings.enforce_slot_alignment,
        )
        if not validation.is_valid:
            return ValidationFailure(errors=validation.get_error_messages())
        candidate = validation.candidate

        outcome = await self._guard_outcome(candidate)
        if outcome is not None:
            return outcome

        try:
            await self._collect_payment(candidate)
        except LookupFailureError as e:
            return LookupFailure(reason=str(e))
        except PaymentError as e:
            logger.warning(
                "Payment verification failed",
                extra={"intent_id": e.intent_id, "email": candidate.email},
            )
            return PaymentFailure(reason=str(e))

        outcome = await self._guard_outcome(candidate)
        if outcome is None:
            try:
                record = await self._repository.create(candidate)
            except DuplicateSlotError as e:
                outcome = DuplicateSlot(start=e.start)
            except PaymentIntentReusedError as e:
                # The payment belongs to the booking that was written first
                return PaymentFailure(reason=str(e))

        if outcome is not None:
            if candidate.payment_method == PaymentMethod.CARD:
                logger.warning(
                    "Slot lost after payment was verified; refund required",
                    extra={"intent_id": candidate.payment_intent_id, "start": candidate.date.isoformat()},
                )
            return outcome

        logger.info(
            "Booking created",
            extra={
                "booking_id": str(record.id),
                "start": record.date.isoformat(),
                "lesson_type": record.lesson_type.value,
                "final_price": record.final_price,
            },
        )
        self._schedule_notifications(record)
        return BookingCreated(booking=record)

    def _schedule_notifications(self, record: BookingRecord) -> None:
        task = asyncio.create_task(self._send_booking_emails(record))
        self._pending_notifications.add(task)
        task.add_done_callback(self._notification_done)

    def _notification_done(self, task: asyncio.Task) -> None:
        self._pending_notifications.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Booking notification task crashed: {exc!r}")

    async def _send_booking_emails(self, record: BookingRecord) -> None:
        for send in (self._notifier.send_booking_confirmation, self._notifier.send_admin_booking_notification):
            try:
                await send(record)
            except NotificationError as e:
                logger.error(
                    f"Failed to send {send.__name__} for booking {record.id}: {e}",
                    extra={"booking_id": str(record.id)},
                )

    async def drain_notifications(self) -> None:
        """Wait for in-flight confirmation emails, e.g. on shutdown."""
        if self._pending_notifications:
            await asyncio.gather(*list(self._pending_notifications), return_exceptions=True)

    async def quote_payment(self, request: PaymentIntentRequest) -> Dict[str, Any]:
        """
        Price a lesson and create a payment intent for it.

        Returns:
            {"free": True, ...} for fully discounted lessons, otherwise the
            intent client secret with amount and currency

        Raises:
            ValueError: If the coupon is unknown or the customer is not eligible
            LookupFailureError: If eligibility could not be checked
            PaymentError: If the intent could not be created
        """
        if not is_known_coupon(request.coupon):
            raise ValueError(f"Unknown coupon code '{request.coupon}'")
        if request.coupon == FREE_TRIAL_COUPON and request.customer_email:
            if not await self.is_free_trial_eligible(request.customer_email):
                raise ValueError("The free trial is only available for a first booking")

        price = quote(request.lesson_type, request.participants, request.coupon)
        if price.final_price == 0:
            return {"free": True, "amount": 0, "currency": self._settings.payment_currency}

        client_secret = await self._payments.create_payment_intent(
            price.final_price,
            self._settings.payment_currency,
            metadata={
                "lesson_type": request.lesson_type.value,
                "participants": str(request.participants),
            },
        )
        return {
            "client_secret": client_secret,
            "amount": price.final_price,
            "currency": self._settings.payment_currency,
        }

    async def send_contact(self, message: ContactMessage) -> None:
        """
        Raises:
            NotificationError: If the message could not be delivered.
        """
        await self._notifier.send_contact_message(message)
        logger.info("Contact message sent", extra={"email": message.email})
