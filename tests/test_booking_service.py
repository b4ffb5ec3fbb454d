"""Integration tests for booking submission."""
import asyncio

import pytest

from conftest import FakeNotifier, StubBookingLookup, lesson_start
from apps.api.container import build_container
from db.repositories import default_weekly_availability
from domain.enums import PaymentMethod
from domain.models import BookedInterval, ContactMessage, PaymentIntentRequest
from domain.results import (
    SLOT_TAKEN_MESSAGE,
    BookingCreated,
    DuplicateSlot,
    LookupFailure,
    PaymentFailure,
    SlotConflict,
    ValidationFailure,
)
from domain.errors import NotificationError
from services.conflict_guard import ConflictGuard


@pytest.fixture
def cash_payload(booking_payload):
    payload = dict(booking_payload, payment_method="cash")
    payload.pop("payment_intent_id")
    return payload


@pytest.mark.integration
class TestSubmitBooking:
    """Test the submission flow outcomes."""

    async def test_card_booking_created(self, booking_service, booking_payload, payments, notifier):
        """Test a paid booking is stored and confirmed by email."""
        payments.succeed("pi_test_1", 2500)

        outcome = await booking_service.submit(booking_payload)
        await booking_service.drain_notifications()

        assert isinstance(outcome, BookingCreated)
        assert outcome.status_code == 201
        booking = outcome.booking
        assert booking.date == lesson_start(13)
        assert booking.email == "taro@example.com"
        assert booking.payment_method == PaymentMethod.CARD
        assert booking.payment_intent_id == "pi_test_1"
        assert payments.verified == ["pi_test_1"]
        assert [b.id for b in notifier.confirmations] == [booking.id]
        assert [b.id for b in notifier.admin_notifications] == [booking.id]

    async def test_missing_fields_rejected_before_any_lookup(self, booking_service, payments):
        """Test an incomplete form is rejected without touching payments."""
        outcome = await booking_service.submit({"customer_name": "山田 太郎"})

        assert isinstance(outcome, ValidationFailure)
        assert outcome.status_code == 400
        assert any(error.startswith("date") for error in outcome.errors)
        assert any(error.startswith("participant_count") for error in outcome.errors)
        assert payments.verified == []

    async def test_non_positive_participants_rejected(self, booking_service, booking_payload):
        """Test zero participants is a validation failure."""
        outcome = await booking_service.submit(dict(booking_payload, participant_count=0))
        assert isinstance(outcome, ValidationFailure)

    async def test_business_rule_failure(self, booking_service, booking_payload, payments):
        """Test a tampered price is rejected and nothing is written."""
        outcome = await booking_service.submit(dict(booking_payload, price=100))

        assert isinstance(outcome, ValidationFailure)
        assert payments.verified == []
        assert await booking_service.is_free_trial_eligible("taro@example.com") is True

    async def test_conflict_blocks_payment(self, booking_service, cash_payload, booking_payload, payments):
        """Test a taken slot is reported before the payment is checked."""
        first = await booking_service.submit(cash_payload)
        assert isinstance(first, BookingCreated)

        payments.succeed("pi_test_1", 2500)
        outcome = await booking_service.submit(dict(booking_payload, customer_email="hanako@example.com"))

        assert isinstance(outcome, SlotConflict)
        assert outcome.status_code == 409
        assert outcome.message == SLOT_TAKEN_MESSAGE
        assert outcome.conflict.date == lesson_start(13)
        assert payments.verified == []

    async def test_overlapping_start_conflicts(self, booking_service, cash_payload):
        """Test a booking overlapping a longer one is caught by the guard."""
        long_lesson = dict(cash_payload, duration=120, price=2500)
        assert isinstance(await booking_service.submit(long_lesson), BookingCreated)

        outcome = await booking_service.submit(
            dict(cash_payload, date=lesson_start(14).isoformat(), customer_email="hanako@example.com")
        )
        assert isinstance(outcome, SlotConflict)

    async def test_unverified_payment(self, booking_service, booking_payload, notifier):
        """Test an unpaid intent is a payment failure and nothing is stored."""
        outcome = await booking_service.submit(booking_payload)

        assert isinstance(outcome, PaymentFailure)
        assert outcome.status_code == 402
        assert await booking_service.check_availability(lesson_start(13), 60) is True
        assert notifier.confirmations == []

    async def test_wrong_payment_amount(self, booking_service, booking_payload, payments):
        """Test an intent for a different amount is refused."""
        payments.succeed("pi_test_1", 500)

        outcome = await booking_service.submit(booking_payload)
        assert isinstance(outcome, PaymentFailure)

    async def test_free_trial_booking(self, booking_service, cash_payload, payments):
        """Test a first-time customer books for free without a payment."""
        payload = dict(cash_payload, coupon_code="freelesson", coupon_discount=2500)

        outcome = await booking_service.submit(payload)

        assert isinstance(outcome, BookingCreated)
        assert outcome.booking.final_price == 0
        assert outcome.booking.payment_method == PaymentMethod.FREE
        assert outcome.booking.coupon == "freelesson"
        assert payments.verified == []

    async def test_free_trial_only_once(self, booking_service, cash_payload):
        """Test a returning customer cannot use the free trial."""
        assert isinstance(await booking_service.submit(cash_payload), BookingCreated)

        outcome = await booking_service.submit(
            dict(
                cash_payload,
                date=lesson_start(15).isoformat(),
                coupon_code="freelesson",
                coupon_discount=2500,
            )
        )
        assert isinstance(outcome, ValidationFailure)

    async def test_notification_failure_keeps_booking(self, container, cash_payload, settings, clock):
        """Test email failures are logged and the booking stays stored."""
        failing = build_container(
            settings,
            database=container.database,
            payments=container.payments,
            notifier=FakeNotifier(fail=True),
            clock=clock,
        )

        outcome = await failing.bookings.submit(cash_payload)
        await failing.bookings.drain_notifications()

        assert isinstance(outcome, BookingCreated)
        assert await failing.bookings.check_availability(lesson_start(13), 60) is False

    async def test_lookup_failure_fails_closed(self, booking_service, cash_payload, settings, monkeypatch):
        """Test an unreachable bookings store blocks the submission."""
        guard = ConflictGuard(StubBookingLookup(failures=99), settings)
        monkeypatch.setattr(booking_service, "_guard", guard)

        outcome = await booking_service.submit(cash_payload)

        assert isinstance(outcome, LookupFailure)
        assert outcome.status_code == 503
        assert outcome.retryable is True

    async def test_second_guard_check_catches_late_booking(self, booking_service, booking_payload, payments, settings, monkeypatch):
        """Test a booking written while the payment was verified is caught before the write."""
        lookup = StubBookingLookup()
        monkeypatch.setattr(booking_service, "_guard", ConflictGuard(lookup, settings))
        payments.succeed("pi_test_1", 2500)

        original_verify = payments.verify_payment

        async def verify_then_lose_slot(intent_id, amount, currency):
            await original_verify(intent_id, amount, currency)
            lookup.bookings.append(BookedInterval(date=lesson_start(13), duration=60))

        monkeypatch.setattr(payments, "verify_payment", verify_then_lose_slot)

        outcome = await booking_service.submit(booking_payload)
        assert isinstance(outcome, SlotConflict)

    async def test_duplicate_slot_when_guard_misses(self, booking_service, cash_payload, settings, monkeypatch):
        """Test the storage constraint rejects a start the guard did not see."""
        assert isinstance(await booking_service.submit(cash_payload), BookingCreated)
        monkeypatch.setattr(booking_service, "_guard", ConflictGuard(StubBookingLookup(), settings))

        outcome = await booking_service.submit(dict(cash_payload, customer_email="hanako@example.com"))

        assert isinstance(outcome, DuplicateSlot)
        assert outcome.status_code == 409
        assert outcome.message == SLOT_TAKEN_MESSAGE

    async def test_payment_intent_pays_for_one_booking(self, booking_service, booking_payload, payments):
        """Test a paid intent cannot be reused for further lessons."""
        payments.succeed("pi_test_1", 2500)

        outcomes = [
            await booking_service.submit(dict(booking_payload, date=lesson_start(hour).isoformat()))
            for hour in (13, 15, 17)
        ]

        assert isinstance(outcomes[0], BookingCreated)
        assert all(isinstance(o, PaymentFailure) for o in outcomes[1:])
        assert payments.verified == ["pi_test_1"]
        assert await booking_service.check_availability(lesson_start(15), 60) is True

    async def test_reused_intent_rejected_by_storage(self, booking_service, booking_payload, payments, monkeypatch):
        """Test the unique intent key catches a reuse the lookup missed."""
        payments.succeed("pi_test_1", 2500)
        assert isinstance(await booking_service.submit(booking_payload), BookingCreated)

        async def never_used(intent_id):
            return False

        monkeypatch.setattr(booking_service._repository, "payment_intent_used", never_used)

        outcome = await booking_service.submit(dict(booking_payload, date=lesson_start(15).isoformat()))
        assert isinstance(outcome, PaymentFailure)

    async def test_unreachable_database_fails_closed(self, settings, unreachable_database, payments, notifier, clock, cash_payload):
        """Test a refused database connection gives a retryable lookup failure."""
        unreachable = build_container(
            settings,
            database=unreachable_database,
            payments=payments,
            notifier=notifier,
            clock=clock,
        )

        outcome = await unreachable.bookings.submit(cash_payload)

        assert isinstance(outcome, LookupFailure)
        assert outcome.retryable is True
        assert await unreachable.availability.fetch_weekly_availability() == default_weekly_availability()

    async def test_concurrent_submissions_book_slot_once(self, booking_service, cash_payload, container):
        """Test two racing submissions for the same slot produce exactly one booking."""
        second = dict(cash_payload, customer_name="佐藤 花子", customer_email="hanako@example.com")
        await container.availability.fetch_weekly_availability()

        outcomes = await asyncio.gather(
            booking_service.submit(cash_payload),
            booking_service.submit(second),
        )

        created = [o for o in outcomes if isinstance(o, BookingCreated)]
        rejected = [o for o in outcomes if isinstance(o, (SlotConflict, DuplicateSlot))]
        assert len(created) == 1
        assert len(rejected) == 1
        stored = await container.guard.fetch_bookings_for_date(lesson_start(13).date())
        assert len(stored) == 1


@pytest.mark.integration
class TestPaymentQuotes:
    """Test payment intent creation."""

    async def test_paid_quote_creates_intent(self, booking_service, payments):
        """Test a paid lesson gets an intent for the server price."""
        result = await booking_service.quote_payment(
            PaymentIntentRequest(lesson_type="in-person", participants=2)
        )

        assert result["amount"] == 4000
        assert result["currency"] == "jpy"
        assert result["client_secret"].startswith("pi_fake_")
        assert payments.created[0]["amount"] == 4000

    async def test_free_quote_skips_intent(self, booking_service, payments):
        """Test a fully discounted lesson needs no intent."""
        result = await booking_service.quote_payment(
            PaymentIntentRequest(lesson_type="online", participants=1, coupon="FREELESSON")
        )

        assert result["free"] is True
        assert payments.created == []

    async def test_unknown_coupon(self, booking_service):
        with pytest.raises(ValueError):
            await booking_service.quote_payment(
                PaymentIntentRequest(lesson_type="online", participants=1, coupon="bogus")
            )

    async def test_returning_customer_free_trial(self, booking_service, cash_payload):
        """Test the free trial quote is refused for a returning customer."""
        await booking_service.submit(cash_payload)

        with pytest.raises(ValueError):
            await booking_service.quote_payment(
                PaymentIntentRequest(
                    lesson_type="online",
                    participants=1,
                    coupon="freelesson",
                    customer_email="taro@example.com",
                )
            )


@pytest.mark.integration
class TestContact:
    """Test contact form delivery."""

    async def test_contact_sent(self, booking_service, notifier):
        message = ContactMessage(name="山田", email="taro@example.com", subject="質問", message="こんにちは")
        await booking_service.send_contact(message)
        assert notifier.contact_messages == [message]

    async def test_contact_failure_raises(self, container, settings):
        failing = build_container(
            settings,
            database=container.database,
            payments=container.payments,
            notifier=FakeNotifier(fail=True),
        )
        message = ContactMessage(name="山田", email="taro@example.com", subject="質問", message="こんにちは")

        with pytest.raises(NotificationError):
            await failing.bookings.send_contact(message)
