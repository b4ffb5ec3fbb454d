"""Service handles built once at startup and shared through app.state."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from core.settings import Settings
from db.repositories import AvailabilityRepository, BookingRepository
from db.session import Database
from services.availability_service import AvailabilityService
from services.booking_service import BookingService
from services.conflict_guard import ConflictGuard
from services.notification_service import Notifier, ResendNotifier
from services.payment_service import PaymentGateway, StripePaymentGateway


logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    settings: Settings
    database: Database
    booking_repository: BookingRepository
    availability_repository: AvailabilityRepository
    guard: ConflictGuard
    availability: AvailabilityService
    bookings: BookingService
    payments: PaymentGateway
    notifier: Notifier

    async def close(self) -> None:
        """Flush pending emails and release database connections."""
        await self.bookings.drain_notifications()
        await self.database.close()


def build_container(
    settings: Settings,
    *,
    database: Optional[Database] = None,
    payments: Optional[PaymentGateway] = None,
    notifier: Optional[Notifier] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> ServiceContainer:
    """
    Wire repositories, services and external collaborators.

    Collaborators not given are built from settings: the database from
    DATABASE_URL, Stripe for payments and Resend for email.
    """
    database = database or Database.from_settings(settings)
    payments = payments or StripePaymentGateway(settings.stripe_secret_key)
    notifier = notifier or ResendNotifier(
        settings.resend_api_key,
        settings.mail_from,
        settings.admin_email,
        settings.site_timezone,
    )

    booking_repository = BookingRepository(database)
    availability_repository = AvailabilityRepository(database)
    guard = ConflictGuard(booking_repository, settings)
    availability = AvailabilityService(availability_repository, guard, settings, clock)
    bookings = BookingService(
        booking_repository,
        guard,
        availability,
        payments,
        notifier,
        settings,
        clock,
    )

    logger.debug("Service container built")
    return ServiceContainer(
        settings=settings,
        database=database,
        booking_repository=booking_repository,
        availability_repository=availability_repository,
        guard=guard,
        availability=availability,
        bookings=bookings,
        payments=payments,
        notifier=notifier,
    )
