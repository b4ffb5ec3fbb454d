"""Database layer for the lesson booking service."""

from .base import Base, TimestampMixin
from .models_sqlalchemy import Booking, Availability
from .session import (
    Database,
    create_engine,
    create_test_engine,
)
from .repositories import (
    BookingRepository,
    AvailabilityRepository,
    default_weekly_availability,
)

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    # Models
    "Booking",
    "Availability",
    # Session
    "Database",
    "create_engine",
    "create_test_engine",
    # Repositories
    "BookingRepository",
    "AvailabilityRepository",
    "default_weekly_availability",
]
