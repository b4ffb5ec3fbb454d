"""SQLAlchemy models for the lesson booking tables."""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, DateTime, Index, Integer, String, Text, UniqueConstraint, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin
from domain.enums import BookingStatus, LessonType, PaymentMethod


ACTIVE_BOOKING_CLAUSE = f"status <> '{BookingStatus.CANCELLED.value}'"


class Booking(Base, TimestampMixin):
    """Booking table model."""

    __tablename__ = "bookings"

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
        nullable=False,
    )

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    kana: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        default="",
    )

    email: Mapped[str] = mapped_column(
        String(254),
        nullable=False,
        index=True,
    )

    # Lesson start. The unique index keys on the exact start timestamp of
    # bookings that are not cancelled; overlapping bookings with different
    # starts are not caught here.
    date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    duration: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=60,
    )

    details: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
    )

    lesson_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=LessonType.ONLINE.value,
    )

    participants: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
    )

    coupon: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True,
    )

    regular_price: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    discount_amount: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    final_price: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    payment_method: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=PaymentMethod.CARD.value,
    )

    payment_intent_id: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=BookingStatus.CONFIRMED.value,
        index=True,
    )

    __table_args__ = (
        Index(
            "uq_bookings_date",
            "date",
            unique=True,
            postgresql_where=text(ACTIVE_BOOKING_CLAUSE),
            sqlite_where=text(ACTIVE_BOOKING_CLAUSE),
        ),
        # One payment pays for one booking
        UniqueConstraint("payment_intent_id"),
        CheckConstraint("duration > 0", name="positive_duration"),
        CheckConstraint("participants >= 1", name="positive_participants"),
        CheckConstraint("discount_amount >= 0", name="non_negative_discount"),
        Index("ix_bookings_date_status", "date", "status"),
    )

    def __repr__(self) -> str:
        """String representation of Booking."""
        return (
            f"<Booking(id={self.id}, name='{self.name}', date={self.date}, "
            f"duration={self.duration}, participants={self.participants}, "
            f"status='{self.status}')>"
        )


class Availability(Base, TimestampMixin):
    """Weekly availability rows, one per day and time range."""

    __tablename__ = "availability"

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
        nullable=False,
    )

    # 0 = Sunday ... 6 = Saturday
    day_of_week: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        index=True,
    )

    start_time: Mapped[str] = mapped_column(
        String(5),
        nullable=False,
    )

    end_time: Mapped[str] = mapped_column(
        String(5),
        nullable=False,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )

    __table_args__ = (
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="valid_day_of_week"),
        UniqueConstraint("day_of_week", "start_time", "end_time"),
        Index("ix_availability_day_start", "day_of_week", "start_time"),
    )

    def __repr__(self) -> str:
        """String representation of Availability."""
        return (
            f"<Availability(day_of_week={self.day_of_week}, "
            f"{self.start_time}-{self.end_time}, active={self.is_active})>"
        )
