"""Booking and availability uniqueness.

Start-time uniqueness only applies to bookings that are not cancelled, a
payment intent can back a single booking, and availability ranges are
unique per day.

Revision ID: 002
Revises: 001
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '002'
down_revision: Union[str, None] = '001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Replace the start-time constraint and add the new unique keys."""
    op.drop_constraint(op.f('uq_bookings_date'), 'bookings', type_='unique')
    op.create_index(
        'uq_bookings_date',
        'bookings',
        ['date'],
        unique=True,
        postgresql_where=sa.text("status <> 'cancelled'"),
    )
    op.create_unique_constraint(
        op.f('uq_bookings_payment_intent_id'), 'bookings', ['payment_intent_id']
    )

    # Ranges seeded twice by concurrent first requests
    op.execute(
        """
        DELETE FROM availability a
        USING availability b
        WHERE a.ctid > b.ctid
          AND a.day_of_week = b.day_of_week
          AND a.start_time = b.start_time
          AND a.end_time = b.end_time
        """
    )
    op.create_unique_constraint(
        op.f('uq_availability_day_of_week'),
        'availability',
        ['day_of_week', 'start_time', 'end_time'],
    )


def downgrade() -> None:
    """Restore the plain start-time constraint."""
    op.drop_constraint(op.f('uq_availability_day_of_week'), 'availability', type_='unique')
    op.drop_constraint(op.f('uq_bookings_payment_intent_id'), 'bookings', type_='unique')
    op.drop_index('uq_bookings_date', table_name='bookings')
    op.create_unique_constraint(op.f('uq_bookings_date'), 'bookings', ['date'])
