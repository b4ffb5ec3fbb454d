"""Initial schema - create bookings and availability tables.

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create initial database tables."""
    # Create bookings table
    op.create_table(
        'bookings',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('kana', sa.String(length=100), nullable=False, server_default=''),
        sa.Column('email', sa.String(length=254), nullable=False),
        sa.Column('date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('duration', sa.Integer(), nullable=False, server_default='60'),
        sa.Column('details', sa.Text(), nullable=False, server_default=''),
        sa.Column('lesson_type', sa.String(length=20), nullable=False, server_default='online'),
        sa.Column('participants', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('coupon', sa.String(length=50), nullable=True),
        sa.Column('regular_price', sa.Integer(), nullable=False),
        sa.Column('discount_amount', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('final_price', sa.Integer(), nullable=False),
        sa.Column('payment_method', sa.String(length=20), nullable=False, server_default='card'),
        sa.Column('payment_intent_id', sa.String(length=255), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='confirmed'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_bookings')),
        # Exact start-timestamp uniqueness; interval overlap is not enforced by storage.
        sa.UniqueConstraint('date', name=op.f('uq_bookings_date')),
        sa.CheckConstraint('duration > 0', name=op.f('ck_bookings_positive_duration')),
        sa.CheckConstraint('participants >= 1', name=op.f('ck_bookings_positive_participants')),
        sa.CheckConstraint('discount_amount >= 0', name=op.f('ck_bookings_non_negative_discount')),
    )

    # Create indexes for bookings
    op.create_index(op.f('ix_bookings_email'), 'bookings', ['email'], unique=False)
    op.create_index(op.f('ix_bookings_status'), 'bookings', ['status'], unique=False)
    op.create_index(op.f('ix_bookings_created_at'), 'bookings', ['created_at'], unique=False)
    op.create_index('ix_bookings_date_status', 'bookings', ['date', 'status'], unique=False)

    # Create availability table
    op.create_table(
        'availability',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('day_of_week', sa.Integer(), nullable=False),
        sa.Column('start_time', sa.String(length=5), nullable=False),
        sa.Column('end_time', sa.String(length=5), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_availability')),
        sa.CheckConstraint('day_of_week BETWEEN 0 AND 6', name=op.f('ck_availability_valid_day_of_week')),
    )

    # Create indexes for availability
    op.create_index(op.f('ix_availability_day_of_week'), 'availability', ['day_of_week'], unique=False)
    op.create_index(op.f('ix_availability_created_at'), 'availability', ['created_at'], unique=False)
    op.create_index('ix_availability_day_start', 'availability', ['day_of_week', 'start_time'], unique=False)


def downgrade() -> None:
    """Drop all tables."""
    # Drop availability indexes and table
    op.drop_index('ix_availability_day_start', table_name='availability')
    op.drop_index(op.f('ix_availability_created_at'), table_name='availability')
    op.drop_index(op.f('ix_availability_day_of_week'), table_name='availability')
    op.drop_table('availability')

    # Drop bookings indexes and table
    op.drop_index('ix_bookings_date_status', table_name='bookings')
    op.drop_index(op.f('ix_bookings_created_at'), table_name='bookings')
    op.drop_index(op.f('ix_bookings_status'), table_name='bookings')
    op.drop_index(op.f('ix_bookings_email'), table_name='bookings')
    op.drop_table('bookings')
