"""initial booking schema

Revision ID: 0001_initial_booking_schema
Revises:
Create Date: 2026-10-17 09:12:44.218771

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '0001_initial_booking_schema'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""

    # 1. Providers and their catalog
    op.create_table(
        'providers',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('timezone', sa.String(50), nullable=False, server_default='UTC'),
        sa.Column('buffer_minutes', sa.Integer, nullable=True),
        sa.Column('slot_granularity_minutes', sa.Integer, nullable=True),
        sa.Column('is_active', sa.Boolean, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, server_default=sa.func.now())
    )

    op.create_table(
        'services',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('provider_id', sa.String(36), sa.ForeignKey('providers.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('price', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('duration', sa.Integer, nullable=False),
        sa.Column('is_active', sa.Boolean, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, server_default=sa.func.now())
    )
    op.create_index('ix_services_provider_id', 'services', ['provider_id'])
    op.create_index('ix_services_is_active', 'services', ['is_active'])

    op.create_table(
        'service_add_ons',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('service_id', sa.String(36), sa.ForeignKey('services.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('price', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('duration', sa.Integer, nullable=False, server_default='0'),
        sa.Column('is_required', sa.Boolean, server_default=sa.false())
    )
    op.create_index('ix_service_add_ons_service_id', 'service_add_ons', ['service_id'])

    # 2. Availability: weekly rules, breaks, overrides, events
    op.create_table(
        'availability_rules',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('provider_id', sa.String(36), sa.ForeignKey('providers.id', ondelete='CASCADE'), nullable=False),
        sa.Column('day_of_week', sa.Integer, nullable=False),
        sa.Column('start_time', sa.Time, nullable=False),
        sa.Column('end_time', sa.Time, nullable=False),
        sa.Column('is_active', sa.Boolean, server_default=sa.true()),
        sa.Column('effective_from', sa.Date, nullable=False),
        sa.Column('effective_to', sa.Date, nullable=True),
        sa.Column('timezone', sa.String(50), nullable=False, server_default='UTC'),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, server_default=sa.func.now())
    )
    op.create_index('ix_availability_rules_provider_id', 'availability_rules', ['provider_id'])

    op.create_table(
        'break_intervals',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('rule_id', sa.String(36), sa.ForeignKey('availability_rules.id', ondelete='CASCADE'), nullable=False),
        sa.Column('start_time', sa.Time, nullable=False),
        sa.Column('end_time', sa.Time, nullable=False),
        sa.Column('name', sa.String(100), nullable=False, server_default='Break'),
        sa.Column('is_recurring', sa.Boolean, server_default=sa.true())
    )
    op.create_index('ix_break_intervals_rule_id', 'break_intervals', ['rule_id'])

    op.create_table(
        'availability_overrides',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('provider_id', sa.String(36), sa.ForeignKey('providers.id', ondelete='CASCADE'), nullable=False),
        sa.Column('date', sa.Date, nullable=False),
        sa.Column('is_available', sa.Boolean, nullable=False),
        sa.Column('start_time', sa.Time, nullable=True),
        sa.Column('end_time', sa.Time, nullable=True),
        sa.Column('reason', sa.String, nullable=True),
        sa.Column('updated_at', sa.DateTime, server_default=sa.func.now()),
        sa.UniqueConstraint('provider_id', 'date', name='uq_availability_override_provider_date')
    )
    op.create_index('ix_availability_overrides_provider_id', 'availability_overrides', ['provider_id'])

    op.create_table(
        'calendar_events',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('provider_id', sa.String(36), sa.ForeignKey('providers.id', ondelete='CASCADE'), nullable=False),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('type', sa.String(20), nullable=False, server_default='holiday'),
        sa.Column('start_date', sa.DateTime, nullable=False),
        sa.Column('end_date', sa.DateTime, nullable=False),
        sa.Column('all_day', sa.Boolean, server_default=sa.false()),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('affects_availability', sa.Boolean, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now())
    )
    op.create_index('ix_calendar_events_provider_id', 'calendar_events', ['provider_id'])

    # 3. Packages
    op.create_table(
        'booking_packages',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('client_id', sa.String(36), nullable=False),
        sa.Column('provider_id', sa.String(36), sa.ForeignKey('providers.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('service_ids', sa.JSON, nullable=False),
        sa.Column('total_sessions', sa.Integer, nullable=False),
        sa.Column('sessions_used', sa.Integer, nullable=False, server_default='0'),
        sa.Column('validity_days', sa.Integer, nullable=False, server_default='365'),
        sa.Column('purchase_date', sa.DateTime, nullable=False),
        sa.Column('price', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('discount_percentage', sa.Numeric(5, 2), nullable=False, server_default='0'),
        sa.Column('is_transferrable', sa.Boolean, server_default=sa.false()),
        sa.Column('is_active', sa.Boolean, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.CheckConstraint(
            'sessions_used >= 0 AND sessions_used <= total_sessions',
            name='ck_booking_packages_sessions_used'
        )
    )
    op.create_index('ix_booking_packages_client_id', 'booking_packages', ['client_id'])

    # 4. Bookings (self-referencing series tree)
    op.create_table(
        'bookings',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('client_id', sa.String(36), nullable=False),
        sa.Column('provider_id', sa.String(36), sa.ForeignKey('providers.id', ondelete='CASCADE'), nullable=False),
        sa.Column('service_ids', sa.JSON, nullable=False),
        sa.Column('add_on_ids', sa.JSON, nullable=False),
        sa.Column('package_id', sa.String(36), sa.ForeignKey('booking_packages.id'), nullable=True),
        sa.Column('reservation_id', sa.String(36), nullable=True),
        sa.Column('booking_type', sa.String(20), nullable=False, server_default='single'),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('scheduled_date_time', sa.DateTime, nullable=False),
        sa.Column('duration', sa.Integer, nullable=False),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('recurrence_config', sa.JSON, nullable=True),
        sa.Column('is_series_parent', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('parent_booking_id', sa.String(36), sa.ForeignKey('bookings.id'), nullable=True),
        sa.Column('rescheduled_from_id', sa.String(36), nullable=True),
        sa.Column('rescheduled_to_id', sa.String(36), nullable=True),
        sa.Column('payment_status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('total_amount', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('paid_amount', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('payment_reference', sa.String(100), nullable=True),
        sa.Column('cancellation_reason', sa.Text, nullable=True),
        sa.Column('cancelled_by', sa.String(20), nullable=True),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('confirmed_at', sa.DateTime, nullable=True),
        sa.Column('started_at', sa.DateTime, nullable=True),
        sa.Column('completed_at', sa.DateTime, nullable=True),
        sa.Column('cancelled_at', sa.DateTime, nullable=True),
        sa.Column('no_show_at', sa.DateTime, nullable=True),
        sa.Column('rescheduled_at', sa.DateTime, nullable=True)
    )
    op.create_index('ix_bookings_client_id', 'bookings', ['client_id'])
    op.create_index('ix_bookings_package_id', 'bookings', ['package_id'])
    op.create_index('ix_bookings_parent_booking_id', 'bookings', ['parent_booking_id'])
    op.create_index('ix_bookings_provider_schedule', 'bookings', ['provider_id', 'scheduled_date_time'])

    op.create_table(
        'package_ledger_entries',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('package_id', sa.String(36), sa.ForeignKey('booking_packages.id', ondelete='CASCADE'), nullable=False),
        sa.Column('booking_id', sa.String(36), sa.ForeignKey('bookings.id'), nullable=False),
        sa.Column('sessions', sa.Integer, nullable=False, server_default='1'),
        sa.Column('reason', sa.String(20), nullable=False),
        sa.Column('created_at', sa.DateTime, nullable=False),
        sa.UniqueConstraint('package_id', 'booking_id', name='uq_package_ledger_booking')
    )

    # 5. Reservation holds
    op.create_table(
        'time_slot_reservations',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('time_slot_id', sa.String(80), nullable=False),
        sa.Column('client_id', sa.String(36), nullable=False),
        sa.Column('provider_id', sa.String(36), sa.ForeignKey('providers.id', ondelete='CASCADE'), nullable=False),
        sa.Column('service_id', sa.String(36), sa.ForeignKey('services.id'), nullable=False),
        sa.Column('start_time', sa.DateTime, nullable=False),
        sa.Column('end_time', sa.DateTime, nullable=False),
        sa.Column('duration', sa.Integer, nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('reserved_at', sa.DateTime, nullable=False),
        sa.Column('expires_at', sa.DateTime, nullable=False),
        sa.Column('confirmed_at', sa.DateTime, nullable=True),
        sa.Column('cancelled_at', sa.DateTime, nullable=True),
        sa.Column('booking_id', sa.String(36), sa.ForeignKey('bookings.id'), nullable=True),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now())
    )
    op.create_index('ix_time_slot_reservations_client_id', 'time_slot_reservations', ['client_id'])
    op.create_index('ix_time_slot_reservations_expires_at', 'time_slot_reservations', ['expires_at'])
    op.create_index(
        'ix_reservations_provider_window',
        'time_slot_reservations',
        ['provider_id', 'start_time', 'end_time']
    )


def downgrade() -> None:
    """Downgrade schema."""

    # Drop tables in reverse order (due to foreign keys)
    op.drop_table('time_slot_reservations')
    op.drop_table('package_ledger_entries')
    op.drop_table('bookings')
    op.drop_table('booking_packages')
    op.drop_table('calendar_events')
    op.drop_table('availability_overrides')
    op.drop_table('break_intervals')
    op.drop_table('availability_rules')
    op.drop_table('service_add_ons')
    op.drop_table('services')
    op.drop_table('providers')
