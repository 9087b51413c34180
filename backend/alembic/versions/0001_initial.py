"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-18
"""
from alembic import op
import sqlalchemy as sa

revision = '0001'
down_revision = None
branch_labels = None
depends_on = None

ACTIVE = sa.text("status IN ('pending', 'confirmed')")


def upgrade():
    op.create_table(
        'centers',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('city', sa.Text(), nullable=False),
        sa.Column('address', sa.Text(), nullable=False),
        sa.Column('lat', sa.Float(), nullable=False),
        sa.Column('lng', sa.Float(), nullable=False),
        sa.Column('capacity_per_slot', sa.Integer(), nullable=False, server_default=sa.text('1')),
        sa.Column('slot_duration_minutes', sa.Integer(), nullable=False, server_default=sa.text('20')),
        sa.Column('working_hours', sa.Text(), nullable=False, server_default=sa.text("'{}'")),
        sa.Column('timezone', sa.Text(), nullable=False, server_default=sa.text("'Africa/Casablanca'")),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.current_timestamp()),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.current_timestamp()),
    )
    op.create_table(
        'service_types',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.Text(), nullable=False, unique=True),
        sa.Column('description', sa.Text()),
        sa.Column('duration_minutes', sa.Integer()),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    op.create_table(
        'center_services',
        sa.Column('center_id', sa.Integer(), sa.ForeignKey('centers.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('service_type_id', sa.Integer(), sa.ForeignKey('service_types.id', ondelete='CASCADE'), primary_key=True),
    )
    op.create_table(
        'blackout_days',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('center_id', sa.Integer(), sa.ForeignKey('centers.id', ondelete='CASCADE'), nullable=False),
        sa.Column('date', sa.Text(), nullable=False),
        sa.Column('reason', sa.Text()),
        sa.UniqueConstraint('center_id', 'date'),
    )
    op.create_table(
        'slots',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('center_id', sa.Integer(), sa.ForeignKey('centers.id', ondelete='CASCADE'), nullable=False),
        sa.Column('date', sa.Text(), nullable=False),
        sa.Column('start_time', sa.Text(), nullable=False),
        sa.Column('end_time', sa.Text(), nullable=False),
        sa.Column('start_at', sa.DateTime(), nullable=False),
        sa.Column('end_at', sa.DateTime(), nullable=False),
        sa.Column('capacity', sa.Integer(), nullable=False),
        sa.Column('taken_count', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('available', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('status', sa.Text(), nullable=False, server_default=sa.text("'available'")),
        sa.UniqueConstraint('center_id', 'date', 'start_time'),
    )
    op.create_index('ix_slots_center_range', 'slots', ['center_id', 'start_at', 'end_at'])

    op.create_table(
        'appointments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('reference', sa.Text(), nullable=False, unique=True),
        sa.Column('customer_name', sa.Text(), nullable=False),
        sa.Column('customer_phone', sa.Text(), nullable=False),
        sa.Column('vehicle_plate', sa.Text(), nullable=False),
        sa.Column('customer_notes', sa.Text()),
        sa.Column('center_id', sa.Integer(), sa.ForeignKey('centers.id'), nullable=False),
        sa.Column('service_type_id', sa.Integer(), sa.ForeignKey('service_types.id'), nullable=False),
        sa.Column('start_at', sa.DateTime(), nullable=False),
        sa.Column('end_at', sa.DateTime(), nullable=False),
        sa.Column('seat', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('status', sa.Text(), nullable=False, server_default=sa.text("'pending'")),
        sa.Column('cancel_reason', sa.Text()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.current_timestamp()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.current_timestamp()),
    )
    op.create_index('ix_appointments_center_range', 'appointments', ['center_id', 'start_at', 'end_at'])
    op.create_index('ix_appointments_status_start', 'appointments', ['status', 'start_at'])
    op.create_index(
        'uq_appointments_active_seat',
        'appointments',
        ['center_id', 'start_at', 'seat'],
        unique=True,
        sqlite_where=ACTIVE,
        postgresql_where=ACTIVE,
    )


def downgrade():
    op.drop_index('uq_appointments_active_seat', table_name='appointments')
    op.drop_index('ix_appointments_status_start', table_name='appointments')
    op.drop_index('ix_appointments_center_range', table_name='appointments')
    op.drop_table('appointments')
    op.drop_index('ix_slots_center_range', table_name='slots')
    op.drop_table('slots')
    op.drop_table('blackout_days')
    op.drop_table('center_services')
    op.drop_table('service_types')
    op.drop_table('centers')
