"""Baseline migration - users, preferences, appointments, notifications

Revision ID: 0001_baseline
Revises: 
Create Date: 2026-10-19

Creates every table the reminder job and the API read and write.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001_baseline'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    """Create the baseline schema."""

    # ==========================================================================
    # Users
    # ==========================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('name', sa.String(255), nullable=True),
        sa.Column('role', sa.String(20), nullable=False, server_default='user'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('ban_reason', sa.String(500), nullable=True),
        sa.Column('token_version', sa.Integer(), nullable=False, server_default='1'),
        *_timestamps(),
    )

    # ==========================================================================
    # User preferences (one row per user, created lazily)
    # ==========================================================================
    op.create_table(
        'user_preferences',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('reminder_enabled', sa.Boolean(), server_default=sa.true()),
        sa.Column('reminder_hours_before', sa.Integer(), server_default='24'),
        sa.Column('email_reminders', sa.Boolean(), server_default=sa.true()),
        sa.Column('in_app_reminders', sa.Boolean(), server_default=sa.true()),
        sa.Column('appointment_created_notif', sa.Boolean(), server_default=sa.true()),
        sa.Column('appointment_rescheduled_notif', sa.Boolean(), server_default=sa.true()),
        sa.Column('appointment_cancelled_notif', sa.Boolean(), server_default=sa.true()),
        sa.Column('default_duration_minutes', sa.Integer(), server_default='30'),
        sa.Column('buffer_minutes', sa.Integer(), server_default='0'),
        *_timestamps(),
    )

    # ==========================================================================
    # Appointments
    # ==========================================================================
    op.create_table(
        'appointments',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('start_date_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_date_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('duration', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='scheduled'),
        sa.Column('location', sa.String(500), nullable=True),
        sa.Column('meeting_url', sa.String(1000), nullable=True),
        sa.Column('email_notification_sent', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('reminder_sent', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('reminder_sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('reminder_attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancel_reason', sa.Text(), nullable=True),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('end_date_time > start_date_time', name='ck_appointment_end_after_start'),
    )
    op.create_index('idx_appointments_user_start', 'appointments', ['user_id', 'start_date_time'])
    op.create_index(
        'idx_appointments_reminder_window',
        'appointments',
        ['status', 'reminder_sent', 'start_date_time'],
    )

    # ==========================================================================
    # Notifications
    # ==========================================================================
    op.create_table(
        'notifications',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('type', sa.String(50), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('entity_type', sa.String(50), nullable=True),
        sa.Column('entity_id', sa.Uuid(), nullable=True),
        sa.Column('read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('read_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('idx_notif_user_unread', 'notifications', ['user_id', 'read', 'created_at'])
    op.create_index('idx_notif_entity', 'notifications', ['entity_type', 'entity_id'])


def downgrade() -> None:
    op.drop_table('notifications')
    op.drop_table('appointments')
    op.drop_table('user_preferences')
    op.drop_table('users')
