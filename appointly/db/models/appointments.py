"""Appointment model."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    false,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from appointly.db.base import Base
from appointly.db.enums import AppointmentStatus

if TYPE_CHECKING:
    from appointly.db.models import User


class Appointment(Base):
    """
    A user's appointment.

    Reminder bookkeeping: reminder_sent_at is set iff reminder_sent is true.
    Rows are soft-deleted via deleted_at and never hard-deleted.
    """

    __tablename__ = "appointments"
    __table_args__ = (
        CheckConstraint("end_date_time > start_date_time", name="ck_appointment_end_after_start"),
        Index("idx_appointments_user_start", "user_id", "start_date_time"),
        Index("idx_appointments_reminder_window", "status", "reminder_sent", "start_date_time"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Interval; duration (minutes) is kept consistent with it by the service layer
    start_date_time: Mapped[datetime] = mapped_column(nullable=False)
    end_date_time: Mapped[datetime] = mapped_column(nullable=False)
    duration: Mapped[int] = mapped_column(Integer, nullable=False)

    status: Mapped[str] = mapped_column(
        String(20), default=AppointmentStatus.SCHEDULED.value, nullable=False
    )
    location: Mapped[str | None] = mapped_column(String(500), nullable=True)
    meeting_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    # Email bookkeeping
    email_notification_sent: Mapped[bool] = mapped_column(
        default=False, server_default=false(), nullable=False
    )
    reminder_sent: Mapped[bool] = mapped_column(default=False, server_default=false(), nullable=False)
    reminder_sent_at: Mapped[datetime | None] = mapped_column(nullable=True)
    reminder_attempts: Mapped[int] = mapped_column(
        Integer, default=0, server_default="0", nullable=False
    )

    # Cancellation
    cancelled_at: Mapped[datetime | None] = mapped_column(nullable=True)
    cancel_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Soft delete
    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )

    user: Mapped["User"] = relationship(back_populates="appointments")
