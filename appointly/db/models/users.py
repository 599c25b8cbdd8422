"""User and preference models."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Integer, String, Uuid, func, true
from sqlalchemy.orm import Mapped, mapped_column, relationship

from appointly.db.base import Base
from appointly.db.enums import Role

if TYPE_CHECKING:
    from appointly.db.models import Appointment


class User(Base):
    """
    Application user.

    Identity and credentials live with the identity provider; this row
    carries the profile, role and the ban/revocation state.
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    role: Mapped[str] = mapped_column(String(20), default=Role.USER.value, nullable=False)

    # Ban flag: inactive users are rejected at session validation
    is_active: Mapped[bool] = mapped_column(default=True, server_default=true(), nullable=False)
    ban_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # Bumped to revoke all outstanding session tokens
    token_version: Mapped[int] = mapped_column(Integer, default=1, server_default="1", nullable=False)

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )

    # Relationships
    preferences: Mapped["UserPreferences | None"] = relationship(
        back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
    appointments: Mapped[list["Appointment"]] = relationship(back_populates="user")


class UserPreferences(Base):
    """
    Per-user reminder and notification preferences.

    Created lazily: a missing row means every field takes its default.
    """

    __tablename__ = "user_preferences"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )

    # Reminders
    reminder_enabled: Mapped[bool] = mapped_column(default=True, server_default=true())
    reminder_hours_before: Mapped[int] = mapped_column(Integer, default=24, server_default="24")
    email_reminders: Mapped[bool] = mapped_column(default=True, server_default=true())
    in_app_reminders: Mapped[bool] = mapped_column(default=True, server_default=true())

    # Lifecycle notifications
    appointment_created_notif: Mapped[bool] = mapped_column(default=True, server_default=true())
    appointment_rescheduled_notif: Mapped[bool] = mapped_column(
        default=True, server_default=true()
    )
    appointment_cancelled_notif: Mapped[bool] = mapped_column(
        default=True, server_default=true()
    )

    # Booking defaults
    default_duration_minutes: Mapped[int] = mapped_column(Integer, default=30, server_default="30")
    buffer_minutes: Mapped[int] = mapped_column(Integer, default=0, server_default="0")

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )

    user: Mapped["User"] = relationship(back_populates="preferences")
