"""Appointment service - business logic for a user's appointments.

Handles:
- Creation with interval validation and derived duration
- Partial updates (a reschedule re-arms the reminder)
- Status transitions and cancellation
- Soft delete, lookups, filtered listing and per-user stats
"""

from datetime import datetime, timedelta
from typing import NamedTuple
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.orm import Session

from appointly.db.enums import AppointmentStatus, TERMINAL_APPOINTMENT_STATUSES
from appointly.db.models import Appointment
from appointly.services import notification_service, preferences_service
from appointly.utils.datetime_utils import ensure_utc, utc_now


# Statuses an update_status call may move to
STATUS_TARGETS = frozenset(
    {
        AppointmentStatus.IN_PROGRESS,
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.NO_SHOW,
    }
)

EDITABLE_FIELDS = ("title", "description", "location", "meeting_url")


class AppointmentStats(NamedTuple):
    total: int
    upcoming: int
    completed: int
    cancelled: int


class UpdateOutcome(NamedTuple):
    """Result of update_appointment; old_start is set only on a reschedule."""
    appointment: Appointment
    rescheduled: bool
    old_start: datetime | None


def _duration_minutes(start: datetime, end: datetime) -> int:
    return int((end - start).total_seconds() // 60)


def _validate_interval(start: datetime, end: datetime) -> None:
    if end <= start:
        raise ValueError("End time must be after start time")


def _is_terminal(status: str) -> bool:
    return status in {s.value for s in TERMINAL_APPOINTMENT_STATUSES}


# =============================================================================
# Create / Update
# =============================================================================

def create_appointment(
    db: Session,
    user_id: UUID,
    title: str,
    start_date_time: datetime,
    end_date_time: datetime | None = None,
    description: str | None = None,
    location: str | None = None,
    meeting_url: str | None = None,
) -> Appointment:
    """
    Create a scheduled appointment.

    When end_date_time is omitted the user's default duration is used.
    Raises ValueError if the interval is empty or inverted.
    """
    start = ensure_utc(start_date_time)
    if end_date_time is None:
        prefs = preferences_service.get_user_preferences(db, user_id)
        end = start + timedelta(minutes=prefs.default_duration_minutes)
    else:
        end = ensure_utc(end_date_time)
    _validate_interval(start, end)

    appointment = Appointment(
        user_id=user_id,
        title=title.strip(),
        description=description,
        start_date_time=start,
        end_date_time=end,
        duration=_duration_minutes(start, end),
        status=AppointmentStatus.SCHEDULED.value,
        location=location,
        meeting_url=meeting_url,
    )
    db.add(appointment)
    db.commit()
    db.refresh(appointment)

    notification_service.notify_appointment_created(
        db=db,
        user_id=user_id,
        appointment_id=appointment.id,
        appointment_title=appointment.title,
        start_date_time=start,
    )
    return appointment


def update_appointment(
    db: Session,
    appointment: Appointment,
    updates: dict,
) -> UpdateOutcome:
    """
    Apply a partial update.

    Moving start or end recomputes duration and re-arms the reminder
    (reminder_sent, reminder_sent_at and reminder_attempts are reset).
    """
    if _is_terminal(appointment.status):
        raise ValueError(f"Cannot update appointment with status {appointment.status}")

    old_start = ensure_utc(appointment.start_date_time)
    old_end = ensure_utc(appointment.end_date_time)

    new_start = ensure_utc(updates.get("start_date_time")) or old_start
    new_end = ensure_utc(updates.get("end_date_time")) or old_end
    rescheduled = new_start != old_start or new_end != old_end

    if rescheduled:
        _validate_interval(new_start, new_end)
        appointment.start_date_time = new_start
        appointment.end_date_time = new_end
        appointment.duration = _duration_minutes(new_start, new_end)
        appointment.reminder_sent = False
        appointment.reminder_sent_at = None
        appointment.reminder_attempts = 0

    for field in EDITABLE_FIELDS:
        if field in updates and updates[field] is not None:
            value = updates[field]
            setattr(appointment, field, value.strip() if field == "title" else value)

    db.commit()
    db.refresh(appointment)

    if rescheduled and new_start != old_start:
        notification_service.notify_appointment_rescheduled(
            db=db,
            user_id=appointment.user_id,
            appointment_id=appointment.id,
            appointment_title=appointment.title,
            new_start_date_time=new_start,
        )
    return UpdateOutcome(
        appointment=appointment,
        rescheduled=rescheduled,
        old_start=old_start if rescheduled else None,
    )


def update_status(
    db: Session,
    appointment: Appointment,
    status: AppointmentStatus,
    cancel_reason: str | None = None,
) -> Appointment:
    """
    Move an appointment to a new status.

    Nothing goes back to scheduled and terminal statuses are final.
    """
    status = AppointmentStatus(status)
    if status not in STATUS_TARGETS:
        raise ValueError(f"Cannot change status to {status.value}")
    if _is_terminal(appointment.status):
        raise ValueError(f"Cannot change status of {appointment.status} appointment")

    appointment.status = status.value
    if status == AppointmentStatus.CANCELLED:
        appointment.cancelled_at = utc_now()
        appointment.cancel_reason = cancel_reason
    db.commit()
    db.refresh(appointment)

    if status == AppointmentStatus.CANCELLED:
        notification_service.notify_appointment_cancelled(
            db=db,
            user_id=appointment.user_id,
            appointment_id=appointment.id,
            appointment_title=appointment.title,
            reason=cancel_reason,
        )
    elif status == AppointmentStatus.COMPLETED:
        notification_service.notify_appointment_completed(
            db=db,
            user_id=appointment.user_id,
            appointment_id=appointment.id,
            appointment_title=appointment.title,
        )
    return appointment


def soft_delete_appointment(db: Session, appointment: Appointment) -> Appointment:
    """Hide the appointment from every read path; the row stays."""
    appointment.deleted_at = utc_now()
    db.commit()
    db.refresh(appointment)
    return appointment


# =============================================================================
# Queries
# =============================================================================

def get_appointment(
    db: Session,
    appointment_id: UUID,
    user_id: UUID | None = None,
) -> Appointment | None:
    """Get a non-deleted appointment by ID, optionally scoped to its owner."""
    query = db.query(Appointment).filter(
        Appointment.id == appointment_id,
        Appointment.deleted_at.is_(None),
    )
    if user_id is not None:
        query = query.filter(Appointment.user_id == user_id)
    return query.first()


def list_appointments(
    db: Session,
    user_id: UUID,
    status: str | None = None,
    upcoming: bool | None = None,
    search: str | None = None,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[Appointment], int]:
    """
    List a user's appointments with pagination.

    upcoming=True keeps appointments starting from now (soonest first);
    upcoming=False keeps past ones (most recent first).
    """
    query = db.query(Appointment).filter(
        Appointment.user_id == user_id,
        Appointment.deleted_at.is_(None),
    )

    if status:
        query = query.filter(Appointment.status == status)

    now = utc_now()
    if upcoming is True:
        query = query.filter(Appointment.start_date_time >= now)
    elif upcoming is False:
        query = query.filter(Appointment.start_date_time < now)

    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(
            or_(
                Appointment.title.ilike(pattern),
                Appointment.description.ilike(pattern),
            )
        )

    total = query.count()
    order = (
        Appointment.start_date_time.asc()
        if upcoming is True
        else Appointment.start_date_time.desc()
    )
    appointments = query.order_by(order).offset(offset).limit(limit).all()
    return appointments, total


def get_user_stats(db: Session, user_id: UUID) -> AppointmentStats:
    """Dashboard counters for one user (soft-deleted rows excluded)."""
    base = db.query(Appointment).filter(
        Appointment.user_id == user_id,
        Appointment.deleted_at.is_(None),
    )
    return AppointmentStats(
        total=base.count(),
        upcoming=base.filter(
            Appointment.status == AppointmentStatus.SCHEDULED.value,
            Appointment.start_date_time >= utc_now(),
        ).count(),
        completed=base.filter(Appointment.status == AppointmentStatus.COMPLETED.value).count(),
        cancelled=base.filter(Appointment.status == AppointmentStatus.CANCELLED.value).count(),
    )
