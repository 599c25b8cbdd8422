"""
Cleanup Service - daily housekeeping over appointments.

Two bulk updates per run:
1. SCHEDULED appointments that have already ended become COMPLETED
2. CANCELLED appointments cancelled more than N days ago are soft-deleted

Soft-deleted rows are never touched again.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import update
from sqlalchemy.orm import Session

from appointly.db.enums import AppointmentStatus
from appointly.db.models import Appointment
from appointly.utils.datetime_utils import ensure_utc, utc_now

logger = logging.getLogger(__name__)

DEFAULT_SOFT_DELETE_DAYS = 30


@dataclass
class CleanupResult:
    completed: int = 0
    soft_deleted: int = 0

    @property
    def total_processed(self) -> int:
        return self.completed + self.soft_deleted

    def as_response_data(self, timestamp: datetime | None = None) -> dict:
        """Payload for the cron endpoint's success envelope."""
        timestamp = timestamp or utc_now()
        return {
            "completedAppointments": self.completed,
            "softDeletedAppointments": self.soft_deleted,
            "totalProcessed": self.total_processed,
            "timestamp": timestamp.isoformat().replace("+00:00", "Z"),
        }


def complete_past_appointments(db: Session, now: datetime) -> int:
    """Mark scheduled appointments whose end time has passed as completed."""
    result = db.execute(
        update(Appointment)
        .where(
            Appointment.status == AppointmentStatus.SCHEDULED.value,
            Appointment.end_date_time < now,
            Appointment.deleted_at.is_(None),
        )
        .values(status=AppointmentStatus.COMPLETED.value)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


def soft_delete_cancelled_appointments(db: Session, now: datetime, older_than_days: int) -> int:
    """Soft-delete cancelled appointments cancelled more than older_than_days ago."""
    cutoff = now - timedelta(days=older_than_days)
    result = db.execute(
        update(Appointment)
        .where(
            Appointment.status == AppointmentStatus.CANCELLED.value,
            Appointment.cancelled_at < cutoff,
            Appointment.deleted_at.is_(None),
        )
        .values(deleted_at=now)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


def run_cleanup(
    db: Session,
    *,
    now: datetime | None = None,
    soft_delete_days: int = DEFAULT_SOFT_DELETE_DAYS,
) -> CleanupResult:
    """
    Run both cleanup tasks in one transaction.

    Either both updates commit or neither does; errors propagate to the caller.
    """
    now = ensure_utc(now) if now else utc_now()
    logger.info("Starting cleanup job (soft delete after %d days)", soft_delete_days)

    try:
        result = CleanupResult(
            completed=complete_past_appointments(db, now),
            soft_deleted=soft_delete_cancelled_appointments(db, now, soft_delete_days),
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        "Cleanup job completed. Completed: %d, Soft-deleted: %d",
        result.completed,
        result.soft_deleted,
    )
    return result
