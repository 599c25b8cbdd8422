"""
Reminder Service - finds appointments that need a reminder and dispatches them.

Flow per run:
1. compute_reminder_window() picks the start-time range to scan
2. find_reminder_candidates() loads scheduled, non-deleted appointments in it
3. dispatch_reminders() re-filters each candidate against its owner's
   preferences, claims it, then sends the email and in-app reminder

Candidates are processed one at a time. A failure on one candidate is logged
and counted, never raised.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.orm import Session, joinedload

from appointly.core.structured_logging import build_log_context, mask_email
from appointly.db.enums import AppointmentStatus
from appointly.db.models import Appointment
from appointly.services import notification_service, preferences_service
from appointly.services.appointment_email_service import (
    AppointmentEmailType,
    render_appointment_email,
)
from appointly.services.email_sender import EmailClient
from appointly.utils.datetime_utils import ensure_utc, utc_now

logger = logging.getLogger(__name__)

# Coarse horizon used to size the normal-mode window; per-user lead time is
# applied afterwards.
REMINDER_HORIZON_HOURS = 24
DUPLICATE_SUPPRESSION_WINDOW = timedelta(hours=1)
DEFAULT_TEST_INTERVAL_MINUTES = 5
DEFAULT_MAX_ATTEMPTS = 3


@dataclass(frozen=True)
class ReminderWindow:
    """Half-open start-time range [start, end)."""
    start: datetime
    end: datetime
    test_mode: bool = False


@dataclass
class ReminderRunResult:
    total: int = 0
    sent: int = 0
    failed: int = 0
    skipped: int = 0
    emails_sent: int = 0
    in_app_sent: int = 0

    def as_response_data(self, timestamp: datetime | None = None) -> dict:
        """Payload for the cron endpoint's success envelope."""
        timestamp = timestamp or utc_now()
        return {
            "totalAppointmentsFound": self.total,
            "remindersSent": self.sent,
            "remindersFailed": self.failed,
            "timestamp": timestamp.isoformat().replace("+00:00", "Z"),
            "emailsSent": self.emails_sent,
            "inAppSent": self.in_app_sent,
        }


def compute_reminder_window(
    now: datetime,
    test_mode: bool = False,
    interval_minutes: int = DEFAULT_TEST_INTERVAL_MINUTES,
) -> ReminderWindow:
    """
    Normal mode: [now + 23h, now + 47h).
    Test mode: [now, now + interval_minutes).
    """
    now = ensure_utc(now)
    if test_mode:
        return ReminderWindow(
            start=now,
            end=now + timedelta(minutes=interval_minutes),
            test_mode=True,
        )
    return ReminderWindow(
        start=now + timedelta(hours=REMINDER_HORIZON_HOURS - 1),
        end=now + timedelta(hours=2 * REMINDER_HORIZON_HOURS - 1),
    )


def find_reminder_candidates(
    db: Session,
    window: ReminderWindow,
    include_reminded: bool = False,
) -> list[Appointment]:
    """Scheduled, non-deleted appointments starting inside the window. Read-only."""
    query = (
        db.query(Appointment)
        .options(joinedload(Appointment.user))
        .filter(
            Appointment.status == AppointmentStatus.SCHEDULED.value,
            Appointment.deleted_at.is_(None),
            Appointment.start_date_time >= window.start,
            Appointment.start_date_time < window.end,
        )
    )
    if not include_reminded:
        query = query.filter(Appointment.reminder_sent.is_(False))
    return query.order_by(Appointment.start_date_time.asc()).all()


# =============================================================================
# Claim bookkeeping
# =============================================================================

def _claim(db: Session, appointment_id: UUID, now: datetime) -> bool:
    """
    Mark the appointment reminded only if nobody else has.

    Returns False when a concurrent run got there first.
    """
    result = db.execute(
        update(Appointment)
        .where(
            Appointment.id == appointment_id,
            Appointment.reminder_sent.is_(False),
        )
        .values(reminder_sent=True, reminder_sent_at=now)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount == 1


def _record_failed_attempt(db: Session, appointment_id: UUID, release: bool) -> None:
    values: dict = {"reminder_attempts": Appointment.reminder_attempts + 1}
    if release:
        values.update(reminder_sent=False, reminder_sent_at=None)
    db.execute(
        update(Appointment)
        .where(Appointment.id == appointment_id)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    db.commit()


def _skip_reason(
    appointment: Appointment,
    prefs: preferences_service.ReminderPreferences,
    now: datetime,
    max_attempts: int,
) -> str | None:
    if not prefs.reminder_enabled:
        return "reminders disabled"

    lead_time = timedelta(hours=prefs.reminder_hours_before)
    if ensure_utc(appointment.start_date_time) - now >= lead_time:
        return f"outside {prefs.reminder_hours_before}h lead time"

    sent_at = ensure_utc(appointment.reminder_sent_at)
    if appointment.reminder_sent and sent_at and now - sent_at < DUPLICATE_SUPPRESSION_WINDOW:
        return "reminded within the last hour"

    if (appointment.reminder_attempts or 0) >= max_attempts:
        return f"gave up after {appointment.reminder_attempts} attempts"

    return None


# =============================================================================
# Dispatch
# =============================================================================

async def dispatch_reminders(
    db: Session,
    email_client: EmailClient,
    *,
    now: datetime | None = None,
    test_recipient: str | None = None,
    test_interval_minutes: int = DEFAULT_TEST_INTERVAL_MINUTES,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> ReminderRunResult:
    """
    Run one reminder pass.

    test_recipient switches to test mode: a short window starting now, every
    email goes to test_recipient, and no reminder bookkeeping is written.

    Raises only if the candidate query itself fails.
    """
    now = ensure_utc(now) if now else utc_now()
    test_mode = bool(test_recipient)
    window = compute_reminder_window(now, test_mode=test_mode, interval_minutes=test_interval_minutes)

    logger.info(
        "Starting reminder run (%s mode) for window %s - %s",
        "test" if test_mode else "normal",
        window.start.isoformat(),
        window.end.isoformat(),
    )
    if test_mode:
        logger.info("Test mode: all reminder emails go to %s", mask_email(test_recipient))

    candidates = find_reminder_candidates(db, window, include_reminded=test_mode)
    result = ReminderRunResult(total=len(candidates))
    logger.info("Found %d appointments to remind", result.total)

    for appointment in candidates:
        appointment_id = appointment.id
        log_context = build_log_context(
            user_id=str(appointment.user_id),
            appointment_id=str(appointment_id),
        )
        claimed = False
        try:
            prefs = preferences_service.get_user_preferences(db, appointment.user_id)
            reason = _skip_reason(appointment, prefs, now, max_attempts)
            if reason:
                result.skipped += 1
                logger.debug("Skipping appointment %s: %s", appointment_id, reason, extra=log_context)
                continue

            if not test_mode:
                claimed = _claim(db, appointment_id, now)
                if not claimed:
                    result.skipped += 1
                    logger.debug(
                        "Skipping appointment %s: claimed by another run",
                        appointment_id,
                        extra=log_context,
                    )
                    continue

            await _send_reminder(db, email_client, appointment, prefs, test_recipient, result)
            result.sent += 1
            logger.info("Reminder sent for appointment %s", appointment_id, extra=log_context)
        except Exception:
            result.failed += 1
            logger.exception(
                "Failed to send reminder for appointment %s", appointment_id, extra=log_context
            )
            _after_failure(db, appointment_id, claimed, test_mode)

    logger.info(
        "Reminder run completed. Total: %d, Sent: %d, Failed: %d, Skipped: %d",
        result.total,
        result.sent,
        result.failed,
        result.skipped,
    )
    return result


async def _send_reminder(
    db: Session,
    email_client: EmailClient,
    appointment: Appointment,
    prefs: preferences_service.ReminderPreferences,
    test_recipient: str | None,
    result: ReminderRunResult,
) -> None:
    """
    Send through each enabled channel.

    Channel counters are bumped as each channel delivers, so an email that
    went out before the in-app insert failed is still counted.
    """
    if prefs.email_reminders:
        rendered = render_appointment_email(AppointmentEmailType.REMINDER, appointment)
        await email_client.send_email(
            to=test_recipient or appointment.user.email,
            subject=rendered.subject,
            html=rendered.html,
            text=rendered.text,
        )
        result.emails_sent += 1

    if prefs.in_app_reminders:
        notification_service.notify_appointment_reminder(
            db=db,
            user_id=appointment.user_id,
            appointment_id=appointment.id,
            appointment_title=appointment.title,
            start_date_time=appointment.start_date_time,
        )
        result.in_app_sent += 1


def _after_failure(db: Session, appointment_id: UUID, claimed: bool, test_mode: bool) -> None:
    """Release the claim and count the attempt so a later run can retry."""
    db.rollback()
    if test_mode:
        return
    try:
        _record_failed_attempt(db, appointment_id, release=claimed)
    except Exception:
        db.rollback()
        logger.exception("Failed to record reminder attempt for appointment %s", appointment_id)
