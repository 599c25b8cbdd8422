"""Tests for reminder window selection and dispatch."""

from datetime import timedelta

import pytest

from appointly.db.enums import AppointmentStatus, NotificationType
from appointly.db.models import Appointment, Notification
from appointly.services import reminder_service
from appointly.services.reminder_service import compute_reminder_window, dispatch_reminders
from appointly.utils.datetime_utils import ensure_utc


def _notifications(db, appointment) -> list[Notification]:
    return db.query(Notification).filter(Notification.entity_id == appointment.id).all()


# =============================================================================
# Window selection
# =============================================================================

def test_normal_window_spans_23_to_47_hours(fixed_now):
    window = compute_reminder_window(fixed_now)

    assert window.start == fixed_now + timedelta(hours=23)
    assert window.end == fixed_now + timedelta(hours=47)
    assert window.test_mode is False


def test_test_window_starts_now(fixed_now):
    window = compute_reminder_window(fixed_now, test_mode=True, interval_minutes=10)

    assert window.start == fixed_now
    assert window.end == fixed_now + timedelta(minutes=10)
    assert window.test_mode is True


def test_candidates_respect_half_open_window(db, test_user, make_appointment, fixed_now):
    offsets = {
        "too_early": timedelta(hours=22, minutes=59),
        "at_start": timedelta(hours=23),
        "inside": timedelta(hours=30),
        "before_end": timedelta(hours=46, minutes=59),
        "at_end": timedelta(hours=47),
    }
    for title, offset in offsets.items():
        make_appointment(test_user, fixed_now + offset, title=title)

    window = compute_reminder_window(fixed_now)
    titles = {a.title for a in reminder_service.find_reminder_candidates(db, window)}

    assert titles == {"at_start", "inside", "before_end"}


def test_candidates_exclude_non_scheduled_deleted_and_reminded(db, test_user, make_appointment, fixed_now):
    start = fixed_now + timedelta(hours=23, minutes=30)
    make_appointment(test_user, start, title="ok")
    make_appointment(test_user, start, title="cancelled", status=AppointmentStatus.CANCELLED)
    make_appointment(test_user, start, title="in progress", status=AppointmentStatus.IN_PROGRESS)
    make_appointment(test_user, start, title="deleted", deleted_at=fixed_now)
    make_appointment(test_user, start, title="reminded", reminder_sent=True, reminder_sent_at=fixed_now)

    window = compute_reminder_window(fixed_now)

    assert [a.title for a in reminder_service.find_reminder_candidates(db, window)] == ["ok"]
    with_reminded = reminder_service.find_reminder_candidates(db, window, include_reminded=True)
    assert {a.title for a in with_reminded} == {"ok", "reminded"}


# =============================================================================
# Dispatch scenarios
# =============================================================================

@pytest.mark.asyncio
async def test_email_only_reminder(db, test_user, make_appointment, set_preferences, email_client, fixed_now):
    set_preferences(test_user, reminder_hours_before=24, email_reminders=True, in_app_reminders=False)
    appointment = make_appointment(test_user, fixed_now + timedelta(hours=23, minutes=30))

    result = await dispatch_reminders(db, email_client, now=fixed_now)

    assert (result.total, result.sent, result.failed) == (1, 1, 0)
    assert (result.emails_sent, result.in_app_sent) == (1, 0)
    assert email_client.recipients() == [test_user.email]
    assert _notifications(db, appointment) == []

    db.refresh(appointment)
    assert appointment.reminder_sent is True
    assert ensure_utc(appointment.reminder_sent_at) == fixed_now


@pytest.mark.asyncio
async def test_disabled_reminders_are_skipped(db, test_user, make_appointment, set_preferences, email_client, fixed_now):
    set_preferences(test_user, reminder_enabled=False)
    appointment = make_appointment(test_user, fixed_now + timedelta(hours=23, minutes=30))

    result = await dispatch_reminders(db, email_client, now=fixed_now)

    assert (result.total, result.sent, result.failed, result.skipped) == (1, 0, 0, 1)
    assert (result.emails_sent, result.in_app_sent) == (0, 0)
    assert email_client.sent == []
    db.refresh(appointment)
    assert appointment.reminder_sent is False


@pytest.mark.asyncio
async def test_cancelled_appointment_never_found(db, test_user, make_appointment, email_client, fixed_now):
    make_appointment(
        test_user,
        fixed_now + timedelta(hours=23, minutes=30),
        status=AppointmentStatus.CANCELLED,
    )

    result = await dispatch_reminders(db, email_client, now=fixed_now)

    assert result.total == 0
    assert email_client.sent == []


@pytest.mark.asyncio
async def test_default_preferences_send_both_channels(db, test_user, make_appointment, email_client, fixed_now):
    appointment = make_appointment(test_user, fixed_now + timedelta(hours=23, minutes=5))

    result = await dispatch_reminders(db, email_client, now=fixed_now)

    assert (result.sent, result.emails_sent, result.in_app_sent) == (1, 1, 1)
    notifications = _notifications(db, appointment)
    assert len(notifications) == 1
    assert notifications[0].type == NotificationType.APPOINTMENT_REMINDER.value
    assert notifications[0].entity_type == "appointment"
    assert notifications[0].user_id == test_user.id
    assert "Dental checkup" in email_client.sent[0]["subject"]


@pytest.mark.asyncio
async def test_lead_time_filter_skips_without_side_effects(
    db, test_user, make_appointment, set_preferences, email_client, fixed_now
):
    set_preferences(test_user, reminder_hours_before=24)
    appointment = make_appointment(test_user, fixed_now + timedelta(hours=30))

    result = await dispatch_reminders(db, email_client, now=fixed_now)

    assert (result.total, result.sent, result.skipped) == (1, 0, 1)
    assert email_client.sent == []
    assert _notifications(db, appointment) == []
    db.refresh(appointment)
    assert appointment.reminder_sent is False
    assert appointment.reminder_attempts == 0


@pytest.mark.asyncio
async def test_longer_lead_time_reminds_earlier(
    db, test_user, make_appointment, set_preferences, email_client, fixed_now
):
    set_preferences(test_user, reminder_hours_before=48)
    make_appointment(test_user, fixed_now + timedelta(hours=40))

    result = await dispatch_reminders(db, email_client, now=fixed_now)

    assert result.sent == 1


@pytest.mark.asyncio
async def test_second_run_sends_nothing(db, test_user, make_appointment, email_client, fixed_now):
    appointment = make_appointment(test_user, fixed_now + timedelta(hours=23, minutes=30))

    await dispatch_reminders(db, email_client, now=fixed_now)
    second = await dispatch_reminders(db, email_client, now=fixed_now + timedelta(minutes=1))

    assert second.sent == 0
    assert len(email_client.sent) == 1
    assert len(_notifications(db, appointment)) == 1


@pytest.mark.asyncio
async def test_one_failure_does_not_stop_the_batch(
    db, make_user, make_appointment, email_client, fixed_now
):
    failing_user = make_user(name="Failing")
    ok_user = make_user(name="Fine")
    failing = make_appointment(failing_user, fixed_now + timedelta(hours=23, minutes=10))
    ok = make_appointment(ok_user, fixed_now + timedelta(hours=23, minutes=20))
    email_client.fail_for.add(failing_user.email)

    result = await dispatch_reminders(db, email_client, now=fixed_now)

    assert (result.total, result.sent, result.failed) == (2, 1, 1)
    assert result.emails_sent == 1
    assert email_client.recipients() == [ok_user.email]

    db.refresh(failing)
    db.refresh(ok)
    assert failing.reminder_sent is False
    assert failing.reminder_sent_at is None
    assert failing.reminder_attempts == 1
    assert ok.reminder_sent is True


@pytest.mark.asyncio
async def test_failed_reminder_retried_until_attempt_cap(
    db, test_user, make_appointment, email_client, fixed_now
):
    appointment = make_appointment(test_user, fixed_now + timedelta(hours=23, minutes=30))
    email_client.fail_for.add(test_user.email)

    for minute in range(3):
        result = await dispatch_reminders(
            db, email_client, now=fixed_now + timedelta(minutes=minute), max_attempts=3
        )
        assert result.failed == 1

    final = await dispatch_reminders(
        db, email_client, now=fixed_now + timedelta(minutes=3), max_attempts=3
    )

    assert (final.total, final.failed, final.skipped) == (1, 0, 1)
    db.refresh(appointment)
    assert appointment.reminder_attempts == 3
    assert appointment.reminder_sent is False


@pytest.mark.asyncio
async def test_email_counted_when_in_app_insert_fails(
    db, test_user, make_appointment, email_client, fixed_now, monkeypatch
):
    appointment = make_appointment(test_user, fixed_now + timedelta(hours=23, minutes=30))

    def broken_insert(**kwargs):
        raise RuntimeError("notifications table unavailable")

    monkeypatch.setattr(reminder_service.notification_service, "notify_appointment_reminder", broken_insert)

    result = await dispatch_reminders(db, email_client, now=fixed_now)

    assert (result.total, result.sent, result.failed) == (1, 0, 1)
    assert result.emails_sent == len(email_client.sent) == 1
    assert result.in_app_sent == 0
    db.refresh(appointment)
    assert appointment.reminder_sent is False
    assert appointment.reminder_attempts == 1


@pytest.mark.asyncio
async def test_claimed_elsewhere_is_skipped(db, test_user, make_appointment, email_client, fixed_now, monkeypatch):
    make_appointment(test_user, fixed_now + timedelta(hours=23, minutes=30))
    monkeypatch.setattr(reminder_service, "_claim", lambda _db, _id, _now: False)

    result = await dispatch_reminders(db, email_client, now=fixed_now)

    assert (result.total, result.sent, result.skipped) == (1, 0, 1)
    assert email_client.sent == []


def test_claim_succeeds_only_once(db, test_user, make_appointment, fixed_now):
    appointment = make_appointment(test_user, fixed_now + timedelta(hours=23, minutes=30))

    assert reminder_service._claim(db, appointment.id, fixed_now) is True
    assert reminder_service._claim(db, appointment.id, fixed_now) is False

    stored = db.get(Appointment, appointment.id)
    db.refresh(stored)
    assert stored.reminder_sent is True


# =============================================================================
# Test mode
# =============================================================================

@pytest.mark.asyncio
async def test_test_mode_overrides_recipient_and_leaves_bookkeeping(
    db, test_user, make_appointment, email_client, fixed_now
):
    appointment = make_appointment(test_user, fixed_now + timedelta(minutes=3))
    far = make_appointment(test_user, fixed_now + timedelta(minutes=30), title="later")

    result = await dispatch_reminders(
        db,
        email_client,
        now=fixed_now,
        test_recipient="qa@example.com",
        test_interval_minutes=5,
    )

    assert (result.total, result.sent) == (1, 1)
    assert email_client.recipients() == ["qa@example.com"]
    db.refresh(appointment)
    db.refresh(far)
    assert appointment.reminder_sent is False
    assert appointment.reminder_sent_at is None


@pytest.mark.asyncio
async def test_test_mode_is_repeatable(db, test_user, make_appointment, email_client, fixed_now):
    make_appointment(test_user, fixed_now + timedelta(minutes=3))

    for _ in range(2):
        result = await dispatch_reminders(
            db, email_client, now=fixed_now, test_recipient="qa@example.com"
        )
        assert result.sent == 1

    assert email_client.recipients() == ["qa@example.com", "qa@example.com"]


@pytest.mark.asyncio
async def test_recent_reminder_suppressed_in_test_mode(db, test_user, make_appointment, email_client, fixed_now):
    make_appointment(
        test_user,
        fixed_now + timedelta(minutes=3),
        reminder_sent=True,
        reminder_sent_at=fixed_now - timedelta(minutes=20),
    )

    result = await dispatch_reminders(db, email_client, now=fixed_now, test_recipient="qa@example.com")

    assert (result.total, result.sent, result.skipped) == (1, 0, 1)


def test_result_response_payload(fixed_now):
    result = reminder_service.ReminderRunResult(
        total=3, sent=2, failed=1, skipped=0, emails_sent=2, in_app_sent=1
    )

    assert result.as_response_data(fixed_now) == {
        "totalAppointmentsFound": 3,
        "remindersSent": 2,
        "remindersFailed": 1,
        "timestamp": "2026-03-02T12:00:00Z",
        "emailsSent": 2,
        "inAppSent": 1,
    }
