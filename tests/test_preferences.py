"""Tests for user preferences."""

import pytest

from appointly.db.models import UserPreferences
from appointly.services import preferences_service


def test_defaults_without_row_do_not_insert(db, test_user):
    prefs = preferences_service.get_user_preferences(db, test_user.id)

    assert prefs.reminder_enabled is True
    assert prefs.reminder_hours_before == 24
    assert prefs.email_reminders is True
    assert prefs.in_app_reminders is True
    assert db.query(UserPreferences).count() == 0


def test_update_creates_row_and_keeps_other_fields(db, test_user):
    prefs = preferences_service.update_preferences(
        db, test_user.id, {"reminder_hours_before": 2, "email_reminders": None}
    )

    assert prefs.reminder_hours_before == 2
    assert prefs.email_reminders is True
    assert db.query(UserPreferences).count() == 1


@pytest.mark.asyncio
async def test_get_preferences_endpoint(authed_client):
    response = await authed_client.get("/preferences")

    assert response.status_code == 200
    data = response.json()
    assert data["reminder_hours_before"] == 24
    assert data["appointment_cancelled_notif"] is True


@pytest.mark.asyncio
async def test_put_preferences_partial(authed_client):
    response = await authed_client.put(
        "/preferences", json={"in_app_reminders": False, "reminder_hours_before": 6}
    )

    assert response.status_code == 200
    data = response.json()
    assert data["in_app_reminders"] is False
    assert data["reminder_hours_before"] == 6
    assert data["email_reminders"] is True


@pytest.mark.asyncio
@pytest.mark.parametrize("hours", [0, 169])
async def test_put_preferences_validates_lead_time(authed_client, hours):
    response = await authed_client.put("/preferences", json={"reminder_hours_before": hours})

    assert response.status_code == 422
