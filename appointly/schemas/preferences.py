"""Preference schemas."""

from pydantic import BaseModel, Field


class PreferencesRead(BaseModel):
    reminder_enabled: bool
    reminder_hours_before: int
    email_reminders: bool
    in_app_reminders: bool
    appointment_created_notif: bool
    appointment_rescheduled_notif: bool
    appointment_cancelled_notif: bool
    default_duration_minutes: int
    buffer_minutes: int


class PreferencesUpdate(BaseModel):
    """Partial update; omitted fields keep their value."""
    reminder_enabled: bool | None = None
    reminder_hours_before: int | None = Field(None, ge=1, le=168)  # 1 hour to 7 days
    email_reminders: bool | None = None
    in_app_reminders: bool | None = None
    appointment_created_notif: bool | None = None
    appointment_rescheduled_notif: bool | None = None
    appointment_cancelled_notif: bool | None = None
    default_duration_minutes: int | None = Field(None, ge=5, le=480)
    buffer_minutes: int | None = Field(None, ge=0, le=120)
