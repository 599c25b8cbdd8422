"""Preferences Service - per-user reminder and notification settings."""

from dataclasses import asdict, dataclass
from uuid import UUID

from sqlalchemy.orm import Session

from appointly.db.models import UserPreferences


@dataclass(frozen=True)
class ReminderPreferences:
    """Resolved preferences; every field has a default when no row exists."""

    reminder_enabled: bool = True
    reminder_hours_before: int = 24
    email_reminders: bool = True
    in_app_reminders: bool = True
    appointment_created_notif: bool = True
    appointment_rescheduled_notif: bool = True
    appointment_cancelled_notif: bool = True
    default_duration_minutes: int = 30
    buffer_minutes: int = 0

    def as_dict(self) -> dict:
        return asdict(self)


DEFAULT_PREFERENCES = ReminderPreferences()

PREFERENCE_FIELDS = tuple(DEFAULT_PREFERENCES.as_dict().keys())


def _from_row(row: UserPreferences) -> ReminderPreferences:
    values = {}
    for field in PREFERENCE_FIELDS:
        value = getattr(row, field, None)
        values[field] = getattr(DEFAULT_PREFERENCES, field) if value is None else value
    return ReminderPreferences(**values)


def get_user_preferences(db: Session, user_id: UUID) -> ReminderPreferences:
    """
    Get resolved preferences for a user.

    Read-only: returns defaults if no row exists.
    """
    row = db.query(UserPreferences).filter(UserPreferences.user_id == user_id).first()
    if row is None:
        return DEFAULT_PREFERENCES
    return _from_row(row)


def get_or_create_preferences(db: Session, user_id: UUID) -> UserPreferences:
    """Get the preferences row, creating it with defaults on first access."""
    row = db.query(UserPreferences).filter(UserPreferences.user_id == user_id).first()
    if row is None:
        row = UserPreferences(user_id=user_id, **DEFAULT_PREFERENCES.as_dict())
        db.add(row)
        db.commit()
        db.refresh(row)
    return row


def update_preferences(db: Session, user_id: UUID, updates: dict) -> ReminderPreferences:
    """
    Update preferences with the provided fields.

    Creates the row if it doesn't exist. None values are ignored.
    """
    row = get_or_create_preferences(db, user_id)
    for key, value in updates.items():
        if key in PREFERENCE_FIELDS and value is not None:
            setattr(row, key, value)
    db.commit()
    db.refresh(row)
    return _from_row(row)


def should_notify(db: Session, user_id: UUID, setting_key: str) -> bool:
    """Check if user wants this notification type."""
    return bool(getattr(get_user_preferences(db, user_id), setting_key, True))
