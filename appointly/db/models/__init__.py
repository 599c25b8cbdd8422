"""SQLAlchemy ORM models."""

from appointly.db.models.appointments import Appointment
from appointly.db.models.notifications import Notification
from appointly.db.models.users import User, UserPreferences

__all__ = [
    "Appointment",
    "Notification",
    "User",
    "UserPreferences",
]
