"""Enum definitions for application constants."""

from appointly.db.enums.appointments import (
    AppointmentStatus,
    DEFAULT_APPOINTMENT_STATUS,
    TERMINAL_APPOINTMENT_STATUSES,
)
from appointly.db.enums.auth import Role
from appointly.db.enums.notifications import APPOINTMENT_ENTITY_TYPE, NotificationType

__all__ = [
    "APPOINTMENT_ENTITY_TYPE",
    "AppointmentStatus",
    "DEFAULT_APPOINTMENT_STATUS",
    "NotificationType",
    "Role",
    "TERMINAL_APPOINTMENT_STATUSES",
]
