"""Appointment enums."""

from enum import Enum


class AppointmentStatus(str, Enum):
    """
    Appointment lifecycle status.

    Flow: scheduled → in_progress → completed
              ↘ cancelled
              ↘ no_show

    Nothing transitions back to scheduled.
    """

    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


# Statuses an appointment can never leave
TERMINAL_APPOINTMENT_STATUSES = frozenset(
    {
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.NO_SHOW,
    }
)

DEFAULT_APPOINTMENT_STATUS = AppointmentStatus.SCHEDULED
