"""Appointment schemas - Pydantic models for appointments API."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from appointly.utils.datetime_utils import ensure_utc


class AppointmentCreate(BaseModel):
    """Schema for creating an appointment. Naive datetimes are read as UTC."""
    title: str = Field(..., min_length=1, max_length=255)
    description: str | None = Field(None, max_length=5000)
    start_date_time: datetime
    end_date_time: datetime | None = None
    location: str | None = Field(None, max_length=500)
    meeting_url: str | None = Field(None, max_length=1000)

    @model_validator(mode="after")
    def check_interval(self):
        if self.end_date_time and ensure_utc(self.end_date_time) <= ensure_utc(self.start_date_time):
            raise ValueError("end_date_time must be after start_date_time")
        return self


class AppointmentUpdate(BaseModel):
    """Partial update; changing either time is a reschedule."""
    title: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = Field(None, max_length=5000)
    start_date_time: datetime | None = None
    end_date_time: datetime | None = None
    location: str | None = Field(None, max_length=500)
    meeting_url: str | None = Field(None, max_length=1000)


class AppointmentStatusUpdate(BaseModel):
    status: Literal["in_progress", "completed", "cancelled", "no_show"]
    cancel_reason: str | None = Field(None, max_length=1000)


class AppointmentRead(BaseModel):
    """Schema for reading an appointment."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    title: str
    description: str | None
    start_date_time: datetime
    end_date_time: datetime
    duration: int
    status: str
    location: str | None
    meeting_url: str | None
    email_notification_sent: bool
    reminder_sent: bool
    reminder_sent_at: datetime | None
    cancelled_at: datetime | None
    cancel_reason: str | None
    created_at: datetime
    updated_at: datetime

    @field_validator(
        "start_date_time", "end_date_time", "reminder_sent_at", "cancelled_at",
        "created_at", "updated_at",
    )
    @classmethod
    def as_utc(cls, value: datetime | None) -> datetime | None:
        return ensure_utc(value)


class AppointmentListResponse(BaseModel):
    """Paginated appointment list."""
    items: list[AppointmentRead]
    total: int
    page: int
    per_page: int
    pages: int


class AppointmentStatsRead(BaseModel):
    total: int
    upcoming: int
    completed: int
    cancelled: int
