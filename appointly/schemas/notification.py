"""Notification schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_validator

from appointly.utils.datetime_utils import ensure_utc


class NotificationRead(BaseModel):
    """Notification response."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    type: str
    title: str
    description: str | None
    entity_type: str | None
    entity_id: UUID | None
    read: bool
    read_at: datetime | None
    created_at: datetime

    @field_validator("read_at", "created_at")
    @classmethod
    def as_utc(cls, value: datetime | None) -> datetime | None:
        return ensure_utc(value)


class NotificationListResponse(BaseModel):
    items: list[NotificationRead]
    unread_count: int


class UnreadCountResponse(BaseModel):
    """Unread count only (for polling)."""
    count: int


class MarkAllReadResponse(BaseModel):
    marked: int
