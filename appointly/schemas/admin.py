"""Admin schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from appointly.db.enums import Role


class CheckAdminResponse(BaseModel):
    is_admin: bool


class UserRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    name: str | None
    role: str
    is_active: bool
    ban_reason: str | None
    created_at: datetime


class UserListResponse(BaseModel):
    items: list[UserRead]
    total: int
    page: int
    per_page: int
    pages: int


class UserAdminUpdate(BaseModel):
    """Role change and/or ban toggle."""
    role: Role | None = None
    banned: bool | None = None
    ban_reason: str | None = Field(None, max_length=500)
