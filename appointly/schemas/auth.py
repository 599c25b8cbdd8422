"""Authentication-related Pydantic schemas."""

from uuid import UUID

from pydantic import BaseModel

from appointly.db.enums import Role


class UserSession(BaseModel):
    """
    Session context for authenticated requests.

    Returned by the get_current_session dependency; services receive
    user_id from here explicitly.
    """
    user_id: UUID
    role: Role
    email: str
    name: str | None = None
