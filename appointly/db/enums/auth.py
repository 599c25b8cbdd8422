"""Auth-related enums."""

from enum import Enum


class Role(str, Enum):
    """
    User roles.

    - USER: manages their own appointments and preferences
    - ADMIN: user management, platform-wide stats and analytics
    """

    USER = "user"
    ADMIN = "admin"

    @classmethod
    def has_value(cls, value: str) -> bool:
        """Check if value is a valid role."""
        return value in cls._value2member_map_
