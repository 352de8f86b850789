"""Auth-related enums."""

from enum import Enum


class Role(str, Enum):
    """
    User roles with increasing privilege levels.

    - USER: Sales rep (own and shared records)
    - MANAGER: Team lead (view all data, assign tasks, send announcements)
    - ADMIN: Business admin (org settings, user management)
    """

    USER = "user"
    MANAGER = "manager"
    ADMIN = "admin"

    @classmethod
    def has_value(cls, value: str) -> bool:
        """Check if value is a valid role."""
        return value in cls._value2member_map_
