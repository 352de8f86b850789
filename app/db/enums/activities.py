"""Activity timeline enums."""

from enum import Enum


class ActivityType(str, Enum):
    """
    Activity timeline entry types.

    CALL/EMAIL/MEETING/NOTE are logged by users.
    DEAL_UPDATED/TASK_COMPLETED are written by the system.
    """

    CALL = "call"
    EMAIL = "email"
    MEETING = "meeting"
    NOTE = "note"
    DEAL_UPDATED = "deal_updated"
    TASK_COMPLETED = "task_completed"
