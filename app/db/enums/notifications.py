"""Notification-related enums."""

from enum import Enum


class NotificationType(str, Enum):
    """Types of in-app notifications."""

    # Task notifications
    TASK_REMINDER = "task_reminder"  # Due within the reminder window
    TASK_ASSIGNED = "task_assigned"
    TASK_COMPLETED = "task_completed"

    # Contact notifications
    NEW_CONTACT = "new_contact"
    CONTACT_ASSIGNED = "contact_assigned"

    # Deal notifications
    DEAL_WON = "deal_won"
    DEAL_LOST = "deal_lost"
    DEAL_STAGE_CHANGED = "deal_stage_changed"
    DEAL_ASSIGNED = "deal_assigned"

    MENTION = "mention"
    SYSTEM = "system"  # Announcements sent by managers
