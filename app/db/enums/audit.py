"""Audit trail enums."""

from enum import Enum


class AuditAction(str, Enum):
    """What happened to the audited entity."""

    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    COMPLETED = "completed"
    STAGE_CHANGED = "stage_changed"
    ASSIGNED = "assigned"
    STATUS_CHANGED = "status_changed"
    LOGIN = "login"
    LOGOUT = "logout"
    SETTINGS_CHANGED = "settings_changed"


class AuditEntity(str, Enum):
    """Kind of entity an audit entry refers to."""

    CONTACT = "contact"
    DEAL = "deal"
    TASK = "task"
    USER = "user"
    SETTINGS = "settings"
    ACTIVITY = "activity"
