"""Enum definitions for application constants."""

from app.db.enums.activities import ActivityType
from app.db.enums.audit import AuditAction, AuditEntity
from app.db.enums.auth import Role
from app.db.enums.contacts import ContactStatus
from app.db.enums.deals import CLOSED_DEAL_STAGES, DealPriority, DealStage
from app.db.enums.entities import Visibility
from app.db.enums.notifications import NotificationType
from app.db.enums.permissions import (
    MIN_ROLE_ANNOUNCE,
    MIN_ROLE_DELETE_ANY,
    MIN_ROLE_MANAGE_SETTINGS,
    MIN_ROLE_MANAGE_USERS,
    MIN_ROLE_NOTIFY_ADMINS,
    MIN_ROLE_VIEW_ALL,
    MIN_ROLE_VIEW_AUDIT,
)
from app.db.enums.tasks import TaskPriority, TaskStatus, TaskType

__all__ = [
    "ActivityType",
    "AuditAction",
    "AuditEntity",
    "CLOSED_DEAL_STAGES",
    "ContactStatus",
    "DealPriority",
    "DealStage",
    "NotificationType",
    "MIN_ROLE_ANNOUNCE",
    "MIN_ROLE_DELETE_ANY",
    "MIN_ROLE_MANAGE_SETTINGS",
    "MIN_ROLE_MANAGE_USERS",
    "MIN_ROLE_NOTIFY_ADMINS",
    "MIN_ROLE_VIEW_ALL",
    "MIN_ROLE_VIEW_AUDIT",
    "Role",
    "TaskPriority",
    "TaskStatus",
    "TaskType",
    "Visibility",
]
