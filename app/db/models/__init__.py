"""SQLAlchemy ORM models."""

from app.db.models.activities import Activity
from app.db.models.audit import AuditLog
from app.db.models.auth import Organization, User
from app.db.models.contacts import Contact
from app.db.models.deals import Deal
from app.db.models.notifications import Notification
from app.db.models.tasks import Task

__all__ = [
    "Activity",
    "AuditLog",
    "Contact",
    "Deal",
    "Notification",
    "Organization",
    "Task",
    "User",
]
