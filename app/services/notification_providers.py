"""Notification delivery providers.

A provider has a name, decides per notification type whether it applies
(`is_enabled`), and delivers (`send`). Providers fail soft: `send`
returns False instead of raising.
"""

import logging
from dataclasses import dataclass, field

from sqlalchemy.orm import Session

from app.db.enums import NotificationType
from app.db.models import Notification, User
from app.services.preference_service import notification_toggles

logger = logging.getLogger(__name__)


@dataclass
class NotificationMessage:
    """Content of one notification, before it is addressed to a user."""

    type: NotificationType | str
    title: str
    message: str | None = None
    link: str | None = None
    metadata: dict | None = field(default=None)

    @property
    def type_value(self) -> str:
        return getattr(self.type, "value", self.type)


class NotificationProvider:
    """Base provider. Subclasses implement send()."""

    name = "base"

    def is_enabled(self, notification_type: NotificationType | str, preferences: dict) -> bool:
        return True

    def send(self, db: Session, notification: NotificationMessage, user: User) -> bool:
        raise NotImplementedError


class InAppProvider(NotificationProvider):
    """Persists a Notification row. Always enabled."""

    name = "in-app"

    def send(self, db: Session, notification: NotificationMessage, user: User) -> bool:
        try:
            row = Notification(
                type=notification.type_value,
                title=notification.title[:255],
                message=notification.message,
                link=notification.link,
                meta=notification.metadata,
                user_id=user.id,
                organization_id=user.organization_id,
            )
            db.add(row)
            db.commit()
            return True
        except Exception:
            db.rollback()
            logger.exception("In-app notification failed for user %s", user.id)
            return False


# Email is only sent for these types, each behind its own opt-in toggle
EMAIL_TOGGLES: dict[str, str] = {
    NotificationType.TASK_REMINDER.value: "taskReminders",
    NotificationType.NEW_CONTACT.value: "newContacts",
    NotificationType.DEAL_WON.value: "dealWon",
}


class EmailProvider(NotificationProvider):
    """
    Email delivery. Opt-in: requires notifications.emailEnabled plus the
    per-type toggle. The transport is a log line until an email backend is
    configured.
    """

    name = "email"

    def __init__(self, from_address: str):
        self.from_address = from_address

    def is_enabled(self, notification_type: NotificationType | str, preferences: dict) -> bool:
        toggles = notification_toggles(preferences)
        if toggles.get("emailEnabled") is not True:
            return False
        key = EMAIL_TOGGLES.get(getattr(notification_type, "value", notification_type))
        return key is not None and toggles.get(key) is True

    def send(self, db: Session, notification: NotificationMessage, user: User) -> bool:
        logger.info(
            "Email notification from %s to user %s: %s",
            self.from_address,
            user.id,
            notification.title,
        )
        return True
