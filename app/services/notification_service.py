"""
Notification Service - fans notifications out to users through providers.

NotificationService is built once at application start with its providers
registered in order (in-app first) and injected into routers. The inbox
functions at the bottom of this module serve the notification API.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.permissions import roles_at_least
from app.db.base import utcnow
from app.db.enums import MIN_ROLE_NOTIFY_ADMINS, NotificationType
from app.db.models import Notification, User
from app.services.notification_providers import (
    EmailProvider,
    InAppProvider,
    NotificationMessage,
    NotificationProvider,
)
from app.services.preference_service import is_type_enabled

logger = logging.getLogger(__name__)

REASON_USER_NOT_FOUND = "user_not_found"
REASON_DISABLED_BY_USER = "disabled_by_user"


@dataclass
class ProviderResult:
    provider: str
    success: bool


@dataclass
class NotificationOutcome:
    """Result of notifying one user. `reason` is set when nothing was attempted."""

    user_id: UUID
    sent: bool
    reason: str | None = None
    results: list[ProviderResult] = field(default_factory=list)


class NotificationService:
    """Preference-aware notification fan-out over registered providers."""

    def __init__(self, providers: Iterable[NotificationProvider] | None = None):
        self.providers: list[NotificationProvider] = [InAppProvider()]
        for provider in providers or ():
            self.add_provider(provider)

    def add_provider(self, provider: NotificationProvider) -> None:
        self.providers.append(provider)

    @property
    def provider_names(self) -> list[str]:
        return [provider.name for provider in self.providers]

    def notify(
        self,
        db: Session,
        *,
        type: NotificationType | str,
        title: str,
        message: str | None = None,
        link: str | None = None,
        metadata: dict | None = None,
        user_id: UUID,
        organization_id: UUID,
    ) -> NotificationOutcome:
        """
        Notify one user in one organization.

        Unknown users (or users of another organization) and types the user
        disabled are reported in the outcome, never raised.
        """
        user = (
            db.query(User)
            .filter(User.id == user_id, User.organization_id == organization_id)
            .first()
        )
        if not user:
            logger.warning("Notification skipped: user %s not found in org %s", user_id, organization_id)
            return NotificationOutcome(user_id=user_id, sent=False, reason=REASON_USER_NOT_FOUND)

        preferences = user.preferences if isinstance(user.preferences, dict) else {}
        if not is_type_enabled(preferences, type):
            return NotificationOutcome(user_id=user_id, sent=False, reason=REASON_DISABLED_BY_USER)

        notification = NotificationMessage(
            type=type, title=title, message=message, link=link, metadata=metadata
        )
        results: list[ProviderResult] = []
        for provider in self.providers:
            if not provider.is_enabled(type, preferences):
                continue
            try:
                success = bool(provider.send(db, notification, user))
            except Exception:
                logger.exception("Provider %s raised for user %s", provider.name, user_id)
                success = False
            results.append(ProviderResult(provider=provider.name, success=success))

        return NotificationOutcome(
            user_id=user_id,
            sent=any(result.success for result in results),
            results=results,
        )

    def notify_many(
        self,
        db: Session,
        *,
        user_ids: Iterable[UUID],
        organization_id: UUID,
        **content,
    ) -> list[NotificationOutcome]:
        """Notify each user in turn; one user's failure does not stop the rest."""
        outcomes: list[NotificationOutcome] = []
        for user_id in user_ids:
            try:
                outcome = self.notify(
                    db, user_id=user_id, organization_id=organization_id, **content
                )
            except Exception:
                db.rollback()
                logger.exception("Notification to user %s failed", user_id)
                outcome = NotificationOutcome(user_id=user_id, sent=False, reason="error")
            outcomes.append(outcome)
        return outcomes

    def notify_org(
        self,
        db: Session,
        *,
        organization_id: UUID,
        exclude_user_id: UUID | None = None,
        **content,
    ) -> list[NotificationOutcome]:
        """Notify every active user in the organization except exclude_user_id."""
        user_ids = org_user_ids(db, organization_id, exclude_user_id=exclude_user_id)
        return self.notify_many(db, user_ids=user_ids, organization_id=organization_id, **content)

    def notify_admins(
        self,
        db: Session,
        *,
        organization_id: UUID,
        **content,
    ) -> list[NotificationOutcome]:
        """Notify every active admin and manager in the organization."""
        user_ids = admin_user_ids(db, organization_id)
        return self.notify_many(db, user_ids=user_ids, organization_id=organization_id, **content)


def org_user_ids(db: Session, organization_id: UUID, exclude_user_id: UUID | None = None) -> list[UUID]:
    """Active users of the organization, oldest first."""
    query = db.query(User.id).filter(
        User.organization_id == organization_id,
        User.is_active.is_(True),
    )
    if exclude_user_id is not None:
        query = query.filter(User.id != exclude_user_id)
    return [row.id for row in query.order_by(User.created_at).all()]


def admin_user_ids(db: Session, organization_id: UUID) -> list[UUID]:
    return [
        row.id
        for row in db.query(User.id)
        .filter(
            User.organization_id == organization_id,
            User.is_active.is_(True),
            User.role.in_([role.value for role in roles_at_least(MIN_ROLE_NOTIFY_ADMINS)]),
        )
        .order_by(User.created_at)
        .all()
    ]


def build_notification_service() -> NotificationService:
    """Service with the providers enabled by configuration. In-app is always first."""
    service = NotificationService()
    if settings.EMAIL_NOTIFICATIONS_ENABLED:
        service.add_provider(EmailProvider(from_address=settings.EMAIL_FROM))
    logger.info("Notification providers: %s", ", ".join(service.provider_names))
    return service


# =============================================================================
# Inbox (caller's own notifications)
# =============================================================================


def list_notifications(
    db: Session,
    user_id: UUID,
    org_id: UUID,
    *,
    unread_only: bool = False,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Notification], int, int]:
    """Return (notifications, total, unread_count), newest first."""
    base = db.query(Notification).filter(
        Notification.user_id == user_id,
        Notification.organization_id == org_id,
    )
    query = base.filter(Notification.is_read.is_(False)) if unread_only else base
    total = query.count()
    items = (
        query.order_by(Notification.created_at.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return items, total, get_unread_count(db, user_id, org_id)


def get_unread_count(db: Session, user_id: UUID, org_id: UUID) -> int:
    return (
        db.query(func.count(Notification.id))
        .filter(
            Notification.user_id == user_id,
            Notification.organization_id == org_id,
            Notification.is_read.is_(False),
        )
        .scalar()
        or 0
    )


def mark_read(
    db: Session,
    user_id: UUID,
    org_id: UUID,
    ids: list[UUID] | None = None,
    *,
    mark_all: bool = False,
) -> int:
    """
    Mark the caller's unread notifications read (all, or the given ids).
    Ids belonging to other users are ignored. Returns the number updated.
    """
    query = db.query(Notification).filter(
        Notification.user_id == user_id,
        Notification.organization_id == org_id,
        Notification.is_read.is_(False),
    )
    if not mark_all:
        if not ids:
            return 0
        query = query.filter(Notification.id.in_(ids))
    now: datetime = utcnow()
    count = query.update(
        {Notification.is_read: True, Notification.read_at: now},
        synchronize_session=False,
    )
    db.commit()
    return count


def delete_notifications(
    db: Session,
    user_id: UUID,
    org_id: UUID,
    ids: list[UUID] | None = None,
    *,
    delete_all: bool = False,
) -> int:
    """Delete the caller's notifications (all, or the given ids). Returns the number deleted."""
    query = db.query(Notification).filter(
        Notification.user_id == user_id,
        Notification.organization_id == org_id,
    )
    if not delete_all:
        if not ids:
            return 0
        query = query.filter(Notification.id.in_(ids))
    count = query.delete(synchronize_session=False)
    db.commit()
    return count
