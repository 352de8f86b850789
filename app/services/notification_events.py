"""Domain notification events.

Each helper loads the entity by id (they run as side effects in their own
session), builds the notification content and hands it to the
NotificationService. Return values are the service outcomes; an entity
that no longer exists yields no outcomes.
"""

import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy.orm import Session

from app.db.enums import NotificationType
from app.db.models import Contact, Deal, Notification, Task
from app.services import task_service
from app.services.notification_service import NotificationOutcome, NotificationService

logger = logging.getLogger(__name__)


def _get(db: Session, model, entity_id: UUID, organization_id: UUID):
    row = (
        db.query(model)
        .filter(model.id == entity_id, model.organization_id == organization_id)
        .first()
    )
    if row is None:
        logger.info("%s %s gone before notification was sent", model.__name__, entity_id)
    return row


def format_money(value: float, currency: str | None) -> str:
    return f"{currency or 'USD'} {value:,.2f}"


# =============================================================================
# Contacts
# =============================================================================

def new_contact(
    db: Session,
    service: NotificationService,
    *,
    contact_id: UUID,
    organization_id: UUID,
    created_by_user_id: UUID | None,
) -> list[NotificationOutcome]:
    """Tell everyone in the organization, except the creator, about a new contact."""
    contact = _get(db, Contact, contact_id, organization_id)
    if not contact:
        return []
    message = contact.full_name
    if contact.company:
        message = f"{message} from {contact.company}"
    return service.notify_org(
        db,
        type=NotificationType.NEW_CONTACT,
        title="New contact added",
        message=message,
        link=f"/contacts/{contact.id}",
        metadata={"entity_type": "contact", "entity_id": str(contact.id)},
        organization_id=organization_id,
        exclude_user_id=created_by_user_id,
    )


def contact_assigned(
    db: Session,
    service: NotificationService,
    *,
    contact_id: UUID,
    organization_id: UUID,
    assigned_to_user_id: UUID,
    assigned_by_user_id: UUID | None = None,
) -> list[NotificationOutcome]:
    contact = _get(db, Contact, contact_id, organization_id)
    if not contact:
        return []
    return [
        service.notify(
            db,
            type=NotificationType.CONTACT_ASSIGNED,
            title="Contact assigned",
            message=f"You have been assigned the contact {contact.full_name}",
            link=f"/contacts/{contact.id}",
            metadata={
                "entity_type": "contact",
                "entity_id": str(contact.id),
                "assigned_by": str(assigned_by_user_id) if assigned_by_user_id else None,
            },
            user_id=assigned_to_user_id,
            organization_id=organization_id,
        )
    ]


# =============================================================================
# Deals
# =============================================================================

def deal_won(
    db: Session,
    service: NotificationService,
    *,
    deal_id: UUID,
    organization_id: UUID,
    actor_user_id: UUID | None,
) -> list[NotificationOutcome]:
    """Celebrate a won deal with the whole organization, except whoever closed it."""
    deal = _get(db, Deal, deal_id, organization_id)
    if not deal:
        return []
    return service.notify_org(
        db,
        type=NotificationType.DEAL_WON,
        title="Deal won!",
        message=f"{deal.title} for {format_money(deal.value, deal.currency)}",
        link=f"/deals/{deal.id}",
        metadata={"entity_type": "deal", "entity_id": str(deal.id), "value": deal.value},
        organization_id=organization_id,
        exclude_user_id=actor_user_id,
    )


def deal_lost(
    db: Session,
    service: NotificationService,
    *,
    deal_id: UUID,
    organization_id: UUID,
    actor_user_id: UUID | None,
) -> list[NotificationOutcome]:
    deal = _get(db, Deal, deal_id, organization_id)
    if not deal:
        return []
    message = f"{deal.title}: {deal.lost_reason}" if deal.lost_reason else deal.title
    return service.notify_org(
        db,
        type=NotificationType.DEAL_LOST,
        title="Deal lost",
        message=message,
        link=f"/deals/{deal.id}",
        metadata={"entity_type": "deal", "entity_id": str(deal.id)},
        organization_id=organization_id,
        exclude_user_id=actor_user_id,
    )


def deal_assigned(
    db: Session,
    service: NotificationService,
    *,
    deal_id: UUID,
    organization_id: UUID,
    assigned_to_user_id: UUID,
) -> list[NotificationOutcome]:
    deal = _get(db, Deal, deal_id, organization_id)
    if not deal:
        return []
    return [
        service.notify(
            db,
            type=NotificationType.DEAL_ASSIGNED,
            title="Deal assigned",
            message=f"You are now the owner of {deal.title}",
            link=f"/deals/{deal.id}",
            metadata={"entity_type": "deal", "entity_id": str(deal.id)},
            user_id=assigned_to_user_id,
            organization_id=organization_id,
        )
    ]


# =============================================================================
# Tasks
# =============================================================================

def task_assigned(
    db: Session,
    service: NotificationService,
    *,
    task_id: UUID,
    organization_id: UUID,
    assigned_to_user_id: UUID,
    assigned_by_user_id: UUID | None = None,
) -> list[NotificationOutcome]:
    task = _get(db, Task, task_id, organization_id)
    if not task:
        return []
    return [
        service.notify(
            db,
            type=NotificationType.TASK_ASSIGNED,
            title="New task assigned",
            message=task.title,
            link=f"/tasks/{task.id}",
            metadata={
                "entity_type": "task",
                "entity_id": str(task.id),
                "assigned_by": str(assigned_by_user_id) if assigned_by_user_id else None,
            },
            user_id=assigned_to_user_id,
            organization_id=organization_id,
        )
    ]


def task_completed(
    db: Session,
    service: NotificationService,
    *,
    task_id: UUID,
    organization_id: UUID,
    completed_by_user_id: UUID | None,
) -> list[NotificationOutcome]:
    """Tell the task owner their task was completed by someone else."""
    task = _get(db, Task, task_id, organization_id)
    if not task or not task.owner_id or task.owner_id == completed_by_user_id:
        return []
    return [
        service.notify(
            db,
            type=NotificationType.TASK_COMPLETED,
            title="Task completed",
            message=task.title,
            link=f"/tasks/{task.id}",
            metadata={"entity_type": "task", "entity_id": str(task.id)},
            user_id=task.owner_id,
            organization_id=organization_id,
        )
    ]


def task_reminder(
    db: Session,
    service: NotificationService,
    *,
    task_id: UUID,
    organization_id: UUID,
    user_id: UUID,
) -> list[NotificationOutcome]:
    task = _get(db, Task, task_id, organization_id)
    if not task:
        return []
    return [
        service.notify(
            db,
            type=NotificationType.TASK_REMINDER,
            title="Task reminder",
            message=f"{task.title} is due soon",
            link=f"/tasks/{task.id}",
            metadata={"entity_type": "task", "entity_id": str(task.id)},
            user_id=user_id,
            organization_id=organization_id,
        )
    ]


# =============================================================================
# Announcements
# =============================================================================

def system_message(
    db: Session,
    service: NotificationService,
    *,
    organization_id: UUID,
    title: str,
    message: str | None = None,
    link: str | None = None,
    sender_user_id: UUID | None = None,
    user_ids: list[UUID] | None = None,
    admins_only: bool = False,
) -> list[NotificationOutcome]:
    """Manager announcement to explicit users, admins, or the whole organization."""
    content = {
        "type": NotificationType.SYSTEM,
        "title": title,
        "message": message,
        "link": link,
        "metadata": {"sent_by": str(sender_user_id) if sender_user_id else None},
    }
    if user_ids:
        return service.notify_many(db, user_ids=user_ids, organization_id=organization_id, **content)
    if admins_only:
        return service.notify_admins(db, organization_id=organization_id, **content)
    return service.notify_org(
        db, organization_id=organization_id, exclude_user_id=sender_user_id, **content
    )


def send_due_task_reminders(
    db: Session,
    service: NotificationService,
    *,
    hours: int = 24,
    now: datetime | None = None,
) -> int:
    """
    Remind assignees of open tasks due within `hours`. A task already
    reminded to the same user is skipped. Returns the number of reminders sent.
    """
    sent = 0
    for task in task_service.list_due_for_reminder(db, hours, now):
        link = f"/tasks/{task.id}"
        already = (
            db.query(Notification.id)
            .filter(
                Notification.user_id == task.assigned_to_id,
                Notification.type == NotificationType.TASK_REMINDER.value,
                Notification.link == link,
            )
            .first()
        )
        if already:
            continue
        outcomes = task_reminder(
            db,
            service,
            task_id=task.id,
            organization_id=task.organization_id,
            user_id=task.assigned_to_id,
        )
        sent += sum(1 for outcome in outcomes if outcome.sent)
    logger.info("Sent %d task reminder(s) for the next %d hour(s)", sent, hours)
    return sent
