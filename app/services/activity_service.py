"""Activity service - contact/deal timeline entries."""

import logging
from datetime import timedelta
from uuid import UUID

from sqlalchemy.orm import Session

from app.db.base import utcnow
from app.db.enums import ActivityType, TaskType
from app.db.models import Activity, Contact, Deal, Task
from app.schemas.activity import ActivityCreate
from app.utils.pagination import PaginationParams, paginate_query

logger = logging.getLogger(__name__)

FOLLOW_UP_DAYS = 3


def log_activity(
    db: Session,
    organization_id: UUID,
    activity_type: ActivityType,
    subject: str,
    *,
    content: str | None = None,
    contact_id: UUID | None = None,
    deal_id: UUID | None = None,
    actor_user_id: UUID | None = None,
) -> Activity:
    """
    Record a timeline entry and commit it.

    Args:
        activity_type: Type of activity (from ActivityType enum)
        actor_user_id: User who performed the action (None for system entries)
    """
    activity = Activity(
        organization_id=organization_id,
        activity_type=activity_type.value,
        subject=subject[:255],
        content=content,
        contact_id=contact_id,
        deal_id=deal_id,
        created_by_user_id=actor_user_id,
    )
    db.add(activity)
    db.commit()
    db.refresh(activity)
    return activity


def log_deal_stage_change(db: Session, deal: Deal) -> Activity:
    """System entry for a deal moving between pipeline stages."""
    return log_activity(
        db,
        deal.organization_id,
        ActivityType.DEAL_UPDATED,
        f"Deal moved to {deal.stage}",
        contact_id=deal.contact_id,
        deal_id=deal.id,
    )


def log_task_completed(db: Session, task: Task) -> Activity:
    """System entry for a completed task."""
    return log_activity(
        db,
        task.organization_id,
        ActivityType.TASK_COMPLETED,
        f"Task completed: {task.title}",
        contact_id=task.contact_id,
        deal_id=task.deal_id,
    )


def _validate_links(db: Session, org_id: UUID, contact_id: UUID | None, deal_id: UUID | None) -> None:
    if contact_id and not (
        db.query(Contact.id).filter(Contact.id == contact_id, Contact.organization_id == org_id).first()
    ):
        raise ValueError("Contact not found")
    if deal_id and not (
        db.query(Deal.id).filter(Deal.id == deal_id, Deal.organization_id == org_id).first()
    ):
        raise ValueError("Deal not found")


def create_activity(
    db: Session,
    org_id: UUID,
    user_id: UUID,
    data: ActivityCreate,
) -> tuple[Activity, Task | None]:
    """
    Log a user activity. With follow_up set (and not a note), also create a
    follow-up task due in three days, owned by and assigned to the user.
    """
    _validate_links(db, org_id, data.contact_id, data.deal_id)

    activity = log_activity(
        db,
        org_id,
        data.activity_type,
        data.subject,
        content=data.content,
        contact_id=data.contact_id,
        deal_id=data.deal_id,
        actor_user_id=user_id,
    )

    follow_up = None
    if data.follow_up and data.activity_type != ActivityType.NOTE:
        follow_up = Task(
            organization_id=org_id,
            title=f"Follow up: {data.subject}"[:255],
            task_type=(TaskType.CALL if data.activity_type == ActivityType.CALL else TaskType.FOLLOW_UP).value,
            due_date=utcnow() + timedelta(days=FOLLOW_UP_DAYS),
            contact_id=data.contact_id,
            deal_id=data.deal_id,
            owner_id=user_id,
            assigned_to_id=user_id,
            created_by_user_id=user_id,
            updated_by_user_id=user_id,
        )
        db.add(follow_up)
        db.commit()
        db.refresh(follow_up)
        logger.info("Created follow-up task %s for activity %s", follow_up.id, activity.id)

    return activity, follow_up


def list_activities(
    db: Session,
    org_id: UUID,
    pagination: PaginationParams,
    *,
    contact_id: UUID | None = None,
    deal_id: UUID | None = None,
    activity_type: str | None = None,
) -> tuple[list[Activity], int]:
    query = db.query(Activity).filter(Activity.organization_id == org_id)
    if contact_id:
        query = query.filter(Activity.contact_id == contact_id)
    if deal_id:
        query = query.filter(Activity.deal_id == deal_id)
    if activity_type:
        query = query.filter(Activity.activity_type == activity_type)
    return paginate_query(query.order_by(Activity.created_at.desc()), pagination)


def list_recent(db: Session, org_id: UUID, limit: int = 10) -> list[Activity]:
    return (
        db.query(Activity)
        .filter(Activity.organization_id == org_id)
        .order_by(Activity.created_at.desc())
        .limit(limit)
        .all()
    )
