"""Dashboard service - pipeline and activity summary for the reports page."""

from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.db.base import utcnow
from app.db.enums import CLOSED_DEAL_STAGES, DealStage, TaskStatus
from app.db.models import Contact, Deal, Task
from app.services import activity_service, audit_service

RECENT_FEED_SIZE = 15

ACTION_LABELS = {
    "created": "created",
    "updated": "updated",
    "deleted": "deleted",
    "completed": "completed",
    "stage_changed": "moved",
    "assigned": "assigned",
    "status_changed": "changed the status of",
    "settings_changed": "changed",
}


def _month_start(now: datetime) -> datetime:
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def _previous_month_start(month_start: datetime) -> datetime:
    return _month_start(month_start - timedelta(days=1))


def _week_start(now: datetime) -> datetime:
    start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return start - timedelta(days=start.weekday())


def _won_stats(db: Session, org_id: UUID, start: datetime, end: datetime | None = None) -> dict:
    query = db.query(func.count(Deal.id), func.coalesce(func.sum(Deal.value), 0.0)).filter(
        Deal.organization_id == org_id,
        Deal.stage == DealStage.WON.value,
        Deal.actual_close >= start,
    )
    if end is not None:
        query = query.filter(Deal.actual_close < end)
    count, value = query.one()
    return {"count": count or 0, "value": float(value or 0)}


def format_audit_subject(user_name: str | None, action: str, entity: str, entity_name: str | None) -> str:
    who = user_name or "System"
    verb = ACTION_LABELS.get(action, action)
    subject = f"{who} {verb} {entity}"
    return f"{subject} {entity_name}" if entity_name else subject


def get_dashboard(db: Session, org_id: UUID, now: datetime | None = None) -> dict:
    """Organization-wide counters plus a merged feed of activities and audit entries."""
    now = now or utcnow()
    month_start = _month_start(now)
    last_month_start = _previous_month_start(month_start)
    week_start = _week_start(now)
    closed = [stage.value for stage in CLOSED_DEAL_STAGES]

    by_stage_rows = (
        db.query(Deal.stage, func.count(Deal.id), func.coalesce(func.sum(Deal.value), 0.0))
        .filter(Deal.organization_id == org_id, Deal.stage.not_in(closed))
        .group_by(Deal.stage)
        .all()
    )
    by_stage = [
        {"stage": stage, "count": count, "value": float(value or 0)}
        for stage, count, value in by_stage_rows
    ]

    won_this_month = _won_stats(db, org_id, month_start)
    won_last_month = _won_stats(db, org_id, last_month_start, month_start)
    lost_this_month = (
        db.query(func.count(Deal.id))
        .filter(
            Deal.organization_id == org_id,
            Deal.stage == DealStage.LOST.value,
            Deal.actual_close >= month_start,
        )
        .scalar()
        or 0
    )
    closed_this_month = won_this_month["count"] + lost_this_month
    conversion_rate = (
        round(won_this_month["count"] / closed_this_month * 100) if closed_this_month else 0
    )

    contact_total = db.query(func.count(Contact.id)).filter(Contact.organization_id == org_id).scalar() or 0
    contacts_this_week = (
        db.query(func.count(Contact.id))
        .filter(Contact.organization_id == org_id, Contact.created_at >= week_start)
        .scalar()
        or 0
    )

    open_tasks = db.query(func.count(Task.id)).filter(
        Task.organization_id == org_id, Task.status != TaskStatus.COMPLETED.value
    )
    pending = open_tasks.scalar() or 0
    overdue = open_tasks.filter(Task.due_date < now).scalar() or 0
    completed_this_week = (
        db.query(func.count(Task.id))
        .filter(
            Task.organization_id == org_id,
            Task.status == TaskStatus.COMPLETED.value,
            Task.completed_at >= week_start,
        )
        .scalar()
        or 0
    )

    return {
        "pipeline": {
            "by_stage": by_stage,
            "total_value": sum(row["value"] for row in by_stage),
            "total_deals": sum(row["count"] for row in by_stage),
        },
        "performance": {
            "won_this_month": won_this_month,
            "won_last_month": won_last_month,
            "lost_this_month": lost_this_month,
            "conversion_rate": conversion_rate,
        },
        "contacts": {"total": contact_total, "new_this_week": contacts_this_week},
        "tasks": {
            "pending": pending,
            "overdue": overdue,
            "completed_this_week": completed_this_week,
        },
        "recent_activity": get_recent_feed(db, org_id),
    }


def get_recent_feed(db: Session, org_id: UUID, limit: int = RECENT_FEED_SIZE) -> list[dict]:
    """Latest timeline activities and audit entries, merged newest first."""
    feed = [
        {
            "id": str(activity.id),
            "kind": "activity",
            "type": activity.activity_type,
            "subject": activity.subject,
            "content": activity.content,
            "contact_id": activity.contact_id,
            "deal_id": activity.deal_id,
            "created_at": activity.created_at,
        }
        for activity in activity_service.list_recent(db, org_id, limit=10)
    ]
    feed.extend(
        {
            "id": f"audit_{entry.id}",
            "kind": "audit",
            "type": entry.action,
            "entity": entry.entity,
            "entity_id": entry.entity_id,
            "subject": format_audit_subject(entry.user_name, entry.action, entry.entity, entry.entity_name),
            "content": entry.entity_name,
            "user_name": entry.user_name,
            "created_at": entry.created_at,
        }
        for entry in audit_service.list_recent(db, org_id, limit=20)
    )
    feed.sort(key=lambda item: _sort_key(item["created_at"]), reverse=True)
    return feed[:limit]


def _sort_key(value: datetime) -> datetime:
    # SQLite returns naive datetimes; compare everything as naive UTC
    return value.replace(tzinfo=None) if value.tzinfo else value
