"""Task service - business logic for task management."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.core.visibility import apply_visibility_filter
from app.db.base import utcnow
from app.db.enums import TaskStatus
from app.db.models import Contact, Deal, Task
from app.schemas.task import TaskCreate, TaskRead, TaskUpdate
from app.services import activity_service
from app.services.user_service import validate_org_user
from app.utils.normalization import blank_to_none
from app.utils.pagination import PaginationParams, apply_sort, paginate_query

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = {"created_at", "updated_at", "due_date", "priority", "title", "status"}
ENUM_FIELDS = {"task_type", "priority", "status", "visibility"}
REQUIRED_FIELDS = {"title", "task_type", "priority", "status", "visibility"}

FILTER_TODAY = "today"
FILTER_UPCOMING = "upcoming"
FILTER_OVERDUE = "overdue"
FILTER_COMPLETED = "completed"
TASK_FILTERS = (FILTER_TODAY, FILTER_UPCOMING, FILTER_OVERDUE, FILTER_COMPLETED)


@dataclass
class TaskChange:
    """What an update touched, for audit and notifications."""

    changed_fields: list[str] = field(default_factory=list)
    previous_assignee_id: UUID | None = None
    completed: bool = False

    @property
    def assignee_changed(self) -> bool:
        return "assigned_to_id" in self.changed_fields


@dataclass(frozen=True)
class DayWindow:
    """Boundaries used by the today/upcoming/overdue buckets."""

    start_of_today: datetime
    end_of_today: datetime
    end_of_week: datetime

    @classmethod
    def for_now(cls, now: datetime | None = None) -> "DayWindow":
        now = now or utcnow()
        start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        return cls(
            start_of_today=start,
            end_of_today=start + timedelta(days=1) - timedelta(microseconds=1),
            end_of_week=start + timedelta(days=7),
        )


def get_task(db: Session, org_id: UUID, task_id: UUID) -> Task | None:
    """Task by id, scoped to the organization."""
    return db.query(Task).filter(Task.id == task_id, Task.organization_id == org_id).first()


def _validate_links(db: Session, org_id: UUID, contact_id: UUID | None, deal_id: UUID | None) -> None:
    if contact_id and not (
        db.query(Contact.id).filter(Contact.id == contact_id, Contact.organization_id == org_id).first()
    ):
        raise ValueError("Contact not found")
    if deal_id and not (
        db.query(Deal.id).filter(Deal.id == deal_id, Deal.organization_id == org_id).first()
    ):
        raise ValueError("Deal not found")


def _apply_bucket(query, bucket: str | None, window: DayWindow):
    open_only = Task.status != TaskStatus.COMPLETED.value
    if bucket == FILTER_TODAY:
        return query.filter(
            Task.due_date >= window.start_of_today,
            Task.due_date <= window.end_of_today,
            open_only,
        )
    if bucket == FILTER_UPCOMING:
        return query.filter(
            Task.due_date > window.end_of_today,
            Task.due_date <= window.end_of_week,
            open_only,
        )
    if bucket == FILTER_OVERDUE:
        return query.filter(Task.due_date < window.start_of_today, open_only)
    if bucket == FILTER_COMPLETED:
        return query.filter(Task.status == TaskStatus.COMPLETED.value)
    return query


def list_tasks(
    db: Session,
    org_id: UUID,
    viewer_id: UUID | None,
    pagination: PaginationParams,
    *,
    bucket: str | None = None,
    search: str | None = None,
    contact_id: UUID | None = None,
    deal_id: UUID | None = None,
    priority: str | None = None,
    status: str | None = None,
    assigned_to_id: UUID | None = None,
    sort_by: str | None = None,
    sort_order: str = "asc",
    now: datetime | None = None,
) -> tuple[list[Task], int, dict[str, int]]:
    """
    List tasks the viewer may see.

    Returns (items, total, counts) where counts are the today/upcoming/
    overdue/completed bucket sizes under the same visibility.
    """
    window = DayWindow.for_now(now)
    visible = apply_visibility_filter(db.query(Task), Task, org_id, viewer_id)

    query = _apply_bucket(visible, bucket, window)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(Task.title.ilike(pattern), Task.description.ilike(pattern)))
    if contact_id:
        query = query.filter(Task.contact_id == contact_id)
    if deal_id:
        query = query.filter(Task.deal_id == deal_id)
    if priority:
        query = query.filter(Task.priority == priority)
    if status:
        query = query.filter(Task.status == status)
    if assigned_to_id:
        query = query.filter(Task.assigned_to_id == assigned_to_id)

    items, total = paginate_query(
        apply_sort(query, Task, sort_by, sort_order, SORTABLE_FIELDS, default="due_date"), pagination
    )
    counts = {name: _apply_bucket(visible, name, window).count() for name in TASK_FILTERS}
    return items, total, counts


def create_task(db: Session, org_id: UUID, user_id: UUID, data: TaskCreate) -> Task:
    """Create a task. Owner defaults to the creator."""
    owner_id = data.owner_id or user_id
    validate_org_user(db, org_id, owner_id)
    validate_org_user(db, org_id, data.assigned_to_id)
    _validate_links(db, org_id, data.contact_id, data.deal_id)

    values = blank_to_none(data.model_dump(exclude={"owner_id", "visible_to", *ENUM_FIELDS}))
    task = Task(
        organization_id=org_id,
        owner_id=owner_id,
        task_type=data.task_type.value,
        priority=data.priority.value,
        status=data.status.value,
        visibility=data.visibility.value,
        visible_to=data.visible_to,
        created_by_user_id=user_id,
        updated_by_user_id=user_id,
        **values,
    )
    if data.status == TaskStatus.COMPLETED:
        task.completed_at = utcnow()
    db.add(task)
    db.commit()
    db.refresh(task)
    logger.info("Created task %s in org %s", task.id, org_id)
    return task


def update_task(
    db: Session,
    task: Task,
    data: TaskUpdate,
    actor_user_id: UUID,
) -> tuple[Task, TaskChange]:
    """
    Update task fields.

    Uses exclude_unset=True so only explicitly provided fields are updated.
    Completing a task sets completed_at and writes a task_completed timeline
    entry; reopening clears completed_at.
    """
    update_data = blank_to_none(data.model_dump(exclude_unset=True))
    change = TaskChange(previous_assignee_id=task.assigned_to_id)
    was_completed = task.status == TaskStatus.COMPLETED.value

    if "owner_id" in update_data:
        validate_org_user(db, task.organization_id, update_data["owner_id"])
    if "assigned_to_id" in update_data:
        validate_org_user(db, task.organization_id, update_data["assigned_to_id"])
    if "contact_id" in update_data or "deal_id" in update_data:
        _validate_links(db, task.organization_id, update_data.get("contact_id"), update_data.get("deal_id"))

    for field_name, value in update_data.items():
        if value is None and field_name in REQUIRED_FIELDS:
            continue
        if field_name in ENUM_FIELDS:
            value = value.value
        if field_name == "visible_to" and value is not None:
            value = sorted(set(value), key=str)
        if getattr(task, field_name) != value:
            change.changed_fields.append(field_name)
        setattr(task, field_name, value)

    is_completed = task.status == TaskStatus.COMPLETED.value
    if is_completed and not was_completed:
        change.completed = True
        if task.completed_at is None:
            task.completed_at = utcnow()
    elif was_completed and not is_completed:
        task.completed_at = None

    task.updated_by_user_id = actor_user_id
    db.commit()
    db.refresh(task)

    if change.completed:
        activity_service.log_task_completed(db, task)

    return task, change


def delete_task(db: Session, task: Task) -> None:
    db.delete(task)
    db.commit()


def list_due_for_reminder(db: Session, hours: int, now: datetime | None = None) -> list[Task]:
    """Open, assigned tasks due between now and now + hours, across all organizations."""
    now = now or utcnow()
    return (
        db.query(Task)
        .filter(
            Task.status != TaskStatus.COMPLETED.value,
            Task.assigned_to_id.is_not(None),
            Task.due_date >= now,
            Task.due_date <= now + timedelta(hours=hours),
        )
        .order_by(Task.due_date)
        .all()
    )


def to_task_read(task: Task, names: dict[UUID, str] | None = None) -> TaskRead:
    read = TaskRead.model_validate(task)
    read.assigned_to_name = (names or {}).get(task.assigned_to_id) if task.assigned_to_id else None
    read.visible_to = list(task.visible_to or [])
    return read
