"""Tasks router - API endpoints for task management."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from app.core.background import SideEffects, get_notification_service, get_side_effects
from app.core.deps import get_current_session, get_db, require_csrf_header
from app.core.permissions import can_assign_to, can_delete_resource
from app.core.visibility import can_access_resource, resolve_viewer_id
from app.db.enums import AuditAction, AuditEntity, TaskPriority, TaskStatus
from app.schemas.auth import UserSession
from app.schemas.task import TaskCreate, TaskListResponse, TaskRead, TaskUpdate
from app.services import audit_service, notification_events, task_service
from app.services.notification_service import NotificationService
from app.services.user_service import get_user_names
from app.utils.pagination import PaginationParams, get_pagination, page_envelope

router = APIRouter()


def _get_visible_task(db: Session, session: UserSession, task_id: UUID):
    task = task_service.get_task(db, session.org_id, task_id)
    if not task or not can_access_resource(session.user_id, session.role, task):
        raise HTTPException(status_code=404, detail="Task not found")
    return task


def _check_assignee(session: UserSession, assignee_id: UUID | None) -> None:
    if not can_assign_to(session, assignee_id):
        raise HTTPException(status_code=403, detail="Only managers can assign tasks to other users")


def _read(db: Session, task) -> TaskRead:
    return task_service.to_task_read(task, get_user_names(db, [task.assigned_to_id]))


@router.get("", response_model=TaskListResponse)
def list_tasks(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
    pagination: PaginationParams = Depends(get_pagination),
    bucket: str | None = Query(None, alias="filter", pattern="^(today|upcoming|overdue|completed)$"),
    search: str | None = Query(None, description="Search in title and description"),
    contact_id: UUID | None = None,
    deal_id: UUID | None = None,
    priority: TaskPriority | None = None,
    status: TaskStatus | None = None,
    assigned_to_id: UUID | None = None,
    sort_by: str | None = None,
    sort_order: str = Query("asc", pattern="^(asc|desc)$"),
    show_all: bool = False,
):
    """
    List tasks visible to the caller.

    filter picks a bucket (today, upcoming, overdue, completed); counts for
    every bucket are returned alongside the page.
    """
    tasks, total, counts = task_service.list_tasks(
        db,
        session.org_id,
        resolve_viewer_id(session, show_all),
        pagination,
        bucket=bucket,
        search=search,
        contact_id=contact_id,
        deal_id=deal_id,
        priority=priority.value if priority else None,
        status=status.value if status else None,
        assigned_to_id=assigned_to_id,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    names = get_user_names(db, [t.assigned_to_id for t in tasks])
    return {
        **page_envelope([task_service.to_task_read(t, names) for t in tasks], total, pagination),
        "counts": counts,
    }


@router.post("", response_model=TaskRead, status_code=201, dependencies=[Depends(require_csrf_header)])
def create_task(
    request: Request,
    data: TaskCreate,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
    side_effects: SideEffects = Depends(get_side_effects),
    notifier: NotificationService = Depends(get_notification_service),
):
    _check_assignee(session, data.assigned_to_id)
    try:
        task = task_service.create_task(db, session.org_id, session.user_id, data)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    audit_service.log_audit(
        db,
        action=AuditAction.CREATED,
        entity=AuditEntity.TASK,
        entity_id=task.id,
        entity_name=task.title,
        details={"assigned_to_id": task.assigned_to_id, "due_date": task.due_date},
        user_id=session.user_id,
        user_name=session.name,
        organization_id=session.org_id,
        request=request,
    )

    if task.assigned_to_id and task.assigned_to_id != session.user_id:
        side_effects.schedule(
            "task_assigned",
            notification_events.task_assigned,
            notifier,
            task_id=task.id,
            organization_id=session.org_id,
            assigned_to_user_id=task.assigned_to_id,
            assigned_by_user_id=session.user_id,
        )
    return _read(db, task)


@router.get("/{task_id}", response_model=TaskRead)
def get_task(
    task_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return _read(db, _get_visible_task(db, session, task_id))


@router.put("/{task_id}", response_model=TaskRead, dependencies=[Depends(require_csrf_header)])
def update_task(
    request: Request,
    task_id: UUID,
    data: TaskUpdate,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
    side_effects: SideEffects = Depends(get_side_effects),
    notifier: NotificationService = Depends(get_notification_service),
):
    """
    Update a task.

    Completion is audited as completed and reported to the owner;
    reassignment is audited as assigned and reported to the new assignee.
    """
    task = _get_visible_task(db, session, task_id)
    if "assigned_to_id" in data.model_fields_set and data.assigned_to_id != task.assigned_to_id:
        _check_assignee(session, data.assigned_to_id)
    try:
        task, change = task_service.update_task(db, task, data, session.user_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    audit_base = {
        "entity": AuditEntity.TASK,
        "entity_id": task.id,
        "entity_name": task.title,
        "user_id": session.user_id,
        "user_name": session.name,
        "organization_id": session.org_id,
        "request": request,
    }

    if change.completed:
        audit_service.log_audit(db, action=AuditAction.COMPLETED, **audit_base)
        side_effects.schedule(
            "task_completed",
            notification_events.task_completed,
            notifier,
            task_id=task.id,
            organization_id=session.org_id,
            completed_by_user_id=session.user_id,
        )

    if change.assignee_changed:
        audit_service.log_audit(
            db,
            action=AuditAction.ASSIGNED,
            details={
                "previous_assignee_id": change.previous_assignee_id,
                "assigned_to_id": task.assigned_to_id,
            },
            **audit_base,
        )
        if task.assigned_to_id and task.assigned_to_id != session.user_id:
            side_effects.schedule(
                "task_assigned",
                notification_events.task_assigned,
                notifier,
                task_id=task.id,
                organization_id=session.org_id,
                assigned_to_user_id=task.assigned_to_id,
                assigned_by_user_id=session.user_id,
            )

    other_changes = [
        name for name in change.changed_fields if name not in {"status", "assigned_to_id"}
    ]
    if other_changes or (not change.completed and "status" in change.changed_fields):
        audit_service.log_audit(
            db, action=AuditAction.UPDATED, details={"changes": change.changed_fields}, **audit_base
        )

    return _read(db, task)


@router.delete("/{task_id}", status_code=204, dependencies=[Depends(require_csrf_header)])
def delete_task(
    request: Request,
    task_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    task = _get_visible_task(db, session, task_id)
    if not can_delete_resource(session, task):
        raise HTTPException(status_code=403, detail="Not allowed to delete this task")

    entity_id, entity_name = task.id, task.title
    task_service.delete_task(db, task)

    audit_service.log_audit(
        db,
        action=AuditAction.DELETED,
        entity=AuditEntity.TASK,
        entity_id=entity_id,
        entity_name=entity_name,
        user_id=session.user_id,
        user_name=session.name,
        organization_id=session.org_id,
        request=request,
    )
