"""Activities router - timeline entries for contacts and deals."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from app.core.deps import get_current_session, get_db, require_csrf_header
from app.db.enums import ActivityType, AuditAction, AuditEntity
from app.schemas.activity import ActivityCreate, ActivityListResponse, ActivityRead
from app.schemas.auth import UserSession
from app.services import activity_service, audit_service, task_service
from app.utils.pagination import PaginationParams, get_pagination, page_envelope

router = APIRouter()


@router.get("", response_model=ActivityListResponse)
def list_activities(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
    pagination: PaginationParams = Depends(get_pagination),
    contact_id: UUID | None = None,
    deal_id: UUID | None = None,
    activity_type: ActivityType | None = None,
):
    activities, total = activity_service.list_activities(
        db,
        session.org_id,
        pagination,
        contact_id=contact_id,
        deal_id=deal_id,
        activity_type=activity_type.value if activity_type else None,
    )
    return page_envelope([ActivityRead.model_validate(a) for a in activities], total, pagination)


@router.post("", status_code=201, dependencies=[Depends(require_csrf_header)])
def create_activity(
    request: Request,
    data: ActivityCreate,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Log a call, email, meeting or note. follow_up=true also schedules a task in three days."""
    try:
        activity, follow_up = activity_service.create_activity(db, session.org_id, session.user_id, data)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    audit_service.log_audit(
        db,
        action=AuditAction.CREATED,
        entity=AuditEntity.ACTIVITY,
        entity_id=activity.id,
        entity_name=activity.subject,
        details={"type": activity.activity_type, "follow_up_task_id": follow_up.id if follow_up else None},
        user_id=session.user_id,
        user_name=session.name,
        organization_id=session.org_id,
        request=request,
    )
    return {
        "activity": ActivityRead.model_validate(activity),
        "follow_up_task": task_service.to_task_read(follow_up) if follow_up else None,
    }
