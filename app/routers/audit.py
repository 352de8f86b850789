"""Audit router - API endpoints for viewing audit logs."""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.deps import get_db, require_min_role
from app.db.enums import MIN_ROLE_VIEW_AUDIT, AuditAction, AuditEntity
from app.schemas.audit import AuditLogListResponse, AuditLogRead
from app.schemas.auth import UserSession
from app.services import audit_service
from app.utils.pagination import PaginationParams, get_pagination, page_envelope

router = APIRouter(prefix="/audit", tags=["audit"])


@router.get("", response_model=AuditLogListResponse)
def list_audit_logs(
    pagination: PaginationParams = Depends(get_pagination),
    entity: AuditEntity | None = Query(None, description="Filter by entity type"),
    entity_id: UUID | None = None,
    user_id: UUID | None = Query(None, description="Filter by actor"),
    action: AuditAction | None = None,
    start_date: datetime | None = Query(None, description="Entries at or after this time"),
    end_date: datetime | None = Query(None, description="Entries at or before this time"),
    search: str | None = Query(None, description="Match entity name or user name"),
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_min_role(MIN_ROLE_VIEW_AUDIT)),
):
    """
    List audit log entries for the organization, newest first.

    Requires: Manager or Admin role
    """
    logs, total = audit_service.list_audit_logs(
        db,
        session.org_id,
        entity=entity.value if entity else None,
        entity_id=entity_id,
        user_id=user_id,
        action=action.value if action else None,
        start_date=start_date,
        end_date=end_date,
        search=search,
        page=pagination.page,
        per_page=pagination.per_page,
    )
    return page_envelope([AuditLogRead.model_validate(log) for log in logs], total, pagination)


@router.get("/actions")
def list_actions(
    session: UserSession = Depends(require_min_role(MIN_ROLE_VIEW_AUDIT)),
) -> list[str]:
    """Available audit actions for filtering."""
    return [a.value for a in AuditAction]


@router.get("/entities")
def list_entities(
    session: UserSession = Depends(require_min_role(MIN_ROLE_VIEW_AUDIT)),
) -> list[str]:
    return [e.value for e in AuditEntity]
