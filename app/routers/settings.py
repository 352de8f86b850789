"""Settings endpoints for organization branding, locale and pipeline configuration."""

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from app.core.deps import get_current_session, get_db, require_csrf_header, require_min_role
from app.db.enums import MIN_ROLE_MANAGE_SETTINGS, AuditAction, AuditEntity
from app.schemas.auth import UserSession
from app.schemas.settings import OrgSettingsRead, OrgSettingsUpdate
from app.services import audit_service, org_service

router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("", response_model=OrgSettingsRead)
def get_org_settings(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Organization settings, with defaults filled in for unset keys."""
    org = org_service.get_org_by_id(db, session.org_id)
    if not org:
        raise HTTPException(status_code=404, detail="Organization not found")
    return org_service.to_settings_read(org)


@router.put("", response_model=OrgSettingsRead, dependencies=[Depends(require_csrf_header)])
def update_org_settings(
    body: OrgSettingsUpdate,
    request: Request,
    session: UserSession = Depends(require_min_role(MIN_ROLE_MANAGE_SETTINGS)),
    db: Session = Depends(get_db),
):
    """
    Update organization settings.

    Requires: Admin role
    """
    org = org_service.get_org_by_id(db, session.org_id)
    if not org:
        raise HTTPException(status_code=404, detail="Organization not found")

    org, changed = org_service.update_org_settings(db, org, body)
    if changed:
        audit_service.log_audit(
            db,
            action=AuditAction.SETTINGS_CHANGED,
            entity=AuditEntity.SETTINGS,
            entity_id=org.id,
            entity_name=org.name,
            details={"changes": changed},
            user_id=session.user_id,
            user_name=session.name,
            organization_id=session.org_id,
            request=request,
        )
    return org_service.to_settings_read(org)
