"""Users router - organization member management."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from app.core.deps import get_current_session, get_db, require_csrf_header, require_min_role
from app.db.enums import MIN_ROLE_MANAGE_USERS, AuditAction, AuditEntity
from app.schemas.auth import UserSession
from app.schemas.user import UserCreate, UserRead, UserUpdate
from app.services import audit_service, user_service
from app.services.user_service import DuplicateEmailError

router = APIRouter(prefix="/users", tags=["users"])


def _get_org_user(db: Session, session: UserSession, user_id: UUID):
    user = user_service.get_user(db, session.org_id, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.get("", response_model=list[UserRead])
def list_users(
    include_inactive: bool = True,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return user_service.list_users(db, session.org_id, include_inactive=include_inactive)


@router.post("", response_model=UserRead, status_code=201, dependencies=[Depends(require_csrf_header)])
def create_user(
    request: Request,
    data: UserCreate,
    session: UserSession = Depends(require_min_role(MIN_ROLE_MANAGE_USERS)),
    db: Session = Depends(get_db),
):
    """
    Add a user to the organization.

    Requires: Admin role
    """
    try:
        user = user_service.create_user(db, session.org_id, data)
    except DuplicateEmailError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    audit_service.log_audit(
        db,
        action=AuditAction.CREATED,
        entity=AuditEntity.USER,
        entity_id=user.id,
        entity_name=user.name,
        details={"email": user.email, "role": user.role},
        user_id=session.user_id,
        user_name=session.name,
        organization_id=session.org_id,
        request=request,
    )
    return user


@router.get("/{user_id}")
def get_user(
    user_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """User with workload counters."""
    user = _get_org_user(db, session, user_id)
    return {
        **UserRead.model_validate(user).model_dump(),
        "counts": user_service.get_user_counts(db, user),
    }


@router.put("/{user_id}", response_model=UserRead, dependencies=[Depends(require_csrf_header)])
def update_user(
    request: Request,
    user_id: UUID,
    data: UserUpdate,
    session: UserSession = Depends(require_min_role(MIN_ROLE_MANAGE_USERS)),
    db: Session = Depends(get_db),
):
    """
    Update a user.

    The last active admin cannot be demoted or deactivated (400).
    """
    user = _get_org_user(db, session, user_id)
    if data.is_active is False and user.id == session.user_id:
        raise HTTPException(status_code=400, detail="You cannot deactivate your own account")
    try:
        user, changes = user_service.update_user(db, user, data)
    except DuplicateEmailError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    audit_service.log_audit(
        db,
        action=AuditAction.UPDATED,
        entity=AuditEntity.USER,
        entity_id=user.id,
        entity_name=user.name,
        details=changes,
        user_id=session.user_id,
        user_name=session.name,
        organization_id=session.org_id,
        request=request,
    )
    return user


@router.delete("/{user_id}", response_model=UserRead, dependencies=[Depends(require_csrf_header)])
def deactivate_user(
    request: Request,
    user_id: UUID,
    session: UserSession = Depends(require_min_role(MIN_ROLE_MANAGE_USERS)),
    db: Session = Depends(get_db),
):
    """Deactivate a user. Their records and history are kept."""
    user = _get_org_user(db, session, user_id)
    try:
        user = user_service.deactivate_user(db, user, session.user_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    audit_service.log_audit(
        db,
        action=AuditAction.STATUS_CHANGED,
        entity=AuditEntity.USER,
        entity_id=user.id,
        entity_name=user.name,
        details={"is_active": False},
        user_id=session.user_id,
        user_name=session.name,
        organization_id=session.org_id,
        request=request,
    )
    return user
