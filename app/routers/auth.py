"""Authentication router - password login, session cookie and own profile."""

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.deps import COOKIE_NAME, get_current_user, get_db, require_csrf_header
from app.core.rate_limit import limiter
from app.db.enums import AuditAction, AuditEntity
from app.db.models import User
from app.schemas.auth import LoginRequest, MeResponse, ProfileUpdate
from app.services import audit_service, auth_service

router = APIRouter()


def _set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=COOKIE_NAME,
        value=token,
        max_age=settings.JWT_EXPIRES_HOURS * 3600,
        httponly=True,
        samesite="lax",
        secure=settings.cookie_secure,
        path="/",
    )


@router.post("/login", response_model=MeResponse, dependencies=[Depends(require_csrf_header)])
@limiter.limit(f"{settings.RATE_LIMIT_AUTH}/minute")
def login(
    request: Request,
    response: Response,
    body: LoginRequest,
    db: Session = Depends(get_db),
):
    """Verify email and password, then set the session cookie."""
    try:
        user = auth_service.authenticate(db, body.email, body.password)
    except auth_service.AuthenticationError as e:
        raise HTTPException(status_code=401, detail=str(e))

    token = auth_service.start_session(db, user)
    audit_service.log_audit(
        db,
        action=AuditAction.LOGIN,
        entity=AuditEntity.USER,
        entity_id=user.id,
        entity_name=user.name,
        user_id=user.id,
        user_name=user.name,
        organization_id=user.organization_id,
        request=request,
    )
    _set_session_cookie(response, token)
    return auth_service.build_me(user)


@router.post("/logout", dependencies=[Depends(require_csrf_header)])
def logout(
    request: Request,
    response: Response,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Clear the session cookie and revoke outstanding tokens.

    Requires X-Requested-With header for CSRF protection.
    """
    auth_service.revoke_sessions(db, user)
    audit_service.log_audit(
        db,
        action=AuditAction.LOGOUT,
        entity=AuditEntity.USER,
        entity_id=user.id,
        entity_name=user.name,
        user_id=user.id,
        user_name=user.name,
        organization_id=user.organization_id,
        request=request,
    )
    response.delete_cookie(COOKIE_NAME, path="/")
    return {"status": "logged_out"}


@router.get("/me", response_model=MeResponse)
def get_me(user: User = Depends(get_current_user)):
    """Current user with organization details."""
    return auth_service.build_me(user)


@router.get("/profile", response_model=MeResponse)
def get_profile(user: User = Depends(get_current_user)):
    return auth_service.build_me(user)


@router.put("/profile", response_model=MeResponse, dependencies=[Depends(require_csrf_header)])
def update_profile(
    request: Request,
    response: Response,
    body: ProfileUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Update own name, avatar, timezone, locale or notification preferences.

    Changing the password needs current_password; it signs out other
    sessions and re-issues this one.
    """
    try:
        user, changed = auth_service.update_profile(db, user, body)
    except auth_service.PasswordChangeError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if changed:
        audit_service.log_audit(
            db,
            action=AuditAction.UPDATED,
            entity=AuditEntity.USER,
            entity_id=user.id,
            entity_name=user.name,
            details={"changes": changed, "self_service": True},
            user_id=user.id,
            user_name=user.name,
            organization_id=user.organization_id,
            request=request,
        )
    if "password" in changed:
        _set_session_cookie(response, auth_service.start_session(db, user))
    return auth_service.build_me(user)
