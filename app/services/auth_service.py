"""Authentication service - credential checks, session issue and revocation, profile."""

import logging

from sqlalchemy.orm import Session

from app.core.security import create_session_token, hash_password, verify_password
from app.db.base import utcnow
from app.db.models import User
from app.schemas.auth import MeResponse, ProfileUpdate
from app.services.preference_service import merge_preferences
from app.services.user_service import find_active_user_by_email

logger = logging.getLogger(__name__)


class AuthenticationError(Exception):
    """Credentials rejected. Message is safe to show to the client."""


class PasswordChangeError(ValueError):
    pass


INVALID_CREDENTIALS = "Invalid credentials"


def authenticate(db: Session, email: str, password: str) -> User:
    """
    Resolve the user for a login attempt.

    Raises:
        AuthenticationError: unknown email, wrong password, inactive
            user or inactive organization
    """
    user = find_active_user_by_email(db, email)
    if not user or not verify_password(password, user.password_hash):
        raise AuthenticationError(INVALID_CREDENTIALS)
    if not user.organization or not user.organization.is_active:
        raise AuthenticationError("Organization is disabled")
    return user


def start_session(db: Session, user: User) -> str:
    """Record the login and return a signed session token."""
    user.last_login_at = utcnow()
    db.commit()
    db.refresh(user)
    return create_session_token(
        user_id=user.id,
        org_id=user.organization_id,
        role=user.role,
        token_version=user.token_version,
    )


def revoke_sessions(db: Session, user: User) -> None:
    """Invalidate every outstanding token for the user."""
    user.token_version += 1
    db.commit()
    logger.info("Revoked sessions for user %s", user.id)


def build_me(user: User) -> MeResponse:
    org = user.organization
    return MeResponse(
        user_id=user.id,
        email=user.email,
        name=user.name,
        avatar=user.avatar,
        role=user.role,
        timezone=user.timezone,
        locale=user.locale,
        preferences=user.preferences or {},
        org_id=org.id,
        org_name=org.name,
        org_slug=org.slug,
        org_timezone=org.timezone,
        org_currency=org.currency,
        org_locale=org.locale,
    )


def update_profile(db: Session, user: User, data: ProfileUpdate) -> tuple[User, list[str]]:
    """
    Self-service profile update.

    A new password needs the current one and bumps token_version, so other
    sessions are signed out. Returns (user, changed_fields).
    """
    update_data = data.model_dump(exclude_unset=True)
    new_password = update_data.pop("new_password", None)
    current_password = update_data.pop("current_password", None)
    changed: list[str] = []

    if new_password:
        if not current_password or not verify_password(current_password, user.password_hash):
            raise PasswordChangeError("Current password is incorrect")
        user.password_hash = hash_password(new_password)
        user.token_version += 1
        changed.append("password")

    for field, value in update_data.items():
        if field == "preferences":
            if value is not None:
                user.preferences = merge_preferences(user.preferences, value)
                changed.append(field)
            continue
        if value is None and field == "name":
            continue
        if getattr(user, field) != value:
            changed.append(field)
        setattr(user, field, value)

    db.commit()
    db.refresh(user)
    return user, changed
