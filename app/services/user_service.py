"""User service - organization user management."""

import logging
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.security import hash_password
from app.db.enums import Role
from app.db.models import Contact, Deal, Task, User
from app.schemas.user import UserCreate, UserUpdate
from app.services.preference_service import merge_preferences
from app.utils.normalization import normalize_email, normalize_name

logger = logging.getLogger(__name__)

LAST_ADMIN_MESSAGE = (
    "Cannot remove the last administrator. "
    "The organization must keep at least one active administrator."
)


class LastAdminError(ValueError):
    """Raised when a change would leave the organization without an active admin."""

    def __init__(self, message: str = LAST_ADMIN_MESSAGE):
        super().__init__(message)


class DuplicateEmailError(ValueError):
    """Raised when an email is already used in the organization."""

    def __init__(self, message: str = "A user with that email already exists"):
        super().__init__(message)


class SelfDeactivationError(ValueError):
    def __init__(self, message: str = "You cannot deactivate your own account"):
        super().__init__(message)


def get_user(db: Session, org_id: UUID, user_id: UUID) -> User | None:
    """User by id, scoped to the organization."""
    return (
        db.query(User)
        .filter(User.id == user_id, User.organization_id == org_id)
        .first()
    )


def get_user_by_email(db: Session, org_id: UUID, email: str) -> User | None:
    return (
        db.query(User)
        .filter(User.organization_id == org_id, User.email == normalize_email(email))
        .first()
    )


def find_active_user_by_email(db: Session, email: str) -> User | None:
    """Login lookup across organizations; oldest account wins on duplicates."""
    return (
        db.query(User)
        .filter(User.email == normalize_email(email), User.is_active.is_(True))
        .order_by(User.created_at)
        .first()
    )


def validate_org_user(db: Session, org_id: UUID, user_id: UUID | None) -> None:
    """Reject references to users outside the organization."""
    if user_id is None:
        return
    if not get_user(db, org_id, user_id):
        raise ValueError("User not found in organization")


def list_users(db: Session, org_id: UUID, *, include_inactive: bool = True) -> list[User]:
    query = db.query(User).filter(User.organization_id == org_id)
    if not include_inactive:
        query = query.filter(User.is_active.is_(True))
    return query.order_by(User.name).all()


def count_active_admins(db: Session, org_id: UUID) -> int:
    return (
        db.query(func.count(User.id))
        .filter(
            User.organization_id == org_id,
            User.role == Role.ADMIN.value,
            User.is_active.is_(True),
        )
        .scalar()
        or 0
    )


def ensure_not_last_admin(db: Session, user: User) -> None:
    """Raise LastAdminError when `user` is the organization's only active admin."""
    if user.role != Role.ADMIN.value or not user.is_active:
        return
    if count_active_admins(db, user.organization_id) <= 1:
        raise LastAdminError()


def get_user_counts(db: Session, user: User) -> dict[str, int]:
    """Workload counters shown on the user detail page."""
    return {
        "assigned_tasks": db.query(func.count(Task.id)).filter(Task.assigned_to_id == user.id).scalar() or 0,
        "owned_contacts": db.query(func.count(Contact.id)).filter(Contact.owner_id == user.id).scalar() or 0,
        "owned_deals": db.query(func.count(Deal.id)).filter(Deal.owner_id == user.id).scalar() or 0,
    }


def create_user(db: Session, org_id: UUID, data: UserCreate) -> User:
    """Create a user in the organization. Raises DuplicateEmailError."""
    email = normalize_email(data.email)
    if not email:
        raise ValueError("Email is required")
    if get_user_by_email(db, org_id, email):
        raise DuplicateEmailError()

    user = User(
        organization_id=org_id,
        email=email,
        name=normalize_name(data.name) or email,
        password_hash=hash_password(data.password),
        role=data.role.value,
        avatar=data.avatar,
        timezone=data.timezone,
        locale=data.locale,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Created user %s in org %s", user.id, org_id)
    return user


def update_user(db: Session, user: User, data: UserUpdate) -> tuple[User, dict]:
    """
    Admin update of a user.

    Returns (user, changes). Demoting or deactivating the last active admin
    raises LastAdminError; an email already in use raises DuplicateEmailError.
    """
    update_data = data.model_dump(exclude_unset=True)
    previous_role = user.role

    if "email" in update_data and update_data["email"] is not None:
        email = normalize_email(update_data["email"])
        if email != user.email:
            existing = get_user_by_email(db, user.organization_id, email)
            if existing and existing.id != user.id:
                raise DuplicateEmailError()
        update_data["email"] = email

    new_role = update_data.get("role")
    removes_admin = (
        (new_role is not None and new_role != Role.ADMIN)
        or update_data.get("is_active") is False
    )
    if removes_admin:
        ensure_not_last_admin(db, user)

    changes: dict = {}
    for field, value in update_data.items():
        if value is None and field in {"email", "name", "role", "is_active", "password"}:
            continue
        if field == "password":
            user.password_hash = hash_password(value)
            user.token_version += 1
            changes["password"] = "[UPDATED]"
            continue
        if field == "preferences":
            user.preferences = merge_preferences(user.preferences, value)
            changes["preferences"] = "[UPDATED]"
            continue
        if field == "role":
            value = value.value
        setattr(user, field, value)
        changes[field] = value

    if update_data.get("is_active") is False:
        user.token_version += 1

    db.commit()
    db.refresh(user)
    changes["previous_role"] = previous_role
    changes["new_role"] = user.role
    return user, changes


def deactivate_user(db: Session, user: User, actor_user_id: UUID) -> User:
    """
    Soft-delete a user: mark inactive and revoke sessions.

    Raises SelfDeactivationError for the caller's own account and
    LastAdminError for the last active admin.
    """
    if user.id == actor_user_id:
        raise SelfDeactivationError()
    ensure_not_last_admin(db, user)

    user.is_active = False
    user.token_version += 1
    db.commit()
    db.refresh(user)
    logger.info("Deactivated user %s", user.id)
    return user


def get_user_names(db: Session, user_ids) -> dict[UUID, str]:
    """Bulk-resolve user display names for list rendering."""
    ids = {user_id for user_id in user_ids if user_id}
    if not ids:
        return {}
    return {row.id: row.name for row in db.query(User.id, User.name).filter(User.id.in_(ids)).all()}
