"""Role hierarchy and resource-level permission helpers.

Roles are ordinal: user < manager < admin. Resource checks take a
UserSession (user_id, org_id, role) and the ORM row being acted on.
"""

from uuid import UUID

from app.db.enums import MIN_ROLE_DELETE_ANY, MIN_ROLE_VIEW_ALL, Role


ROLE_HIERARCHY: dict[str, int] = {
    Role.USER.value: 1,
    Role.MANAGER.value: 2,
    Role.ADMIN.value: 3,
}


def role_rank(role: Role | str | None) -> int:
    """Numeric rank for a role; unknown roles rank 0."""
    if role is None:
        return 0
    return ROLE_HIERARCHY.get(getattr(role, "value", role), 0)


def has_min_role(actual: Role | str | None, required: Role | str) -> bool:
    """True when `actual` is at least as privileged as `required`."""
    return role_rank(actual) >= role_rank(required) > 0


def roles_at_least(required: Role | str) -> list[Role]:
    """Every role that passes has_min_role(role, required), lowest first."""
    return [role for role in Role if has_min_role(role, required)]


# =============================================================================
# Session-level checks
# =============================================================================

def can_view_all(session) -> bool:
    """Manager+ may bypass row visibility with show_all and assign tasks to others."""
    return has_min_role(session.role, MIN_ROLE_VIEW_ALL)


# =============================================================================
# Resource-level checks
# =============================================================================

def is_creator(user_id: UUID, created_by_user_id: UUID | None) -> bool:
    """Creator match by stable id. System-created rows (no creator) match nobody."""
    return created_by_user_id is not None and created_by_user_id == user_id


def can_delete_resource(session, resource) -> bool:
    """
    Owner, creator, task assignee, or manager+ may delete a contact/deal/task.
    """
    if has_min_role(session.role, MIN_ROLE_DELETE_ANY):
        return True
    if resource.owner_id is not None and resource.owner_id == session.user_id:
        return True
    if is_creator(session.user_id, resource.created_by_user_id):
        return True
    assignee = getattr(resource, "assigned_to_id", None)
    return assignee is not None and assignee == session.user_id


def can_assign_to(session, assignee_id: UUID | None) -> bool:
    """Users may only assign work to themselves; manager+ may assign anyone."""
    if assignee_id is None or assignee_id == session.user_id:
        return True
    return can_view_all(session)
