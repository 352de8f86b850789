"""Row-level visibility for contacts, deals and tasks.

Tenant isolation (organization_id) is always applied first. The visibility
clause only narrows what a viewer sees inside their own organization.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Iterable
from uuid import UUID

from sqlalchemy import Boolean, or_
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.sql.functions import FunctionElement

from app.core.permissions import can_view_all, has_min_role
from app.db.enums import MIN_ROLE_VIEW_ALL, Role, Visibility

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VisibleToParse:
    """Decoded explicit read grants. `error` is set when the raw value was unusable."""

    user_ids: frozenset[UUID]
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


NO_GRANTS = VisibleToParse(user_ids=frozenset())


def _coerce_ids(items: Iterable[Any]) -> tuple[frozenset[UUID], str | None]:
    ids: set[UUID] = set()
    bad = 0
    for item in items:
        if isinstance(item, UUID):
            ids.add(item)
            continue
        try:
            ids.add(UUID(str(item)))
        except (TypeError, ValueError, AttributeError):
            bad += 1
    return frozenset(ids), (f"{bad} invalid user id(s) ignored" if bad else None)


def parse_visible_to(raw: Any) -> VisibleToParse:
    """
    Decode a visible_to value into a set of user ids.

    Accepts None, a list of ids, or the JSON text of a list. Malformed input
    never raises: it resolves to no grants with `error` describing why.
    """
    if raw is None or raw == "":
        return NO_GRANTS

    value = raw
    if isinstance(raw, (bytes, bytearray)):
        value = raw.decode("utf-8", errors="replace")
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            logger.warning("Malformed visible_to JSON treated as no grants")
            return VisibleToParse(user_ids=frozenset(), error="malformed JSON")

    if not isinstance(value, (list, tuple, set, frozenset)):
        logger.warning("visible_to is not a list (%s), treated as no grants", type(value).__name__)
        return VisibleToParse(user_ids=frozenset(), error="not a list")

    ids, error = _coerce_ids(value)
    return VisibleToParse(user_ids=ids, error=error)


class visible_to_includes(FunctionElement):
    """
    visible_to_includes(column, user_id): true when the column holds a JSON
    array with user_id among its elements.

    Anything that is not a well-formed array (legacy text, objects, broken
    JSON) never matches, the same as parse_visible_to.
    """

    type = Boolean()
    name = "visible_to_includes"
    inherit_cache = True


@compiles(visible_to_includes)
def _visible_to_includes_postgresql(element, compiler, **kw):
    column, user_id = (compiler.process(clause, **kw) for clause in element.clauses)
    return (
        f"(CASE WHEN {column} IS JSON ARRAY THEN EXISTS ("
        f"SELECT 1 FROM jsonb_array_elements_text(CAST({column} AS jsonb)) elem "
        f"WHERE elem = {user_id}) END)"
    )


@compiles(visible_to_includes, "sqlite")
def _visible_to_includes_sqlite(element, compiler, **kw):
    column, user_id = (compiler.process(clause, **kw) for clause in element.clauses)
    # json_type and json_each raise on invalid JSON; CASE keeps them behind json_valid
    return (
        f"(CASE WHEN json_valid({column}) THEN "
        f"CASE WHEN json_type({column}) = 'array' THEN EXISTS ("
        f"SELECT 1 FROM json_each({column}) WHERE json_each.value = {user_id}) END END = 1)"
    )


def apply_visibility_filter(query, model, org_id: UUID, viewer_id: UUID | None = None):
    """
    Scope a list query to one organization and, when a viewer is given,
    to the rows that viewer may read.

    Passing viewer_id=None is the manager/admin "show all" path; callers must
    obtain it from resolve_viewer_id so the role check is not skipped.
    """
    query = query.filter(model.organization_id == org_id)
    if viewer_id is None:
        return query

    clauses = [
        model.visibility == Visibility.ORG.value,
        model.owner_id == viewer_id,
    ]
    if hasattr(model, "assigned_to_id"):
        clauses.append(model.assigned_to_id == viewer_id)
    clauses.append(visible_to_includes(model.visible_to, str(viewer_id)))
    return query.filter(or_(*clauses))


def resolve_viewer_id(session, show_all: bool = False) -> UUID | None:
    """Return the viewer id for filtering, or None for a manager+ "show all" request."""
    if show_all and can_view_all(session):
        return None
    return session.user_id


def can_access_resource(viewer_id: UUID, role: Role | str | None, resource) -> bool:
    """Per-row read check matching apply_visibility_filter (tenant checked by caller)."""
    if has_min_role(role, MIN_ROLE_VIEW_ALL):
        return True
    if resource.visibility == Visibility.ORG.value:
        return True
    if resource.owner_id == viewer_id:
        return True
    if getattr(resource, "assigned_to_id", None) == viewer_id:
        return True
    return viewer_id in parse_visible_to(resource.visible_to).user_ids
