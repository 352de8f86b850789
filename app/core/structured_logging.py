"""Structured logging helpers."""

from typing import Any


def build_log_context(
    *,
    user_id: Any = None,
    org_id: Any = None,
    route: str | None = None,
    method: str | None = None,
    entity: str | None = None,
    entity_id: Any = None,
) -> dict[str, Any]:
    """Return a log `extra=` context dict with only the fields that are set."""
    context: dict[str, Any] = {}
    if user_id:
        context["user_id"] = str(user_id)
    if org_id:
        context["org_id"] = str(org_id)
    if route:
        context["route"] = route
    if method:
        context["method"] = method
    if entity:
        context["entity"] = entity
    if entity_id:
        context["entity_id"] = str(entity_id)
    return context
