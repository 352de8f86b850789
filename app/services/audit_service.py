"""Audit logging service - append-only trail of user actions.

Audit writes are advisory: log_audit never raises. Callers commit their
business change first, then call log_audit; a failed audit insert is
rolled back and logged, and the request carries on.

Guidelines:
- NEVER log secrets (passwords, tokens)
- IP: Trust X-Forwarded-For only behind a configured proxy
"""

import json
import logging
from datetime import datetime
from typing import Any
from uuid import UUID

from fastapi import Request
from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.structured_logging import build_log_context
from app.db.enums import AuditAction, AuditEntity
from app.db.models import AuditLog

logger = logging.getLogger(__name__)


def get_client_ip(request: Request | None) -> str | None:
    """
    Extract client IP from request.

    Only trusts X-Forwarded-For when TRUST_PROXY_HEADERS=True (behind reverse proxy).
    In development/direct connections, uses request.client.host.
    """
    if not request:
        return None

    # Only trust X-Forwarded-For when explicitly configured (behind nginx/Cloudflare)
    if settings.TRUST_PROXY_HEADERS:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            # X-Forwarded-For: client, proxy1, proxy2 - take first
            return forwarded.split(",")[0].strip()

    if request.client:
        return request.client.host

    return None


def get_user_agent(request: Request | None) -> str | None:
    """Extract user agent from request."""
    if not request:
        return None
    ua = request.headers.get("user-agent", "")
    # Truncate to 500 chars (DB limit)
    return ua[:500] if ua else None


def _json_safe(details: Any) -> Any:
    """Round-trip details through JSON so UUIDs, dates and enums are stored as strings."""
    if details is None:
        return None
    return json.loads(json.dumps(details, default=str))


def _value(item: Any) -> Any:
    return getattr(item, "value", item)


def log_audit(
    db: Session,
    *,
    action: AuditAction | str,
    entity: AuditEntity | str,
    entity_id: UUID | None = None,
    entity_name: str | None = None,
    details: dict | None = None,
    user_id: UUID | None = None,
    user_name: str | None = None,
    organization_id: UUID | None = None,
    request: Request | None = None,
) -> AuditLog | None:
    """
    Write one audit entry and commit it.

    Returns the entry, or None when the write failed. Never raises.
    """
    try:
        entry = AuditLog(
            action=_value(action),
            entity=_value(entity),
            entity_id=entity_id,
            entity_name=entity_name[:255] if entity_name else entity_name,
            details=_json_safe(details),
            user_id=user_id,
            user_name=user_name,
            organization_id=organization_id,
            ip_address=get_client_ip(request),
            user_agent=get_user_agent(request),
        )
        db.add(entry)
        db.commit()
        return entry
    except Exception:
        try:
            db.rollback()
        except Exception:
            logger.warning("Rollback after failed audit write also failed")
        logger.exception(
            "Audit write failed: %s %s",
            _value(action),
            _value(entity),
            extra=build_log_context(
                user_id=user_id,
                org_id=organization_id,
                entity=_value(entity),
                entity_id=entity_id,
            ),
        )
        return None


# =============================================================================
# Read side
# =============================================================================

def list_audit_logs(
    db: Session,
    org_id: UUID,
    *,
    entity: str | None = None,
    entity_id: UUID | None = None,
    user_id: UUID | None = None,
    action: str | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    search: str | None = None,
    page: int = 1,
    per_page: int = 50,
) -> tuple[list[AuditLog], int]:
    """List an organization's audit entries, newest first."""
    query = db.query(AuditLog).filter(AuditLog.organization_id == org_id)

    if entity:
        query = query.filter(AuditLog.entity == entity)
    if entity_id:
        query = query.filter(AuditLog.entity_id == entity_id)
    if user_id:
        query = query.filter(AuditLog.user_id == user_id)
    if action:
        query = query.filter(AuditLog.action == action)
    if start_date:
        query = query.filter(AuditLog.created_at >= start_date)
    if end_date:
        query = query.filter(AuditLog.created_at <= end_date)
    if search:
        pattern = f"%{search}%"
        query = query.filter(
            or_(AuditLog.entity_name.ilike(pattern), AuditLog.user_name.ilike(pattern))
        )

    total = query.count()
    offset = (page - 1) * per_page
    items = (
        query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .offset(offset)
        .limit(per_page)
        .all()
    )
    return items, total


def list_recent(db: Session, org_id: UUID, limit: int = 10) -> list[AuditLog]:
    """Latest audit entries for the dashboard feed."""
    return (
        db.query(AuditLog)
        .filter(AuditLog.organization_id == org_id)
        .order_by(AuditLog.created_at.desc())
        .limit(limit)
        .all()
    )
