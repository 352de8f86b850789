"""Pydantic schemas for the audit trail."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel


class AuditLogRead(BaseModel):
    id: UUID
    action: str
    entity: str
    entity_id: UUID | None
    entity_name: str | None
    details: dict | list | None
    user_id: UUID | None
    user_name: str | None
    ip_address: str | None
    user_agent: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class AuditLogListResponse(BaseModel):
    items: list[AuditLogRead]
    total: int
    page: int
    per_page: int
    pages: int
