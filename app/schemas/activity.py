"""Pydantic schemas for activities."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from app.db.enums import ActivityType


class ActivityCreate(BaseModel):
    """Log an activity. `follow_up` also creates a follow-up task due in three days."""
    activity_type: ActivityType
    subject: str = Field(..., min_length=1, max_length=255)
    content: str | None = None
    contact_id: UUID | None = None
    deal_id: UUID | None = None
    follow_up: bool = False


class ActivityRead(BaseModel):
    id: UUID
    activity_type: str
    subject: str
    content: str | None
    contact_id: UUID | None
    deal_id: UUID | None
    created_by_user_id: UUID | None
    created_at: datetime

    model_config = {"from_attributes": True}


class ActivityListResponse(BaseModel):
    items: list[ActivityRead]
    total: int
    page: int
    per_page: int
    pages: int
