"""Pydantic schemas for deals."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, Field

from app.db.enums import DealPriority, DealStage, Visibility


class DealCreate(BaseModel):
    """Request to create a deal."""
    title: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    value: float = Field(0.0, ge=0)
    currency: str = Field("USD", min_length=3, max_length=3)
    stage: DealStage = DealStage.LEAD
    probability: int = Field(0, ge=0, le=100)
    priority: DealPriority = DealPriority.MEDIUM
    expected_close: date | None = None
    contact_id: UUID | None = None
    owner_id: UUID | None = None
    visibility: Visibility = Visibility.ORG
    visible_to: list[UUID] | None = None


class DealUpdate(BaseModel):
    """Request to update a deal (partial). A stage change is audited separately."""
    title: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    value: float | None = Field(None, ge=0)
    currency: str | None = Field(None, min_length=3, max_length=3)
    stage: DealStage | None = None
    probability: int | None = Field(None, ge=0, le=100)
    priority: DealPriority | None = None
    expected_close: date | None = None
    actual_close: datetime | None = None
    lost_reason: str | None = None
    contact_id: UUID | None = None
    owner_id: UUID | None = None
    visibility: Visibility | None = None
    visible_to: list[UUID] | None = None


class DealRead(BaseModel):
    """Full deal response."""
    id: UUID
    title: str
    description: str | None
    value: float
    currency: str
    stage: str
    probability: int
    priority: str
    expected_close: date | None
    actual_close: datetime | None
    lost_reason: str | None
    contact_id: UUID | None
    contact_name: str | None = None
    owner_id: UUID | None
    owner_name: str | None = None
    visibility: str
    visible_to: list[UUID] = []
    created_by_user_id: UUID | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class DealListResponse(BaseModel):
    """Paginated deal list."""
    items: list[DealRead]
    total: int
    page: int
    per_page: int
    pages: int
