"""Pydantic schemas for contacts."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from app.db.enums import ContactStatus, Visibility


class ContactCreate(BaseModel):
    """Request to create a contact."""
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field("", max_length=100)
    email: str | None = Field(None, max_length=255)
    phone: str | None = Field(None, max_length=50)
    company: str | None = Field(None, max_length=255)
    job_title: str | None = Field(None, max_length=255)
    status: ContactStatus = ContactStatus.ACTIVE
    source: str | None = Field(None, max_length=100)
    tags: str | None = Field(None, max_length=500)
    notes: str | None = None
    owner_id: UUID | None = None
    visibility: Visibility = Visibility.ORG
    visible_to: list[UUID] | None = None


class ContactUpdate(BaseModel):
    """Request to update a contact (partial)."""
    first_name: str | None = Field(None, min_length=1, max_length=100)
    last_name: str | None = Field(None, max_length=100)
    email: str | None = Field(None, max_length=255)
    phone: str | None = Field(None, max_length=50)
    company: str | None = Field(None, max_length=255)
    job_title: str | None = Field(None, max_length=255)
    status: ContactStatus | None = None
    source: str | None = Field(None, max_length=100)
    tags: str | None = Field(None, max_length=500)
    notes: str | None = None
    owner_id: UUID | None = None
    visibility: Visibility | None = None
    visible_to: list[UUID] | None = None


class ContactRead(BaseModel):
    """Full contact response."""
    id: UUID
    first_name: str
    last_name: str
    email: str | None
    phone: str | None
    company: str | None
    job_title: str | None
    status: str
    source: str | None
    tags: str | None
    notes: str | None
    owner_id: UUID | None
    owner_name: str | None = None
    visibility: str
    visible_to: list[UUID] = []
    created_by_user_id: UUID | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ContactListResponse(BaseModel):
    """Paginated contact list."""
    items: list[ContactRead]
    total: int
    page: int
    per_page: int
    pages: int
