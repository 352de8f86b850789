"""User-related Pydantic schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from app.db.enums import Role


class UserRead(BaseModel):
    """Response schema for reading a user."""

    id: UUID
    email: str
    name: str
    avatar: str | None
    role: Role
    timezone: str | None
    locale: str | None
    is_active: bool
    last_login_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


class UserCreate(BaseModel):
    """Admin request to add a user to the organization."""

    email: str = Field(..., min_length=3, max_length=255)
    name: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=8, max_length=255)
    role: Role = Role.USER
    avatar: str | None = None
    timezone: str | None = None
    locale: str | None = None


class UserUpdate(BaseModel):
    """Admin request to update a user (partial)."""

    email: str | None = Field(None, min_length=3, max_length=255)
    name: str | None = Field(None, min_length=1, max_length=255)
    password: str | None = Field(None, min_length=8, max_length=255)
    role: Role | None = None
    avatar: str | None = None
    timezone: str | None = None
    locale: str | None = None
    is_active: bool | None = None
    preferences: dict | None = None
