"""Pydantic schemas for organization settings."""

from uuid import UUID

from pydantic import BaseModel, Field


class OrgSettingsRead(BaseModel):
    id: UUID
    name: str
    slug: str
    logo: str | None
    favicon: str | None
    primary_color: str
    timezone: str
    currency: str
    locale: str
    settings: dict


class OrgSettingsUpdate(BaseModel):
    """Partial update; `settings` is merged key by key into the stored map."""
    name: str | None = Field(None, min_length=1, max_length=255)
    logo: str | None = Field(None, max_length=500)
    favicon: str | None = Field(None, max_length=500)
    primary_color: str | None = Field(None, pattern=r"^#[0-9a-fA-F]{6}$")
    timezone: str | None = Field(None, max_length=50)
    currency: str | None = Field(None, min_length=3, max_length=3)
    locale: str | None = Field(None, max_length=10)
    settings: dict | None = None
