"""Authentication-related Pydantic schemas."""

from uuid import UUID

from pydantic import BaseModel, Field

from app.db.enums import Role


class UserSession(BaseModel):
    """
    Full session context for authenticated requests.

    This is returned by get_current_session dependency
    and contains all information needed for authorization.
    """
    user_id: UUID
    org_id: UUID
    role: Role  # Validated enum
    email: str
    name: str


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1, max_length=255)


class MeResponse(BaseModel):
    """Response schema for GET /auth/me endpoint."""
    user_id: UUID
    email: str
    name: str
    avatar: str | None
    role: Role
    timezone: str | None
    locale: str | None
    preferences: dict
    org_id: UUID
    org_name: str
    org_slug: str
    org_timezone: str
    org_currency: str
    org_locale: str


class ProfileUpdate(BaseModel):
    """Self-service profile update. Password change requires the current password."""
    name: str | None = Field(None, min_length=1, max_length=255)
    avatar: str | None = Field(None, max_length=500)
    timezone: str | None = Field(None, max_length=50)
    locale: str | None = Field(None, max_length=10)
    preferences: dict | None = None
    current_password: str | None = None
    new_password: str | None = Field(None, min_length=8, max_length=255)
