"""Pydantic schemas for notifications."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class NotificationRead(BaseModel):
    id: UUID
    type: str
    title: str
    message: str | None
    link: str | None
    metadata: dict | None
    is_read: bool
    read_at: datetime | None
    created_at: datetime


class NotificationListResponse(BaseModel):
    data: list[NotificationRead]
    total: int
    unread_count: int


class NotificationSend(BaseModel):
    """
    Manager announcement. Exactly one target: user_ids, all_users or admins_only.
    """
    title: str = Field(..., min_length=1, max_length=255)
    message: str | None = Field(None, max_length=2000)
    link: str | None = Field(None, max_length=500)
    user_ids: list[UUID] | None = None
    all_users: bool = False
    admins_only: bool = False


class NotificationMarkRead(BaseModel):
    """Body of PATCH /notifications: explicit ids or everything."""
    model_config = ConfigDict(populate_by_name=True)

    ids: list[UUID] | None = None
    mark_all_read: bool = Field(False, alias="markAllRead")


class NotificationDelete(BaseModel):
    """Body of DELETE /notifications: explicit ids or everything."""
    model_config = ConfigDict(populate_by_name=True)

    ids: list[UUID] | None = None
    delete_all: bool = Field(False, alias="deleteAll")


class NotificationBulkResult(BaseModel):
    count: int


class NotificationSendResult(BaseModel):
    """Announcement accepted; delivery happens after the response."""
    recipients: int
