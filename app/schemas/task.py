"""Pydantic schemas for tasks."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from app.db.enums import TaskPriority, TaskStatus, TaskType, Visibility


class TaskCreate(BaseModel):
    """Request to create a task."""
    title: str = Field(..., min_length=1, max_length=255)
    description: str | None = Field(None, max_length=2000)
    task_type: TaskType = TaskType.TASK
    priority: TaskPriority = TaskPriority.MEDIUM
    status: TaskStatus = TaskStatus.PENDING
    due_date: datetime | None = None
    contact_id: UUID | None = None
    deal_id: UUID | None = None
    assigned_to_id: UUID | None = None
    owner_id: UUID | None = None
    visibility: Visibility = Visibility.ORG
    visible_to: list[UUID] | None = None


class TaskUpdate(BaseModel):
    """Request to update a task (partial)."""
    title: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = Field(None, max_length=2000)
    task_type: TaskType | None = None
    priority: TaskPriority | None = None
    status: TaskStatus | None = None
    due_date: datetime | None = None
    contact_id: UUID | None = None
    deal_id: UUID | None = None
    assigned_to_id: UUID | None = None
    owner_id: UUID | None = None
    visibility: Visibility | None = None
    visible_to: list[UUID] | None = None


class TaskRead(BaseModel):
    """Full task response."""
    id: UUID
    title: str
    description: str | None
    task_type: str
    priority: str
    status: str
    due_date: datetime | None
    completed_at: datetime | None
    contact_id: UUID | None
    deal_id: UUID | None
    assigned_to_id: UUID | None
    assigned_to_name: str | None = None
    owner_id: UUID | None
    visibility: str
    visible_to: list[UUID] = []
    created_by_user_id: UUID | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class TaskCounts(BaseModel):
    """Bucket sizes shown on the task list tabs."""
    today: int
    upcoming: int
    overdue: int
    completed: int


class TaskListResponse(BaseModel):
    """Paginated task list."""
    items: list[TaskRead]
    total: int
    page: int
    per_page: int
    pages: int
    counts: TaskCounts
