"""Task-related enums."""

from enum import Enum


class TaskType(str, Enum):
    """Types of tasks."""

    TASK = "task"
    CALL = "call"
    EMAIL = "email"
    MEETING = "meeting"
    FOLLOW_UP = "follow_up"


class TaskStatus(str, Enum):
    PENDING = "pending"  # Awaiting action
    IN_PROGRESS = "in_progress"  # Work started
    COMPLETED = "completed"


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
