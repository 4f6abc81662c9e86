"""Pydantic schemas for task API request validation.

Field names are snake_case in Python and camelCase on the wire
(`populate_by_name` accepts either on input).
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class TaskStatus(str, Enum):
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    EXPIRED = "expired"
    CLOSED = "closed"


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


# Columns accepted by GET /tasks/sort, keyed by wire name
SORTABLE_FIELDS: dict[str, str] = {
    "title": "title",
    "status": "status",
    "priority": "priority",
    "dueDate": "due_date",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
    "progress": "progress",
}


class WireModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


# ---------------------------------------------------------------------------
# Task request models
# ---------------------------------------------------------------------------

class TaskCreate(WireModel):
    title: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1)
    status: TaskStatus = TaskStatus.IN_PROGRESS
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: datetime
    assigned_to: Optional[str] = None
    participants: list[str] = Field(default_factory=list)


class TaskUpdate(WireModel):
    title: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    due_date: Optional[datetime] = None
    assigned_to: Optional[str] = None


class StatusUpdate(WireModel):
    status: TaskStatus


class UserRef(WireModel):
    user_id: str = Field(..., min_length=1)


# ---------------------------------------------------------------------------
# Subtask / comment request models
# ---------------------------------------------------------------------------

class SubTaskCreate(WireModel):
    title: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    status: TaskStatus = TaskStatus.IN_PROGRESS
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: datetime
    assigned_to: Optional[str] = None
    progress: int = Field(0, ge=0, le=100)


class SubTaskUpdate(WireModel):
    title: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    due_date: Optional[datetime] = None
    assigned_to: Optional[str] = None
    progress: Optional[int] = Field(None, ge=0, le=100)


class ProgressUpdate(WireModel):
    progress: int = Field(..., ge=0, le=100)


class CommentCreate(WireModel):
    text: str = Field(..., min_length=1)
    parent_comment_id: Optional[str] = None

