"""Task schemas for request/response serialization."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from uuid import UUID

from pydantic import Field, field_validator

from .base import BaseModelSchema, BaseSchema


class TaskStatus(str, Enum):
    """Task workflow states."""

    TODO = "To Do"
    IN_PROGRESS = "In Progress"
    DONE = "Done"


class TaskPriority(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class TaskType(str, Enum):
    TASK = "TASK"
    BUG = "BUG"
    FEATURE = "FEATURE"
    IMPROVEMENT = "IMPROVEMENT"
    DESIGN = "DESIGN"
    CONTENT_WRITING = "CONTENT_WRITING"
    SOCIAL_MEDIA = "SOCIAL_MEDIA"
    OTHER = "OTHER"


class CommentKind(str, Enum):
    COMMENT = "comment"
    APPROVAL = "approval"
    REJECTION = "rejection"


class AttachmentSchema(BaseSchema):
    """One file attached to a task."""

    name: str = Field(..., min_length=1, max_length=500)
    url: str = Field(..., min_length=1, max_length=2000)
    type: str | None = None
    uploaded_at: datetime | None = None


class CommentSchema(BaseSchema):
    author_id: str
    author_name: str | None = None
    text: str
    created_at: datetime | None = None
    kind: CommentKind = CommentKind.COMMENT


def _clean_title(v: str | None) -> str | None:
    if v is not None and isinstance(v, str):
        v = v.strip()
        if not v:
            raise ValueError("Title cannot be empty or only whitespace")
    return v


def _unique_ids(values: list[str] | None) -> list[str] | None:
    if values is None:
        return None
    return list(dict.fromkeys(v for v in values if v))


class TaskBase(BaseSchema):
    """Base task schema with common fields."""

    title: str = Field(..., min_length=1, max_length=500)
    description: str | None = None
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    type: TaskType = TaskType.TASK
    due_date: datetime | None = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        return _clean_title(v)


class TaskCreate(TaskBase):
    """Schema for creating a new task."""

    project_id: UUID
    assignees: list[str] = Field(default_factory=list)
    attachments: list[AttachmentSchema] = Field(default_factory=list)

    @field_validator("assignees")
    @classmethod
    def validate_assignees(cls, v: list[str]) -> list[str]:
        return _unique_ids(v)

    @field_validator("due_date")
    @classmethod
    def validate_due_date(cls, v: datetime | None) -> datetime | None:
        """Reject due dates before the start of today (UTC)."""
        if v is None:
            return v
        today = datetime.now(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
        compared = v if v.tzinfo else v.replace(tzinfo=timezone.utc)
        if compared < today:
            raise ValueError("Due date cannot be in the past")
        return v


class TaskUpdate(BaseSchema):
    """Schema for updating a task. Only the fields that are sent are applied."""

    title: str | None = Field(None, min_length=1, max_length=500)
    description: str | None = None
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    type: TaskType | None = None
    due_date: datetime | None = None
    assignees: list[str] | None = None
    attachments: list[AttachmentSchema] | None = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str | None) -> str | None:
        return _clean_title(v)

    @field_validator("assignees")
    @classmethod
    def validate_assignees(cls, v: list[str] | None) -> list[str] | None:
        return _unique_ids(v)


class TaskResponse(BaseModelSchema):
    """Schema for task response."""

    project_id: UUID
    title: str
    description: str | None = None
    status: TaskStatus
    priority: TaskPriority
    type: TaskType
    due_date: datetime | None = None
    assignees: list[str] = []
    attachments: list[AttachmentSchema] = []
    comments: list[CommentSchema] = []
    is_approved: bool = False
    approved_at: datetime | None = None


class TaskReviewRequest(BaseSchema):
    """Body of an approve or disapprove call."""

    comment: str | None = Field(None, max_length=2000)


class TaskInviteRequest(BaseSchema):
    user_id: str = Field(..., min_length=1)


class InviteAction(str, Enum):
    ACCEPT = "ACCEPT"
    DECLINE = "DECLINE"


class InviteResponseRequest(BaseSchema):
    action: InviteAction

    @field_validator("action", mode="before")
    @classmethod
    def normalize_action(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v


class SweepReportResponse(BaseSchema):
    deleted: list[UUID] = []
    failed: list[UUID] = []
