"""Project schemas for request/response serialization."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import EmailStr, Field, field_validator

from .base import BaseModelSchema, BaseSchema


class ProjectStatus(str, Enum):
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    ON_HOLD = "ON_HOLD"
    ARCHIVED = "ARCHIVED"


class ProjectPriority(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


def _clean_title(v: str | None) -> str | None:
    if v is not None and isinstance(v, str):
        v = v.strip()
        if not v:
            raise ValueError("Project title cannot be empty or only whitespace")
    return v


class ProjectBase(BaseSchema):
    """Base project schema with common fields."""

    title: str = Field(..., min_length=1, max_length=100)
    description: str | None = None
    status: ProjectStatus = ProjectStatus.ACTIVE
    priority: ProjectPriority = ProjectPriority.MEDIUM
    start_date: datetime | None = None
    due_date: datetime | None = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """Validate and clean the project title."""
        return _clean_title(v)


class ProjectCreate(ProjectBase):
    """Schema for creating a new project."""


class ProjectUpdate(BaseSchema):
    """Schema for updating project settings."""

    title: str | None = Field(None, min_length=1, max_length=100)
    description: str | None = None
    status: ProjectStatus | None = None
    priority: ProjectPriority | None = None
    start_date: datetime | None = None
    due_date: datetime | None = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str | None) -> str | None:
        return _clean_title(v)


class ProjectResponse(BaseModelSchema):
    """Schema for project response."""

    title: str
    description: str | None = None
    status: str
    priority: str
    start_date: datetime | None = None
    due_date: datetime | None = None
    owner_id: str
    org_id: str | None = None
    members: list[str] = []


class ProjectMemberAdd(BaseSchema):
    email: EmailStr


class ProjectMemberRemove(BaseSchema):
    user_id: str = Field(..., min_length=1)


class ProjectMemberResponse(BaseSchema):
    clerk_id: str
    email: str
    username: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    photo: str | None = None
    role: str


class ProjectEventCreate(BaseSchema):
    title: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    meet_link: str | None = Field(None, max_length=1000)
    start_date: datetime

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        return _clean_title(v)


class ProjectEventResponse(BaseModelSchema):
    project_id: UUID
    title: str
    description: str | None = None
    meet_link: str | None = None
    start_date: datetime
    created_by: str
