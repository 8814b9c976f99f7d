"""Activity schemas for request/response serialization."""

from __future__ import annotations

from enum import Enum
from uuid import UUID

from pydantic import Field, field_validator, model_validator

from .base import BaseModelSchema, BaseSchema


class ActivityKind(str, Enum):
    """Activity kinds a user may post directly."""

    COMMENT = "COMMENT"
    UPLOAD = "UPLOAD"


class ActivityFile(BaseSchema):
    file_name: str = Field(..., min_length=1, max_length=500)
    file_url: str = Field(..., min_length=1, max_length=2000)
    file_type: str | None = None


class ActivityCreate(BaseSchema):
    """Schema for posting a comment or an upload to a task."""

    type: ActivityKind = ActivityKind.COMMENT
    content: str = Field(..., min_length=1, max_length=5000)
    file: ActivityFile | None = None

    @field_validator("content")
    @classmethod
    def validate_content(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Content cannot be empty or only whitespace")
        return v

    @model_validator(mode="after")
    def check_upload_has_file(self):
        if self.type == ActivityKind.UPLOAD and self.file is None:
            raise ValueError("Upload activities require a file")
        return self


class ActivityResponse(BaseModelSchema):
    task_id: UUID
    user_id: str
    user_name: str | None = None
    user_photo: str | None = None
    type: str
    content: str
    metadata: dict | None = Field(None, validation_alias="metadata_")
