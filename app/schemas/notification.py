"""Notification schemas for request/response serialization."""

from __future__ import annotations

from pydantic import Field

from .base import BaseModelSchema


class NotificationResponse(BaseModelSchema):
    user_id: str
    message: str
    type: str
    project_id: str | None = None
    read: bool = False
    metadata: dict | None = Field(None, validation_alias="metadata_")
