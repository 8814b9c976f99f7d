"""User-related Pydantic schemas for request/response validation."""

from typing import Optional

from pydantic import Field, field_validator

from .base import BaseModelSchema, BaseSchema

MIRRORED_ROLES = ("admin", "member", "viewer")


class UserResponse(BaseModelSchema):
    """Schema for a mirrored user."""

    clerk_id: str
    email: str
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    photo: Optional[str] = None
    role: str


class UserRoleUpdateRequest(BaseSchema):
    """Schema for changing a user's mirrored global role."""

    role: str = Field(..., description="One of admin, member or viewer")

    @field_validator("role")
    @classmethod
    def validate_role(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in MIRRORED_ROLES:
            raise ValueError(f"Role must be one of: {', '.join(MIRRORED_ROLES)}")
        return v
