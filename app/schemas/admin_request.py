"""Admin request schemas for the dual-control workflow."""

from typing import Optional

from pydantic import Field

from .base import BaseModelSchema, BaseSchema


class DemotionRequestCreate(BaseSchema):
    target_user_id: str = Field(..., min_length=1)
    org_id: Optional[str] = Field(None, description="Must match the active organization")


class OrgDeletionRequestCreate(BaseSchema):
    org_id: Optional[str] = Field(None, description="Must match the active organization")


class PromoteMemberRequest(BaseSchema):
    target_user_id: str = Field(..., min_length=1)
    org_id: Optional[str] = Field(None, description="Must match the active organization")


class AdminRequestResponse(BaseModelSchema):
    target_user_id: Optional[str] = None
    requester_user_id: str
    org_id: str
    type: str
    status: str
