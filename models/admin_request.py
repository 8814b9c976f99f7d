"""
AdminRequest model for dual-control organization actions.

A row exists only while the request is pending. Approving or rejecting a
request deletes the row.
"""

import enum

from sqlalchemy import Column, String

from .base import BaseModel


class AdminRequestType(str, enum.Enum):
    DEMOTE_ADMIN = "DEMOTE_ADMIN"
    DELETE_ORG = "DELETE_ORG"


class AdminRequestStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"


class AdminRequest(BaseModel):
    __tablename__ = "admin_requests"

    target_user_id = Column(String(255))  # None for organization-level actions
    requester_user_id = Column(String(255), nullable=False)
    org_id = Column(String(255), nullable=False, index=True)
    type = Column(String(20), nullable=False, default=AdminRequestType.DEMOTE_ADMIN.value)
    status = Column(String(20), nullable=False, default=AdminRequestStatus.PENDING.value)
