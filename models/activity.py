"""
Activity model: the append-only per-task event ledger.

``user_name`` and ``user_photo`` are snapshots taken when the record is
written and are never updated afterwards. ``task_id`` is deliberately not a
foreign key; removing a task's activity is done by the task service.
"""

import enum

from sqlalchemy import JSON, Column, String, Text

from .base import UUID, BaseModel


class ActivityType(str, enum.Enum):
    """Activity kind enumeration."""

    COMMENT = "COMMENT"
    UPLOAD = "UPLOAD"
    STATUS_CHANGE = "STATUS_CHANGE"
    PRIORITY_CHANGE = "PRIORITY_CHANGE"
    ASSIGNMENT = "ASSIGNMENT"


class Activity(BaseModel):
    """
    Represents one entry in a task's activity history.
    """

    __tablename__ = "activities"

    task_id = Column(UUID(), nullable=False, index=True)
    user_id = Column(String(255), nullable=False)
    user_name = Column(String(255))
    user_photo = Column(String(1000))
    type = Column(String(30), nullable=False)
    content = Column(Text, nullable=False)
    # {"file_name": ..., "file_url": ..., "file_type": ...} for uploads
    metadata_ = Column("metadata", JSON)
