"""
Notification model for addressed, in-app messages.
"""

from sqlalchemy import JSON, Boolean, Column, String, Text

from .base import BaseModel


class Notification(BaseModel):
    """
    Represents a message addressed to a single user.

    ``type`` is a free-form tag such as ``TASK_ASSIGN``, ``TASK_INVITE`` or
    ``INFO``. Invite notifications carry ``{"task_id", "sender_id"}`` in
    ``metadata_``.
    """

    __tablename__ = "notifications"

    user_id = Column(String(255), nullable=False, index=True)
    message = Column(Text, nullable=False)
    type = Column(String(50), nullable=False, default="INFO")
    project_id = Column(String(64))
    read = Column(Boolean, nullable=False, default=False)
    metadata_ = Column("metadata", JSON)
