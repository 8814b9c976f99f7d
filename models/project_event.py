"""
Project event model for scheduled meetings attached to a project.
"""

from sqlalchemy import Column, DateTime, ForeignKey, String, Text

from .base import UUID, BaseModel


class ProjectEvent(BaseModel):
    """
    Represents a meeting (e.g. a video call) scheduled on a project.
    """

    __tablename__ = "project_events"

    project_id = Column(UUID(), ForeignKey("projects.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text)
    meet_link = Column(String(1000))
    start_date = Column(DateTime, nullable=False)
    created_by = Column(String(255), nullable=False)
