"""
Project model for organizing tasks.

A project without an ``org_id`` is a personal workspace visible only to its
owner. Member identities are Clerk user ids kept in a JSON list with set
semantics enforced by the service layer.
"""

from sqlalchemy import JSON, Column, DateTime, String, Text

from .base import BaseModel


class Project(BaseModel):
    """
    Represents a project entity in the application.
    """

    __tablename__ = "projects"

    title = Column(String(255), nullable=False)
    description = Column(Text, default="No Description")
    status = Column(String(20), nullable=False, default="ACTIVE")
    priority = Column(String(10), nullable=False, default="MEDIUM")
    start_date = Column(DateTime)
    due_date = Column(DateTime)

    owner_id = Column(String(255), nullable=False, index=True)
    org_id = Column(String(255), index=True)
    members = Column(JSON, nullable=False, default=list)
