"""
A module defining the ``Task`` ORM model representing a unit of work.

Tasks belong to a project. Assignees are Clerk user ids stored as a JSON list
with set semantics; attachments and review comments are JSON sequences of
plain dictionaries so they can be replaced wholesale on update.

Attachment entries look like::

    {"name": "spec.pdf", "url": "https://...", "type": "application/pdf",
     "uploaded_at": "2026-01-01T10:00:00"}

Comment entries look like::

    {"author_id": "user_1", "author_name": "Ada", "text": "Looks good",
     "created_at": "2026-01-01T10:00:00", "kind": "approval"}
"""

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, String, Text

from .base import UUID, BaseModel


class Task(BaseModel):
    __tablename__ = "tasks"

    project_id = Column(UUID(), ForeignKey("projects.id"), nullable=False, index=True)

    title = Column(String(500), nullable=False)
    description = Column(Text)
    status = Column(String(20), nullable=False, default="To Do")  # To Do, In Progress, Done
    priority = Column(String(10), nullable=False, default="MEDIUM")  # HIGH, MEDIUM, LOW
    type = Column(String(30), nullable=False, default="TASK")
    due_date = Column(DateTime)

    assignees = Column(JSON, nullable=False, default=list)
    attachments = Column(JSON, nullable=False, default=list)
    comments = Column(JSON, nullable=False, default=list)

    is_approved = Column(Boolean, nullable=False, default=False)
    approved_at = Column(DateTime, index=True)
