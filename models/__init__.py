"""
Models package initialization.
"""

from .activity import Activity, ActivityType
from .admin_request import AdminRequest, AdminRequestStatus, AdminRequestType
from .base import Base, BaseModel
from .notification import Notification
from .project import Project
from .project_event import ProjectEvent
from .task import Task
from .user import User

__all__ = [
    "Base",
    "BaseModel",
    "User",
    "Project",
    "ProjectEvent",
    "Task",
    "Activity",
    "ActivityType",
    "Notification",
    "AdminRequest",
    "AdminRequestStatus",
    "AdminRequestType",
]
