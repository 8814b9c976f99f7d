# ruff: noqa: F403, F401
"""Schemas package initialization."""

# Import all schemas to ensure they're registered
from .activity import *
from .admin_request import *
from .base import *
from .notification import *
from .project import *
from .task import *
from .user import *
