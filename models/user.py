"""
Provides the User model for the application's database schema.

The User model is a local mirror of an identity-provider (Clerk) account. It is
kept in sync by the webhook layer and is never the source of truth for
membership: roles stored here are a convenience copy of what Clerk reports.

Attributes
----------
clerk_id : sqlalchemy.Column
    Identifier of the user at Clerk (``user_...``). Unique.
email : sqlalchemy.Column
    Primary email address of the user. Unique.
username, first_name, last_name, photo : sqlalchemy.Column
    Profile fields copied from Clerk.
role : sqlalchemy.Column
    Mirrored global role (``admin``, ``member`` or ``viewer``).
"""

from sqlalchemy import Column, String

from .base import BaseModel


class User(BaseModel):
    """
    Represents a mirrored identity-provider user.

    :ivar clerk_id: Unique identifier for the user provided by Clerk.
    :type clerk_id: str
    :ivar email: Email address of the user. It must be unique.
    :type email: str
    :ivar role: Mirrored global role of the user.
    :type role: str
    """

    __tablename__ = "users"

    clerk_id = Column(String(255), unique=True, nullable=False, index=True)
    email = Column(String(255), nullable=False, unique=True)
    username = Column(String(100))
    first_name = Column(String(100))
    last_name = Column(String(100))
    photo = Column(String(1000))
    role = Column(String(20), nullable=False, default="member")

    @property
    def display_name(self) -> str:
        full_name = " ".join(part for part in (self.first_name, self.last_name) if part)
        return full_name or self.username or self.email
