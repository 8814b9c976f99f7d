# app/domains/user/service.py
import logging
from collections.abc import Iterable
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions.base import NotFoundError
from models import User

logger = logging.getLogger(__name__)


class UserService:
    """Reads and writes the local mirror of identity-provider users."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user_by_clerk_id(self, clerk_id: str) -> Optional[User]:
        """Get a user by Clerk user ID."""
        result = await self.db.execute(select(User).where(User.clerk_id == clerk_id))
        return result.scalar_one_or_none()

    async def get_user_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def get_users_by_clerk_ids(self, clerk_ids: Iterable[str]) -> list[User]:
        ids = [cid for cid in clerk_ids if cid]
        if not ids:
            return []
        result = await self.db.execute(select(User).where(User.clerk_id.in_(ids)))
        return list(result.scalars().all())

    async def list_users(self) -> list[User]:
        result = await self.db.execute(select(User).order_by(User.created_at.desc()))
        return list(result.scalars().all())

    async def create_user(
        self,
        clerk_id: str,
        email: str,
        username: str | None = None,
        first_name: str | None = None,
        last_name: str | None = None,
        photo: str | None = None,
    ) -> Optional[User]:
        """Create a mirrored user.

        A uniqueness conflict means the user is already mirrored (the same
        event was delivered twice) and is not an error; the existing row is
        returned instead.
        """
        user = User(
            clerk_id=clerk_id,
            email=email,
            username=username,
            first_name=first_name,
            last_name=last_name,
            photo=photo,
        )

        try:
            self.db.add(user)
            await self.db.commit()
            await self.db.refresh(user)
            return user
        except IntegrityError:
            await self.db.rollback()
            logger.info(f"User {clerk_id} already mirrored; treating create as a no-op")
            return await self.get_user_by_clerk_id(clerk_id)
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise e

    async def update_user(self, clerk_id: str, **fields) -> Optional[User]:
        """Patch the mirror with the fields provided. Unknown users are ignored."""
        user = await self.get_user_by_clerk_id(clerk_id)
        if not user:
            return None

        try:
            for field, value in fields.items():
                if value is not None:
                    setattr(user, field, value)
            await self.db.commit()
            await self.db.refresh(user)
            return user
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise e

    async def set_role(self, clerk_id: str, role: str, *, must_exist: bool = False) -> Optional[User]:
        """Set the mirrored global role of a user."""
        user = await self.get_user_by_clerk_id(clerk_id)
        if not user:
            if must_exist:
                raise NotFoundError("User not found")
            logger.warning(f"Role change for unmirrored user {clerk_id} ignored")
            return None

        user.role = role
        await self.db.commit()
        return user

    async def delete_user(self, clerk_id: str) -> bool:
        """Delete the mirrored user."""
        user = await self.get_user_by_clerk_id(clerk_id)
        if not user:
            return False

        try:
            await self.db.delete(user)
            await self.db.commit()
            return True
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise e
