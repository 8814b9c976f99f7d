"""Activity ledger: the append-only history of each task."""

import logging
from collections.abc import Iterable
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.roles import Actor
from app.schemas.activity import ActivityCreate, ActivityKind, ActivityResponse
from app.schemas.task import TaskResponse
from app.services.realtime import RealtimeBus, RealtimeEvent, project_room
from models.activity import Activity, ActivityType
from models.base import utcnow
from models.task import Task
from models.user import User

logger = logging.getLogger(__name__)


class ActivityService:
    """Writes and reads activity entries.

    Entries are never updated. The author's name and photo are copied onto
    the entry when it is written, so later profile changes do not rewrite
    history.
    """

    def __init__(self, db: AsyncSession, bus: RealtimeBus):
        self.db = db
        self.bus = bus

    async def build_entry(
        self,
        task: Task,
        user_id: str,
        type: ActivityType,
        content: str,
        metadata: dict | None = None,
    ) -> Activity:
        """Add an entry to the session without committing it."""
        user_name, user_photo = await self._author_snapshot(user_id)
        activity = Activity(
            task_id=task.id,
            user_id=user_id,
            user_name=user_name,
            user_photo=user_photo,
            type=type.value,
            content=content,
            metadata_=metadata,
        )
        self.db.add(activity)
        return activity

    async def announce(self, activity: Activity, project_id: Any) -> None:
        await self.bus.publish(
            project_room(project_id),
            RealtimeEvent.ACTIVITY_CREATED,
            ActivityResponse.model_validate(activity).model_dump(),
        )

    async def post(self, task: Task, actor: Actor, data: ActivityCreate) -> Activity:
        """Record a comment or an upload made by ``actor`` on ``task``.

        An upload also becomes one of the task's attachments.
        """
        metadata = None
        if data.type == ActivityKind.UPLOAD:
            metadata = data.file.model_dump()
            task.attachments = list(task.attachments or []) + [
                {
                    "name": data.file.file_name,
                    "url": data.file.file_url,
                    "type": data.file.file_type,
                    "uploaded_at": utcnow().isoformat(),
                }
            ]

        activity = await self.build_entry(
            task, actor.user_id, ActivityType(data.type.value), data.content, metadata
        )
        await self.db.commit()

        await self.announce(activity, task.project_id)
        if data.type == ActivityKind.UPLOAD:
            await self.bus.publish(
                project_room(task.project_id),
                RealtimeEvent.TASK_UPDATED,
                TaskResponse.model_validate(task).model_dump(),
            )

        logger.info(f"Activity {data.type.value} recorded on task {task.id} by {actor.user_id}")
        return activity

    async def list_for_task(self, task_id: Any) -> list[Activity]:
        """Newest first."""
        result = await self.db.execute(
            select(Activity)
            .where(Activity.task_id == task_id)
            .order_by(Activity.created_at.desc())
        )
        return list(result.scalars().all())

    async def list_for_tasks(self, task_ids: Iterable[Any]) -> list[Activity]:
        ids = list(task_ids)
        if not ids:
            return []
        result = await self.db.execute(select(Activity).where(Activity.task_id.in_(ids)))
        return list(result.scalars().all())

    async def delete_for_tasks(self, task_ids: Iterable[Any]) -> int:
        """Delete every entry of the given tasks. The caller commits."""
        ids = list(task_ids)
        if not ids:
            return 0
        result = await self.db.execute(delete(Activity).where(Activity.task_id.in_(ids)))
        return result.rowcount or 0

    async def _author_snapshot(self, user_id: str) -> tuple[str, str | None]:
        result = await self.db.execute(select(User).where(User.clerk_id == user_id))
        user = result.scalar_one_or_none()
        if not user:
            return "Unknown User", None
        return user.display_name, user.photo
