"""Notification service: addressed in-app messages with live delivery."""

import enum
import logging
from collections.abc import Iterable
from typing import Any

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions.notification import NotificationNotFoundError
from app.schemas.notification import NotificationResponse
from app.services.realtime import RealtimeBus, RealtimeEvent, user_room
from app.shared.identifiers import parse_uuid
from models.notification import Notification

logger = logging.getLogger(__name__)


class NotificationType(str, enum.Enum):
    """Tags used for notifications created by the application."""

    INFO = "INFO"
    TASK_ASSIGN = "TASK_ASSIGN"
    TASK_INVITE = "TASK_INVITE"
    TASK_APPROVED = "TASK_APPROVED"
    TASK_REJECTED = "TASK_REJECTED"
    TASK_AUTO_DELETED = "TASK_AUTO_DELETED"
    PROJECT_ADD = "PROJECT_ADD"


class NotificationService:
    """Service for creating and managing notifications.

    Notifications are committed first and pushed to the recipient's
    ``user_{id}`` room afterwards; a failed push never undoes the write.
    """

    def __init__(self, db: AsyncSession, bus: RealtimeBus):
        """Initialize notification service.

        Args:
            db: Async database session
            bus: Real-time bus used to push new notifications
        """
        self.db = db
        self.bus = bus

    async def create_notification(
        self,
        user_id: str,
        message: str,
        type: str = NotificationType.INFO.value,
        project_id: Any = None,
        metadata: dict | None = None,
    ) -> Notification:
        """Create one notification and push it to the recipient."""
        notifications = await self.notify_many([user_id], message, type, project_id, metadata)
        return notifications[0]

    async def notify_many(
        self,
        user_ids: Iterable[str],
        message: str,
        type: str = NotificationType.INFO.value,
        project_id: Any = None,
        metadata: dict | None = None,
    ) -> list[Notification]:
        """Create the same notification for every distinct recipient in one commit."""
        recipients = list(dict.fromkeys(uid for uid in user_ids if uid))
        if not recipients:
            return []
        type_value = type.value if isinstance(type, NotificationType) else type

        notifications = [
            Notification(
                user_id=uid,
                message=message,
                type=type_value,
                project_id=str(project_id) if project_id is not None else None,
                metadata_=dict(metadata) if metadata else None,
            )
            for uid in recipients
        ]
        self.db.add_all(notifications)
        await self.db.commit()

        for notification in notifications:
            await self.push(notification)

        logger.info(f"🔔 Created {len(notifications)} notification(s) of type {type_value}")
        return notifications

    async def push(self, notification: Notification) -> None:
        payload = NotificationResponse.model_validate(notification).model_dump()
        await self.bus.publish(
            user_room(notification.user_id), RealtimeEvent.NOTIFICATION_NEW, payload
        )

    async def list_for_user(self, user_id: str) -> list[Notification]:
        """Newest first."""
        result = await self.db.execute(
            select(Notification)
            .where(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc())
        )
        return list(result.scalars().all())

    async def mark_all_read(self, user_id: str) -> int:
        result = await self.db.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.read.is_(False))
            .values(read=True)
        )
        await self.db.commit()
        return result.rowcount or 0

    async def mark_read(self, notification_id: Any, user_id: str) -> Notification:
        notification = await self.get_for_recipient(notification_id, user_id)
        notification.read = True
        await self.db.commit()
        return notification

    async def dismiss(self, notification_id: Any, user_id: str) -> None:
        """Delete a notification. Only its recipient may do so."""
        notification = await self.get_for_recipient(notification_id, user_id)
        await self.db.delete(notification)
        await self.db.commit()

    async def get_for_recipient(self, notification_id: Any, user_id: str) -> Notification:
        # Someone else's notification is reported exactly like a missing one
        notification = await self.db.get(
            Notification, parse_uuid(notification_id, NotificationNotFoundError)
        )
        if not notification or notification.user_id != user_id:
            raise NotificationNotFoundError()
        return notification

    async def delete_for_task(self, task_id: Any) -> int:
        """Remove pending invites that point at a task which no longer exists."""
        result = await self.db.execute(
            select(Notification.id, Notification.metadata_).where(
                Notification.type == NotificationType.TASK_INVITE.value
            )
        )
        stale_ids = [
            row.id
            for row in result.all()
            if (row.metadata_ or {}).get("task_id") == str(task_id)
        ]
        if not stale_ids:
            return 0
        await self.db.execute(delete(Notification).where(Notification.id.in_(stale_ids)))
        return len(stale_ids)
