"""Task invites: a request/response handshake carried by notifications."""

import logging
from typing import Any

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.roles import Actor
from app.domains.activity.service import ActivityService
from app.domains.project.policy import is_task_in_scope
from app.exceptions.notification import NotificationNotFoundError
from app.exceptions.task import AlreadyAssignedError, TaskNotFoundError, TaskPermissionError
from app.schemas.task import InviteAction, TaskResponse
from app.services.notification_service import NotificationService, NotificationType
from app.services.realtime import RealtimeBus, RealtimeEvent, project_room
from app.shared.identifiers import parse_uuid
from models.activity import ActivityType
from models.notification import Notification
from models.project import Project
from models.task import Task

logger = logging.getLogger(__name__)


class InviteService:
    """Invite a user to help on a task and handle their answer.

    The invite notification is single-use: answering deletes it, and a second
    answer to the same invite fails with ``NotificationNotFoundError``.
    """

    def __init__(self, db: AsyncSession, bus: RealtimeBus):
        self.db = db
        self.bus = bus
        self.notifications = NotificationService(db, bus)
        self.activities = ActivityService(db, bus)

    async def invite(self, task_id: Any, target_user_id: str, actor: Actor) -> Notification:
        task = await self.db.get(Task, parse_uuid(task_id, TaskNotFoundError))
        if not task:
            raise TaskNotFoundError()
        project = await self.db.get(Project, task.project_id)
        if not project or not is_task_in_scope(task, project, actor):
            raise TaskNotFoundError()

        if actor.user_id not in (task.assignees or []) and not actor.is_admin:
            raise TaskPermissionError("Only assignees can invite others.")
        if target_user_id in (task.assignees or []):
            raise AlreadyAssignedError()

        notification = await self.notifications.create_notification(
            target_user_id,
            f'Help Request: Please help with task "{task.title}"',
            NotificationType.TASK_INVITE,
            project_id=task.project_id,
            metadata={"task_id": str(task.id), "sender_id": actor.user_id},
        )
        logger.info(f"📨 {actor.user_id} invited {target_user_id} to task {task.id}")
        return notification

    async def respond(self, notification_id: Any, action: InviteAction, actor: Actor) -> Task | None:
        """Accept or decline an invite addressed to ``actor``.

        Returns the task when the invite was accepted and the task still exists.
        """
        notification = await self.notifications.get_for_recipient(notification_id, actor.user_id)
        if notification.type != NotificationType.TASK_INVITE.value:
            raise NotificationNotFoundError("Invitation not found")

        metadata = dict(notification.metadata_ or {})
        project_id = notification.project_id
        task_id = metadata.get("task_id")
        sender_id = metadata.get("sender_id")

        # Claim the invite. Only the response that actually deletes the row proceeds.
        result = await self.db.execute(
            delete(Notification)
            .where(Notification.id == notification.id)
            .execution_options(synchronize_session=False)
        )
        if not result.rowcount:
            await self.db.rollback()
            raise NotificationNotFoundError()
        self.db.expunge(notification)

        task = None
        activity = None
        if action == InviteAction.ACCEPT and task_id:
            task = await self.db.get(Task, parse_uuid(task_id, TaskNotFoundError))
            if task and actor.user_id not in (task.assignees or []):
                task.assignees = list(task.assignees or []) + [actor.user_id]
                activity = await self.activities.build_entry(
                    task, actor.user_id, ActivityType.ASSIGNMENT, "joined the task from an invite"
                )
        await self.db.commit()

        if task is not None:
            if activity is not None:
                await self.activities.announce(activity, task.project_id)
            await self.bus.publish(
                project_room(task.project_id),
                RealtimeEvent.TASK_UPDATED,
                TaskResponse.model_validate(task).model_dump(),
            )

        if sender_id:
            if action == InviteAction.ACCEPT:
                message = "Accepted: User has joined task"
            else:
                message = "Declined: User cannot help with task"
            await self.notifications.create_notification(
                sender_id,
                message,
                NotificationType.INFO,
                project_id=project_id,
                metadata={"task_id": task_id} if task_id else None,
            )

        logger.info(f"Invite {notification_id} {action.value.lower()} by {actor.user_id}")
        return task
