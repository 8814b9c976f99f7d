"""Task service layer: lifecycle, approval workflow and cascading deletes."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

from sqlalchemy import String, cast, delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.roles import Actor
from app.domains.activity.service import ActivityService
from app.domains.project.policy import is_project_visible, is_task_in_scope
from app.domains.user.service import UserService
from app.exceptions.base import AppPermissionError, InternalServerError
from app.exceptions.project import ProjectNotFoundError
from app.exceptions.task import (
    InvalidTaskOperationError,
    TaskNotFoundError,
    TaskPermissionError,
)
from app.schemas.task import CommentKind, TaskCreate, TaskResponse, TaskStatus, TaskUpdate
from app.services.attachment_service import AttachmentLifecycleManager
from app.services.background import BackgroundDispatcher
from app.services.email_service import EmailService
from app.services.notification_service import NotificationService, NotificationType
from app.services.realtime import RealtimeBus, RealtimeEvent, project_room
from app.shared.identifiers import parse_uuid
from models.activity import ActivityType
from models.base import to_naive_utc, utcnow
from models.project import Project
from models.task import Task

logger = logging.getLogger(__name__)

# Fields an assignee without an admin role may change
ASSIGNEE_EDITABLE_FIELDS = frozenset({"status", "attachments"})


@dataclass
class SweepReport:
    """Outcome of one expiry sweep."""

    cutoff: datetime
    deleted: list[UUID] = field(default_factory=list)
    failed: list[UUID] = field(default_factory=list)


def _normalize_attachments(attachments: Iterable[Any]) -> list[dict]:
    normalized = []
    for attachment in attachments:
        entry = attachment.model_dump(mode="json") if hasattr(attachment, "model_dump") else dict(attachment)
        if not entry.get("uploaded_at"):
            entry["uploaded_at"] = utcnow().isoformat()
        normalized.append(entry)
    return normalized


class TaskService:
    """Service class for task business logic."""

    def __init__(
        self,
        db: AsyncSession,
        bus: RealtimeBus,
        attachments: AttachmentLifecycleManager,
        dispatcher: BackgroundDispatcher | None = None,
        email_service: EmailService | None = None,
    ):
        self.db = db
        self.bus = bus
        self.attachments = attachments
        self.dispatcher = dispatcher
        self.email_service = email_service
        self.notifications = NotificationService(db, bus)
        self.activities = ActivityService(db, bus)
        self.users = UserService(db)

    # ----- reads -----

    async def get_task(self, task_id: Any, actor: Actor) -> Task:
        """Get a task the actor may work on (admins and assignees only)."""
        task = await self._get_scoped_task_or_404(task_id, actor)
        self._ensure_can_work_on(task, actor)
        return task

    async def list_project_tasks(self, project_id: Any, actor: Actor) -> list[Task]:
        """Tasks of a visible project, newest first."""
        project = await self._get_project_or_404(project_id)
        if not is_project_visible(project, actor):
            raise ProjectNotFoundError()

        result = await self.db.execute(
            select(Task).where(Task.project_id == project.id).order_by(Task.created_at.desc())
        )
        return list(result.scalars().all())

    async def list_user_tasks(self, user_id: str, actor: Actor) -> list[Task]:
        """Tasks assigned to ``user_id``. Users may list their own; admins anyone's
        within their active organization."""
        stmt = select(Task)
        if user_id != actor.user_id:
            if not actor.is_admin or not actor.org_id:
                raise AppPermissionError("You can only list your own tasks")
            stmt = stmt.join(Project, Project.id == Task.project_id).where(
                Project.org_id == actor.org_id
            )

        # Coarse text match on the JSON list, then an exact check
        result = await self.db.execute(
            stmt.where(cast(Task.assignees, String).like(f'%"{user_id}"%'))
            .order_by(Task.created_at.desc())
        )
        return [task for task in result.scalars().all() if user_id in (task.assignees or [])]

    # ----- mutations -----

    async def create_task(self, task_data: TaskCreate, actor: Actor) -> Task:
        """Create a task, then notify and email its assignees (except the creator)."""
        project = await self._get_project_or_404(task_data.project_id)
        if not is_project_visible(project, actor):
            raise ProjectNotFoundError()

        task = Task(
            project_id=project.id,
            title=task_data.title,
            description=task_data.description,
            status=task_data.status.value,
            priority=task_data.priority.value,
            type=task_data.type.value,
            due_date=to_naive_utc(task_data.due_date) if task_data.due_date else None,
            assignees=list(task_data.assignees),
            attachments=_normalize_attachments(task_data.attachments),
            comments=[],
            is_approved=False,
        )

        try:
            self.db.add(task)
            await self.db.commit()
            await self.db.refresh(task)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"❌ Failed to create task: {str(e)}")
            raise InternalServerError("Failed to create task") from e

        await self._broadcast(task, RealtimeEvent.TASK_CREATED)

        recipients = [uid for uid in task.assignees if uid != actor.user_id]
        if recipients:
            await self.notifications.notify_many(
                recipients,
                f'You have been assigned to task: "{task.title}"',
                NotificationType.TASK_ASSIGN,
                project_id=task.project_id,
                metadata={"task_id": str(task.id)},
            )
            await self._email_assignees(task, recipients)

        logger.info(f"✅ Task {task.id} created by {actor.user_id}")
        return task

    async def update_task(self, task_id: Any, task_data: TaskUpdate, actor: Actor) -> Task:
        """Apply a partial update.

        Assignees without an admin role may only change status and attachments;
        other fields they send are ignored. Removed attachments are deleted from
        storage before the new list is saved.
        """
        task = await self._get_scoped_task_or_404(task_id, actor)
        self._ensure_can_work_on(task, actor)

        changes = task_data.model_dump(exclude_unset=True)
        if not actor.is_admin:
            ignored = set(changes) - ASSIGNEE_EDITABLE_FIELDS
            if ignored:
                logger.info(f"Ignoring fields {sorted(ignored)} sent by assignee {actor.user_id}")
            changes = {k: v for k, v in changes.items() if k in ASSIGNEE_EDITABLE_FIELDS}

        if not changes:
            return task

        # Rollback expires the instance; keep the id for logging
        pk = task.id
        old_status = task.status
        old_priority = task.priority

        if "attachments" in changes:
            new_attachments = _normalize_attachments(task_data.attachments or [])
            await self.attachments.purge_replaced(task.attachments, new_attachments)
            task.attachments = new_attachments

        for field_name in ("title", "description", "status", "priority", "type"):
            if field_name in changes and changes[field_name] is not None:
                value = changes[field_name]
                setattr(task, field_name, value.value if hasattr(value, "value") else value)
        if "due_date" in changes:
            task.due_date = to_naive_utc(changes["due_date"]) if changes["due_date"] else None
        if "assignees" in changes and changes["assignees"] is not None:
            task.assignees = list(changes["assignees"])

        status_changed = task.status != old_status
        priority_changed = task.priority != old_priority

        if status_changed and old_status == TaskStatus.DONE.value and task.is_approved:
            task.is_approved = False
            task.approved_at = None

        activity = None
        if status_changed:
            activity = await self.activities.build_entry(
                task,
                actor.user_id,
                ActivityType.STATUS_CHANGE,
                f'changed status from "{old_status}" to "{task.status}"',
            )
        elif priority_changed:
            activity = await self.activities.build_entry(
                task,
                actor.user_id,
                ActivityType.PRIORITY_CHANGE,
                f'changed priority from "{old_priority}" to "{task.priority}"',
            )

        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"❌ Failed to update task {pk}: {str(e)}")
            raise InternalServerError("Failed to update task") from e

        if activity is not None:
            await self.activities.announce(activity, task.project_id)

        if status_changed and task.status == TaskStatus.DONE.value:
            await self._request_owner_review(task, actor)

        await self._broadcast(task, RealtimeEvent.TASK_UPDATED)
        return task

    async def approve_task(self, task_id: Any, comment: str | None, actor: Actor) -> Task:
        """Mark a finished task as approved and tell its assignees."""
        task = await self._get_scoped_task_or_404(task_id, actor)
        if task.status != TaskStatus.DONE.value:
            raise InvalidTaskOperationError("Only tasks marked Done can be approved")

        pk = task.id
        now = utcnow()
        task.is_approved = True
        task.approved_at = now
        task.comments = list(task.comments or []) + [
            await self._review_comment(actor, comment or "Approved", CommentKind.APPROVAL, now)
        ]
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"❌ Failed to approve task {pk}: {str(e)}")
            raise InternalServerError("Failed to approve task") from e

        await self.notifications.notify_many(
            task.assignees,
            f'Your task "{task.title}" has been approved',
            NotificationType.TASK_APPROVED,
            project_id=task.project_id,
            metadata={"task_id": str(task.id)},
        )
        await self._broadcast(task, RealtimeEvent.TASK_UPDATED)
        logger.info(f"✅ Task {task.id} approved by {actor.user_id}")
        return task

    async def disapprove_task(self, task_id: Any, comment: str | None, actor: Actor) -> Task:
        """Send a finished task back to In Progress and clear its approval."""
        task = await self._get_scoped_task_or_404(task_id, actor)
        if task.status != TaskStatus.DONE.value:
            raise InvalidTaskOperationError("Only tasks marked Done can be disapproved")

        pk = task.id
        now = utcnow()
        task.status = TaskStatus.IN_PROGRESS.value
        task.is_approved = False
        task.approved_at = None
        task.comments = list(task.comments or []) + [
            await self._review_comment(actor, comment or "Changes requested", CommentKind.REJECTION, now)
        ]
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"❌ Failed to disapprove task {pk}: {str(e)}")
            raise InternalServerError("Failed to disapprove task") from e

        await self.notifications.notify_many(
            task.assignees,
            f'Your task "{task.title}" needs changes',
            NotificationType.TASK_REJECTED,
            project_id=task.project_id,
            metadata={"task_id": str(task.id)},
        )
        await self._broadcast(task, RealtimeEvent.TASK_UPDATED)
        logger.info(f"Task {task.id} sent back to In Progress by {actor.user_id}")
        return task

    async def delete_task(self, task_id: Any, actor: Actor) -> None:
        """Delete a task with its activity and every file it references."""
        task = await self._get_scoped_task_or_404(task_id, actor)
        deleted_id = task.id
        project_id = task.project_id
        former_assignees = list(task.assignees or [])

        await self._purge_tasks([task])

        await self.bus.publish(
            project_room(project_id), RealtimeEvent.TASK_DELETED, {"id": str(deleted_id)}
        )
        await self.bus.publish_to_users(former_assignees, RealtimeEvent.DASHBOARD_REFRESH, {})
        logger.info(f"🗑️ Task {deleted_id} deleted by {actor.user_id}")

    async def purge_project_tasks(self, project_ids: Iterable[Any]) -> int:
        """Delete all tasks of the given projects, with activity and files. The caller commits."""
        ids = list(project_ids)
        if not ids:
            return 0
        result = await self.db.execute(select(Task).where(Task.project_id.in_(ids)))
        tasks = list(result.scalars().all())
        await self._purge_tasks(tasks, commit=False)
        return len(tasks)

    async def sweep_expired(self, now: datetime | None = None) -> SweepReport:
        """Delete tasks approved more than ``task_expiry_days`` ago.

        Every task is handled on its own: a failure is logged and recorded and
        the sweep moves on to the next task.
        """
        now = to_naive_utc(now) if now else utcnow()
        report = SweepReport(cutoff=now - timedelta(days=settings.task_expiry_days))

        result = await self.db.execute(
            select(Task.id).where(
                Task.is_approved.is_(True),
                Task.approved_at.is_not(None),
                Task.approved_at <= report.cutoff,
            )
        )
        expired_ids = list(result.scalars().all())
        logger.info(f"🧹 Expiry sweep found {len(expired_ids)} task(s) approved before {report.cutoff}")

        for task_id in expired_ids:
            try:
                await self._expire_task(task_id)
                report.deleted.append(task_id)
            except Exception:
                await self.db.rollback()
                logger.exception(f"❌ Failed to expire task {task_id}")
                report.failed.append(task_id)

        return report

    # ----- helpers -----

    async def _expire_task(self, task_id: UUID) -> None:
        task = await self.db.get(Task, task_id)
        if not task:
            return
        project = await self.db.get(Project, task.project_id)
        title = task.title
        project_id = task.project_id

        await self._purge_tasks([task])

        if project:
            await self.notifications.create_notification(
                project.owner_id,
                f'Task "{title}" was deleted automatically {settings.task_expiry_days} days after approval',
                NotificationType.TASK_AUTO_DELETED,
                project_id=project_id,
                metadata={"task_id": str(task_id)},
            )
        await self.bus.publish(
            project_room(project_id), RealtimeEvent.TASK_DELETED, {"id": str(task_id)}
        )

    async def _purge_tasks(self, tasks: list[Task], commit: bool = True) -> None:
        """Files first (best effort), then activity, pending invites and the tasks."""
        if not tasks:
            return
        task_ids = [task.id for task in tasks]
        activities = await self.activities.list_for_tasks(task_ids)
        await self.attachments.purge_for_tasks(tasks, activities)

        await self.activities.delete_for_tasks(task_ids)
        for task_id in task_ids:
            await self.notifications.delete_for_task(task_id)
        await self.db.execute(delete(Task).where(Task.id.in_(task_ids)))
        if commit:
            await self.db.commit()

    async def _request_owner_review(self, task: Task, actor: Actor) -> None:
        project = await self.db.get(Project, task.project_id)
        if not project or project.owner_id == actor.user_id:
            return
        await self.notifications.create_notification(
            project.owner_id,
            f'Task "{task.title}" has been marked as Done and is ready for review',
            NotificationType.INFO,
            project_id=project.id,
            metadata={"task_id": str(task.id)},
        )

    async def _review_comment(
        self, actor: Actor, text: str, kind: CommentKind, created_at: datetime
    ) -> dict:
        user = await self.users.get_user_by_clerk_id(actor.user_id)
        return {
            "author_id": actor.user_id,
            "author_name": user.display_name if user else None,
            "text": text,
            "created_at": created_at.isoformat(),
            "kind": kind.value,
        }

    async def _email_assignees(self, task: Task, recipients: list[str]) -> None:
        if not self.dispatcher or not self.email_service:
            return
        users = await self.users.get_users_by_clerk_ids(recipients)
        for user in users:
            if not user.email:
                continue
            self.dispatcher.spawn(
                self.email_service.send_task_assignment(
                    to_email=user.email,
                    first_name=user.first_name,
                    task_title=task.title,
                    priority=task.priority,
                    due_date=task.due_date,
                ),
                name=f"task-assignment-email:{task.id}:{user.clerk_id}",
            )

    async def _broadcast(self, task: Task, event: str) -> None:
        await self.bus.publish(
            project_room(task.project_id), event, TaskResponse.model_validate(task).model_dump()
        )

    def _ensure_can_work_on(self, task: Task, actor: Actor) -> None:
        if not actor.is_admin and actor.user_id not in (task.assignees or []):
            raise TaskPermissionError()

    async def _get_task_or_404(self, task_id: Any) -> Task:
        task = await self.db.get(Task, parse_uuid(task_id, TaskNotFoundError))
        if not task:
            raise TaskNotFoundError()
        return task

    async def _get_scoped_task_or_404(self, task_id: Any, actor: Actor) -> Task:
        """Tasks outside the actor's organization are reported as missing."""
        task = await self._get_task_or_404(task_id)
        project = await self.db.get(Project, task.project_id)
        if not project or not is_task_in_scope(task, project, actor):
            raise TaskNotFoundError()
        return task

    async def _get_project_or_404(self, project_id: Any) -> Project:
        project = await self.db.get(Project, parse_uuid(project_id, ProjectNotFoundError))
        if not project:
            raise ProjectNotFoundError()
        return project
