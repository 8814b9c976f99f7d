"""Project service layer with business logic."""

import logging
from typing import Any, Optional

from sqlalchemy import String, cast, delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.roles import Actor
from app.domains.project.policy import is_project_visible
from app.domains.task.service import TaskService
from app.domains.user.service import UserService
from app.exceptions.base import AppPermissionError, InternalServerError, NotFoundError, ValidationError
from app.exceptions.project import AlreadyMemberError, ProjectNotFoundError
from app.schemas.project import (
    ProjectCreate,
    ProjectEventCreate,
    ProjectEventResponse,
    ProjectResponse,
    ProjectUpdate,
)
from app.services.attachment_service import AttachmentLifecycleManager
from app.services.clerk_client import ClerkClient
from app.services.notification_service import NotificationService, NotificationType
from app.services.realtime import RealtimeBus, RealtimeEvent, org_room, project_room, user_room
from app.shared.identifiers import parse_uuid
from models.base import to_naive_utc, utcnow
from models.project import Project
from models.project_event import ProjectEvent
from models.user import User

logger = logging.getLogger(__name__)


class ProjectService:
    """Service class for project business logic."""

    def __init__(
        self,
        db: AsyncSession,
        bus: RealtimeBus,
        attachments: AttachmentLifecycleManager,
        clerk: Optional[ClerkClient] = None,
    ):
        self.db = db
        self.bus = bus
        self.clerk = clerk
        self.tasks = TaskService(db, bus, attachments)
        self.notifications = NotificationService(db, bus)
        self.users = UserService(db)

    async def create_project(self, project_data: ProjectCreate, actor: Actor) -> Project:
        """Create a project owned by the actor, inside the active organization if any."""
        project = Project(
            title=project_data.title,
            description=project_data.description or "No Description",
            status=project_data.status.value,
            priority=project_data.priority.value,
            start_date=to_naive_utc(project_data.start_date) if project_data.start_date else None,
            due_date=to_naive_utc(project_data.due_date) if project_data.due_date else None,
            owner_id=actor.user_id,
            org_id=actor.org_id,
            members=[actor.user_id],
        )

        try:
            self.db.add(project)
            await self.db.commit()
            await self.db.refresh(project)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"❌ Failed to create project: {str(e)}")
            raise InternalServerError("Failed to create project") from e

        await self.bus.publish(
            self._audience_room(project),
            RealtimeEvent.PROJECT_CREATED,
            ProjectResponse.model_validate(project).model_dump(),
        )
        return project

    async def list_projects(self, actor: Actor) -> list[Project]:
        """Projects of the active organization the actor belongs to, else personal ones."""
        if actor.org_id:
            stmt = select(Project).where(Project.org_id == actor.org_id)
        else:
            stmt = select(Project).where(
                Project.owner_id == actor.user_id, Project.org_id.is_(None)
            )

        result = await self.db.execute(stmt.order_by(Project.created_at.desc()))
        return [project for project in result.scalars().all() if is_project_visible(project, actor)]

    async def get_project(self, project_id: Any, actor: Actor) -> Project:
        project = await self._get_project_or_404(project_id)
        if not is_project_visible(project, actor):
            raise ProjectNotFoundError()
        return project

    async def update_project(
        self, project_id: Any, project_data: ProjectUpdate, actor: Actor
    ) -> Project:
        """Update project settings. Unset fields are left alone."""
        project = await self.get_project(project_id, actor)

        update_data = project_data.model_dump(exclude_unset=True)
        for field, value in update_data.items():
            if value is None and field in ("title", "status", "priority"):
                continue
            if field in ("start_date", "due_date") and value is not None:
                value = to_naive_utc(value)
            setattr(project, field, value.value if hasattr(value, "value") else value)

        try:
            await self.db.commit()
            await self.db.refresh(project)
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise InternalServerError("Failed to update project") from e

        await self._announce_update(project)
        return project

    async def delete_project(self, project_id: Any, actor: Actor) -> None:
        project = await self.get_project(project_id, actor)
        await self._cascade_delete(project)
        logger.info(f"🗑️ Project {project_id} deleted by {actor.user_id}")

    async def delete_for_organization(self, org_id: str) -> int:
        """Delete every project of an organization. Each project is committed on its own."""
        result = await self.db.execute(select(Project).where(Project.org_id == org_id))
        projects = list(result.scalars().all())
        for project in projects:
            await self._cascade_delete(project)
        logger.info(f"Deleted {len(projects)} project(s) of organization {org_id}")
        return len(projects)

    # ----- members -----

    async def list_members(self, project_id: Any, actor: Actor) -> list[User]:
        project = await self.get_project(project_id, actor)
        return await self.users.get_users_by_clerk_ids(project.members or [])

    async def add_member(self, project_id: Any, email: str, actor: Actor) -> User:
        """Add a mirrored user to the project by email.

        For organization projects the user must be a member of that
        organization at the identity provider.
        """
        project = await self.get_project(project_id, actor)
        if project.owner_id != actor.user_id and not actor.is_admin:
            raise AppPermissionError("Only the project owner or an admin can add members")

        user = await self.users.get_user_by_email(email)
        if not user:
            raise NotFoundError("User not found in the system.")

        if user.clerk_id in (project.members or []):
            raise AlreadyMemberError()

        if project.org_id:
            if not self.clerk:
                raise InternalServerError("Organization membership cannot be verified")
            if not await self.clerk.is_organization_member(project.org_id, user.clerk_id):
                raise ValidationError("User is not in the Organization's Core Team.")

        project.members = list(project.members or []) + [user.clerk_id]
        await self.db.commit()

        await self.notifications.create_notification(
            user.clerk_id,
            f'You have been added to the project: "{project.title}"',
            NotificationType.PROJECT_ADD,
            project_id=project.id,
        )
        await self._announce_update(project)
        return user

    async def remove_member(self, project_id: Any, user_id: str, actor: Actor) -> Project:
        project = await self.get_project(project_id, actor)
        if user_id == project.owner_id:
            raise ValidationError("The project owner cannot be removed")

        project.members = [m for m in (project.members or []) if m != user_id]
        await self.db.commit()

        await self.bus.publish(
            project_room(project.id), RealtimeEvent.PROJECT_MEMBER_REMOVED, {"user_id": user_id}
        )
        await self._announce_update(project)
        return project

    async def remove_member_everywhere(self, user_id: str, org_id: str | None = None) -> int:
        """Pull ``user_id`` out of every project's member list (optionally one org only)."""
        stmt = select(Project).where(cast(Project.members, String).like(f'%"{user_id}"%'))
        if org_id:
            stmt = stmt.where(Project.org_id == org_id)
        result = await self.db.execute(stmt)

        changed = []
        for project in result.scalars().all():
            if user_id in (project.members or []):
                project.members = [m for m in project.members if m != user_id]
                changed.append(project)
        if not changed:
            return 0

        await self.db.commit()
        for project in changed:
            await self.bus.publish(
                project_room(project.id), RealtimeEvent.PROJECT_MEMBER_REMOVED, {"user_id": user_id}
            )
        return len(changed)

    # ----- events -----

    async def create_event(
        self, project_id: Any, event_data: ProjectEventCreate, actor: Actor
    ) -> ProjectEvent:
        project = await self.get_project(project_id, actor)
        event = ProjectEvent(
            project_id=project.id,
            title=event_data.title,
            description=event_data.description,
            meet_link=event_data.meet_link,
            start_date=to_naive_utc(event_data.start_date),
            created_by=actor.user_id,
        )
        self.db.add(event)
        await self.db.commit()
        await self.db.refresh(event)

        await self.bus.publish(
            project_room(project.id),
            RealtimeEvent.EVENT_CREATED,
            ProjectEventResponse.model_validate(event).model_dump(),
        )
        return event

    async def list_upcoming_events(self, project_id: Any, actor: Actor) -> list[ProjectEvent]:
        project = await self.get_project(project_id, actor)
        result = await self.db.execute(
            select(ProjectEvent)
            .where(ProjectEvent.project_id == project.id, ProjectEvent.start_date >= utcnow())
            .order_by(ProjectEvent.start_date.asc())
        )
        return list(result.scalars().all())

    # ----- helpers -----

    async def _cascade_delete(self, project: Project) -> None:
        """Tasks (with activity and files), events, then the project itself."""
        project_id = project.id
        audience = self._audience_room(project)

        try:
            await self.tasks.purge_project_tasks([project_id])
            await self.db.execute(delete(ProjectEvent).where(ProjectEvent.project_id == project_id))
            await self.db.delete(project)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"❌ Failed to delete project {project_id}: {str(e)}")
            raise InternalServerError("Failed to delete project") from e

        payload = {"id": str(project_id)}
        await self.bus.publish(audience, RealtimeEvent.PROJECT_DELETED, payload)
        await self.bus.publish(project_room(project_id), RealtimeEvent.PROJECT_DELETED, payload)

    async def _announce_update(self, project: Project) -> None:
        await self.bus.publish(
            project_room(project.id),
            RealtimeEvent.PROJECT_UPDATED,
            ProjectResponse.model_validate(project).model_dump(),
        )

    def _audience_room(self, project: Project) -> str:
        return org_room(project.org_id) if project.org_id else user_room(project.owner_id)

    async def _get_project_or_404(self, project_id: Any) -> Project:
        project = await self.db.get(Project, parse_uuid(project_id, ProjectNotFoundError))
        if not project:
            raise ProjectNotFoundError()
        return project
