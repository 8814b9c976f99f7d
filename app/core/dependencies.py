# app/core/dependencies.py
import logging

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.roles import ADMIN_ROLES, Actor, has_any_role
from app.core.security import ClerkAuthenticator
from app.database import get_db
from app.domains.activity.service import ActivityService
from app.domains.admin.service import AdminService
from app.domains.notification.service import InviteService
from app.domains.project.service import ProjectService
from app.domains.task.service import TaskService
from app.domains.user.service import UserService
from app.domains.webhook.service import WebhookService
from app.exceptions.base import AppPermissionError, UnauthenticatedError
from app.services.attachment_service import AttachmentLifecycleManager
from app.services.background import BackgroundDispatcher
from app.services.clerk_client import ClerkClient
from app.services.email_service import EmailService
from app.services.notification_service import NotificationService
from app.services.realtime import RealtimeBus
from app.services.storage_service import StorageService

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)
auth = ClerkAuthenticator()


async def validate_token(
    token: HTTPAuthorizationCredentials | None = Depends(security),
) -> dict:
    """Validate and decode JWT token from Clerk.

    Returns:
        dict: Decoded token payload

    Raises:
        UnauthenticatedError: If the token is missing, invalid or expired
    """
    if not token or not token.credentials:
        raise UnauthenticatedError()

    payload = auth.verify_token(token.credentials)
    if not payload or not payload.get("sub"):
        raise UnauthenticatedError("Invalid token payload - missing user ID")

    return payload


async def get_current_actor(request: Request, payload: dict = Depends(validate_token)) -> Actor:
    """Build the request's actor from the verified claims."""
    actor = Actor.from_claims(payload)

    # Add user info to request state for logging
    request.state.user_id = actor.user_id
    return actor


def require_roles(*roles: str):
    """Dependency factory that admits only actors whose effective role is in ``roles``."""

    async def dependency(actor: Actor = Depends(get_current_actor)) -> Actor:
        if not has_any_role(actor, roles):
            logger.info(
                f"Denied {actor.user_id}: role {actor.effective_role} not in {list(roles)}"
            )
            raise AppPermissionError(
                f"Forbidden: Requires one of [{', '.join(roles)}]. "
                f"Your role: {actor.effective_role}",
                details={"required": list(roles), "actual": actor.effective_role},
            )
        return actor

    return dependency


require_admin = require_roles(*ADMIN_ROLES)


# ----- collaborators created once in create_app() -----


def get_bus(request: Request) -> RealtimeBus:
    return request.app.state.bus


def get_dispatcher(request: Request) -> BackgroundDispatcher:
    return request.app.state.dispatcher


def get_storage(request: Request) -> StorageService:
    return request.app.state.storage


def get_clerk_client(request: Request) -> ClerkClient:
    return request.app.state.clerk


def get_email_service(request: Request) -> EmailService:
    return request.app.state.email


def get_attachment_manager(
    storage: StorageService = Depends(get_storage),
) -> AttachmentLifecycleManager:
    return AttachmentLifecycleManager(storage)


# ----- services -----


def get_user_service(db: AsyncSession = Depends(get_db)) -> UserService:
    return UserService(db)


def get_notification_service(
    db: AsyncSession = Depends(get_db), bus: RealtimeBus = Depends(get_bus)
) -> NotificationService:
    return NotificationService(db, bus)


def get_activity_service(
    db: AsyncSession = Depends(get_db), bus: RealtimeBus = Depends(get_bus)
) -> ActivityService:
    return ActivityService(db, bus)


def get_task_service(
    db: AsyncSession = Depends(get_db),
    bus: RealtimeBus = Depends(get_bus),
    attachments: AttachmentLifecycleManager = Depends(get_attachment_manager),
    dispatcher: BackgroundDispatcher = Depends(get_dispatcher),
    email_service: EmailService = Depends(get_email_service),
) -> TaskService:
    return TaskService(db, bus, attachments, dispatcher, email_service)


def get_project_service(
    db: AsyncSession = Depends(get_db),
    bus: RealtimeBus = Depends(get_bus),
    attachments: AttachmentLifecycleManager = Depends(get_attachment_manager),
    clerk: ClerkClient = Depends(get_clerk_client),
) -> ProjectService:
    return ProjectService(db, bus, attachments, clerk)


def get_invite_service(
    db: AsyncSession = Depends(get_db), bus: RealtimeBus = Depends(get_bus)
) -> InviteService:
    return InviteService(db, bus)


def get_admin_service(
    db: AsyncSession = Depends(get_db),
    bus: RealtimeBus = Depends(get_bus),
    clerk: ClerkClient = Depends(get_clerk_client),
    attachments: AttachmentLifecycleManager = Depends(get_attachment_manager),
) -> AdminService:
    return AdminService(db, bus, clerk, attachments)


def get_webhook_service(
    db: AsyncSession = Depends(get_db),
    bus: RealtimeBus = Depends(get_bus),
    clerk: ClerkClient = Depends(get_clerk_client),
    attachments: AttachmentLifecycleManager = Depends(get_attachment_manager),
) -> WebhookService:
    return WebhookService(db, bus, clerk, attachments)
