"""Reconciles Clerk lifecycle events into local users, projects and roles.

Every side effect is committed on its own. A failure part-way through an
event leaves the earlier effects in place; Clerk redelivers the event and
each handler is safe to run again.
"""

import logging
from collections.abc import Mapping
from typing import Any

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession
from svix.webhooks import Webhook

from app.core.roles import MEMBER, global_role_for_org_role
from app.domains.project.service import ProjectService
from app.domains.user.service import UserService
from app.schemas.webhook import (
    HANDLED_EVENT_TYPES,
    MembershipCreatedEvent,
    MembershipDeletedEvent,
    MembershipUpdatedEvent,
    OrganizationDeletedEvent,
    UserCreatedEvent,
    UserDeletedEvent,
    UserUpdatedEvent,
    clerk_event_adapter,
)
from app.services.attachment_service import AttachmentLifecycleManager
from app.services.clerk_client import ClerkClient
from app.services.realtime import RealtimeBus, RealtimeEvent, org_room, user_room
from models.admin_request import AdminRequest

logger = logging.getLogger(__name__)

SVIX_HEADERS = ("svix-id", "svix-timestamp", "svix-signature")


def verify_signature(secret: str, body: bytes, headers: Mapping[str, str]) -> dict:
    """Check the svix signature and return the decoded event.

    Raises:
        svix.webhooks.WebhookVerificationError: If the signature does not match.
    """
    return Webhook(secret).verify(body, {name: headers[name] for name in SVIX_HEADERS})


class WebhookService:
    def __init__(
        self,
        db: AsyncSession,
        bus: RealtimeBus,
        clerk: ClerkClient,
        attachments: AttachmentLifecycleManager,
    ):
        self.db = db
        self.bus = bus
        self.clerk = clerk
        self.users = UserService(db)
        self.projects = ProjectService(db, bus, attachments, clerk)

    async def handle(self, payload: dict[str, Any]) -> bool:
        """Dispatch one verified event. Returns False for event types that are ignored.

        Raises:
            pydantic.ValidationError: If a handled event is missing required fields.
        """
        event_type = payload.get("type")
        logger.info(f"🪝 Webhook received: {event_type}")
        if event_type not in HANDLED_EVENT_TYPES:
            logger.debug(f"Ignoring webhook event {event_type}")
            return False

        event = clerk_event_adapter.validate_python(payload)
        if isinstance(event, UserCreatedEvent):
            await self._user_created(event)
        elif isinstance(event, UserUpdatedEvent):
            await self._user_updated(event)
        elif isinstance(event, UserDeletedEvent):
            await self._user_deleted(event)
        elif isinstance(event, (MembershipCreatedEvent, MembershipUpdatedEvent)):
            await self._membership_changed(event)
        elif isinstance(event, MembershipDeletedEvent):
            await self._membership_deleted(event)
        elif isinstance(event, OrganizationDeletedEvent):
            await self._organization_deleted(event)
        return True

    async def _user_created(self, event: UserCreatedEvent) -> None:
        data = event.data
        email = data.primary_email
        if not email:
            logger.warning(f"Skipping user.created for {data.id}: no email address")
            return

        await self.users.create_user(
            clerk_id=data.id,
            email=email,
            username=data.username,
            first_name=data.first_name,
            last_name=data.last_name,
            photo=data.image_url,
        )
        logger.info(f"User {data.id} mirrored")

    async def _user_updated(self, event: UserUpdatedEvent) -> None:
        data = event.data
        user = await self.users.update_user(
            data.id,
            email=data.primary_email,
            username=data.username,
            first_name=data.first_name,
            last_name=data.last_name,
            photo=data.image_url,
        )
        if user is None:
            logger.info(f"user.updated for unmirrored user {data.id} ignored")

    async def _user_deleted(self, event: UserDeletedEvent) -> None:
        user_id = event.data.id
        await self.users.delete_user(user_id)
        removed_from = await self.projects.remove_member_everywhere(user_id)
        logger.info(f"User {user_id} deleted and removed from {removed_from} project(s)")

    async def _membership_changed(self, event: MembershipCreatedEvent | MembershipUpdatedEvent) -> None:
        data = event.data
        user_id = data.public_user_data.user_id
        org_id = data.organization.id
        role = global_role_for_org_role(data.role)

        await self.users.set_role(user_id, role)
        await self.clerk.update_user_metadata(user_id, {"role": role})

        await self.bus.publish(org_room(org_id), RealtimeEvent.TEAM_UPDATED, {"user_id": user_id})
        logger.info(f"Membership of {user_id} in {org_id} is now {data.role}; global role {role}")

    async def _membership_deleted(self, event: MembershipDeletedEvent) -> None:
        data = event.data
        user_id = data.public_user_data.user_id
        org_id = data.organization.id

        await self.projects.remove_member_everywhere(user_id, org_id=org_id)
        await self.users.set_role(user_id, MEMBER)

        await self.bus.publish(user_room(user_id), RealtimeEvent.SESSION_REFRESH, {})
        await self.bus.publish(org_room(org_id), RealtimeEvent.TEAM_UPDATED, {"user_id": user_id})
        logger.info(f"{user_id} left organization {org_id}")

    async def _organization_deleted(self, event: OrganizationDeletedEvent) -> None:
        org_id = event.data.id
        await self.projects.delete_for_organization(org_id)

        await self.db.execute(delete(AdminRequest).where(AdminRequest.org_id == org_id))
        await self.db.commit()

        await self.bus.publish(org_room(org_id), RealtimeEvent.ORG_DELETED, {"org_id": org_id})
