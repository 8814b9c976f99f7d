"""Organization administration with dual control.

Demoting an admin and deleting an organization need two different admins:
one files the request, another approves it. A request row exists only
while it is pending; approving or rejecting it deletes the row, after which
the same request may be filed again.
"""

import logging
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.roles import ADMIN, MEMBER, ORG_ADMIN, ORG_MEMBER, Actor
from app.domains.project.service import ProjectService
from app.domains.user.service import UserService
from app.exceptions.base import ValidationError
from app.exceptions.notification import (
    AdminRequestNotFoundError,
    DuplicateAdminRequestError,
    InvalidAdminRequestError,
    SelfApprovalError,
)
from app.schemas.admin_request import AdminRequestResponse
from app.services.attachment_service import AttachmentLifecycleManager
from app.services.clerk_client import ClerkClient
from app.services.realtime import RealtimeBus, RealtimeEvent, org_room, user_room
from app.shared.identifiers import parse_uuid
from models.admin_request import AdminRequest, AdminRequestStatus, AdminRequestType

logger = logging.getLogger(__name__)


class AdminService:
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

    async def request_demotion(
        self, target_user_id: str, actor: Actor, org_id: str | None = None
    ) -> AdminRequest:
        org_id = self._require_org(actor, org_id)

        existing = await self._find_pending(
            org_id, AdminRequestType.DEMOTE_ADMIN, target_user_id=target_user_id
        )
        if existing:
            raise DuplicateAdminRequestError()

        request = await self._create_request(
            org_id, AdminRequestType.DEMOTE_ADMIN, actor.user_id, target_user_id
        )
        logger.info(f"Demotion of {target_user_id} in {org_id} requested by {actor.user_id}")
        return request

    async def approve_demotion(self, request_id: Any, actor: Actor) -> None:
        """Demote the target at the identity provider and in the local mirror.

        Provider failures abort the approval and leave the request pending.
        """
        request = await self._get_request(request_id, actor, AdminRequestType.DEMOTE_ADMIN)
        self._forbid_self_approval(request, actor)

        await self.clerk.update_organization_membership(
            request.org_id, request.target_user_id, ORG_MEMBER
        )
        await self.clerk.update_user_metadata(request.target_user_id, {"role": MEMBER})
        await self.users.set_role(request.target_user_id, MEMBER)

        await self._resolve(request)
        await self.bus.publish(user_room(request.target_user_id), RealtimeEvent.SESSION_REFRESH, {})
        await self.bus.publish(org_room(request.org_id), RealtimeEvent.TEAM_UPDATED, {})
        logger.info(f"✅ Demotion of {request.target_user_id} approved by {actor.user_id}")

    async def request_org_deletion(self, actor: Actor, org_id: str | None = None) -> AdminRequest:
        org_id = self._require_org(actor, org_id)

        existing = await self._find_pending(org_id, AdminRequestType.DELETE_ORG)
        if existing:
            raise DuplicateAdminRequestError(
                "A deletion request for this organization is already pending."
            )

        request = await self._create_request(org_id, AdminRequestType.DELETE_ORG, actor.user_id)
        logger.info(f"Deletion of organization {org_id} requested by {actor.user_id}")
        return request

    async def approve_org_deletion(self, request_id: Any, actor: Actor) -> None:
        """Delete the organization at the provider, then every local trace of it."""
        request = await self._get_request(request_id, actor, AdminRequestType.DELETE_ORG)
        self._forbid_self_approval(request, actor)
        org_id = request.org_id

        await self.clerk.delete_organization(org_id)
        await self.projects.delete_for_organization(org_id)

        await self.db.execute(delete(AdminRequest).where(AdminRequest.org_id == org_id))
        await self.db.commit()

        await self.bus.publish(org_room(org_id), RealtimeEvent.ORG_DELETED, {"org_id": org_id})
        logger.info(f"✅ Organization {org_id} deleted, approved by {actor.user_id}")

    async def reject_request(self, request_id: Any, actor: Actor) -> None:
        """Drop a pending request without applying it."""
        request = await self._get_request(request_id, actor)
        await self._resolve(request)
        logger.info(f"Admin request {request.id} rejected by {actor.user_id}")

    async def list_pending(self, actor: Actor, org_id: str | None = None) -> list[AdminRequest]:
        org_id = self._require_org(actor, org_id)
        result = await self.db.execute(
            select(AdminRequest)
            .where(
                AdminRequest.org_id == org_id,
                AdminRequest.status == AdminRequestStatus.PENDING.value,
            )
            .order_by(AdminRequest.created_at.desc())
        )
        return list(result.scalars().all())

    async def promote_member(
        self, target_user_id: str, actor: Actor, org_id: str | None = None
    ) -> None:
        """Promotion needs a single admin."""
        org_id = self._require_org(actor, org_id)

        await self.clerk.update_organization_membership(org_id, target_user_id, ORG_ADMIN)
        await self.clerk.update_user_metadata(target_user_id, {"role": ADMIN})
        await self.users.set_role(target_user_id, ADMIN)

        await self.bus.publish(user_room(target_user_id), RealtimeEvent.SESSION_REFRESH, {})
        await self.bus.publish(org_room(org_id), RealtimeEvent.TEAM_UPDATED, {})
        logger.info(f"✅ {target_user_id} promoted to admin in {org_id} by {actor.user_id}")

    # ----- helpers -----

    def _require_org(self, actor: Actor, org_id: str | None = None) -> str:
        """The actor's active organization; an explicit ``org_id`` must name the same one."""
        if not actor.org_id:
            raise ValidationError("An active organization is required")
        if org_id and org_id != actor.org_id:
            raise ValidationError(
                "Organization does not match the active session",
                details={"org_id": org_id, "active_org_id": actor.org_id},
            )
        return actor.org_id

    def _forbid_self_approval(self, request: AdminRequest, actor: Actor) -> None:
        if request.requester_user_id == actor.user_id:
            raise SelfApprovalError()

    async def _find_pending(
        self, org_id: str, request_type: AdminRequestType, target_user_id: str | None = None
    ) -> AdminRequest | None:
        stmt = select(AdminRequest).where(
            AdminRequest.org_id == org_id,
            AdminRequest.type == request_type.value,
            AdminRequest.status == AdminRequestStatus.PENDING.value,
        )
        if target_user_id is not None:
            stmt = stmt.where(AdminRequest.target_user_id == target_user_id)
        result = await self.db.execute(stmt.limit(1))
        return result.scalar_one_or_none()

    async def _create_request(
        self,
        org_id: str,
        request_type: AdminRequestType,
        requester_user_id: str,
        target_user_id: str | None = None,
    ) -> AdminRequest:
        request = AdminRequest(
            org_id=org_id,
            type=request_type.value,
            status=AdminRequestStatus.PENDING.value,
            requester_user_id=requester_user_id,
            target_user_id=target_user_id,
        )
        self.db.add(request)
        await self.db.commit()
        await self.db.refresh(request)

        await self.bus.publish(
            org_room(org_id),
            RealtimeEvent.ADMIN_REQUEST_CREATED,
            AdminRequestResponse.model_validate(request).model_dump(),
        )
        return request

    async def _resolve(self, request: AdminRequest) -> None:
        request_id = request.id
        await self.db.delete(request)
        await self.db.commit()
        await self.bus.publish(
            org_room(request.org_id),
            RealtimeEvent.ADMIN_REQUEST_RESOLVED,
            {"id": str(request_id)},
        )

    async def _get_request(
        self, request_id: Any, actor: Actor, expected_type: AdminRequestType | None = None
    ) -> AdminRequest:
        org_id = self._require_org(actor)
        request = await self.db.get(AdminRequest, parse_uuid(request_id, AdminRequestNotFoundError))
        # Requests of another organization are invisible
        if not request or request.org_id != org_id:
            raise AdminRequestNotFoundError()
        if expected_type and request.type != expected_type.value:
            raise InvalidAdminRequestError()
        return request
