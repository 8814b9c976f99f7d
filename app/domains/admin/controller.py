"""Organization administration endpoints. Every route requires an admin role."""

from fastapi import APIRouter, Body, Depends, Path, Query

from app.core.dependencies import get_admin_service, require_admin
from app.core.roles import Actor
from app.domains.admin.service import AdminService
from app.schemas.admin_request import (
    AdminRequestResponse,
    DemotionRequestCreate,
    OrgDeletionRequestCreate,
    PromoteMemberRequest,
)
from app.schemas.base import ResponseSchema

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.post("/demote/request", response_model=ResponseSchema)
async def request_demotion(
    body: DemotionRequestCreate = Body(...),
    actor: Actor = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    request = await service.request_demotion(body.target_user_id, actor, org_id=body.org_id)
    return ResponseSchema(
        status="success",
        message="Demotion requested. Waiting for another admin to approve.",
        data=AdminRequestResponse.model_validate(request).model_dump(),
    )


@router.post("/demote/approve/{request_id}", response_model=ResponseSchema)
async def approve_demotion(
    request_id: str = Path(..., description="Admin request ID"),
    actor: Actor = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    await service.approve_demotion(request_id, actor)
    return ResponseSchema(status="success", message="Demotion approved and executed successfully.")


@router.post("/delete-org/request", response_model=ResponseSchema)
async def request_org_deletion(
    body: OrgDeletionRequestCreate | None = None,
    actor: Actor = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    request = await service.request_org_deletion(actor, org_id=body.org_id if body else None)
    return ResponseSchema(
        status="success",
        message="Deletion requested. Waiting for another admin to approve.",
        data=AdminRequestResponse.model_validate(request).model_dump(),
    )


@router.post("/delete-org/approve/{request_id}", response_model=ResponseSchema)
async def approve_org_deletion(
    request_id: str = Path(..., description="Admin request ID"),
    actor: Actor = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    await service.approve_org_deletion(request_id, actor)
    return ResponseSchema(status="success", message="Organization deleted successfully.")


@router.delete("/requests/{request_id}", response_model=ResponseSchema)
async def reject_request(
    request_id: str = Path(..., description="Admin request ID"),
    actor: Actor = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    """Reject a pending request. Nothing is applied."""
    await service.reject_request(request_id, actor)
    return ResponseSchema(status="success", message="Request rejected.")


@router.get("/pending", response_model=ResponseSchema)
async def get_pending_requests(
    org_id: str | None = Query(None, description="Must match the active organization"),
    actor: Actor = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    requests = await service.list_pending(actor, org_id=org_id)
    return ResponseSchema(
        status="success",
        message="Pending requests retrieved successfully",
        data={"requests": [AdminRequestResponse.model_validate(r).model_dump() for r in requests]},
    )


@router.post("/promote", response_model=ResponseSchema)
async def promote_member(
    body: PromoteMemberRequest = Body(...),
    actor: Actor = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    await service.promote_member(body.target_user_id, actor, org_id=body.org_id)
    return ResponseSchema(status="success", message="Member promoted to Admin successfully.")
