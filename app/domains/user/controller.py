"""User mirror endpoints."""

from fastapi import APIRouter, Body, Depends, Path

from app.core.dependencies import get_current_actor, get_user_service, require_admin
from app.core.roles import Actor
from app.domains.user.service import UserService
from app.schemas.base import ResponseSchema
from app.schemas.user import UserResponse, UserRoleUpdateRequest

router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("/", response_model=ResponseSchema)
async def get_users(
    _actor: Actor = Depends(get_current_actor),
    service: UserService = Depends(get_user_service),
):
    """List mirrored users (the team directory)."""
    users = await service.list_users()
    return ResponseSchema(
        status="success",
        message="Users retrieved successfully",
        data={"users": [UserResponse.model_validate(u).model_dump() for u in users]},
    )


@router.put("/{clerk_id}/role", response_model=ResponseSchema)
async def update_user_role(
    clerk_id: str = Path(..., description="Clerk user ID"),
    body: UserRoleUpdateRequest = Body(...),
    _actor: Actor = Depends(require_admin),
    service: UserService = Depends(get_user_service),
):
    """Set a user's mirrored global role."""
    user = await service.set_role(clerk_id, body.role, must_exist=True)
    return ResponseSchema(
        status="success",
        message="Role updated",
        data=UserResponse.model_validate(user).model_dump(),
    )
