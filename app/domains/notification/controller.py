"""Notification API controller."""

import logging

from fastapi import APIRouter, Depends, Path

from app.core.dependencies import get_current_actor, get_notification_service, validate_token
from app.core.roles import Actor
from app.schemas.base import ResponseSchema
from app.schemas.notification import NotificationResponse
from app.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/notifications",
    tags=["notifications"],
    dependencies=[Depends(validate_token)],
)


@router.get("/", response_model=ResponseSchema)
async def get_my_notifications(
    actor: Actor = Depends(get_current_actor),
    service: NotificationService = Depends(get_notification_service),
):
    """Get the caller's notifications, newest first."""
    notifications = await service.list_for_user(actor.user_id)
    return ResponseSchema(
        status="success",
        message="Notifications retrieved successfully",
        data={
            "notifications": [
                NotificationResponse.model_validate(n).model_dump() for n in notifications
            ],
            "unread": sum(1 for n in notifications if not n.read),
        },
    )


@router.put("/mark-read", response_model=ResponseSchema)
async def mark_all_read(
    actor: Actor = Depends(get_current_actor),
    service: NotificationService = Depends(get_notification_service),
):
    updated = await service.mark_all_read(actor.user_id)
    return ResponseSchema(status="success", message="Marked as read", data={"updated": updated})


@router.put("/{notification_id}/read", response_model=ResponseSchema)
async def mark_read(
    notification_id: str = Path(..., description="Notification ID"),
    actor: Actor = Depends(get_current_actor),
    service: NotificationService = Depends(get_notification_service),
):
    notification = await service.mark_read(notification_id, actor.user_id)
    return ResponseSchema(
        status="success",
        message="Marked as read",
        data=NotificationResponse.model_validate(notification).model_dump(),
    )


@router.delete("/{notification_id}", response_model=ResponseSchema)
async def dismiss_notification(
    notification_id: str = Path(..., description="Notification ID"),
    actor: Actor = Depends(get_current_actor),
    service: NotificationService = Depends(get_notification_service),
):
    """Dismiss (delete) one of the caller's notifications."""
    await service.dismiss(notification_id, actor.user_id)
    return ResponseSchema(status="success", message="Dismissed")
