"""Task API controller with FastAPI endpoints."""

import logging

from fastapi import APIRouter, Body, Depends, Path

from app.core.dependencies import (
    get_current_actor,
    get_invite_service,
    get_task_service,
    require_admin,
)
from app.core.roles import Actor
from app.domains.notification.service import InviteService
from app.domains.task.service import TaskService
from app.schemas.base import ResponseSchema
from app.schemas.notification import NotificationResponse
from app.schemas.task import (
    InviteAction,
    InviteResponseRequest,
    SweepReportResponse,
    TaskCreate,
    TaskInviteRequest,
    TaskResponse,
    TaskReviewRequest,
    TaskUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tasks", tags=["tasks"])


def _task_data(task) -> dict:
    return TaskResponse.model_validate(task).model_dump()


@router.post("/", response_model=ResponseSchema, status_code=201)
async def create_task(
    task_data: TaskCreate,
    actor: Actor = Depends(require_admin),
    service: TaskService = Depends(get_task_service),
):
    """Create a new task and notify its assignees."""
    task = await service.create_task(task_data, actor)
    return ResponseSchema(
        status="success", message="Task created successfully", data=_task_data(task)
    )


@router.get("/project/{project_id}", response_model=ResponseSchema)
async def get_project_tasks(
    project_id: str = Path(..., description="Project ID"),
    actor: Actor = Depends(get_current_actor),
    service: TaskService = Depends(get_task_service),
):
    """Get the tasks of a project, newest first."""
    tasks = await service.list_project_tasks(project_id, actor)
    return ResponseSchema(
        status="success",
        message="Tasks retrieved successfully",
        data={"tasks": [_task_data(task) for task in tasks], "total": len(tasks)},
    )


@router.get("/user/{user_id}", response_model=ResponseSchema)
async def get_user_tasks(
    user_id: str = Path(..., description="Clerk user ID"),
    actor: Actor = Depends(get_current_actor),
    service: TaskService = Depends(get_task_service),
):
    tasks = await service.list_user_tasks(user_id, actor)
    return ResponseSchema(
        status="success",
        message="Tasks retrieved successfully",
        data={"tasks": [_task_data(task) for task in tasks], "total": len(tasks)},
    )


@router.post("/sweep-expired", response_model=ResponseSchema)
async def sweep_expired_tasks(
    actor: Actor = Depends(require_admin),
    service: TaskService = Depends(get_task_service),
):
    """Run the expiry sweep now instead of waiting for the scheduler."""
    logger.info(f"Expiry sweep triggered by {actor.user_id}")
    report = await service.sweep_expired()
    return ResponseSchema(
        status="success",
        message=f"Deleted {len(report.deleted)} expired task(s)",
        data=SweepReportResponse(deleted=report.deleted, failed=report.failed).model_dump(),
    )


@router.post("/invites/{notification_id}/respond", response_model=ResponseSchema)
async def respond_to_invite(
    notification_id: str = Path(..., description="Invite notification ID"),
    body: InviteResponseRequest = Body(...),
    actor: Actor = Depends(get_current_actor),
    service: InviteService = Depends(get_invite_service),
):
    """Accept or decline a task invite. An invite can be answered once."""
    task = await service.respond(notification_id, body.action, actor)
    return ResponseSchema(
        status="success",
        message="Invitation accepted" if body.action == InviteAction.ACCEPT else "Invitation declined",
        data=_task_data(task) if task is not None else None,
    )


@router.get("/{task_id}", response_model=ResponseSchema)
async def get_task(
    task_id: str = Path(..., description="Task ID"),
    actor: Actor = Depends(get_current_actor),
    service: TaskService = Depends(get_task_service),
):
    task = await service.get_task(task_id, actor)
    return ResponseSchema(
        status="success", message="Task retrieved successfully", data=_task_data(task)
    )


@router.put("/{task_id}", response_model=ResponseSchema)
async def update_task(
    task_id: str = Path(..., description="Task ID"),
    task_data: TaskUpdate = Body(...),
    actor: Actor = Depends(get_current_actor),
    service: TaskService = Depends(get_task_service),
):
    """Update a task. Assignees without an admin role may change status and attachments only."""
    task = await service.update_task(task_id, task_data, actor)
    return ResponseSchema(
        status="success", message="Task updated successfully", data=_task_data(task)
    )


@router.delete("/{task_id}", response_model=ResponseSchema)
async def delete_task(
    task_id: str = Path(..., description="Task ID"),
    actor: Actor = Depends(require_admin),
    service: TaskService = Depends(get_task_service),
):
    await service.delete_task(task_id, actor)
    return ResponseSchema(status="success", message="Task removed")


@router.post("/{task_id}/approve", response_model=ResponseSchema)
async def approve_task(
    task_id: str = Path(..., description="Task ID"),
    review: TaskReviewRequest | None = None,
    actor: Actor = Depends(require_admin),
    service: TaskService = Depends(get_task_service),
):
    task = await service.approve_task(task_id, review.comment if review else None, actor)
    return ResponseSchema(status="success", message="Task approved", data=_task_data(task))


@router.post("/{task_id}/disapprove", response_model=ResponseSchema)
async def disapprove_task(
    task_id: str = Path(..., description="Task ID"),
    review: TaskReviewRequest | None = None,
    actor: Actor = Depends(require_admin),
    service: TaskService = Depends(get_task_service),
):
    task = await service.disapprove_task(
        task_id, review.comment if review else None, actor
    )
    return ResponseSchema(
        status="success", message="Task sent back for changes", data=_task_data(task)
    )


@router.post("/{task_id}/invite", response_model=ResponseSchema)
async def invite_to_task(
    task_id: str = Path(..., description="Task ID"),
    invite: TaskInviteRequest = Body(...),
    actor: Actor = Depends(get_current_actor),
    service: InviteService = Depends(get_invite_service),
):
    """Ask another user to help on a task."""
    notification = await service.invite(task_id, invite.user_id, actor)
    return ResponseSchema(
        status="success",
        message="Invitation sent successfully",
        data=NotificationResponse.model_validate(notification).model_dump(),
    )
