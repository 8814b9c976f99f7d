"""Activity ledger endpoints, nested under tasks."""

from fastapi import APIRouter, Depends, Path

from app.core.dependencies import get_activity_service, get_current_actor, get_task_service
from app.core.roles import Actor
from app.domains.activity.service import ActivityService
from app.domains.task.service import TaskService
from app.schemas.activity import ActivityCreate, ActivityResponse
from app.schemas.base import ResponseSchema

router = APIRouter(prefix="/api/tasks", tags=["activity"])


@router.get("/{task_id}/activity", response_model=ResponseSchema)
async def get_task_activity(
    task_id: str = Path(..., description="Task ID"),
    actor: Actor = Depends(get_current_actor),
    tasks: TaskService = Depends(get_task_service),
    service: ActivityService = Depends(get_activity_service),
):
    """Get a task's history, newest first."""
    task = await tasks.get_task(task_id, actor)
    activities = await service.list_for_task(task.id)
    return ResponseSchema(
        status="success",
        message="Activity retrieved successfully",
        data={"activities": [ActivityResponse.model_validate(a).model_dump() for a in activities]},
    )


@router.post("/{task_id}/activity", response_model=ResponseSchema, status_code=201)
async def post_task_activity(
    activity_data: ActivityCreate,
    task_id: str = Path(..., description="Task ID"),
    actor: Actor = Depends(get_current_actor),
    tasks: TaskService = Depends(get_task_service),
    service: ActivityService = Depends(get_activity_service),
):
    """Comment on a task or record an uploaded file."""
    task = await tasks.get_task(task_id, actor)
    activity = await service.post(task, actor, activity_data)
    return ResponseSchema(
        status="success",
        message="Activity recorded",
        data=ActivityResponse.model_validate(activity).model_dump(),
    )
