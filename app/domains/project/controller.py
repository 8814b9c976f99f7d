"""Project API controller with FastAPI endpoints."""

import logging

from fastapi import APIRouter, Body, Depends, Path

from app.core.dependencies import get_current_actor, get_project_service, require_admin
from app.core.roles import Actor
from app.domains.project.service import ProjectService
from app.schemas.base import ResponseSchema
from app.schemas.project import (
    ProjectCreate,
    ProjectEventCreate,
    ProjectEventResponse,
    ProjectMemberAdd,
    ProjectMemberRemove,
    ProjectMemberResponse,
    ProjectResponse,
    ProjectUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/projects", tags=["projects"])


def _project_data(project) -> dict:
    return ProjectResponse.model_validate(project).model_dump()


@router.post("/", response_model=ResponseSchema, status_code=201)
async def create_project(
    project_data: ProjectCreate,
    actor: Actor = Depends(require_admin),
    service: ProjectService = Depends(get_project_service),
):
    """Create a new project."""
    project = await service.create_project(project_data, actor)
    return ResponseSchema(
        status="success", message="Project created successfully", data=_project_data(project)
    )


@router.get("/", response_model=ResponseSchema)
async def get_projects(
    actor: Actor = Depends(get_current_actor),
    service: ProjectService = Depends(get_project_service),
):
    """Get the projects visible in the current organization (or personal workspace)."""
    projects = await service.list_projects(actor)
    return ResponseSchema(
        status="success",
        message="Projects retrieved successfully",
        data={"projects": [_project_data(p) for p in projects], "total": len(projects)},
    )


@router.get("/{project_id}", response_model=ResponseSchema)
async def get_project(
    project_id: str = Path(..., description="Project ID"),
    actor: Actor = Depends(get_current_actor),
    service: ProjectService = Depends(get_project_service),
):
    """Get a specific project by ID."""
    project = await service.get_project(project_id, actor)
    return ResponseSchema(
        status="success", message="Project retrieved successfully", data=_project_data(project)
    )


@router.put("/{project_id}/settings", response_model=ResponseSchema)
async def update_project_settings(
    project_id: str = Path(..., description="Project ID"),
    project_data: ProjectUpdate = Body(...),
    actor: Actor = Depends(require_admin),
    service: ProjectService = Depends(get_project_service),
):
    project = await service.update_project(project_id, project_data, actor)
    return ResponseSchema(
        status="success", message="Project updated successfully", data=_project_data(project)
    )


@router.delete("/{project_id}", response_model=ResponseSchema)
async def delete_project(
    project_id: str = Path(..., description="Project ID"),
    actor: Actor = Depends(require_admin),
    service: ProjectService = Depends(get_project_service),
):
    """Delete a project with its tasks, activity, files and events."""
    await service.delete_project(project_id, actor)
    return ResponseSchema(status="success", message="Project and all associated data removed")


@router.get("/{project_id}/members", response_model=ResponseSchema)
async def get_project_members(
    project_id: str = Path(..., description="Project ID"),
    actor: Actor = Depends(get_current_actor),
    service: ProjectService = Depends(get_project_service),
):
    members = await service.list_members(project_id, actor)
    return ResponseSchema(
        status="success",
        message="Members retrieved successfully",
        data={"members": [ProjectMemberResponse.model_validate(m).model_dump() for m in members]},
    )


@router.put("/{project_id}/members", response_model=ResponseSchema)
async def add_project_member(
    project_id: str = Path(..., description="Project ID"),
    member: ProjectMemberAdd = Body(...),
    actor: Actor = Depends(get_current_actor),
    service: ProjectService = Depends(get_project_service),
):
    user = await service.add_member(project_id, str(member.email), actor)
    return ResponseSchema(
        status="success",
        message="Member added",
        data=ProjectMemberResponse.model_validate(user).model_dump(),
    )


@router.delete("/{project_id}/members", response_model=ResponseSchema)
async def remove_project_member(
    project_id: str = Path(..., description="Project ID"),
    member: ProjectMemberRemove = Body(...),
    actor: Actor = Depends(require_admin),
    service: ProjectService = Depends(get_project_service),
):
    project = await service.remove_member(project_id, member.user_id, actor)
    return ResponseSchema(status="success", message="Member removed", data=_project_data(project))


@router.post("/{project_id}/events", response_model=ResponseSchema, status_code=201)
async def create_project_event(
    project_id: str = Path(..., description="Project ID"),
    event_data: ProjectEventCreate = Body(...),
    actor: Actor = Depends(get_current_actor),
    service: ProjectService = Depends(get_project_service),
):
    """Schedule a meeting on a project."""
    event = await service.create_event(project_id, event_data, actor)
    return ResponseSchema(
        status="success",
        message="Event created",
        data=ProjectEventResponse.model_validate(event).model_dump(),
    )


@router.get("/{project_id}/events", response_model=ResponseSchema)
async def get_project_events(
    project_id: str = Path(..., description="Project ID"),
    actor: Actor = Depends(get_current_actor),
    service: ProjectService = Depends(get_project_service),
):
    """Get the upcoming meetings of a project, soonest first."""
    events = await service.list_upcoming_events(project_id, actor)
    return ResponseSchema(
        status="success",
        message="Events retrieved successfully",
        data={"events": [ProjectEventResponse.model_validate(e).model_dump() for e in events]},
    )
