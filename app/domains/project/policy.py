"""Who may see a project and reach its tasks."""

from app.core.roles import Actor
from models.project import Project
from models.task import Task


def is_project_in_scope(project: Project, actor: Actor) -> bool:
    """A project is in scope for its owner, and for anyone whose active
    organization is the project's organization."""
    if project.owner_id == actor.user_id:
        return True
    return bool(project.org_id) and project.org_id == actor.org_id


def is_project_visible(project: Project, actor: Actor) -> bool:
    """Personal projects are visible to their owner only. Organization projects
    are visible to listed members and admins while that organization is active
    in the actor's session."""
    if project.owner_id == actor.user_id:
        return True
    if not is_project_in_scope(project, actor):
        return False
    return actor.user_id in (project.members or []) or actor.is_admin


def is_task_in_scope(task: Task, project: Project, actor: Actor) -> bool:
    """Tasks of an organization project are reachable only from inside that
    organization; tasks of a personal project only by its owner and assignees."""
    if project.org_id:
        return is_project_in_scope(project, actor)
    return project.owner_id == actor.user_id or actor.user_id in (task.assignees or [])
