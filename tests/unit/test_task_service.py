"""Unit tests for the task service: updates, approval workflow and cascades."""

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from app.core.roles import ADMIN, ORG_ADMIN, Actor
from app.exceptions.base import AppPermissionError, InternalServerError
from app.exceptions.project import ProjectNotFoundError
from app.exceptions.task import (
    InvalidTaskOperationError,
    TaskNotFoundError,
    TaskPermissionError,
)
from app.domains.task.service import TaskService
from app.schemas.task import AttachmentSchema, TaskCreate, TaskStatus, TaskUpdate
from app.services.notification_service import NotificationType
from app.services.realtime import RealtimeEvent, project_room
from models import Activity, Notification, Task
from models.base import utcnow

from tests.factories import ActivityFactory, NotificationFactory, ProjectFactory, TaskFactory
from tests.helpers import published_events


@pytest.fixture
def service(test_db, mock_bus, attachments, dispatcher, mock_email):
    return TaskService(test_db, mock_bus, attachments, dispatcher, mock_email)


async def notifications_for(db, user_id, type=None):
    stmt = select(Notification).where(Notification.user_id == user_id)
    if type:
        stmt = stmt.where(Notification.type == type)
    result = await db.execute(stmt)
    return list(result.scalars().all())


class TestCreateTask:
    @pytest.mark.asyncio
    async def test_assignees_notified_but_not_creator(
        self, service, test_db, test_users, test_project, admin_actor, member_actor, other_member_actor
    ):
        data = TaskCreate(
            project_id=test_project.id,
            title="  Ship release  ",
            assignees=[member_actor.user_id, other_member_actor.user_id, admin_actor.user_id],
        )

        task = await service.create_task(data, admin_actor)

        assert task.title == "Ship release"
        for user_id in (member_actor.user_id, other_member_actor.user_id):
            assigned = await notifications_for(test_db, user_id, NotificationType.TASK_ASSIGN.value)
            assert len(assigned) == 1
            assert assigned[0].message == 'You have been assigned to task: "Ship release"'
            assert assigned[0].metadata_ == {"task_id": str(task.id)}
        assert await notifications_for(test_db, admin_actor.user_id) == []
        assert (project_room(test_project.id), RealtimeEvent.TASK_CREATED) in published_events(
            service.bus
        )

    @pytest.mark.asyncio
    async def test_assignment_emails_are_detached(
        self, service, dispatcher, mock_email, test_users, test_project, admin_actor, member_actor
    ):
        data = TaskCreate(project_id=test_project.id, title="Email me", assignees=[member_actor.user_id])

        await service.create_task(data, admin_actor)
        await dispatcher.drain(timeout=1)

        mock_email.send_task_assignment.assert_awaited_once()
        kwargs = mock_email.send_task_assignment.await_args.kwargs
        assert kwargs["to_email"] == test_users[member_actor.user_id].email
        assert kwargs["task_title"] == "Email me"

    @pytest.mark.asyncio
    async def test_invisible_project(self, service, test_project, other_member_actor):
        data = TaskCreate(project_id=test_project.id, title="Nope")
        with pytest.raises(ProjectNotFoundError):
            await service.create_task(data, other_member_actor)

    def test_due_date_in_past_rejected(self, test_project):
        with pytest.raises(ValueError):
            TaskCreate(project_id=test_project.id, title="Late", due_date=utcnow() - timedelta(days=2))


class TestUpdateTask:
    @pytest.mark.asyncio
    async def test_assignee_cannot_change_title_but_can_change_status(
        self, service, test_db, test_users, test_project, test_task, admin_actor, member_actor
    ):
        original_title = test_task.title

        task = await service.update_task(
            test_task.id, TaskUpdate(status=TaskStatus.DONE, title="new title"), member_actor
        )

        assert task.status == "Done"
        assert task.title == original_title

        reviews = await notifications_for(test_db, admin_actor.user_id, NotificationType.INFO.value)
        assert len(reviews) == 1
        assert reviews[0].metadata_ == {"task_id": str(test_task.id)}

    @pytest.mark.asyncio
    async def test_owner_not_notified_of_own_change(
        self, service, test_db, test_project, test_task, admin_actor
    ):
        await service.update_task(test_task.id, TaskUpdate(status=TaskStatus.DONE), admin_actor)

        assert await notifications_for(test_db, admin_actor.user_id) == []

    @pytest.mark.asyncio
    async def test_admin_can_change_title(self, service, test_task, admin_actor):
        task = await service.update_task(test_task.id, TaskUpdate(title="Renamed"), admin_actor)
        assert task.title == "Renamed"

    @pytest.mark.asyncio
    async def test_non_assignee_rejected(self, service, test_task, other_member_actor):
        with pytest.raises(TaskPermissionError):
            await service.update_task(test_task.id, TaskUpdate(status=TaskStatus.DONE), other_member_actor)

    @pytest.mark.asyncio
    async def test_empty_patch_is_noop(self, service, mock_bus, test_task, member_actor):
        task = await service.update_task(test_task.id, TaskUpdate(), member_actor)

        assert task.status == "To Do"
        mock_bus.publish.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_removed_attachments_are_deleted(
        self, service, mock_storage, test_task, member_actor
    ):
        kept = AttachmentSchema(name="new.png", url="https://files.test/task-assets/new.png")

        task = await service.update_task(test_task.id, TaskUpdate(attachments=[kept]), member_actor)

        mock_storage.delete_file.assert_awaited_once_with("https://files.test/task-assets/spec.pdf")
        assert [a["url"] for a in task.attachments] == ["https://files.test/task-assets/new.png"]

    @pytest.mark.asyncio
    async def test_status_change_recorded_in_activity(
        self, service, test_db, test_users, test_task, member_actor
    ):
        await service.update_task(
            test_task.id, TaskUpdate(status=TaskStatus.IN_PROGRESS, priority="HIGH"), member_actor
        )

        result = await test_db.execute(select(Activity).where(Activity.task_id == test_task.id))
        activities = list(result.scalars().all())
        assert len(activities) == 1
        assert activities[0].type == "STATUS_CHANGE"
        assert activities[0].user_name == "Mia Member"

    @pytest.mark.asyncio
    async def test_leaving_done_clears_approval(self, service, approved_task, admin_actor):
        task = await service.update_task(
            approved_task.id, TaskUpdate(status=TaskStatus.IN_PROGRESS), admin_actor
        )

        assert task.is_approved is False
        assert task.approved_at is None

    @pytest.mark.asyncio
    async def test_malformed_id_is_not_found(self, service, member_actor):
        with pytest.raises(TaskNotFoundError):
            await service.update_task("not-a-uuid", TaskUpdate(), member_actor)


class TestApproval:
    @pytest.mark.asyncio
    async def test_only_done_tasks_can_be_approved(self, service, test_task, admin_actor):
        with pytest.raises(InvalidTaskOperationError):
            await service.approve_task(test_task.id, None, admin_actor)

    @pytest.mark.asyncio
    async def test_approve_sets_timestamp_and_notifies(
        self, service, test_db, test_users, test_project, admin_actor, member_actor
    ):
        task = TaskFactory(project_id=test_project.id, status="Done", assignees=[member_actor.user_id])
        test_db.add(task)
        await test_db.commit()

        approved = await service.approve_task(task.id, "Great work", admin_actor)

        assert approved.is_approved is True
        assert approved.approved_at is not None
        assert approved.comments[-1]["kind"] == "approval"
        assert approved.comments[-1]["text"] == "Great work"
        assert approved.comments[-1]["author_name"] == "Ada Admin"
        assert len(await notifications_for(test_db, member_actor.user_id, "TASK_APPROVED")) == 1

    @pytest.mark.asyncio
    async def test_disapprove_returns_to_in_progress(
        self, service, test_db, approved_task, admin_actor, member_actor
    ):
        task = await service.disapprove_task(approved_task.id, None, admin_actor)

        assert task.status == "In Progress"
        assert task.is_approved is False
        assert task.approved_at is None
        assert task.comments[-1]["kind"] == "rejection"
        assert len(await notifications_for(test_db, member_actor.user_id, "TASK_REJECTED")) == 1

    @pytest.mark.asyncio
    async def test_disapprove_requires_done(self, service, test_task, admin_actor):
        with pytest.raises(InvalidTaskOperationError):
            await service.disapprove_task(test_task.id, None, admin_actor)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("action", ["approve_task", "disapprove_task"])
    async def test_commit_failure_rolls_back(
        self, service, test_db, mock_bus, approved_task, admin_actor, monkeypatch, action
    ):
        task_id = approved_task.id
        rollback = AsyncMock(wraps=test_db.rollback)
        monkeypatch.setattr(test_db, "commit", AsyncMock(side_effect=SQLAlchemyError("disk full")))
        monkeypatch.setattr(test_db, "rollback", rollback)

        with pytest.raises(InternalServerError):
            await getattr(service, action)(task_id, None, admin_actor)

        rollback.assert_awaited_once()
        mock_bus.publish.assert_not_awaited()


class TestDeleteTask:
    @pytest.mark.asyncio
    async def test_cascade_removes_files_activity_and_invites(
        self, service, test_db, mock_storage, mock_bus, test_task, admin_actor, member_actor
    ):
        task_id = test_task.id
        project_id = test_task.project_id
        test_db.add_all(
            [
                ActivityFactory(
                    task_id=task_id,
                    type="UPLOAD",
                    metadata_={"file_url": "https://files.test/task-assets/upload.png"},
                ),
                ActivityFactory(task_id=task_id),
                NotificationFactory(
                    user_id="user_other",
                    type="TASK_INVITE",
                    metadata_={"task_id": str(task_id), "sender_id": member_actor.user_id},
                ),
            ]
        )
        await test_db.commit()

        await service.delete_task(task_id, admin_actor)

        deleted_urls = {c.args[0] for c in mock_storage.delete_file.await_args_list}
        assert deleted_urls == {
            "https://files.test/task-assets/spec.pdf",
            "https://files.test/task-assets/upload.png",
        }
        assert (await test_db.execute(select(Task).where(Task.id == task_id))).first() is None
        assert (await test_db.execute(select(Activity).where(Activity.task_id == task_id))).first() is None
        assert await notifications_for(test_db, "user_other", "TASK_INVITE") == []

        events = published_events(mock_bus)
        assert (project_room(project_id), RealtimeEvent.TASK_DELETED) in events
        mock_bus.publish_to_users.assert_awaited_once_with(
            [member_actor.user_id], RealtimeEvent.DASHBOARD_REFRESH, {}
        )

    @pytest.mark.asyncio
    async def test_task_without_files_skips_storage(
        self, service, test_db, mock_storage, test_project, admin_actor
    ):
        task = TaskFactory(project_id=test_project.id)
        test_db.add(task)
        await test_db.commit()

        await service.delete_task(task.id, admin_actor)

        mock_storage.delete_file.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_blob_failure_does_not_fail_delete(
        self, service, test_db, mock_storage, test_task, admin_actor
    ):
        task_id = test_task.id
        mock_storage.delete_file.side_effect = RuntimeError("storage down")

        await service.delete_task(task_id, admin_actor)

        assert (await test_db.execute(select(Task).where(Task.id == task_id))).first() is None


class TestSweepExpired:
    @pytest.mark.asyncio
    async def test_only_old_approvals_are_deleted(
        self, service, test_db, mock_storage, test_project, admin_actor
    ):
        now = utcnow()
        old = TaskFactory(
            project_id=test_project.id,
            status="Done",
            is_approved=True,
            approved_at=now - timedelta(days=20),
            attachments=[{"name": "old.png", "url": "https://files.test/task-assets/old.png"}],
        )
        recent = TaskFactory(
            project_id=test_project.id,
            status="Done",
            is_approved=True,
            approved_at=now - timedelta(days=5),
            attachments=[{"name": "new.png", "url": "https://files.test/task-assets/new.png"}],
        )
        test_db.add_all([old, recent])
        await test_db.commit()
        old_id, recent_id = old.id, recent.id

        report = await service.sweep_expired(now=now)

        assert report.deleted == [old_id]
        assert report.failed == []
        remaining = (await test_db.execute(select(Task.id))).scalars().all()
        assert recent_id in remaining
        assert old_id not in remaining
        mock_storage.delete_file.assert_awaited_once_with("https://files.test/task-assets/old.png")

        owner_notes = await notifications_for(
            test_db, admin_actor.user_id, NotificationType.TASK_AUTO_DELETED.value
        )
        assert len(owner_notes) == 1

    @pytest.mark.asyncio
    async def test_one_failure_does_not_stop_the_sweep(self, service, test_db, test_project, monkeypatch):
        now = utcnow()
        tasks = [
            TaskFactory(
                project_id=test_project.id,
                status="Done",
                is_approved=True,
                approved_at=now - timedelta(days=30),
            )
            for _ in range(2)
        ]
        test_db.add_all(tasks)
        await test_db.commit()
        bad_id, good_id = tasks[0].id, tasks[1].id

        original = service._expire_task

        async def flaky(task_id):
            if task_id == bad_id:
                raise RuntimeError("boom")
            await original(task_id)

        monkeypatch.setattr(service, "_expire_task", flaky)

        report = await service.sweep_expired(now=now)

        assert report.deleted == [good_id]
        assert report.failed == [bad_id]


class TestTaskReads:
    @pytest.mark.asyncio
    async def test_list_user_tasks_exact_match(
        self, service, test_db, test_project, member_actor
    ):
        mine = TaskFactory(project_id=test_project.id, assignees=[member_actor.user_id])
        lookalike = TaskFactory(project_id=test_project.id, assignees=[f"{member_actor.user_id}_2"])
        test_db.add_all([mine, lookalike])
        await test_db.commit()

        tasks = await service.list_user_tasks(member_actor.user_id, member_actor)

        assert [t.id for t in tasks] == [mine.id]

    @pytest.mark.asyncio
    async def test_cannot_list_someone_elses_tasks(self, service, member_actor):
        with pytest.raises(Exception) as exc_info:
            await service.list_user_tasks("user_other", member_actor)
        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_get_task_requires_assignment(self, service, test_task, other_member_actor, admin_actor):
        with pytest.raises(TaskPermissionError):
            await service.get_task(test_task.id, other_member_actor)
        assert (await service.get_task(str(test_task.id), admin_actor)).id == test_task.id


@pytest.fixture
def foreign_admin_actor():
    return Actor(user_id="user_foreign", org_id="org_other", org_role=ORG_ADMIN, personal_role=ADMIN)


class TestOrganizationScope:
    @pytest.mark.asyncio
    async def test_admin_of_another_org_cannot_delete(
        self, service, test_db, mock_storage, test_task, foreign_admin_actor
    ):
        task_id = test_task.id

        with pytest.raises(TaskNotFoundError):
            await service.delete_task(task_id, foreign_admin_actor)

        assert (await test_db.execute(select(func.count()).select_from(Task))).scalar_one() == 1
        mock_storage.delete_file.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_admin_of_another_org_cannot_read_or_change(
        self, service, mock_bus, approved_task, foreign_admin_actor
    ):
        task_id = approved_task.id

        with pytest.raises(TaskNotFoundError):
            await service.get_task(task_id, foreign_admin_actor)
        with pytest.raises(TaskNotFoundError):
            await service.update_task(task_id, TaskUpdate(title="hijacked"), foreign_admin_actor)
        with pytest.raises(TaskNotFoundError):
            await service.approve_task(task_id, None, foreign_admin_actor)
        with pytest.raises(TaskNotFoundError):
            await service.disapprove_task(task_id, None, foreign_admin_actor)

        assert approved_task.title != "hijacked"
        assert approved_task.is_approved is True
        mock_bus.publish.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_admin_without_active_org_is_out_of_scope(self, service, test_task):
        with pytest.raises(TaskNotFoundError):
            await service.get_task(test_task.id, Actor(user_id="user_root", personal_role=ADMIN))

    @pytest.mark.asyncio
    async def test_personal_project_reachable_by_owner_and_assignees(
        self, service, test_db, admin_actor, member_actor
    ):
        project = ProjectFactory(owner_id="user_solo", org_id=None)
        test_db.add(project)
        await test_db.flush()
        task = TaskFactory(project_id=project.id, assignees=[member_actor.user_id])
        test_db.add(task)
        await test_db.commit()

        assert (await service.get_task(task.id, member_actor)).id == task.id
        with pytest.raises(TaskNotFoundError):
            await service.get_task(task.id, admin_actor)

    @pytest.mark.asyncio
    async def test_admin_lists_others_tasks_in_own_org_only(
        self, service, test_task, admin_actor, member_actor, foreign_admin_actor
    ):
        assert [t.id for t in await service.list_user_tasks(member_actor.user_id, admin_actor)] == [
            test_task.id
        ]
        assert await service.list_user_tasks(member_actor.user_id, foreign_admin_actor) == []
        with pytest.raises(AppPermissionError):
            await service.list_user_tasks(
                member_actor.user_id, Actor(user_id="user_root", personal_role=ADMIN)
            )
