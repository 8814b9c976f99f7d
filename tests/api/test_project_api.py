"""API tests for project, notification and activity endpoints."""

from datetime import timedelta

import pytest
from fastapi import status
from httpx import AsyncClient

from models.base import utcnow

from tests.factories import NotificationFactory


class TestProjectEndpoints:
    @pytest.mark.asyncio
    async def test_admin_creates_project(self, admin_client: AsyncClient, admin_actor):
        response = await admin_client.post("/api/projects/", json={"title": "  Apollo  "})

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()["data"]
        assert data["title"] == "Apollo"
        assert data["description"] == "No Description"
        assert data["org_id"] == admin_actor.org_id
        assert data["members"] == [admin_actor.user_id]

    @pytest.mark.asyncio
    async def test_member_cannot_create_project(self, member_client: AsyncClient):
        response = await member_client.post("/api/projects/", json={"title": "Nope"})
        assert response.status_code == status.HTTP_403_FORBIDDEN

    @pytest.mark.asyncio
    async def test_hidden_project_is_not_found(self, client: AsyncClient, as_actor, other_member_actor, test_project):
        as_actor(other_member_actor)

        listed = await client.get("/api/projects/")
        fetched = await client.get(f"/api/projects/{test_project.id}")

        assert listed.json()["data"]["projects"] == []
        assert fetched.status_code == status.HTTP_404_NOT_FOUND

    @pytest.mark.asyncio
    async def test_add_member_by_email(
        self, admin_client: AsyncClient, test_users, test_project, other_member_actor
    ):
        email = test_users[other_member_actor.user_id].email

        added = await admin_client.put(f"/api/projects/{test_project.id}/members", json={"email": email})
        again = await admin_client.put(f"/api/projects/{test_project.id}/members", json={"email": email})
        unknown = await admin_client.put(
            f"/api/projects/{test_project.id}/members", json={"email": "ghost@example.com"}
        )

        assert added.status_code == status.HTTP_200_OK
        assert added.json()["data"]["clerk_id"] == other_member_actor.user_id
        assert again.status_code == status.HTTP_409_CONFLICT
        assert unknown.status_code == status.HTTP_404_NOT_FOUND
        assert unknown.json()["message"] == "User not found in the system."

    @pytest.mark.asyncio
    async def test_owner_cannot_be_removed(self, admin_client: AsyncClient, test_project, admin_actor):
        response = await admin_client.request(
            "DELETE", f"/api/projects/{test_project.id}/members", json={"user_id": admin_actor.user_id}
        )
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    @pytest.mark.asyncio
    async def test_delete_project(self, admin_client: AsyncClient, test_task, mock_storage):
        project_id = test_task.project_id

        response = await admin_client.delete(f"/api/projects/{project_id}")
        follow_up = await admin_client.get(f"/api/tasks/project/{project_id}")

        assert response.status_code == status.HTTP_200_OK
        mock_storage.delete_file.assert_awaited_once()
        assert follow_up.status_code == status.HTTP_404_NOT_FOUND

    @pytest.mark.asyncio
    async def test_events(self, member_client: AsyncClient, test_project):
        start = (utcnow() + timedelta(days=1)).isoformat()

        created = await member_client.post(
            f"/api/projects/{test_project.id}/events", json={"title": "Planning", "start_date": start}
        )
        listed = await member_client.get(f"/api/projects/{test_project.id}/events")

        assert created.status_code == status.HTTP_201_CREATED
        assert [e["title"] for e in listed.json()["data"]["events"]] == ["Planning"]


class TestActivityEndpoints:
    @pytest.mark.asyncio
    async def test_comment_and_list(self, member_client: AsyncClient, test_users, test_task):
        posted = await member_client.post(f"/api/tasks/{test_task.id}/activity", json={"content": "On it"})
        listed = await member_client.get(f"/api/tasks/{test_task.id}/activity")

        assert posted.status_code == status.HTTP_201_CREATED
        assert posted.json()["data"]["user_name"] == "Mia Member"
        assert [a["content"] for a in listed.json()["data"]["activities"]] == ["On it"]

    @pytest.mark.asyncio
    async def test_non_assignee_cannot_comment(self, client: AsyncClient, as_actor, other_member_actor, test_task):
        as_actor(other_member_actor)

        response = await client.post(f"/api/tasks/{test_task.id}/activity", json={"content": "Hi"})

        assert response.status_code == status.HTTP_403_FORBIDDEN


class TestNotificationEndpoints:
    @pytest.mark.asyncio
    async def test_read_flow(self, member_client: AsyncClient, test_db, member_actor):
        notes = [NotificationFactory(user_id=member_actor.user_id) for _ in range(2)]
        test_db.add_all(notes + [NotificationFactory(user_id="user_other")])
        await test_db.commit()
        first_id = str(notes[0].id)

        listed = await member_client.get("/api/notifications/")
        assert listed.json()["data"]["unread"] == 2

        marked = await member_client.put(f"/api/notifications/{first_id}/read")
        assert marked.json()["data"]["read"] is True

        all_marked = await member_client.put("/api/notifications/mark-read")
        assert all_marked.json()["data"]["updated"] == 1

        dismissed = await member_client.delete(f"/api/notifications/{first_id}")
        assert dismissed.status_code == status.HTTP_200_OK
        listed = await member_client.get("/api/notifications/")
        assert len(listed.json()["data"]["notifications"]) == 1

    @pytest.mark.asyncio
    async def test_cannot_touch_someone_elses_notification(self, member_client: AsyncClient, test_db):
        note = NotificationFactory(user_id="user_other")
        test_db.add(note)
        await test_db.commit()

        response = await member_client.delete(f"/api/notifications/{note.id}")

        assert response.status_code == status.HTTP_404_NOT_FOUND
