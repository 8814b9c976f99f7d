# tests/conftest.py
import os

# Set up test environment variables BEFORE any other imports
os.environ.setdefault("TESTING", "true")
os.environ.setdefault("ENVIRONMENT", "testing")
default_test_url = "sqlite+aiosqlite:///:memory:"
os.environ.setdefault("TEST_DATABASE_URL", default_test_url)
os.environ.setdefault("DATABASE_URL", os.environ.get("TEST_DATABASE_URL", default_test_url))
os.environ.setdefault("CLERK_SECRET_KEY", "sk_test_dummy")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.dependencies import get_current_actor, validate_token
from app.core.roles import ADMIN, MEMBER, ORG_ADMIN, ORG_MEMBER, Actor
from app.database import get_db
from app.main import app
from app.services.attachment_service import AttachmentLifecycleManager
from app.services.background import BackgroundDispatcher
from app.services.clerk_client import ClerkClient
from app.services.email_service import EmailService
from app.services.realtime import RealtimeBus
from models import Base, Project, Task
from models.base import utcnow

from tests.factories import ProjectFactory, TaskFactory, UserFactory

TEST_DATABASE_URL = os.environ["TEST_DATABASE_URL"]

ORG_ID = "org_test"


@pytest_asyncio.fixture
async def test_db():
    """Create a test database session on a fresh in-memory database."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


# Collaborator mocks
@pytest.fixture
def mock_bus():
    """Real-time bus double that records publishes."""
    bus = MagicMock(spec=RealtimeBus)
    bus.publish = AsyncMock(return_value=0)
    bus.publish_to_users = AsyncMock(return_value=0)
    bus.send = AsyncMock(return_value=True)
    return bus


@pytest.fixture
def mock_storage():
    storage = MagicMock()
    storage.delete_file = AsyncMock(return_value=True)
    return storage


@pytest.fixture
def attachments(mock_storage):
    return AttachmentLifecycleManager(mock_storage)


@pytest.fixture
def mock_clerk():
    clerk = MagicMock(spec=ClerkClient)
    clerk.update_organization_membership = AsyncMock(return_value={})
    clerk.update_user_metadata = AsyncMock(return_value={})
    clerk.list_organization_memberships = AsyncMock(return_value=[])
    clerk.is_organization_member = AsyncMock(return_value=True)
    clerk.delete_organization = AsyncMock(return_value={})
    return clerk


@pytest.fixture
def mock_email():
    email = MagicMock(spec=EmailService)
    email.send_task_assignment = AsyncMock(return_value=True)
    return email


@pytest.fixture
def dispatcher():
    return BackgroundDispatcher()


# Actor fixtures
@pytest.fixture
def admin_actor():
    return Actor(user_id="user_admin", org_id=ORG_ID, org_role=ORG_ADMIN, personal_role=ADMIN)


@pytest.fixture
def second_admin_actor():
    return Actor(user_id="user_admin_2", org_id=ORG_ID, org_role=ORG_ADMIN, personal_role=ADMIN)


@pytest.fixture
def member_actor():
    return Actor(user_id="user_member", org_id=ORG_ID, org_role=ORG_MEMBER, personal_role=MEMBER)


@pytest.fixture
def other_member_actor():
    return Actor(user_id="user_other", org_id=ORG_ID, org_role=ORG_MEMBER, personal_role=MEMBER)


# Model fixtures
@pytest_asyncio.fixture
async def test_users(test_db, admin_actor, second_admin_actor, member_actor, other_member_actor):
    """Mirrored users for every actor fixture."""
    users = [
        UserFactory(clerk_id=admin_actor.user_id, first_name="Ada", last_name="Admin", role=ADMIN),
        UserFactory(clerk_id=second_admin_actor.user_id, role=ADMIN),
        UserFactory(clerk_id=member_actor.user_id, first_name="Mia", last_name="Member"),
        UserFactory(clerk_id=other_member_actor.user_id),
    ]
    test_db.add_all(users)
    await test_db.commit()
    return {user.clerk_id: user for user in users}


@pytest_asyncio.fixture
async def test_project(test_db, admin_actor, member_actor) -> Project:
    """An organization project owned by the admin with the member on it."""
    project = ProjectFactory(
        owner_id=admin_actor.user_id,
        org_id=ORG_ID,
        members=[admin_actor.user_id, member_actor.user_id],
    )
    test_db.add(project)
    await test_db.commit()
    await test_db.refresh(project)
    return project


@pytest_asyncio.fixture
async def test_task(test_db, test_project, member_actor) -> Task:
    task = TaskFactory(
        project_id=test_project.id,
        assignees=[member_actor.user_id],
        attachments=[
            {"name": "spec.pdf", "url": "https://files.test/task-assets/spec.pdf", "type": "pdf"}
        ],
    )
    test_db.add(task)
    await test_db.commit()
    await test_db.refresh(task)
    return task


@pytest_asyncio.fixture
async def approved_task(test_db, test_project, member_actor) -> Task:
    approved_at = utcnow() - timedelta(days=1)
    task = TaskFactory(
        project_id=test_project.id,
        assignees=[member_actor.user_id],
        status="Done",
        is_approved=True,
        approved_at=approved_at,
    )
    test_db.add(task)
    await test_db.commit()
    await test_db.refresh(task)
    return task


# API client fixtures
@pytest_asyncio.fixture
async def api_state(mock_clerk, mock_email, mock_storage):
    """Swap the app's outbound collaborators for doubles for one test."""
    saved = {
        name: getattr(app.state, name)
        for name in ("bus", "dispatcher", "storage", "clerk", "email")
    }
    app.state.bus = RealtimeBus()
    app.state.dispatcher = BackgroundDispatcher()
    app.state.storage = mock_storage
    app.state.clerk = mock_clerk
    app.state.email = mock_email
    yield app.state
    await app.state.dispatcher.drain(timeout=5)
    for name, value in saved.items():
        setattr(app.state, name, value)


@pytest.fixture
def as_actor():
    """Make subsequent requests authenticate as the given actor."""

    def _set(actor: Actor):
        claims = {"sub": actor.user_id, "org_id": actor.org_id, "org_role": actor.org_role}
        app.dependency_overrides[validate_token] = lambda: claims
        app.dependency_overrides[get_current_actor] = lambda: actor

    return _set


@pytest_asyncio.fixture
async def client(test_db, api_state):
    """Create a test client with database dependency override."""

    async def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def admin_client(client, as_actor, admin_actor):
    as_actor(admin_actor)
    return client


@pytest_asyncio.fixture
async def member_client(client, as_actor, member_actor):
    as_actor(member_actor)
    return client
