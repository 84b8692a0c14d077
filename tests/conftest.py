"""Shared fixtures: an in-memory database per test, services bound to it,
and an HTTP client over the ASGI app."""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.pool import StaticPool

from app.database import Base, build_engine, build_session_factory
from app.main import app, install_services
from app.models.community import Community
from app.models.community_invite import CommunityInvite
from app.models.community_membership import CommunityMember
from app.models.project import Project
from app.models.task import Task
from app.models.user import User
from app.routers.auth import create_access_token
from app.services.membership import AuthenticatedActor, MembershipManager
from app.services.projects import ProjectService
from app.services.tasks import TaskService


@pytest.fixture
async def engine():
    engine = build_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def make_user(session_factory):
    async def _make(name: str) -> AuthenticatedActor:
        async with session_factory() as session:
            user = User(email=f"{name}@example.com", full_name=name.title())
            session.add(user)
            await session.commit()
            return AuthenticatedActor(user_id=user.id)

    return _make


@pytest.fixture
async def alice(make_user):
    return await make_user("alice")


@pytest.fixture
async def bob(make_user):
    return await make_user("bob")


@pytest.fixture
async def carol(make_user):
    return await make_user("carol")


@pytest.fixture
async def dave(make_user):
    return await make_user("dave")


@pytest.fixture
def manager(session_factory):
    return MembershipManager(session_factory)


@pytest.fixture
def project_service(session_factory):
    return ProjectService(session_factory)


@pytest.fixture
def task_service(session_factory):
    return TaskService(session_factory)


@pytest.fixture
def snapshot(session_factory):
    """Capture every row the membership core can touch, for before/after checks."""

    async def _snapshot():
        async with session_factory() as session:
            communities = (await session.execute(
                select(Community.id, Community.name, Community.description, Community.is_private)
                .order_by(Community.id)
            )).all()
            members = (await session.execute(
                select(CommunityMember.community_id, CommunityMember.user_id, CommunityMember.role)
                .order_by(CommunityMember.community_id, CommunityMember.user_id)
            )).all()
            invites = (await session.execute(select(CommunityInvite.token).order_by(CommunityInvite.id))).all()
            projects = (await session.execute(select(Project.id).order_by(Project.id))).all()
            tasks = (await session.execute(
                select(Task.id, Task.assigned_to, Task.title).order_by(Task.id)
            )).all()
            return {
                "communities": communities,
                "members": members,
                "invites": invites,
                "projects": projects,
                "tasks": tasks,
            }

    return _snapshot


@pytest.fixture
async def client(session_factory):
    install_services(app, session_factory)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest.fixture
def auth_headers():
    """Bearer headers for an actor, as the JWT dependency expects them."""

    def _headers(actor: AuthenticatedActor) -> dict:
        token = create_access_token({"sub": str(actor.user_id)})
        return {"Authorization": f"Bearer {token}"}

    return _headers
