"""
Shared test fixtures for the TaskFlow test suite.
"""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from starlette.testclient import TestClient

from taskflow.config import Settings
from taskflow.realtime.broadcaster import RoomBroadcaster
from taskflow.realtime.registry import Connection, ConnectionRegistry
from taskflow.services.auth import create_access_token
from taskflow.services.membership import Membership, ProjectSummary


class FakeMembershipResolver:
    """
    In-memory membership resolver.

    ``gate`` (an asyncio.Event) holds every query until set, to simulate a
    slow database; ``fail`` makes every query raise.
    """

    def __init__(self):
        self.projects: dict[int, dict] = {}
        self.members: dict[int, set[int]] = {}
        self.gate: asyncio.Event | None = None
        self.fail = False
        self.calls: list[tuple] = []

    def add_project(self, project_id: int, name: str, members=(), active: bool = True):
        self.projects[project_id] = {"name": name, "active": active}
        self.members[project_id] = set(members)

    async def _wait(self, *call):
        self.calls.append(call)
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise ConnectionError("database unreachable")

    async def list_active_projects_for(self, user_id):
        await self._wait("list_active_projects_for", user_id)
        return [
            ProjectSummary(project_id=pid, project_name=p["name"])
            for pid, p in sorted(self.projects.items())
            if p["active"] and user_id in self.members.get(pid, ())
        ]

    async def get_membership(self, project_id, user_id):
        await self._wait("get_membership", project_id, user_id)
        project = self.projects.get(project_id)
        if project is None or user_id not in self.members.get(project_id, ()):
            return None
        return Membership(
            project_id=project_id,
            project_name=project["name"],
            project_active=project["active"],
            user_id=user_id,
            user_profile={"id": user_id, "name": f"User {user_id}"},
        )

    async def is_member(self, project_id, user_id):
        await self._wait("is_member", project_id, user_id)
        return user_id in self.members.get(project_id, ())

    async def list_member_ids(self, project_id):
        await self._wait("list_member_ids", project_id)
        return sorted(self.members.get(project_id, ()))


def drain(connection: Connection) -> list[dict]:
    """Pop every queued frame from a connection's outbox."""
    messages = []
    while not connection.outbox.empty():
        messages.append(connection.outbox.get_nowait())
    return messages


def types_of(messages: list[dict]) -> list[str]:
    return [m["type"] for m in messages]


@pytest.fixture
def test_settings():
    """Settings configured for testing (no real DB connection needed)."""
    return Settings(
        db_host="localhost",
        db_port=5432,
        db_name="taskflow_test",
        db_user="test",
        db_password="test",
        jwt_access_secret="test-access-secret-0123456789abcdef",
        jwt_refresh_secret="test-refresh-secret-0123456789abcdef",
        debug=True,
    )


@pytest.fixture
def resolver():
    return FakeMembershipResolver()


@pytest.fixture
def registry():
    return ConnectionRegistry()


@pytest.fixture
def broadcaster(registry, resolver):
    return RoomBroadcaster(registry, resolver)


@pytest.fixture
def make_token(test_settings):
    """Build a valid access token for a user id."""

    def _make(user_id: int, email: str | None = None) -> str:
        return create_access_token(
            {"id": user_id, "email": email or f"user{user_id}@example.com"},
            test_settings,
        )

    return _make


@pytest.fixture
def mock_db_session():
    """Create a mock async database session."""
    session = AsyncMock()
    session.execute = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    return session


@pytest.fixture
def app(test_settings, resolver):
    from taskflow.main import create_app

    return create_app(settings=test_settings, membership_resolver=resolver)


@pytest_asyncio.fixture
async def app_client(app, mock_db_session):
    """HTTP test client with mocked database dependencies."""
    from taskflow.database import get_db

    app.dependency_overrides[get_db] = lambda: mock_db_session

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def ws_client(app):
    """
    Synchronous client for WebSocket tests.

    Entered as a context manager so every socket shares one event loop
    (and ``client.portal`` can call coroutines on it); the database
    startup hooks are stubbed out.
    """
    with patch("taskflow.main.init_db", AsyncMock()), patch("taskflow.main.close_db", AsyncMock()):
        with TestClient(app) as client:
            yield client
