"""Tests for the SQL membership resolver and the models it reads."""

from contextlib import asynccontextmanager
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from taskflow.models import Project, ProjectMember, User
from taskflow.services.membership import SqlMembershipResolver


def _resolver_with(result):
    """Resolver whose every query returns ``result``."""
    session = AsyncMock()
    session.execute = AsyncMock(return_value=result)

    @asynccontextmanager
    async def session_context():
        yield session

    return SqlMembershipResolver(session_context=session_context), session


def test_model_tables():
    assert User.__tablename__ == "users"
    assert Project.__tablename__ == "projects"
    assert ProjectMember.__tablename__ == "project_members"


def test_user_presence_dict():
    user = User(id=3, name="Ada Lovelace", email="ada@example.com", initials="AL", avatar_color="#f00")

    assert user.to_presence_dict() == {
        "id": 3,
        "name": "Ada Lovelace",
        "email": "ada@example.com",
        "initials": "AL",
        "avatarColor": "#f00",
    }


@pytest.mark.asyncio
async def test_list_active_projects_for():
    result = MagicMock()
    result.all.return_value = [SimpleNamespace(id=7, name="Apollo"), SimpleNamespace(id=9, name="Gemini")]
    resolver, session = _resolver_with(result)

    projects = await resolver.list_active_projects_for(42)

    assert [(p.project_id, p.project_name) for p in projects] == [(7, "Apollo"), (9, "Gemini")]
    session.execute.assert_awaited_once()


@pytest.mark.asyncio
async def test_get_membership():
    project = Project(id=7, name="Apollo", active=False)
    user = User(id=42, name="Grace", email="grace@example.com")
    result = MagicMock()
    result.first.return_value = (project, user)
    resolver, _ = _resolver_with(result)

    membership = await resolver.get_membership(7, 42)

    assert membership.project_name == "Apollo"
    assert membership.project_active is False
    assert membership.user_profile["email"] == "grace@example.com"


@pytest.mark.asyncio
async def test_get_membership_missing():
    result = MagicMock()
    result.first.return_value = None
    resolver, _ = _resolver_with(result)

    assert await resolver.get_membership(7, 42) is None


@pytest.mark.asyncio
async def test_is_member_and_member_ids():
    result = MagicMock()
    result.scalar_one_or_none.return_value = 1
    result.scalars.return_value.all.return_value = [1, 2, 3]
    resolver, _ = _resolver_with(result)

    assert await resolver.is_member(7, 1) is True
    assert await resolver.list_member_ids(7) == [1, 2, 3]
