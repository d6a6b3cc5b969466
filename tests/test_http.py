"""Tests for the HTTP endpoints: health and project presence."""

from unittest.mock import MagicMock

import pytest

from taskflow import __version__
from taskflow.realtime.registry import Connection


@pytest.mark.asyncio
async def test_health_endpoint(app_client, mock_db_session, app):
    """Health endpoint returns 200 with expected fields."""
    mock_db_session.execute.return_value = MagicMock()
    app.state.registry.register(Connection(user_id=1))
    app.state.registry.register(Connection(user_id=1))

    response = await app_client.get("/health")
    assert response.status_code == 200

    data = response.json()
    assert data["status"] == "ok"
    assert data["backend"] == "python-fastapi"
    assert data["database"] == "connected"
    assert data["websocket_connections"] == 2
    assert data["online_users"] == 1
    assert data["version"] == __version__
    assert "timestamp" in data


@pytest.mark.asyncio
async def test_api_health_reports_database_error(app_client, mock_db_session):
    mock_db_session.execute.side_effect = ConnectionError("refused")

    response = await app_client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["database"] == "error: refused"


@pytest.mark.asyncio
async def test_unknown_api_route(app_client):
    response = await app_client.get("/api/does-not-exist")
    assert response.status_code == 404
    assert response.json()["error"] == "Not found"


@pytest.mark.asyncio
async def test_presence_requires_token(app_client):
    response = await app_client.get("/api/projects/7/presence")
    assert response.status_code == 401

    response = await app_client.get(
        "/api/projects/7/presence", headers={"Authorization": "Bearer garbage"}
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_presence_forbidden_for_non_member(app_client, resolver, make_token):
    resolver.add_project(7, "Apollo", members=[2])

    response = await app_client.get(
        "/api/projects/7/presence", headers={"Authorization": f"Bearer {make_token(1)}"}
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_presence_lists_connected_users(app_client, app, resolver, make_token):
    resolver.add_project(7, "Apollo", members=[1, 2])
    registry = app.state.registry
    for user_id in (1, 2, 2):
        conn = registry.register(Connection(user_id=user_id, user_email=f"user{user_id}@example.com"))
        registry.join_room(conn.id, "project:7")

    response = await app_client.get(
        "/api/projects/7/presence", headers={"Authorization": f"Bearer {make_token(1)}"}
    )
    assert response.status_code == 200

    data = response.json()
    assert data["projectId"] == 7
    assert data["count"] == 2
    assert data["users"] == [
        {"userId": 1, "userEmail": "user1@example.com", "connectionCount": 1},
        {"userId": 2, "userEmail": "user2@example.com", "connectionCount": 2},
    ]
