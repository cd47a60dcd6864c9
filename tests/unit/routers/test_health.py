"""Health endpoint tests for the task market service."""

from __future__ import annotations

import pytest

from tests.unit.routers.conftest import create_task_id


@pytest.mark.unit
async def test_health_returns_ok_with_correct_schema(client):
    """GET /health returns 200 with the expected fields."""
    response = await client.get("/health")
    assert response.status_code == 200

    data = response.json()
    assert data["status"] == "ok"
    assert isinstance(data["uptime_seconds"], (int, float))
    assert data["started_at"].endswith("Z")
    assert data["total_tasks"] == 0
    assert data["tasks_by_status"] == {}


@pytest.mark.unit
async def test_health_counts_tasks_by_status(client, alice):
    """Task counts reflect what has been created."""
    await create_task_id(client, alice)
    await create_task_id(client, alice)

    data = (await client.get("/health")).json()
    assert data["total_tasks"] == 2
    assert data["tasks_by_status"] == {"OPEN": 2}


@pytest.mark.unit
async def test_health_post_not_allowed(client):
    """POST /health returns 405 in the standard error shape."""
    response = await client.post("/health")
    assert response.status_code == 405
    assert response.json()["error"] == "METHOD_NOT_ALLOWED"
