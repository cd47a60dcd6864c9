"""Router test fixtures with mocked email and SMS gateways."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING, Any
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient

from task_market_service.app import create_app
from task_market_service.config import clear_settings_cache
from task_market_service.core.lifespan import lifespan
from task_market_service.core.state import get_app_state, reset_app_state
from tests.helpers import config_yaml

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from pathlib import Path

ACTOR_HEADER = "X-User-Id"


# ---------------------------------------------------------------------------
# App + client fixtures
# ---------------------------------------------------------------------------
@pytest.fixture
async def app(tmp_path: Path) -> AsyncIterator[Any]:
    """Create a test app with temp database and mocked notification gateways."""
    config_path = tmp_path / "config.yaml"
    config_path.write_text(config_yaml(str(tmp_path / "test.db")))

    old_config = os.environ.get("CONFIG_PATH")
    os.environ["CONFIG_PATH"] = str(config_path)

    clear_settings_cache()
    reset_app_state()

    test_app = create_app()
    async with lifespan(test_app):
        # The managers share these client instances, so patching the
        # methods here reaches every caller.
        state = get_app_state()
        state.email_client.send_email = AsyncMock(return_value=None)
        state.sms_client.send_sms = AsyncMock(return_value=None)

        yield test_app

    reset_app_state()
    clear_settings_cache()
    if old_config is None:
        os.environ.pop("CONFIG_PATH", None)
    else:
        os.environ["CONFIG_PATH"] = old_config


@pytest.fixture
async def client(app: Any) -> AsyncIterator[AsyncClient]:
    """Create an async HTTP client for the test app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


# ---------------------------------------------------------------------------
# User fixtures
# ---------------------------------------------------------------------------
async def register_user(client: AsyncClient, email: str, role: str | None = None) -> str:
    """Register a user via POST /users and return the new user ID."""
    body: dict[str, Any] = {"email": email}
    if role is not None:
        body["role"] = role
    response = await client.post("/users", json=body)
    assert response.status_code == 201, response.text
    return str(response.json()["user_id"])


@pytest.fixture
async def alice(client: AsyncClient) -> str:
    """Task owner."""
    return await register_user(client, "alice@example.com")


@pytest.fixture
async def bob(client: AsyncClient) -> str:
    """Tasker."""
    return await register_user(client, "bob@example.com", "TASKER")


@pytest.fixture
async def carol(client: AsyncClient) -> str:
    """Bystander."""
    return await register_user(client, "carol@example.com", "TASKER")


@pytest.fixture
async def admin(client: AsyncClient) -> str:
    """Administrator."""
    return await register_user(client, "admin@example.com", "ADMIN")


# ---------------------------------------------------------------------------
# Task lifecycle helper functions
# ---------------------------------------------------------------------------
def as_user(user_id: str) -> dict[str, str]:
    """Headers identifying the caller."""
    return {ACTOR_HEADER: user_id}


async def create_task(
    client: AsyncClient,
    owner_id: str,
    *,
    title: str = "Test task",
    description: str = "Test description for task",
    budget: dict[str, Any] | None = None,
) -> Any:
    """Create a task via POST /tasks and return the response."""
    body: dict[str, Any] = {"title": title, "description": description}
    if budget is not None:
        body["budget"] = budget
    return await client.post("/tasks", json=body, headers=as_user(owner_id))


async def create_task_id(client: AsyncClient, owner_id: str, **kwargs: Any) -> str:
    response = await create_task(client, owner_id, **kwargs)
    assert response.status_code == 201, response.text
    return str(response.json()["task_id"])


async def submit_bid(
    client: AsyncClient,
    bidder_id: str,
    task_id: str,
    *,
    amount: Any = 90,
) -> Any:
    """Submit a bid via POST /tasks/{task_id}/bids and return the response."""
    return await client.post(
        f"/tasks/{task_id}/bids", json={"amount": amount}, headers=as_user(bidder_id)
    )
