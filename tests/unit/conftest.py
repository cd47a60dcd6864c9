"""Unit test fixtures: auto-clear caches between tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from task_market_service.config import clear_settings_cache
from task_market_service.core.state import reset_app_state
from tests.helpers import build_services, user_row

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

    from tests.helpers import Services


@pytest.fixture(autouse=True)
def _clear_caches():
    """Clear settings cache and app state between tests."""
    clear_settings_cache()
    reset_app_state()
    yield
    clear_settings_cache()
    reset_app_state()


@pytest.fixture
def services(tmp_path: Path) -> Iterator[Services]:
    """Services wired against a temp database, with alice/bob/carol/admin users."""
    wired = build_services(str(tmp_path / "task-market.db"))
    wired.user_store.insert_user(user_row("u-alice"))
    wired.user_store.insert_user(user_row("u-bob", role="TASKER"))
    wired.user_store.insert_user(user_row("u-carol", role="TASKER"))
    wired.user_store.insert_user(user_row("u-admin", role="ADMIN"))
    yield wired
    wired.close()
