"""Shared test helpers: service wiring with mocked notification clients."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any
from unittest.mock import AsyncMock

from task_market_service.services.event_bus import TaskEventBus
from task_market_service.services.task_manager import TaskManager
from task_market_service.services.task_store import TaskStore
from task_market_service.services.trust_score import TrustScoreEngine
from task_market_service.services.user_manager import UserManager
from task_market_service.services.user_store import UserStore
from task_market_service.services.verification_manager import VerificationManager
from task_market_service.services.verification_store import VerificationStore


@dataclass
class Services:
    """Every service and store wired against one SQLite file."""

    task_store: TaskStore
    user_store: UserStore
    verification_store: VerificationStore
    event_bus: TaskEventBus
    trust_engine: TrustScoreEngine
    email_client: AsyncMock
    sms_client: AsyncMock
    user_manager: UserManager
    task_manager: TaskManager
    verification_manager: VerificationManager

    def close(self) -> None:
        self.task_store.close()
        self.user_store.close()
        self.verification_store.close()


def build_services(db_path: str) -> Services:
    """Wire services the way the lifespan does, with AsyncMock gateways."""
    task_store = TaskStore(db_path=db_path)
    user_store = UserStore(db_path=db_path)
    verification_store = VerificationStore(db_path=db_path)
    event_bus = TaskEventBus()
    trust_engine = TrustScoreEngine(
        user_store=user_store,
        task_store=task_store,
        verification_store=verification_store,
    )
    email_client = AsyncMock()
    sms_client = AsyncMock()
    return Services(
        task_store=task_store,
        user_store=user_store,
        verification_store=verification_store,
        event_bus=event_bus,
        trust_engine=trust_engine,
        email_client=email_client,
        sms_client=sms_client,
        user_manager=UserManager(store=user_store),
        task_manager=TaskManager(
            store=task_store,
            user_store=user_store,
            trust_engine=trust_engine,
            event_bus=event_bus,
            email_client=email_client,
            max_title_length=200,
            max_description_length=10000,
        ),
        verification_manager=VerificationManager(
            store=verification_store,
            user_store=user_store,
            trust_engine=trust_engine,
            email_client=email_client,
            sms_client=sms_client,
            email_token_ttl_hours=24,
            email_rate_limit=3,
            email_rate_window_hours=24,
            phone_code_ttl_minutes=15,
            phone_max_attempts=3,
            phone_rate_limit=5,
            phone_rate_window_hours=24,
        ),
    )


def now_iso() -> str:
    return datetime.now(UTC).isoformat(timespec="microseconds").replace("+00:00", "Z")


def user_row(user_id: str, **overrides: Any) -> dict[str, Any]:
    """Build a raw users row."""
    row: dict[str, Any] = {
        "user_id": user_id,
        "email": f"{user_id}@example.com",
        "phone": None,
        "role": "USER",
        "email_verified": 0,
        "phone_verified": 0,
        "trust_score": 0,
        "is_active": 1,
        "created_at": now_iso(),
    }
    row.update(overrides)
    return row


def task_row(task_id: str, owner_id: str, **overrides: Any) -> dict[str, Any]:
    """Build a raw tasks row; override columns to force synthetic states."""
    timestamp = now_iso()
    row: dict[str, Any] = {
        "task_id": task_id,
        "owner_id": owner_id,
        "title": f"Task {task_id}",
        "description": "Description",
        "status": "OPEN",
        "priority": "MEDIUM",
        "budget_amount": 100.0,
        "budget_type": "FIXED",
        "category": None,
        "location": None,
        "deadline": None,
        "assignee_id": None,
        "accepted_bid_id": None,
        "version": 1,
        "created_at": timestamp,
        "updated_at": timestamp,
        "completed_at": None,
        "cancelled_at": None,
        "disputed_at": None,
    }
    row.update(overrides)
    return row


def event_row(task_id: str, actor_id: str, to_status: str = "OPEN") -> dict[str, Any]:
    return {
        "event_id": f"evt-{uuid.uuid4()}",
        "task_id": task_id,
        "actor_id": actor_id,
        "from_status": None,
        "to_status": to_status,
        "notes": None,
        "created_at": now_iso(),
    }


def bid_row(bid_id: str, task_id: str, bidder_id: str, **overrides: Any) -> dict[str, Any]:
    timestamp = now_iso()
    row: dict[str, Any] = {
        "bid_id": bid_id,
        "task_id": task_id,
        "bidder_id": bidder_id,
        "amount": 90.0,
        "message": None,
        "status": "PENDING",
        "submitted_at": timestamp,
        "updated_at": timestamp,
    }
    row.update(overrides)
    return row


# Column overrides that put a task into each status with consistent fields.
STATUS_COLUMNS: dict[str, dict[str, Any]] = {
    "OPEN": {},
    "ACCEPTED": {"status": "ACCEPTED", "assignee_id": "u-bob"},
    "IN_PROGRESS": {"status": "IN_PROGRESS", "assignee_id": "u-bob"},
    "COMPLETED": {
        "status": "COMPLETED",
        "assignee_id": "u-bob",
        "completed_at": "2026-01-01T00:00:00.000000Z",
    },
    "CANCELLED": {"status": "CANCELLED", "cancelled_at": "2026-01-01T00:00:00.000000Z"},
    "DISPUTED": {
        "status": "DISPUTED",
        "assignee_id": "u-bob",
        "disputed_at": "2026-01-01T00:00:00.000000Z",
    },
}


def insert_task_in_status(
    services: Services,
    status: str,
    owner_id: str = "u-alice",
    task_id: str | None = None,
) -> str:
    """Insert a task row directly in ``status`` and return its ID."""
    task_id = task_id or f"t-{uuid.uuid4()}"
    services.task_store.insert_task(
        task_row(task_id, owner_id, **STATUS_COLUMNS[status]),
        event_row(task_id, owner_id, status),
    )
    return task_id


def config_yaml(db_path: str, *, operation_timeout_seconds: float = 10) -> str:
    """Render a complete service config pointing at ``db_path``."""
    return f"""\
service:
  name: "task-market"
  version: "0.1.0"
server:
  host: "0.0.0.0"
  port: 8010
  log_level: "info"
logging:
  level: "WARNING"
  directory: null
database:
  path: "{db_path}"
request:
  max_body_size: 1048576
  operation_timeout_seconds: {operation_timeout_seconds}
notifications:
  email_base_url: "http://localhost:8025"
  email_path: "/emails"
  sms_base_url: "http://localhost:8026"
  sms_path: "/messages"
  timeout_seconds: 10
verification:
  email_token_ttl_hours: 24
  email_rate_limit: 3
  email_rate_window_hours: 24
  phone_code_ttl_minutes: 15
  phone_max_attempts: 3
  phone_rate_limit: 5
  phone_rate_window_hours: 24
limits:
  max_title_length: 200
  max_description_length: 10000
"""
