"""Application lifecycle management."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from task_market_service.clients.email_client import EmailClient
from task_market_service.clients.sms_client import SmsClient
from task_market_service.config import get_safe_config, get_settings
from task_market_service.core.state import init_app_state
from task_market_service.logging import get_logger, setup_logging
from task_market_service.services.event_bus import TaskEventBus
from task_market_service.services.task_manager import TaskManager
from task_market_service.services.task_store import TaskStore
from task_market_service.services.trust_score import TrustScoreEngine
from task_market_service.services.user_manager import UserManager
from task_market_service.services.user_store import UserStore
from task_market_service.services.verification_manager import VerificationManager
from task_market_service.services.verification_store import VerificationStore

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from fastapi import FastAPI

    from task_market_service.models import TaskChanged


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifecycle."""
    # === STARTUP ===
    settings = get_settings()

    setup_logging(settings.logging.level, settings.service.name, settings.logging.directory)
    logger = get_logger(__name__)
    logger.debug("Loaded configuration", extra={"config": get_safe_config()})

    state = init_app_state()
    state.operation_timeout_seconds = settings.request.operation_timeout_seconds

    db_path = settings.database.path
    task_store = TaskStore(db_path=db_path)
    user_store = UserStore(db_path=db_path)
    verification_store = VerificationStore(db_path=db_path)

    # Notification gateways (httpx async clients)
    notifications = settings.notifications
    email_client = EmailClient(
        base_url=notifications.email_base_url,
        send_path=notifications.email_path,
        timeout_seconds=notifications.timeout_seconds,
    )
    state.email_client = email_client
    sms_client = SmsClient(
        base_url=notifications.sms_base_url,
        send_path=notifications.sms_path,
        timeout_seconds=notifications.timeout_seconds,
    )
    state.sms_client = sms_client

    event_bus = TaskEventBus()

    async def log_task_change(event: TaskChanged) -> None:
        logger.debug(
            "Task changed",
            extra={"task_id": event.task_id, "status": event.status, "version": event.version},
        )

    event_bus.subscribe(log_task_change)
    state.event_bus = event_bus

    trust_engine = TrustScoreEngine(
        user_store=user_store,
        task_store=task_store,
        verification_store=verification_store,
    )
    state.trust_engine = trust_engine

    state.user_manager = UserManager(store=user_store)
    state.task_manager = TaskManager(
        store=task_store,
        user_store=user_store,
        trust_engine=trust_engine,
        event_bus=event_bus,
        email_client=email_client,
        max_title_length=settings.limits.max_title_length,
        max_description_length=settings.limits.max_description_length,
    )
    verification = settings.verification
    state.verification_manager = VerificationManager(
        store=verification_store,
        user_store=user_store,
        trust_engine=trust_engine,
        email_client=email_client,
        sms_client=sms_client,
        email_token_ttl_hours=verification.email_token_ttl_hours,
        email_rate_limit=verification.email_rate_limit,
        email_rate_window_hours=verification.email_rate_window_hours,
        phone_code_ttl_minutes=verification.phone_code_ttl_minutes,
        phone_max_attempts=verification.phone_max_attempts,
        phone_rate_limit=verification.phone_rate_limit,
        phone_rate_window_hours=verification.phone_rate_window_hours,
    )

    logger.info(
        "Service starting",
        extra={
            "service": settings.service.name,
            "version": settings.service.version,
            "port": settings.server.port,
            "db_path": db_path,
            "email_base_url": notifications.email_base_url,
            "sms_base_url": notifications.sms_base_url,
        },
    )

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Service shutting down", extra={"uptime_seconds": state.uptime_seconds})

    # Let queued best-effort notifications finish before the email client closes
    await state.require_task_manager().drain_notifications()

    task_store.close()
    user_store.close()
    verification_store.close()

    # Close HTTP clients (closes httpx async clients)
    await email_client.close()
    await sms_client.close()
