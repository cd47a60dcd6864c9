"""Application state management."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from task_market_service.clients.email_client import EmailClient
    from task_market_service.clients.sms_client import SmsClient
    from task_market_service.services.event_bus import TaskEventBus
    from task_market_service.services.task_manager import TaskManager
    from task_market_service.services.trust_score import TrustScoreEngine
    from task_market_service.services.user_manager import UserManager
    from task_market_service.services.verification_manager import VerificationManager


@dataclass
class AppState:
    """Runtime application state."""

    start_time: datetime = field(default_factory=lambda: datetime.now(UTC))
    operation_timeout_seconds: float | None = None
    task_manager: TaskManager | None = None
    user_manager: UserManager | None = None
    verification_manager: VerificationManager | None = None
    trust_engine: TrustScoreEngine | None = None
    event_bus: TaskEventBus | None = None
    email_client: EmailClient | None = None
    sms_client: SmsClient | None = None

    @property
    def uptime_seconds(self) -> float:
        """Calculate uptime in seconds."""
        return (datetime.now(UTC) - self.start_time).total_seconds()

    @property
    def started_at(self) -> str:
        """ISO format start time."""
        return self.start_time.isoformat(timespec="seconds").replace("+00:00", "Z")

    def require_task_manager(self) -> TaskManager:
        if self.task_manager is None:
            msg = "TaskManager not initialized"
            raise RuntimeError(msg)
        return self.task_manager

    def require_user_manager(self) -> UserManager:
        if self.user_manager is None:
            msg = "UserManager not initialized"
            raise RuntimeError(msg)
        return self.user_manager

    def require_verification_manager(self) -> VerificationManager:
        if self.verification_manager is None:
            msg = "VerificationManager not initialized"
            raise RuntimeError(msg)
        return self.verification_manager


# Global application state container
_state_container: dict[str, AppState | None] = {"app_state": None}


def get_app_state() -> AppState:
    """Get the current application state."""
    app_state = _state_container["app_state"]
    if app_state is None:
        msg = "Application state not initialized"
        raise RuntimeError(msg)
    return app_state


def init_app_state() -> AppState:
    """Initialize application state. Called during startup."""
    app_state = AppState()
    _state_container["app_state"] = app_state
    return app_state


def reset_app_state() -> None:
    """Reset application state. Used in testing."""
    _state_container["app_state"] = None
