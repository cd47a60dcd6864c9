"""Service layer components."""

from task_market_service.services.event_bus import TaskEventBus
from task_market_service.services.task_manager import TaskManager
from task_market_service.services.trust_score import TrustScoreEngine
from task_market_service.services.user_manager import UserManager
from task_market_service.services.verification_manager import VerificationManager

__all__ = [
    "TaskEventBus",
    "TaskManager",
    "TrustScoreEngine",
    "UserManager",
    "VerificationManager",
]
