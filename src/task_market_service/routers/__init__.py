"""API routers."""

from task_market_service.routers import bids, health, tasks, users, verification

__all__ = ["bids", "health", "tasks", "users", "verification"]
