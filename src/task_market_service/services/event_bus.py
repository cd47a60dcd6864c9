"""In-process publication of committed task changes."""

from __future__ import annotations

import inspect
from typing import TYPE_CHECKING

from task_market_service.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from task_market_service.models import TaskChanged

    TaskChangedHandler = Callable[[TaskChanged], Awaitable[None] | None]


class TaskEventBus:
    """
    Fan-out of ``TaskChanged`` events to registered subscribers.

    Subscribers run in registration order. A failing subscriber is logged
    and skipped; it never affects the mutation that produced the event.
    """

    def __init__(self) -> None:
        self._subscribers: list[TaskChangedHandler] = []
        self._logger = get_logger(__name__)

    def subscribe(self, handler: TaskChangedHandler) -> None:
        self._subscribers.append(handler)

    def unsubscribe(self, handler: TaskChangedHandler) -> None:
        if handler in self._subscribers:
            self._subscribers.remove(handler)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    async def publish(self, event: TaskChanged) -> None:
        """Deliver ``event`` to every subscriber."""
        for handler in list(self._subscribers):
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                self._logger.exception(
                    "Task change subscriber failed",
                    extra={"task_id": event.task_id, "status": event.status},
                )
