"""Time budget enforcement for request-scoped operations."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, TypeVar

from task_market_service.core.exceptions import OperationTimeoutError
from task_market_service.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Awaitable

T = TypeVar("T")


async def run_with_timeout(operation: Awaitable[T], timeout_seconds: float | None, name: str) -> T:
    """
    Await ``operation`` within ``timeout_seconds``.

    Store commits are atomic, so an operation cut off here has either
    committed completely or not at all.

    Raises:
        OperationTimeoutError: If the time budget runs out
    """
    if timeout_seconds is None:
        return await operation
    try:
        return await asyncio.wait_for(operation, timeout=timeout_seconds)
    except TimeoutError as exc:
        get_logger(__name__).warning(
            "Operation timed out",
            extra={"operation": name, "timeout_seconds": timeout_seconds},
        )
        raise OperationTimeoutError(
            f"Operation '{name}' did not complete in time",
            {"operation": name, "timeout_seconds": timeout_seconds},
        ) from exc
