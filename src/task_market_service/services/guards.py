"""Authorization guards: pure predicates over (task, user) pairs."""

from __future__ import annotations

from typing import TYPE_CHECKING

from task_market_service.core.exceptions import AuthorizationError
from task_market_service.models import TaskStatus
from task_market_service.services.state_machine import is_allowed

if TYPE_CHECKING:
    from task_market_service.models import Task


def is_owner(task: Task, user_id: str) -> bool:
    return task.owner_id == user_id


def is_assignee(task: Task, user_id: str) -> bool:
    return task.assignee_id is not None and task.assignee_id == user_id


def is_participant(task: Task, user_id: str) -> bool:
    return is_owner(task, user_id) or is_assignee(task, user_id)


def can_modify(task: Task, user_id: str) -> bool:
    """Owners may edit or delete a task only while it is OPEN."""
    return is_owner(task, user_id) and task.status is TaskStatus.OPEN


def can_transition(task: Task, user_id: str, target: TaskStatus) -> bool:
    return is_participant(task, user_id) and is_allowed(task.status, target)


def require_owner(task: Task, user_id: str, action: str) -> None:
    """Raise AuthorizationError unless ``user_id`` owns the task."""
    if not is_owner(task, user_id):
        raise AuthorizationError(
            f"Only the task owner can {action}",
            {"task_id": task.task_id},
        )


def require_participant(task: Task, user_id: str) -> None:
    """Raise AuthorizationError unless ``user_id`` is the owner or assignee."""
    if not is_participant(task, user_id):
        raise AuthorizationError(
            "Only the task owner or assignee can change the task status",
            {"task_id": task.task_id},
        )
