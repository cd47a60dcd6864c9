"""Task state machine: the single source of truth for legal transitions.

Task lifecycle:
    OPEN → IN_PROGRESS (through assignment) → COMPLETED
    OPEN / ACCEPTED / IN_PROGRESS → CANCELLED
    IN_PROGRESS / COMPLETED → DISPUTED → IN_PROGRESS | COMPLETED | CANCELLED

Pure computation: validates transitions and computes the next state.
Persistence, events and notifications are handled by TaskManager.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from task_market_service.core.exceptions import ValidationError
from task_market_service.models import (
    CancelledState,
    CompletedState,
    DisputedState,
    InProgressState,
    TaskStatus,
)

if TYPE_CHECKING:
    from task_market_service.models import Task, TaskState


# Valid transitions: {from_status: {allowed_to_statuses}}
TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.OPEN: frozenset({TaskStatus.IN_PROGRESS, TaskStatus.CANCELLED}),
    TaskStatus.ACCEPTED: frozenset({TaskStatus.IN_PROGRESS, TaskStatus.CANCELLED}),
    TaskStatus.IN_PROGRESS: frozenset(
        {TaskStatus.COMPLETED, TaskStatus.CANCELLED, TaskStatus.DISPUTED}
    ),
    TaskStatus.COMPLETED: frozenset({TaskStatus.DISPUTED}),
    # Terminal state, no outgoing transitions
    TaskStatus.CANCELLED: frozenset(),
    TaskStatus.DISPUTED: frozenset(
        {TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED, TaskStatus.CANCELLED}
    ),
}


def allowed_targets(status: TaskStatus) -> frozenset[TaskStatus]:
    """Statuses reachable in one step from ``status``."""
    return TRANSITIONS.get(status, frozenset())


def is_allowed(source: TaskStatus, target: TaskStatus) -> bool:
    return target in allowed_targets(source)


def is_terminal(status: TaskStatus) -> bool:
    """Check if a status has no outgoing transitions."""
    return len(allowed_targets(status)) == 0


def validate_transition(source: TaskStatus, target: TaskStatus) -> None:
    """
    Raise if ``source → target`` is not in the transition table.

    Raises:
        ValidationError: "Cannot transition from X to Y"
    """
    if not is_allowed(source, target):
        raise ValidationError(
            f"Cannot transition from {source} to {target}",
            {
                "from_status": str(source),
                "to_status": str(target),
                "allowed": sorted(str(s) for s in allowed_targets(source)),
            },
        )


def next_state(task: Task, target: TaskStatus, now: str) -> TaskState:
    """
    Validate ``task.status → target`` and compute the resulting state.

    Side effects are encoded in the returned variant: completion and
    cancellation stamp their timestamps, cancellation drops the assignee,
    and leaving COMPLETED drops the completion time.

    Raises:
        ValidationError: If the transition is not allowed or the task has
            no assignee for a target that requires one
    """
    validate_transition(task.status, target)

    if target is TaskStatus.CANCELLED:
        return CancelledState(cancelled_at=now)

    assignee_id = task.assignee_id
    if assignee_id is None:
        raise ValidationError(
            f"Task must be assigned before it can move to {target}",
            {"from_status": str(task.status), "to_status": str(target)},
        )

    if target is TaskStatus.IN_PROGRESS:
        return InProgressState(assignee_id=assignee_id)
    if target is TaskStatus.COMPLETED:
        return CompletedState(assignee_id=assignee_id, completed_at=now)
    return DisputedState(assignee_id=assignee_id, disputed_at=now)
