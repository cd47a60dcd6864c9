"""Task lifecycle management: all task and bid business logic lives here."""

from __future__ import annotations

import asyncio
import math
import uuid
from typing import TYPE_CHECKING, Any, cast

from task_market_service.core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    NotificationError,
    ValidationError,
)
from task_market_service.logging import get_logger
from task_market_service.models import (
    Bid,
    BidStatus,
    BudgetType,
    InProgressState,
    OpenState,
    Task,
    TaskChanged,
    TaskEvent,
    TaskPriority,
    TaskStatus,
    now_iso,
    parse_iso,
    state_to_columns,
    to_iso,
    utc_now,
)
from task_market_service.services.guards import can_modify, require_owner, require_participant
from task_market_service.services.state_machine import next_state, validate_transition
from task_market_service.services.task_store import DuplicateBidError, DuplicateTaskError

if TYPE_CHECKING:
    from task_market_service.clients.email_client import EmailClient
    from task_market_service.models import TaskState
    from task_market_service.services.event_bus import TaskEventBus
    from task_market_service.services.task_store import TaskStore
    from task_market_service.services.trust_score import TrustScoreEngine
    from task_market_service.services.user_store import UserStore

_TASK_FIELDS = frozenset(
    {"title", "description", "priority", "budget", "category", "location", "deadline"}
)
_MAX_SHORT_TEXT_LENGTH = 200


def _is_positive_number(value: object) -> bool:
    """Check if value is a positive, finite int or float (not bool)."""
    if not isinstance(value, int | float) or isinstance(value, bool):
        return False
    try:
        return math.isfinite(float(value)) and value > 0
    except OverflowError:
        return False


def _parse_status(value: TaskStatus | str) -> TaskStatus:
    try:
        return TaskStatus(value)
    except ValueError as exc:
        raise ValidationError(
            f"Unknown task status '{value}'",
            {"allowed": [str(s) for s in TaskStatus]},
        ) from exc


class TaskManager:
    """
    Manages the task lifecycle: creation, editing, bidding, assignment,
    transitions, completion and cancellation.

    Every mutation is a compare-and-swap on the task version, so two
    requests acting on the same snapshot can never both succeed. After a
    commit the manager publishes ``TaskChanged``, sends best-effort
    notifications and refreshes trust scores touched by completions.
    """

    def __init__(
        self,
        store: TaskStore,
        user_store: UserStore,
        trust_engine: TrustScoreEngine,
        event_bus: TaskEventBus,
        email_client: EmailClient,
        max_title_length: int,
        max_description_length: int,
    ) -> None:
        self._store = store
        self._user_store = user_store
        self._trust_engine = trust_engine
        self._event_bus = event_bus
        self._email_client = email_client
        self._deliveries: set[asyncio.Task[None]] = set()
        self._max_title_length = max_title_length
        self._max_description_length = max_description_length
        self._logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Private helper methods
    # ------------------------------------------------------------------

    def _require_text(self, fields: dict[str, Any], name: str, max_length: int) -> str:
        value = fields.get(name)
        if not isinstance(value, str) or not value.strip():
            raise ValidationError(f"{name} must be a non-empty string", {"field": name})
        value = value.strip()
        if len(value) > max_length:
            raise ValidationError(
                f"{name} must not exceed {max_length} characters",
                {"field": name, "max_length": max_length},
            )
        return value

    def _optional_text(self, fields: dict[str, Any], name: str) -> str | None:
        value = fields.get(name)
        if value is None:
            return None
        if not isinstance(value, str):
            raise ValidationError(f"{name} must be a string", {"field": name})
        value = value.strip()
        if len(value) > _MAX_SHORT_TEXT_LENGTH:
            raise ValidationError(
                f"{name} must not exceed {_MAX_SHORT_TEXT_LENGTH} characters",
                {"field": name, "max_length": _MAX_SHORT_TEXT_LENGTH},
            )
        return value or None

    def _validate_fields(self, fields: dict[str, Any], *, partial: bool) -> dict[str, Any]:
        """
        Validate task fields and translate them into storage columns.

        With ``partial`` only the supplied fields are checked and returned.
        """
        unknown = sorted(set(fields) - _TASK_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown task fields: {', '.join(unknown)}", {"fields": unknown})

        columns: dict[str, Any] = {}

        if not partial or "title" in fields:
            columns["title"] = self._require_text(fields, "title", self._max_title_length)
        if not partial or "description" in fields:
            columns["description"] = self._require_text(
                fields, "description", self._max_description_length
            )

        if "priority" in fields:
            try:
                columns["priority"] = str(TaskPriority(fields["priority"]))
            except ValueError as exc:
                raise ValidationError(
                    f"Unknown priority '{fields['priority']}'",
                    {"allowed": [str(p) for p in TaskPriority]},
                ) from exc
        elif not partial:
            columns["priority"] = str(TaskPriority.MEDIUM)

        if "budget" in fields:
            budget = fields["budget"]
            if budget is None:
                columns["budget_amount"] = None
                columns["budget_type"] = None
            else:
                if not isinstance(budget, dict):
                    raise ValidationError("budget must be an object with amount and type")
                if not _is_positive_number(budget.get("amount")):
                    raise ValidationError("Budget amount must be a positive number")
                raw_type = budget.get("type", BudgetType.FIXED)
                try:
                    budget_type = BudgetType(raw_type)
                except ValueError as exc:
                    raise ValidationError(
                        f"Unknown budget type '{raw_type}'",
                        {"allowed": [str(b) for b in BudgetType]},
                    ) from exc
                columns["budget_amount"] = float(budget["amount"])
                columns["budget_type"] = str(budget_type)
        elif not partial:
            columns["budget_amount"] = None
            columns["budget_type"] = None

        for name in ("category", "location"):
            if name in fields or not partial:
                columns[name] = self._optional_text(fields, name)

        if "deadline" in fields and fields["deadline"] is not None:
            raw_deadline = fields["deadline"]
            if not isinstance(raw_deadline, str):
                raise ValidationError("deadline must be an ISO 8601 datetime string")
            try:
                deadline = parse_iso(raw_deadline)
            except ValueError as exc:
                raise ValidationError("deadline must be an ISO 8601 datetime string") from exc
            if deadline <= utc_now():
                raise ValidationError("deadline must be in the future")
            columns["deadline"] = to_iso(deadline)
        elif "deadline" in fields or not partial:
            columns["deadline"] = None

        return columns

    def _require_active_user(self, user_id: str, action: str) -> dict[str, Any]:
        user = self._user_store.get_user(user_id)
        if user is None:
            raise NotFoundError("User not found", {"user_id": user_id})
        if not user["is_active"]:
            raise AuthorizationError(f"Inactive users cannot {action}", {"user_id": user_id})
        return user

    def _load_task(self, task_id: str) -> Task:
        row = self._store.get_task(task_id)
        if row is None:
            raise NotFoundError("Task not found", {"task_id": task_id})
        return Task.from_row(row)

    def _load_bid(self, task_id: str, bid_id: str) -> Bid:
        row = self._store.get_bid(bid_id, task_id)
        if row is None:
            raise NotFoundError("Bid not found", {"task_id": task_id, "bid_id": bid_id})
        return Bid.from_row(row)

    @staticmethod
    def _event(
        task_id: str,
        actor_id: str,
        from_status: TaskStatus | None,
        to_status: TaskStatus,
        notes: str | None,
        created_at: str,
    ) -> dict[str, Any]:
        return {
            "event_id": f"evt-{uuid.uuid4()}",
            "task_id": task_id,
            "actor_id": actor_id,
            "from_status": None if from_status is None else str(from_status),
            "to_status": str(to_status),
            "notes": notes,
            "created_at": created_at,
        }

    @staticmethod
    def _conflict(task: Task) -> ConflictError:
        return ConflictError(
            "Task was modified concurrently",
            {"task_id": task.task_id, "reason": "TASK_CONFLICT", "expected_version": task.version},
        )

    async def _commit_state(
        self,
        task: Task,
        new_state: TaskState,
        actor_id: str,
        *,
        notes: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> Task:
        """
        Write ``new_state`` and its event in one compare-and-swap update.

        Raises:
            ConflictError: If the task moved past ``task.version``
        """
        now = now_iso()
        updates = state_to_columns(new_state)
        updates["updated_at"] = now
        if extra is not None:
            updates.update(extra)

        changed = self._store.update_task(
            task.task_id,
            updates,
            expected_version=task.version,
            event=self._event(task.task_id, actor_id, task.status, new_state.status, notes, now),
        )
        if changed != 1:
            raise self._conflict(task)

        updated = self._load_task(task.task_id)
        self._logger.info(
            "Task transitioned",
            extra={
                "task_id": task.task_id,
                "actor_id": actor_id,
                "from_status": str(task.status),
                "to_status": str(updated.status),
                "version": updated.version,
            },
        )
        await self._publish(updated)
        return updated

    async def _publish(self, task: Task) -> None:
        await self._event_bus.publish(
            TaskChanged(task_id=task.task_id, status=task.status, version=task.version)
        )

    def _notify(self, user_id: str | None, template: str, data: dict[str, Any]) -> None:
        """
        Queue a best-effort email to ``user_id``.

        Delivery runs as a background task, so a slow gateway never holds
        up or times out the operation that already committed.
        """
        if user_id is None:
            return
        user = self._user_store.get_user(user_id)
        if user is None:
            return
        delivery = asyncio.create_task(self._deliver(user_id, user["email"], template, data))
        self._deliveries.add(delivery)
        delivery.add_done_callback(self._deliveries.discard)

    async def _deliver(
        self, user_id: str, address: str, template: str, data: dict[str, Any]
    ) -> None:
        """Send one notification; failures are logged, never raised."""
        try:
            await self._email_client.send_email(address, template, data)
        except NotificationError as exc:
            self._logger.warning(
                "Notification failed",
                extra={"user_id": user_id, "template": template, "error": exc.message},
            )
        except Exception:
            self._logger.exception(
                "Notification delivery crashed",
                extra={"user_id": user_id, "template": template},
            )

    async def drain_notifications(self) -> None:
        """Wait for every queued notification to finish."""
        while self._deliveries:
            await asyncio.gather(*self._deliveries, return_exceptions=True)

    def _refresh_trust(self, before: Task, after: Task) -> None:
        """Recompute the assignee's score when a completion was gained or lost."""
        if TaskStatus.COMPLETED not in (before.status, after.status):
            return
        assignee_id = before.assignee_id or after.assignee_id
        if assignee_id is not None:
            self._trust_engine.recompute_safely(assignee_id)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_task(self, task_id: str) -> Task:
        """
        Load a task.

        Raises:
            NotFoundError: If the task does not exist
            ValidationError: If the stored row describes an inconsistent state
        """
        return self._load_task(task_id)

    async def list_tasks(
        self,
        status: str | None,
        owner_id: str | None,
        assignee_id: str | None,
        limit: int | None,
        offset: int | None,
    ) -> list[Task]:
        """List tasks with optional filters. All filters use AND logic."""
        status_filter = None if status is None else str(_parse_status(status))
        rows = self._store.list_tasks(
            status=status_filter,
            owner_id=owner_id,
            assignee_id=assignee_id,
            limit=limit,
            offset=offset,
        )
        return [Task.from_row(row) for row in rows]

    async def get_task_history(self, task_id: str) -> list[TaskEvent]:
        """Return the status history of a task, oldest first."""
        self._load_task(task_id)
        return [TaskEvent(**row) for row in self._store.get_events(task_id)]

    # ------------------------------------------------------------------
    # Task lifecycle
    # ------------------------------------------------------------------

    async def create_task(self, owner_id: str, fields: dict[str, Any]) -> Task:
        """
        Create a new OPEN task owned by ``owner_id``.

        Raises:
            NotFoundError: Owner does not exist
            AuthorizationError: Owner is inactive
            ValidationError: Any field is missing or malformed
        """
        self._require_active_user(owner_id, "post tasks")
        columns = self._validate_fields(fields, partial=False)

        task_id = f"t-{uuid.uuid4()}"
        now = now_iso()
        row: dict[str, Any] = {
            "task_id": task_id,
            "owner_id": owner_id,
            **columns,
            **state_to_columns(OpenState()),
            "accepted_bid_id": None,
            "version": 1,
            "created_at": now,
            "updated_at": now,
        }
        try:
            self._store.insert_task(
                row,
                self._event(task_id, owner_id, None, TaskStatus.OPEN, None, now),
            )
        except DuplicateTaskError as exc:
            raise ConflictError("Task already exists", {"task_id": task_id}) from exc

        task = self._load_task(task_id)
        self._logger.info("Task created", extra={"task_id": task_id, "owner_id": owner_id})
        await self._publish(task)
        return task

    async def update_task(self, task: Task, actor_id: str, fields: dict[str, Any]) -> Task:
        """
        Edit an OPEN task.

        Raises:
            AuthorizationError: Actor is not the owner
            ValidationError: Task is not OPEN, or fields are malformed
            ConflictError: The task changed since ``task`` was loaded
        """
        require_owner(task, actor_id, "edit this task")
        if not can_modify(task, actor_id):
            raise ValidationError(
                f"Cannot edit task in {task.status} status",
                {"task_id": task.task_id, "status": str(task.status)},
            )

        columns = self._validate_fields(fields, partial=True)
        if not columns:
            raise ValidationError("No task fields supplied")
        columns["updated_at"] = now_iso()

        changed = self._store.update_task(
            task.task_id, columns, expected_version=task.version, event=None
        )
        if changed != 1:
            raise self._conflict(task)

        updated = self._load_task(task.task_id)
        self._logger.info(
            "Task updated",
            extra={"task_id": task.task_id, "fields": sorted(fields)},
        )
        await self._publish(updated)
        return updated

    async def delete_task(self, task: Task, actor_id: str) -> None:
        """
        Delete an OPEN task together with its bids and history.

        Raises:
            AuthorizationError: Actor is not the owner
            ValidationError: Task is not OPEN
            ConflictError: The task changed since ``task`` was loaded
        """
        require_owner(task, actor_id, "delete this task")
        if not can_modify(task, actor_id):
            raise ValidationError(
                f"Cannot delete task in {task.status} status",
                {"task_id": task.task_id, "status": str(task.status)},
            )

        if self._store.delete_task(task.task_id, expected_version=task.version) != 1:
            raise self._conflict(task)

        self._logger.info("Task deleted", extra={"task_id": task.task_id, "actor_id": actor_id})
        await self._event_bus.publish(TaskChanged(task_id=task.task_id, status=None, version=None))

    async def assign_task(self, task: Task, assignee_id: str, actor_id: str) -> Task:
        """
        Assign an OPEN task directly, moving it to IN_PROGRESS.

        Raises:
            AuthorizationError: Actor is not the owner
            ValidationError: Task is not OPEN, or the owner assigns themself
            NotFoundError: Assignee does not exist
            ConflictError: Another request changed the task first
        """
        require_owner(task, actor_id, "assign this task")
        if task.status is not TaskStatus.OPEN:
            raise ValidationError(
                f"Cannot assign task in {task.status} status",
                {"task_id": task.task_id, "status": str(task.status)},
            )
        if assignee_id == task.owner_id:
            raise ValidationError("Task owner cannot be assigned to their own task")
        self._require_active_user(assignee_id, "be assigned tasks")
        validate_transition(task.status, TaskStatus.IN_PROGRESS)

        updated = await self._commit_state(
            task,
            InProgressState(assignee_id=assignee_id),
            actor_id,
            notes=f"Assigned to {assignee_id}",
        )
        self._notify(
            assignee_id, "task_assigned", {"task_id": task.task_id, "title": task.title}
        )
        return updated

    async def request_transition(
        self,
        task: Task,
        target: TaskStatus | str,
        actor_id: str,
        notes: str | None = None,
    ) -> Task:
        """
        Move a task to ``target`` on behalf of its owner or assignee.

        Raises:
            AuthorizationError: Actor is neither owner nor assignee
            ValidationError: The transition is not in the table, or needs
                an assignee the task does not have
            ConflictError: Another request changed the task first
        """
        target_status = _parse_status(target)
        require_participant(task, actor_id)
        new_state = next_state(task, target_status, now_iso())

        updated = await self._commit_state(task, new_state, actor_id, notes=notes)
        self._refresh_trust(task, updated)
        if target_status is TaskStatus.COMPLETED:
            self._notify(
                task.assignee_id, "task_completed", {"task_id": task.task_id, "title": task.title}
            )
        elif target_status is TaskStatus.CANCELLED:
            self._notify(
                task.assignee_id, "task_cancelled", {"task_id": task.task_id, "title": task.title}
            )
        return updated

    async def complete_task(self, task: Task, actor_id: str) -> Task:
        """
        Mark an IN_PROGRESS task COMPLETED.

        The assignee precondition is checked before anything else, so an
        unassigned task fails the same way whoever asks.

        Raises:
            ValidationError: No assignee, or task is not IN_PROGRESS
            AuthorizationError: Actor is not the owner
            ConflictError: Another request changed the task first
        """
        if task.assignee_id is None:
            raise ValidationError(
                "Task has no assignee and cannot be completed",
                {"task_id": task.task_id, "status": str(task.status)},
            )
        require_owner(task, actor_id, "complete this task")
        validate_transition(task.status, TaskStatus.COMPLETED)
        if task.status is not TaskStatus.IN_PROGRESS:
            raise ValidationError(
                f"Cannot complete task in {task.status} status",
                {"task_id": task.task_id, "status": str(task.status)},
            )

        updated = await self._commit_state(
            task, next_state(task, TaskStatus.COMPLETED, now_iso()), actor_id
        )
        self._refresh_trust(task, updated)
        self._notify(
            task.assignee_id, "task_completed", {"task_id": task.task_id, "title": task.title}
        )
        return updated

    async def cancel_task(self, task: Task, actor_id: str) -> Task:
        """
        Cancel an OPEN or IN_PROGRESS task. The assignee is released.

        Raises:
            AuthorizationError: Actor is not the owner
            ValidationError: "Cannot transition from X to CANCELLED"
            ConflictError: Another request changed the task first
        """
        require_owner(task, actor_id, "cancel this task")
        validate_transition(task.status, TaskStatus.CANCELLED)
        if task.status not in (TaskStatus.OPEN, TaskStatus.IN_PROGRESS):
            raise ValidationError(
                f"Cannot cancel task in {task.status} status",
                {"task_id": task.task_id, "status": str(task.status)},
            )

        updated = await self._commit_state(
            task, next_state(task, TaskStatus.CANCELLED, now_iso()), actor_id
        )
        self._notify(
            task.assignee_id, "task_cancelled", {"task_id": task.task_id, "title": task.title}
        )
        return updated

    # ------------------------------------------------------------------
    # Bids
    # ------------------------------------------------------------------

    async def submit_bid(
        self,
        task_id: str,
        bidder_id: str,
        amount: object,
        message: str | None,
    ) -> Bid:
        """
        Place a bid on an OPEN task.

        Raises:
            NotFoundError: Task or bidder does not exist
            ValidationError: Task not OPEN, self-bid, or malformed amount
            ConflictError: Bidder already holds an active bid on the task
        """
        task = self._load_task(task_id)
        if task.status is not TaskStatus.OPEN:
            raise ValidationError(
                f"Cannot bid on task in {task.status} status",
                {"task_id": task_id, "status": str(task.status)},
            )
        if bidder_id == task.owner_id:
            raise ValidationError("Cannot bid on your own task", {"task_id": task_id})
        self._require_active_user(bidder_id, "bid on tasks")
        if not _is_positive_number(amount):
            raise ValidationError("Bid amount must be a positive number")
        if message is not None and len(message) > self._max_description_length:
            raise ValidationError(
                f"message must not exceed {self._max_description_length} characters"
            )

        now = now_iso()
        bid_row: dict[str, Any] = {
            "bid_id": f"bid-{uuid.uuid4()}",
            "task_id": task_id,
            "bidder_id": bidder_id,
            "amount": float(cast("float", amount)),
            "message": message,
            "status": str(BidStatus.PENDING),
            "submitted_at": now,
            "updated_at": now,
        }
        try:
            self._store.insert_bid(bid_row)
        except DuplicateBidError as exc:
            raise ConflictError(
                "This user already has an active bid on this task",
                {"task_id": task_id, "bidder_id": bidder_id},
            ) from exc

        bid = Bid.from_row(bid_row)
        self._logger.info(
            "Bid submitted",
            extra={"task_id": task_id, "bid_id": bid.bid_id, "bidder_id": bidder_id},
        )
        self._notify(
            task.owner_id,
            "bid_received",
            {"task_id": task_id, "bid_id": bid.bid_id, "amount": bid.amount},
        )
        return bid

    async def list_bids(self, task_id: str, actor_id: str) -> list[Bid]:
        """List bids on a task. The owner sees all bids, anyone else only their own."""
        task = self._load_task(task_id)
        bidder_filter = None if task.owner_id == actor_id else actor_id
        return [Bid.from_row(row) for row in self._store.get_bids_for_task(task_id, bidder_filter)]

    async def accept_bid(self, task_id: str, bid_id: str, actor_id: str) -> Task:
        """
        Accept a PENDING bid, assigning its bidder to the task.

        The bid and task are updated in one transaction; other PENDING
        bids are left as they are.

        Raises:
            NotFoundError: Task or bid does not exist
            AuthorizationError: Actor is not the owner
            ValidationError: Task not OPEN or bid not PENDING
            ConflictError: Another request changed the task or bid first
        """
        task = self._load_task(task_id)
        require_owner(task, actor_id, "accept bids")
        if task.status is not TaskStatus.OPEN:
            raise ValidationError(
                f"Cannot accept bid on task in {task.status} status",
                {"task_id": task_id, "status": str(task.status)},
            )
        bid = self._load_bid(task_id, bid_id)
        if bid.status is not BidStatus.PENDING:
            raise ValidationError(
                f"Cannot accept bid in {bid.status} status",
                {"bid_id": bid_id, "status": str(bid.status)},
            )
        validate_transition(task.status, TaskStatus.IN_PROGRESS)

        now = now_iso()
        new_state = InProgressState(assignee_id=bid.bidder_id)
        updates = state_to_columns(new_state)
        updates["accepted_bid_id"] = bid_id
        updates["updated_at"] = now
        accepted = self._store.accept_bid(
            task_id,
            bid_id,
            updates,
            expected_version=task.version,
            updated_at=now,
            event=self._event(
                task_id,
                actor_id,
                task.status,
                new_state.status,
                f"Accepted bid {bid_id}",
                now,
            ),
        )
        if not accepted:
            raise self._conflict(task)

        updated = self._load_task(task_id)
        self._logger.info(
            "Bid accepted",
            extra={"task_id": task_id, "bid_id": bid_id, "assignee_id": bid.bidder_id},
        )
        await self._publish(updated)
        self._notify(
            bid.bidder_id, "task_assigned", {"task_id": task_id, "title": task.title}
        )
        return updated

    async def _resolve_bid(self, bid: Bid, status: BidStatus) -> Bid:
        if bid.status is not BidStatus.PENDING:
            raise ValidationError(
                f"Cannot {'withdraw' if status is BidStatus.WITHDRAWN else 'reject'} "
                f"bid in {bid.status} status",
                {"bid_id": bid.bid_id, "status": str(bid.status)},
            )
        changed = self._store.update_bid_status(
            bid.bid_id,
            str(status),
            expected_status=str(BidStatus.PENDING),
            updated_at=now_iso(),
        )
        if changed != 1:
            raise ConflictError("Bid was modified concurrently", {"bid_id": bid.bid_id})
        self._logger.info(
            "Bid resolved",
            extra={"task_id": bid.task_id, "bid_id": bid.bid_id, "status": str(status)},
        )
        return self._load_bid(bid.task_id, bid.bid_id)

    async def withdraw_bid(self, task_id: str, bid_id: str, actor_id: str) -> Bid:
        """
        Withdraw a PENDING bid. Only the bidder may do this.

        Raises:
            NotFoundError: Bid does not exist on this task
            AuthorizationError: Actor is not the bidder
            ValidationError: Bid is not PENDING
        """
        bid = self._load_bid(task_id, bid_id)
        if bid.bidder_id != actor_id:
            raise AuthorizationError("Only the bidder can withdraw this bid", {"bid_id": bid_id})
        return await self._resolve_bid(bid, BidStatus.WITHDRAWN)

    async def reject_bid(self, task_id: str, bid_id: str, actor_id: str) -> Bid:
        """
        Reject a PENDING bid. Only the task owner may do this.

        Raises:
            NotFoundError: Task or bid does not exist
            AuthorizationError: Actor is not the owner
            ValidationError: Bid is not PENDING
        """
        task = self._load_task(task_id)
        require_owner(task, actor_id, "reject bids")
        bid = self._load_bid(task_id, bid_id)
        return await self._resolve_bid(bid, BidStatus.REJECTED)

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def get_stats(self) -> dict[str, Any]:
        """Return task counts for the health endpoint."""
        return {
            "total_tasks": self._store.count_tasks(),
            "tasks_by_status": self._store.count_tasks_by_status(),
        }
