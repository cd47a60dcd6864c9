"""Domain records for tasks, bids, users and verification artifacts."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, ClassVar

from task_market_service.core.exceptions import ValidationError


def to_iso(moment: datetime) -> str:
    """Render a datetime as an ISO 8601 UTC string with Z suffix.

    Fixed microsecond precision keeps stored timestamps lexicographically
    comparable in SQL.
    """
    return moment.astimezone(UTC).isoformat(timespec="microseconds").replace("+00:00", "Z")


def parse_iso(value: str) -> datetime:
    """Parse an ISO 8601 string (Z or offset suffix) into an aware datetime."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def utc_now() -> datetime:
    return datetime.now(UTC)


def now_iso() -> str:
    return to_iso(utc_now())


class TaskStatus(StrEnum):
    OPEN = "OPEN"
    ACCEPTED = "ACCEPTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    DISPUTED = "DISPUTED"


class TaskPriority(StrEnum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class BudgetType(StrEnum):
    FIXED = "FIXED"
    HOURLY = "HOURLY"


class BidStatus(StrEnum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    WITHDRAWN = "WITHDRAWN"


class UserRole(StrEnum):
    USER = "USER"
    TASKER = "TASKER"
    ADMIN = "ADMIN"


class VerificationChannel(StrEnum):
    EMAIL = "email"
    PHONE = "phone"


class DocumentType(StrEnum):
    ID_DOCUMENT = "ID_DOCUMENT"
    ADDRESS_PROOF = "ADDRESS_PROOF"
    BACKGROUND_CHECK = "BACKGROUND_CHECK"


class DocumentStatus(StrEnum):
    """Status of a single document verification record."""

    PENDING = "PENDING"
    VERIFIED = "VERIFIED"
    REJECTED = "REJECTED"


class VerificationLevel(StrEnum):
    BASIC = "BASIC"
    STANDARD = "STANDARD"
    PREMIUM = "PREMIUM"


# ---------------------------------------------------------------------------
# Task lifecycle states
#
# Each variant carries exactly the fields that are legal for its status, so
# an IN_PROGRESS task without an assignee or a COMPLETED task without a
# completion time cannot be built.
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class OpenState:
    status: ClassVar[TaskStatus] = TaskStatus.OPEN


@dataclass(frozen=True)
class AcceptedState:
    assignee_id: str
    status: ClassVar[TaskStatus] = TaskStatus.ACCEPTED


@dataclass(frozen=True)
class InProgressState:
    assignee_id: str
    status: ClassVar[TaskStatus] = TaskStatus.IN_PROGRESS


@dataclass(frozen=True)
class CompletedState:
    assignee_id: str
    completed_at: str
    status: ClassVar[TaskStatus] = TaskStatus.COMPLETED


@dataclass(frozen=True)
class CancelledState:
    cancelled_at: str
    status: ClassVar[TaskStatus] = TaskStatus.CANCELLED


@dataclass(frozen=True)
class DisputedState:
    assignee_id: str
    disputed_at: str
    status: ClassVar[TaskStatus] = TaskStatus.DISPUTED


TaskState = (
    OpenState | AcceptedState | InProgressState | CompletedState | CancelledState | DisputedState
)


def state_from_columns(
    status: str,
    assignee_id: str | None,
    completed_at: str | None,
    cancelled_at: str | None,
    disputed_at: str | None,
) -> TaskState:
    """
    Rebuild a task state from its flat column representation.

    Raises:
        ValidationError: If the columns describe an inconsistent state
    """
    try:
        task_status = TaskStatus(status)
    except ValueError as exc:
        raise ValidationError(f"Unknown task status '{status}'") from exc

    if task_status is TaskStatus.OPEN:
        if assignee_id is None and completed_at is None and cancelled_at is None:
            return OpenState()
    elif task_status is TaskStatus.CANCELLED:
        if assignee_id is None and completed_at is None and cancelled_at is not None:
            return CancelledState(cancelled_at=cancelled_at)
    elif assignee_id is None:
        raise ValidationError(
            f"Task in {task_status} status has no assignee",
            {"status": str(task_status)},
        )
    elif task_status is TaskStatus.ACCEPTED:
        if completed_at is None and cancelled_at is None:
            return AcceptedState(assignee_id=assignee_id)
    elif task_status is TaskStatus.IN_PROGRESS:
        if completed_at is None and cancelled_at is None:
            return InProgressState(assignee_id=assignee_id)
    elif task_status is TaskStatus.COMPLETED:
        if completed_at is not None and cancelled_at is None:
            return CompletedState(assignee_id=assignee_id, completed_at=completed_at)
    elif completed_at is None and cancelled_at is None and disputed_at is not None:
        return DisputedState(assignee_id=assignee_id, disputed_at=disputed_at)

    raise ValidationError(
        f"Task in {task_status} status has inconsistent timestamps",
        {"status": str(task_status)},
    )


def state_to_columns(state: TaskState) -> dict[str, Any]:
    """Flatten a task state into its storage columns."""
    return {
        "status": str(state.status),
        "assignee_id": getattr(state, "assignee_id", None),
        "completed_at": getattr(state, "completed_at", None),
        "cancelled_at": getattr(state, "cancelled_at", None),
        "disputed_at": getattr(state, "disputed_at", None),
    }


@dataclass(frozen=True)
class Budget:
    amount: float
    budget_type: BudgetType


@dataclass(frozen=True)
class Task:
    """A unit of work posted by an owner."""

    task_id: str
    owner_id: str
    title: str
    description: str
    state: TaskState
    priority: TaskPriority
    budget: Budget | None
    category: str | None
    location: str | None
    deadline: str | None
    accepted_bid_id: str | None
    version: int
    created_at: str
    updated_at: str

    @property
    def status(self) -> TaskStatus:
        return self.state.status

    @property
    def assignee_id(self) -> str | None:
        return getattr(self.state, "assignee_id", None)

    @property
    def completed_at(self) -> str | None:
        return getattr(self.state, "completed_at", None)

    @property
    def cancelled_at(self) -> str | None:
        return getattr(self.state, "cancelled_at", None)

    @property
    def disputed_at(self) -> str | None:
        return getattr(self.state, "disputed_at", None)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Task:
        """Build a Task from a TaskStore row dict."""
        budget: Budget | None = None
        if row["budget_amount"] is not None:
            budget = Budget(
                amount=float(row["budget_amount"]),
                budget_type=BudgetType(row["budget_type"]),
            )
        return cls(
            task_id=row["task_id"],
            owner_id=row["owner_id"],
            title=row["title"],
            description=row["description"],
            state=state_from_columns(
                row["status"],
                row["assignee_id"],
                row["completed_at"],
                row["cancelled_at"],
                row["disputed_at"],
            ),
            priority=TaskPriority(row["priority"]),
            budget=budget,
            category=row["category"],
            location=row["location"],
            deadline=row["deadline"],
            accepted_bid_id=row["accepted_bid_id"],
            version=int(row["version"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize for API responses."""
        return {
            "task_id": self.task_id,
            "owner_id": self.owner_id,
            "title": self.title,
            "description": self.description,
            "status": str(self.status),
            "priority": str(self.priority),
            "budget": (
                None
                if self.budget is None
                else {"amount": self.budget.amount, "type": str(self.budget.budget_type)}
            ),
            "category": self.category,
            "location": self.location,
            "deadline": self.deadline,
            "assignee_id": self.assignee_id,
            "accepted_bid_id": self.accepted_bid_id,
            "version": self.version,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "completed_at": self.completed_at,
            "cancelled_at": self.cancelled_at,
            "disputed_at": self.disputed_at,
        }


@dataclass(frozen=True)
class Bid:
    bid_id: str
    task_id: str
    bidder_id: str
    amount: float
    message: str | None
    status: BidStatus
    submitted_at: str
    updated_at: str

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Bid:
        return cls(
            bid_id=row["bid_id"],
            task_id=row["task_id"],
            bidder_id=row["bidder_id"],
            amount=float(row["amount"]),
            message=row["message"],
            status=BidStatus(row["status"]),
            submitted_at=row["submitted_at"],
            updated_at=row["updated_at"],
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["status"] = str(self.status)
        return data


@dataclass(frozen=True)
class TaskEvent:
    """Audit record for a committed task status change."""

    event_id: str
    task_id: str
    actor_id: str
    from_status: str | None
    to_status: str
    notes: str | None
    created_at: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class TaskChanged:
    """Published after every committed task mutation."""

    task_id: str
    status: TaskStatus | None
    version: int | None


@dataclass(frozen=True)
class User:
    user_id: str
    email: str
    phone: str | None
    role: UserRole
    email_verified: bool
    phone_verified: bool
    trust_score: int
    is_active: bool
    created_at: str

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> User:
        return cls(
            user_id=row["user_id"],
            email=row["email"],
            phone=row["phone"],
            role=UserRole(row["role"]),
            email_verified=bool(row["email_verified"]),
            phone_verified=bool(row["phone_verified"]),
            trust_score=int(row["trust_score"]),
            is_active=bool(row["is_active"]),
            created_at=row["created_at"],
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["role"] = str(self.role)
        return data


@dataclass(frozen=True)
class EmailVerification:
    verification_id: str
    user_id: str
    token: str
    email: str
    expires_at: str
    created_at: str


@dataclass(frozen=True)
class PhoneVerification:
    verification_id: str
    user_id: str
    code: str
    phone: str
    attempts: int
    max_attempts: int
    expires_at: str
    created_at: str


@dataclass(frozen=True)
class DocumentVerification:
    verification_id: str
    user_id: str
    document_type: DocumentType
    document_url: str
    notes: str | None
    status: DocumentStatus
    submitted_at: str
    reviewed_at: str | None
    reviewer_notes: str | None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> DocumentVerification:
        return cls(
            verification_id=row["verification_id"],
            user_id=row["user_id"],
            document_type=DocumentType(row["document_type"]),
            document_url=row["document_url"],
            notes=row["notes"],
            status=DocumentStatus(row["status"]),
            submitted_at=row["submitted_at"],
            reviewed_at=row["reviewed_at"],
            reviewer_notes=row["reviewer_notes"],
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["document_type"] = str(self.document_type)
        data["status"] = str(self.status)
        return data
