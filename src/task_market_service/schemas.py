"""Pydantic request/response models for the API."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict


class HealthResponse(BaseModel):
    """Response model for GET /health."""

    model_config = ConfigDict(extra="forbid")
    status: Literal["ok"]
    uptime_seconds: float
    started_at: str
    total_tasks: int
    tasks_by_status: dict[str, int]


class ErrorResponse(BaseModel):
    """Standard error response model."""

    model_config = ConfigDict(extra="forbid")
    error: str
    message: str
    details: dict[str, object]


class BudgetResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")
    amount: float
    type: str


class TaskResponse(BaseModel):
    """Full task detail response model."""

    model_config = ConfigDict(extra="forbid")
    task_id: str
    owner_id: str
    title: str
    description: str
    status: str
    priority: str
    budget: BudgetResponse | None
    category: str | None
    location: str | None
    deadline: str | None
    assignee_id: str | None
    accepted_bid_id: str | None
    version: int
    created_at: str
    updated_at: str
    completed_at: str | None
    cancelled_at: str | None
    disputed_at: str | None


class TaskListResponse(BaseModel):
    """Response model for GET /tasks."""

    model_config = ConfigDict(extra="forbid")
    tasks: list[TaskResponse]


class TaskEventResponse(BaseModel):
    """A single status change in a task's history."""

    model_config = ConfigDict(extra="forbid")
    event_id: str
    task_id: str
    actor_id: str
    from_status: str | None
    to_status: str
    notes: str | None
    created_at: str


class TaskHistoryResponse(BaseModel):
    """Response model for GET /tasks/{task_id}/history."""

    model_config = ConfigDict(extra="forbid")
    task_id: str
    events: list[TaskEventResponse]


class BidResponse(BaseModel):
    """Response model for a single bid."""

    model_config = ConfigDict(extra="forbid")
    bid_id: str
    task_id: str
    bidder_id: str
    amount: float
    message: str | None
    status: str
    submitted_at: str
    updated_at: str


class BidListResponse(BaseModel):
    """Response model for GET /tasks/{task_id}/bids."""

    model_config = ConfigDict(extra="forbid")
    task_id: str
    bids: list[BidResponse]


class UserResponse(BaseModel):
    """Response model for a platform user."""

    model_config = ConfigDict(extra="forbid")
    user_id: str
    email: str
    phone: str | None
    role: str
    email_verified: bool
    phone_verified: bool
    trust_score: int
    is_active: bool
    created_at: str


class DocumentResponse(BaseModel):
    """Response model for a document verification record."""

    model_config = ConfigDict(extra="forbid")
    verification_id: str
    user_id: str
    document_type: str
    document_url: str
    notes: str | None
    status: str
    submitted_at: str
    reviewed_at: str | None
    reviewer_notes: str | None


class VerificationStatusResponse(BaseModel):
    """Response model for GET /verification/status."""

    model_config = ConfigDict(extra="forbid")
    user_id: str
    email_verified: bool
    phone_verified: bool
    document_status: Literal["NONE", "PENDING", "VERIFIED", "REJECTED"]
    documents: list[DocumentResponse]
    trust_score: int
    verification_level: Literal["BASIC", "STANDARD", "PREMIUM"]
