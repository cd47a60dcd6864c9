"""Bid submission, listing, acceptance and resolution endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from task_market_service.core.exceptions import ValidationError
from task_market_service.core.state import get_app_state
from task_market_service.core.timeouts import run_with_timeout
from task_market_service.routers.validation import (
    ACTOR_HEADER,
    extract_actor_id,
    optional_string,
    parse_json_body,
)
from task_market_service.schemas import BidListResponse

router = APIRouter()


# ---------------------------------------------------------------------------
# POST /tasks/{task_id}/bids: submit bid
# MUST be before GET /tasks/{task_id}/bids
# ---------------------------------------------------------------------------


@router.post("/tasks/{task_id}/bids", status_code=201)
async def submit_bid(task_id: str, request: Request) -> JSONResponse:
    """Submit a bid on an OPEN task."""
    actor_id = extract_actor_id(request.headers.get(ACTOR_HEADER))
    data = parse_json_body(await request.body())
    if "amount" not in data:
        raise ValidationError("Missing required field: amount", {"field": "amount"})
    message = optional_string(data, "message")

    state = get_app_state()
    manager = state.require_task_manager()
    bid = await run_with_timeout(
        manager.submit_bid(task_id, actor_id, data["amount"], message),
        state.operation_timeout_seconds,
        "submit_bid",
    )
    return JSONResponse(status_code=201, content=bid.to_dict())


@router.get("/tasks/{task_id}/bids", response_model=BidListResponse)
async def list_bids(task_id: str, request: Request) -> dict[str, Any]:
    """List bids: the owner sees every bid, other callers only their own."""
    actor_id = extract_actor_id(request.headers.get(ACTOR_HEADER))
    manager = get_app_state().require_task_manager()
    bids = await manager.list_bids(task_id, actor_id)
    return {"task_id": task_id, "bids": [bid.to_dict() for bid in bids]}


# ---------------------------------------------------------------------------
# Bid actions
# ---------------------------------------------------------------------------


@router.post("/tasks/{task_id}/bids/{bid_id}/accept")
async def accept_bid(task_id: str, bid_id: str, request: Request) -> dict[str, Any]:
    """Accept a PENDING bid and assign the bidder."""
    actor_id = extract_actor_id(request.headers.get(ACTOR_HEADER))
    state = get_app_state()
    manager = state.require_task_manager()
    task = await run_with_timeout(
        manager.accept_bid(task_id, bid_id, actor_id),
        state.operation_timeout_seconds,
        "accept_bid",
    )
    return task.to_dict()


@router.post("/tasks/{task_id}/bids/{bid_id}/reject")
async def reject_bid(task_id: str, bid_id: str, request: Request) -> dict[str, Any]:
    """Reject a PENDING bid."""
    actor_id = extract_actor_id(request.headers.get(ACTOR_HEADER))
    state = get_app_state()
    manager = state.require_task_manager()
    bid = await run_with_timeout(
        manager.reject_bid(task_id, bid_id, actor_id),
        state.operation_timeout_seconds,
        "reject_bid",
    )
    return bid.to_dict()


@router.post("/tasks/{task_id}/bids/{bid_id}/withdraw")
async def withdraw_bid(task_id: str, bid_id: str, request: Request) -> dict[str, Any]:
    """Withdraw the caller's own PENDING bid."""
    actor_id = extract_actor_id(request.headers.get(ACTOR_HEADER))
    state = get_app_state()
    manager = state.require_task_manager()
    bid = await run_with_timeout(
        manager.withdraw_bid(task_id, bid_id, actor_id),
        state.operation_timeout_seconds,
        "withdraw_bid",
    )
    return bid.to_dict()
