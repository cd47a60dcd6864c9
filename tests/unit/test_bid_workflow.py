"""Unit tests for bidding through TaskManager."""

from __future__ import annotations

import pytest

from task_market_service.core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from task_market_service.models import BidStatus, TaskStatus

TASK_FIELDS = {
    "title": "Assemble a wardrobe",
    "description": "Flat-pack, two doors, instructions included",
    "budget": {"amount": 100},
}


@pytest.fixture
async def task(services):
    return await services.task_manager.create_task("u-alice", dict(TASK_FIELDS))


@pytest.mark.unit
async def test_submit_bid(services, task) -> None:
    """A bid starts PENDING and the owner is notified."""
    bid = await services.task_manager.submit_bid(task.task_id, "u-bob", 90, "Can do it today")

    assert bid.bid_id.startswith("bid-")
    assert bid.status is BidStatus.PENDING
    assert bid.amount == 90.0
    assert bid.message == "Can do it today"
    await services.task_manager.drain_notifications()
    services.email_client.send_email.assert_awaited_with(
        "u-alice@example.com",
        "bid_received",
        {"task_id": task.task_id, "bid_id": bid.bid_id, "amount": 90.0},
    )


@pytest.mark.unit
async def test_submit_bid_rules(services, task) -> None:
    """Self-bids, bad amounts, unknown bidders and duplicate bids are refused."""
    manager = services.task_manager

    with pytest.raises(ValidationError, match="Cannot bid on your own task"):
        await manager.submit_bid(task.task_id, "u-alice", 50, None)
    with pytest.raises(ValidationError, match="positive number"):
        await manager.submit_bid(task.task_id, "u-bob", -5, None)
    with pytest.raises(ValidationError, match="positive number"):
        await manager.submit_bid(task.task_id, "u-bob", "90", None)
    with pytest.raises(ValidationError, match="positive number"):
        await manager.submit_bid(task.task_id, "u-bob", float("inf"), None)
    with pytest.raises(NotFoundError):
        await manager.submit_bid(task.task_id, "u-ghost", 50, None)
    with pytest.raises(NotFoundError):
        await manager.submit_bid("t-missing", "u-bob", 50, None)

    await manager.submit_bid(task.task_id, "u-bob", 90, None)
    with pytest.raises(ConflictError, match="already has an active bid"):
        await manager.submit_bid(task.task_id, "u-bob", 80, None)


@pytest.mark.unit
async def test_cannot_bid_once_assigned(services, task) -> None:
    """Bids are only accepted while the task is OPEN."""
    await services.task_manager.assign_task(task, "u-bob", "u-alice")
    with pytest.raises(ValidationError, match="Cannot bid on task in IN_PROGRESS status"):
        await services.task_manager.submit_bid(task.task_id, "u-carol", 70, None)


@pytest.mark.unit
async def test_list_bids_visibility(services, task) -> None:
    """The owner sees every bid; bidders see only their own."""
    manager = services.task_manager
    bob_bid = await manager.submit_bid(task.task_id, "u-bob", 90, None)
    carol_bid = await manager.submit_bid(task.task_id, "u-carol", 80, None)

    owner_view = await manager.list_bids(task.task_id, "u-alice")
    assert {b.bid_id for b in owner_view} == {bob_bid.bid_id, carol_bid.bid_id}

    bob_view = await manager.list_bids(task.task_id, "u-bob")
    assert [b.bid_id for b in bob_view] == [bob_bid.bid_id]

    assert await manager.list_bids(task.task_id, "u-admin") == []


@pytest.mark.unit
async def test_accept_bid_assigns_bidder(services, task) -> None:
    """Accepting a bid moves the task to IN_PROGRESS; other bids stay PENDING."""
    manager = services.task_manager
    bob_bid = await manager.submit_bid(task.task_id, "u-bob", 90, None)
    carol_bid = await manager.submit_bid(task.task_id, "u-carol", 80, None)

    accepted = await manager.accept_bid(task.task_id, bob_bid.bid_id, "u-alice")

    assert accepted.status is TaskStatus.IN_PROGRESS
    assert accepted.assignee_id == "u-bob"
    assert accepted.accepted_bid_id == bob_bid.bid_id
    assert accepted.version == 2

    bids = {b.bid_id: b.status for b in await manager.list_bids(task.task_id, "u-alice")}
    assert bids == {bob_bid.bid_id: BidStatus.ACCEPTED, carol_bid.bid_id: BidStatus.PENDING}

    history = await manager.get_task_history(task.task_id)
    assert history[-1].notes == f"Accepted bid {bob_bid.bid_id}"

    with pytest.raises(ValidationError, match="Cannot accept bid on task in IN_PROGRESS status"):
        await manager.accept_bid(task.task_id, carol_bid.bid_id, "u-alice")


@pytest.mark.unit
async def test_accept_bid_rules(services, task) -> None:
    """Only the owner accepts, and only PENDING bids that exist on this task."""
    manager = services.task_manager
    bid = await manager.submit_bid(task.task_id, "u-bob", 90, None)

    with pytest.raises(AuthorizationError):
        await manager.accept_bid(task.task_id, bid.bid_id, "u-bob")
    with pytest.raises(NotFoundError):
        await manager.accept_bid(task.task_id, "bid-missing", "u-alice")

    await manager.withdraw_bid(task.task_id, bid.bid_id, "u-bob")
    with pytest.raises(ValidationError, match="Cannot accept bid in WITHDRAWN status"):
        await manager.accept_bid(task.task_id, bid.bid_id, "u-alice")


@pytest.mark.unit
async def test_example_scenario(services) -> None:
    """Create, accept a bid, complete, then fail to cancel."""
    manager = services.task_manager
    task = await manager.create_task("u-alice", dict(TASK_FIELDS))
    assert task.status is TaskStatus.OPEN
    assert task.budget is not None
    assert task.budget.amount == 100.0

    bid = await manager.submit_bid(task.task_id, "u-bob", 95, None)
    assigned = await manager.accept_bid(task.task_id, bid.bid_id, "u-alice")
    assert assigned.status is TaskStatus.IN_PROGRESS
    assert assigned.assignee_id == "u-bob"

    completed = await manager.complete_task(assigned, "u-alice")
    assert completed.status is TaskStatus.COMPLETED
    assert completed.completed_at is not None

    with pytest.raises(ValidationError) as exc_info:
        await manager.cancel_task(completed, "u-alice")
    assert exc_info.value.message == "Cannot transition from COMPLETED to CANCELLED"


@pytest.mark.unit
async def test_withdraw_and_reject(services, task) -> None:
    """Bidders withdraw their own bids; owners reject; both only from PENDING."""
    manager = services.task_manager
    bob_bid = await manager.submit_bid(task.task_id, "u-bob", 90, None)
    carol_bid = await manager.submit_bid(task.task_id, "u-carol", 80, None)

    with pytest.raises(AuthorizationError):
        await manager.withdraw_bid(task.task_id, bob_bid.bid_id, "u-carol")
    withdrawn = await manager.withdraw_bid(task.task_id, bob_bid.bid_id, "u-bob")
    assert withdrawn.status is BidStatus.WITHDRAWN
    with pytest.raises(ValidationError, match="Cannot withdraw bid in WITHDRAWN status"):
        await manager.withdraw_bid(task.task_id, bob_bid.bid_id, "u-bob")

    with pytest.raises(AuthorizationError):
        await manager.reject_bid(task.task_id, carol_bid.bid_id, "u-bob")
    rejected = await manager.reject_bid(task.task_id, carol_bid.bid_id, "u-alice")
    assert rejected.status is BidStatus.REJECTED

    # A withdrawn bidder may bid again.
    again = await manager.submit_bid(task.task_id, "u-bob", 85, None)
    assert again.status is BidStatus.PENDING
