"""Bid endpoint tests."""

from __future__ import annotations

import pytest

from tests.unit.routers.conftest import as_user, create_task_id, submit_bid


class TestSubmitBid:
    """POST /tasks/{task_id}/bids."""

    @pytest.mark.unit
    async def test_submit_bid(self, client, alice, bob):
        """A tasker bid is stored as PENDING."""
        task_id = await create_task_id(client, alice)
        response = await submit_bid(client, bob, task_id, amount=90)
        assert response.status_code == 201

        data = response.json()
        assert data["bid_id"].startswith("bid-")
        assert data["task_id"] == task_id
        assert data["bidder_id"] == bob
        assert data["amount"] == 90
        assert data["status"] == "PENDING"

    @pytest.mark.unit
    async def test_owner_cannot_bid(self, client, alice):
        task_id = await create_task_id(client, alice)
        response = await submit_bid(client, alice, task_id)
        assert response.status_code == 400
        assert response.json()["message"] == "Cannot bid on your own task"

    @pytest.mark.unit
    async def test_duplicate_active_bid(self, client, alice, bob):
        """A second active bid by the same user conflicts."""
        task_id = await create_task_id(client, alice)
        await submit_bid(client, bob, task_id)
        response = await submit_bid(client, bob, task_id, amount=80)
        assert response.status_code == 409

    @pytest.mark.unit
    @pytest.mark.parametrize("amount", [0, -5, "ninety", True, None])
    async def test_bad_amount(self, client, alice, bob, amount):
        task_id = await create_task_id(client, alice)
        response = await submit_bid(client, bob, task_id, amount=amount)
        assert response.status_code == 400
        assert response.json()["message"] == "Bid amount must be a positive number"

    @pytest.mark.unit
    async def test_overflowing_amount(self, client, alice, bob):
        """An amount that overflows to infinity is rejected, not stored."""
        task_id = await create_task_id(client, alice)
        response = await client.post(
            f"/tasks/{task_id}/bids",
            content=b'{"amount": 1e999}',
            headers={**as_user(bob), "Content-Type": "application/json"},
        )
        assert response.status_code == 400
        assert response.json()["error"] == "VALIDATION_ERROR"
        assert response.json()["message"] == "Bid amount must be a positive number"

        bids = await client.get(f"/tasks/{task_id}/bids", headers=as_user(alice))
        assert bids.status_code == 200
        assert bids.json()["bids"] == []

    @pytest.mark.unit
    async def test_missing_amount(self, client, alice, bob):
        task_id = await create_task_id(client, alice)
        response = await client.post(f"/tasks/{task_id}/bids", json={}, headers=as_user(bob))
        assert response.status_code == 400
        assert response.json()["details"] == {"field": "amount"}

    @pytest.mark.unit
    async def test_bid_on_unknown_task(self, client, bob):
        response = await submit_bid(client, bob, "t-missing")
        assert response.status_code == 404


class TestListBids:
    """GET /tasks/{task_id}/bids."""

    @pytest.mark.unit
    async def test_owner_sees_all_bidders_see_own(self, client, alice, bob, carol):
        task_id = await create_task_id(client, alice)
        await submit_bid(client, bob, task_id, amount=90)
        await submit_bid(client, carol, task_id, amount=85)

        owner_view = await client.get(f"/tasks/{task_id}/bids", headers=as_user(alice))
        assert owner_view.status_code == 200
        assert {b["bidder_id"] for b in owner_view.json()["bids"]} == {bob, carol}

        bob_view = await client.get(f"/tasks/{task_id}/bids", headers=as_user(bob))
        assert [b["bidder_id"] for b in bob_view.json()["bids"]] == [bob]


class TestResolveBids:
    """Accept, reject and withdraw."""

    @pytest.mark.unit
    async def test_accept_bid_assigns_bidder(self, client, alice, bob, carol):
        """Accepting moves the task to IN_PROGRESS and leaves other bids PENDING."""
        task_id = await create_task_id(client, alice)
        bid_id = (await submit_bid(client, bob, task_id)).json()["bid_id"]
        await submit_bid(client, carol, task_id, amount=85)

        response = await client.post(
            f"/tasks/{task_id}/bids/{bid_id}/accept", headers=as_user(alice)
        )
        assert response.status_code == 200
        task = response.json()
        assert task["status"] == "IN_PROGRESS"
        assert task["assignee_id"] == bob
        assert task["accepted_bid_id"] == bid_id

        bids = (await client.get(f"/tasks/{task_id}/bids", headers=as_user(alice))).json()["bids"]
        statuses = {b["bidder_id"]: b["status"] for b in bids}
        assert statuses == {bob: "ACCEPTED", carol: "PENDING"}

    @pytest.mark.unit
    async def test_accept_requires_owner(self, client, alice, bob):
        task_id = await create_task_id(client, alice)
        bid_id = (await submit_bid(client, bob, task_id)).json()["bid_id"]

        response = await client.post(f"/tasks/{task_id}/bids/{bid_id}/accept", headers=as_user(bob))
        assert response.status_code == 403

    @pytest.mark.unit
    async def test_accept_after_assignment(self, client, alice, bob, carol):
        """A second acceptance fails once the task left OPEN."""
        task_id = await create_task_id(client, alice)
        first = (await submit_bid(client, bob, task_id)).json()["bid_id"]
        second = (await submit_bid(client, carol, task_id)).json()["bid_id"]
        await client.post(f"/tasks/{task_id}/bids/{first}/accept", headers=as_user(alice))

        response = await client.post(
            f"/tasks/{task_id}/bids/{second}/accept", headers=as_user(alice)
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Cannot accept bid on task in IN_PROGRESS status"

    @pytest.mark.unit
    async def test_withdraw_and_reject(self, client, alice, bob, carol):
        task_id = await create_task_id(client, alice)
        bob_bid = (await submit_bid(client, bob, task_id)).json()["bid_id"]
        carol_bid = (await submit_bid(client, carol, task_id)).json()["bid_id"]

        stranger = await client.post(
            f"/tasks/{task_id}/bids/{bob_bid}/withdraw", headers=as_user(carol)
        )
        assert stranger.status_code == 403

        withdrawn = await client.post(
            f"/tasks/{task_id}/bids/{bob_bid}/withdraw", headers=as_user(bob)
        )
        assert withdrawn.status_code == 200
        assert withdrawn.json()["status"] == "WITHDRAWN"

        rejected = await client.post(
            f"/tasks/{task_id}/bids/{carol_bid}/reject", headers=as_user(alice)
        )
        assert rejected.status_code == 200
        assert rejected.json()["status"] == "REJECTED"

        again = await client.post(
            f"/tasks/{task_id}/bids/{carol_bid}/reject", headers=as_user(alice)
        )
        assert again.status_code == 400
        assert again.json()["message"] == "Cannot reject bid in REJECTED status"

    @pytest.mark.unit
    async def test_rebid_after_withdraw(self, client, alice, bob):
        """A withdrawn bid no longer blocks a new one."""
        task_id = await create_task_id(client, alice)
        bid_id = (await submit_bid(client, bob, task_id)).json()["bid_id"]
        await client.post(f"/tasks/{task_id}/bids/{bid_id}/withdraw", headers=as_user(bob))

        response = await submit_bid(client, bob, task_id, amount=70)
        assert response.status_code == 201
