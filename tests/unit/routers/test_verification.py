"""Verification endpoint tests with mocked email and SMS gateways."""

from __future__ import annotations

import asyncio
import re

import pytest

from task_market_service.core.exceptions import NotificationError
from task_market_service.core.state import get_app_state
from tests.unit.routers.conftest import as_user


def _last_email_token() -> str:
    send_email = get_app_state().email_client.send_email
    return str(send_email.await_args.args[2]["token"])


def _last_sms_code() -> str:
    send_sms = get_app_state().sms_client.send_sms
    match = re.search(r"\b(\d{6})\b", send_sms.await_args.args[1])
    assert match is not None
    return match.group(1)


class TestEmailVerification:
    """POST /verification/email/send and /verification/email/verify."""

    @pytest.mark.unit
    async def test_send_and_verify_email(self, client, alice):
        response = await client.post("/verification/email/send", headers=as_user(alice))
        assert response.status_code == 202
        assert response.json()["email"] == "alice@example.com"
        assert "token" not in response.json()

        send_email = get_app_state().email_client.send_email
        assert send_email.await_args.args[0] == "alice@example.com"
        assert send_email.await_args.args[1] == "email_verification"

        verified = await client.post(
            "/verification/email/verify", json={"token": _last_email_token()}
        )
        assert verified.status_code == 200
        assert verified.json()["email_verified"] is True
        assert verified.json()["trust_score"] == 20

    @pytest.mark.unit
    async def test_token_is_single_use(self, client, alice):
        await client.post("/verification/email/send", headers=as_user(alice))
        token = _last_email_token()
        await client.post("/verification/email/verify", json={"token": token})

        response = await client.post("/verification/email/verify", json={"token": token})
        assert response.status_code == 400
        assert response.json()["message"] == "Invalid or expired verification token"

    @pytest.mark.unit
    async def test_email_rate_limited(self, client, alice):
        for _ in range(3):
            response = await client.post("/verification/email/send", headers=as_user(alice))
            assert response.status_code == 202

        response = await client.post("/verification/email/send", headers=as_user(alice))
        assert response.status_code == 429
        assert response.json()["error"] == "RATE_LIMITED"

    @pytest.mark.unit
    async def test_gateway_failure_returns_502(self, client, alice):
        """A failed send surfaces as 502 and does not use up the rate limit."""
        get_app_state().email_client.send_email.side_effect = NotificationError(
            "Cannot connect to email gateway"
        )
        response = await client.post("/verification/email/send", headers=as_user(alice))
        assert response.status_code == 502
        assert response.json()["error"] == "NOTIFICATION_FAILED"

        get_app_state().email_client.send_email.side_effect = None
        for _ in range(3):
            response = await client.post("/verification/email/send", headers=as_user(alice))
            assert response.status_code == 202


    @pytest.mark.unit
    async def test_timed_out_send_leaves_no_usable_token(self, client, alice):
        """A send cut off by the time budget returns 503 and rolls the token back."""
        state = get_app_state()
        mocked_send = state.email_client.send_email
        issued: list[str] = []

        async def slow_send(address: str, template: str, data: dict) -> None:
            issued.append(data["token"])
            await asyncio.sleep(1)

        state.operation_timeout_seconds = 0.01
        state.email_client.send_email = slow_send
        response = await client.post("/verification/email/send", headers=as_user(alice))
        assert response.status_code == 503
        assert response.json()["error"] == "OPERATION_TIMEOUT"

        state.operation_timeout_seconds = 5.0
        state.email_client.send_email = mocked_send
        verified = await client.post("/verification/email/verify", json={"token": issued[0]})
        assert verified.status_code == 400

        for _ in range(3):
            response = await client.post("/verification/email/send", headers=as_user(alice))
            assert response.status_code == 202

class TestPhoneVerification:
    """POST /verification/phone/send and /verification/phone/verify."""

    @pytest.mark.unit
    async def test_send_and_verify_phone(self, client, bob):
        response = await client.post(
            "/verification/phone/send", json={"phone": "+15551234567"}, headers=as_user(bob)
        )
        assert response.status_code == 202

        send_sms = get_app_state().sms_client.send_sms
        assert send_sms.await_args.args[0] == "+15551234567"

        verified = await client.post(
            "/verification/phone/verify", json={"code": _last_sms_code()}, headers=as_user(bob)
        )
        assert verified.status_code == 200
        assert verified.json()["phone_verified"] is True
        assert verified.json()["phone"] == "+15551234567"

    @pytest.mark.unit
    async def test_wrong_code_reports_remaining_attempts(self, client, bob):
        await client.post(
            "/verification/phone/send", json={"phone": "+15551234567"}, headers=as_user(bob)
        )
        wrong = "000000" if _last_sms_code() != "000000" else "111111"

        response = await client.post(
            "/verification/phone/verify", json={"code": wrong}, headers=as_user(bob)
        )
        assert response.status_code == 400
        assert response.json()["details"] == {"remaining_attempts": 2}

    @pytest.mark.unit
    async def test_invalid_phone(self, client, bob):
        response = await client.post(
            "/verification/phone/send", json={"phone": "call me"}, headers=as_user(bob)
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Invalid phone number format"


class TestDocuments:
    """Document submission and review."""

    @pytest.mark.unit
    async def test_submit_and_review(self, client, bob, admin):
        submitted = await client.post(
            "/verification/documents",
            json={"document_type": "ID_DOCUMENT", "document_url": "https://docs.example.com/id"},
            headers=as_user(bob),
        )
        assert submitted.status_code == 201
        document = submitted.json()
        assert document["status"] == "PENDING"

        not_admin = await client.post(
            f"/verification/documents/{document['verification_id']}/review",
            json={"decision": "VERIFIED"},
            headers=as_user(bob),
        )
        assert not_admin.status_code == 403

        reviewed = await client.post(
            f"/verification/documents/{document['verification_id']}/review",
            json={"decision": "VERIFIED", "notes": "Looks good"},
            headers=as_user(admin),
        )
        assert reviewed.status_code == 200
        assert reviewed.json()["status"] == "VERIFIED"
        assert reviewed.json()["reviewer_notes"] == "Looks good"

        status = await client.get("/verification/status", headers=as_user(bob))
        assert status.status_code == 200
        assert status.json()["document_status"] == "VERIFIED"
        assert status.json()["trust_score"] == 20

    @pytest.mark.unit
    async def test_duplicate_pending_document(self, client, bob):
        body = {"document_type": "ADDRESS_PROOF", "document_url": "https://docs.example.com/a"}
        await client.post("/verification/documents", json=body, headers=as_user(bob))
        response = await client.post("/verification/documents", json=body, headers=as_user(bob))
        assert response.status_code == 409

    @pytest.mark.unit
    async def test_non_http_url_rejected(self, client, bob):
        response = await client.post(
            "/verification/documents",
            json={"document_type": "ID_DOCUMENT", "document_url": "ftp://docs.example.com/id"},
            headers=as_user(bob),
        )
        assert response.status_code == 400


class TestStatusAndCleanup:
    """GET /verification/status and POST /verification/cleanup."""

    @pytest.mark.unit
    async def test_status_for_new_user(self, client, alice):
        response = await client.get("/verification/status", headers=as_user(alice))
        assert response.status_code == 200
        assert response.json() == {
            "user_id": alice,
            "email_verified": False,
            "phone_verified": False,
            "document_status": "NONE",
            "documents": [],
            "trust_score": 0,
            "verification_level": "BASIC",
        }

    @pytest.mark.unit
    async def test_cleanup_requires_admin(self, client, alice, admin):
        denied = await client.post("/verification/cleanup", headers=as_user(alice))
        assert denied.status_code == 403

        allowed = await client.post("/verification/cleanup", headers=as_user(admin))
        assert allowed.status_code == 200
        assert allowed.json() == {"removed": 0}
