"""Email, phone and document verification endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from task_market_service.core.exceptions import AuthorizationError
from task_market_service.core.state import get_app_state
from task_market_service.core.timeouts import run_with_timeout
from task_market_service.models import UserRole
from task_market_service.routers.validation import (
    ACTOR_HEADER,
    extract_actor_id,
    optional_string,
    parse_json_body,
    require_string,
)
from task_market_service.schemas import VerificationStatusResponse

router = APIRouter()


# ---------------------------------------------------------------------------
# Email
# ---------------------------------------------------------------------------


@router.post("/verification/email/send", status_code=202)
async def send_email_verification(request: Request) -> JSONResponse:
    """Email a verification token to the caller."""
    actor_id = extract_actor_id(request.headers.get(ACTOR_HEADER))
    state = get_app_state()
    manager = state.require_verification_manager()
    result = await run_with_timeout(
        manager.send_email_verification(actor_id),
        state.operation_timeout_seconds,
        "send_email_verification",
    )
    return JSONResponse(status_code=202, content=result)


@router.post("/verification/email/verify")
async def verify_email(request: Request) -> dict[str, Any]:
    """Consume an email verification token."""
    data = parse_json_body(await request.body())
    token = require_string(data, "token")

    state = get_app_state()
    manager = state.require_verification_manager()
    user = await run_with_timeout(
        manager.verify_email(token), state.operation_timeout_seconds, "verify_email"
    )
    return user.to_dict()


# ---------------------------------------------------------------------------
# Phone
# ---------------------------------------------------------------------------


@router.post("/verification/phone/send", status_code=202)
async def send_phone_verification(request: Request) -> JSONResponse:
    """Text a verification code to the given phone number."""
    actor_id = extract_actor_id(request.headers.get(ACTOR_HEADER))
    data = parse_json_body(await request.body())
    phone = require_string(data, "phone")

    state = get_app_state()
    manager = state.require_verification_manager()
    result = await run_with_timeout(
        manager.send_phone_verification(actor_id, phone),
        state.operation_timeout_seconds,
        "send_phone_verification",
    )
    return JSONResponse(status_code=202, content=result)


@router.post("/verification/phone/verify")
async def verify_phone(request: Request) -> dict[str, Any]:
    """Check the caller's phone verification code."""
    actor_id = extract_actor_id(request.headers.get(ACTOR_HEADER))
    data = parse_json_body(await request.body())
    code = require_string(data, "code")

    state = get_app_state()
    manager = state.require_verification_manager()
    user = await run_with_timeout(
        manager.verify_phone(actor_id, code), state.operation_timeout_seconds, "verify_phone"
    )
    return user.to_dict()


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


@router.post("/verification/documents", status_code=201)
async def submit_document(request: Request) -> JSONResponse:
    """Submit a document for review."""
    actor_id = extract_actor_id(request.headers.get(ACTOR_HEADER))
    data = parse_json_body(await request.body())
    document_type = require_string(data, "document_type")
    document_url = require_string(data, "document_url")
    notes = optional_string(data, "notes")

    state = get_app_state()
    manager = state.require_verification_manager()
    document = await run_with_timeout(
        manager.submit_document(actor_id, document_type, document_url, notes),
        state.operation_timeout_seconds,
        "submit_document",
    )
    return JSONResponse(status_code=201, content=document.to_dict())


@router.post("/verification/documents/{verification_id}/review")
async def review_document(verification_id: str, request: Request) -> dict[str, Any]:
    """Record an administrator's decision on a pending document."""
    actor_id = extract_actor_id(request.headers.get(ACTOR_HEADER))
    data = parse_json_body(await request.body())
    decision = require_string(data, "decision")
    notes = optional_string(data, "notes")

    state = get_app_state()
    manager = state.require_verification_manager()
    document = await run_with_timeout(
        manager.review_document(verification_id, decision, actor_id, notes),
        state.operation_timeout_seconds,
        "review_document",
    )
    return document.to_dict()


# ---------------------------------------------------------------------------
# Status and maintenance
# ---------------------------------------------------------------------------


@router.get("/verification/status", response_model=VerificationStatusResponse)
async def get_verification_status(request: Request) -> dict[str, Any]:
    """Summarize the caller's verification state."""
    actor_id = extract_actor_id(request.headers.get(ACTOR_HEADER))
    manager = get_app_state().require_verification_manager()
    return await manager.get_verification_status(actor_id)


@router.post("/verification/cleanup")
async def cleanup_expired_tokens(request: Request) -> dict[str, Any]:
    """Sweep expired verification tokens. Administrators only."""
    actor_id = extract_actor_id(request.headers.get(ACTOR_HEADER))
    state = get_app_state()
    actor = await state.require_user_manager().get_user(actor_id)
    if actor.role is not UserRole.ADMIN:
        raise AuthorizationError("Only administrators can run verification cleanup")

    removed = await state.require_verification_manager().cleanup_expired_tokens()
    return {"removed": removed}
