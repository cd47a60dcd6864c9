"""User registration and lookup endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from task_market_service.core.state import get_app_state
from task_market_service.routers.validation import optional_string, parse_json_body, require_string
from task_market_service.schemas import UserResponse

router = APIRouter()


@router.post("/users", status_code=201)
async def register_user(request: Request) -> JSONResponse:
    """Register a new user."""
    data = parse_json_body(await request.body())
    email = require_string(data, "email")
    role = optional_string(data, "role")

    manager = get_app_state().require_user_manager()
    user = await manager.register_user(email, role)
    return JSONResponse(status_code=201, content=user.to_dict())


@router.get("/users/{user_id}", response_model=UserResponse)
async def get_user(user_id: str) -> dict[str, Any]:
    """Get a user by ID."""
    manager = get_app_state().require_user_manager()
    user = await manager.get_user(user_id)
    return user.to_dict()
