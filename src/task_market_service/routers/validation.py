"""Shared request validation helpers for the routers."""

from __future__ import annotations

import json
from typing import Any

from task_market_service.core.exceptions import ServiceError, ValidationError

ACTOR_HEADER = "X-User-Id"


def parse_json_body(raw_body: bytes) -> dict[str, Any]:
    """Parse JSON body, raising ServiceError on failure."""
    try:
        data = json.loads(raw_body)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ServiceError(
            "INVALID_JSON",
            "Request body is not valid JSON",
            400,
            {},
        ) from exc

    if not isinstance(data, dict):
        raise ServiceError(
            "INVALID_JSON",
            "Request body must be a JSON object",
            400,
            {},
        )

    return data


def extract_actor_id(actor_id: str | None) -> str:
    """Validate the caller identity taken from the X-User-Id header."""
    if actor_id is None:
        raise ServiceError(
            "INVALID_ACTOR",
            f"Missing {ACTOR_HEADER} header",
            400,
            {},
        )

    actor_id = actor_id.strip()
    if not actor_id:
        raise ServiceError(
            "INVALID_ACTOR",
            f"{ACTOR_HEADER} header must not be empty",
            400,
            {},
        )

    return actor_id


def require_string(data: dict[str, Any], field_name: str) -> str:
    """Extract a required non-empty string field."""
    if field_name not in data or data[field_name] is None:
        raise ValidationError(f"Missing required field: {field_name}", {"field": field_name})

    value = data[field_name]
    if not isinstance(value, str):
        raise ValidationError(f"Field '{field_name}' must be a string", {"field": field_name})

    if not value.strip():
        raise ValidationError(f"Field '{field_name}' must not be empty", {"field": field_name})

    return value


def optional_string(data: dict[str, Any], field_name: str) -> str | None:
    """Extract an optional string field; null and absent are the same."""
    value = data.get(field_name)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"Field '{field_name}' must be a string", {"field": field_name})
    return value


def parse_query_int(raw: str | None, name: str, *, minimum: int) -> int | None:
    """Parse an optional integer query parameter with a lower bound."""
    if raw is None:
        return None
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValidationError(f"{name} must be an integer", {"field": name}) from exc
    if value < minimum:
        raise ValidationError(f"{name} must be >= {minimum}", {"field": name})
    return value
