"""ASGI middleware for request validation."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any, cast

from fastapi.responses import JSONResponse

if TYPE_CHECKING:
    from starlette.types import ASGIApp, Message, Receive, Scope, Send


# Endpoints that read a JSON object from the request body.
_JSON_BODY_ENDPOINTS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("POST", re.compile(r"^/users$")),
    ("POST", re.compile(r"^/tasks$")),
    ("PATCH", re.compile(r"^/tasks/[^/]+$")),
    ("POST", re.compile(r"^/tasks/[^/]+/assign$")),
    ("POST", re.compile(r"^/tasks/[^/]+/transition$")),
    ("POST", re.compile(r"^/tasks/[^/]+/bids$")),
    ("POST", re.compile(r"^/verification/email/verify$")),
    ("POST", re.compile(r"^/verification/phone/send$")),
    ("POST", re.compile(r"^/verification/phone/verify$")),
    ("POST", re.compile(r"^/verification/documents$")),
    ("POST", re.compile(r"^/verification/documents/[^/]+/review$")),
)


def takes_json_body(method: str, path: str) -> bool:
    """Check whether ``method path`` is an endpoint with a JSON body."""
    return any(
        candidate == method and pattern.match(path) is not None
        for candidate, pattern in _JSON_BODY_ENDPOINTS
    )


def _error(status_code: int, error: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": error, "message": message, "details": {}},
    )


class RequestValidationMiddleware:
    """
    ASGI middleware that validates Content-Type and body size.

    Runs before FastAPI routes. For endpoints that take a JSON body it
    returns 415 for a non-JSON Content-Type and 413 for oversized bodies.
    Bodyless action endpoints (complete, cancel, accept, ...) and unknown
    routes pass straight through, so the router still answers 404/405.
    """

    def __init__(self, app: ASGIApp, max_body_size: int) -> None:
        self.app = app
        self.max_body_size = max_body_size

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or not takes_json_body(
            cast("str", scope.get("method", "GET")), cast("str", scope.get("path", ""))
        ):
            await self.app(scope, receive, send)
            return

        raw_headers = cast("list[tuple[bytes, bytes]]", scope.get("headers", []))
        content_type = dict(raw_headers).get(b"content-type", b"").decode().lower()
        if not content_type.startswith("application/json"):
            response = _error(
                415, "UNSUPPORTED_MEDIA_TYPE", "Content-Type must be application/json"
            )
            await response(scope, receive, send)
            return

        body = await self._read_body(receive)
        if body is None:
            response = _error(413, "PAYLOAD_TOO_LARGE", "Request body exceeds maximum allowed size")
            await response(scope, receive, send)
            return

        await self.app(scope, self._replay(body), send)

    async def _read_body(self, receive: Receive) -> bytes | None:
        """Buffer the request body; None once it grows past the limit."""
        chunks: list[bytes] = []
        size = 0
        more_body = True
        while more_body:
            message = cast("dict[str, Any]", await receive())
            chunk = cast("bytes", message.get("body", b""))
            size += len(chunk)
            if size > self.max_body_size:
                return None
            chunks.append(chunk)
            more_body = bool(message.get("more_body", False))
        return b"".join(chunks)

    @staticmethod
    def _replay(body: bytes) -> Receive:
        delivered = False

        async def receive() -> Message:
            nonlocal delivered
            if delivered:
                return {"type": "http.disconnect"}
            delivered = True
            return {"type": "http.request", "body": body, "more_body": False}

        return receive
