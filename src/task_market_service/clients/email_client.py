"""Async HTTP client for the email gateway."""

from __future__ import annotations

from typing import Any

import httpx

from task_market_service.core.exceptions import NotificationError
from task_market_service.logging import get_logger


class EmailClient:
    """
    Client for the templated email gateway.

    The gateway owns SMTP delivery and template rendering; this service
    only names the template and supplies its data.
    """

    def __init__(
        self,
        base_url: str,
        send_path: str,
        timeout_seconds: int,
    ) -> None:
        self._base_url = base_url
        self._send_path = send_path
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(timeout_seconds),
        )

    async def send_email(self, address: str, template_name: str, data: dict[str, Any]) -> None:
        """
        Ask the gateway to send ``template_name`` to ``address``.

        Raises:
            NotificationError: On connection/timeout errors or a non-2xx response
        """
        logger = get_logger(__name__)

        try:
            response = await self._client.post(
                self._send_path,
                json={"to": address, "template": template_name, "data": data},
            )
        except (httpx.ConnectError, httpx.TimeoutException) as exc:
            logger.warning(
                "Email gateway connection failed",
                extra={"error": str(exc), "base_url": self._base_url},
            )
            raise NotificationError(
                "Cannot connect to email gateway",
                {"template": template_name},
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning(
                "Email gateway HTTP error",
                extra={"error": str(exc), "base_url": self._base_url},
            )
            raise NotificationError(
                "Email gateway request failed",
                {"template": template_name},
            ) from exc

        if not response.is_success:
            logger.warning(
                "Email gateway unexpected status",
                extra={
                    "status_code": response.status_code,
                    "base_url": self._base_url,
                    "template": template_name,
                },
            )
            raise NotificationError(
                "Email gateway returned unexpected status",
                {"template": template_name, "status_code": response.status_code},
            )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()
