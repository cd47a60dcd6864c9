"""Async HTTP client for the SMS gateway."""

from __future__ import annotations

import httpx

from task_market_service.core.exceptions import NotificationError
from task_market_service.logging import get_logger


class SmsClient:
    """Client for the SMS gateway."""

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

    async def send_sms(self, phone_number: str, message: str) -> None:
        """
        Send a text message to ``phone_number``.

        Raises:
            NotificationError: On connection/timeout errors or a non-2xx response
        """
        logger = get_logger(__name__)

        try:
            response = await self._client.post(
                self._send_path,
                json={"to": phone_number, "message": message},
            )
        except (httpx.ConnectError, httpx.TimeoutException) as exc:
            logger.warning(
                "SMS gateway connection failed",
                extra={"error": str(exc), "base_url": self._base_url},
            )
            raise NotificationError("Cannot connect to SMS gateway") from exc
        except httpx.HTTPError as exc:
            logger.warning(
                "SMS gateway HTTP error",
                extra={"error": str(exc), "base_url": self._base_url},
            )
            raise NotificationError("SMS gateway request failed") from exc

        if not response.is_success:
            logger.warning(
                "SMS gateway unexpected status",
                extra={"status_code": response.status_code, "base_url": self._base_url},
            )
            raise NotificationError(
                "SMS gateway returned unexpected status",
                {"status_code": response.status_code},
            )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()
