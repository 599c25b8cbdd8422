"""Email transport: the client interface and the Resend implementation.

Clients are constructed explicitly (application lifespan, CLI) and passed to
the code that sends mail; nothing here runs at import time.
"""

from __future__ import annotations

import logging
from typing import Protocol

import httpx

from appointly.core.structured_logging import mask_email
from appointly.services.http_service import RetryPolicy, request_with_retries

logger = logging.getLogger(__name__)

RESEND_SEND_URL = "https://api.resend.com/emails"
RESEND_MAX_ATTEMPTS = 3
RESEND_RETRY_BASE_DELAY = 0.5
RESEND_RETRY_MAX_DELAY = 4.0
RESEND_TIMEOUT_SECONDS = 20.0


class EmailSendError(RuntimeError):
    """Raised when an email could not be handed to the provider."""


class EmailClient(Protocol):
    async def send_email(
        self,
        *,
        to: str,
        subject: str,
        html: str,
        text: str | None = None,
    ) -> str:
        """Send one email and return the provider message id."""

    async def aclose(self) -> None:
        """Release transport resources."""


class ResendEmailClient:
    """Send email through the Resend HTTP API."""

    def __init__(
        self,
        *,
        api_key: str,
        from_email: str,
        http_client: httpx.AsyncClient | None = None,
        max_attempts: int = RESEND_MAX_ATTEMPTS,
        base_delay: float = RESEND_RETRY_BASE_DELAY,
    ) -> None:
        self._api_key = api_key
        self._from_email = from_email
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=RESEND_TIMEOUT_SECONDS)
        self._retry = RetryPolicy(
            max_attempts=max_attempts,
            base_delay=base_delay,
            max_delay=RESEND_RETRY_MAX_DELAY,
        )

    def is_configured(self) -> bool:
        return bool(self._api_key and self._from_email)

    async def send_email(
        self,
        *,
        to: str,
        subject: str,
        html: str,
        text: str | None = None,
    ) -> str:
        if not self._api_key:
            raise EmailSendError("Email sender not configured (missing RESEND_API_KEY)")
        if not self._from_email:
            raise EmailSendError("Email sender not configured (missing EMAIL_FROM)")

        payload: dict[str, object] = {
            "from": self._from_email,
            "to": [to],
            "subject": subject,
            "html": html,
        }
        if text:
            payload["text"] = text

        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

        async def request_fn() -> httpx.Response:
            return await self._http.post(RESEND_SEND_URL, headers=headers, json=payload)

        try:
            response = await request_with_retries(request_fn, policy=self._retry, label="Resend")
        except httpx.RequestError as exc:
            raise EmailSendError(f"Resend request failed: {exc}") from exc

        if 200 <= response.status_code < 300:
            data = response.json()
            message_id = data.get("id") if isinstance(data, dict) else None
            if isinstance(message_id, str) and message_id:
                logger.info("Email sent to %s (message_id=%s)", mask_email(to), message_id)
                return message_id
            raise EmailSendError("Resend API returned success without message id")

        detail = None
        try:
            data = response.json()
            if isinstance(data, dict):
                detail = data.get("message") or data.get("error")
        except ValueError:
            detail = None

        if detail:
            raise EmailSendError(f"Resend API error: {response.status_code} ({detail})")
        raise EmailSendError(f"Resend API error: {response.status_code}")

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()


def build_email_client(api_key: str, from_email: str) -> ResendEmailClient:
    """Build the process-wide email client from configuration values."""
    client = ResendEmailClient(api_key=api_key, from_email=from_email)
    if not client.is_configured():
        logger.warning("Email sender not configured; reminder emails will fail until RESEND_API_KEY and EMAIL_FROM are set")
    return client
