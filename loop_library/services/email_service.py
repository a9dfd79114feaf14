"""Resend email sender.

Sends transactional emails (confirmation, accepted, rejected) via the Resend API
with retry logic. Callers go through the Notifier, which never lets a delivery
failure reach the HTTP response.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

import httpx

from loop_library.core.errors import UpstreamNotificationError
from loop_library.core.structured_logging import mask_email
from loop_library.services.http_service import request_with_retries

logger = logging.getLogger(__name__)

RESEND_SEND_URL = "https://api.resend.com/emails"
RESEND_MAX_ATTEMPTS = 3
RESEND_RETRY_BASE_DELAY = 0.5
RESEND_RETRY_MAX_DELAY = 4.0
RESEND_TIMEOUT_SECONDS = 20.0


@dataclass(frozen=True)
class EmailMessage:
    to: str
    subject: str
    html: str
    text: str
    kind: str
    idempotency_key: str | None = None


class EmailSender(Protocol):
    async def send(self, message: EmailMessage) -> str | None: ...


class ResendEmailSender:
    """Delivers EmailMessages through Resend."""

    def __init__(self, api_key: str, from_email: str, *, send_url: str = RESEND_SEND_URL):
        self.api_key = api_key
        self.from_email = from_email
        self.send_url = send_url

    def _build_payload(self, message: EmailMessage) -> dict[str, object]:
        payload: dict[str, object] = {
            "from": self.from_email,
            "to": [message.to],
            "subject": message.subject,
            "html": message.html,
        }
        if message.text:
            payload["text"] = message.text
        return payload

    async def send(self, message: EmailMessage) -> str | None:
        """
        Send one email.

        Returns:
            Resend message id (None when Resend did not report one)

        Raises:
            UpstreamNotificationError: transport failure or non-2xx response
        """
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        if message.idempotency_key:
            headers["Idempotency-Key"] = message.idempotency_key

        payload = self._build_payload(message)

        try:
            async with httpx.AsyncClient(timeout=RESEND_TIMEOUT_SECONDS) as client:

                async def request_fn() -> httpx.Response:
                    return await client.post(self.send_url, headers=headers, json=payload)

                response = await request_with_retries(
                    request_fn,
                    service="resend",
                    max_attempts=RESEND_MAX_ATTEMPTS,
                    base_delay=RESEND_RETRY_BASE_DELAY,
                    max_delay=RESEND_RETRY_MAX_DELAY,
                )
        except httpx.TimeoutException as exc:
            raise UpstreamNotificationError("Connection timeout") from exc
        except httpx.HTTPError as exc:
            raise UpstreamNotificationError(f"Connection error: {exc.__class__.__name__}") from exc

        # 409 is an idempotency conflict: the email already went out
        if 200 <= response.status_code < 300 or response.status_code == 409:
            message_id = None
            try:
                data = response.json()
                if isinstance(data, dict) and isinstance(data.get("id"), str):
                    message_id = data["id"]
            except ValueError:
                pass
            logger.info(
                "Sent %s email to %s, message_id=%s",
                message.kind,
                mask_email(message.to),
                message_id,
            )
            return message_id

        error_detail = None
        try:
            data = response.json()
            if isinstance(data, dict):
                error_detail = data.get("message") or data.get("error")
        except ValueError:
            pass

        error_msg = f"Resend API error: {response.status_code}"
        if error_detail:
            error_msg = f"{error_msg} ({error_detail})"
        raise UpstreamNotificationError(error_msg)
