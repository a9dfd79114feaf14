"""Cloudflare Turnstile verification."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Protocol

import httpx

from loop_library.services.http_service import request_with_retries

logger = logging.getLogger(__name__)

TURNSTILE_TIMEOUT_SECONDS = 10.0
TURNSTILE_MAX_ATTEMPTS = 2


@dataclass(frozen=True)
class CaptchaResult:
    success: bool
    score: float | None = None
    error_codes: tuple[str, ...] = field(default_factory=tuple)

    def passes(self, min_score: float) -> bool:
        """Accepted outright and, when the provider scores, at or above threshold."""
        if not self.success:
            return False
        return self.score is None or self.score >= min_score


class CaptchaVerifier(Protocol):
    async def verify(self, token: str, remote_ip: str | None) -> CaptchaResult: ...


class TurnstileVerifier:
    """Calls the Turnstile siteverify endpoint with the shared secret."""

    def __init__(
        self,
        secret: str,
        *,
        verify_url: str,
        timeout: float = TURNSTILE_TIMEOUT_SECONDS,
    ):
        self.secret = secret
        self.verify_url = verify_url
        self.timeout = timeout

    async def verify(self, token: str, remote_ip: str | None) -> CaptchaResult:
        data = {"response": token, "secret": self.secret}
        if remote_ip:
            data["remoteip"] = remote_ip

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:

                async def request_fn() -> httpx.Response:
                    return await client.post(self.verify_url, data=data)

                response = await request_with_retries(
                    request_fn,
                    service="turnstile",
                    max_attempts=TURNSTILE_MAX_ATTEMPTS,
                )
        except httpx.HTTPError:
            logger.exception("Turnstile verification request failed")
            return CaptchaResult(success=False, error_codes=("verifier-unavailable",))

        if response.status_code != 200:
            logger.warning("Turnstile returned HTTP %s", response.status_code)
            return CaptchaResult(success=False, error_codes=(f"http-{response.status_code}",))

        try:
            payload = response.json()
        except ValueError:
            logger.warning("Turnstile returned a non-JSON body")
            return CaptchaResult(success=False, error_codes=("invalid-response",))

        score = payload.get("score")
        return CaptchaResult(
            success=bool(payload.get("success")),
            score=float(score) if isinstance(score, (int, float)) else None,
            error_codes=tuple(payload.get("error-codes") or ()),
        )
