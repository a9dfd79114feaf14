"""Outbound HTTP helper with retry/backoff for captcha, email and processing calls."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Awaitable, Callable

import httpx

logger = logging.getLogger(__name__)

DEFAULT_RETRY_STATUSES = frozenset({429, 500, 502, 503, 504})


def _backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    delay = min(max_delay, base_delay * (2**attempt))
    if delay:
        delay += random.uniform(0, delay / 2)
    return delay


async def request_with_retries(
    request_fn: Callable[[], Awaitable[httpx.Response]],
    *,
    service: str,
    max_attempts: int = 3,
    base_delay: float = 0.5,
    max_delay: float = 4.0,
    retry_statuses: frozenset[int] = DEFAULT_RETRY_STATUSES,
) -> httpx.Response:
    """
    Execute an HTTP request with exponential backoff retries.

    Transport errors are re-raised after the last attempt; a retryable status on
    the last attempt is returned to the caller as-is.
    """
    for attempt in range(max_attempts):
        last_attempt = attempt >= max_attempts - 1
        try:
            response = await request_fn()
        except httpx.RequestError as exc:
            if last_attempt:
                raise
            logger.warning("%s request failed, retrying", service, exc_info=exc)
            await asyncio.sleep(_backoff_delay(attempt, base_delay, max_delay))
            continue

        if response.status_code in retry_statuses and not last_attempt:
            logger.warning("%s returned %s, retrying", service, response.status_code)
            await asyncio.sleep(_backoff_delay(attempt, base_delay, max_delay))
            continue

        return response

    raise RuntimeError("max_attempts must be at least 1")
