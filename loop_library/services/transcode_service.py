"""Audio processing collaborators.

Uploads are stored as `<id>.mp3`. A deployment with an external processing
service renders uploads (including MIDI) to MP3 through it; without one the
upload is stored as received and MIDI is not accepted.
"""

from __future__ import annotations

import logging
from typing import Protocol

import httpx

from loop_library.core.config import Settings
from loop_library.core.errors import UpstreamProcessingError
from loop_library.services.http_service import request_with_retries

logger = logging.getLogger(__name__)

PROCESSING_MAX_ATTEMPTS = 2


class Transcoder(Protocol):
    supports_midi: bool

    async def to_mp3(self, data: bytes, content_type: str) -> bytes: ...


class PassthroughTranscoder:
    supports_midi = False

    async def to_mp3(self, data: bytes, content_type: str) -> bytes:
        return data


class HttpTranscoder:
    """POSTs the raw upload to the processing service and returns its MP3 output."""

    supports_midi = True

    def __init__(self, url: str, *, timeout: float):
        self.url = url
        self.timeout = timeout

    async def to_mp3(self, data: bytes, content_type: str) -> bytes:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:

                async def request_fn() -> httpx.Response:
                    return await client.post(
                        self.url,
                        content=data,
                        headers={"Content-Type": content_type},
                    )

                response = await request_with_retries(
                    request_fn,
                    service="processing",
                    max_attempts=PROCESSING_MAX_ATTEMPTS,
                )
        except httpx.HTTPError as exc:
            logger.error("Audio processing request failed: %s", exc.__class__.__name__)
            raise UpstreamProcessingError() from exc

        if response.status_code != 200 or not response.content:
            logger.error("Audio processing returned HTTP %s", response.status_code)
            raise UpstreamProcessingError()
        return response.content


def build_transcoder(config: Settings) -> Transcoder:
    if config.PROCESSING_URL:
        return HttpTranscoder(config.PROCESSING_URL, timeout=config.PROCESSING_TIMEOUT_SECONDS)
    return PassthroughTranscoder()
