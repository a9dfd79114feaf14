"""Tests for the audio processing collaborators."""
import httpx
import pytest

from loop_library.core.config import Settings
from loop_library.core.errors import UpstreamProcessingError
from loop_library.services import http_service
from loop_library.services.transcode_service import (
    HttpTranscoder,
    PassthroughTranscoder,
    build_transcoder,
)


@pytest.fixture(autouse=True)
def no_backoff(monkeypatch):
    monkeypatch.setattr(http_service, "_backoff_delay", lambda *_args: 0)


def _patch_post(monkeypatch, handler):
    calls = []

    async def fake_post(self, url, **kwargs):
        calls.append((url, kwargs))
        return handler(httpx.Request("POST", url))

    monkeypatch.setattr(httpx.AsyncClient, "post", fake_post)
    return calls


@pytest.mark.asyncio
async def test_passthrough_stores_upload_as_is():
    transcoder = PassthroughTranscoder()

    assert transcoder.supports_midi is False
    assert await transcoder.to_mp3(b"audio", "audio/mpeg") == b"audio"


@pytest.mark.asyncio
async def test_http_transcoder_returns_rendering(monkeypatch):
    calls = _patch_post(monkeypatch, lambda req: httpx.Response(200, content=b"MP3DATA", request=req))
    transcoder = HttpTranscoder("http://processing.local/render", timeout=5)

    result = await transcoder.to_mp3(b"MThd", "audio/midi")

    assert result == b"MP3DATA"
    [(url, kwargs)] = calls
    assert url == "http://processing.local/render"
    assert kwargs["content"] == b"MThd"
    assert kwargs["headers"] == {"Content-Type": "audio/midi"}


@pytest.mark.asyncio
@pytest.mark.parametrize("status,body", [(500, b"error"), (200, b"")])
async def test_http_transcoder_failures(monkeypatch, status, body):
    _patch_post(monkeypatch, lambda req: httpx.Response(status, content=body, request=req))
    transcoder = HttpTranscoder("http://processing.local/render", timeout=5)

    with pytest.raises(UpstreamProcessingError):
        await transcoder.to_mp3(b"MThd", "audio/midi")


@pytest.mark.asyncio
async def test_http_transcoder_network_error(monkeypatch):
    def handler(req):
        raise httpx.ConnectError("down", request=req)

    _patch_post(monkeypatch, handler)
    transcoder = HttpTranscoder("http://processing.local/render", timeout=5)

    with pytest.raises(UpstreamProcessingError):
        await transcoder.to_mp3(b"MThd", "audio/midi")


def test_build_transcoder_follows_processing_url():
    assert isinstance(build_transcoder(Settings(PROCESSING_URL="")), PassthroughTranscoder)

    transcoder = build_transcoder(Settings(PROCESSING_URL="http://processing.local/render"))
    assert isinstance(transcoder, HttpTranscoder)
    assert transcoder.supports_midi is True
