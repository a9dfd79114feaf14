"""Tests for the outbound HTTP retry helper."""

import httpx
import pytest

from loop_library.services.http_service import request_with_retries


@pytest.mark.asyncio
async def test_retries_on_retryable_status():
    req = httpx.Request("POST", "https://example.com")
    responses = [
        httpx.Response(503, request=req),
        httpx.Response(200, json={"ok": True}, request=req),
    ]
    calls = {"count": 0}

    async def request_fn():
        calls["count"] += 1
        return responses.pop(0)

    response = await request_with_retries(
        request_fn,
        service="test",
        max_attempts=2,
        base_delay=0,
        max_delay=0,
    )

    assert calls["count"] == 2
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_last_retryable_status_is_returned():
    req = httpx.Request("POST", "https://example.com")
    calls = {"count": 0}

    async def request_fn():
        calls["count"] += 1
        return httpx.Response(500, request=req)

    response = await request_with_retries(
        request_fn,
        service="test",
        max_attempts=3,
        base_delay=0,
        max_delay=0,
    )

    assert calls["count"] == 3
    assert response.status_code == 500


@pytest.mark.asyncio
async def test_client_errors_are_not_retried():
    req = httpx.Request("POST", "https://example.com")
    calls = {"count": 0}

    async def request_fn():
        calls["count"] += 1
        return httpx.Response(422, request=req)

    response = await request_with_retries(request_fn, service="test", base_delay=0, max_delay=0)

    assert calls["count"] == 1
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_raises_after_max_attempts():
    req = httpx.Request("POST", "https://example.com")
    calls = {"count": 0}

    async def request_fn():
        calls["count"] += 1
        raise httpx.ConnectError("boom", request=req)

    with pytest.raises(httpx.RequestError):
        await request_with_retries(
            request_fn,
            service="test",
            max_attempts=2,
            base_delay=0,
            max_delay=0,
        )

    assert calls["count"] == 2
