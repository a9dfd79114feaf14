"""Tests for the fire-and-forget notifier, Resend sender and lifecycle templates."""
import json

import httpx
import pytest

from loop_library.core.config import Settings
from loop_library.core.errors import UpstreamNotificationError
from loop_library.services import email_service, email_templates, http_service
from loop_library.services.email_service import ResendEmailSender
from loop_library.services.notification_service import Notifier, build_notifier


def _message():
    return email_templates.build_accepted_email("jane@example.com", submission_id="abc")


# =============================================================================
# Notifier
# =============================================================================

def test_notifier_without_sender_records_attempt():
    notifier = Notifier(sender=None)

    notifier.dispatch(_message())

    assert notifier.delivers is False
    assert [m.kind for m in notifier.attempts] == ["accepted"]


@pytest.mark.asyncio
async def test_notifier_delivers_in_background(recording_sender):
    notifier = Notifier(sender=recording_sender)

    notifier.dispatch(_message())
    await notifier.drain()

    assert notifier.delivers is True
    assert [m.to for m in recording_sender.sent] == ["jane@example.com"]


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [UpstreamNotificationError("Resend API error: 500"), RuntimeError("boom")])
async def test_notifier_swallows_delivery_errors(error):
    class FailingSender:
        async def send(self, message):
            raise error

    notifier = Notifier(sender=FailingSender())

    notifier.dispatch(_message())
    await notifier.drain()

    assert len(notifier.attempts) == 1


def test_build_notifier_only_delivers_in_production():
    assert build_notifier(Settings(ENV="dev", RESEND_API_KEY="re_123")).delivers is False
    assert build_notifier(Settings(ENV="production", RESEND_API_KEY="")).delivers is False

    notifier = build_notifier(Settings(ENV="production", RESEND_API_KEY="re_123"))
    assert isinstance(notifier.sender, ResendEmailSender)


# =============================================================================
# Resend sender
# =============================================================================

@pytest.fixture
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
async def test_resend_send_returns_message_id(monkeypatch):
    calls = _patch_post(monkeypatch, lambda req: httpx.Response(200, json={"id": "em_1"}, request=req))
    sender = ResendEmailSender("re_key", "Loop Library <hi@example.org>")
    message = email_templates.build_rejected_email("jane@example.com", "Too quiet", submission_id="abc")

    message_id = await sender.send(message)

    assert message_id == "em_1"
    [(url, kwargs)] = calls
    assert url == email_service.RESEND_SEND_URL
    assert kwargs["headers"]["Authorization"] == "Bearer re_key"
    assert kwargs["headers"]["Idempotency-Key"] == "submission-rejected/abc"
    assert kwargs["json"]["to"] == ["jane@example.com"]
    assert kwargs["json"]["from"] == "Loop Library <hi@example.org>"
    assert "Too quiet" in kwargs["json"]["text"]


@pytest.mark.asyncio
async def test_resend_idempotency_conflict_counts_as_sent(monkeypatch):
    _patch_post(monkeypatch, lambda req: httpx.Response(409, json={"message": "duplicate"}, request=req))
    sender = ResendEmailSender("re_key", "hi@example.org")

    assert await sender.send(_message()) is None


@pytest.mark.asyncio
async def test_resend_error_raises_with_detail(monkeypatch):
    _patch_post(
        monkeypatch,
        lambda req: httpx.Response(422, content=json.dumps({"message": "bad from"}), request=req),
    )
    sender = ResendEmailSender("re_key", "hi@example.org")

    with pytest.raises(UpstreamNotificationError) as exc_info:
        await sender.send(_message())

    assert exc_info.value.message == "Resend API error: 422 (bad from)"


@pytest.mark.asyncio
async def test_resend_timeout_raises(monkeypatch, no_backoff):
    def handler(req):
        raise httpx.ReadTimeout("slow", request=req)

    _patch_post(monkeypatch, handler)
    sender = ResendEmailSender("re_key", "hi@example.org")

    with pytest.raises(UpstreamNotificationError) as exc_info:
        await sender.send(_message())

    assert exc_info.value.message == "Connection timeout"


# =============================================================================
# Templates
# =============================================================================

def test_confirmation_email_links_token():
    url = "http://localhost:8000/confirm?token=abc_123"
    message = email_templates.build_confirmation_email("jane@example.com", url, submission_id="s1")

    assert message.kind == "confirmation"
    assert url in message.text
    assert 'href="http://localhost:8000/confirm?token=abc_123"' in message.html
    assert "24 hours" in message.text
