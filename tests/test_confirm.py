"""Tests for GET /confirm (token redemption) and token cleanup."""
from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient

from loop_library.core.errors import ExpiredTokenError, NotFoundError
from loop_library.db.models import ConfirmationID, Submission
from loop_library.services import submission_service


def _issue_token(db, submission, *, token="tok-123", age=timedelta(0)) -> ConfirmationID:
    record = ConfirmationID(
        token=token,
        submission_id=submission.id,
        submission_email=submission.submission_email,
        created_at=datetime.now(timezone.utc) - age,
    )
    db.add(record)
    db.commit()
    return record


@pytest.mark.asyncio
async def test_confirm_marks_submission_confirmed(client: AsyncClient, db, make_submission):
    submission = make_submission(confirmed=False)
    _issue_token(db, submission)

    response = await client.get("/confirm", params={"token": "tok-123"})

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Submission confirmed"}
    db.refresh(submission)
    assert submission.confirmed is True
    assert db.query(ConfirmationID).count() == 0


@pytest.mark.asyncio
async def test_token_cannot_be_redeemed_twice(client: AsyncClient, db, make_submission):
    submission = make_submission(confirmed=False)
    _issue_token(db, submission)

    first = await client.get("/confirm", params={"token": "tok-123"})
    second = await client.get("/confirm", params={"token": "tok-123"})

    assert first.status_code == 200
    assert second.status_code == 404
    assert second.json() == {"success": False, "message": "Invalid token"}


@pytest.mark.asyncio
async def test_missing_token_rejected(client: AsyncClient):
    response = await client.get("/confirm")

    assert response.status_code == 400
    assert response.json()["message"] == "No token provided"


@pytest.mark.asyncio
async def test_unknown_token_not_found(client: AsyncClient, db, make_submission):
    submission = make_submission(confirmed=False)
    _issue_token(db, submission)

    response = await client.get("/confirm", params={"token": "nope"})

    assert response.status_code == 404
    db.refresh(submission)
    assert submission.confirmed is False
    assert db.query(ConfirmationID).count() == 1


@pytest.mark.asyncio
async def test_expired_token_is_consumed(client: AsyncClient, db, make_submission):
    submission = make_submission(confirmed=False)
    _issue_token(db, submission, age=timedelta(hours=25))

    response = await client.get("/confirm", params={"token": "tok-123"})

    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "Token expired"}
    assert db.query(ConfirmationID).count() == 0
    db.refresh(submission)
    assert submission.confirmed is False


@pytest.mark.asyncio
async def test_contribute_then_confirm(client: AsyncClient, db, notifier, admin_headers):
    form = {
        "title": "Groove A",
        "author": "Jane",
        "key": "Cm",
        "tempo": "120",
        "timesig1": "4",
        "timesig2": "4",
        "submissionEmail": "jane@example.com",
        "instrument": "drums",
        "cf-turnstile-response": "tok",
    }
    await client.post("/submissions", data=form, files={"audio": ("groove.wav", b"RIFF", "audio/wav")})
    [message] = list(notifier.attempts)
    token = message.text.split("token=", 1)[1].split()[0]

    listed_before = await client.get("/submissions", headers=admin_headers)
    response = await client.get("/confirm", params={"token": token})
    listed_after = await client.get("/submissions", headers=admin_headers)

    assert response.status_code == 200
    assert listed_before.json() == []
    [entry] = listed_after.json()
    assert entry["title"] == "Groove A"
    assert entry["confirmed"] is True
    assert entry["submissionEmail"] == "jane@example.com"


# =============================================================================
# Service level
# =============================================================================

def test_confirm_expiry_uses_injected_clock(db, make_submission):
    submission = make_submission(confirmed=False)
    record = _issue_token(db, submission)
    later = record.created_at.replace(tzinfo=timezone.utc) + timedelta(hours=24, seconds=1)

    with pytest.raises(ExpiredTokenError):
        submission_service.confirm(db, "tok-123", now=later)


def test_token_for_removed_submission_not_found(db, make_submission):
    submission = make_submission(confirmed=False)
    _issue_token(db, submission)
    db.query(Submission).filter(Submission.id == submission.id).delete()
    db.commit()

    with pytest.raises(NotFoundError):
        submission_service.confirm(db, "tok-123")
    assert db.query(ConfirmationID).count() == 0


def test_purge_expired_tokens(db, make_submission):
    fresh = make_submission(confirmed=False, title="Fresh")
    stale = make_submission(confirmed=False, title="Stale")
    _issue_token(db, fresh, token="fresh")
    _issue_token(db, stale, token="stale", age=timedelta(hours=30))

    removed = submission_service.purge_expired_tokens(db)

    assert removed == 1
    assert [r.token for r in db.query(ConfirmationID).all()] == ["fresh"]
