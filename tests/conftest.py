"""
Test configuration and fixtures.

Provides:
- Fresh in-memory SQLite schema per test
- Fakes for the object store, captcha, transcoder and email collaborators
- HTTPX AsyncClient wired to the app through dependency overrides
"""
import os
from dataclasses import dataclass, field
from typing import AsyncGenerator, Generator

# Settings are read at import time
os.environ["TESTING"] = "1"
os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ADMIN_SECRET"] = "test-admin-secret"
os.environ["CAPTCHA_BYPASS"] = "False"
os.environ["PROCESSING_URL"] = ""
os.environ["RESEND_API_KEY"] = ""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.orm import Session

from loop_library.core.deps import (
    get_captcha_verifier,
    get_db,
    get_notifier,
    get_object_store,
    get_transcoder,
)
from loop_library.core.errors import NotFoundError, UpstreamStorageError
from loop_library.core.rate_limit import limiter, penalty_box
from loop_library.db.base import Base
from loop_library.db.session import SessionLocal, engine
from loop_library.main import app
from loop_library.services.captcha_service import CaptchaResult
from loop_library.services.email_service import EmailMessage
from loop_library.services.notification_service import Notifier
from loop_library.services.object_store import StoredObject

ADMIN_SECRET = "test-admin-secret"


# =============================================================================
# Fakes
# =============================================================================

class FakeObjectStore:
    """In-memory buckets. Actions listed in `fail_on` raise UpstreamStorageError."""

    def __init__(self):
        self.objects: dict[tuple[str, str], bytes] = {}
        self.content_types: dict[tuple[str, str], str] = {}
        self.fail_on: set[str] = set()

    def _maybe_fail(self, action: str) -> None:
        if action in self.fail_on:
            raise UpstreamStorageError()

    def put(self, bucket: str, key: str, data: bytes, content_type: str) -> None:
        self._maybe_fail("put")
        self.objects[(bucket, key)] = data
        self.content_types[(bucket, key)] = content_type

    def get(self, bucket: str, key: str) -> StoredObject:
        self._maybe_fail("get")
        if (bucket, key) not in self.objects:
            raise NotFoundError("Object not found")
        data = self.objects[(bucket, key)]
        return StoredObject(body=iter([data]), content_length=len(data))

    def copy(self, source_bucket: str, key: str, target_bucket: str) -> None:
        self._maybe_fail("copy")
        if (source_bucket, key) not in self.objects:
            raise NotFoundError("Object not found")
        self.objects[(target_bucket, key)] = self.objects[(source_bucket, key)]

    def delete(self, bucket: str, key: str) -> None:
        self._maybe_fail("delete")
        self.objects.pop((bucket, key), None)

    def keys(self, bucket: str) -> set[str]:
        return {key for (b, key) in self.objects if b == bucket}


@dataclass
class FakeCaptchaVerifier:
    result: CaptchaResult = field(default_factory=lambda: CaptchaResult(success=True, score=0.9))
    calls: list[tuple[str, str | None]] = field(default_factory=list)

    async def verify(self, token: str, remote_ip: str | None) -> CaptchaResult:
        self.calls.append((token, remote_ip))
        return self.result


class FakeTranscoder:
    def __init__(self, supports_midi: bool = False):
        self.supports_midi = supports_midi
        self.calls: list[str] = []

    async def to_mp3(self, data: bytes, content_type: str) -> bytes:
        self.calls.append(content_type)
        if content_type in ("audio/midi", "audio/x-midi", "audio/mid"):
            return b"RENDERED-MP3"
        return data


class RecordingSender:
    def __init__(self):
        self.sent: list[EmailMessage] = []

    async def send(self, message: EmailMessage) -> str | None:
        self.sent.append(message)
        return f"msg-{len(self.sent)}"


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(autouse=True)
def reset_rate_limits() -> Generator[None, None, None]:
    limiter.reset()
    penalty_box.reset()
    yield
    penalty_box.reset()


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Session on a freshly created schema, dropped after the test."""
    import loop_library.db.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


# =============================================================================
# Collaborator Fixtures
# =============================================================================

@pytest.fixture
def object_store() -> FakeObjectStore:
    return FakeObjectStore()


@pytest.fixture
def captcha() -> FakeCaptchaVerifier:
    return FakeCaptchaVerifier()


@pytest.fixture
def transcoder() -> FakeTranscoder:
    return FakeTranscoder()


@pytest.fixture
def notifier() -> Notifier:
    return Notifier(sender=None)


# =============================================================================
# Client Fixtures
# =============================================================================

@pytest.fixture(scope="function")
async def client(
    db: Session,
    object_store: FakeObjectStore,
    captcha: FakeCaptchaVerifier,
    transcoder: FakeTranscoder,
    notifier: Notifier,
) -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient for public endpoints."""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_object_store] = lambda: object_store
    app.dependency_overrides[get_captcha_verifier] = lambda: captcha
    app.dependency_overrides[get_transcoder] = lambda: transcoder
    app.dependency_overrides[get_notifier] = lambda: notifier

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {ADMIN_SECRET}"}


@pytest.fixture
def recording_sender() -> RecordingSender:
    return RecordingSender()


# =============================================================================
# Data Factories
# =============================================================================

@pytest.fixture
def make_submission(db: Session, object_store: FakeObjectStore):
    """Insert a Submission (and its stored objects) directly."""
    from datetime import datetime, timezone

    from loop_library.db.models import Submission

    def _make(
        *,
        confirmed: bool = True,
        files: list[str] | None = None,
        title: str = "Groove A",
        created_at: datetime | None = None,
        store_objects: bool = True,
    ) -> Submission:
        submission = Submission(
            title=title,
            author="Jane",
            submission_email="jane@example.com",
            instrument="drums",
            key="Cm",
            tempo=120,
            timesig="4/4",
            files=files or ["mp3"],
            type="midi" if files and "mid" in files else "audio",
            name="groove-a",
            submission_ip="10.0.0.1",
            created_at=created_at or datetime.now(timezone.utc),
            confirmed=confirmed,
        )
        db.add(submission)
        db.commit()
        if store_objects:
            for ext in submission.files:
                object_store.objects[("submissions", f"{submission.id}.{ext}")] = f"{ext}-bytes".encode()
        return submission

    return _make


@pytest.fixture
def make_loop(db: Session, object_store: FakeObjectStore):
    """Insert a published Loop (and its stored objects) directly."""
    import uuid
    from datetime import datetime, timezone

    from loop_library.db.models import Loop
    from loop_library.utils.normalization import slugify

    def _make(
        title: str,
        *,
        instrument: str = "drums",
        files: list[str] | None = None,
        store_objects: bool = True,
    ) -> Loop:
        loop = Loop(
            id=uuid.uuid4(),
            title=title,
            author="Jane",
            instrument=instrument,
            key="Am",
            tempo=90,
            timesig="4/4",
            files=files or ["mp3"],
            type="midi" if files and "mid" in files else "audio",
            name=slugify(title),
            added=datetime.now(timezone.utc),
        )
        db.add(loop)
        db.commit()
        if store_objects:
            for ext in loop.files:
                object_store.objects[("loops", f"{loop.id}.{ext}")] = f"{ext}-bytes".encode()
        return loop

    return _make
