"""FastAPI dependencies: database session, collaborators, client address, admin auth."""

import hmac
import logging
from functools import lru_cache
from typing import Callable, Generator

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from loop_library.core.config import settings
from loop_library.core.errors import AuthorizationError
from loop_library.core.rate_limit import PENALTY_ADMIN_AUTH, PenaltyBox, penalty_box
from loop_library.core.structured_logging import build_log_context
from loop_library.db.session import SessionLocal
from loop_library.services.captcha_service import CaptchaVerifier, TurnstileVerifier
from loop_library.services.notification_service import Notifier, build_notifier
from loop_library.services.object_store import ObjectStore
from loop_library.services.storage_client import get_s3_client
from loop_library.services.transcode_service import Transcoder, build_transcoder

logger = logging.getLogger(__name__)

BEARER_PREFIX = "bearer "


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# =============================================================================
# Collaborators (process-wide, overridden in tests)
# =============================================================================

@lru_cache
def get_object_store() -> ObjectStore:
    return ObjectStore(get_s3_client())


@lru_cache
def get_captcha_verifier() -> CaptchaVerifier:
    return TurnstileVerifier(settings.TURNSTILE_SECRET, verify_url=settings.TURNSTILE_VERIFY_URL)


@lru_cache
def get_notifier() -> Notifier:
    return build_notifier(settings)


@lru_cache
def get_transcoder() -> Transcoder:
    return build_transcoder(settings)


def get_penalty_box() -> PenaltyBox:
    return penalty_box


# =============================================================================
# Client address and penalties
# =============================================================================

def get_client_ip(request: Request) -> str | None:
    """
    Extract client IP from request.

    Only trusts X-Forwarded-For when TRUST_PROXY_HEADERS=True (behind reverse proxy).
    """
    if settings.TRUST_PROXY_HEADERS:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            # X-Forwarded-For: client, proxy1, proxy2 - take first
            return forwarded.split(",")[0].strip()

    if request.client:
        return request.client.host
    return None


def enforce_penalty_box(
    client_ip: str | None = Depends(get_client_ip),
    box: PenaltyBox = Depends(get_penalty_box),
) -> None:
    """Refuse clients that have used up their penalty budget."""
    if box.is_locked_out(client_ip):
        raise HTTPException(status_code=429, detail="Too many failed requests, try again later")


def get_penalizer(
    client_ip: str | None = Depends(get_client_ip),
    box: PenaltyBox = Depends(get_penalty_box),
) -> Callable[[int], None]:
    """Penalty hook bound to the calling client."""

    def penalize(weight: int) -> None:
        box.penalize(client_ip, weight)

    return penalize


# =============================================================================
# Admin authorization
# =============================================================================

def _extract_secret(authorization: str | None) -> str:
    if not authorization:
        return ""
    value = authorization.strip()
    if value.lower().startswith(BEARER_PREFIX):
        return value[len(BEARER_PREFIX):].strip()
    return value


def require_admin(
    request: Request,
    authorization: str | None = Header(default=None),
    client_ip: str | None = Depends(get_client_ip),
    box: PenaltyBox = Depends(get_penalty_box),
) -> None:
    """
    Verify the shared admin secret from the Authorization header.

    Accepts the raw secret or `Bearer <secret>`. An unset ADMIN_SECRET
    refuses every request.

    Raises:
        AuthorizationError: missing or wrong credential (client is penalized)
    """
    expected = settings.ADMIN_SECRET
    provided = _extract_secret(authorization)
    if expected and provided and hmac.compare_digest(provided.encode(), expected.encode()):
        return

    box.penalize(client_ip, PENALTY_ADMIN_AUTH)
    logger.warning(
        "Rejected admin request",
        extra=build_log_context(client_ip=client_ip, route=request.url.path, method=request.method),
    )
    raise AuthorizationError()
