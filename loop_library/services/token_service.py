"""Confirmation token generation and expiry checks."""

import secrets
from datetime import datetime, timedelta, timezone

TOKEN_BYTES = 32  # 256 bits


def generate_confirmation_token() -> str:
    """Return an unguessable token safe to embed unescaped in a query string.

    URL-safe base64 without padding (43 characters).
    """
    return secrets.token_urlsafe(TOKEN_BYTES)


def is_expired(created_at: datetime, *, ttl: timedelta, now: datetime | None = None) -> bool:
    """True once more than `ttl` has passed since `created_at`."""
    current = now or datetime.now(timezone.utc)
    # SQLite hands back naive datetimes; stored values are always UTC
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    return current - created_at > ttl
