"""Rate limiting configuration for the loop library API."""

import logging
import os

from limits import parse
from limits.storage import storage_from_string
from limits.strategies import FixedWindowRateLimiter
from slowapi import Limiter
from slowapi.util import get_remote_address

from loop_library.core.config import settings

logger = logging.getLogger(__name__)

# Configure rate limiter with Redis for multi-worker support
# Falls back to in-memory if Redis is not available (dev/test mode)
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
IS_TESTING = os.getenv("TESTING", "").lower() in ("1", "true", "yes")
DEFAULT_LIMITS = (
    []
    if IS_TESTING or settings.RATE_LIMIT_API <= 0
    else [f"{settings.RATE_LIMIT_API}/minute"]
)

# Penalty weights applied on abusive failure paths
PENALTY_VALIDATION = 4
PENALTY_CAPTCHA = 4
PENALTY_ADMIN_AUTH = 32


def _resolve_storage_uri() -> str:
    if IS_TESTING:
        # Use in-memory storage for tests (no Redis dependency)
        return "memory://"
    # Try Redis, fall back to memory if connection fails
    try:
        import redis

        # Test connection upfront
        r = redis.from_url(REDIS_URL, socket_connect_timeout=1)
        r.ping()
        return REDIS_URL
    except Exception as e:
        logger.warning(f"Redis unavailable for rate limiting, using in-memory: {e}")
        return "memory://"


STORAGE_URI = _resolve_storage_uri()

limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=STORAGE_URI,
    default_limits=DEFAULT_LIMITS,
)


class PenaltyBox:
    """
    Weighted strikes against a client address.

    Failure paths (bad form, failed captcha, bad admin credential) add weight;
    once a client spends its hourly budget every further request is refused
    until the window rolls over.
    """

    NAMESPACE = "penalty"

    def __init__(self, storage_uri: str, budget_per_hour: int):
        self.enabled = budget_per_hour > 0
        self._item = parse(f"{max(budget_per_hour, 1)}/hour")
        self._storage = storage_from_string(storage_uri)
        self._strategy = FixedWindowRateLimiter(self._storage)

    def penalize(self, key: str | None, weight: int) -> None:
        if not self.enabled or not key or weight <= 0:
            return
        self._strategy.hit(self._item, self.NAMESPACE, key, cost=weight)
        logger.info("Penalized client", extra={"client_ip": key, "weight": weight})

    def is_locked_out(self, key: str | None) -> bool:
        if not self.enabled or not key:
            return False
        return not self._strategy.test(self._item, self.NAMESPACE, key)

    def reset(self) -> None:
        self._storage.reset()


penalty_box = PenaltyBox(STORAGE_URI, settings.RATE_LIMIT_PENALTY_BUDGET)
