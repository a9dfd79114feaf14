"""Fire-and-forget email dispatch.

`dispatch` schedules delivery on the running event loop and returns at once.
Failures are logged, never raised: a lifecycle transition is complete once its
state change is durable, whether or not the email arrives.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque

from loop_library.core.config import Settings
from loop_library.core.errors import UpstreamNotificationError
from loop_library.core.structured_logging import mask_email
from loop_library.services.email_service import EmailMessage, EmailSender, ResendEmailSender

logger = logging.getLogger(__name__)

RECENT_ATTEMPTS_LIMIT = 256


class Notifier:
    def __init__(self, sender: EmailSender | None):
        self.sender = sender
        # Every dispatched message, newest last (delivered or not)
        self.attempts: deque[EmailMessage] = deque(maxlen=RECENT_ATTEMPTS_LIMIT)
        self._pending: set[asyncio.Task] = set()

    @property
    def delivers(self) -> bool:
        """False when emails are only logged (non-production or unconfigured)."""
        return self.sender is not None

    def dispatch(self, message: EmailMessage) -> None:
        self.attempts.append(message)
        if self.sender is None:
            logger.info(
                "Email delivery disabled, skipped %s email to %s",
                message.kind,
                mask_email(message.to),
            )
            return

        task = asyncio.get_running_loop().create_task(self._deliver(message))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(self, message: EmailMessage) -> None:
        assert self.sender is not None
        try:
            await self.sender.send(message)
        except UpstreamNotificationError as exc:
            logger.warning(
                "Failed to send %s email to %s: %s",
                message.kind,
                mask_email(message.to),
                exc.message,
            )
        except Exception:
            logger.exception(
                "Unexpected error sending %s email to %s",
                message.kind,
                mask_email(message.to),
            )

    async def drain(self) -> None:
        """Wait for in-flight deliveries (tests, shutdown)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


def build_notifier(config: Settings) -> Notifier:
    if not config.is_production:
        return Notifier(sender=None)
    if not config.RESEND_API_KEY:
        logger.warning("RESEND_API_KEY not configured; emails will not be delivered")
        return Notifier(sender=None)
    return Notifier(sender=ResendEmailSender(config.RESEND_API_KEY, config.EMAIL_FROM))
