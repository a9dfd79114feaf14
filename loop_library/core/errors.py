"""Error taxonomy for the submission lifecycle.

Every error carries the HTTP status it maps to and a message that is safe to
show to callers. Store or provider error text stays in the logs.
"""

from __future__ import annotations


class LoopLibraryError(Exception):
    """Base exception for service errors."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(LoopLibraryError):
    """Bad input shape or range; fixable by the client."""

    status_code = 400
    default_message = "Invalid request"

    def __init__(self, message: str | None = None, errors: list[dict[str, str]] | None = None):
        super().__init__(message)
        self.errors = errors or []


class CaptchaError(LoopLibraryError):
    """Captcha verification rejected the request."""

    status_code = 400
    default_message = "Captcha failed"


class AuthorizationError(LoopLibraryError):
    """Missing or mismatched admin credential."""

    status_code = 401
    default_message = "Unauthorized"


class NotFoundError(LoopLibraryError):
    """Unknown submission, loop or token."""

    status_code = 404
    default_message = "Not found"


class ExpiredTokenError(LoopLibraryError):
    """Confirmation token is past its horizon."""

    status_code = 400
    default_message = "Token expired"


class SubmissionStateError(LoopLibraryError):
    """Transition not allowed from the submission's current state."""

    status_code = 409
    default_message = "Submission is not in a valid state for this action"


class UpstreamStorageError(LoopLibraryError):
    """Document store or object store call failed."""

    status_code = 500
    default_message = "Storage error"


class UpstreamProcessingError(LoopLibraryError):
    """External audio processing failed."""

    status_code = 500
    default_message = "Error processing audio"


class UpstreamNotificationError(LoopLibraryError):
    """Email dispatch failed. Logged only, never returned to callers."""

    status_code = 502
    default_message = "Email delivery failed"
