"""Upload size checks for contributed audio."""

from __future__ import annotations

from loop_library.core.errors import ValidationError

# Allowance for the text fields and multipart boundaries around the file
FORM_OVERHEAD_BYTES = 64 * 1024


def declared_size_exceeds_limit(
    content_length_header: str | None,
    *,
    max_size_bytes: int,
    overhead_bytes: int = FORM_OVERHEAD_BYTES,
) -> bool:
    """True when the request's Content-Length alone rules the upload out.

    A missing or unparseable header is not a rejection; the payload is
    measured again once read.
    """
    try:
        declared = int(content_length_header or "")
    except ValueError:
        return False
    return declared > max_size_bytes + overhead_bytes


def ensure_upload_size(data: bytes, *, max_size_bytes: int) -> None:
    """Reject empty payloads and payloads above the configured cap."""
    if not data:
        raise ValidationError(
            "Uploaded file is empty",
            errors=[{"field": "file", "message": "Uploaded file is empty"}],
        )
    if len(data) > max_size_bytes:
        max_mb = max_size_bytes / (1024 * 1024)
        raise ValidationError(
            "File too large",
            errors=[{"field": "file", "message": f"File size exceeds {max_mb:.0f} MB limit"}],
        )
