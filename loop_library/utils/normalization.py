"""Data normalization utilities for submission metadata."""

import re
import unicodedata
from typing import Optional


_SLUG_CLEANUP = re.compile(r"[^a-z0-9]+")
MAX_SLUG_LENGTH = 128


def _strip_accents(value: str) -> str:
    return "".join(
        ch for ch in unicodedata.normalize("NFKD", value) if not unicodedata.combining(ch)
    )


def slugify(title: str) -> str:
    """
    Derive a URL-safe slug from a loop title.

    "Groove A" -> "groove-a", "Café Beat #2" -> "cafe-beat-2".
    Titles with no usable characters fall back to "loop".
    """
    ascii_title = _strip_accents(title).encode("ascii", "ignore").decode("ascii")
    slug = _SLUG_CLEANUP.sub("-", ascii_title.lower()).strip("-")
    return slug[:MAX_SLUG_LENGTH].rstrip("-") or "loop"


def normalize_email(email: Optional[str]) -> Optional[str]:
    """Normalize email to lowercase."""
    if not email:
        return None
    return email.strip().lower()


def format_timesig(numerator: int, denominator: int) -> str:
    """Serialize a time signature as "N/D"."""
    return f"{numerator}/{denominator}"
