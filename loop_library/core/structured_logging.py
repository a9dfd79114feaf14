"""Structured logging helpers (PII-safe)."""

import hashlib
from typing import Any


def mask_email(email: str | None) -> str:
    """Mask an email address for logs (prefix + SHA256 suffix for debugging)."""
    if not email:
        return ""
    prefix = email.split("@")[0][:3] if "@" in email else email[:3]
    suffix = hashlib.sha256(email.lower().encode()).hexdigest()[:12]
    return f"{prefix}...@[hash:{suffix}]"


def build_log_context(
    *,
    submission_id: str | None = None,
    loop_id: str | None = None,
    client_ip: str | None = None,
    route: str | None = None,
    method: str | None = None,
) -> dict[str, Any]:
    """Return a PII-safe log context dict."""
    context: dict[str, Any] = {}
    if submission_id:
        context["submission_id"] = submission_id
    if loop_id:
        context["loop_id"] = loop_id
    if client_ip:
        context["client_ip"] = client_ip
    if route:
        context["route"] = route
    if method:
        context["method"] = method
    return context
