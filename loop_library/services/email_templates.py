"""System email templates for the submission lifecycle."""

from __future__ import annotations

import html

from loop_library.services.email_service import EmailMessage

_STYLE = """
<style>
  body { background-color: #171717; font-family: sans-serif; }
  h1 { color: #fff; }
  p { color: #d1d5db; }
  a { color: #4ade80; }
</style>
"""


def _wrap(body: str) -> str:
    return f"{_STYLE}\n{body}"


def build_confirmation_email(to: str, confirm_url: str, *, submission_id: str) -> EmailMessage:
    safe_url = html.escape(confirm_url, quote=True)
    body = _wrap(
        "<h1>Thanks for submitting your loop to the Loop Library!</h1>\n"
        "<p>If this was you, please click the link below to confirm your submission.</p>\n"
        f'<a href="{safe_url}">Confirm your submission (link expires in 24 hours)</a>\n'
        "<p>If you did not post to the Loop Library, you can safely ignore this message.</p>\n"
        "<p>Thanks again! - The Loop Library Team</p>"
    )
    text = (
        "Thanks for submitting your loop to the Loop Library!\n\n"
        "If this was you, open the link below to confirm your submission "
        "(it expires in 24 hours):\n"
        f"{confirm_url}\n\n"
        "If you did not post to the Loop Library, you can safely ignore this message."
    )
    return EmailMessage(
        to=to,
        subject="Loop Library - New submission under your email",
        html=body,
        text=text,
        kind="confirmation",
        idempotency_key=f"submission-confirmation/{submission_id}",
    )


def build_accepted_email(to: str, *, submission_id: str) -> EmailMessage:
    body = _wrap(
        "<h1>Congratulations! Your loop was accepted by the Loop Library.</h1>\n"
        "<p>You'll be able to see it on the site soon.</p>\n"
        "<p>Thanks for posting! - The Loop Library Team</p>"
    )
    text = (
        "Congratulations! Your loop was accepted by the Loop Library.\n"
        "You'll be able to see it on the site soon."
    )
    return EmailMessage(
        to=to,
        subject="Loop Library - Your loop was accepted",
        html=body,
        text=text,
        kind="accepted",
        idempotency_key=f"submission-accepted/{submission_id}",
    )


def build_rejected_email(to: str, reason: str, *, submission_id: str) -> EmailMessage:
    """The moderator's reason is plain text: verbatim in `text`, escaped in `html`."""
    body = _wrap(
        "<h1>We're sorry, your loop was not accepted by the Loop Library.</h1>\n"
        "<p>Here's why:</p>\n"
        f'<p>"{html.escape(reason)}" - A Loop Library Moderator</p>\n'
        "<p>If you think this was a mistake, please reply to this email.</p>"
    )
    text = (
        "We're sorry, your loop was not accepted by the Loop Library.\n\n"
        "Here's why:\n"
        f'"{reason}" - A Loop Library Moderator\n\n'
        "If you think this was a mistake, please reply to this email."
    )
    return EmailMessage(
        to=to,
        subject="Loop Library - We're sorry, your loop was not accepted",
        html=body,
        text=text,
        kind="rejected",
        idempotency_key=f"submission-rejected/{submission_id}",
    )
