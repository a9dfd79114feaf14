"""Validation of contribute form fields and uploaded audio.

Pure checks: nothing here touches a store or an external service. Any
violated rule rejects the whole submission with a field-level error list.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from pydantic import ValidationError as PydanticValidationError

from loop_library.core.errors import ValidationError
from loop_library.db.enums import FileExtension, Instrument, LoopType
from loop_library.schemas.submission import MAX_TEXT_LENGTH, SubmissionForm


# =============================================================================
# Configuration
# =============================================================================

AUDIO_MIME_TYPES = {
    "audio/mpeg",
    "audio/wav",
    "audio/ogg",
}
MIDI_MIME_TYPES = {
    "audio/midi",
    "audio/x-midi",
    "audio/mid",
}

FIELD_LABELS = {
    "title": "Title",
    "author": "Author",
    "key": "Key",
    "tempo": "Tempo",
    "timesig1": "Time signature",
    "timesig2": "Time signature",
    "submissionEmail": "Email",
    "cf-turnstile-response": "Captcha",
    "instrument": "Instrument",
}

INSTRUMENT_CHOICES = ", ".join(i.value for i in Instrument)


@dataclass(frozen=True)
class AcceptedMedia:
    """Outcome of the media type check for an upload."""
    content_type: str
    is_midi: bool

    @property
    def extensions(self) -> list[str]:
        """Object keys written for this upload, in storage order."""
        if self.is_midi:
            return [FileExtension.MP3.value, FileExtension.MID.value]
        return [FileExtension.MP3.value]

    @property
    def loop_type(self) -> str:
        return LoopType.MIDI.value if self.is_midi else LoopType.AUDIO.value


# =============================================================================
# Form fields
# =============================================================================

def _error_message(error: dict) -> tuple[str, str]:
    loc = error.get("loc") or ("form",)
    field = str(loc[0])
    label = FIELD_LABELS.get(field, field)
    error_type = error.get("type", "")

    if error_type == "missing":
        return field, f"{label} is required"
    if error_type == "extra_forbidden":
        return field, f"Unexpected field '{field}'"
    if error_type == "string_too_short":
        return field, f"{label} is required"
    if error_type == "string_too_long":
        return field, f"{label} must be at most {error['ctx']['max_length']} characters"
    if error_type in ("int_parsing", "int_type", "int_from_float"):
        return field, f"{label} must be a whole number"
    if error_type == "greater_than":
        return field, f"{label} must be greater than {error['ctx']['gt']}"
    if error_type == "less_than_equal":
        return field, f"{label} must be at most {error['ctx']['le']}"
    if error_type == "enum":
        return field, f"{label} must be one of the following: {INSTRUMENT_CHOICES}"
    if field == "submissionEmail":
        if "at most" in error.get("msg", ""):
            return field, f"Email must be at most {MAX_TEXT_LENGTH} characters"
        return field, "Email must be a valid email address"
    return field, f"{label}: {error.get('msg', 'invalid value')}"


def validate_submission_form(fields: Mapping[str, object]) -> SubmissionForm:
    """
    Validate and normalize raw contribute form fields.

    Raises:
        ValidationError: with one entry per offending field
    """
    try:
        return SubmissionForm.model_validate(dict(fields))
    except PydanticValidationError as exc:
        errors = []
        for error in exc.errors():
            field, message = _error_message(error)
            errors.append({"field": field, "message": message})
        raise ValidationError(errors[0]["message"], errors=errors) from None


# =============================================================================
# Uploaded file
# =============================================================================

def _normalize_content_type(content_type: str | None) -> str:
    if not content_type:
        return ""
    return content_type.split(";", 1)[0].strip().lower()


def resolve_media_type(content_type: str | None, *, allow_midi: bool) -> AcceptedMedia:
    """
    Check the declared media type of an upload against the allow-list.

    MIDI is only accepted when the deployment can render it to audio.
    """
    normalized = _normalize_content_type(content_type)
    if normalized in AUDIO_MIME_TYPES:
        return AcceptedMedia(content_type=normalized, is_midi=False)
    if normalized in MIDI_MIME_TYPES and allow_midi:
        return AcceptedMedia(content_type=normalized, is_midi=True)
    raise ValidationError(
        "Invalid file type",
        errors=[{"field": "file", "message": f"Content type '{normalized or 'unknown'}' not allowed"}],
    )
