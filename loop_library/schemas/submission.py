"""Submission-related Pydantic schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from loop_library.db.enums import FileExtension, Instrument

MAX_TEXT_LENGTH = 64
MAX_TIMESIG_PART = 64
MAX_TEMPO = 999


class SubmissionForm(BaseModel):
    """
    Contribute form fields.

    Field names follow the public multipart form (`submissionEmail`,
    `cf-turnstile-response`). Unknown fields are rejected.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    title: str = Field(min_length=1, max_length=MAX_TEXT_LENGTH)
    author: str = Field(min_length=1, max_length=MAX_TEXT_LENGTH)
    key: str = Field(min_length=1)
    tempo: int = Field(gt=0, le=MAX_TEMPO)
    timesig1: int = Field(gt=0, le=MAX_TIMESIG_PART)
    timesig2: int = Field(gt=0, le=MAX_TIMESIG_PART)
    submission_email: EmailStr = Field(alias="submissionEmail")
    captcha_token: str = Field(alias="cf-turnstile-response", min_length=1)
    instrument: Instrument

    @field_validator("title", "author", "key", mode="before")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("submission_email")
    @classmethod
    def check_email_length(cls, v: str) -> str:
        if len(v) > MAX_TEXT_LENGTH:
            raise ValueError(f"must be at most {MAX_TEXT_LENGTH} characters")
        return v


class SubmissionRead(BaseModel):
    """Submission as listed to moderators."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    author: str
    files: list[str]
    key: str
    tempo: int
    type: str
    timesig: str
    instrument: str
    name: str
    submission_email: str = Field(serialization_alias="submissionEmail")
    submission_ip: str | None = Field(default=None, serialization_alias="submissionIP")
    created_at: datetime = Field(serialization_alias="date")
    confirmed: bool


class ApprovalRequest(BaseModel):
    """
    Moderator edits applied when publishing a submission.

    Omitted fields fall back to the submission's own values.
    """

    model_config = ConfigDict(extra="forbid")

    title: str | None = Field(default=None, min_length=1, max_length=MAX_TEXT_LENGTH)
    author: str | None = Field(default=None, min_length=1, max_length=MAX_TEXT_LENGTH)
    key: str | None = Field(default=None, min_length=1)
    tempo: int | None = Field(default=None, gt=0, le=MAX_TEMPO)
    timesig: str | None = Field(default=None, pattern=r"^[1-9]\d?/[1-9]\d?$")
    instrument: Instrument | None = None
    files: list[FileExtension] | None = Field(default=None, min_length=1)
