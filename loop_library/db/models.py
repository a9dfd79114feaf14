"""SQLAlchemy ORM models.

Three record kinds back the submission lifecycle:

- Submission: a user contribution awaiting confirmation and moderation
- ConfirmationID: one-time email confirmation token for a submission
- Loop: a published loop, keyed by the id of the submission it came from
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, ForeignKey, Index, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from loop_library.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Submission(Base):
    """
    Pending user contribution.

    `confirmed` starts False and only flips through token redemption.
    """

    __tablename__ = "submissions"
    __table_args__ = (
        Index("idx_submissions_confirmed_created", "confirmed", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(String(64), nullable=False)
    author: Mapped[str] = mapped_column(String(64), nullable=False)
    submission_email: Mapped[str] = mapped_column(String(64), nullable=False)
    instrument: Mapped[str] = mapped_column(String(20), nullable=False)
    key: Mapped[str] = mapped_column(String(), nullable=False)
    tempo: Mapped[int] = mapped_column(Integer, nullable=False)
    timesig: Mapped[str] = mapped_column(String(8), nullable=False)  # "N/D"
    files: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    type: Mapped[str] = mapped_column(String(10), nullable=False, default="audio")
    name: Mapped[str] = mapped_column(String(128), nullable=False)  # slug of title
    submission_ip: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=_utcnow, nullable=False)
    confirmed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)


class ConfirmationID(Base):
    """One-time token proving control of a submission's email address."""

    __tablename__ = "confirmation_ids"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    token: Mapped[str] = mapped_column(String(128), nullable=False, unique=True, index=True)
    submission_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("submissions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    submission_email: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=_utcnow, nullable=False)


class Loop(Base):
    """
    Published loop.

    Every entry in `files` has a matching `<id>.<ext>` object in the loops bucket.
    """

    __tablename__ = "loops"
    __table_args__ = (
        Index("idx_loops_instrument_title", "instrument", "title"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True)
    title: Mapped[str] = mapped_column(String(64), nullable=False)
    author: Mapped[str] = mapped_column(String(64), nullable=False)
    instrument: Mapped[str] = mapped_column(String(20), nullable=False)
    key: Mapped[str] = mapped_column(String(), nullable=False)
    tempo: Mapped[int] = mapped_column(Integer, nullable=False)
    timesig: Mapped[str] = mapped_column(String(8), nullable=False)
    files: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    type: Mapped[str] = mapped_column(String(10), nullable=False, default="audio")
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    added: Mapped[datetime] = mapped_column(default=_utcnow, nullable=False)
