"""Submission lifecycle: contribute, confirm, approve, deny.

States (the Submission row is the source of truth):

    NEW --contribute--> PENDING_CONFIRMATION (confirmed=False)
        --confirm--> CONFIRMED (confirmed=True)
        --approve--> PUBLISHED (Loop created, Submission removed)
    PENDING_CONFIRMATION | CONFIRMED --deny--> REJECTED (Submission removed)

Metadata and objects live in two stores with no shared transaction. Each
transition commits its metadata change first and then works through the
object store one key at a time; a failure part-way is logged and reported,
never compensated.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from uuid import UUID

from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from loop_library.core.config import Settings, settings
from loop_library.core.errors import (
    CaptchaError,
    ExpiredTokenError,
    LoopLibraryError,
    NotFoundError,
    SubmissionStateError,
    UpstreamStorageError,
    ValidationError,
)
from loop_library.core.rate_limit import PENALTY_CAPTCHA, PENALTY_VALIDATION
from loop_library.core.structured_logging import build_log_context, mask_email
from loop_library.db.enums import FileExtension, LoopType
from loop_library.db.models import ConfirmationID, Loop, Submission
from loop_library.db.session import commit_or_raise
from loop_library.schemas.submission import ApprovalRequest
from loop_library.services import email_templates, token_service, validation_service
from loop_library.services.captcha_service import CaptchaVerifier
from loop_library.services.notification_service import Notifier
from loop_library.services.object_store import ObjectStore, object_key
from loop_library.services.transcode_service import Transcoder
from loop_library.utils.file_upload import ensure_upload_size
from loop_library.utils.normalization import format_timesig, normalize_email, slugify

logger = logging.getLogger(__name__)

Penalize = Callable[[int], None]

CONTENT_TYPES = {
    FileExtension.MP3.value: "audio/mpeg",
    FileExtension.MID.value: "audio/midi",
}


@dataclass
class UploadedAudio:
    filename: str | None
    content_type: str | None
    data: bytes


# =============================================================================
# Helpers
# =============================================================================

def _apply_penalty(penalize: Penalize | None, weight: int) -> None:
    if penalize is not None:
        penalize(weight)


def _commit(db: Session, action: str, submission_id: UUID | None = None) -> None:
    commit_or_raise(
        db, action, build_log_context(submission_id=str(submission_id) if submission_id else None)
    )


def parse_submission_id(raw: str | UUID) -> UUID:
    if isinstance(raw, UUID):
        return raw
    try:
        return UUID(raw)
    except (TypeError, ValueError):
        raise NotFoundError("Invalid submission ID") from None


def get_submission(db: Session, submission_id: str | UUID) -> Submission:
    submission = db.get(Submission, parse_submission_id(submission_id))
    if submission is None:
        raise NotFoundError("Invalid submission ID")
    return submission


def list_confirmed_submissions(db: Session) -> list[Submission]:
    """Confirmed submissions awaiting moderation, newest first."""
    return (
        db.query(Submission)
        .filter(Submission.confirmed.is_(True))
        .order_by(Submission.created_at.desc())
        .all()
    )


def list_unconfirmed_submissions(db: Session) -> list[Submission]:
    return (
        db.query(Submission)
        .filter(Submission.confirmed.is_(False))
        .order_by(Submission.created_at.desc())
        .all()
    )


def _delete_tokens_for(db: Session, submission_id: UUID) -> None:
    db.execute(delete(ConfirmationID).where(ConfirmationID.submission_id == submission_id))


def confirmation_url(token: str, *, config: Settings = settings) -> str:
    return f"{config.PUBLIC_API_URL.rstrip('/')}/confirm?token={token}"


# =============================================================================
# Contribute: NEW -> PENDING_CONFIRMATION
# =============================================================================

async def _check_captcha(
    captcha: CaptchaVerifier,
    token: str,
    client_ip: str | None,
    *,
    config: Settings,
    penalize: Penalize | None,
) -> None:
    if config.captcha_bypass_active:
        logger.warning(
            "CAPTCHA_BYPASS enabled (ENV=%s); skipping captcha verification",
            config.ENV,
            extra=build_log_context(client_ip=client_ip),
        )
        return

    result = await captcha.verify(token, client_ip)
    if not result.passes(config.CAPTCHA_MIN_SCORE):
        logger.info(
            "Captcha rejected: success=%s score=%s codes=%s",
            result.success,
            result.score,
            ",".join(result.error_codes),
            extra=build_log_context(client_ip=client_ip),
        )
        _apply_penalty(penalize, PENALTY_CAPTCHA)
        raise CaptchaError()


async def contribute(
    db: Session,
    *,
    fields: Mapping[str, object],
    upload: UploadedAudio | None,
    client_ip: str | None,
    object_store: ObjectStore,
    captcha: CaptchaVerifier,
    notifier: Notifier,
    transcoder: Transcoder,
    config: Settings = settings,
    penalize: Penalize | None = None,
) -> Submission:
    """
    Accept a new loop submission.

    Order: validate -> captcha -> store Submission + ConfirmationID ->
    send confirmation email -> write objects. An object-store failure is
    raised after the metadata is already committed.
    """
    if upload is None:
        raise ValidationError(
            "No file uploaded",
            errors=[{"field": "file", "message": "No file uploaded"}],
        )

    try:
        media = validation_service.resolve_media_type(
            upload.content_type, allow_midi=transcoder.supports_midi
        )
        form = validation_service.validate_submission_form(fields)
    except ValidationError:
        _apply_penalty(penalize, PENALTY_VALIDATION)
        raise

    ensure_upload_size(upload.data, max_size_bytes=config.MAX_UPLOAD_BYTES)

    await _check_captcha(
        captcha, form.captcha_token, client_ip, config=config, penalize=penalize
    )

    email = normalize_email(form.submission_email) or form.submission_email
    submission = Submission(
        title=form.title,
        author=form.author,
        submission_email=email,
        instrument=form.instrument.value,
        key=form.key,
        tempo=form.tempo,
        timesig=format_timesig(form.timesig1, form.timesig2),
        files=media.extensions,
        type=media.loop_type,
        name=slugify(form.title),
        submission_ip=client_ip,
        created_at=datetime.now(timezone.utc),
        confirmed=False,
    )
    token = token_service.generate_confirmation_token()
    try:
        db.add(submission)
        db.flush()
        db.add(
            ConfirmationID(
                token=token,
                submission_id=submission.id,
                submission_email=email,
                created_at=submission.created_at,
            )
        )
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Failed to stage submission: %s", exc.__class__.__name__)
        raise UpstreamStorageError() from exc
    _commit(db, "contribute")

    log_context = build_log_context(submission_id=str(submission.id), client_ip=client_ip)
    logger.info("Submission created for %s", mask_email(email), extra=log_context)

    notifier.dispatch(
        email_templates.build_confirmation_email(
            email,
            confirmation_url(token, config=config),
            submission_id=str(submission.id),
        )
    )
    if not notifier.delivers:
        logger.info(
            "To confirm submission %s, use token: %s", submission.id, token, extra=log_context
        )

    mp3_data = await transcoder.to_mp3(upload.data, media.content_type)
    payloads = {FileExtension.MP3.value: mp3_data, FileExtension.MID.value: upload.data}
    for extension in submission.files:
        key = object_key(submission.id, extension)
        try:
            await run_in_threadpool(
                object_store.put,
                config.S3_SUBMISSIONS_BUCKET,
                key,
                payloads[extension],
                CONTENT_TYPES[extension],
            )
        except LoopLibraryError:
            logger.error(
                "Upload of %s failed; submission metadata was kept", key, extra=log_context
            )
            raise

    return submission


# =============================================================================
# Confirm: PENDING_CONFIRMATION -> CONFIRMED
# =============================================================================

def confirm(
    db: Session,
    token: str | None,
    *,
    config: Settings = settings,
    now: datetime | None = None,
) -> Submission:
    """
    Redeem a confirmation token.

    The token row is claimed with a single-row delete, so of two concurrent
    redemptions only one sees rowcount 1. Expired tokens are deleted and the
    redemption fails.
    """
    if not token:
        raise ValidationError(
            "No token provided",
            errors=[{"field": "token", "message": "No token provided"}],
        )

    record = db.query(ConfirmationID).filter(ConfirmationID.token == token).first()
    if record is None:
        raise NotFoundError("Invalid token")
    submission_id = record.submission_id

    ttl = timedelta(hours=config.CONFIRMATION_TOKEN_TTL_HOURS)
    if token_service.is_expired(record.created_at, ttl=ttl, now=now):
        db.execute(delete(ConfirmationID).where(ConfirmationID.id == record.id))
        _commit(db, "confirm", submission_id)
        logger.info(
            "Expired confirmation token redeemed",
            extra=build_log_context(submission_id=str(submission_id)),
        )
        raise ExpiredTokenError()

    claimed = db.execute(delete(ConfirmationID).where(ConfirmationID.id == record.id)).rowcount
    if claimed != 1:
        db.rollback()
        raise NotFoundError("Invalid token")

    submission = db.get(Submission, submission_id)
    if submission is None:
        # Token outlived its submission; drop it
        _commit(db, "confirm", submission_id)
        raise NotFoundError("Invalid submission")

    submission.confirmed = True
    _commit(db, "confirm", submission_id)
    logger.info("Submission confirmed", extra=build_log_context(submission_id=str(submission_id)))
    return submission


def purge_expired_tokens(db: Session, *, config: Settings = settings, now: datetime | None = None) -> int:
    """Delete every ConfirmationID past its horizon. Returns the number removed."""
    current = now or datetime.now(timezone.utc)
    cutoff = current - timedelta(hours=config.CONFIRMATION_TOKEN_TTL_HOURS)
    result = db.execute(delete(ConfirmationID).where(ConfirmationID.created_at < cutoff))
    _commit(db, "purge_expired_tokens")
    return result.rowcount or 0


# =============================================================================
# Approve: CONFIRMED -> PUBLISHED
# =============================================================================

async def approve(
    db: Session,
    submission_id: str | UUID,
    changes: ApprovalRequest,
    *,
    object_store: ObjectStore,
    notifier: Notifier,
    config: Settings = settings,
) -> Loop:
    """
    Publish a confirmed submission as a Loop with the same id.

    Moderator edits override the submission's fields. Objects are moved from
    the submissions bucket to the loops bucket per extension, best effort.
    """
    submission = get_submission(db, submission_id)
    if not submission.confirmed:
        raise SubmissionStateError("Submission has not been confirmed")

    stored_files = list(submission.files or [])
    files = list(dict.fromkeys(f.value for f in changes.files)) if changes.files else stored_files
    unknown = sorted(set(files) - set(stored_files))
    if unknown:
        raise ValidationError(
            "Files not present on submission",
            errors=[
                {"field": "files", "message": f"Submission has no '{ext}' file"} for ext in unknown
            ],
        )

    title = changes.title or submission.title
    loop = Loop(
        id=submission.id,
        title=title,
        author=changes.author or submission.author,
        files=files,
        key=changes.key or submission.key,
        tempo=changes.tempo if changes.tempo is not None else submission.tempo,
        type=LoopType.MIDI.value if FileExtension.MID.value in files else LoopType.AUDIO.value,
        timesig=changes.timesig or submission.timesig,
        name=slugify(title),
        instrument=changes.instrument.value if changes.instrument else submission.instrument,
        added=datetime.now(timezone.utc),
    )
    email = submission.submission_email
    loop_id = submission.id

    db.add(loop)
    _delete_tokens_for(db, loop_id)
    db.delete(submission)
    try:
        _commit(db, "approve", loop_id)
    except IntegrityError:
        raise SubmissionStateError("Submission already published") from None

    log_context = build_log_context(submission_id=str(loop_id), loop_id=str(loop_id))
    logger.info("Submission approved, moving objects to loops bucket", extra=log_context)

    for extension in stored_files:
        key = object_key(loop_id, extension)
        try:
            if extension in files:
                await run_in_threadpool(
                    object_store.copy, config.S3_SUBMISSIONS_BUCKET, key, config.S3_LOOPS_BUCKET
                )
            await run_in_threadpool(object_store.delete, config.S3_SUBMISSIONS_BUCKET, key)
        except LoopLibraryError as exc:
            logger.warning("Failed to move %s: %s", key, exc.message, extra=log_context)

    notifier.dispatch(email_templates.build_accepted_email(email, submission_id=str(loop_id)))
    return loop


# =============================================================================
# Deny: PENDING_CONFIRMATION | CONFIRMED -> REJECTED
# =============================================================================

async def deny(
    db: Session,
    submission_id: str | UUID,
    reason: str | None,
    *,
    object_store: ObjectStore,
    notifier: Notifier,
    config: Settings = settings,
) -> None:
    """
    Reject a submission: notify the submitter, remove its objects and record.

    Every object delete is attempted; if any failed the record is still
    removed and UpstreamStorageError is raised afterwards.
    """
    submission = get_submission(db, submission_id)
    submission_uuid = submission.id
    log_context = build_log_context(submission_id=str(submission_uuid))

    notifier.dispatch(
        email_templates.build_rejected_email(
            submission.submission_email,
            reason or "No reason given",
            submission_id=str(submission_uuid),
        )
    )

    failed: list[str] = []
    for extension in submission.files or []:
        key = object_key(submission_uuid, extension)
        try:
            await run_in_threadpool(object_store.delete, config.S3_SUBMISSIONS_BUCKET, key)
        except NotFoundError:
            continue
        except LoopLibraryError as exc:
            logger.warning("Failed to delete %s: %s", key, exc.message, extra=log_context)
            failed.append(key)

    _delete_tokens_for(db, submission_uuid)
    db.delete(submission)
    _commit(db, "deny", submission_uuid)
    logger.info("Submission denied", extra=log_context)

    if failed:
        raise UpstreamStorageError("Error deleting file from storage")
