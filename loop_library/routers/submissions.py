"""Submission endpoints: public contribute and admin moderation."""

from typing import Callable

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session
from starlette.datastructures import UploadFile

from loop_library.core.config import settings
from loop_library.core.deps import (
    enforce_penalty_box,
    get_captcha_verifier,
    get_client_ip,
    get_db,
    get_notifier,
    get_object_store,
    get_penalizer,
    get_transcoder,
    require_admin,
)
from loop_library.core.rate_limit import limiter
from loop_library.schemas.common import MessageResponse
from loop_library.schemas.submission import ApprovalRequest, SubmissionRead
from loop_library.services import submission_service
from loop_library.services.captcha_service import CaptchaVerifier
from loop_library.services.notification_service import Notifier
from loop_library.services.object_store import ObjectStore
from loop_library.services.transcode_service import Transcoder
from loop_library.utils.file_upload import declared_size_exceeds_limit

router = APIRouter(
    prefix="/submissions",
    tags=["submissions"],
    dependencies=[Depends(enforce_penalty_box)],
)

# Multipart field names accepted for the audio file
FILE_FIELDS = ("audio", "file")


async def _read_contribute_form(request: Request) -> tuple[dict[str, object], submission_service.UploadedAudio | None]:
    form = await request.form()
    fields: dict[str, object] = {}
    upload: submission_service.UploadedAudio | None = None
    try:
        for name, value in form.multi_items():
            if isinstance(value, UploadFile):
                if name in FILE_FIELDS and upload is None:
                    upload = submission_service.UploadedAudio(
                        filename=value.filename,
                        content_type=value.content_type,
                        data=await value.read(),
                    )
                    continue
                fields[name] = value.filename or ""
                continue
            fields[name] = value
    finally:
        await form.close()
    return fields, upload


@router.post("", response_model=MessageResponse)
@limiter.limit(f"{settings.RATE_LIMIT_SUBMISSIONS}/hour")
async def contribute(
    request: Request,
    db: Session = Depends(get_db),
    client_ip: str | None = Depends(get_client_ip),
    penalize: Callable[[int], None] = Depends(get_penalizer),
    object_store: ObjectStore = Depends(get_object_store),
    captcha: CaptchaVerifier = Depends(get_captcha_verifier),
    notifier: Notifier = Depends(get_notifier),
    transcoder: Transcoder = Depends(get_transcoder),
):
    """
    Submit a loop for moderation.

    Multipart form: title, author, key, tempo, timesig1, timesig2,
    submissionEmail, instrument, cf-turnstile-response and one audio file.
    """
    if declared_size_exceeds_limit(
        request.headers.get("content-length"),
        max_size_bytes=settings.MAX_UPLOAD_BYTES,
    ):
        raise HTTPException(status_code=413, detail="File too large")

    fields, upload = await _read_contribute_form(request)
    await submission_service.contribute(
        db,
        fields=fields,
        upload=upload,
        client_ip=client_ip,
        object_store=object_store,
        captcha=captcha,
        notifier=notifier,
        transcoder=transcoder,
        penalize=penalize,
    )
    return MessageResponse(success=True, message="File uploaded successfully")


# =============================================================================
# Moderation (admin)
# =============================================================================

@router.get("", response_model=list[SubmissionRead], dependencies=[Depends(require_admin)])
@limiter.limit(f"{settings.RATE_LIMIT_API}/minute")
def list_submissions(request: Request, db: Session = Depends(get_db)):
    """Confirmed submissions awaiting a decision, newest first."""
    return submission_service.list_confirmed_submissions(db)


@router.post(
    "/{submission_id}/approve",
    response_model=MessageResponse,
    dependencies=[Depends(require_admin)],
)
@limiter.limit(f"{settings.RATE_LIMIT_API}/minute")
async def approve_submission(
    request: Request,
    submission_id: str,
    changes: ApprovalRequest | None = None,
    db: Session = Depends(get_db),
    object_store: ObjectStore = Depends(get_object_store),
    notifier: Notifier = Depends(get_notifier),
):
    await submission_service.approve(
        db,
        submission_id,
        changes or ApprovalRequest(),
        object_store=object_store,
        notifier=notifier,
    )
    return MessageResponse(success=True, message="Submission approved!")


@router.delete(
    "/{submission_id}",
    response_model=MessageResponse,
    dependencies=[Depends(require_admin)],
)
@limiter.limit(f"{settings.RATE_LIMIT_API}/minute")
async def deny_submission(
    request: Request,
    submission_id: str,
    reason: str = Query(default="", max_length=2000),
    db: Session = Depends(get_db),
    object_store: ObjectStore = Depends(get_object_store),
    notifier: Notifier = Depends(get_notifier),
):
    await submission_service.deny(
        db,
        submission_id,
        reason,
        object_store=object_store,
        notifier=notifier,
    )
    return MessageResponse(success=True, message="Submission deleted, sent bad news")
