"""Email confirmation link target."""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from loop_library.core.config import settings
from loop_library.core.deps import enforce_penalty_box, get_db
from loop_library.core.rate_limit import limiter
from loop_library.schemas.common import MessageResponse
from loop_library.services import submission_service

router = APIRouter(tags=["submissions"], dependencies=[Depends(enforce_penalty_box)])


@router.get("/confirm", response_model=MessageResponse)
@limiter.limit(f"{settings.RATE_LIMIT_API}/minute")
def confirm_submission(request: Request, token: str | None = None, db: Session = Depends(get_db)):
    """Redeem the one-time token sent to the submitter."""
    submission_service.confirm(db, token)
    return MessageResponse(success=True, message="Submission confirmed")
