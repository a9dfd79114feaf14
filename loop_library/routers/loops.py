"""Public loop library: listing, downloads, instruments. Admin takedown."""

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from loop_library.core.config import settings
from loop_library.core.deps import enforce_penalty_box, get_db, get_object_store, require_admin
from loop_library.core.rate_limit import limiter
from loop_library.schemas.common import MessageResponse
from loop_library.schemas.loop import LoopPage, LoopRead
from loop_library.services import loop_service
from loop_library.services.object_store import ObjectStore
from loop_library.utils.pagination import parse_page_params

router = APIRouter(tags=["loops"])

LISTING_CACHE_CONTROL = "public, max-age=86400"
DOWNLOAD_CACHE_CONTROL = "public, max-age=31536000"


@router.get("/loops", response_model=LoopPage)
@limiter.limit(f"{settings.RATE_LIMIT_PUBLIC_READ}/minute")
def list_loops(
    request: Request,
    response: Response,
    instrument: str | None = None,
    page: str | None = None,
    limit: str | None = None,
    db: Session = Depends(get_db),
):
    """Published loops sorted by title. `page` is 0-based, `limit` at most 128."""
    params = parse_page_params(page, limit)
    loops, total = loop_service.list_loops(db, params, instrument=instrument)
    response.headers["Cache-Control"] = LISTING_CACHE_CONTROL
    return LoopPage(
        limit=params.limit,
        page=params.page,
        total_loops=total,
        loops=[LoopRead.model_validate(loop) for loop in loops],
    )


@router.get("/loops/{filename}")
@limiter.limit(f"{settings.RATE_LIMIT_PUBLIC_READ}/minute")
async def download_loop(
    request: Request,
    filename: str,
    db: Session = Depends(get_db),
    object_store: ObjectStore = Depends(get_object_store),
):
    """Stream `<id>.<ext>` from the loops bucket."""
    loop_file = await loop_service.open_loop_file(db, filename, object_store=object_store)
    headers = {
        "Cache-Control": DOWNLOAD_CACHE_CONTROL,
        "Content-Disposition": f'inline; filename="{loop_file.filename}"',
    }
    if loop_file.stored.content_length is not None:
        headers["Content-Length"] = str(loop_file.stored.content_length)
    return StreamingResponse(
        loop_file.stored.body,
        media_type=loop_file.media_type,
        headers=headers,
    )


@router.get("/instruments", response_model=list[str])
@limiter.limit(f"{settings.RATE_LIMIT_PUBLIC_READ}/minute")
def list_instruments(request: Request, response: Response, db: Session = Depends(get_db)):
    response.headers["Cache-Control"] = LISTING_CACHE_CONTROL
    return loop_service.list_instruments(db)


@router.delete(
    "/loops/{loop_id}",
    response_model=MessageResponse,
    dependencies=[Depends(enforce_penalty_box), Depends(require_admin)],
)
@limiter.limit(f"{settings.RATE_LIMIT_API}/minute")
async def takedown_loop(
    request: Request,
    loop_id: str,
    db: Session = Depends(get_db),
    object_store: ObjectStore = Depends(get_object_store),
):
    """Remove a published loop and its files."""
    await loop_service.takedown_loop(db, loop_id, object_store=object_store)
    return MessageResponse(success=True, message="Loop removed")
