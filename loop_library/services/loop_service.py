"""Published loops: listing, instrument facets, file downloads, takedown."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from loop_library.core.config import Settings, settings
from loop_library.core.errors import LoopLibraryError, NotFoundError
from loop_library.core.structured_logging import build_log_context
from loop_library.db.enums import FileExtension
from loop_library.db.models import Loop
from loop_library.db.session import commit_or_raise
from loop_library.services.object_store import ObjectStore, StoredObject, object_key
from loop_library.utils.pagination import PageParams, paginate_query

logger = logging.getLogger(__name__)

MEDIA_TYPES = {
    FileExtension.MP3.value: "audio/mpeg",
    FileExtension.MID.value: "audio/mid",
}


@dataclass
class LoopFile:
    """A published loop file ready to stream."""
    filename: str
    media_type: str
    stored: StoredObject


def list_loops(
    db: Session,
    params: PageParams,
    instrument: str | None = None,
) -> tuple[list[Loop], int]:
    """
    One page of published loops sorted by title.

    The total counts every loop matching the same filter, not just this page.
    """
    query = db.query(Loop)
    if instrument:
        query = query.filter(Loop.instrument == instrument)
    query = query.order_by(Loop.title.asc(), Loop.id.asc())
    return paginate_query(query, params)


def list_instruments(db: Session) -> list[str]:
    """Distinct instruments among published loops, sorted."""
    rows = db.query(Loop.instrument).distinct().order_by(Loop.instrument.asc()).all()
    return [row[0] for row in rows]


def parse_loop_filename(filename: str) -> tuple[UUID, str]:
    """Split `<id>.<ext>`; anything unparseable is simply not found."""
    loop_id, sep, extension = filename.rpartition(".")
    if not sep or not loop_id or not extension:
        raise NotFoundError("File not found")
    try:
        return UUID(loop_id), extension.lower()
    except ValueError:
        raise NotFoundError("File not found") from None


async def open_loop_file(
    db: Session,
    filename: str,
    *,
    object_store: ObjectStore,
    config: Settings = settings,
) -> LoopFile:
    """
    Resolve a public download.

    Only files listed on a published Loop are served; a stray object in the
    loops bucket with no record behind it is not reachable.
    """
    loop_id, extension = parse_loop_filename(filename)
    loop = db.get(Loop, loop_id)
    if loop is None or extension not in (loop.files or []):
        raise NotFoundError("File not found")

    stored = await run_in_threadpool(
        object_store.get, config.S3_LOOPS_BUCKET, object_key(loop.id, extension)
    )
    return LoopFile(
        filename=f"{loop.name}.{extension}",
        media_type=MEDIA_TYPES.get(extension, "application/octet-stream"),
        stored=stored,
    )


async def takedown_loop(
    db: Session,
    loop_id: str,
    *,
    object_store: ObjectStore,
    config: Settings = settings,
) -> None:
    """Remove a published loop. Object deletes are best effort."""
    try:
        parsed_id = UUID(loop_id)
    except ValueError:
        raise NotFoundError("Invalid loop ID") from None

    loop = db.get(Loop, parsed_id)
    if loop is None:
        raise NotFoundError("Invalid loop ID")

    files = list(loop.files or [])
    log_context = build_log_context(loop_id=str(parsed_id))
    db.delete(loop)
    commit_or_raise(db, "takedown", log_context)

    logger.info("Loop taken down", extra=log_context)
    for extension in files:
        key = object_key(parsed_id, extension)
        try:
            await run_in_threadpool(object_store.delete, config.S3_LOOPS_BUCKET, key)
        except LoopLibraryError as exc:
            logger.warning("Failed to delete %s: %s", key, exc.message, extra=log_context)
