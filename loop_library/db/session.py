import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from loop_library.core.config import settings
from loop_library.core.errors import UpstreamStorageError

logger = logging.getLogger(__name__)

url = make_url(settings.DATABASE_URL)
engine_kwargs: dict = {"pool_pre_ping": True}
if url.get_backend_name().startswith("postgresql"):
    engine_kwargs["connect_args"] = {"options": "-c timezone=utc"}
elif url.get_backend_name() == "sqlite":
    engine_kwargs["connect_args"] = {"check_same_thread": False}
    if url.database in (None, "", ":memory:"):
        # One shared connection, otherwise every checkout sees an empty database
        engine_kwargs["poolclass"] = StaticPool

engine = create_engine(url, **engine_kwargs)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def commit_or_raise(db: Session, action: str, log_context: dict | None = None) -> None:
    """
    Commit the session, rolling back on failure.

    IntegrityError propagates for callers that map conflicts themselves.
    Any other store failure surfaces as UpstreamStorageError.
    """
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error(
            "Metadata store commit failed during %s: %s",
            action,
            exc.__class__.__name__,
            extra=log_context or {},
        )
        raise UpstreamStorageError() from exc
