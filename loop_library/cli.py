"""CLI tools for loop library administration."""

import click

from loop_library.core.structured_logging import mask_email
from loop_library.db.base import Base
from loop_library.db.session import SessionLocal, engine
from loop_library.services import submission_service


@click.group()
def cli():
    """Loop library CLI tools."""
    pass


@cli.command()
def create_tables():
    """
    Create the schema directly from the models.

    For local SQLite databases; deployed databases use `alembic upgrade head`.

    Example:
        python -m loop_library.cli create-tables
    """
    import loop_library.db.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    click.echo("✓ Tables created")


@cli.command()
def purge_expired_tokens():
    """Delete confirmation tokens past their expiry horizon."""
    db = SessionLocal()
    try:
        removed = submission_service.purge_expired_tokens(db)
        click.echo(f"✓ Removed {removed} expired confirmation token(s)")
    except Exception as e:
        db.rollback()
        click.echo(f"❌ Error: {e}")
        raise SystemExit(1)
    finally:
        db.close()


@cli.command()
@click.option("--limit", default=50, show_default=True, help="Maximum rows to print")
def list_pending(limit: int):
    """List submissions still waiting for email confirmation."""
    db = SessionLocal()
    try:
        pending = submission_service.list_unconfirmed_submissions(db)
        if not pending:
            click.echo("No pending submissions")
            return
        for submission in pending[:limit]:
            click.echo(
                f"{submission.id}  {submission.created_at:%Y-%m-%d %H:%M}  "
                f"{submission.title!r} by {submission.author} "
                f"<{mask_email(submission.submission_email)}>"
            )
        if len(pending) > limit:
            click.echo(f"… and {len(pending) - limit} more")
    finally:
        db.close()


if __name__ == "__main__":
    cli()
