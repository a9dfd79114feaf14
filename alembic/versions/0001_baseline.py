"""Baseline migration - submissions, confirmation tokens, published loops

Revision ID: 0001_baseline
Revises:
Create Date: 2026-10-19

Portable DDL (PostgreSQL and SQLite): ids are generated by the application.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001_baseline'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create lifecycle tables."""

    # ==========================================================================
    # Submissions (pending moderation)
    # ==========================================================================
    op.create_table(
        'submissions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('title', sa.String(64), nullable=False),
        sa.Column('author', sa.String(64), nullable=False),
        sa.Column('submission_email', sa.String(64), nullable=False),
        sa.Column('instrument', sa.String(20), nullable=False),
        sa.Column('key', sa.String(), nullable=False),
        sa.Column('tempo', sa.Integer(), nullable=False),
        sa.Column('timesig', sa.String(8), nullable=False),
        sa.Column('files', sa.JSON(), nullable=False),
        sa.Column('type', sa.String(10), nullable=False),
        sa.Column('name', sa.String(128), nullable=False),
        sa.Column('submission_ip', sa.String(64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('confirmed', sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    op.create_index('idx_submissions_confirmed_created', 'submissions', ['confirmed', 'created_at'])

    # ==========================================================================
    # Confirmation tokens (one-time, 24h horizon)
    # ==========================================================================
    op.create_table(
        'confirmation_ids',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('token', sa.String(128), nullable=False),
        sa.Column(
            'submission_id',
            sa.Uuid(),
            sa.ForeignKey('submissions.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('submission_email', sa.String(64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_confirmation_ids_token', 'confirmation_ids', ['token'], unique=True)
    op.create_index('ix_confirmation_ids_submission_id', 'confirmation_ids', ['submission_id'])

    # ==========================================================================
    # Published loops (id carried over from the submission)
    # ==========================================================================
    op.create_table(
        'loops',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('title', sa.String(64), nullable=False),
        sa.Column('author', sa.String(64), nullable=False),
        sa.Column('instrument', sa.String(20), nullable=False),
        sa.Column('key', sa.String(), nullable=False),
        sa.Column('tempo', sa.Integer(), nullable=False),
        sa.Column('timesig', sa.String(8), nullable=False),
        sa.Column('files', sa.JSON(), nullable=False),
        sa.Column('type', sa.String(10), nullable=False),
        sa.Column('name', sa.String(128), nullable=False),
        sa.Column('added', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('idx_loops_instrument_title', 'loops', ['instrument', 'title'])


def downgrade() -> None:
    op.drop_index('idx_loops_instrument_title', table_name='loops')
    op.drop_table('loops')
    op.drop_index('ix_confirmation_ids_submission_id', table_name='confirmation_ids')
    op.drop_index('ix_confirmation_ids_token', table_name='confirmation_ids')
    op.drop_table('confirmation_ids')
    op.drop_index('idx_submissions_confirmed_created', table_name='submissions')
    op.drop_table('submissions')
