"""Add global decode URL cache table."""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

revision = "20261019_0002"
down_revision = "20261019_0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Shared across users: resolution is deterministic per source URL id.
    op.create_table(
        "decode_url_cache",
        sa.Column("source_url_id", sa.String(), nullable=False),
        sa.Column("decoded_url", sa.Text(), nullable=False),
        sa.Column("source_url", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("source_url_id"),
    )


def downgrade() -> None:
    op.drop_table("decode_url_cache")
