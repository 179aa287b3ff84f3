"""Initial multi-user article pipeline schema."""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("display_name", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("user_id"),
    )

    op.create_table(
        "articles",
        sa.Column("article_id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("source_link", sa.Text(), nullable=False),
        sa.Column("link", sa.Text(), nullable=False),
        sa.Column("snippet", sa.Text(), nullable=True),
        sa.Column("photo_url", sa.Text(), nullable=True),
        sa.Column("source_name", sa.String(), nullable=True),
        sa.Column("source_url", sa.Text(), nullable=True),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("source_kind", sa.String(), nullable=False),
        sa.Column("url_decoded", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("decode_failed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("full_content", sa.Text(), nullable=True),
        sa.Column("ai_processed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("summary", sa.Text(), nullable=True),
        sa.Column("sentiment", sa.String(), nullable=True),
        sa.Column("categories_json", sa.Text(), nullable=True),
        sa.Column("ai_error", sa.Text(), nullable=True),
        sa.Column("ai_processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("matched_topics_json", sa.Text(), nullable=False, server_default="[]"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.user_id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("article_id"),
        sa.UniqueConstraint("user_id", "source_link", name="uq_articles_user_source_link"),
        sa.CheckConstraint(
            "decode_failed = 0 OR url_decoded = 1",
            name="ck_articles_decode_failed_implies_decoded",
        ),
        sa.CheckConstraint(
            "sentiment IS NULL OR sentiment IN ('positive', 'negative', 'neutral')",
            name="ck_articles_sentiment",
        ),
    )
    op.create_index("ix_articles_user_id", "articles", ["user_id"])
    op.create_index(
        "idx_articles_user_created",
        "articles",
        ["user_id", "created_at", "article_id"],
    )
    op.create_index(
        "idx_articles_decode_candidates",
        "articles",
        ["user_id", "url_decoded"],
    )
    op.create_index(
        "idx_articles_analysis_candidates",
        "articles",
        ["user_id", "ai_processed", "url_decoded", "decode_failed"],
    )

    op.create_table(
        "topics",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("keywords_json", sa.Text(), nullable=False, server_default="[]"),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.user_id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "name", name="uq_topics_user_name"),
    )
    op.create_index("ix_topics_user_id", "topics", ["user_id"])


def downgrade() -> None:
    op.drop_index("ix_topics_user_id", table_name="topics")
    op.drop_table("topics")
    op.drop_index("idx_articles_analysis_candidates", table_name="articles")
    op.drop_index("idx_articles_decode_candidates", table_name="articles")
    op.drop_index("idx_articles_user_created", table_name="articles")
    op.drop_index("ix_articles_user_id", table_name="articles")
    op.drop_table("articles")
    op.drop_table("users")
