"""SQLModel ORM tables for the article pipeline."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Text,
    UniqueConstraint,
    false,
    true,
)
from sqlmodel import Field, SQLModel

DEFAULT_USER_ID = "default_user"


class AppUser(SQLModel, table=True):
    __tablename__ = "users"  # type: ignore[bad-override]

    user_id: str = Field(primary_key=True)
    display_name: str
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class Article(SQLModel, table=True):
    __tablename__ = "articles"  # type: ignore[bad-override]
    __table_args__ = (
        UniqueConstraint("user_id", "source_link", name="uq_articles_user_source_link"),
        CheckConstraint(
            "decode_failed = 0 OR url_decoded = 1",
            name="ck_articles_decode_failed_implies_decoded",
        ),
        CheckConstraint(
            "sentiment IS NULL OR sentiment IN ('positive', 'negative', 'neutral')",
            name="ck_articles_sentiment",
        ),
        Index("idx_articles_user_created", "user_id", "created_at", "article_id"),
        Index("idx_articles_decode_candidates", "user_id", "url_decoded"),
        Index(
            "idx_articles_analysis_candidates",
            "user_id",
            "ai_processed",
            "url_decoded",
            "decode_failed",
        ),
    )

    article_id: str = Field(primary_key=True)
    user_id: str = Field(
        default=DEFAULT_USER_ID,
        sa_column=Column(
            ForeignKey("users.user_id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
    )
    title: str = Field(sa_column=Column(Text, nullable=False))
    source_link: str = Field(sa_column=Column(Text, nullable=False))
    link: str = Field(sa_column=Column(Text, nullable=False))
    snippet: str | None = Field(default=None, sa_column=Column(Text))
    photo_url: str | None = Field(default=None, sa_column=Column(Text))
    source_name: str | None = None
    source_url: str | None = Field(default=None, sa_column=Column(Text))
    published_at: datetime | None = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True),
    )
    source_kind: str
    url_decoded: bool = Field(
        default=False,
        sa_column=Column(Boolean, nullable=False, server_default=false()),
    )
    decode_failed: bool = Field(
        default=False,
        sa_column=Column(Boolean, nullable=False, server_default=false()),
    )
    full_content: str | None = Field(default=None, sa_column=Column(Text))
    ai_processed: bool = Field(
        default=False,
        sa_column=Column(Boolean, nullable=False, server_default=false()),
    )
    summary: str | None = Field(default=None, sa_column=Column(Text))
    sentiment: str | None = None
    categories_json: str | None = Field(default=None, sa_column=Column(Text))
    ai_error: str | None = Field(default=None, sa_column=Column(Text))
    ai_processed_at: datetime | None = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True),
    )
    matched_topics_json: str = Field(
        default="[]",
        sa_column=Column(Text, nullable=False, server_default="[]"),
    )
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class Topic(SQLModel, table=True):
    __tablename__ = "topics"  # type: ignore[bad-override]
    __table_args__ = (UniqueConstraint("user_id", "name", name="uq_topics_user_name"),)

    id: int | None = Field(default=None, primary_key=True)
    user_id: str = Field(
        default=DEFAULT_USER_ID,
        sa_column=Column(
            ForeignKey("users.user_id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
    )
    name: str
    keywords_json: str = Field(
        default="[]",
        sa_column=Column(Text, nullable=False, server_default="[]"),
    )
    enabled: bool = Field(
        default=True,
        sa_column=Column(Boolean, nullable=False, server_default=true()),
    )
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class DecodeUrlCacheEntry(SQLModel, table=True):
    __tablename__ = "decode_url_cache"  # type: ignore[bad-override]

    source_url_id: str = Field(primary_key=True)
    decoded_url: str = Field(sa_column=Column(Text, nullable=False))
    source_url: str | None = Field(default=None, sa_column=Column(Text))
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
