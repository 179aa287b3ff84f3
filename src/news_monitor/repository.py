"""SQLModel-backed article store scoped to one owner identity."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from pathlib import Path
from uuid import uuid4

from sqlalchemy import func, or_
from sqlmodel import Session, col, select

from news_monitor.errors import RequestValidationError, UnauthorizedError
from news_monitor.models import (
    AnalysisUpdate,
    ArticleView,
    CandidateArticle,
    DecodeUpdate,
    InsertResult,
    PendingCounts,
    Sentiment,
    SourceKind,
    TopicView,
)
from news_monitor.storage.alembic_runner import upgrade_head
from news_monitor.storage.common import (
    build_sqlite_engine,
    dump_json_list,
    load_json_list,
    to_utc_aware,
    utc_now,
)
from news_monitor.storage.sqlmodel_models import (
    DEFAULT_USER_ID,
    AppUser,
    Article,
    DecodeUrlCacheEntry,
    Topic,
)

logger = logging.getLogger(__name__)


class ArticleRepository:
    """Facade that persists pipeline entities using SQLModel and Alembic.

    Every operation is scoped to ``user_id``; an empty identity raises
    :class:`UnauthorizedError` before any query runs. The decode URL cache is
    the only table shared across owners.
    """

    def __init__(
        self,
        db_path: Path,
        *,
        user_id: str | None = DEFAULT_USER_ID,
        user_name: str = "Default User",
    ) -> None:
        self.db_path = db_path
        self.user_id = (user_id or "").strip()
        self.user_name = user_name
        self.engine = build_sqlite_engine(db_path=db_path)

    def close(self) -> None:
        self.engine.dispose()

    def init_schema(self) -> None:
        upgrade_head(self.db_path)
        if self.user_id:
            self._ensure_actor_context()

    @property
    def owner_id(self) -> str:
        """Bound owner identity; raises when absent."""

        if not self.user_id:
            raise UnauthorizedError()
        return self.user_id

    def list_decode_eligible(self) -> list[ArticleView]:
        owner_id = self.owner_id
        with Session(self.engine) as session:
            rows = session.exec(
                select(Article)
                .where(
                    col(Article.user_id) == owner_id,
                    col(Article.url_decoded).is_(False),
                )
                .order_by(col(Article.created_at), col(Article.article_id)),
            ).all()
            return [_to_view(row) for row in rows]

    def list_analyze_eligible(self, limit: int) -> list[ArticleView]:
        owner_id = self.owner_id
        if limit <= 0:
            raise RequestValidationError(f"limit must be a positive integer, got {limit}.")
        with Session(self.engine) as session:
            rows = session.exec(
                select(Article)
                .where(
                    col(Article.user_id) == owner_id,
                    *_analyze_eligible_conditions(),
                )
                .order_by(col(Article.created_at), col(Article.article_id))
                .limit(limit),
            ).all()
            return [_to_view(row) for row in rows]

    def get_article(self, article_id: str) -> ArticleView | None:
        owner_id = self.owner_id
        with Session(self.engine) as session:
            row = _get_owned(session, owner_id, article_id)
            return _to_view(row) if row is not None else None

    def update_decode_result(self, article_id: str, update: DecodeUpdate) -> None:
        owner_id = self.owner_id
        if update.decode_failed and not update.url_decoded:
            raise ValueError("decode_failed requires url_decoded.")
        if update.link is not None and not update.link.strip():
            raise ValueError("Decoded link must not be empty.")

        with Session(self.engine) as session:
            row = _get_owned(session, owner_id, article_id)
            if row is None:
                raise RuntimeError(f"Article not found: {article_id}")
            if update.link is not None:
                row.link = update.link
            row.url_decoded = update.url_decoded
            row.decode_failed = update.decode_failed
            row.updated_at = utc_now()
            session.add(row)
            session.commit()

    def update_analysis_result(self, article_id: str, update: AnalysisUpdate) -> None:
        owner_id = self.owner_id
        if (update.summary is None) == (update.ai_error is None):
            raise ValueError("Exactly one of summary or ai_error must be set.")

        with Session(self.engine) as session:
            row = _get_owned(session, owner_id, article_id)
            if row is None:
                raise RuntimeError(f"Article not found: {article_id}")
            row.ai_processed = True
            row.ai_processed_at = update.ai_processed_at
            if update.summary is not None:
                row.summary = update.summary
                row.sentiment = update.sentiment.value if update.sentiment else None
                row.categories_json = dump_json_list(update.categories or [])
                row.ai_error = None
            else:
                row.summary = None
                row.sentiment = None
                row.categories_json = None
                row.ai_error = update.ai_error
            if update.full_content is not None:
                row.full_content = update.full_content
            row.updated_at = utc_now()
            session.add(row)
            session.commit()

    def count_pending(self) -> PendingCounts:
        owner_id = self.owner_id
        with Session(self.engine) as session:
            decode_pending = session.exec(
                select(func.count())
                .select_from(Article)
                .where(
                    col(Article.user_id) == owner_id,
                    col(Article.url_decoded).is_(False),
                ),
            ).one()
            analyze_pending = session.exec(
                select(func.count())
                .select_from(Article)
                .where(
                    col(Article.user_id) == owner_id,
                    *_analyze_eligible_conditions(),
                ),
            ).one()
        return PendingCounts(
            decode_pending=int(decode_pending),
            analyze_pending=int(analyze_pending),
        )

    def reset_failed_analyses(self) -> int:
        """Return failed analyses to the analyze-eligible set."""

        owner_id = self.owner_id
        with Session(self.engine) as session:
            rows = session.exec(
                select(Article).where(
                    col(Article.user_id) == owner_id,
                    col(Article.ai_processed).is_(True),
                    col(Article.ai_error).is_not(None),
                ),
            ).all()
            now = utc_now()
            for row in rows:
                row.ai_processed = False
                row.ai_error = None
                row.ai_processed_at = None
                row.updated_at = now
                session.add(row)
            session.commit()
        if rows:
            logger.info("Reset %d failed analyses (user_id=%s).", len(rows), owner_id)
        return len(rows)

    def insert_candidates(self, candidates: Iterable[CandidateArticle]) -> InsertResult:
        """Insert new candidates; existing links are skipped with their topics merged."""

        owner_id = self.owner_id
        result = InsertResult()
        with Session(self.engine) as session:
            for candidate in candidates:
                existing = session.exec(
                    select(Article).where(
                        col(Article.user_id) == owner_id,
                        or_(
                            col(Article.source_link) == candidate.link,
                            col(Article.link) == candidate.link,
                        ),
                    ),
                ).first()
                if existing is not None:
                    merged = _merge_ordered(
                        load_json_list(existing.matched_topics_json),
                        candidate.matched_topics,
                    )
                    if merged != load_json_list(existing.matched_topics_json):
                        existing.matched_topics_json = dump_json_list(merged)
                        existing.updated_at = utc_now()
                        session.add(existing)
                    result.skipped += 1
                    continue

                now = utc_now()
                session.add(
                    Article(
                        article_id=str(uuid4()),
                        user_id=owner_id,
                        title=candidate.title,
                        source_link=candidate.link,
                        link=candidate.link,
                        snippet=candidate.snippet,
                        photo_url=candidate.photo_url,
                        source_name=candidate.source_name,
                        source_url=candidate.source_url,
                        published_at=candidate.published_at,
                        source_kind=candidate.source_kind.value,
                        matched_topics_json=dump_json_list(candidate.matched_topics),
                        created_at=now,
                        updated_at=now,
                    ),
                )
                # Flush so a repeated link later in the same batch is seen as existing.
                session.flush()
                result.inserted += 1
            session.commit()
        return result

    def upsert_topic(
        self,
        name: str,
        keywords: Sequence[str] = (),
        *,
        enabled: bool = True,
    ) -> TopicView:
        owner_id = self.owner_id
        normalized_name = name.strip()
        if not normalized_name:
            raise RequestValidationError("Topic name must not be empty.")
        normalized_keywords = _merge_ordered([], [kw.strip() for kw in keywords if kw.strip()])

        with Session(self.engine) as session:
            row = session.exec(
                select(Topic).where(
                    col(Topic.user_id) == owner_id,
                    col(Topic.name) == normalized_name,
                ),
            ).one_or_none()
            if row is None:
                row = Topic(user_id=owner_id, name=normalized_name, created_at=utc_now())
            row.keywords_json = dump_json_list(normalized_keywords)
            row.enabled = enabled
            session.add(row)
            session.commit()
            return _to_topic_view(row)

    def list_topics(self) -> list[TopicView]:
        owner_id = self.owner_id
        with Session(self.engine) as session:
            rows = session.exec(
                select(Topic).where(col(Topic.user_id) == owner_id).order_by(col(Topic.name)),
            ).all()
            return [_to_topic_view(row) for row in rows]

    def list_enabled_topics(self) -> list[TopicView]:
        return [topic for topic in self.list_topics() if topic.enabled]

    def get_cached_urls(self, source_url_ids: Iterable[str]) -> dict[str, str]:
        ids = sorted(set(source_url_ids))
        if not ids:
            return {}
        with Session(self.engine) as session:
            rows = session.exec(
                select(DecodeUrlCacheEntry).where(col(DecodeUrlCacheEntry.source_url_id).in_(ids)),
            ).all()
            return {row.source_url_id: row.decoded_url for row in rows}

    def put_cached_url(
        self,
        source_url_id: str,
        decoded_url: str,
        source_url: str | None = None,
    ) -> None:
        with Session(self.engine) as session:
            row = session.get(DecodeUrlCacheEntry, source_url_id)
            if row is None:
                row = DecodeUrlCacheEntry(
                    source_url_id=source_url_id,
                    decoded_url=decoded_url,
                    source_url=source_url,
                    created_at=utc_now(),
                )
            else:
                row.decoded_url = decoded_url
                row.source_url = source_url or row.source_url
            session.add(row)
            session.commit()

    def _ensure_actor_context(self) -> None:
        with Session(self.engine) as session:
            user = session.get(AppUser, self.user_id)
            if user is None:
                session.add(
                    AppUser(
                        user_id=self.user_id,
                        display_name=self.user_name,
                        created_at=utc_now(),
                    ),
                )
            session.commit()


def _analyze_eligible_conditions() -> tuple:
    return (
        col(Article.url_decoded).is_(True),
        col(Article.decode_failed).is_(False),
        col(Article.ai_processed).is_(False),
    )


def _get_owned(session: Session, owner_id: str, article_id: str) -> Article | None:
    return session.exec(
        select(Article).where(
            col(Article.article_id) == article_id,
            col(Article.user_id) == owner_id,
        ),
    ).one_or_none()


def _merge_ordered(existing: list[str], incoming: Iterable[str]) -> list[str]:
    merged = list(existing)
    seen = set(existing)
    for value in incoming:
        if value not in seen:
            seen.add(value)
            merged.append(value)
    return merged


def _to_view(row: Article) -> ArticleView:
    return ArticleView(
        article_id=row.article_id,
        user_id=row.user_id,
        title=row.title,
        source_link=row.source_link,
        link=row.link,
        source_kind=SourceKind(row.source_kind),
        created_at=to_utc_aware(row.created_at),
        updated_at=to_utc_aware(row.updated_at),
        snippet=row.snippet,
        photo_url=row.photo_url,
        source_name=row.source_name,
        source_url=row.source_url,
        published_at=to_utc_aware(row.published_at) if row.published_at else None,
        url_decoded=row.url_decoded,
        decode_failed=row.decode_failed,
        full_content=row.full_content,
        ai_processed=row.ai_processed,
        summary=row.summary,
        sentiment=Sentiment(row.sentiment) if row.sentiment else None,
        categories=load_json_list(row.categories_json) if row.categories_json else None,
        ai_error=row.ai_error,
        ai_processed_at=to_utc_aware(row.ai_processed_at) if row.ai_processed_at else None,
        matched_topics=load_json_list(row.matched_topics_json),
    )


def _to_topic_view(row: Topic) -> TopicView:
    return TopicView(
        name=row.name,
        keywords=load_json_list(row.keywords_json),
        enabled=row.enabled,
    )
