"""Content store over the SQLModel tables.

Every operation opens its own short session, so a single ``ContentStore``
can be shared by the API, the scheduler and the pipeline worker threads.
Writes are single-row; no multi-row transaction is needed by callers.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlmodel import func, select

from .db import session_context
from .models import Article, ArticleStatus, ConfigEntry, Feed, as_utc, utcnow

logger = logging.getLogger(__name__)


class ContentStore:
    def __init__(self, engine: Optional[Engine] = None):
        self._engine = engine

    def session(self):
        return session_context(self._engine)

    # ---- articles ----

    def find_or_create_article(self, article: Article) -> Tuple[Article, bool]:
        """Insert ``article`` unless its link already exists.

        Returns ``(stored, created)``. A concurrent insert of the same link is
        detected through the unique constraint and resolved to the winner's row.
        """
        with self.session() as session:
            existing = session.exec(select(Article).where(Article.link == article.link)).first()
            if existing is not None:
                return existing, False
            article.pub_date = as_utc(article.pub_date)
            article.processed_at = as_utc(article.processed_at)
            session.add(article)
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                existing = session.exec(select(Article).where(Article.link == article.link)).first()
                if existing is None:
                    raise
                logger.debug("Lost insert race for %s", article.link)
                return existing, False
            session.refresh(article)
            return article, True

    def get_article(self, article_id: int) -> Optional[Article]:
        with self.session() as session:
            return session.get(Article, article_id)

    def list_articles(
        self,
        status: Optional[ArticleStatus] = None,
        offset: int = 0,
        limit: int = 20,
    ) -> List[Article]:
        stmt = select(Article)
        if status is not None:
            stmt = stmt.where(Article.status == status)
        stmt = stmt.order_by(Article.pub_date.desc(), Article.id.desc()).offset(offset).limit(limit)
        with self.session() as session:
            return list(session.exec(stmt).all())

    def list_pending(self, limit: int, exclude_ids: Iterable[int] = ()) -> List[Article]:
        """Most recent pending articles first."""
        stmt = select(Article).where(Article.status == ArticleStatus.PENDING)
        exclude = list(exclude_ids)
        if exclude:
            stmt = stmt.where(Article.id.not_in(exclude))
        stmt = stmt.order_by(Article.pub_date.desc(), Article.id.desc()).limit(limit)
        with self.session() as session:
            return list(session.exec(stmt).all())

    def count_articles(self, status: Optional[ArticleStatus] = None) -> int:
        stmt = select(func.count()).select_from(Article)
        if status is not None:
            stmt = stmt.where(Article.status == status)
        with self.session() as session:
            return session.exec(stmt).one()

    def save_article(self, article: Article) -> Article:
        with self.session() as session:
            session.add(article)
            session.commit()
            session.refresh(article)
            return article

    def complete_article(self, article: Article) -> bool:
        """Persist a terminal status for ``article``.

        Applies only while the stored row is still pending; a row that already
        reached a terminal state is left untouched and ``False`` is returned.
        """
        if not article.status.is_terminal:
            raise ValueError(f"Article {article.id} has no terminal status")
        with self.session() as session:
            row = session.get(Article, article.id)
            if row is None or row.status != ArticleStatus.PENDING:
                return False
            row.status = article.status
            row.summary = article.summary
            row.processed_at = as_utc(article.processed_at) or utcnow()
            session.add(row)
            session.commit()
            article.processed_at = row.processed_at
            return True

    def delete_article(self, article_id: int) -> bool:
        with self.session() as session:
            row = session.get(Article, article_id)
            if row is None:
                return False
            session.delete(row)
            session.commit()
            return True

    # ---- feeds ----

    def list_feeds(self, enabled: Optional[bool] = None) -> List[Feed]:
        stmt = select(Feed)
        if enabled is not None:
            stmt = stmt.where(Feed.enabled == enabled)
        with self.session() as session:
            return list(session.exec(stmt.order_by(Feed.id)).all())

    def get_feed(self, feed_id: int) -> Optional[Feed]:
        with self.session() as session:
            return session.get(Feed, feed_id)

    def create_feed(self, feed: Feed) -> Feed:
        """Raises ``IntegrityError`` when the URL is already registered."""
        with self.session() as session:
            session.add(feed)
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                raise
            session.refresh(feed)
            return feed

    def delete_feed(self, feed_id: int) -> bool:
        with self.session() as session:
            row = session.get(Feed, feed_id)
            if row is None:
                return False
            session.delete(row)
            session.commit()
            return True

    def count_feeds(self, enabled: Optional[bool] = None) -> int:
        stmt = select(func.count()).select_from(Feed)
        if enabled is not None:
            stmt = stmt.where(Feed.enabled == enabled)
        with self.session() as session:
            return session.exec(stmt).one()

    # ---- key/value configuration ----

    def get_config_map(self) -> Dict[str, str]:
        with self.session() as session:
            return {row.key: row.value for row in session.exec(select(ConfigEntry)).all()}

    def get_config_value(self, key: str, default: str = "") -> str:
        with self.session() as session:
            row = session.exec(select(ConfigEntry).where(ConfigEntry.key == key)).first()
            return row.value if row is not None else default

    def set_config(self, key: str, value: str) -> None:
        with self.session() as session:
            row = session.exec(select(ConfigEntry).where(ConfigEntry.key == key)).first()
            if row is None:
                row = ConfigEntry(key=key, value=value)
            else:
                row.value = value
                row.updated_at = utcnow()
            session.add(row)
            try:
                session.commit()
            except IntegrityError:
                # Another writer created the key first; last write wins
                session.rollback()
                row = session.exec(select(ConfigEntry).where(ConfigEntry.key == key)).one()
                row.value = value
                row.updated_at = utcnow()
                session.add(row)
                session.commit()

    def ensure_config_defaults(self, defaults: Mapping[str, str]) -> int:
        """Insert missing keys only; existing values are kept. Returns inserted count."""
        inserted = 0
        with self.session() as session:
            present = set(session.exec(select(ConfigEntry.key)).all())
            for key, value in defaults.items():
                if key in present:
                    continue
                session.add(ConfigEntry(key=key, value=value))
                inserted += 1
            session.commit()
        return inserted
