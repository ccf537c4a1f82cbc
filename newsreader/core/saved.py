"""Bookmarked ("saved") articles, persisted on every change."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Callable

from newsreader.core.storage import KeyValueStore, StorageError
from newsreader.providers.content_types import Article, SavedArticle

logger = logging.getLogger(__name__)

SAVED_ARTICLES_KEY = "y:savedArticles"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SavedArticleStore:
    def __init__(self, kv: KeyValueStore, clock: Callable[[], datetime] = _utcnow) -> None:
        self._kv = kv
        self._clock = clock
        self._articles: list[SavedArticle] = []

    @property
    def articles(self) -> list[SavedArticle]:
        return list(self._articles)

    async def load(self) -> list[SavedArticle]:
        try:
            raw = await self._kv.get(SAVED_ARTICLES_KEY)
        except StorageError as e:
            logger.error(f"Error loading saved articles: {e}")
            return self.articles

        if raw:
            try:
                self._articles = [SavedArticle.from_dict(d) for d in json.loads(raw)]
            except (ValueError, KeyError, TypeError) as e:
                logger.error(f"Discarding unreadable saved articles: {e}")
                self._articles = []
        return self.articles

    def is_saved(self, article_id: str) -> bool:
        return any(a.id == article_id for a in self._articles)

    async def save(self, article: Article) -> bool:
        """Bookmark article. False if it is already saved."""
        if self.is_saved(article.id):
            return False
        self._articles.append(SavedArticle.from_article(article, saved_at=self._clock()))
        await self._persist()
        return True

    async def remove(self, article_id: str) -> bool:
        before = len(self._articles)
        self._articles = [a for a in self._articles if a.id != article_id]
        await self._persist()
        return len(self._articles) != before

    async def _persist(self) -> None:
        try:
            await self._kv.set(
                SAVED_ARTICLES_KEY, json.dumps([a.to_dict() for a in self._articles])
            )
        except StorageError as e:
            logger.error(f"Error persisting saved articles: {e}")
