"""Offline article store: persisted articles plus mirrored hero images.

Articles are kept in memory and written to the key-value store on every
change. Hero images are downloaded into images_dir only while connected;
otherwise the remote URL is kept. Persistence failures are logged and the
in-memory list stays authoritative.
"""

from __future__ import annotations

import json
import logging
import os
import re
from datetime import datetime, timezone
from typing import Callable

from newsreader.core.connectivity import ConnectivityMonitor
from newsreader.core.storage import FileStorage, KeyValueStore, StorageError
from newsreader.providers.content_types import Article, OfflineArticle, article_size

logger = logging.getLogger(__name__)

OFFLINE_ARTICLES_KEY = "y:offlineArticles"
IMAGE_SUFFIX = "_hero.jpg"
_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9_-]")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_storage_size(size: int) -> str:
    """Human-readable byte count, e.g. '1.5 KB'."""
    if size <= 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB"]
    i = 0
    while size >= 1024 ** (i + 1) and i < len(units) - 1:
        i += 1
    value = round(size / 1024**i, 2)
    return f"{value:g} {units[i]}"


class OfflineStore:
    """Offline copies of articles with storage-size accounting."""

    def __init__(
        self,
        kv: KeyValueStore,
        files: FileStorage,
        connectivity: ConnectivityMonitor,
        images_dir: str,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._kv = kv
        self._files = files
        self._connectivity = connectivity
        self.images_dir = images_dir
        self._clock = clock
        self._articles: list[OfflineArticle] = []
        self._is_connected = connectivity.is_connected
        self._unsubscribe = connectivity.subscribe(self._on_connectivity_change)
        self.storage_size = 0

    def _on_connectivity_change(self, connected: bool) -> None:
        self._is_connected = connected

    @property
    def is_connected(self) -> bool:
        return self._is_connected

    @property
    def articles(self) -> list[OfflineArticle]:
        return list(self._articles)

    @property
    def formatted_storage_size(self) -> str:
        return format_storage_size(self.storage_size)

    def image_path(self, article_id: str) -> str:
        """Image file for an article, always directly inside images_dir."""
        name = _UNSAFE_FILENAME_CHARS.sub("_", article_id)
        return os.path.join(self.images_dir, f"{name}{IMAGE_SUFFIX}")

    def close(self) -> None:
        self._unsubscribe()

    async def load(self) -> list[OfflineArticle]:
        """Read persisted offline articles and compute the storage size."""
        try:
            await self._files.ensure_dir(self.images_dir)
        except StorageError as e:
            logger.error(f"Could not create offline images directory: {e}")

        try:
            raw = await self._kv.get(OFFLINE_ARTICLES_KEY)
        except StorageError as e:
            logger.error(f"Error loading offline articles: {e}")
            raw = None

        if raw:
            try:
                self._articles = [OfflineArticle.from_dict(d) for d in json.loads(raw)]
            except (ValueError, KeyError, TypeError) as e:
                logger.error(f"Discarding unreadable offline articles: {e}")
                self._articles = []

        await self.refresh_storage_size()
        return self.articles

    def is_available_offline(self, article_id: str) -> bool:
        return any(a.id == article_id for a in self._articles)

    def get(self, article_id: str) -> OfflineArticle | None:
        for a in self._articles:
            if a.id == article_id:
                return a
        return None

    async def save_offline(self, article: Article) -> bool:
        """Store article for offline reading. False if it is already stored."""
        if self.is_available_offline(article.id):
            return False

        local_image_uri = None
        if article.hero_image and self.is_connected:
            local_image_uri = await self._download_image(article)

        offline = OfflineArticle.from_article(
            article,
            saved_offline_at=self._clock(),
            local_image_uri=local_image_uri or article.hero_image,
            offline_size=article_size(article),
        )
        self._articles.append(offline)
        logger.info(f"Saved article {article.id} for offline reading")

        await self._persist()
        await self.refresh_storage_size()
        return True

    async def _download_image(self, article: Article) -> str | None:
        dest = self.image_path(article.id)
        try:
            status = await self._files.download(article.hero_image, dest)
        except StorageError as e:
            logger.warning(f"Error downloading image for {article.id}: {e}")
            return None
        if status != 200:
            logger.warning(f"Image download for {article.id} returned {status}")
            return None
        return dest

    async def remove_offline(self, article_id: str) -> bool:
        """Remove an offline article and its image. Returns whether it was stored."""
        before = len(self._articles)
        self._articles = [a for a in self._articles if a.id != article_id]
        removed = len(self._articles) != before

        await self._persist()
        try:
            await self._files.delete(self.image_path(article_id))
        except StorageError as e:
            logger.error(f"Error removing offline image for {article_id}: {e}")

        await self.refresh_storage_size()
        return removed

    async def clear_all(self) -> None:
        """Remove every offline article and all stored images."""
        self._articles = []
        try:
            await self._kv.remove(OFFLINE_ARTICLES_KEY)
        except StorageError as e:
            logger.error(f"Error clearing offline articles: {e}")

        try:
            await self._files.delete(self.images_dir)
            await self._files.ensure_dir(self.images_dir)
        except StorageError as e:
            logger.error(f"Error clearing offline images: {e}")

        await self.refresh_storage_size()

    def _serialized(self) -> str:
        return json.dumps([a.to_dict() for a in self._articles])

    async def _persist(self) -> None:
        try:
            await self._kv.set(OFFLINE_ARTICLES_KEY, self._serialized())
        except StorageError as e:
            logger.error(f"Error persisting offline articles: {e}")

    async def refresh_storage_size(self) -> int:
        """Serialized article bytes plus the size of every stored image."""
        total = len(self._serialized().encode("utf-8")) if self._articles else 0

        for name in await self._files.list_dir(self.images_dir):
            info = await self._files.stat(os.path.join(self.images_dir, name))
            if info.exists:
                total += info.size

        self.storage_size = total
        return total
