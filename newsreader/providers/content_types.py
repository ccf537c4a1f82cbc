"""Canonical article types shared by the fetch, pagination and offline layers."""

from __future__ import annotations

import json
from dataclasses import dataclass, fields
from datetime import datetime, timezone
from typing import Any

# Marks an article without a source link. Never a real URL for dedup purposes.
NO_SOURCE_URL = "#"


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO-8601 timestamp (NewsAPI uses a trailing 'Z') into an aware datetime."""
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if not value:
        raise ValueError("timestamp is empty")
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: datetime) -> str:
    return value.isoformat()


@dataclass(frozen=True)
class Article:
    """A normalized news article."""

    id: str
    title: str
    excerpt: str
    content: str
    hero_image: str
    category: str
    published_at: datetime
    read_time: int
    author: str
    source: str
    tags: tuple[str, ...] = ()
    url: str = NO_SOURCE_URL

    @property
    def has_source_url(self) -> bool:
        return bool(self.url) and self.url != NO_SOURCE_URL

    def to_dict(self) -> dict[str, Any]:
        """Convert to the camelCase dict shape the UI consumes."""
        return {
            "id": self.id,
            "title": self.title,
            "excerpt": self.excerpt,
            "content": self.content,
            "heroImage": self.hero_image,
            "category": self.category,
            "publishedAt": format_timestamp(self.published_at),
            "readTime": self.read_time,
            "author": self.author,
            "source": self.source,
            "tags": list(self.tags),
            "url": self.url,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Article:
        return cls(**_article_kwargs(data))


@dataclass(frozen=True)
class SavedArticle(Article):
    """An article the user bookmarked."""

    saved_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        d = super().to_dict()
        d["savedAt"] = format_timestamp(self.saved_at) if self.saved_at else None
        return d

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SavedArticle:
        saved_at = data.get("savedAt")
        return cls(
            **_article_kwargs(data),
            saved_at=parse_timestamp(saved_at) if saved_at else None,
        )

    @classmethod
    def from_article(cls, article: Article, saved_at: datetime) -> SavedArticle:
        return cls(**_base_fields(article), saved_at=saved_at)


@dataclass(frozen=True)
class OfflineArticle(Article):
    """An article mirrored for reading without connectivity."""

    saved_offline_at: datetime | None = None
    local_image_uri: str = ""
    offline_size: int = 0

    @property
    def image_is_local(self) -> bool:
        return bool(self.local_image_uri) and self.local_image_uri != self.hero_image

    def to_dict(self) -> dict[str, Any]:
        d = super().to_dict()
        d["savedOfflineAt"] = (
            format_timestamp(self.saved_offline_at) if self.saved_offline_at else None
        )
        d["localImageUri"] = self.local_image_uri
        d["offlineSize"] = self.offline_size
        return d

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> OfflineArticle:
        saved_offline_at = data.get("savedOfflineAt")
        return cls(
            **_article_kwargs(data),
            saved_offline_at=parse_timestamp(saved_offline_at) if saved_offline_at else None,
            local_image_uri=data.get("localImageUri") or data.get("heroImage", ""),
            offline_size=int(data.get("offlineSize") or 0),
        )

    @classmethod
    def from_article(
        cls,
        article: Article,
        *,
        saved_offline_at: datetime,
        local_image_uri: str,
        offline_size: int,
    ) -> OfflineArticle:
        return cls(
            **_base_fields(article),
            saved_offline_at=saved_offline_at,
            local_image_uri=local_image_uri,
            offline_size=offline_size,
        )


def _base_fields(article: Article) -> dict[str, Any]:
    """Plain Article fields of any Article subclass instance."""
    return {f.name: getattr(article, f.name) for f in fields(Article)}


def _article_kwargs(data: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": data["id"],
        "title": data["title"],
        "excerpt": data.get("excerpt", ""),
        "content": data.get("content", ""),
        "hero_image": data.get("heroImage", ""),
        "category": data.get("category", ""),
        "published_at": parse_timestamp(data["publishedAt"]),
        "read_time": int(data.get("readTime") or 1),
        "author": data.get("author", ""),
        "source": data.get("source", ""),
        "tags": tuple(data.get("tags") or ()),
        "url": data.get("url") or NO_SOURCE_URL,
    }


def article_size(article: Article) -> int:
    """Size in bytes of the article's JSON serialization."""
    return len(json.dumps(Article.to_dict(article)).encode("utf-8"))
