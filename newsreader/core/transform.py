"""Normalize raw NewsAPI records into canonical Article objects.

NewsAPI truncates `content` on the free plan and appends a "[+1234 chars]"
marker. The helpers here strip those markers, derive an excerpt and a reading
time, and build an id that is unique within a batch.
"""

from __future__ import annotations

import logging
import math
import re
import time
from datetime import datetime, timezone
from typing import Any

from newsreader.providers.content_types import NO_SOURCE_URL, Article, parse_timestamp
from newsreader.providers.newsapi import ParseError

logger = logging.getLogger(__name__)

WORDS_PER_MINUTE = 200
MAX_ID_LENGTH = 50
TITLE_ID_CHARS = 10
EXCERPT_CHARS = 200
MIN_CONTENT_LENGTH = 20
SHORT_CONTENT_LENGTH = 50
SHORT_EXCERPT_LENGTH = 100

PLACEHOLDER_CONTENT = (
    "Full article content is available at the source. "
    "Tap to read more details about this story."
)
PLACEHOLDER_EXCERPT = "No description available"
PLACEHOLDER_TITLE = "No title available"
PLACEHOLDER_AUTHOR = "Unknown Author"
PLACEHOLDER_SOURCE = "Unknown"
PLACEHOLDER_IMAGE = "https://via.placeholder.com/800x400?text=No+Image"

_TRUNCATION_MARKER = re.compile(r"\[\+\d+\s+chars?\]", re.IGNORECASE)
_TRAILING_DOTS = re.compile(r"\.\.\.\s*$")
_TRAILING_ELLIPSIS = re.compile(r"…\s*$")
_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]")

# Record fields that must be strings when present
TEXT_FIELDS = ("title", "description", "content", "url", "urlToImage", "author")


def capitalize_first(text: str) -> str:
    return text[:1].upper() + text[1:].lower()


def strip_truncation_marker(text: str) -> str:
    return _TRUNCATION_MARKER.sub("", text).strip()


def process_content(content: str | None, description: str | None) -> str:
    """Clean article content, falling back to description or a placeholder."""
    processed = content or description or ""

    processed = _TRUNCATION_MARKER.sub("", processed)
    processed = processed.strip()
    processed = _TRAILING_DOTS.sub("", processed)
    processed = _TRAILING_ELLIPSIS.sub("", processed)
    processed = processed.strip()

    if (
        len(processed) < SHORT_CONTENT_LENGTH
        and description
        and len(description) > len(processed)
    ):
        processed = description

    if len(processed) < MIN_CONTENT_LENGTH:
        processed = PLACEHOLDER_CONTENT

    return processed


def generate_excerpt(description: str | None, content: str | None) -> str:
    """Prefer the description; widen short ones with the start of the content."""
    excerpt = description or ""

    if len(excerpt) < SHORT_EXCERPT_LENGTH and content and len(content) > len(excerpt):
        clean = strip_truncation_marker(content)
        if len(clean) > len(excerpt) and len(clean) >= SHORT_CONTENT_LENGTH:
            excerpt = clean[:EXCERPT_CHARS] + ("..." if len(clean) > EXCERPT_CHARS else "")

    return excerpt or PLACEHOLDER_EXCERPT


def estimate_read_time(content: str) -> int:
    """Minutes to read at 200 words per minute, at least 1."""
    word_count = len(content.split())
    return max(1, math.ceil(word_count / WORDS_PER_MINUTE))


def generate_article_id(
    raw: dict[str, Any], index: int, batch_timestamp: int, published_ms: int | None = None
) -> str:
    """Build an id from batch time, position, publish time, title and url tail."""
    url = raw.get("url") or ""
    url_tail = _NON_ALNUM.sub("", url.rstrip("/").split("/")[-1]) if url else ""
    title_part = _NON_ALNUM.sub("", raw.get("title") or "")[:TITLE_ID_CHARS]
    published_part = published_ms if published_ms is not None else batch_timestamp
    return f"article_{batch_timestamp}_{index}_{published_part}_{title_part}_{url_tail}"[
        :MAX_ID_LENGTH
    ]


def _published_at(raw: dict[str, Any], fallback: datetime) -> tuple[datetime, int | None]:
    value = raw.get("publishedAt")
    if not value:
        return fallback, None
    try:
        published = parse_timestamp(value)
    except (TypeError, ValueError):
        logger.warning(f"Unparseable publishedAt {value!r}, using batch time")
        return fallback, None
    return published, int(published.timestamp() * 1000)


def normalize(
    raw: dict[str, Any], index: int, batch_timestamp: int, category: str
) -> Article:
    """Convert one raw NewsAPI article into an Article.

    Args:
        raw: Article object from the NewsAPI response.
        index: Position of the record within its batch.
        batch_timestamp: Milliseconds since epoch shared by the whole batch.
        category: Category the batch was requested for.

    Raises:
        ParseError: If raw is not a JSON object or a text field is not a string.
    """
    if not isinstance(raw, dict):
        raise ParseError(f"Article record {index} is not an object")
    for name in TEXT_FIELDS:
        value = raw.get(name)
        if value is not None and not isinstance(value, str):
            raise ParseError(f"Article record {index}: {name!r} is not a string")

    batch_time = datetime.fromtimestamp(batch_timestamp / 1000, tz=timezone.utc)
    published_at, published_ms = _published_at(raw, batch_time)

    description = raw.get("description")
    content = process_content(raw.get("content"), description)
    source = raw.get("source") if isinstance(raw.get("source"), dict) else {}
    source_name = source.get("name")
    if not isinstance(source_name, str):
        source_name = None

    return Article(
        id=generate_article_id(raw, index, batch_timestamp, published_ms),
        title=raw.get("title") or PLACEHOLDER_TITLE,
        excerpt=generate_excerpt(description, raw.get("content")),
        content=content,
        hero_image=raw.get("urlToImage") or PLACEHOLDER_IMAGE,
        category=capitalize_first(category),
        published_at=published_at,
        read_time=estimate_read_time(content),
        author=raw.get("author") or PLACEHOLDER_AUTHOR,
        source=source_name or PLACEHOLDER_SOURCE,
        tags=(),
        url=raw.get("url") or NO_SOURCE_URL,
    )


def transform_articles(
    raws: list[dict[str, Any]], category: str, batch_timestamp: int | None = None
) -> list[Article]:
    """Normalize a batch of raw records sharing one batch timestamp."""
    if batch_timestamp is None:
        batch_timestamp = int(time.time() * 1000)
    return [normalize(raw, i, batch_timestamp, category) for i, raw in enumerate(raws)]
