"""Keep one entry per real-world article across fetches and pages."""

from __future__ import annotations

from typing import Iterable, Sequence

from newsreader.providers.content_types import Article


def url_key(article: Article) -> str | None:
    """The source url, or None for the no-url sentinel."""
    return article.url if article.has_source_url else None


def title_date_key(article: Article) -> tuple[str, str]:
    return (article.title, article.published_at.isoformat())


def dedupe(articles: Iterable[Article]) -> list[Article]:
    """Drop later duplicates, preserving order.

    An article is a duplicate if its url (when it has a real one) or its
    (title, published_at) pair was already seen.
    """
    seen_urls: set[str] = set()
    seen_title_dates: set[tuple[str, str]] = set()
    unique: list[Article] = []

    for article in articles:
        u = url_key(article)
        td = title_date_key(article)
        if (u is not None and u in seen_urls) or td in seen_title_dates:
            continue
        if u is not None:
            seen_urls.add(u)
        seen_title_dates.add(td)
        unique.append(article)

    return unique


def merge(existing: Sequence[Article], incoming: Sequence[Article]) -> list[Article]:
    """Append incoming to existing and dedupe; existing entries win."""
    return dedupe([*existing, *incoming])
