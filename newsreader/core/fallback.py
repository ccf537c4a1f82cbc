"""Sample articles served when the NewsAPI quota is exhausted."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from newsreader.providers.content_types import NO_SOURCE_URL, Article

_SAMPLES = [
    {
        "id": "fallback_1",
        "title": "API Limit Reached - Sample Article 1",
        "excerpt": (
            "This is a sample article shown when the NewsAPI monthly limit has been "
            "reached. Upgrade your plan for unlimited access."
        ),
        "content": (
            "This is a sample article content. The NewsAPI free plan allows 1000 "
            "requests per month. Consider upgrading to a paid plan for unlimited "
            "access to real-time news data."
        ),
        "hero_image": "https://via.placeholder.com/800x400/4A90E2/FFFFFF?text=Sample+News",
        "category": "General",
        "age_hours": 0,
        "read_time": 2,
        "tags": ("sample", "api-limit"),
    },
    {
        "id": "fallback_2",
        "title": "Understanding API Rate Limits",
        "excerpt": "Learn about API rate limits and how they affect your news reading experience.",
        "content": (
            "API rate limits are restrictions placed by service providers to ensure "
            "fair usage and system stability. The NewsAPI free plan includes 1000 "
            "requests per month."
        ),
        "hero_image": "https://via.placeholder.com/800x400/50C878/FFFFFF?text=Rate+Limits",
        "category": "Technology",
        "age_hours": 1,
        "read_time": 3,
        "tags": ("api", "rate-limits", "technology"),
    },
    {
        "id": "fallback_3",
        "title": "Upgrade Your News Experience",
        "excerpt": "Discover the benefits of upgrading to a paid plan for unlimited news access.",
        "content": (
            "Paid NewsAPI plans offer unlimited API requests, real-time news data, "
            "historical articles, and priority support. Choose the plan that fits "
            "your needs."
        ),
        "hero_image": "https://via.placeholder.com/800x400/FF6B6B/FFFFFF?text=Upgrade+Plan",
        "category": "Business",
        "age_hours": 2,
        "read_time": 4,
        "tags": ("upgrade", "business", "plans"),
    },
    {
        "id": "fallback_4",
        "title": "Caching Improves Performance",
        "excerpt": "Learn how caching helps reduce API calls and improves app performance.",
        "content": (
            "Caching is a technique that stores frequently accessed data temporarily "
            "to reduce the number of API calls and improve application performance."
        ),
        "hero_image": "https://via.placeholder.com/800x400/9B59B6/FFFFFF?text=Caching",
        "category": "Technology",
        "age_hours": 3,
        "read_time": 3,
        "tags": ("caching", "performance", "technology"),
    },
    {
        "id": "fallback_5",
        "title": "Offline Reading Features",
        "excerpt": "Save articles for offline reading when you have limited internet connectivity.",
        "content": (
            "The news reader includes offline reading capabilities, allowing you to "
            "save articles locally and read them without an internet connection."
        ),
        "hero_image": "https://via.placeholder.com/800x400/F39C12/FFFFFF?text=Offline+Reading",
        "category": "General",
        "age_hours": 4,
        "read_time": 2,
        "tags": ("offline", "reading", "features"),
    },
]


def fallback_articles(now: datetime | None = None) -> list[Article]:
    """Build the fallback set with publish times relative to now."""
    now = now or datetime.now(timezone.utc)
    return [
        Article(
            id=sample["id"],
            title=sample["title"],
            excerpt=sample["excerpt"],
            content=sample["content"],
            hero_image=sample["hero_image"],
            category=sample["category"],
            published_at=now - timedelta(hours=sample["age_hours"]),
            read_time=sample["read_time"],
            author="Y News Reader",
            source="Sample",
            tags=sample["tags"],
            url=NO_SOURCE_URL,
        )
        for sample in _SAMPLES
    ]


def get_fallback_articles(
    category: str = "All", count: int = 10, now: datetime | None = None
) -> list[Article]:
    """Fallback articles for a category ('All' returns every one)."""
    articles = fallback_articles(now)
    if category.lower() != "all":
        articles = [a for a in articles if a.category.lower() == category.lower()]
    return articles[:count]


def search_fallback_articles(
    query: str, category: str | None = None, count: int = 10, now: datetime | None = None
) -> list[Article]:
    """Fallback articles whose title or excerpt contains the query."""
    needle = query.lower()
    return [
        a
        for a in get_fallback_articles(category or "All", count, now)
        if needle in a.title.lower() or needle in a.excerpt.lower()
    ]
