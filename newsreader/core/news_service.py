"""News acquisition service: cache, quota gate, NewsAPI fetch, normalization.

One NewsService is constructed at startup and shared by reference. It owns
the QuotaTracker and ResponseCache, so tests can build isolated instances.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Union

from newsreader.core.cache import CacheKey, ResponseCache
from newsreader.core.fallback import get_fallback_articles, search_fallback_articles
from newsreader.core.quota import QuotaExceededError, QuotaTracker, QuotaUsage
from newsreader.core.settings import Settings
from newsreader.core.transform import capitalize_first, transform_articles
from newsreader.providers.content_types import Article
from newsreader.providers.newsapi import (
    HttpError,
    NetworkError,
    NewsAPIClient,
    NewsAPIError,
    NewsAPIResponse,
    ParseError,
    RateLimitHttpError,
)

logger = logging.getLogger(__name__)

ALL_CATEGORIES = "All"

# Categories supported by the NewsAPI top-headlines endpoint
NEWS_CATEGORIES = [
    "general",
    "business",
    "entertainment",
    "health",
    "science",
    "sports",
    "technology",
]

LIMIT_REACHED_MESSAGE = "Monthly API limit reached. Please try again next month or upgrade your plan."


def get_news_categories() -> list[str]:
    """Category labels for the UI: 'All' followed by the capitalized categories."""
    return [ALL_CATEGORIES, *(capitalize_first(c) for c in NEWS_CATEGORIES)]


def api_category(category: str | None) -> str:
    """Map a UI label to the NewsAPI category ('All' means 'general')."""
    if not category or category == ALL_CATEGORIES:
        return "general"
    return category.lower()


@dataclass(frozen=True)
class Ok:
    """Articles fetched live or served from the cache."""

    articles: list[Article]
    total_results: int
    query: str | None = None
    cached: bool = False

    def to_dict(self) -> dict[str, Any]:
        return _result_dict(self, success=True)


@dataclass(frozen=True)
class RateLimited:
    """The quota gate or a 429 stopped the request.

    fallback is True when sample articles were substituted.
    """

    articles: list[Article] = field(default_factory=list)
    fallback: bool = False
    query: str | None = None
    reason: str = LIMIT_REACHED_MESSAGE

    @property
    def total_results(self) -> int:
        return len(self.articles)

    def to_dict(self) -> dict[str, Any]:
        d = _result_dict(self, success=self.fallback)
        d["rateLimited"] = True
        d["fallback"] = self.fallback
        if not self.fallback:
            d["error"] = self.reason
        return d


@dataclass(frozen=True)
class Err:
    """Network, HTTP or payload failure."""

    reason: str
    error: NewsAPIError | None = None
    query: str | None = None

    @property
    def articles(self) -> list[Article]:
        return []

    @property
    def total_results(self) -> int:
        return 0

    def to_dict(self) -> dict[str, Any]:
        d = _result_dict(self, success=False)
        d["error"] = self.reason
        return d


FetchOutcome = Union[Ok, RateLimited, Err]


def _result_dict(result: Ok | RateLimited | Err, success: bool) -> dict[str, Any]:
    d: dict[str, Any] = {
        "success": success,
        "articles": [a.to_dict() for a in result.articles],
        "totalResults": result.total_results,
        "rateLimited": False,
        "fallback": False,
    }
    if result.query is not None:
        d["query"] = result.query
    return d


class NewsService:
    """Quota-gated, cached access to NewsAPI.

    Lookup order for every call: cache, then quota gate, then network.
    Cache hits never count against the quota.
    """

    def __init__(
        self,
        client: NewsAPIClient,
        quota: QuotaTracker | None = None,
        cache: ResponseCache | None = None,
        *,
        fallback_enabled: bool = True,
    ) -> None:
        self.client = client
        self.quota = quota or QuotaTracker()
        self.cache = cache or ResponseCache()
        self.fallback_enabled = fallback_enabled

    @classmethod
    def from_settings(cls, settings: Settings) -> NewsService:
        client = NewsAPIClient(
            settings.newsapi_key,
            base_url=settings.newsapi_base_url,
            country=settings.newsapi_country,
            language=settings.newsapi_language,
            timeout=settings.http_timeout,
        )
        return cls(
            client,
            QuotaTracker(
                max_monthly=settings.max_requests_per_month,
                min_interval=settings.min_request_interval,
            ),
            ResponseCache(
                ttl_seconds=settings.cache_ttl_seconds,
                max_entries=settings.cache_max_entries,
            ),
            fallback_enabled=settings.fallback_enabled,
        )

    async def close(self) -> None:
        await self.client.close()

    def _on_response(self, status: int) -> None:
        self.quota.record_request()

    def _err(self, e: NewsAPIError, query: str | None = None) -> Err:
        if isinstance(e, NetworkError):
            logger.warning(f"Network error talking to NewsAPI: {e}")
        elif isinstance(e, ParseError):
            logger.warning(f"Malformed NewsAPI payload: {e}")
        elif isinstance(e, HttpError):
            logger.warning(f"NewsAPI HTTP error {e.status}")
        else:
            logger.warning(f"NewsAPI error: {e}")
        return Err(reason=str(e) or "Network request failed", error=e, query=query)

    async def fetch_page(
        self, category: str = ALL_CATEGORIES, page_size: int = 10, page: int = 1
    ) -> FetchOutcome:
        """Fetch one page of top headlines for a UI category label."""
        cat = api_category(category)
        key = CacheKey.for_headlines(category=cat, page_size=page_size, page=page)

        cached = self.cache.get(key)
        if cached is not None:
            return cached

        try:
            self.quota.ensure_can_request()
            response = await self.client.top_headlines(
                category=cat, page_size=page_size, page=page, on_response=self._on_response
            )
            articles = transform_articles(response.articles, cat)
        except (QuotaExceededError, RateLimitHttpError) as e:
            logger.warning(f"Rate limit reached, using fallback if enabled: {e}")
            return self._rate_limited(get_fallback_articles(category or ALL_CATEGORIES, page_size))
        except NewsAPIError as e:
            return self._err(e)

        result = Ok(articles=articles, total_results=_total(response, articles))
        logger.info(f"Fetched {len(articles)} articles for {cat} page {page}")
        self.cache.set(key, Ok(articles=articles, total_results=result.total_results, cached=True))
        return result

    async def search(
        self,
        query: str,
        category: str | None = None,
        page_size: int = 10,
        page: int = 1,
    ) -> FetchOutcome:
        """Search all articles; the query is echoed on every result."""
        query = query.strip()
        if not query:
            return Err(reason="Search query is empty", query=query)

        key = CacheKey.for_search(query=query, category=category, page_size=page_size, page=page)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        try:
            self.quota.ensure_can_request()
            response = await self.client.everything(
                query=query, page_size=page_size, page=page, on_response=self._on_response
            )
            articles = transform_articles(response.articles, api_category(category))
        except (QuotaExceededError, RateLimitHttpError) as e:
            logger.warning(f"Rate limit reached, search not served live: {e}")
            return self._rate_limited(
                search_fallback_articles(query, category, page_size), query=query
            )
        except NewsAPIError as e:
            return self._err(e, query=query)

        total = _total(response, articles)
        logger.info(f"Search {query!r} found {len(articles)} articles")
        self.cache.set(key, Ok(articles=articles, total_results=total, query=query, cached=True))
        return Ok(articles=articles, total_results=total, query=query)

    def _rate_limited(self, fallback: list[Article], query: str | None = None) -> RateLimited:
        if self.fallback_enabled:
            return RateLimited(articles=fallback, fallback=True, query=query)
        return RateLimited(query=query)

    def usage(self) -> QuotaUsage:
        return self.quota.usage()

    def categories(self) -> list[str]:
        return get_news_categories()

    async def check_status(self) -> dict[str, Any]:
        """Check NewsAPI with a one-article request when quota allows."""
        usage = self.usage()
        if not usage.can_request:
            return {
                "status": "rate_limited",
                "statusCode": 429,
                "message": f"Monthly limit reached ({usage.used}/{usage.limit} requests used)",
                "usage": usage.to_dict(),
            }

        try:
            await self.client.top_headlines(
                category="general", page_size=1, page=1, on_response=self._on_response
            )
        except HttpError as e:
            return {
                "status": "error",
                "statusCode": e.status,
                "message": "API error",
                "usage": self.usage().to_dict(),
            }
        except NewsAPIError as e:
            return {"status": "error", "message": str(e), "usage": self.usage().to_dict()}

        return {
            "status": "active",
            "statusCode": 200,
            "message": "API is working",
            "usage": self.usage().to_dict(),
        }


def _total(response: NewsAPIResponse, articles: list[Article]) -> int:
    return response.total_results or len(articles)
