"""Tests for news_service.py"""

from datetime import datetime, timedelta, timezone

import httpx
import pytest

from newsreader.core.cache import ResponseCache
from newsreader.core.news_service import (
    LIMIT_REACHED_MESSAGE,
    Err,
    NewsService,
    Ok,
    RateLimited,
    api_category,
    get_news_categories,
)
from newsreader.core.quota import QuotaTracker
from newsreader.providers.newsapi import HttpError, NetworkError, NewsAPIClient, ParseError


class FakeClock:
    def __init__(self):
        self.now = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)


def raw_articles(n, prefix="Story"):
    return [
        {
            "source": {"name": "Wire"},
            "author": "Reporter",
            "title": f"{prefix} {i}",
            "description": f"Description for {prefix.lower()} number {i} in this batch.",
            "url": f"https://example.com/{prefix.lower()}/{i}",
            "urlToImage": None,
            "publishedAt": "2024-03-15T10:00:00Z",
            "content": None,
        }
        for i in range(n)
    ]


class Backend:
    """httpx handler that counts requests and serves a canned response."""

    def __init__(self, status=200, body=None):
        self.status = status
        self.body = body if body is not None else {
            "status": "ok",
            "totalResults": 25,
            "articles": raw_articles(10),
        }
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status, json=self.body)


def make_service(backend, max_monthly=1000, fallback_enabled=True, clock=None):
    clock = clock or FakeClock()
    client = NewsAPIClient("test-key", transport=httpx.MockTransport(backend))
    quota = QuotaTracker(max_monthly=max_monthly, min_interval=0, clock=clock)
    return NewsService(client, quota, ResponseCache(), fallback_enabled=fallback_enabled)


class TestCategories:
    def test_ui_categories(self):
        assert get_news_categories() == [
            "All",
            "General",
            "Business",
            "Entertainment",
            "Health",
            "Science",
            "Sports",
            "Technology",
        ]

    def test_api_category(self):
        assert api_category("All") == "general"
        assert api_category(None) == "general"
        assert api_category("Technology") == "technology"


class TestFetchPage:
    @pytest.mark.asyncio
    async def test_success(self):
        backend = Backend()
        service = make_service(backend)

        result = await service.fetch_page("Technology", 10, 1)

        assert isinstance(result, Ok)
        assert len(result.articles) == 10
        assert result.total_results == 25
        assert result.cached is False
        assert all(a.category == "Technology" for a in result.articles)
        assert backend.requests[0].url.params["category"] == "technology"
        assert service.quota.state.request_count == 1
        await service.close()

    @pytest.mark.asyncio
    async def test_cache_hit_skips_network_and_quota(self):
        backend = Backend()
        service = make_service(backend)

        await service.fetch_page("All", 10, 1)
        second = await service.fetch_page("All", 10, 1)

        assert isinstance(second, Ok)
        assert second.cached is True
        assert len(backend.requests) == 1
        assert service.quota.state.request_count == 1
        await service.close()

    @pytest.mark.asyncio
    async def test_different_pages_are_separate_requests(self):
        backend = Backend()
        service = make_service(backend)

        await service.fetch_page("All", 10, 1)
        await service.fetch_page("All", 10, 2)

        assert len(backend.requests) == 2
        await service.close()

    @pytest.mark.asyncio
    async def test_quota_exhausted_serves_fallback(self):
        backend = Backend()
        service = make_service(backend, max_monthly=1)

        await service.fetch_page("All", 10, 1)
        result = await service.fetch_page("Technology", 10, 1)

        assert isinstance(result, RateLimited)
        assert result.fallback is True
        assert [a.id for a in result.articles] == ["fallback_2", "fallback_4"]
        assert len(backend.requests) == 1
        assert service.quota.state.request_count == 1
        await service.close()

    @pytest.mark.asyncio
    async def test_quota_exhausted_without_fallback(self):
        service = make_service(Backend(), max_monthly=1, fallback_enabled=False)

        await service.fetch_page("All", 10, 1)
        result = await service.fetch_page("Business", 10, 1)

        assert isinstance(result, RateLimited)
        assert result.fallback is False
        assert result.articles == []
        d = result.to_dict()
        assert d["success"] is False
        assert d["rateLimited"] is True
        assert d["error"] == LIMIT_REACHED_MESSAGE
        await service.close()

    @pytest.mark.asyncio
    async def test_cached_data_served_even_when_quota_exhausted(self):
        backend = Backend()
        service = make_service(backend, max_monthly=1)

        await service.fetch_page("All", 10, 1)
        result = await service.fetch_page("All", 10, 1)

        assert isinstance(result, Ok)
        assert result.cached is True
        await service.close()

    @pytest.mark.asyncio
    async def test_http_429_is_rate_limited_and_counted(self):
        service = make_service(Backend(status=429, body={}))

        result = await service.fetch_page("All", 10, 1)

        assert isinstance(result, RateLimited)
        assert result.fallback is True
        assert len(result.articles) == 5
        assert service.quota.state.request_count == 1
        await service.close()

    @pytest.mark.asyncio
    async def test_http_error_is_err_and_not_cached(self):
        backend = Backend(status=500, body={})
        service = make_service(backend)

        result = await service.fetch_page("All", 10, 1)
        await service.fetch_page("All", 10, 1)

        assert isinstance(result, Err)
        assert isinstance(result.error, HttpError)
        assert result.error.status == 500
        assert result.to_dict()["success"] is False
        assert len(backend.requests) == 2
        await service.close()

    @pytest.mark.asyncio
    async def test_network_error_not_counted(self):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        client = NewsAPIClient("test-key", transport=httpx.MockTransport(handler))
        quota = QuotaTracker(min_interval=0, clock=FakeClock())
        service = NewsService(client, quota, ResponseCache())

        result = await service.fetch_page("All", 10, 1)

        assert isinstance(result, Err)
        assert isinstance(result.error, NetworkError)
        assert quota.state.request_count == 0
        await service.close()

    @pytest.mark.asyncio
    async def test_malformed_record_is_err(self):
        bad = raw_articles(2)
        bad[1]["title"] = 12345
        backend = Backend(body={"status": "ok", "totalResults": 2, "articles": bad})
        service = make_service(backend)

        result = await service.fetch_page("All", 10, 1)

        assert isinstance(result, Err)
        assert isinstance(result.error, ParseError)
        assert len(service.cache) == 0
        await service.close()

    @pytest.mark.asyncio
    async def test_api_error_body_is_err(self):
        backend = Backend(body={"status": "error", "code": "apiKeyInvalid", "message": "bad key"})
        service = make_service(backend)

        result = await service.fetch_page("All", 10, 1)

        assert isinstance(result, Err)
        assert result.reason == "bad key"
        await service.close()


class TestSearch:
    @pytest.mark.asyncio
    async def test_query_echoed(self):
        backend = Backend()
        service = make_service(backend)

        result = await service.search("  climate ", None, 10, 1)

        assert isinstance(result, Ok)
        assert result.query == "climate"
        assert result.to_dict()["query"] == "climate"
        assert backend.requests[0].url.params["q"] == "climate"
        await service.close()

    @pytest.mark.asyncio
    async def test_empty_query(self):
        backend = Backend()
        service = make_service(backend)

        result = await service.search("   ")

        assert isinstance(result, Err)
        assert backend.requests == []
        await service.close()

    @pytest.mark.asyncio
    async def test_search_cached(self):
        backend = Backend()
        service = make_service(backend)

        await service.search("climate")
        second = await service.search("climate")

        assert second.cached is True
        assert len(backend.requests) == 1
        await service.close()

    @pytest.mark.asyncio
    async def test_rate_limited_search_uses_matching_fallback(self):
        service = make_service(Backend(), max_monthly=1)
        await service.fetch_page("All", 10, 1)

        result = await service.search("caching")

        assert isinstance(result, RateLimited)
        assert result.query == "caching"
        assert [a.id for a in result.articles] == ["fallback_4"]
        await service.close()


class TestStatus:
    @pytest.mark.asyncio
    async def test_active(self):
        service = make_service(Backend())
        status = await service.check_status()
        assert status["status"] == "active"
        assert status["usage"]["used"] == 1
        await service.close()

    @pytest.mark.asyncio
    async def test_rate_limited_without_request(self):
        backend = Backend()
        service = make_service(backend, max_monthly=1)
        await service.fetch_page("All", 10, 1)

        status = await service.check_status()

        assert status["status"] == "rate_limited"
        assert len(backend.requests) == 1
        await service.close()

    @pytest.mark.asyncio
    async def test_http_error(self):
        service = make_service(Backend(status=401, body={}))
        status = await service.check_status()
        assert status["status"] == "error"
        assert status["statusCode"] == 401
        await service.close()

    def test_usage(self):
        service = make_service(Backend())
        assert service.usage().limit == 1000
