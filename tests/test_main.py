"""Tests for the HTTP API in main.py"""

import httpx
import pytest
from fastapi.testclient import TestClient

from newsreader.core.news_service import NewsService
from newsreader.core.pagination import FeedController
from newsreader.core.quota import QuotaTracker
from newsreader.providers.newsapi import NewsAPIClient
from newsreader.main import app, get_services

ARTICLE = {
    "id": "article_1",
    "title": "Saved story",
    "excerpt": "excerpt",
    "content": "content",
    "heroImage": "https://example.com/img.jpg",
    "category": "General",
    "publishedAt": "2024-03-15T10:00:00Z",
    "readTime": 2,
    "author": "Author",
    "source": "Source",
    "tags": [],
    "url": "https://example.com/story",
}


def newsapi_handler(request: httpx.Request) -> httpx.Response:
    page = int(request.url.params.get("page", "1"))
    articles = [
        {
            "source": {"name": "Wire"},
            "title": f"Headline {page}-{i}",
            "description": "A description long enough to be used as article content.",
            "url": f"https://example.com/{page}/{i}",
            "publishedAt": "2024-03-15T10:00:00Z",
        }
        for i in range(10)
    ]
    return httpx.Response(200, json={"status": "ok", "totalResults": 30, "articles": articles})


@pytest.fixture
def client(monkeypatch, tmp_path):
    monkeypatch.setenv("DB_PATH", str(tmp_path / "test.db"))
    monkeypatch.setenv("OFFLINE_IMAGES_DIR", str(tmp_path / "images"))
    monkeypatch.setenv("AUTO_REFRESH_SECONDS", "0")
    monkeypatch.setenv("LOAD_MORE_DEBOUNCE_SECONDS", "0")
    monkeypatch.setenv("NEWSAPI_KEY", "test-key")

    with TestClient(app) as c:
        services = app.state.services
        news = NewsService(
            NewsAPIClient("test-key", transport=httpx.MockTransport(newsapi_handler)),
            QuotaTracker(max_monthly=3, min_interval=0),
        )
        services.news = news
        services.feed = FeedController(news, page_size=10, debounce_seconds=0)
        yield c


class TestNewsEndpoints:
    def test_categories(self, client):
        r = client.get("/api/categories")
        assert r.status_code == 200
        assert r.json()["categories"][0] == "All"

    def test_news(self, client):
        r = client.get("/api/news", params={"category": "Technology"})
        data = r.json()
        assert data["success"] is True
        assert len(data["articles"]) == 10
        assert data["articles"][0]["category"] == "Technology"
        assert data["totalResults"] == 30

    def test_search(self, client):
        data = client.get("/api/search", params={"q": "climate"}).json()
        assert data["success"] is True
        assert data["query"] == "climate"

    def test_usage_counts_requests(self, client):
        client.get("/api/news")
        client.get("/api/news")
        usage = client.get("/api/usage").json()
        assert usage["used"] == 1
        assert usage["limit"] == 3

    def test_quota_exhausted_serves_fallback(self, client):
        for p in (1, 2, 3):
            client.get("/api/news", params={"page": p})
        data = client.get("/api/news", params={"page": 4}).json()
        assert data["rateLimited"] is True
        assert data["fallback"] is True
        assert len(data["articles"]) == 5


class TestFeedEndpoints:
    def test_load_and_more(self, client):
        state = client.post("/api/feed/load").json()
        assert len(state["articles"]) == 10
        assert state["mode"] == "idle"

        state = client.post("/api/feed/more").json()
        assert len(state["articles"]) == 20
        assert state["currentPage"] == 1

    def test_filter(self, client):
        client.post("/api/feed/load")
        state = client.get("/api/feed", params={"q": "headline 1-3"}).json()
        assert [a["title"] for a in state["articles"]] == ["Headline 1-3"]


class TestSavedEndpoints:
    def test_save_list_remove(self, client):
        assert client.post("/api/saved", json=ARTICLE).json() == {"saved": True}
        assert client.post("/api/saved", json=ARTICLE).json() == {"saved": False}

        articles = client.get("/api/saved").json()["articles"]
        assert [a["id"] for a in articles] == ["article_1"]
        assert articles[0]["savedAt"] is not None

        assert client.delete("/api/saved/article_1").json() == {"removed": True}
        assert client.get("/api/saved").json()["articles"] == []

    def test_invalid_article(self, client):
        data = client.post("/api/saved", json={"title": "no id"}).json()
        assert "error" in data


class TestOfflineEndpoints:
    def test_offline_without_connectivity(self, client):
        client.post("/api/connectivity", params={"connected": "false"})

        data = client.post("/api/offline", json=ARTICLE).json()
        assert data["saved"] is True
        assert data["storageSizeBytes"] > 0

        listing = client.get("/api/offline").json()
        assert listing["isConnected"] is False
        assert listing["articles"][0]["localImageUri"] == ARTICLE["heroImage"]

        assert client.delete("/api/offline/article_1").json()["removed"] is True

    def test_clear(self, client):
        client.post("/api/connectivity", params={"connected": "false"})
        client.post("/api/offline", json=ARTICLE)

        data = client.delete("/api/offline").json()

        assert data == {"cleared": True, "storageSizeBytes": 0}
        assert client.get("/api/offline").json()["storageSize"] == "0 B"


class TestServices:
    def test_get_services_before_startup(self, monkeypatch):
        monkeypatch.setattr(app.state, "services", None, raising=False)
        with pytest.raises(RuntimeError):
            get_services()
