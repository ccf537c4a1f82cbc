from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from fastapi import Body, FastAPI

from newsreader.core.connectivity import SettableConnectivity
from newsreader.core.news_service import ALL_CATEGORIES, NewsService
from newsreader.core.offline import OfflineStore
from newsreader.core.pagination import FeedController, PaginationState
from newsreader.core.saved import SavedArticleStore
from newsreader.core.settings import Settings
from newsreader.core.storage import LocalFileStorage, open_kv_store
from newsreader.providers.content_types import Article

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Everything the HTTP layer needs, built once at startup."""

    settings: Settings
    news: NewsService
    feed: FeedController
    saved: SavedArticleStore
    offline: OfflineStore
    connectivity: SettableConnectivity
    files: LocalFileStorage


async def build_services(settings: Settings) -> Services:
    kv = open_kv_store(settings.db_path)
    files = LocalFileStorage(timeout=settings.http_timeout)
    connectivity = SettableConnectivity(connected=True)
    news = NewsService.from_settings(settings)
    feed = FeedController(
        news,
        page_size=settings.page_size,
        debounce_seconds=settings.load_more_debounce_seconds,
        auto_refresh_seconds=settings.auto_refresh_seconds,
    )
    saved = SavedArticleStore(kv)
    offline = OfflineStore(kv, files, connectivity, settings.offline_images_dir)
    await saved.load()
    await offline.load()
    return Services(
        settings=settings,
        news=news,
        feed=feed,
        saved=saved,
        offline=offline,
        connectivity=connectivity,
        files=files,
    )


app = FastAPI(title="newsreader")


@app.on_event("startup")
async def _startup() -> None:
    s = Settings.from_env()
    if not s.newsapi_key:
        logger.warning("No NEWSAPI_KEY found in environment, live fetches will fail")
    services = await build_services(s)
    if s.auto_refresh_seconds > 0:
        services.feed.start_auto_refresh()
    app.state.services = services


@app.on_event("shutdown")
async def _shutdown() -> None:
    services: Services | None = getattr(app.state, "services", None)
    if services is None:
        return
    await services.feed.stop_auto_refresh()
    services.offline.close()
    await services.news.close()
    await services.files.close()


def get_services() -> Services:
    services = getattr(app.state, "services", None)
    if services is None:
        raise RuntimeError("Services not initialized, startup has not run")
    return services


def feed_to_dict(state: PaginationState) -> dict[str, Any]:
    return {
        "articles": [a.to_dict() for a in state.articles],
        "category": state.category,
        "currentPage": state.current_page,
        "hasMorePages": state.has_more_pages,
        "totalResults": state.total_results,
        "mode": state.mode.value,
        "error": state.error,
        "searchQuery": state.search_query,
        "rateLimited": state.rate_limited,
        "fallback": state.fallback,
    }


@app.get("/api/news")
async def api_news(category: str = ALL_CATEGORIES, page_size: int = 10, page: int = 1):
    result = await get_services().news.fetch_page(category, page_size, page)
    return result.to_dict()


@app.get("/api/search")
async def api_search(q: str, category: str | None = None, page_size: int = 10, page: int = 1):
    result = await get_services().news.search(q, category, page_size, page)
    return result.to_dict()


@app.get("/api/usage")
def api_usage():
    return get_services().news.usage().to_dict()


@app.get("/api/categories")
def api_categories():
    return {"categories": get_services().news.categories()}


@app.get("/api/status")
async def api_status():
    """Check NewsAPI reachability. Costs one request when quota allows."""
    return await get_services().news.check_status()


# Feed (one controller per process)


@app.get("/api/feed")
def api_feed(q: str = ""):
    feed = get_services().feed
    d = feed_to_dict(feed.state)
    if q:
        d["articles"] = [a.to_dict() for a in feed.filtered_articles(q)]
    return d


@app.post("/api/feed/load")
async def api_feed_load(category: str | None = None):
    feed = get_services().feed
    if category and category != feed.state.category:
        return feed_to_dict(await feed.select_category(category))
    return feed_to_dict(await feed.load(category))


@app.post("/api/feed/more")
async def api_feed_more():
    return feed_to_dict(await get_services().feed.load_more())


@app.post("/api/feed/refresh")
async def api_feed_refresh():
    return feed_to_dict(await get_services().feed.refresh())


@app.post("/api/feed/search")
async def api_feed_search(q: str = ""):
    return feed_to_dict(await get_services().feed.search(q))


# Saved articles


@app.get("/api/saved")
def api_saved_list():
    return {"articles": [a.to_dict() for a in get_services().saved.articles]}


@app.post("/api/saved")
async def api_saved_add(payload: dict = Body(...)):
    try:
        article = Article.from_dict(payload)
    except (KeyError, TypeError, ValueError) as e:
        return {"error": f"Invalid article: {e}"}
    return {"saved": await get_services().saved.save(article)}


@app.delete("/api/saved/{article_id}")
async def api_saved_remove(article_id: str):
    return {"removed": await get_services().saved.remove(article_id)}


# Offline articles


@app.get("/api/offline")
def api_offline_list():
    offline = get_services().offline
    return {
        "articles": [a.to_dict() for a in offline.articles],
        "storageSizeBytes": offline.storage_size,
        "storageSize": offline.formatted_storage_size,
        "isConnected": offline.is_connected,
    }


@app.post("/api/offline")
async def api_offline_add(payload: dict = Body(...)):
    try:
        article = Article.from_dict(payload)
    except (KeyError, TypeError, ValueError) as e:
        return {"error": f"Invalid article: {e}"}
    offline = get_services().offline
    saved = await offline.save_offline(article)
    return {"saved": saved, "storageSizeBytes": offline.storage_size}


@app.delete("/api/offline/{article_id}")
async def api_offline_remove(article_id: str):
    offline = get_services().offline
    removed = await offline.remove_offline(article_id)
    return {"removed": removed, "storageSizeBytes": offline.storage_size}


@app.delete("/api/offline")
async def api_offline_clear():
    offline = get_services().offline
    await offline.clear_all()
    return {"cleared": True, "storageSizeBytes": offline.storage_size}


@app.post("/api/connectivity")
def api_connectivity(connected: bool):
    """Host platform pushes connectivity changes here."""
    services = get_services()
    services.connectivity.set_connected(connected)
    return {"isConnected": services.connectivity.is_connected}
