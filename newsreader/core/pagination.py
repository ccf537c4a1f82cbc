"""Feed pagination: a pure reducer over tagged actions plus an async controller.

State changes only through reduce(state, action). FeedController issues the
fetches, turns NewsService outcomes into actions, and owns the auto-refresh
task.

Provides:
- PaginationState and FeedMode
- Action dataclasses and reduce()
- FeedController for load / load_more / refresh / select_category / search
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Sequence, Union

from newsreader.core.dedupe import dedupe, merge
from newsreader.core.news_service import ALL_CATEGORIES, NewsService, Ok, RateLimited
from newsreader.providers.content_types import Article

logger = logging.getLogger(__name__)

PAGE_SIZE = 10
LOAD_MORE_DEBOUNCE_SECONDS = 3.0
AUTO_REFRESH_SECONDS = 5 * 60


class FeedMode(str, Enum):
    """What the feed is currently doing."""

    IDLE = "idle"
    LOADING = "loading"
    LOADING_MORE = "loading_more"
    REFRESHING = "refreshing"
    ERROR = "error"


BUSY_MODES = {FeedMode.LOADING, FeedMode.LOADING_MORE, FeedMode.REFRESHING}


@dataclass(frozen=True)
class PaginationState:
    """Feed collection and pagination cursor.

    current_page is zero-based: 0 means API page 1 has been consumed.
    generation identifies the latest load/refresh/search; completions from an
    older generation are ignored.
    """

    articles: tuple[Article, ...] = ()
    category: str = ALL_CATEGORIES
    current_page: int = 0
    has_more_pages: bool = True
    total_results: int = 0
    last_load_more_time: float | None = None
    mode: FeedMode = FeedMode.IDLE
    error: str | None = None
    search_query: str | None = None
    rate_limited: bool = False
    fallback: bool = False
    generation: int = 0

    @property
    def searching(self) -> bool:
        return bool(self.search_query)


# Actions


@dataclass(frozen=True)
class LoadStarted:
    category: str
    generation: int


@dataclass(frozen=True)
class LoadSucceeded:
    generation: int
    articles: Sequence[Article]
    total_results: int
    has_more_pages: bool
    rate_limited: bool = False
    fallback: bool = False


@dataclass(frozen=True)
class LoadFailed:
    generation: int
    error: str
    rate_limited: bool = False


@dataclass(frozen=True)
class LoadMoreStarted:
    generation: int
    at: float


@dataclass(frozen=True)
class LoadMoreSucceeded:
    generation: int
    articles: Sequence[Article]
    total_results: int
    has_more_pages: bool
    rate_limited: bool = False
    fallback: bool = False


@dataclass(frozen=True)
class LoadMoreFailed:
    generation: int
    error: str | None = None


@dataclass(frozen=True)
class RefreshStarted:
    generation: int


@dataclass(frozen=True)
class RefreshSucceeded:
    generation: int
    articles: Sequence[Article]
    total_results: int
    has_more_pages: bool
    rate_limited: bool = False
    fallback: bool = False


@dataclass(frozen=True)
class RefreshFailed:
    generation: int
    error: str


@dataclass(frozen=True)
class SearchStarted:
    query: str
    generation: int


@dataclass(frozen=True)
class SearchSucceeded:
    generation: int
    articles: Sequence[Article]
    total_results: int
    rate_limited: bool = False
    fallback: bool = False


@dataclass(frozen=True)
class SearchFailed:
    generation: int
    error: str
    # Query of the collection still shown; None when it is the category feed
    previous_query: str | None = None


@dataclass(frozen=True)
class SearchCleared:
    pass


Action = Union[
    LoadStarted,
    LoadSucceeded,
    LoadFailed,
    LoadMoreStarted,
    LoadMoreSucceeded,
    LoadMoreFailed,
    RefreshStarted,
    RefreshSucceeded,
    RefreshFailed,
    SearchStarted,
    SearchSucceeded,
    SearchFailed,
    SearchCleared,
]


def reduce(state: PaginationState, action: Action) -> PaginationState:
    """Return the state after applying action. Never mutates state."""
    # Starts
    if isinstance(action, LoadStarted):
        return PaginationState(
            category=action.category,
            mode=FeedMode.LOADING,
            has_more_pages=False,
            generation=action.generation,
        )
    if isinstance(action, RefreshStarted):
        return replace(state, mode=FeedMode.REFRESHING, generation=action.generation)
    if isinstance(action, SearchStarted):
        return replace(
            state,
            mode=FeedMode.LOADING,
            search_query=action.query,
            generation=action.generation,
        )
    if isinstance(action, LoadMoreStarted):
        return replace(state, mode=FeedMode.LOADING_MORE, last_load_more_time=action.at)
    if isinstance(action, SearchCleared):
        return replace(state, search_query=None)

    # Completions of a superseded request
    if action.generation != state.generation:
        logger.debug(
            f"Ignoring {type(action).__name__} for generation {action.generation} "
            f"(current {state.generation})"
        )
        return state

    if isinstance(action, LoadSucceeded):
        return replace(
            state,
            articles=tuple(dedupe(action.articles)),
            mode=FeedMode.IDLE,
            current_page=0,
            has_more_pages=action.has_more_pages,
            total_results=action.total_results,
            error=None,
            rate_limited=action.rate_limited,
            fallback=action.fallback,
        )
    if isinstance(action, LoadFailed):
        return replace(
            state,
            articles=(),
            mode=FeedMode.ERROR,
            has_more_pages=False,
            total_results=0,
            error=action.error,
            rate_limited=action.rate_limited,
            fallback=False,
        )
    if isinstance(action, LoadMoreSucceeded):
        return replace(
            state,
            articles=tuple(merge(state.articles, action.articles)),
            mode=FeedMode.IDLE,
            current_page=state.current_page + 1,
            has_more_pages=action.has_more_pages,
            total_results=action.total_results or state.total_results,
            rate_limited=action.rate_limited,
            fallback=action.fallback,
        )
    if isinstance(action, LoadMoreFailed):
        return replace(state, mode=FeedMode.IDLE)
    if isinstance(action, RefreshSucceeded):
        return replace(
            state,
            articles=tuple(dedupe(action.articles)),
            mode=FeedMode.IDLE,
            current_page=0,
            has_more_pages=action.has_more_pages,
            total_results=action.total_results or state.total_results,
            error=None,
            search_query=None,
            rate_limited=action.rate_limited,
            fallback=action.fallback,
        )
    if isinstance(action, RefreshFailed):
        return replace(state, mode=FeedMode.IDLE, error=action.error)
    if isinstance(action, SearchSucceeded):
        return replace(
            state,
            articles=tuple(dedupe(action.articles)),
            mode=FeedMode.IDLE,
            current_page=0,
            has_more_pages=False,
            total_results=action.total_results,
            error=None,
            rate_limited=action.rate_limited,
            fallback=action.fallback,
        )
    if isinstance(action, SearchFailed):
        return replace(
            state,
            mode=FeedMode.IDLE,
            error=action.error,
            search_query=action.previous_query,
        )

    raise TypeError(f"Unknown action: {action!r}")


class FeedController:
    """Drives the feed state for one UI session.

    Mode flags in the state serve as mutual exclusion: a second load_more is
    refused while one is in flight, and the auto-refresh loop skips its turn
    while any fetch is running.
    """

    def __init__(
        self,
        service: NewsService,
        *,
        page_size: int = PAGE_SIZE,
        debounce_seconds: float = LOAD_MORE_DEBOUNCE_SECONDS,
        auto_refresh_seconds: float = AUTO_REFRESH_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.service = service
        self.page_size = page_size
        self.debounce_seconds = debounce_seconds
        self.auto_refresh_seconds = auto_refresh_seconds
        self._clock = clock
        self.state = PaginationState()
        self._generation = 0
        self._auto_refresh_task: asyncio.Task | None = None

    async def __aenter__(self) -> "FeedController":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.stop_auto_refresh()

    def dispatch(self, action: Action) -> PaginationState:
        self.state = reduce(self.state, action)
        return self.state

    def _next_generation(self) -> int:
        self._generation += 1
        return self._generation

    def _has_more(self, articles: Sequence[Article]) -> bool:
        return len(articles) == self.page_size

    async def load(self, category: str | None = None) -> PaginationState:
        """Initial load of page 1. Only from IDLE or ERROR."""
        if self.state.mode not in (FeedMode.IDLE, FeedMode.ERROR):
            logger.debug(f"Skipping load while {self.state.mode.value}")
            return self.state
        return await self._load(category or self.state.category)

    async def select_category(self, category: str) -> PaginationState:
        """Switch category with a full reset. Supersedes any in-flight fetch."""
        logger.info(f"Switching to category {category}")
        return await self._load(category)

    async def _load(self, category: str) -> PaginationState:
        generation = self._next_generation()
        self.dispatch(LoadStarted(category=category, generation=generation))

        result = await self.service.fetch_page(category, self.page_size, 1)

        if isinstance(result, Ok):
            logger.info(f"Loaded {len(result.articles)} articles for {category}")
            return self.dispatch(
                LoadSucceeded(
                    generation=generation,
                    articles=result.articles,
                    total_results=result.total_results,
                    has_more_pages=self._has_more(result.articles),
                )
            )
        if isinstance(result, RateLimited) and result.fallback:
            logger.warning("Rate limited, showing fallback articles")
            return self.dispatch(
                LoadSucceeded(
                    generation=generation,
                    articles=result.articles,
                    total_results=result.total_results,
                    has_more_pages=False,
                    rate_limited=True,
                    fallback=True,
                )
            )
        if isinstance(result, RateLimited):
            return self.dispatch(
                LoadFailed(generation=generation, error=result.reason, rate_limited=True)
            )
        return self.dispatch(LoadFailed(generation=generation, error=result.reason))

    def can_load_more(self) -> bool:
        s = self.state
        if s.searching or not s.has_more_pages or s.mode in (
            FeedMode.LOADING_MORE,
            FeedMode.REFRESHING,
        ):
            return False
        if s.last_load_more_time is not None:
            return self._clock() - s.last_load_more_time >= self.debounce_seconds
        return True

    async def load_more(self) -> PaginationState:
        """Fetch the next page and merge it. Failures keep the current feed.

        current_page is zero-based, so API page current_page + 2 is requested:
        page 1 was consumed by the initial load and is never fetched again.
        """
        if not self.can_load_more():
            logger.debug("Skipping load_more (busy, debounced or no more pages)")
            return self.state

        generation = self.state.generation
        next_page = self.state.current_page + 1
        self.dispatch(LoadMoreStarted(generation=generation, at=self._clock()))

        # current_page is zero-based, the API is one-based
        result = await self.service.fetch_page(self.state.category, self.page_size, next_page + 1)

        if isinstance(result, Ok):
            logger.info(f"Loaded {len(result.articles)} more articles (page {next_page + 1})")
            return self.dispatch(
                LoadMoreSucceeded(
                    generation=generation,
                    articles=result.articles,
                    total_results=result.total_results,
                    has_more_pages=self._has_more(result.articles),
                )
            )
        if isinstance(result, RateLimited) and result.fallback:
            return self.dispatch(
                LoadMoreSucceeded(
                    generation=generation,
                    articles=result.articles,
                    total_results=result.total_results,
                    has_more_pages=False,
                    rate_limited=True,
                    fallback=True,
                )
            )
        reason = result.reason
        logger.warning(f"Load more failed: {reason}")
        return self.dispatch(LoadMoreFailed(generation=generation, error=reason))

    async def refresh(self) -> PaginationState:
        """Replace the feed with page 1 of the current category."""
        generation = self._next_generation()
        self.dispatch(RefreshStarted(generation=generation))
        category = self.state.category

        result = await self.service.fetch_page(category, self.page_size, 1)

        if isinstance(result, Ok):
            logger.info(f"Refreshed {len(result.articles)} articles")
            return self.dispatch(
                RefreshSucceeded(
                    generation=generation,
                    articles=result.articles,
                    total_results=result.total_results,
                    has_more_pages=self._has_more(result.articles),
                )
            )
        if isinstance(result, RateLimited) and result.fallback:
            return self.dispatch(
                RefreshSucceeded(
                    generation=generation,
                    articles=result.articles,
                    total_results=result.total_results,
                    has_more_pages=False,
                    rate_limited=True,
                    fallback=True,
                )
            )
        logger.warning(f"Refresh failed: {result.reason}")
        return self.dispatch(RefreshFailed(generation=generation, error=result.reason))

    async def search(self, query: str) -> PaginationState:
        """Replace the feed with search results; an empty query refreshes."""
        if not query or not query.strip():
            self.dispatch(SearchCleared())
            return await self.refresh()

        query = query.strip()
        previous_query = self.state.search_query
        generation = self._next_generation()
        self.dispatch(SearchStarted(query=query, generation=generation))

        result = await self.service.search(query, self.state.category, self.page_size, 1)

        if isinstance(result, Ok) or (isinstance(result, RateLimited) and result.fallback):
            logger.info(f"Found {len(result.articles)} articles for {query!r}")
            return self.dispatch(
                SearchSucceeded(
                    generation=generation,
                    articles=result.articles,
                    total_results=result.total_results,
                    rate_limited=isinstance(result, RateLimited),
                    fallback=isinstance(result, RateLimited),
                )
            )
        logger.warning(f"Search failed: {result.reason}")
        return self.dispatch(
            SearchFailed(
                generation=generation, error=result.reason, previous_query=previous_query
            )
        )

    def filtered_articles(self, query: str | None = None) -> list[Article]:
        """Feed articles for the selected category matching query, newest first."""
        articles = list(self.state.articles)

        if self.state.category != ALL_CATEGORIES:
            articles = [a for a in articles if a.category == self.state.category]

        if query and query.strip():
            needle = query.strip().lower()
            articles = [
                a
                for a in articles
                if needle in a.title.lower()
                or needle in a.excerpt.lower()
                or needle in a.content.lower()
                or any(needle in tag.lower() for tag in a.tags)
            ]

        return sorted(articles, key=lambda a: a.published_at, reverse=True)

    # Auto-refresh

    @property
    def auto_refresh_running(self) -> bool:
        return self._auto_refresh_task is not None and not self._auto_refresh_task.done()

    def start_auto_refresh(self) -> None:
        """Start the periodic refresh task. Must be called inside a running loop."""
        if self.auto_refresh_running:
            return
        self._auto_refresh_task = asyncio.get_running_loop().create_task(
            self._auto_refresh_loop()
        )

    async def stop_auto_refresh(self) -> None:
        task = self._auto_refresh_task
        self._auto_refresh_task = None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def auto_refresh_tick(self) -> bool:
        """One auto-refresh turn. Returns True if a refresh was issued."""
        if self.state.mode in BUSY_MODES or self.state.searching:
            logger.debug(f"Auto-refresh skipped while {self.state.mode.value}")
            return False
        logger.info("Auto-refreshing articles")
        await self.refresh()
        return True

    async def _auto_refresh_loop(self) -> None:
        while True:
            await asyncio.sleep(self.auto_refresh_seconds)
            try:
                await self.auto_refresh_tick()
            except Exception:
                logger.exception("Auto-refresh failed")
