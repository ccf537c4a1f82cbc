"""Short-lived in-memory cache for news API responses."""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

logger = logging.getLogger(__name__)

CACHE_TTL_SECONDS = 5 * 60


class EndpointKind(str, Enum):
    HEADLINES = "headlines"
    SEARCH = "search"


@dataclass(frozen=True)
class CacheKey:
    """Identity of a logical query. Built with keyword arguments only."""

    kind: EndpointKind
    category: str
    page_size: int
    page: int
    query: str | None = None

    @classmethod
    def for_headlines(cls, *, category: str, page_size: int, page: int) -> CacheKey:
        return cls(
            kind=EndpointKind.HEADLINES,
            category=category.lower(),
            page_size=page_size,
            page=page,
        )

    @classmethod
    def for_search(
        cls, *, query: str, category: str | None, page_size: int, page: int
    ) -> CacheKey:
        return cls(
            kind=EndpointKind.SEARCH,
            category=(category or "all").lower(),
            page_size=page_size,
            page=page,
            query=query.strip(),
        )

    def __str__(self) -> str:
        return f"{self.kind.value}-{self.category}-{self.page_size}-{self.page}-{self.query or 'no-query'}"


@dataclass
class CacheEntry:
    key: CacheKey
    payload: Any
    written_at: float


class ResponseCache:
    """TTL cache keyed by CacheKey.

    Entries are checked for expiry when read; an expired entry is dropped and
    reported as absent. With max_entries set, the oldest written entry is
    evicted once the bound is exceeded.
    """

    def __init__(
        self,
        ttl_seconds: float = CACHE_TTL_SECONDS,
        max_entries: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl = ttl_seconds
        self.max_entries = max_entries or None
        self._clock = clock
        self._entries: OrderedDict[CacheKey, CacheEntry] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def _is_fresh(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.written_at < self.ttl

    def get(self, key: CacheKey) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if not self._is_fresh(entry, self._clock()):
            del self._entries[key]
            return None
        logger.debug(f"Using cached data for {key}")
        return entry.payload

    def set(self, key: CacheKey, payload: Any) -> None:
        self._entries.pop(key, None)
        self._entries[key] = CacheEntry(key=key, payload=payload, written_at=self._clock())
        if self.max_entries is not None:
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug(f"Evicted cache entry {evicted}")
        logger.debug(f"Cached data for {key}")

    def purge_expired(self) -> int:
        """Drop all expired entries. Returns how many were removed."""
        now = self._clock()
        stale = [k for k, e in self._entries.items() if not self._is_fresh(e, now)]
        for k in stale:
            del self._entries[k]
        return len(stale)

    def clear(self) -> None:
        self._entries.clear()
