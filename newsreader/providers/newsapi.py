"""NewsAPI client (top-headlines and everything endpoints)."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

logger = logging.getLogger(__name__)

NEWSAPI_BASE_URL = "https://newsapi.org/v2"
MAX_PAGE_SIZE = 100  # NewsAPI caps pageSize at 100


class NewsAPIError(Exception):
    """Base exception for NewsAPI errors."""


class NetworkError(NewsAPIError):
    """Transport failure before any response was received."""


class HttpError(NewsAPIError):
    """Non-success HTTP status from NewsAPI."""

    def __init__(self, status: int, message: str | None = None) -> None:
        self.status = status
        super().__init__(message or f"HTTP error! status: {status}")


class RateLimitHttpError(HttpError):
    """HTTP 429: the remote quota is exhausted."""

    def __init__(self, message: str | None = None) -> None:
        super().__init__(
            429, message or "Rate limit exceeded. Please wait before making more requests."
        )


class ParseError(NewsAPIError):
    """Payload was not JSON or did not have the expected shape."""


@dataclass
class NewsAPIResponse:
    """Decoded NewsAPI payload."""

    total_results: int
    articles: list[dict[str, Any]] = field(default_factory=list)


def parse_payload(data: Any) -> NewsAPIResponse:
    """Validate the JSON body and extract the consumed fields.

    Raises:
        ParseError: If the body is not an object or articles is not a list.
        NewsAPIError: If NewsAPI reported status 'error'.
    """
    if not isinstance(data, dict):
        raise ParseError(f"Unexpected payload type: {type(data).__name__}")

    if data.get("status") == "error":
        code = data.get("code")
        message = data.get("message") or "NewsAPI returned an error"
        if code == "rateLimited":
            raise RateLimitHttpError(message)
        raise NewsAPIError(message)

    articles = data.get("articles") or []
    if not isinstance(articles, list):
        raise ParseError("'articles' is not a list")

    total = data.get("totalResults")
    try:
        total_results = int(total) if total is not None else len(articles)
    except (TypeError, ValueError) as e:
        raise ParseError(f"Invalid totalResults: {total!r}") from e

    return NewsAPIResponse(total_results=total_results, articles=articles)


class NewsAPIClient:
    """Async client for NewsAPI v2.

    Each call performs exactly one HTTP request. Callers are responsible for
    quota accounting; on_response is invoked once a response was received,
    whatever its status.
    """

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = NEWSAPI_BASE_URL,
        country: str = "us",
        language: str = "en",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.country = country
        self.language = language
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self._timeout),
                headers={"Accept": "application/json"},
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "NewsAPIClient":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    async def _get(
        self, path: str, params: dict[str, Any], on_response: Any | None = None
    ) -> NewsAPIResponse:
        if not self._api_key:
            raise NewsAPIError("NEWSAPI_KEY is not configured")

        client = await self._get_client()
        try:
            resp = await client.get(path, params={"apiKey": self._api_key, **params})
        except httpx.HTTPError as e:
            raise NetworkError(f"Network request failed: {type(e).__name__}: {e}") from e

        if on_response:
            on_response(resp.status_code)

        logger.debug(f"NewsAPI {path} -> {resp.status_code}")

        if resp.status_code == 429:
            raise RateLimitHttpError()
        if resp.status_code >= 400:
            raise HttpError(resp.status_code)

        try:
            data = resp.json()
        except ValueError as e:
            raise ParseError(f"Response is not valid JSON: {e}") from e

        return parse_payload(data)

    async def top_headlines(
        self,
        *,
        category: str,
        page_size: int,
        page: int = 1,
        on_response: Any | None = None,
    ) -> NewsAPIResponse:
        """Fetch one page of top headlines for a category."""
        params = {
            "country": self.country,
            "category": category,
            "pageSize": min(page_size, MAX_PAGE_SIZE),
            "page": page or 1,
        }
        logger.info(f"Fetching headlines: category={category} pageSize={page_size} page={page}")
        return await self._get("/top-headlines", params, on_response)

    async def everything(
        self,
        *,
        query: str,
        page_size: int,
        page: int = 1,
        sort_by: str = "publishedAt",
        on_response: Any | None = None,
    ) -> NewsAPIResponse:
        """Search all articles for a query, newest first."""
        params = {
            "q": query,
            "language": self.language,
            "pageSize": min(page_size, MAX_PAGE_SIZE),
            "page": page or 1,
            "sortBy": sort_by,
        }
        logger.info(f"Searching news: q={query!r} pageSize={page_size} page={page}")
        return await self._get("/everything", params, on_response)
