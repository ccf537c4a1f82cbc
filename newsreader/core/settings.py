from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    app_env: str
    newsapi_key: str
    newsapi_base_url: str
    newsapi_country: str
    newsapi_language: str
    db_path: str
    offline_images_dir: str
    max_requests_per_month: int
    min_request_interval: float
    cache_ttl_seconds: float
    cache_max_entries: int
    page_size: int
    load_more_debounce_seconds: float
    auto_refresh_seconds: float
    http_timeout: float
    fallback_enabled: bool

    @staticmethod
    def from_env() -> "Settings":
        def _b(name: str, default: str) -> bool:
            return os.getenv(name, default).strip() in ("1", "true", "True", "yes", "YES")

        def _i(name: str, default: str) -> int:
            return int(os.getenv(name, default).strip())

        def _f(name: str, default: str) -> float:
            return float(os.getenv(name, default).strip())

        return Settings(
            app_env=os.getenv("APP_ENV", "dev").strip(),
            newsapi_key=os.getenv("NEWSAPI_KEY", "").strip(),
            newsapi_base_url=os.getenv("NEWSAPI_BASE_URL", "https://newsapi.org/v2").strip(),
            newsapi_country=os.getenv("NEWSAPI_COUNTRY", "us").strip(),
            newsapi_language=os.getenv("NEWSAPI_LANGUAGE", "en").strip(),
            db_path=os.getenv("DB_PATH", "./_local/data/newsreader.db").strip(),
            offline_images_dir=os.getenv("OFFLINE_IMAGES_DIR", "./_local/offline_images").strip(),
            max_requests_per_month=_i("MAX_REQUESTS_PER_MONTH", "1000"),
            min_request_interval=_f("MIN_REQUEST_INTERVAL", "0.1"),
            cache_ttl_seconds=_f("CACHE_TTL_SECONDS", "300"),
            cache_max_entries=_i("CACHE_MAX_ENTRIES", "0"),
            page_size=_i("PAGE_SIZE", "10"),
            load_more_debounce_seconds=_f("LOAD_MORE_DEBOUNCE_SECONDS", "3"),
            auto_refresh_seconds=_f("AUTO_REFRESH_SECONDS", "300"),
            http_timeout=_f("HTTP_TIMEOUT", "30"),
            fallback_enabled=_b("FALLBACK_ENABLED", "1"),
        )
