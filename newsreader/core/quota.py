"""Monthly request budget and minimum request spacing for the news API.

The NewsAPI developer plan allows a fixed number of requests per calendar
month. QuotaTracker keeps the count for the current month and refuses new
requests once the budget is spent or when the previous request was issued
less than MIN_INTERVAL ago.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Callable

logger = logging.getLogger(__name__)

MAX_REQUESTS_PER_MONTH = 1000  # NewsAPI developer plan
MIN_REQUEST_INTERVAL = 0.1  # Seconds between dispatched requests


class QuotaExceededError(Exception):
    """Local throttle refused a request before it was dispatched."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def period_key(moment: datetime) -> tuple[int, int]:
    """Calendar month identifier for a moment."""
    return (moment.year, moment.month)


def first_day_of_next_month(moment: datetime) -> date:
    if moment.month == 12:
        return date(moment.year + 1, 1, 1)
    return date(moment.year, moment.month + 1, 1)


@dataclass
class QuotaState:
    """Mutable quota bookkeeping for one calendar month."""

    request_count: int
    period_key: tuple[int, int]
    last_request_time: datetime | None = None


@dataclass(frozen=True)
class QuotaUsage:
    """Snapshot of quota consumption for display."""

    used: int
    limit: int
    remaining: int
    percentage: int
    reset_date: date
    can_request: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "used": self.used,
            "limit": self.limit,
            "remaining": self.remaining,
            "percentage": self.percentage,
            "resetDate": self.reset_date.isoformat(),
            "canMakeRequest": self.can_request,
        }


class QuotaTracker:
    """Enforces the monthly budget and the minimum interval between requests.

    - max_monthly: Requests allowed per calendar month
    - min_interval: Seconds that must pass between two dispatched requests
    - Month rollover is checked lazily at the start of every call
    """

    def __init__(
        self,
        max_monthly: int = MAX_REQUESTS_PER_MONTH,
        min_interval: float = MIN_REQUEST_INTERVAL,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if max_monthly <= 0:
            raise ValueError("max_monthly must be positive")
        self.max_monthly = max_monthly
        self.min_interval = min_interval
        self._clock = clock
        self._state = QuotaState(request_count=0, period_key=period_key(clock()))

    @property
    def state(self) -> QuotaState:
        self._roll_period(self._clock())
        return self._state

    def _roll_period(self, now: datetime) -> None:
        """Reset the counter once when the calendar month changes."""
        current = period_key(now)
        if current != self._state.period_key:
            self._state.request_count = 0
            self._state.period_key = current
            logger.info(f"Monthly API request count reset for {current[0]}-{current[1]:02d}")

    def can_request(self) -> bool:
        """Whether a request may be dispatched right now."""
        now = self._clock()
        self._roll_period(now)

        if self._state.request_count >= self.max_monthly:
            return False

        last = self._state.last_request_time
        if last is not None and (now - last).total_seconds() < self.min_interval:
            logger.debug("Rate limiting: too soon since last request")
            return False

        return True

    def ensure_can_request(self) -> None:
        """Raise QuotaExceededError if can_request() is False."""
        if not self.can_request():
            raise QuotaExceededError(
                f"Request quota exhausted ({self._state.request_count}/{self.max_monthly}) "
                "or requests are too frequent"
            )

    def record_request(self) -> None:
        """Count a dispatched request. Not for cache hits or throttled calls."""
        now = self._clock()
        self._roll_period(now)
        self._state.request_count += 1
        self._state.last_request_time = now
        logger.debug(f"API requests used: {self._state.request_count}/{self.max_monthly}")

    def usage(self) -> QuotaUsage:
        now = self._clock()
        self._roll_period(now)
        used = self._state.request_count
        return QuotaUsage(
            used=used,
            limit=self.max_monthly,
            remaining=max(0, self.max_monthly - used),
            percentage=round(used / self.max_monthly * 100),
            reset_date=first_day_of_next_month(now),
            can_request=self.can_request(),
        )
