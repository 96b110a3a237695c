"""
Shared exchange rate with periodic refresh and permanent fallback.
"""

from __future__ import annotations

import time
from typing import Any, Callable, Dict, Optional, TYPE_CHECKING

from shared.logging import get_logger

from service_storefront.app.caching.single_flight import SingleFlight

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from service_storefront.app.adapters.exchange_rate_client import ExchangeRateClient
    from shared.metrics import MetricsCollector

REFRESH_KEY = "exchange_rate"


class ExchangeRateCache:
    """Serves the current conversion rate, refreshing it when stale.

    ``rate`` is seeded with ``fallback_rate`` and only ever replaced by a
    successful refresh, so callers always get a usable number. Concurrent
    callers that find the rate stale share a single provider call.
    """

    def __init__(
        self,
        client: "ExchangeRateClient",
        *,
        fallback_rate: float,
        ttl_seconds: float = 3600,
        failure_backoff_seconds: float = 60,
        clock: Callable[[], float] = time.monotonic,
        metrics: Optional["MetricsCollector"] = None,
    ) -> None:
        self.client = client
        self.fallback_rate = fallback_rate
        self.ttl_seconds = ttl_seconds
        self.failure_backoff_seconds = failure_backoff_seconds
        self.clock = clock
        self.metrics = metrics
        self.logger = get_logger("storefront.exchange_rate")

        self.rate = fallback_rate
        self.last_updated: Optional[float] = None
        self.consecutive_failures = 0
        self._last_failure: Optional[float] = None
        self._single_flight = SingleFlight(REFRESH_KEY)

    def _needs_refresh(self, now: float) -> bool:
        if self._last_failure is not None and now - self._last_failure < self.failure_backoff_seconds:
            return False
        if self.last_updated is None:
            return True
        return now - self.last_updated >= self.ttl_seconds

    async def current(self) -> float:
        if self._needs_refresh(self.clock()):
            await self._single_flight.do(REFRESH_KEY, self._refresh)
        return self.rate

    async def _refresh(self) -> None:
        try:
            rate = await self.client.fetch_rate()
        except Exception as exc:
            self.consecutive_failures += 1
            self._last_failure = self.clock()
            self.logger.warning(
                "Exchange rate refresh failed, serving previous rate",
                error=str(exc),
                rate=self.rate,
                using_fallback=self.last_updated is None,
                consecutive_failures=self.consecutive_failures,
            )
            self._record("failure")
            return

        self.rate, self.last_updated = rate, self.clock()
        self.consecutive_failures = 0
        self._last_failure = None
        self.logger.info("Exchange rate refreshed", rate=rate)
        self._record("success")

    def _record(self, status: str) -> None:
        if self.metrics:
            self.metrics.increment_counter("exchange_rate_refresh_total", status=status)

    def snapshot(self) -> Dict[str, Any]:
        """Current state for health reporting."""
        return {
            "rate": self.rate,
            "using_fallback": self.last_updated is None,
            "last_updated": self.last_updated,
            "age_seconds": None if self.last_updated is None else self.clock() - self.last_updated,
            "consecutive_failures": self.consecutive_failures,
        }
