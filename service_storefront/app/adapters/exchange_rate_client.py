"""
Exchange-rate provider client.
"""

import time
from typing import Any, Dict, Optional, TYPE_CHECKING

import httpx

from shared.errors import UpstreamError
from shared.logging import get_logger

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector

SERVICE_NAME = "exchange_rate"
RATE_FIELDS = ("rates", "conversion_rates")


def extract_rate(payload: Dict[str, Any], target_currency: str) -> float:
    """Pull the target-currency rate out of either provider response shape."""
    for field in RATE_FIELDS:
        rates = payload.get(field)
        if isinstance(rates, dict) and target_currency in rates:
            try:
                rate = float(rates[target_currency])
            except (TypeError, ValueError):
                break
            if rate > 0:
                return rate
            break

    raise UpstreamError(
        SERVICE_NAME,
        f"response has no usable {target_currency} rate",
        details={"fields": [field for field in RATE_FIELDS if field in payload]},
    )


class ExchangeRateClient:
    """Fetches the source→target conversion rate from the provider."""

    def __init__(
        self,
        url: str,
        target_currency: str = "USD",
        *,
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.url = url
        self.target_currency = target_currency
        self.metrics = metrics
        self.logger = get_logger("storefront.exchange_rate_client")
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def close(self) -> None:
        await self._client.aclose()

    async def fetch_rate(self) -> float:
        start = time.perf_counter()
        outcome = "error"
        try:
            try:
                response = await self._client.get(self.url)
            except httpx.TimeoutException as exc:
                outcome = "timeout"
                raise UpstreamError(SERVICE_NAME, "request timed out") from exc
            except httpx.HTTPError as exc:
                raise UpstreamError(SERVICE_NAME, str(exc) or exc.__class__.__name__) from exc

            if not response.is_success:
                raise UpstreamError(
                    SERVICE_NAME,
                    f"Unexpected status {response.status_code}",
                    status_code=response.status_code,
                )

            try:
                payload = response.json()
            except ValueError as exc:
                raise UpstreamError(SERVICE_NAME, "malformed response body") from exc
            if not isinstance(payload, dict):
                raise UpstreamError(SERVICE_NAME, "malformed response body")

            rate = extract_rate(payload, self.target_currency)
            outcome = "success"
            self.logger.debug("Exchange rate fetched", currency=self.target_currency, rate=rate)
            return rate
        finally:
            if self.metrics:
                self.metrics.increment_counter("upstream_requests_total", service=SERVICE_NAME, outcome=outcome)
                self.metrics.observe_histogram(
                    "upstream_request_duration_seconds",
                    time.perf_counter() - start,
                    service=SERVICE_NAME,
                )
