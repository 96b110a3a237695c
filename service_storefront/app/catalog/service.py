"""
Catalog service: cache lookup, signed upstream fetch, normalization and
stale-on-error fallback for every storefront query.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, TYPE_CHECKING

from shared.errors import NotFoundError, UpstreamError
from shared.logging import get_logger

from service_storefront.app.caching.cache_keys import make_cache_key
from service_storefront.app.caching.single_flight import SingleFlight
from service_storefront.app.caching.ttl_cache import TTLCache

from .models import CatalogResult, ProductQuery
from .normalizer import ResponseNormalizer

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from service_storefront.app.adapters.marketplace_client import MarketplaceClient
    from service_storefront.app.pricing.exchange_rate import ExchangeRateCache
    from shared.metrics import MetricsCollector


@dataclass(frozen=True)
class CacheTTLs:
    """Per-endpoint cache lifetimes in seconds."""

    products: float = 300
    product_detail: float = 600
    categories: float = 3600


class CatalogService:
    """Coordinates the gateway pipeline for each inbound query.

    A fresh cache entry is returned directly. On a miss one upstream call is
    made (shared by concurrent callers for the same key), normalized with the
    current exchange rate and stored. If that call fails, the last stored
    value is served even when expired; without one the error propagates.
    """

    def __init__(
        self,
        client: "MarketplaceClient",
        cache: TTLCache,
        rates: "ExchangeRateCache",
        normalizer: ResponseNormalizer,
        *,
        ttls: Optional[CacheTTLs] = None,
        single_flight: Optional[SingleFlight] = None,
        metrics: Optional["MetricsCollector"] = None,
    ) -> None:
        self.client = client
        self.cache = cache
        self.rates = rates
        self.normalizer = normalizer
        self.ttls = ttls or CacheTTLs()
        self.single_flight = single_flight or SingleFlight("catalog")
        self.metrics = metrics
        self.logger = get_logger("storefront.catalog")

    async def list_products(self, query: ProductQuery) -> CatalogResult:
        params = query.to_upstream_params()

        async def build() -> Dict[str, Any]:
            raw = await self.client.get_products(params)
            rate = await self.rates.current()
            products = self.normalizer.transform_many(_records(raw), rate)
            return {
                "products": [product.to_dict() for product in products],
                "pagination": {
                    "cursor": raw.get("nextCursor"),
                    "hasNext": bool(raw.get("hasNext", False)),
                    "size": query.size,
                    "count": len(products),
                },
            }

        return await self._resolve("products", make_cache_key("products", params), build, self.ttls.products)

    async def list_on_sale_products(self) -> CatalogResult:
        async def build() -> Dict[str, Any]:
            raw = await self.client.get_on_sale_products()
            rate = await self.rates.current()
            products = self.normalizer.transform_many(_records(raw), rate)
            return {"products": [product.to_dict() for product in products]}

        return await self._resolve("on_sale", make_cache_key("products:on-sale"), build, self.ttls.products)

    async def get_product(self, product_id: str) -> CatalogResult:
        async def build() -> Dict[str, Any]:
            try:
                raw = await self.client.get_product(product_id)
            except UpstreamError as exc:
                if exc.is_not_found:
                    raise NotFoundError("Product", product_id) from exc
                raise
            record = raw.get("data", raw) if isinstance(raw, dict) else raw
            if not isinstance(record, dict) or not record:
                raise NotFoundError("Product", product_id)
            rate = await self.rates.current()
            return {"product": self.normalizer.transform(record, rate).to_dict()}

        return await self._resolve(
            "product",
            make_cache_key("product", {"pid": product_id}),
            build,
            self.ttls.product_detail,
        )

    async def list_categories(self) -> CatalogResult:
        async def build() -> Dict[str, Any]:
            raw = await self.client.get_categories()
            return {"categories": _unwrap(raw)}

        return await self._resolve("categories", make_cache_key("categories"), build, self.ttls.categories)

    async def list_brands(self) -> CatalogResult:
        async def build() -> Dict[str, Any]:
            raw = await self.client.get_brands()
            return {"brands": _unwrap(raw)}

        return await self._resolve("brands", make_cache_key("brands"), build, self.ttls.categories)

    async def _resolve(
        self,
        endpoint: str,
        key: str,
        build: Callable[[], Awaitable[Dict[str, Any]]],
        ttl: float,
    ) -> CatalogResult:
        lookup = self.cache.get(key)
        if lookup.hit:
            self._record_lookup(endpoint, "hit")
            return CatalogResult(lookup.value, source="cache")
        self._record_lookup(endpoint, "miss")

        async def fetch_and_store() -> Dict[str, Any]:
            payload = await build()
            self.cache.set(key, payload, ttl)
            return payload

        try:
            payload = await self.single_flight.do(key, fetch_and_store)
        except UpstreamError as exc:
            fallback = self.cache.get_ignoring_ttl(key)
            if not fallback.found:
                self.logger.error("Upstream failed with no cached fallback", endpoint=endpoint, error=exc.message)
                raise
            self.logger.warning(
                "Serving stale cache after upstream failure",
                endpoint=endpoint,
                age_seconds=fallback.age_seconds,
                error=exc.message,
            )
            self._record_lookup(endpoint, "stale")
            return CatalogResult(fallback.value, source="stale")

        return CatalogResult(payload, source="upstream")

    def _record_lookup(self, endpoint: str, result: str) -> None:
        if self.metrics:
            self.metrics.increment_counter("cache_lookups_total", endpoint=endpoint, result=result)


def _records(raw: Any) -> list:
    data = raw.get("data") if isinstance(raw, dict) else None
    return data if isinstance(data, list) else []


def _unwrap(raw: Any) -> Any:
    if isinstance(raw, dict) and "data" in raw:
        return raw["data"]
    return raw
