"""
Storefront gateway service: republishes marketplace products to the
storefront app proxy.
"""

from typing import Any, Dict, Optional

import httpx
from fastapi import Depends, Path, Request, Response
from fastapi.responses import JSONResponse

from shared.base_service import BaseService
from shared.config import GatewayConfig, get_config
from shared.errors import GatewayError, NotFoundError, UpstreamError

from service_storefront.app.adapters import ExchangeRateClient, MarketplaceClient
from service_storefront.app.auth import AppProxyVerifier, CredentialIssuer
from service_storefront.app.caching import TTLCache
from service_storefront.app.catalog import (
    CacheTTLs,
    CatalogResult,
    CatalogService,
    ProductQuery,
    ResponseNormalizer,
)
from service_storefront.app.pricing import ExchangeRateCache

PROXY_PREFIX = "/shopify-proxy"

_FAILURE_MESSAGES = {
    "products": "Failed to fetch products from marketplace",
    "on_sale": "Failed to fetch on-sale products",
    "product": "Failed to fetch product",
    "categories": "Failed to fetch categories",
    "brands": "Failed to fetch brands",
}


class StorefrontGatewayService(BaseService):
    """Gateway service wiring for the storefront app proxy."""

    def __init__(
        self,
        config: Optional[GatewayConfig] = None,
        *,
        marketplace_transport: Optional[httpx.AsyncBaseTransport] = None,
        exchange_rate_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        config = config or get_config()
        super().__init__(config.service_name, config)

        self.credential_issuer = CredentialIssuer(
            config.marketplace_access_key,
            config.marketplace_secret_key,
            lifetime_seconds=config.credential_lifetime_seconds,
            metrics=self.metrics,
        )
        self.marketplace_client = MarketplaceClient(
            config.marketplace_api_url,
            self.credential_issuer,
            timeout=config.marketplace_timeout,
            transport=marketplace_transport,
            metrics=self.metrics,
        )
        self.exchange_rate_client = ExchangeRateClient(
            config.exchange_rate_url,
            config.target_currency,
            timeout=config.exchange_rate_timeout,
            transport=exchange_rate_transport,
            metrics=self.metrics,
        )
        self.exchange_rates = ExchangeRateCache(
            self.exchange_rate_client,
            fallback_rate=config.fallback_exchange_rate,
            ttl_seconds=config.exchange_rate_ttl,
            failure_backoff_seconds=config.exchange_rate_failure_backoff,
            metrics=self.metrics,
        )
        self.cache = TTLCache(
            config.cache_products_ttl,
            sweep_interval=config.cache_sweep_interval,
            sweep_grace=config.cache_sweep_grace,
            metrics=self.metrics,
        )
        self.catalog = CatalogService(
            self.marketplace_client,
            self.cache,
            self.exchange_rates,
            ResponseNormalizer(
                markup=config.price_markup,
                target_currency=config.target_currency,
                source_currency=config.source_currency,
                product_url_template=config.product_url_template,
            ),
            ttls=CacheTTLs(
                products=config.cache_products_ttl,
                product_detail=config.cache_product_detail_ttl,
                categories=config.cache_categories_ttl,
            ),
            metrics=self.metrics,
        )
        self.app_proxy = AppProxyVerifier(
            config.app_proxy_secret,
            enabled=config.verify_app_proxy_signature,
        )

        @self.app.on_event("startup")
        async def _startup():
            self.credential_issuer.verify_setup()
            self.cache.start_sweeper()
            self.logger.info(
                "Storefront gateway started",
                environment=config.env,
                marketplace=config.marketplace_api_url,
            )

        @self.app.on_event("shutdown")
        async def _shutdown():
            await self.cache.stop_sweeper()
            await self.marketplace_client.close()
            await self.exchange_rate_client.close()

        self._setup_proxy_routes()
        self.app.state.storefront_service = self

    def _setup_proxy_routes(self):
        """Set up storefront app-proxy routes."""
        verified = [Depends(self.app_proxy)]

        @self.app.get(f"{PROXY_PREFIX}/products", dependencies=verified)
        async def list_products(request: Request, response: Response):
            """Product list with marketplace filters."""
            query = ProductQuery.from_params(request.query_params)
            self.logger.info("Fetching products", params=query.to_upstream_params())
            result = await self._call("products", self.catalog.list_products(query))
            return self._envelope(result, response)

        @self.app.get(f"{PROXY_PREFIX}/products/on-sale", dependencies=verified)
        async def list_on_sale_products(response: Response):
            result = await self._call("on_sale", self.catalog.list_on_sale_products())
            return self._envelope(result, response)

        @self.app.get(f"{PROXY_PREFIX}/products/{{product_id}}", dependencies=verified)
        async def get_product(response: Response, product_id: str = Path(..., min_length=1)):
            self.logger.info("Fetching product", product_id=product_id)
            result = await self._call("product", self.catalog.get_product(product_id))
            return self._envelope(result, response)

        @self.app.get(f"{PROXY_PREFIX}/categories", dependencies=verified)
        async def list_categories(response: Response):
            result = await self._call("categories", self.catalog.list_categories())
            return self._envelope(result, response)

        @self.app.get(f"{PROXY_PREFIX}/brands", dependencies=verified)
        async def list_brands(response: Response):
            result = await self._call("brands", self.catalog.list_brands())
            return self._envelope(result, response)

        @self.app.get(f"{PROXY_PREFIX}/health")
        async def proxy_health():
            return {
                "success": True,
                "message": "Storefront proxy is running",
                "exchange_rate": self.exchange_rates.snapshot(),
                "cache": self.cache.get_stats(),
            }

        @self.app.get("/healthz")
        async def healthz():
            """Lightweight liveness endpoint with dependency status."""
            dependencies = await self._check_dependencies()
            status = "ok" if all(value == "ok" for value in dependencies.values()) else "degraded"
            return {"service": self.service_name, "status": status, "dependencies": dependencies}

    async def _call(self, endpoint: str, operation) -> CatalogResult:
        try:
            return await operation
        except UpstreamError as exc:
            exc.details.setdefault("endpoint", endpoint)
            raise

    def _envelope(self, result: CatalogResult, response: Response) -> Dict[str, Any]:
        response.headers["X-Cache"] = result.cache_status
        return {"success": True, "data": result.data}

    def _render_error(self, exc: GatewayError) -> JSONResponse:
        if isinstance(exc, NotFoundError) or (isinstance(exc, UpstreamError) and exc.is_not_found):
            resource = getattr(exc, "resource", "Resource")
            return JSONResponse(
                status_code=404,
                content={"success": False, "error": f"{resource} not found"},
            )

        if isinstance(exc, UpstreamError):
            endpoint = exc.details.get("endpoint", "products")
            expose = self.config.expose_upstream_errors
            return JSONResponse(
                status_code=500,
                content={
                    "success": False,
                    "error": _FAILURE_MESSAGES.get(endpoint, "Upstream request failed"),
                    "message": exc.message if expose else "Upstream marketplace request failed",
                },
            )

        if exc.status_code >= 500:
            return JSONResponse(
                status_code=500,
                content={"success": False, "error": "Internal Server Error", "message": exc.message},
            )
        return super()._render_error(exc)

    async def _check_dependencies(self) -> Dict[str, str]:
        """Report pipeline readiness without calling upstream services."""
        rate = self.exchange_rates.snapshot()
        return {
            "credentials": "ok" if self.credential_issuer.available else "error",
            "exchange_rate": "fallback" if rate["using_fallback"] else "ok",
            "cache": "ok",
        }


def create_app(config: Optional[GatewayConfig] = None, **transports):
    """Create FastAPI application."""
    service = StorefrontGatewayService(config, **transports)
    return service.app


if __name__ == "__main__":
    service = StorefrontGatewayService()
    service.run()
