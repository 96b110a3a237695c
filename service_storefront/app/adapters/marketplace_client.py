"""
Marketplace API client for the storefront gateway.
"""

import time
from typing import Any, Dict, Optional, TYPE_CHECKING

import httpx

from shared.errors import UpstreamError
from shared.logging import get_logger

from service_storefront.app.auth.credentials import CredentialIssuer

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector

SERVICE_NAME = "marketplace"


class MarketplaceClient:
    """Read-only client for the marketplace product API.

    Every request carries a freshly issued credential. Requests are
    attempted once; failures surface as ``UpstreamError`` so the caller can
    fall back to cached data.
    """

    def __init__(
        self,
        base_url: str,
        issuer: CredentialIssuer,
        *,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.base_url = base_url.rstrip('/')
        self.issuer = issuer
        self.metrics = metrics
        self.logger = get_logger("storefront.marketplace_client")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={"Content-Type": "application/json", "Accept": "application/json"},
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def get_products(self, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Fetch a page of products; ``params`` follow the marketplace query names."""
        return await self._request("GET", "/api/v1/products", params=params)

    async def get_on_sale_products(self) -> Dict[str, Any]:
        return await self._request("GET", "/api/v1/products/on-sale")

    async def get_product(self, product_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/api/v1/products/{product_id}")

    async def get_categories(self) -> Dict[str, Any]:
        return await self._request("GET", "/api/v1/categories")

    async def get_brands(self) -> Dict[str, Any]:
        return await self._request("GET", "/api/v1/brands")

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Issue one signed request. SigningError propagates unchanged."""
        credential = self.issuer.issue(method)
        headers = {"Authorization": credential.authorization_header}

        start = time.perf_counter()
        outcome = "error"
        try:
            try:
                response = await self._client.request(method, path, params=params, headers=headers)
            except httpx.TimeoutException as exc:
                outcome = "timeout"
                self.logger.error("Marketplace request timed out", method=method, path=path)
                raise UpstreamError(SERVICE_NAME, "request timed out", details={"path": path}) from exc
            except httpx.HTTPError as exc:
                self.logger.error("Marketplace transport error", method=method, path=path, error=str(exc))
                raise UpstreamError(SERVICE_NAME, str(exc) or exc.__class__.__name__, details={"path": path}) from exc

            if response.is_success:
                try:
                    data = response.json()
                except ValueError as exc:
                    self.logger.error("Marketplace returned malformed JSON", path=path)
                    raise UpstreamError(
                        SERVICE_NAME,
                        "malformed response body",
                        status_code=response.status_code,
                        details={"path": path},
                    ) from exc
                if not isinstance(data, dict):
                    self.logger.error("Marketplace returned a non-object body", path=path)
                    raise UpstreamError(
                        SERVICE_NAME,
                        "malformed response body",
                        status_code=response.status_code,
                        details={"path": path},
                    )
                outcome = "success"
                self.logger.debug("Marketplace response", status_code=response.status_code, path=path)
                return data

            outcome = "not_found" if response.status_code == 404 else "error"
            self.logger.error(
                "Marketplace request failed",
                method=method,
                path=path,
                status_code=response.status_code,
                response=response.text[:500],
            )
            raise UpstreamError(
                SERVICE_NAME,
                f"Unexpected status {response.status_code}",
                status_code=response.status_code,
                details={"path": path, "body": response.text[:500]},
            )
        finally:
            if self.metrics:
                self.metrics.increment_counter("upstream_requests_total", service=SERVICE_NAME, outcome=outcome)
                self.metrics.observe_histogram(
                    "upstream_request_duration_seconds",
                    time.perf_counter() - start,
                    service=SERVICE_NAME,
                )
