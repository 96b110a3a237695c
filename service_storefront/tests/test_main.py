"""
Unit tests for the storefront gateway service.
"""

import httpx
import pytest
from fastapi.testclient import TestClient

from service_storefront.app.auth import AppProxyVerifier, compute_signature
from service_storefront.app.main import PROXY_PREFIX, StorefrontGatewayService, create_app
from shared.config import get_config
from shared.errors import AuthenticationError, ConfigurationError
from shared.test_helpers import FakeClock, RecordingTransport, TestDataFactory, json_response, make_test_config

PROXY_SECRET = "app-proxy-secret"


def marketplace_handler(request: httpx.Request) -> httpx.Response:
    path = request.url.path
    if path == "/api/v1/products/missing":
        return json_response({"message": "Product not found"}, 404)
    if path.startswith("/api/v1/products/") and path != "/api/v1/products/on-sale":
        return json_response({"data": TestDataFactory.raw_product(path.rsplit("/", 1)[-1])})
    if path == "/api/v1/categories":
        return json_response({"data": [{"id": "320", "name": "Outerwear"}]})
    if path == "/api/v1/brands":
        return json_response({"data": [{"id": 1288, "name": "Levi's"}]})
    return json_response(TestDataFactory.product_page())


def failing_handler(request: httpx.Request) -> httpx.Response:
    return json_response({"message": "internal failure at db-7"}, 500)


def rate_handler(request: httpx.Request) -> httpx.Response:
    return json_response(TestDataFactory.rate_payload(0.00074))


def build_service(handler=marketplace_handler, **overrides):
    transport = RecordingTransport(handler)
    service = StorefrontGatewayService(
        get_config(**make_test_config(**overrides)),
        marketplace_transport=transport,
        exchange_rate_transport=httpx.MockTransport(rate_handler),
    )
    return service, transport


class TestStorefrontGatewayService:
    """Test cases for StorefrontGatewayService."""

    @pytest.fixture
    def service_and_transport(self):
        return build_service()

    @pytest.fixture
    def client(self, service_and_transport):
        """Create test client."""
        service, _ = service_and_transport
        return TestClient(service.app)

    def test_products_envelope_and_cache_header(self, client, service_and_transport):
        """Test the success envelope and X-Cache MISS then HIT."""
        _, transport = service_and_transport

        first = client.get(f"{PROXY_PREFIX}/products", params={"q": "jacket"})
        second = client.get(f"{PROXY_PREFIX}/products", params={"q": "jacket"})

        assert first.status_code == 200
        assert first.headers["X-Cache"] == "MISS"
        assert second.headers["X-Cache"] == "HIT"
        body = first.json()
        assert body["success"] is True
        assert body["data"]["products"][0]["price"] == 8.14
        assert body["data"]["pagination"]["cursor"] == "c2"
        assert len(transport.requests) == 1
        assert transport.requests[0].headers["Authorization"].startswith("Bearer ")

    def test_on_sale_route_not_shadowed_by_detail(self, client, service_and_transport):
        _, transport = service_and_transport

        response = client.get(f"{PROXY_PREFIX}/products/on-sale")

        assert response.status_code == 200
        assert transport.requests[0].url.path == "/api/v1/products/on-sale"

    def test_product_detail(self, client):
        response = client.get(f"{PROXY_PREFIX}/products/354957625")

        assert response.status_code == 200
        assert response.json()["data"]["product"]["id"] == "354957625"

    def test_product_not_found(self, client):
        """Test upstream 404 maps to the not-found envelope."""
        response = client.get(f"{PROXY_PREFIX}/products/missing")

        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "Product not found"}

    def test_categories_and_brands(self, client):
        assert client.get(f"{PROXY_PREFIX}/categories").json()["data"]["categories"][0]["id"] == "320"
        assert client.get(f"{PROXY_PREFIX}/brands").json()["data"]["brands"][0]["name"] == "Levi's"

    def test_invalid_sort_rejected(self, client, service_and_transport):
        _, transport = service_and_transport

        response = client.get(f"{PROXY_PREFIX}/products", params={"sort": "random"})

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"
        assert transport.requests == []

    @pytest.mark.parametrize("value", ["inf", "-inf", "1e400", "nan"])
    def test_non_finite_query_numbers_ignored(self, client, service_and_transport, value):
        """Test non-finite prices and sizes are dropped instead of failing the request."""
        _, transport = service_and_transport

        response = client.get(
            f"{PROXY_PREFIX}/products",
            params={"minPrice": value, "maxPrice": value, "size": value},
        )

        assert response.status_code == 200
        forwarded = transport.requests[0].url.params
        assert "minPrice" not in forwarded
        assert "maxPrice" not in forwarded
        assert forwarded["size"] == "12"

    def test_upstream_failure_message_scrubbed(self):
        """Test upstream details are hidden by default."""
        service, _ = build_service(failing_handler)
        client = TestClient(service.app)

        response = client.get(f"{PROXY_PREFIX}/products")

        assert response.status_code == 500
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "Failed to fetch products from marketplace"
        assert "db-7" not in response.text

    def test_upstream_failure_message_exposed_when_configured(self):
        service, _ = build_service(failing_handler, expose_upstream_errors=True)
        client = TestClient(service.app)

        response = client.get(f"{PROXY_PREFIX}/categories")

        assert response.status_code == 500
        assert response.json()["error"] == "Failed to fetch categories"
        assert "500" in response.json()["message"]

    def test_stale_served_after_upstream_failure(self):
        """Test an expired entry is served with X-Cache STALE."""
        outage = {"active": False}

        def handler(request):
            return failing_handler(request) if outage["active"] else marketplace_handler(request)

        service, _ = build_service(handler)
        clock = FakeClock(0.0)
        service.cache.clock = clock
        client = TestClient(service.app)

        fresh = client.get(f"{PROXY_PREFIX}/products")
        clock.advance(301)
        outage["active"] = True
        stale = client.get(f"{PROXY_PREFIX}/products")

        assert stale.status_code == 200
        assert stale.headers["X-Cache"] == "STALE"
        assert stale.json()["data"] == fresh.json()["data"]

    def test_missing_credentials_fail_requests(self):
        """Test signing unavailability returns 500 without calling upstream."""
        service, transport = build_service(marketplace_secret_key=None)
        client = TestClient(service.app)

        response = client.get(f"{PROXY_PREFIX}/products")

        assert response.status_code == 500
        assert response.json()["error"] == "Internal Server Error"
        assert transport.requests == []

    def test_missing_credentials_fail_startup(self):
        """Test startup refuses to serve without signing material."""
        service, _ = build_service(marketplace_access_key=None)

        with pytest.raises(ConfigurationError):
            with TestClient(service.app):
                pass

    def test_startup_and_shutdown(self):
        service, _ = build_service()

        with TestClient(service.app) as client:
            assert client.get(f"{PROXY_PREFIX}/health").json()["cache"]["sweeper_running"] is True

        assert service.cache.get_stats()["sweeper_running"] is False

    def test_proxy_health(self, client):
        response = client.get(f"{PROXY_PREFIX}/health")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["exchange_rate"]["using_fallback"] is True
        assert "keys" in body["cache"]

    def test_health_endpoints(self, client):
        health = client.get("/health").json()
        healthz = client.get("/healthz").json()

        assert health["status"] == "ok"
        assert health["dependencies"]["credentials"] == "ok"
        assert healthz["status"] == "degraded"
        assert healthz["dependencies"]["exchange_rate"] == "fallback"

    def test_healthz_ok_after_rate_refresh(self, client):
        client.get(f"{PROXY_PREFIX}/products")

        assert client.get("/healthz").json()["status"] == "ok"

    def test_metrics_endpoint(self, client):
        client.get(f"{PROXY_PREFIX}/products")

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "cache_lookups_total" in response.text
        assert "credentials_issued_total" in response.text

    def test_request_id_echoed(self, client):
        response = client.get(f"{PROXY_PREFIX}/health", headers={"X-Request-ID": "req-123"})

        assert response.headers["X-Request-ID"] == "req-123"

    def test_create_app(self):
        app = create_app(
            get_config(**make_test_config()),
            marketplace_transport=httpx.MockTransport(marketplace_handler),
        )

        assert app.state.storefront_service.service_name == "storefront"


class TestAppProxyVerification:
    """Test cases for app-proxy signature verification."""

    @pytest.fixture
    def client(self):
        service, _ = build_service(verify_app_proxy_signature=True, app_proxy_secret=PROXY_SECRET)
        return TestClient(service.app)

    def test_missing_signature_rejected(self, client):
        response = client.get(f"{PROXY_PREFIX}/categories", params={"shop": "demo.myshopify.com"})

        assert response.status_code == 401
        assert response.json()["message"] == "Missing HMAC signature"

    def test_invalid_signature_rejected(self, client):
        response = client.get(
            f"{PROXY_PREFIX}/categories",
            params={"shop": "demo.myshopify.com", "signature": "0" * 64},
        )

        assert response.status_code == 401
        assert response.json()["code"] == "AUTHENTICATION_ERROR"

    def test_valid_signature_accepted(self, client):
        params = {"shop": "demo.myshopify.com", "path_prefix": "/apps/store", "timestamp": "1700000000"}
        params["signature"] = compute_signature(params, PROXY_SECRET)

        response = client.get(f"{PROXY_PREFIX}/categories", params=params)

        assert response.status_code == 200

    def test_enabled_without_secret_is_configuration_error(self):
        with pytest.raises(ConfigurationError):
            build_service(verify_app_proxy_signature=True, app_proxy_secret=None)

    def test_non_ascii_signature_rejected(self, client):
        """Test a signature with non-ASCII characters is an authentication failure."""
        response = client.get(
            f"{PROXY_PREFIX}/categories",
            params={"shop": "demo.myshopify.com", "signature": "é" * 64},
        )

        assert response.status_code == 401
        assert response.json()["message"] == "Invalid HMAC signature"

    @pytest.mark.parametrize("signature", ["é", "ü" * 64, "签名"])
    def test_verify_non_ascii_signature(self, signature):
        verifier = AppProxyVerifier(PROXY_SECRET, enabled=True)

        with pytest.raises(AuthenticationError) as exc_info:
            verifier.verify({"shop": "demo.myshopify.com", "signature": signature})
        assert exc_info.value.message == "Invalid HMAC signature"
