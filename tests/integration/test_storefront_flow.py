"""
Integration tests for the storefront gateway request flow.

The service is wired exactly as in production; only the outbound HTTP
transports are replaced.
"""

import asyncio

import httpx
import pytest
from jose import jwt

from service_storefront.app.main import PROXY_PREFIX, StorefrontGatewayService
from shared.config import get_config
from shared.test_helpers import (
    RecordingTransport,
    TEST_ACCESS_KEY,
    TEST_SECRET_BYTES,
    TestDataFactory,
    json_response,
    make_test_config,
)


class SlowMarketplace:
    """Marketplace stand-in that holds responses until released."""

    def __init__(self):
        self.requests = []
        self.release = asyncio.Event()
        self.fail = False

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        await self.release.wait()
        if self.fail:
            return json_response({"message": "maintenance"}, 503)
        return json_response(TestDataFactory.product_page())


class TestStorefrontFlow:
    """Integration tests for the full gateway pipeline."""

    @pytest.fixture
    def marketplace(self):
        return SlowMarketplace()

    @pytest.fixture
    def rates(self):
        return RecordingTransport(lambda request: json_response(TestDataFactory.rate_payload(0.0008)))

    @pytest.fixture
    async def service(self, marketplace, rates):
        service = StorefrontGatewayService(
            get_config(**make_test_config()),
            marketplace_transport=httpx.MockTransport(marketplace.handle),
            exchange_rate_transport=rates,
        )
        yield service
        await service.marketplace_client.close()
        await service.exchange_rate_client.close()

    @pytest.fixture
    async def client(self, service):
        transport = httpx.ASGITransport(app=service.app)
        async with httpx.AsyncClient(transport=transport, base_url="http://gateway.test") as client:
            yield client

    @pytest.mark.asyncio
    async def test_concurrent_requests_share_upstream_call_and_rate(self, client, marketplace, rates):
        """Test a burst of identical misses makes one marketplace and one rate call."""
        waiters = [
            asyncio.create_task(client.get(f"{PROXY_PREFIX}/products", params={"size": "24"}))
            for _ in range(6)
        ]
        await asyncio.sleep(0.05)
        marketplace.release.set()
        responses = await asyncio.gather(*waiters)

        assert all(response.status_code == 200 for response in responses)
        assert len(marketplace.requests) == 1
        assert len(rates.requests) == 1
        prices = {response.json()["data"]["products"][0]["price"] for response in responses}
        assert prices == {8.8}

    @pytest.mark.asyncio
    async def test_every_marketplace_call_carries_fresh_credential(self, client, marketplace):
        """Test credentials are verifiable and never reused across calls."""
        marketplace.release.set()

        await client.get(f"{PROXY_PREFIX}/products", params={"q": "a"})
        await client.get(f"{PROXY_PREFIX}/products", params={"q": "b"})

        nonces = set()
        for request in marketplace.requests:
            token = request.headers["Authorization"].split(" ", 1)[1]
            claims = jwt.decode(token, TEST_SECRET_BYTES, algorithms=["HS256"])
            assert claims["accessKey"] == TEST_ACCESS_KEY
            nonces.add(claims["nonce"])
        assert len(nonces) == 2

    @pytest.mark.asyncio
    async def test_outage_after_expiry_serves_stale(self, client, marketplace, service):
        """Test the last good page survives a marketplace outage."""
        marketplace.release.set()
        fresh = await client.get(f"{PROXY_PREFIX}/products")

        for key in list(service.cache._entries):
            service.cache._entries[key].stored_at -= 1000
        marketplace.fail = True
        stale = await client.get(f"{PROXY_PREFIX}/products")

        assert stale.headers["X-Cache"] == "STALE"
        assert stale.json() == fresh.json()

    @pytest.mark.asyncio
    async def test_outage_without_cache_fails(self, client, marketplace):
        marketplace.release.set()
        marketplace.fail = True

        response = await client.get(f"{PROXY_PREFIX}/products")

        assert response.status_code == 500
        assert response.json()["success"] is False
