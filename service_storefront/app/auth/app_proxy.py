"""
Storefront app-proxy request verification.
"""

from __future__ import annotations

import hashlib
import hmac
from typing import Mapping, Optional

from fastapi import Request

from shared.errors import AuthenticationError, ConfigurationError
from shared.logging import get_logger, set_shop_domain

SIGNATURE_PARAM = "signature"
SHOP_HEADER = "x-shopify-shop-domain"


def compute_signature(params: Mapping[str, str], secret: str) -> str:
    """Hex HMAC-SHA256 over the sorted ``key=value`` pairs joined by ``&``."""
    message = "&".join(
        f"{key}={params[key]}" for key in sorted(params) if key != SIGNATURE_PARAM
    )
    return hmac.new(secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).hexdigest()


class AppProxyVerifier:
    """Verifies the signature the storefront platform attaches to proxied requests."""

    def __init__(self, secret: Optional[str], *, enabled: bool = False) -> None:
        if enabled and not secret:
            raise ConfigurationError("App proxy verification enabled without a shared secret")
        self.secret = secret
        self.enabled = enabled
        self.logger = get_logger("storefront.app_proxy")

    def verify(self, params: Mapping[str, str]) -> None:
        signature = params.get(SIGNATURE_PARAM)
        if not signature:
            self.logger.warning("App proxy request without signature")
            raise AuthenticationError("Missing HMAC signature")

        expected = compute_signature(params, self.secret)
        if not hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8")):
            self.logger.warning("Invalid app proxy signature")
            raise AuthenticationError("Invalid HMAC signature")

    async def __call__(self, request: Request) -> Optional[str]:
        """FastAPI dependency: bind the shop domain and verify when enabled."""
        shop = request.query_params.get("shop") or request.headers.get(SHOP_HEADER)
        if shop:
            set_shop_domain(shop)
        else:
            self.logger.debug("No shop domain found in request")

        if self.enabled:
            self.verify(dict(request.query_params))
        return shop
