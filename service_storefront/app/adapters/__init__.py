"""
Adapters package for the storefront gateway.

Contains HTTP client wrappers for upstream dependencies (the marketplace
API and the exchange-rate provider). These adapters encapsulate:

- Base URLs, request shapes and timeouts
- Credential attachment for marketplace calls
- Error handling that maps to shared errors

Adapters attempt each call once; fallback decisions belong to the caller.
"""

from .exchange_rate_client import ExchangeRateClient, extract_rate
from .marketplace_client import MarketplaceClient

__all__ = [
    "ExchangeRateClient",
    "MarketplaceClient",
    "extract_rate",
]
