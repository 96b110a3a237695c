"""
Pricing helpers: the shared exchange rate used to convert marketplace prices.
"""

from .exchange_rate import ExchangeRateCache

__all__ = ["ExchangeRateCache"]
