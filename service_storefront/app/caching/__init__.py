"""
Gateway caching package.

Provides the in-process TTL cache that shields the storefront from
marketplace latency and outages, canonical cache keys, and single-flight
coalescing of concurrent misses.
"""

from .cache_keys import make_cache_key
from .single_flight import SingleFlight
from .ttl_cache import CacheEntry, CacheLookup, CacheStatus, TTLCache

__all__ = [
    "CacheEntry",
    "CacheLookup",
    "CacheStatus",
    "SingleFlight",
    "TTLCache",
    "make_cache_key",
]
