"""
In-process TTL cache with stale-on-error retrieval.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, TYPE_CHECKING

from shared.errors import CacheError, ConfigurationError
from shared.logging import get_logger

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


DEFAULT_TTL = 300
DEFAULT_SWEEP_INTERVAL = 120.0
DEFAULT_SWEEP_GRACE = 60.0


class CacheStatus(Enum):
    """Freshness of a cache lookup."""
    FRESH = "fresh"
    STALE = "stale"
    MISS = "miss"


@dataclass
class CacheEntry:
    """A stored value and the bookkeeping needed to age it."""

    key: str
    value: Any
    stored_at: float
    ttl_seconds: float

    def age(self, now: float) -> float:
        return now - self.stored_at

    def is_fresh(self, now: float) -> bool:
        return self.age(now) < self.ttl_seconds


@dataclass(frozen=True)
class CacheLookup:
    """Outcome of a cache read; always says whether the value is fresh."""

    status: CacheStatus
    value: Any = None
    age_seconds: Optional[float] = None

    @property
    def hit(self) -> bool:
        return self.status is CacheStatus.FRESH

    @property
    def found(self) -> bool:
        return self.status is not CacheStatus.MISS

    @property
    def stale(self) -> bool:
        return self.status is CacheStatus.STALE

    @classmethod
    def miss(cls) -> "CacheLookup":
        return cls(CacheStatus.MISS)


class TTLCache:
    """Key/value store with per-entry TTL and an ignore-TTL accessor.

    Expired entries are kept until overwritten, deleted or swept so the
    fallback path can still serve them after an upstream failure. The sweep
    only drops entries older than ``ttl + sweep_grace``.
    """

    def __init__(
        self,
        default_ttl: float = DEFAULT_TTL,
        *,
        sweep_interval: float = DEFAULT_SWEEP_INTERVAL,
        sweep_grace: float = DEFAULT_SWEEP_GRACE,
        clock: Callable[[], float] = time.monotonic,
        metrics: Optional["MetricsCollector"] = None,
        name: str = "products",
    ):
        if sweep_interval <= sweep_grace:
            raise ConfigurationError(
                "Cache sweep interval must exceed the sweep grace window",
                details={"sweep_interval": sweep_interval, "sweep_grace": sweep_grace},
            )

        self.default_ttl = default_ttl
        self.sweep_interval = sweep_interval
        self.sweep_grace = sweep_grace
        self.clock = clock
        self.metrics = metrics
        self.name = name
        self.logger = get_logger("storefront.cache")

        self._entries: Dict[str, CacheEntry] = {}
        self._sweeper: Optional[asyncio.Task] = None
        self._stats = {"hits": 0, "misses": 0, "stale_hits": 0, "sets": 0, "swept": 0}

        self.logger.info(
            "Cache initialized",
            cache=name,
            default_ttl=default_ttl,
            sweep_interval=sweep_interval,
        )

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def _entry(self, key: str) -> Optional[CacheEntry]:
        if not isinstance(key, str) or not key:
            raise CacheError("Cache keys must be non-empty strings", details={"key": repr(key)})
        return self._entries.get(key)

    def get(self, key: str) -> CacheLookup:
        """Return a fresh value or a miss. Never raises."""
        try:
            entry = self._entry(key)
            now = self.clock()
            if entry is not None and entry.is_fresh(now):
                self._stats["hits"] += 1
                self.logger.debug("Cache HIT", key=key)
                return CacheLookup(CacheStatus.FRESH, entry.value, entry.age(now))
        except Exception as exc:
            self.logger.error("Cache get error", key=repr(key), error=str(exc))

        self._stats["misses"] += 1
        self.logger.debug("Cache MISS", key=key)
        return CacheLookup.miss()

    def get_ignoring_ttl(self, key: str) -> CacheLookup:
        """Return the last stored value even if expired.

        Only the fallback path should call this; STALE distinguishes an
        expired entry from an absent one (MISS).
        """
        try:
            entry = self._entry(key)
        except Exception as exc:
            self.logger.error("Cache fallback get error", key=repr(key), error=str(exc))
            return CacheLookup.miss()

        if entry is None:
            return CacheLookup.miss()

        now = self.clock()
        if entry.is_fresh(now):
            return CacheLookup(CacheStatus.FRESH, entry.value, entry.age(now))

        self._stats["stale_hits"] += 1
        return CacheLookup(CacheStatus.STALE, entry.value, entry.age(now))

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> bool:
        """Store ``value``; overwriting replaces both value and expiry."""
        try:
            self._entry(key)
            ttl_seconds = self.default_ttl if ttl is None else ttl
            if ttl_seconds <= 0:
                raise CacheError("TTL must be positive", details={"ttl": ttl_seconds})

            self._entries[key] = CacheEntry(
                key=key,
                value=value,
                stored_at=self.clock(),
                ttl_seconds=ttl_seconds,
            )
            self._stats["sets"] += 1
            self.logger.debug("Cache SET", key=key, ttl=ttl_seconds)
            return True
        except Exception as exc:
            self.logger.error("Cache set error", key=repr(key), error=str(exc))
            return False

    def delete(self, key: str) -> int:
        removed = self._entries.pop(key, None)
        self.logger.debug("Cache DEL", key=key, removed=removed is not None)
        return 1 if removed is not None else 0

    def flush_all(self) -> None:
        self._entries.clear()
        self.logger.info("Cache flushed", cache=self.name)

    def sweep(self) -> int:
        """Drop entries older than their TTL plus the grace window."""
        now = self.clock()
        expired = [
            key for key, entry in self._entries.items()
            if entry.age(now) >= entry.ttl_seconds + self.sweep_grace
        ]
        for key in expired:
            del self._entries[key]

        if expired:
            self._stats["swept"] += len(expired)
            self.logger.debug("Cache sweep removed entries", count=len(expired))
        return len(expired)

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            try:
                self.sweep()
            except Exception as exc:
                self.logger.error("Cache sweep failed", error=str(exc))

    def start_sweeper(self) -> None:
        """Start the periodic sweep on the running event loop."""
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.get_running_loop().create_task(self._sweep_loop())
            self.logger.info("Cache sweeper started", interval=self.sweep_interval)

    async def stop_sweeper(self) -> None:
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None
        self.logger.info("Cache sweeper stopped")

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        return {
            "cache": self.name,
            "keys": len(self._entries),
            "sweeper_running": self._sweeper is not None and not self._sweeper.done(),
            **self._stats,
        }
