"""
Per-key coalescing of concurrent identical operations.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Dict, TypeVar

from shared.logging import get_logger

T = TypeVar("T")


class SingleFlight:
    """Registry of in-flight operations keyed by cache key.

    The first caller for a key starts the operation; callers arriving while
    it runs await the same task and receive its result or exception. The
    task is shielded so a cancelled caller does not abort the shared call.
    """

    def __init__(self, name: str = "default") -> None:
        self.name = name
        self.logger = get_logger("storefront.single_flight")
        self._inflight: Dict[str, asyncio.Future] = {}

    def __len__(self) -> int:
        return len(self._inflight)

    def in_flight(self, key: str) -> bool:
        return key in self._inflight

    async def do(self, key: str, operation: Callable[[], Awaitable[T]]) -> T:
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(operation())
            self._inflight[key] = task
            task.add_done_callback(lambda done, key=key: self._forget(key, done))
        else:
            self.logger.debug("Joining in-flight operation", registry=self.name, key=key)

        return await asyncio.shield(task)

    def _forget(self, key: str, task: Any) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
