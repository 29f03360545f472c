"""
Client-side request throttling for rate-limited ledger APIs.

Limits the number of requests in flight and enforces a minimum interval
between request starts, so a burst of calls is spread out instead of being
rejected by the upstream API.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import TypeVar

T = TypeVar("T")


class RequestThrottle:
    """
    Async request throttle.

    Configuration:
    - min_interval: minimum seconds between two request starts
    - max_concurrent: maximum requests in flight (default: 1)
    """

    def __init__(self, min_interval: float, max_concurrent: int = 1):
        self.min_interval = min_interval
        self.max_concurrent = max_concurrent
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._lock = asyncio.Lock()
        self._last_start: float | None = None
        self.total_scheduled = 0

    async def _wait_for_slot(self) -> None:
        async with self._lock:
            now = time.monotonic()
            if self._last_start is not None:
                delay = self._last_start + self.min_interval - now
                if delay > 0:
                    await asyncio.sleep(delay)
            self._last_start = time.monotonic()
            self.total_scheduled += 1

    async def schedule(self, func: Callable[[], Awaitable[T]]) -> T:
        """Run ``func`` once a slot is free and the interval has elapsed."""
        async with self._semaphore:
            await self._wait_for_slot()
            return await func()

    def reset(self) -> None:
        """Forget the last request start time."""
        self._last_start = None
