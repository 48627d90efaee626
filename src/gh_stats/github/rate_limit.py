"""GitHub API rate limit tracking."""

from __future__ import annotations

import asyncio
import logging
import time

import httpx

logger = logging.getLogger(__name__)


class RateLimitMonitor:
    """Sleep until the rate limit window resets once remaining calls run low."""

    def __init__(self, threshold: int = 10) -> None:
        self.threshold = threshold
        self._remaining: int | None = None
        self._reset_at: float | None = None
        self._lock = asyncio.Lock()

    def update(self, response: httpx.Response) -> None:
        remaining = response.headers.get("X-RateLimit-Remaining")
        reset = response.headers.get("X-RateLimit-Reset")
        if remaining is not None:
            try:
                self._remaining = int(remaining)
            except ValueError:
                self._remaining = None
        if reset is not None:
            try:
                self._reset_at = float(reset)
            except ValueError:
                self._reset_at = None

    async def wait_if_needed(self) -> None:
        async with self._lock:
            if self._remaining is None or self._reset_at is None:
                return
            if self._remaining > self.threshold:
                return
            delay = max(0.0, self._reset_at - time.time()) + 1
            logger.warning(
                "GitHub rate limit nearly exhausted (%d left); sleeping %.0fs",
                self._remaining,
                delay,
            )
            await asyncio.sleep(delay)
            self._remaining = None
