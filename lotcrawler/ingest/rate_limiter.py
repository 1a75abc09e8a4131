"""Randomized throttling between listing page requests."""

import asyncio
import logging
import random
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class PageThrottle:
    """Waits a uniformly random interval between consecutive page requests."""

    def __init__(
        self,
        min_interval: float,
        max_interval: float,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ):
        if max_interval < min_interval:
            raise ValueError("max_interval must be >= min_interval")
        self.min_interval = min_interval
        self.max_interval = max_interval
        self._sleep = sleep
        self._rng = rng or random.Random()

    def next_interval(self) -> float:
        return self.min_interval + self._rng.random() * (self.max_interval - self.min_interval)

    async def wait(self) -> float:
        """Sleep for one interval and return its length in seconds."""
        interval = self.next_interval()
        if interval > 0:
            logger.debug(f"Waiting {interval:.2f}s before next page")
            await self._sleep(interval)
        return interval
