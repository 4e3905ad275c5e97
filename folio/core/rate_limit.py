"""Rolling-window request counter used to throttle upstream calls."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60.0


@dataclass
class RateLimiterState:
    window_start: float
    request_count: int = 0


class RateLimiter:
    """
    Cooperative in-process throttle: at most ``max_requests`` per window.

    When the budget for the current window is spent, ``acquire`` suspends the
    calling task until the window resets. Nothing is coordinated across
    processes.
    """

    def __init__(
        self,
        max_requests: int,
        window: float = WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        self._max_requests = max_requests
        self._window = window
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self.state = RateLimiterState(window_start=clock())

    async def acquire(self) -> None:
        """Take one unit of budget, waiting for the next window if needed."""
        async with self._lock:
            now = self._clock()
            if now > self.state.window_start + self._window:
                self._reset(now)

            if self.state.request_count >= self._max_requests:
                wait = self.state.window_start + self._window - now
                logger.warning(
                    "Rate limit reached (%d requests); waiting %.2fs for window reset",
                    self.state.request_count,
                    wait,
                )
                if wait > 0:
                    await self._sleep(wait)
                self._reset(self._clock())

            self.state.request_count += 1

    def _reset(self, now: float) -> None:
        self.state.window_start = now
        self.state.request_count = 0
