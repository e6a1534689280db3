"""
Rate Limiter module for the WordPress Remote Manager client.

This module provides per-client request spacing:
- Serial access control (no two dispatches race past the spacing check)
- Minimum interval between consecutive outgoing requests
- Injectable clock and sleep so spacing can be verified without real waits
"""

import asyncio
import time
from typing import Awaitable, Callable, Optional

from .audit_logger import AuditLogger
from .enums import LogLevel


Clock = Callable[[], float]
Sleeper = Callable[[float], Awaitable[None]]


class IntervalRateLimiter:
    """
    Enforces a minimum spacing between outgoing requests of one client.

    State is a single timestamp owned by the instance, so limiters of
    different sites never affect one another.
    """

    def __init__(
        self,
        interval_seconds: float = 1.0,
        clock: Clock = time.monotonic,
        sleep: Sleeper = asyncio.sleep,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        """
        Initialize the rate limiter.

        Args:
            interval_seconds: Minimum time between two request dispatches
            clock: Monotonic time source in seconds
            sleep: Awaitable sleep used to suspend the caller
            logger: Optional audit logger for wait diagnostics
        """
        self._interval = interval_seconds
        self._clock = clock
        self._sleep = sleep
        self._logger = logger
        # None means "never", so the first request does not wait
        self._last_request_time: Optional[float] = None
        self._lock = asyncio.Lock()
        self._wait_count = 0

    @property
    def interval_seconds(self) -> float:
        return self._interval

    @property
    def last_request_time(self) -> Optional[float]:
        return self._last_request_time

    @property
    def wait_count(self) -> int:
        """Number of dispatches that had to be delayed."""
        return self._wait_count

    def calculate_wait_time(self) -> float:
        """
        Calculate how long the next dispatch must wait.

        Returns:
            Seconds remaining until the interval since the last dispatch elapses
        """
        if self._last_request_time is None:
            return 0.0
        elapsed = self._clock() - self._last_request_time
        if elapsed >= self._interval:
            return 0.0
        return self._interval - elapsed

    async def wait_for_slot(self) -> float:
        """
        Suspend until a request may be dispatched, then claim the slot.

        The check, the wait and the timestamp update happen under one lock,
        so concurrent callers sharing the client are spaced as well.

        Returns:
            The number of seconds the caller was suspended
        """
        async with self._lock:
            wait_seconds = self.calculate_wait_time()
            if wait_seconds > 0:
                self._wait_count += 1
                if self._logger:
                    self._logger.log(
                        LogLevel.DEBUG,
                        "RateLimiter",
                        f"Rate limiting: waiting {wait_seconds * 1000:.0f}ms before next request",
                        {"wait_seconds": wait_seconds},
                    )
                await self._sleep(wait_seconds)
            self._last_request_time = self._clock()
            return wait_seconds
