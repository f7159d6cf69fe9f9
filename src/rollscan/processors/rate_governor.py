"""
Global request throttle shared by every concurrent chunk task.
"""

import asyncio
from typing import Awaitable, Callable, Optional

import structlog

logger = structlog.get_logger(__name__)

Sleeper = Callable[[float], Awaitable[None]]


class RateGovernor:
    """
    Counts service attempts across the whole run and pauses every Nth one.

    The counter is only touched inside ``_lock``; the pause happens outside it.
    """

    def __init__(
        self,
        requests_before_break: int,
        break_duration_ms: int,
        sleep: Optional[Sleeper] = None,
    ):
        self.requests_before_break = requests_before_break
        self.break_duration_ms = max(0, break_duration_ms)
        self._sleep = sleep or asyncio.sleep
        self._count = 0
        self._lock = asyncio.Lock()

    @property
    def request_count(self) -> int:
        return self._count

    async def _increment(self) -> int:
        async with self._lock:
            self._count += 1
            return self._count

    def _should_pause(self, count: int) -> bool:
        if self.requests_before_break <= 0:
            return False
        return count % self.requests_before_break == 0

    async def before_each_attempt(self) -> bool:
        """
        Register one attempt and pause if it lands on the threshold.

        Returns:
            True if this call paused
        """
        count = await self._increment()
        if self.break_duration_ms <= 0 or not self._should_pause(count):
            return False

        logger.warning(
            "Rate limit reached, taking a break",
            request_count=count,
            break_seconds=self.break_duration_ms / 1000,
        )
        await self._sleep(self.break_duration_ms / 1000)
        logger.info("Break completed, resuming processing")
        return True
