from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import structlog

logger = structlog.get_logger(__name__)

Clock = Callable[[], float]
Sleeper = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RateLimitConfig:
    min_interval: float = 1.0  # seconds between consecutive calls

    @classmethod
    def from_ms(cls, rate_limit_ms: int) -> RateLimitConfig:
        return cls(min_interval=max(0, rate_limit_ms) / 1000.0)


class RateLimiter:
    """Min-interval gate shared by every caller of one source.

    The lock only guards reading and advancing the next free slot; the wait
    happens after the lock is released, so a sleeping caller never holds up
    the bookkeeping of the callers queued behind it.
    """

    def __init__(
        self,
        cfg: RateLimitConfig,
        clock: Clock = time.monotonic,
        sleep: Sleeper | None = None,
        name: str = "source",
    ) -> None:
        self.cfg = cfg
        self.name = name
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._last_call: float | None = None
        self._interrupted = asyncio.Event()

    @property
    def min_interval(self) -> float:
        return self.cfg.min_interval

    @property
    def last_call_at(self) -> float | None:
        return self._last_call

    @property
    def interrupted(self) -> bool:
        return self._interrupted.is_set()

    async def acquire(self) -> None:
        async with self._lock:
            now = self._clock()
            if self._last_call is None:
                slot = now
            else:
                slot = max(now, self._last_call + self.cfg.min_interval)
            self._last_call = slot

        delay = slot - now
        if delay > 0:
            logger.debug("rate_limit.wait", source=self.name, delay_ms=round(delay * 1000, 1))
            await self._wait(delay)

    def interrupt(self) -> None:
        """Release current and future waiters immediately (shutdown)."""
        self._interrupted.set()

    async def _wait(self, delay: float) -> None:
        if self._interrupted.is_set():
            logger.warning("rate_limit.wait_interrupted", source=self.name)
            return
        if self._sleep is not None:
            await self._sleep(delay)
            return
        try:
            await asyncio.wait_for(self._interrupted.wait(), timeout=delay)
        except (asyncio.TimeoutError, TimeoutError):
            return
        logger.warning("rate_limit.wait_interrupted", source=self.name)
