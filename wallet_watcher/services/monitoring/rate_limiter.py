"""Per-provider rate limiting.

Explorer rate limits are provider-wide, so every wallet served by the same
provider shares one ProviderLimiter. A limiter bounds concurrent fetches,
enforces a sliding one-minute request budget, and honours pauses requested
by the provider (HTTP 429).
"""

import asyncio
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Dict, List, Optional

import structlog

logger = structlog.get_logger()

WINDOW_SECONDS = 60.0


class ProviderLimiter:
    """Concurrency, request-rate and pause state for one provider."""

    def __init__(
        self,
        provider: str,
        max_concurrent: int = 1,
        requests_per_minute: int = 30,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.provider = provider
        self.max_concurrent = max_concurrent
        self.requests_per_minute = requests_per_minute
        self._clock = clock
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._request_times: List[float] = []
        self._paused_until: Optional[float] = None
        self.in_flight = 0

    @property
    def paused_for(self) -> float:
        """Seconds left on a provider-requested pause (0 when not paused)."""
        if self._paused_until is None:
            return 0.0
        return max(0.0, self._paused_until - self._clock())

    def pause(self, seconds: float) -> None:
        """Pause every fetch to this provider for ``seconds``. Never shortens an existing pause."""
        until = self._clock() + seconds
        if self._paused_until is None or until > self._paused_until:
            self._paused_until = until
            logger.warning("Provider paused", provider=self.provider, pause_seconds=round(seconds, 1))

    async def _wait_for_pause(self) -> None:
        while True:
            wait_time = self.paused_for
            if wait_time <= 0:
                self._paused_until = None
                return
            logger.info("Waiting for provider pause to end", provider=self.provider, wait_seconds=round(wait_time, 1))
            await asyncio.sleep(wait_time)

    async def _wait_for_budget(self) -> None:
        while True:
            now = self._clock()
            self._request_times = [t for t in self._request_times if now - t < WINDOW_SECONDS]
            if len(self._request_times) < self.requests_per_minute:
                self._request_times.append(now)
                return
            wait_time = WINDOW_SECONDS - (now - self._request_times[0])
            logger.warning("Provider rate budget reached, waiting", provider=self.provider, wait_seconds=round(wait_time, 1))
            await asyncio.sleep(max(wait_time, 0.01))

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        """Hold a fetch slot for this provider."""
        async with self._semaphore:
            await self._wait_for_pause()
            await self._wait_for_budget()
            self.in_flight += 1
            try:
                yield
            finally:
                self.in_flight -= 1

    def status(self) -> Dict[str, object]:
        return {
            "provider": self.provider,
            "max_concurrent": self.max_concurrent,
            "requests_per_minute": self.requests_per_minute,
            "in_flight": self.in_flight,
            "paused_for_seconds": round(self.paused_for, 1),
        }


class ProviderLimiters:
    """Lazily created ProviderLimiter per provider name."""

    def __init__(self, max_concurrent: int = 1, requests_per_minute: int = 30, clock: Callable[[], float] = time.monotonic):
        self.max_concurrent = max_concurrent
        self.requests_per_minute = requests_per_minute
        self._clock = clock
        self._limiters: Dict[str, ProviderLimiter] = {}

    def get(self, provider: str) -> ProviderLimiter:
        limiter = self._limiters.get(provider)
        if limiter is None:
            limiter = ProviderLimiter(
                provider,
                max_concurrent=self.max_concurrent,
                requests_per_minute=self.requests_per_minute,
                clock=self._clock,
            )
            self._limiters[provider] = limiter
        return limiter

    def status(self) -> List[Dict[str, object]]:
        return [limiter.status() for _, limiter in sorted(self._limiters.items())]
