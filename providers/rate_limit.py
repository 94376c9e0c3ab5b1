"""Rate limiter for outbound remote sends."""

import asyncio
import time

from aiolimiter import AsyncLimiter
from loguru import logger


class SendRateLimiter:
    """
    Throttles outbound remote sends (proactive) using aiolimiter and pauses
    all sends after the remote platform reports a rate limit (reactive).

    Constructed once at startup and shared by the router; there is no
    process-wide instance.
    """

    def __init__(self, rate_limit: int = 20, rate_window: float = 60.0):
        self.limiter = AsyncLimiter(rate_limit, rate_window)
        self._blocked_until: float = 0
        logger.info(
            f"SendRateLimiter initialized ({rate_limit} req / {rate_window}s)"
        )

    async def wait_if_blocked(self) -> bool:
        """
        Wait if currently rate limited or throttle to meet quota.

        Returns:
            True if was reactively blocked and waited, False otherwise.
        """
        waited_reactively = False
        now = time.monotonic()
        if now < self._blocked_until:
            wait_time = self._blocked_until - now
            logger.warning(
                f"Remote send rate limit active (reactive), waiting {wait_time:.1f}s..."
            )
            await asyncio.sleep(wait_time)
            waited_reactively = True

        async with self.limiter:
            return waited_reactively

    def set_blocked(self, seconds: float = 60) -> None:
        """Block all sends for the given number of seconds."""
        self._blocked_until = time.monotonic() + seconds
        logger.warning(f"Remote send rate limit set for {seconds:.1f}s (reactive)")

    def is_blocked(self) -> bool:
        return time.monotonic() < self._blocked_until

    def remaining_wait(self) -> float:
        return max(0, self._blocked_until - time.monotonic())
