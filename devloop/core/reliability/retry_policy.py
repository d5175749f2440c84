"""
Retry policy — when and how long to wait before re-running a failed batch.

The dev loop retries packaging forever on a fixed delay: the usual cause
is a developer mid-edit, and the next pass fixes itself.  Embedders and
tests can bound the retries, shorten the delay, or swap the sleep.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

DEFAULT_RETRY_DELAY = 10.0

Sleep = Callable[[float], Awaitable[None]]


@dataclass
class RetryPolicy:
    """Fixed-delay retry, unbounded by default.

    Args:
        delay: Seconds to wait before the next attempt.
        sleep: Awaitable sleep, ``asyncio.sleep`` unless a test swaps it.
        max_retries: Retries allowed per run; None retries forever.
    """

    delay: float = DEFAULT_RETRY_DELAY
    sleep: Sleep = field(default=asyncio.sleep, repr=False)
    max_retries: int | None = None

    # ── Internal state ───────────────────────────────────────────
    attempts: int = 0

    def should_retry(self, retries: int) -> bool:
        """Whether a run that has already retried ``retries`` times goes again."""
        return self.max_retries is None or retries < self.max_retries

    async def wait(self) -> None:
        """Wait out the delay and count the attempt."""
        self.attempts += 1
        logger.debug("Retry #%d in %.1fs", self.attempts, self.delay)
        await self.sleep(self.delay)

    @property
    def delay_label(self) -> str:
        """Human form of the delay for the console (``10 seconds``)."""
        seconds = int(self.delay) if float(self.delay).is_integer() else self.delay
        return f"{seconds} second{'' if seconds == 1 else 's'}"
