"""Clock and timer abstraction shared by the token and task managers.

All temporal behavior (token refresh, task timeouts, the cleanup sweep and
retry backoff) goes through a ``Scheduler`` so tests can substitute virtual
time for the running event loop.
"""

import asyncio
import time
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Protocol


class TimerHandle(Protocol):
    """A scheduled callback that can be cancelled before it fires."""

    def cancel(self) -> None:
        """Prevent the callback from running."""
        ...


class Scheduler:
    """Timers and clocks backed by the running asyncio event loop."""

    def now(self) -> datetime:
        """Return the current wall-clock time in UTC."""
        return datetime.now(UTC)

    def monotonic(self) -> float:
        """Return a monotonic timestamp in seconds."""
        return time.monotonic()

    def call_later(self, delay: float, callback: Callable[[], object]) -> TimerHandle:
        """Run ``callback`` after ``delay`` seconds; negative delays fire on the next loop iteration.

        Raises:
            RuntimeError: If called outside a running event loop.

        """
        loop = asyncio.get_running_loop()
        return loop.call_later(max(delay, 0.0), callback)

    async def sleep(self, delay: float) -> None:
        """Suspend the calling coroutine for ``delay`` seconds."""
        await asyncio.sleep(max(delay, 0.0))


__all__ = ["Scheduler", "TimerHandle"]
