"""Shared fixtures: a virtual-time scheduler and a baseline configuration."""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import pytest

from restorepoint_mcp.config import AppConfig, RestorepointSettings
from restorepoint_mcp.scheduling import Scheduler

START_TIME = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)


@dataclass
class _ManualTimer:
    due: float
    callback: Callable[[], object]
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler(Scheduler):
    """Scheduler whose clock only moves when ``advance`` is called."""

    def __init__(self, start: datetime = START_TIME) -> None:
        self._start = start
        self._elapsed = 0.0
        self._timers: list[_ManualTimer] = []
        self.sleeps: list[float] = []

    def now(self) -> datetime:
        return self._start + timedelta(seconds=self._elapsed)

    def monotonic(self) -> float:
        return self._elapsed

    def call_later(self, delay: float, callback: Callable[[], object]) -> _ManualTimer:
        timer = _ManualTimer(self._elapsed + max(delay, 0.0), callback)
        self._timers.append(timer)
        return timer

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)
        self.advance(delay)

    @property
    def pending(self) -> int:
        """Return the number of armed, uncancelled timers."""
        return sum(1 for timer in self._timers if not timer.cancelled)

    def advance(self, seconds: float) -> None:
        """Move time forward, firing due timers in order."""
        target = self._elapsed + seconds
        while True:
            due = [t for t in self._timers if not t.cancelled and t.due <= target]
            if not due:
                break
            timer = min(due, key=lambda t: t.due)
            self._timers.remove(timer)
            self._elapsed = max(self._elapsed, timer.due)
            timer.callback()
        self._elapsed = target


@pytest.fixture
def scheduler() -> ManualScheduler:
    """Return a fresh virtual-time scheduler."""
    return ManualScheduler()


@pytest.fixture
def app_config() -> AppConfig:
    """Return a configuration pointing at a fake Restorepoint server."""
    return AppConfig(
        restorepoint=RestorepointSettings(
            server_url="https://rp.example.com",
            token="test-token",
            retry_attempts=3,
            retry_delay_ms=100,
        ),
    )
