"""Recurring background draft persistence."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Set

from .constants import DEFAULT_AUTO_SAVE_INTERVAL

logger = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[Any]]
TickFn = Callable[[], Awaitable[Any]]


class AutosaveScheduler:
    """Runs ``tick`` every ``interval_seconds`` until stopped.

    Each tick is launched as its own task so the period stays fixed even
    when a tick is slow; the tick itself is responsible for dropping work
    that would overlap a previous run. ``start`` and ``stop`` are idempotent
    and ``start`` always replaces a running timer, so at most one timer is
    live per scheduler. ``sleep`` can be replaced for deterministic tests.
    """

    def __init__(
        self,
        tick: TickFn,
        interval_seconds: float = DEFAULT_AUTO_SAVE_INTERVAL,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self._tick = tick
        self.interval_seconds = interval_seconds
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None
        self._inflight: Set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, interval_seconds: Optional[float] = None) -> None:
        """Arm the timer. Must be called from within a running event loop."""
        self.stop()
        if interval_seconds is not None:
            self.interval_seconds = interval_seconds
        self._task = asyncio.create_task(self._run_loop())
        logger.debug(f"Autosave armed every {self.interval_seconds}s")

    def stop(self) -> None:
        """Disarm the timer. Ticks already running are left to finish."""
        if self._task is None:
            return
        if not self._task.done():
            self._task.cancel()
            logger.debug("Autosave disarmed")
        self._task = None

    async def wait_idle(self) -> None:
        """Wait until every launched tick has finished."""
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    async def _run_loop(self) -> None:
        while True:
            await self._sleep(self.interval_seconds)
            task = asyncio.create_task(self._run_tick())
            self._inflight.add(task)
            task.add_done_callback(self._inflight.discard)

    async def _run_tick(self) -> None:
        try:
            await self._tick()
        except Exception as e:
            logger.exception(f"Error in autosave tick: {e}")
