"""Periodic scheduler for bridge cycles."""

import asyncio
from typing import Awaitable, Callable, Optional

import structlog

logger = structlog.get_logger(__name__)


class PeriodicScheduler:
    """
    Runs an async job on a fixed cadence until stopped.

    Jobs run sequentially and never overlap. Ticks that pass while a job is
    still running are dropped rather than queued. :meth:`stop` lets the
    in-flight job finish before :meth:`run` returns.

    Example:
        scheduler = PeriodicScheduler(interval_seconds=5.0)
        loop.add_signal_handler(signal.SIGTERM, scheduler.stop)
        await scheduler.run(pipeline.run_cycle)
    """

    def __init__(
        self,
        interval_seconds: float,
        run_immediately: bool = True,
        max_cycles: Optional[int] = None,
    ):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.interval_seconds = interval_seconds
        self.run_immediately = run_immediately
        self.max_cycles = max_cycles
        self.cycles_run = 0
        self.ticks_dropped = 0
        self._stopped = asyncio.Event()

    @property
    def stopped(self) -> bool:
        return self._stopped.is_set()

    def stop(self) -> None:
        """Request shutdown; safe to call from a signal handler."""
        if not self._stopped.is_set():
            logger.info("scheduler_stopping", cycles_run=self.cycles_run)
        self._stopped.set()

    async def _sleep_until(self, deadline: float) -> bool:
        """Wait until ``deadline`` (loop time). Returns False if stopped meanwhile."""
        delay = deadline - asyncio.get_running_loop().time()
        if delay <= 0:
            return not self.stopped
        try:
            await asyncio.wait_for(self._stopped.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return True
        return False

    async def run(self, job: Callable[[], Awaitable[object]]) -> int:
        """Run ``job`` every interval until stopped or ``max_cycles`` is reached.

        Returns:
            int: Number of cycles run
        """
        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        if not self.run_immediately:
            next_tick += self.interval_seconds

        logger.info("scheduler_started", interval_seconds=self.interval_seconds)

        while not self.stopped:
            if not await self._sleep_until(next_tick):
                break

            await job()
            self.cycles_run += 1

            if self.max_cycles is not None and self.cycles_run >= self.max_cycles:
                break

            next_tick += self.interval_seconds
            now = loop.time()
            if now > next_tick:
                missed = int((now - next_tick) // self.interval_seconds) + 1
                self.ticks_dropped += missed
                next_tick += missed * self.interval_seconds
                logger.warning("ticks_dropped", dropped=missed)

        logger.info("scheduler_stopped", cycles_run=self.cycles_run)
        return self.cycles_run
