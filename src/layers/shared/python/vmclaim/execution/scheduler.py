"""Cooperative one-shot timer for reconciliation ticks.

Only one timer is ever armed. The reconciler re-arms at the end of each tick,
so ticks never overlap and no locking is needed around instance state.
"""

import asyncio
from datetime import datetime, timedelta
from typing import Awaitable, Callable

import structlog

from vmclaim.execution.retry_policy import (
    RandomSource,
    RetryPolicy,
    compute_delay,
    compute_startup_delay,
)
from vmclaim.models.base import utc_now

logger = structlog.get_logger()

TickCallback = Callable[[], Awaitable[None]]


class RetryScheduler:
    """Arms, tracks and cancels the single pending tick timer.

    Example:
        scheduler = RetryScheduler(RetryPolicy())
        scheduler.schedule_first(reconciler.run_check)
        ...
        await scheduler.cancel()
    """

    def __init__(self, policy: RetryPolicy, rng: RandomSource | None = None):
        """Initialize the scheduler.

        Args:
            policy: Retry cadence.
            rng: Optional random source (tests inject a fixed one).
        """
        self.policy = policy
        self.rng = rng
        self.next_run_at: datetime | None = None
        self.closed = False
        self._pending: asyncio.Task | None = None
        self._inflight: asyncio.Task | None = None
        self.logger = logger.bind(service="scheduler")

    @property
    def armed(self) -> bool:
        """True while a timer is waiting to fire."""
        return self._pending is not None and not self._pending.done()

    def compute_delay(self) -> float:
        return compute_delay(self.policy, self.rng)

    def schedule_first(self, callback: TickCallback) -> float | None:
        """Arm the first tick, applying the optional startup jitter."""
        delay = compute_startup_delay(self.policy, self.rng)
        if delay > 0:
            self.logger.info("Delaying first check (startup jitter)", delay_seconds=round(delay, 1))
        return self._arm(delay, callback)

    def schedule_next(self, callback: TickCallback) -> float | None:
        """Arm a one-shot timer that invokes callback exactly once.

        Returns:
            The chosen delay in seconds, or None once the scheduler is closed.
        """
        delay = self._arm(self.compute_delay(), callback)
        if delay is not None:
            self.logger.info(
                "Next check scheduled",
                delay_seconds=round(delay, 1),
                next_run_at=self.next_run_at.isoformat(),
            )
        return delay

    def _arm(self, delay: float, callback: TickCallback) -> float | None:
        if self.closed:
            self.logger.info("Scheduler closed, not arming")
            return None
        if self.armed:
            self._pending.cancel()
        self.next_run_at = utc_now() + timedelta(seconds=delay)
        self._pending = asyncio.get_running_loop().create_task(self._fire(delay, callback))
        return delay

    async def _fire(self, delay: float, callback: TickCallback) -> None:
        await asyncio.sleep(delay)
        # From here on this task is the in-flight tick, not a pending timer
        self._inflight = self._pending
        self._pending = None
        self.next_run_at = None
        await callback()

    async def cancel(self) -> None:
        """Cancel the pending timer and refuse further arming.

        A tick that is already running is not interrupted.
        """
        self.closed = True
        self.next_run_at = None
        task, self._pending = self._pending, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        self.logger.info("Pending check cancelled")
