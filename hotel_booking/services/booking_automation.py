"""Periodic booking automation: compliance sweep and counter reconciliation.

Runs as an ``asyncio`` task inside the API process.  The sweep logic itself
lives in :mod:`hotel_booking.services.compliance_sweep` and can be driven by
any other scheduler through :meth:`BookingAutomation.run_once`.
"""

import asyncio
import contextlib
import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hotel_booking.services.compliance_sweep import (
    SweepFailureTracker,
    SweepReport,
    SweepWindows,
    run_compliance_sweep,
)
from hotel_booking.services.counter_reconciliation import (
    ReconciliationReport,
    reconcile_aggregate_counters,
)

logger = logging.getLogger(__name__)


class BookingAutomation:
    """Owns the background loop and the retry state shared between sweeps."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        interval_seconds: float = 900,
        reconcile_every: int = 4,
        tracker: SweepFailureTracker | None = None,
        windows: SweepWindows | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.interval_seconds = interval_seconds
        self.reconcile_every = reconcile_every
        self.tracker = tracker or SweepFailureTracker()
        self.windows = windows
        self.ticks = 0
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def reconcile(self) -> ReconciliationReport:
        async with self.session_factory() as session, session.begin():
            return await reconcile_aggregate_counters(session)

    async def run_once(self, now: datetime | None = None) -> SweepReport:
        """Run one sweep, plus a reconciliation every ``reconcile_every`` ticks."""
        self.ticks += 1
        report = await run_compliance_sweep(
            self.session_factory,
            now=now,
            tracker=self.tracker,
            windows=self.windows,
        )
        if self.reconcile_every > 0 and self.ticks % self.reconcile_every == 0:
            await self.reconcile()
        return report

    async def _loop(self) -> None:
        while True:
            try:
                await self.run_once()
            except Exception:
                logger.exception("Booking automation tick %d failed", self.ticks)
            await asyncio.sleep(self.interval_seconds)

    def start(self) -> None:
        if self.running:
            return
        logger.info("Starting booking automation (every %ss)", self.interval_seconds)
        self._task = asyncio.create_task(self._loop(), name="booking-automation")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("Stopped booking automation after %d ticks", self.ticks)
