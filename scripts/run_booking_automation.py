"""Run one compliance sweep (and optionally a counter reconciliation) and exit.

For deployments that schedule the job externally (cron, a k8s CronJob) and set
BOOKING_AUTOMATION_ENABLED=false on the API processes:

    python -m scripts.run_booking_automation
    python -m scripts.run_booking_automation --reconcile
"""

import argparse
import asyncio
import logging

from hotel_booking.database import async_session_factory, engine
from hotel_booking.services.booking_automation import BookingAutomation
from hotel_booking.services.compliance_sweep import SweepFailureTracker, SweepWindows


async def run(reconcile: bool) -> int:
    automation = BookingAutomation(
        async_session_factory,
        reconcile_every=0,
        tracker=SweepFailureTracker.from_settings(),
        windows=SweepWindows.from_settings(),
    )
    try:
        report = await automation.run_once()
        if reconcile:
            await automation.reconcile()
    finally:
        await engine.dispose()

    print(
        f"applied={len(report.applied)} skipped={len(report.skipped)} "
        f"failed={len(report.failed)} deferred={len(report.deferred)}"
    )
    return 1 if report.failed else 0


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--reconcile", action="store_true", help="also recompute hotel and user counters")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    raise SystemExit(asyncio.run(run(args.reconcile)))


if __name__ == "__main__":
    main()
