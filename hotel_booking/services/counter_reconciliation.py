"""Aggregate counter reconciliation.

Hotel and user counters are maintained incrementally by the lifecycle service.
This pass recomputes them from the bookings table (every booking that is not
cancelled or rejected) and corrects any row that has drifted.
"""

import logging
import uuid
from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hotel_booking.domain.booking_state import UNCOUNTED_STATUSES, stored_values
from hotel_booking.models.booking import Booking
from hotel_booking.models.hotel import Hotel
from hotel_booking.models.user import User

logger = logging.getLogger(__name__)

_CENT = Decimal("0.01")


@dataclass
class ReconciliationReport:
    hotels_checked: int = 0
    users_checked: int = 0
    hotels_corrected: list[uuid.UUID] = field(default_factory=list)
    users_corrected: list[uuid.UUID] = field(default_factory=list)


def _money(value: Decimal | int | float | None) -> Decimal:
    return Decimal(str(value or 0)).quantize(_CENT)


async def _expected_totals(db: AsyncSession, key) -> dict[uuid.UUID, tuple[int, Decimal]]:
    result = await db.execute(
        select(key, func.count(Booking.id), func.coalesce(func.sum(Booking.total_cost), 0))
        .where(Booking.status.not_in(stored_values(*UNCOUNTED_STATUSES)))
        .group_by(key)
    )
    return {row[0]: (row[1], _money(row[2])) for row in result.all()}


async def reconcile_aggregate_counters(db: AsyncSession) -> ReconciliationReport:
    """Recompute hotel and user counters and fix the ones that drifted."""
    report = ReconciliationReport()

    expected_hotels = await _expected_totals(db, Booking.hotel_id)
    hotels = (await db.execute(select(Hotel))).scalars().all()
    for hotel in hotels:
        report.hotels_checked += 1
        count, revenue = expected_hotels.get(hotel.id, (0, _money(0)))
        if hotel.total_bookings != count or _money(hotel.total_revenue) != revenue:
            logger.warning(
                "Hotel %s counters drifted: bookings %s -> %s, revenue %s -> %s",
                hotel.id,
                hotel.total_bookings,
                count,
                hotel.total_revenue,
                revenue,
            )
            hotel.total_bookings = count
            hotel.total_revenue = revenue
            report.hotels_corrected.append(hotel.id)

    expected_users = await _expected_totals(db, Booking.user_id)
    users = (await db.execute(select(User))).scalars().all()
    for user in users:
        report.users_checked += 1
        count, spent = expected_users.get(user.id, (0, _money(0)))
        if user.total_bookings != count or _money(user.total_spent) != spent:
            logger.warning(
                "User %s counters drifted: bookings %s -> %s, spent %s -> %s",
                user.id,
                user.total_bookings,
                count,
                user.total_spent,
                spent,
            )
            user.total_bookings = count
            user.total_spent = spent
            report.users_corrected.append(user.id)

    await db.flush()
    logger.info(
        "Counter reconciliation: %d/%d hotels and %d/%d users corrected",
        len(report.hotels_corrected),
        report.hotels_checked,
        len(report.users_corrected),
        report.users_checked,
    )
    return report
