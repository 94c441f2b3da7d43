"""Booking lifecycle service: applies state-machine transitions to persisted bookings.

Counter adjustments are issued on the caller's session, so within a request
they commit (or roll back) together with the booking row.
"""

import logging
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from hotel_booking.database import utcnow
from hotel_booking.domain import booking_state
from hotel_booking.domain.booking_state import (
    BookingStatus,
    IdType,
    PaymentStatus,
    Transition,
    counts_toward_aggregates,
)
from hotel_booking.models.booking import Booking, IdProof
from hotel_booking.models.hotel import Hotel
from hotel_booking.models.user import User

logger = logging.getLogger(__name__)


async def get_booking(db: AsyncSession, booking_id: uuid.UUID) -> Booking | None:
    """Load a booking with its ID proof, overwriting any stale in-session copy."""
    result = await db.execute(
        select(Booking).where(Booking.id == booking_id).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _adjust_aggregates(db: AsyncSession, booking: Booking, sign: int) -> Decimal:
    amount = booking.total_cost or Decimal("0")
    await db.execute(
        update(Hotel)
        .where(Hotel.id == booking.hotel_id)
        .values(
            total_bookings=Hotel.total_bookings + sign,
            total_revenue=Hotel.total_revenue + sign * amount,
        )
    )
    await db.execute(
        update(User)
        .where(User.id == booking.user_id)
        .values(
            total_bookings=User.total_bookings + sign,
            total_spent=User.total_spent + sign * amount,
        )
    )
    return amount


async def reverse_aggregates(db: AsyncSession, booking: Booking) -> None:
    """Subtract one booking and its cost from the hotel and guest counters."""
    amount = await _adjust_aggregates(db, booking, -1)
    logger.info(
        "Reversed aggregates for booking %s (hotel %s, user %s, amount %s)",
        booking.id,
        booking.hotel_id,
        booking.user_id,
        amount,
    )


async def restore_aggregates(db: AsyncSession, booking: Booking) -> None:
    """Add a previously uncounted booking back to the hotel and guest counters."""
    amount = await _adjust_aggregates(db, booking, 1)
    logger.info(
        "Restored aggregates for booking %s (hotel %s, user %s, amount %s)",
        booking.id,
        booking.hotel_id,
        booking.user_id,
        amount,
    )


async def apply_transition(db: AsyncSession, booking: Booking, transition: Transition) -> Booking:
    """Write a transition onto ``booking`` and apply its counter side effect."""
    previous = booking.status

    if transition.status is not None:
        booking.status = transition.status
    for field, value in transition.changes.items():
        setattr(booking, field, value)
    if transition.id_proof_changes and booking.id_proof is not None:
        for field, value in transition.id_proof_changes.items():
            setattr(booking.id_proof, field, value)

    db.add(booking)
    await db.flush()

    if transition.reverse_aggregates:
        await reverse_aggregates(db, booking)
    elif transition.restore_aggregates:
        await restore_aggregates(db, booking)

    if transition.status is not None and transition.status != previous:
        logger.info("Booking %s: %s -> %s", booking.id, previous, transition.status)
    return booking


async def change_status(
    db: AsyncSession,
    booking: Booking,
    target: BookingStatus,
    cancellation_reason: str | None = None,
    refund_amount: Decimal | None = None,
) -> Booking:
    """Manual status override (admin or hotel owner)."""
    transition = booking_state.set_status(
        booking.status,
        target,
        cancellation_reason=cancellation_reason,
        refund_amount=refund_amount,
    )
    return await apply_transition(db, booking, transition)


async def verify_id_proof(
    db: AsyncSession,
    booking: Booking,
    action: str,
    rejection_reason: str | None = None,
    now: datetime | None = None,
) -> Booking:
    """Approve or reject the guest's ID proof on behalf of the hotel owner.

    Either action is accepted from any status.
    """
    if action == "approve":
        transition = booking_state.approve_id(booking.status, now=now or utcnow())
    else:
        transition = booking_state.reject_id(
            booking.status,
            total_cost=booking.total_cost,
            reason=rejection_reason,
        )
    return await apply_transition(db, booking, transition)


async def submit_id_proof(
    db: AsyncSession,
    booking: Booking,
    id_type: IdType,
    front_image: str,
    back_image: str | None = None,
    now: datetime | None = None,
) -> Booking:
    """Attach (or replace) the guest's ID proof and hand it to the owner for review.

    Raises:
        IllegalTransitionError: If the booking is not awaiting an ID upload.
    """
    transition = booking_state.submit_id_proof(
        booking.status,
        id_type=id_type,
        front_image=front_image,
        back_image=back_image,
        now=now or utcnow(),
    )
    if booking.id_proof is None:
        booking.id_proof = IdProof(id_type=id_type, front_image=front_image)
    return await apply_transition(db, booking, transition)


async def update_payment(
    db: AsyncSession,
    booking: Booking,
    payment_status: PaymentStatus,
    payment_method: str | None = None,
) -> Booking:
    """Record a payment outcome without touching the booking status.

    Args:
        db: Session the change is flushed on.
        booking: Booking to update.
        payment_status: New payment status.
        payment_method: Optional payment method to store alongside it.

    Returns:
        The updated booking.
    """
    transition = booking_state.set_payment_status(payment_status, payment_method)
    return await apply_transition(db, booking, transition)


async def delete_booking(db: AsyncSession, booking: Booking) -> None:
    """Remove a booking, reversing counters unless it was already excluded from them."""
    counted = counts_toward_aggregates(booking.status)
    await db.delete(booking)
    await db.flush()

    if counted:
        await reverse_aggregates(db, booking)
    logger.info("Deleted booking %s (status %s)", booking.id, booking.status)
