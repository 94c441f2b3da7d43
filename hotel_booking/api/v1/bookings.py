"""Bookings API router: lifecycle actions and read access.

Access rules: admins see and manage everything; a hotel owner manages the
bookings of their own hotels; a guest sees their own bookings and uploads
their ID proof.
"""

from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hotel_booking.api.deps import get_current_active_user, get_db, require_admin
from hotel_booking.domain.booking_state import BookingStatus, IllegalTransitionError, stored_values
from hotel_booking.models.booking import Booking
from hotel_booking.models.hotel import Hotel
from hotel_booking.models.user import User
from hotel_booking.schemas.auth import MessageResponse
from hotel_booking.schemas.booking import (
    BookingListResponse,
    BookingResponse,
    BookingStatusUpdate,
    IdProofUpload,
    PaymentUpdate,
    VerifyIdRequest,
)
from hotel_booking.services import booking_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/bookings", tags=["bookings"])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _get_booking_or_404(db: AsyncSession, booking_id: uuid.UUID) -> Booking:
    booking = await booking_service.get_booking(db, booking_id)
    if booking is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Booking not found",
        )
    return booking


async def _get_hotel_or_404(db: AsyncSession, hotel_id: uuid.UUID) -> Hotel:
    result = await db.execute(select(Hotel).where(Hotel.id == hotel_id))
    hotel = result.scalar_one_or_none()
    if hotel is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Hotel not found",
        )
    return hotel


def _forbidden(user: User, booking_id: uuid.UUID | None, action: str) -> HTTPException:
    logger.warning("User %s denied %s on booking %s", user.id, action, booking_id)
    return HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="Access denied",
    )


async def _require_owner_or_admin(
    db: AsyncSession,
    booking: Booking,
    user: User,
    action: str,
) -> None:
    """Raise 403 unless ``user`` is an admin or owns the booking's hotel."""
    if user.is_admin:
        return
    result = await db.execute(select(Hotel.owner_id).where(Hotel.id == booking.hotel_id))
    owner_id = result.scalar_one_or_none()
    if owner_id != user.id:
        raise _forbidden(user, booking.id, action)


def _conflict(exc: IllegalTransitionError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail=str(exc),
    )


# ---------------------------------------------------------------------------
# Read endpoints
# ---------------------------------------------------------------------------


@router.get(
    "",
    response_model=BookingListResponse,
    summary="List all bookings (admin)",
)
async def list_bookings(
    status_filter: str | None = Query(None, alias="status", description="Filter by booking status"),
    skip: int = Query(0, ge=0, description="Pagination offset"),
    limit: int = Query(50, ge=1, le=200, description="Pagination limit"),
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> dict:
    """Return every booking on the platform, newest first."""
    base_query = select(Booking)
    count_query = select(func.count()).select_from(Booking)

    if status_filter is not None:
        try:
            wanted = BookingStatus.parse(status_filter)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from None
        base_query = base_query.where(Booking.status.in_(stored_values(wanted)))
        count_query = count_query.where(Booking.status.in_(stored_values(wanted)))

    total = (await db.execute(count_query)).scalar_one()
    result = await db.execute(base_query.order_by(Booking.created_at.desc()).offset(skip).limit(limit))
    return {"items": list(result.scalars().all()), "total": total}


@router.get(
    "/hotel/{hotel_id}",
    response_model=BookingListResponse,
    summary="List bookings of one of the current user's hotels",
)
async def list_hotel_bookings(
    hotel_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> dict:
    """Return the bookings of a hotel. Only the hotel's owner may call this."""
    hotel = await _get_hotel_or_404(db, hotel_id)
    if hotel.owner_id != current_user.id:
        raise _forbidden(current_user, None, f"listing bookings of hotel {hotel_id}")

    result = await db.execute(
        select(Booking).where(Booking.hotel_id == hotel_id).order_by(Booking.created_at.desc())
    )
    items = list(result.scalars().all())
    return {"items": items, "total": len(items)}


@router.get(
    "/{booking_id}",
    response_model=BookingResponse,
    summary="Get a booking",
)
async def get_booking(
    booking_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> Booking:
    """Retrieve one booking. Visible to its guest, the hotel owner and admins."""
    booking = await _get_booking_or_404(db, booking_id)
    if booking.user_id != current_user.id:
        await _require_owner_or_admin(db, booking, current_user, "read")
    return booking


# ---------------------------------------------------------------------------
# Lifecycle endpoints
# ---------------------------------------------------------------------------


@router.patch(
    "/{booking_id}/status",
    response_model=BookingResponse,
    summary="Set a booking's status",
)
async def update_booking_status(
    booking_id: uuid.UUID,
    body: BookingStatusUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> Booking:
    """Override the status of a booking.

    Moving a booking to ``CANCELLED`` or ``REJECTED`` subtracts it from the
    hotel and guest counters, unless it was already cancelled, rejected or
    refunded.
    """
    booking = await _get_booking_or_404(db, booking_id)
    await _require_owner_or_admin(db, booking, current_user, "status update")

    return await booking_service.change_status(
        db,
        booking,
        body.status,
        cancellation_reason=body.cancellation_reason,
        refund_amount=body.refund_amount,
    )


@router.patch(
    "/{booking_id}/verify-id",
    response_model=BookingResponse,
    summary="Approve or reject the guest's ID proof",
)
async def verify_booking_id(
    booking_id: uuid.UUID,
    body: VerifyIdRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> Booking:
    """Hotel owner decision on a guest's identity document.

    ``approve`` confirms the booking; ``reject`` rejects it and refunds the
    full amount. Both are accepted whatever the current status.
    """
    booking = await _get_booking_or_404(db, booking_id)
    hotel = await _get_hotel_or_404(db, booking.hotel_id)
    if hotel.owner_id != current_user.id:
        raise _forbidden(current_user, booking.id, f"verify-id {body.action}")

    return await booking_service.verify_id_proof(
        db,
        booking,
        body.action,
        rejection_reason=body.rejection_reason,
    )


@router.post(
    "/{booking_id}/id-proof",
    response_model=BookingResponse,
    summary="Upload the guest's ID proof",
)
async def upload_id_proof(
    booking_id: uuid.UUID,
    body: IdProofUpload,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> Booking:
    """Attach an identity document to the caller's own booking for owner review."""
    booking = await _get_booking_or_404(db, booking_id)
    if booking.user_id != current_user.id:
        raise _forbidden(current_user, booking.id, "ID upload")

    try:
        return await booking_service.submit_id_proof(
            db,
            booking,
            body.id_type,
            body.front_image,
            back_image=body.back_image,
        )
    except IllegalTransitionError as exc:
        raise _conflict(exc) from None


@router.patch(
    "/{booking_id}/payment",
    response_model=BookingResponse,
    summary="Update a booking's payment status",
)
async def update_payment_status(
    booking_id: uuid.UUID,
    body: PaymentUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> Booking:
    """Record a payment status change. The booking status is left untouched."""
    booking = await _get_booking_or_404(db, booking_id)
    await _require_owner_or_admin(db, booking, current_user, "payment update")

    return await booking_service.update_payment(
        db,
        booking,
        body.payment_status,
        payment_method=body.payment_method,
    )


@router.delete(
    "/{booking_id}",
    response_model=MessageResponse,
    summary="Delete a booking (admin)",
)
async def delete_booking(
    booking_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> dict:
    """Delete a booking and take it out of the hotel and guest counters."""
    booking = await _get_booking_or_404(db, booking_id)
    await booking_service.delete_booking(db, booking)
    return {"message": "Booking deleted successfully"}
