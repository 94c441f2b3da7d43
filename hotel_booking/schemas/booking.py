"""Pydantic v2 request/response schemas for booking endpoints."""

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from hotel_booking.domain.booking_state import BookingStatus, IdType, PaymentStatus

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class BookingStatusUpdate(BaseModel):
    """Manual status change. Accepts canonical and legacy lowercase values."""

    status: BookingStatus
    cancellation_reason: str | None = Field(None, max_length=1000)
    refund_amount: Decimal | None = Field(None, ge=0)

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, value: object) -> BookingStatus:
        return BookingStatus.parse(value)  # type: ignore[arg-type]


class VerifyIdRequest(BaseModel):
    """Hotel owner's decision on a guest's ID proof."""

    action: Literal["approve", "reject"]
    rejection_reason: str | None = Field(None, max_length=1000)


class IdProofUpload(BaseModel):
    """Guest-submitted identity document. Images are URLs from the upload service."""

    id_type: IdType
    front_image: str = Field(..., min_length=1, max_length=1024)
    back_image: str | None = Field(None, max_length=1024)


class PaymentUpdate(BaseModel):
    payment_status: PaymentStatus
    payment_method: str | None = Field(None, max_length=50)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class IdProofResponse(BaseModel):
    id_type: str
    front_image: str
    back_image: str
    status: str
    uploaded_at: datetime | None = None
    verified_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class BookingResponse(BaseModel):
    """Booking as returned by every lifecycle endpoint."""

    id: uuid.UUID
    user_id: uuid.UUID
    hotel_id: uuid.UUID
    first_name: str
    last_name: str
    email: str
    phone: str | None = None
    check_in: date
    check_out: date
    adult_count: int
    child_count: int
    total_cost: Decimal
    status: BookingStatus
    payment_status: str
    payment_method: str | None = None
    refund_amount: Decimal | None = None
    special_requests: str | None = None
    cancellation_reason: str | None = None
    rejection_reason: str | None = None
    id_proof: IdProofResponse | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BookingListResponse(BaseModel):
    items: list[BookingResponse]
    total: int
