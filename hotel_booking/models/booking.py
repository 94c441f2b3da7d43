"""Booking model: one reservation and its guest ID proof."""

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Date, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import TypeDecorator

from hotel_booking.database import Base, TimestampMixin, UUIDPrimaryKeyMixin
from hotel_booking.domain.booking_state import BookingStatus, IdProofStatus, PaymentStatus


class BookingStatusType(TypeDecorator):
    """Stores ``BookingStatus`` as text, normalizing legacy lowercase rows on read.

    Bound values are passed through verbatim so that filters built with
    ``stored_values()`` can still match legacy spellings.
    """

    impl = String(50)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return str(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return BookingStatus.parse(value)


class Booking(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A reservation linking a guest to a hotel for a date range."""

    __tablename__ = "bookings"

    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    hotel_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("hotels.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    check_in: Mapped[date] = mapped_column(Date, nullable=False)
    check_out: Mapped[date] = mapped_column(Date, nullable=False)
    adult_count: Mapped[int] = mapped_column(Integer, default=1)
    child_count: Mapped[int] = mapped_column(Integer, default=0)
    total_cost: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    status: Mapped[BookingStatus] = mapped_column(
        BookingStatusType(),
        default=BookingStatus.PAYMENT_DONE,
        index=True,
    )
    payment_status: Mapped[str] = mapped_column(String(20), default=PaymentStatus.PENDING)
    payment_method: Mapped[str | None] = mapped_column(String(50), nullable=True)
    refund_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)

    special_requests: Mapped[str | None] = mapped_column(Text, nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Relationships
    id_proof: Mapped["IdProof | None"] = relationship(
        back_populates="booking",
        lazy="selectin",
        uselist=False,
        cascade="all, delete-orphan",
    )

    __table_args__ = (Index("ix_bookings_check_out", "check_out"),)

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, hotel_id={self.hotel_id}, user_id={self.user_id}, status={self.status})>"


class IdProof(UUIDPrimaryKeyMixin, Base):
    """Identity document a guest submits so the hotel owner can confirm the stay."""

    __tablename__ = "booking_id_proofs"

    booking_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    id_type: Mapped[str] = mapped_column(String(50), nullable=False)  # Aadhaar, Passport, Driving License, Voter ID
    front_image: Mapped[str] = mapped_column(String(1024), default="")
    back_image: Mapped[str] = mapped_column(String(1024), default="")
    status: Mapped[str] = mapped_column(String(20), default=IdProofStatus.PENDING)
    uploaded_at: Mapped[datetime | None] = mapped_column(nullable=True, index=True)
    verified_at: Mapped[datetime | None] = mapped_column(nullable=True)

    booking: Mapped["Booking"] = relationship(back_populates="id_proof")

    def __repr__(self) -> str:
        return f"<IdProof(booking_id={self.booking_id}, status={self.status})>"
