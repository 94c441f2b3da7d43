"""Hotel model: a listed property and its booking aggregates."""

import uuid
from decimal import Decimal

from sqlalchemy import ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hotel_booking.database import Base, TimestampMixin, UUIDPrimaryKeyMixin


class Hotel(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A hotel listed by a hotel owner."""

    __tablename__ = "hotels"

    owner_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    city: Mapped[str] = mapped_column(String(100), nullable=False)
    country: Mapped[str] = mapped_column(String(100), nullable=False)
    price_per_night: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), default=None)
    status: Mapped[str] = mapped_column(String(50), default="PUBLISHED", server_default="PUBLISHED")  # DRAFT, PUBLISHED, BLOCKED

    total_bookings: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    total_revenue: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0, server_default="0", nullable=False)

    # Relationships
    owner: Mapped["User"] = relationship(back_populates="hotels", lazy="selectin")  # type: ignore[name-defined]  # noqa: F821

    def __repr__(self) -> str:
        return f"<Hotel(id={self.id}, name={self.name!r}, owner_id={self.owner_id})>"
