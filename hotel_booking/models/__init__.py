"""SQLAlchemy models for the hotel booking service.

All models are imported here so that Alembic's autogenerate can discover
them via Base.metadata. If you add a new model, import it in this file.
"""

from hotel_booking.models.booking import Booking, IdProof
from hotel_booking.models.hotel import Hotel
from hotel_booking.models.user import User

__all__ = [
    "Booking",
    "Hotel",
    "IdProof",
    "User",
]
