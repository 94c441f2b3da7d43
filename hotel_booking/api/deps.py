"""Shared API dependencies: single import point for all routers.

Re-exports database session and authentication dependencies so that router
modules can import everything they need from one place::

    from hotel_booking.api.deps import get_db, get_current_active_user
"""

from hotel_booking.auth.dependencies import (
    get_current_active_user,
    get_current_user,
    require_admin,
)
from hotel_booking.database import get_db

__all__ = [
    "get_db",
    "get_current_user",
    "get_current_active_user",
    "require_admin",
]
