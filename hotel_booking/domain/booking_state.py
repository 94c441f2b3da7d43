"""Booking state machine.

Each legal lifecycle move is one function that inspects the current status and
returns a :class:`Transition` describing what must change.  Nothing here
touches the database; :mod:`hotel_booking.services.booking_service` applies a
``Transition`` to a persisted booking.
"""

import enum
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any


class BookingStatus(enum.StrEnum):
    PAYMENT_DONE = "PAYMENT_DONE"
    ID_PENDING = "ID_PENDING"
    ID_SUBMITTED = "ID_SUBMITTED"
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"
    REFUND_PENDING = "REFUND_PENDING"
    REFUNDED = "REFUNDED"

    @classmethod
    def parse(cls, value: "str | BookingStatus") -> "BookingStatus":
        """Normalize a canonical or legacy lowercase status value.

        Raises:
            ValueError: If the value is not a known status.
        """
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            raise ValueError(f"Invalid booking status: {value!r}")
        text = value.strip()
        if text in LEGACY_STATUS_ALIASES:
            return LEGACY_STATUS_ALIASES[text]
        try:
            return cls(text)
        except ValueError:
            raise ValueError(f"Invalid booking status: {value!r}") from None


class PaymentStatus(enum.StrEnum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class IdProofStatus(enum.StrEnum):
    PENDING = "PENDING"
    SUBMITTED = "SUBMITTED"
    VERIFIED = "VERIFIED"
    REJECTED = "REJECTED"


class IdType(enum.StrEnum):
    AADHAAR = "Aadhaar"
    PASSPORT = "Passport"
    DRIVING_LICENSE = "Driving License"
    VOTER_ID = "Voter ID"


# Older rows and one legacy route use lowercase values.
LEGACY_STATUS_ALIASES: dict[str, BookingStatus] = {
    "pending": BookingStatus.PAYMENT_DONE,
    "confirmed": BookingStatus.CONFIRMED,
    "cancelled": BookingStatus.CANCELLED,
    "completed": BookingStatus.COMPLETED,
    "refunded": BookingStatus.REFUNDED,
    "rejected": BookingStatus.REJECTED,
}

# Bookings in these states are excluded from hotel/user aggregate counters.
UNCOUNTED_STATUSES: frozenset[BookingStatus] = frozenset({BookingStatus.CANCELLED, BookingStatus.REJECTED})

# A booking that was already in one of these states has had its counters
# reversed (or never should be), so moving it to CANCELLED/REJECTED again
# must not decrement a second time.
_NO_REVERSAL_FROM: frozenset[BookingStatus] = frozenset(
    {BookingStatus.CANCELLED, BookingStatus.REJECTED, BookingStatus.REFUNDED}
)

ID_UPLOADABLE_STATUSES: frozenset[BookingStatus] = frozenset({BookingStatus.PAYMENT_DONE, BookingStatus.ID_PENDING})

GUEST_UPLOAD_TIMEOUT_REASON = "Auto-cancelled: ID proof not uploaded within 6 hours."
OWNER_VERIFICATION_TIMEOUT_REASON = "Auto-rejected: Hotel owner failed to verify ID within 24 hours."


def stored_values(*statuses: BookingStatus) -> list[str]:
    """All spellings a status may have in the database, for SQL ``IN`` filters."""
    values = [str(s) for s in statuses]
    values.extend(alias for alias, target in LEGACY_STATUS_ALIASES.items() if target in statuses)
    return values


def counts_toward_aggregates(status: BookingStatus) -> bool:
    """Whether a booking in ``status`` contributes to hotel/user counters."""
    return status not in UNCOUNTED_STATUSES


class IllegalTransitionError(ValueError):
    """Raised when a lifecycle action is not allowed from the current status."""

    def __init__(self, current: BookingStatus, action: str) -> None:
        self.current = current
        self.action = action
        super().__init__(f"Cannot {action} a booking in status {current}")


@dataclass(frozen=True)
class Transition:
    """The outcome of a lifecycle action.

    ``status`` is ``None`` when the action leaves the status untouched.
    ``id_proof_changes`` only apply when the booking has an ID proof record.
    ``reverse_aggregates`` asks the caller to subtract this booking from the
    hotel and guest counters; ``restore_aggregates`` asks it to add the booking
    back.
    """

    status: BookingStatus | None = None
    changes: dict[str, Any] = field(default_factory=dict)
    id_proof_changes: dict[str, Any] = field(default_factory=dict)
    reverse_aggregates: bool = False
    restore_aggregates: bool = False


def _reverses_on_negative(current: BookingStatus) -> bool:
    return current not in _NO_REVERSAL_FROM


def set_status(
    current: BookingStatus,
    target: BookingStatus,
    *,
    cancellation_reason: str | None = None,
    refund_amount: Decimal | None = None,
) -> Transition:
    """Manual status override by an admin or the hotel owner. Allowed from any state."""
    changes: dict[str, Any] = {}
    if target == BookingStatus.CANCELLED and cancellation_reason:
        changes["cancellation_reason"] = cancellation_reason
    if target == BookingStatus.REFUNDED:
        changes["payment_status"] = PaymentStatus.REFUNDED
        changes["refund_amount"] = refund_amount or Decimal("0")

    reverse = target in UNCOUNTED_STATUSES and _reverses_on_negative(current)
    return Transition(status=target, changes=changes, reverse_aggregates=reverse)


def submit_id_proof(
    current: BookingStatus,
    *,
    id_type: IdType,
    front_image: str,
    back_image: str | None,
    now: datetime,
) -> Transition:
    """Guest uploads an identity document for the hotel owner to check."""
    if current not in ID_UPLOADABLE_STATUSES:
        raise IllegalTransitionError(current, "upload ID proof for")
    return Transition(
        status=BookingStatus.ID_SUBMITTED,
        id_proof_changes={
            "id_type": id_type,
            "front_image": front_image,
            "back_image": back_image or "",
            "status": IdProofStatus.SUBMITTED,
            "uploaded_at": now,
        },
    )


def approve_id(current: BookingStatus, *, now: datetime) -> Transition:
    """Hotel owner accepts the guest's ID proof and confirms the stay.

    Allowed from any state. A late approval of a cancelled or rejected booking
    counts it again.
    """
    return Transition(
        status=BookingStatus.CONFIRMED,
        id_proof_changes={"status": IdProofStatus.VERIFIED, "verified_at": now},
        restore_aggregates=current in UNCOUNTED_STATUSES,
    )


def reject_id(current: BookingStatus, *, total_cost: Decimal, reason: str | None) -> Transition:
    """Hotel owner refuses the guest's ID proof; the payment is refunded in full.

    Allowed from any state. Counters are only reversed if the booking still
    counted.
    """
    return Transition(
        status=BookingStatus.REJECTED,
        changes={
            "rejection_reason": reason,
            "payment_status": PaymentStatus.REFUNDED,
            "refund_amount": total_cost,
        },
        id_proof_changes={"status": IdProofStatus.REJECTED},
        reverse_aggregates=_reverses_on_negative(current),
    )


def set_payment_status(payment_status: PaymentStatus, payment_method: str | None = None) -> Transition:
    """Record a payment outcome. The booking status is left as it is.

    Args:
        payment_status: New payment status.
        payment_method: Method reported by the payment provider, if any.

    Returns:
        A Transition with only field changes.
    """
    changes: dict[str, Any] = {"payment_status": payment_status}
    if payment_method:
        changes["payment_method"] = payment_method
    return Transition(changes=changes)


def expire_guest_upload(current: BookingStatus, *, total_cost: Decimal) -> Transition:
    """Guest never uploaded an ID proof in time."""
    if current != BookingStatus.ID_PENDING:
        raise IllegalTransitionError(current, "expire the guest upload window of")
    return Transition(
        status=BookingStatus.CANCELLED,
        changes={
            "cancellation_reason": GUEST_UPLOAD_TIMEOUT_REASON,
            "payment_status": PaymentStatus.REFUNDED,
            "refund_amount": total_cost,
        },
        reverse_aggregates=True,
    )


def expire_owner_verification(current: BookingStatus, *, total_cost: Decimal) -> Transition:
    """Hotel owner never reviewed a submitted ID proof in time."""
    if current != BookingStatus.ID_SUBMITTED:
        raise IllegalTransitionError(current, "expire the owner verification window of")
    return Transition(
        status=BookingStatus.REJECTED,
        changes={
            "rejection_reason": OWNER_VERIFICATION_TIMEOUT_REASON,
            "payment_status": PaymentStatus.REFUNDED,
            "refund_amount": total_cost,
        },
        id_proof_changes={"status": IdProofStatus.REJECTED},
        reverse_aggregates=True,
    )


def purge_id_documents() -> Transition:
    """Drop the stored document references; the images themselves live upstream."""
    return Transition(id_proof_changes={"front_image": "", "back_image": ""})
