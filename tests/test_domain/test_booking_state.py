"""Unit tests for the booking state machine."""

from datetime import datetime
from decimal import Decimal

import pytest

from hotel_booking.domain.booking_state import (
    GUEST_UPLOAD_TIMEOUT_REASON,
    OWNER_VERIFICATION_TIMEOUT_REASON,
    BookingStatus,
    IdProofStatus,
    IdType,
    IllegalTransitionError,
    PaymentStatus,
    approve_id,
    counts_toward_aggregates,
    expire_guest_upload,
    expire_owner_verification,
    purge_id_documents,
    reject_id,
    set_payment_status,
    set_status,
    stored_values,
    submit_id_proof,
)

NOW = datetime(2026, 10, 18, 12, 0, 0)


class TestParseStatus:
    """Boundary normalization of status values."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("pending", BookingStatus.PAYMENT_DONE),
            ("confirmed", BookingStatus.CONFIRMED),
            ("cancelled", BookingStatus.CANCELLED),
            ("completed", BookingStatus.COMPLETED),
            ("refunded", BookingStatus.REFUNDED),
            ("rejected", BookingStatus.REJECTED),
            ("ID_SUBMITTED", BookingStatus.ID_SUBMITTED),
            ("  CONFIRMED ", BookingStatus.CONFIRMED),
        ],
    )
    def test_accepts_canonical_and_legacy(self, raw, expected):
        assert BookingStatus.parse(raw) is expected

    @pytest.mark.parametrize("raw", ["shipped", "Confirmed", "", "id_pending"])
    def test_rejects_unknown(self, raw):
        with pytest.raises(ValueError):
            BookingStatus.parse(raw)

    def test_rejects_non_string(self):
        with pytest.raises(ValueError):
            BookingStatus.parse(3)  # type: ignore[arg-type]

    def test_stored_values_include_legacy_spelling(self):
        values = stored_values(BookingStatus.CANCELLED, BookingStatus.REJECTED)
        assert set(values) == {"CANCELLED", "REJECTED", "cancelled", "rejected"}

    def test_counts_toward_aggregates(self):
        assert counts_toward_aggregates(BookingStatus.CONFIRMED)
        assert counts_toward_aggregates(BookingStatus.REFUNDED)
        assert not counts_toward_aggregates(BookingStatus.CANCELLED)
        assert not counts_toward_aggregates(BookingStatus.REJECTED)


class TestSetStatus:
    def test_cancel_from_active_reverses_aggregates(self):
        t = set_status(BookingStatus.CONFIRMED, BookingStatus.CANCELLED, cancellation_reason="Change of plans")
        assert t.status is BookingStatus.CANCELLED
        assert t.changes == {"cancellation_reason": "Change of plans"}
        assert t.reverse_aggregates is True

    @pytest.mark.parametrize(
        "previous",
        [BookingStatus.CANCELLED, BookingStatus.REJECTED, BookingStatus.REFUNDED],
    )
    def test_cancel_twice_does_not_reverse_again(self, previous):
        t = set_status(previous, BookingStatus.CANCELLED)
        assert t.reverse_aggregates is False

    def test_reject_via_status_reverses(self):
        t = set_status(BookingStatus.ID_SUBMITTED, BookingStatus.REJECTED)
        assert t.reverse_aggregates is True

    def test_cancel_without_reason_leaves_reason_alone(self):
        t = set_status(BookingStatus.CONFIRMED, BookingStatus.CANCELLED)
        assert "cancellation_reason" not in t.changes

    def test_refunded_sets_payment_and_amount(self):
        t = set_status(BookingStatus.CONFIRMED, BookingStatus.REFUNDED, refund_amount=Decimal("120.50"))
        assert t.changes["payment_status"] == PaymentStatus.REFUNDED
        assert t.changes["refund_amount"] == Decimal("120.50")
        assert t.reverse_aggregates is False

    def test_refunded_without_amount_defaults_to_zero(self):
        t = set_status(BookingStatus.CONFIRMED, BookingStatus.REFUNDED)
        assert t.changes["refund_amount"] == Decimal("0")

    def test_non_negative_target_has_no_side_effects(self):
        t = set_status(BookingStatus.CONFIRMED, BookingStatus.COMPLETED)
        assert t.changes == {}
        assert t.reverse_aggregates is False


class TestVerifyId:
    def test_approve(self):
        t = approve_id(BookingStatus.ID_SUBMITTED, now=NOW)
        assert t.status is BookingStatus.CONFIRMED
        assert t.id_proof_changes == {"status": IdProofStatus.VERIFIED, "verified_at": NOW}
        assert t.reverse_aggregates is False

    def test_reject_refunds_in_full(self):
        t = reject_id(BookingStatus.ID_SUBMITTED, total_cost=Decimal("300.00"), reason="Blurry photo")
        assert t.status is BookingStatus.REJECTED
        assert t.changes["rejection_reason"] == "Blurry photo"
        assert t.changes["payment_status"] == PaymentStatus.REFUNDED
        assert t.changes["refund_amount"] == Decimal("300.00")
        assert t.id_proof_changes == {"status": IdProofStatus.REJECTED}
        assert t.reverse_aggregates is True

    @pytest.mark.parametrize("current", [BookingStatus.CANCELLED, BookingStatus.REJECTED])
    def test_late_approval_restores_counters(self, current):
        t = approve_id(current, now=NOW)
        assert t.status is BookingStatus.CONFIRMED
        assert t.restore_aggregates is True
        assert t.reverse_aggregates is False

    @pytest.mark.parametrize("current", [BookingStatus.COMPLETED, BookingStatus.REFUNDED, BookingStatus.CONFIRMED])
    def test_approval_of_counted_booking_leaves_counters(self, current):
        t = approve_id(current, now=NOW)
        assert t.status is BookingStatus.CONFIRMED
        assert t.restore_aggregates is False

    @pytest.mark.parametrize(
        "current",
        [BookingStatus.CANCELLED, BookingStatus.REJECTED, BookingStatus.REFUNDED],
    )
    def test_reject_after_negative_status_does_not_reverse_again(self, current):
        t = reject_id(current, total_cost=Decimal("1"), reason=None)
        assert t.status is BookingStatus.REJECTED
        assert t.reverse_aggregates is False

    def test_reject_completed_booking_reverses(self):
        t = reject_id(BookingStatus.COMPLETED, total_cost=Decimal("1"), reason=None)
        assert t.reverse_aggregates is True


class TestSubmitIdProof:
    @pytest.mark.parametrize("current", [BookingStatus.PAYMENT_DONE, BookingStatus.ID_PENDING])
    def test_submit(self, current):
        t = submit_id_proof(
            current,
            id_type=IdType.PASSPORT,
            front_image="https://img/front",
            back_image=None,
            now=NOW,
        )
        assert t.status is BookingStatus.ID_SUBMITTED
        assert t.id_proof_changes["status"] == IdProofStatus.SUBMITTED
        assert t.id_proof_changes["uploaded_at"] == NOW
        assert t.id_proof_changes["back_image"] == ""

    def test_submit_after_confirmation_is_illegal(self):
        with pytest.raises(IllegalTransitionError, match="upload ID proof"):
            submit_id_proof(
                BookingStatus.CONFIRMED,
                id_type=IdType.AADHAAR,
                front_image="https://img/front",
                back_image=None,
                now=NOW,
            )


class TestAutomatedTransitions:
    def test_expire_guest_upload(self):
        t = expire_guest_upload(BookingStatus.ID_PENDING, total_cost=Decimal("80.00"))
        assert t.status is BookingStatus.CANCELLED
        assert t.changes["cancellation_reason"] == GUEST_UPLOAD_TIMEOUT_REASON
        assert t.changes["refund_amount"] == Decimal("80.00")
        assert t.reverse_aggregates is True

    def test_expire_guest_upload_requires_id_pending(self):
        with pytest.raises(IllegalTransitionError):
            expire_guest_upload(BookingStatus.ID_SUBMITTED, total_cost=Decimal("1"))

    def test_expire_owner_verification(self):
        t = expire_owner_verification(BookingStatus.ID_SUBMITTED, total_cost=Decimal("80.00"))
        assert t.status is BookingStatus.REJECTED
        assert t.changes["rejection_reason"] == OWNER_VERIFICATION_TIMEOUT_REASON
        assert t.id_proof_changes == {"status": IdProofStatus.REJECTED}
        assert t.reverse_aggregates is True

    def test_expire_owner_verification_requires_id_submitted(self):
        with pytest.raises(IllegalTransitionError):
            expire_owner_verification(BookingStatus.CONFIRMED, total_cost=Decimal("1"))

    def test_purge_leaves_status(self):
        t = purge_id_documents()
        assert t.status is None
        assert t.id_proof_changes == {"front_image": "", "back_image": ""}


def test_payment_status_update_keeps_status():
    t = set_payment_status(PaymentStatus.FAILED, "card")
    assert t.status is None
    assert t.changes == {"payment_status": PaymentStatus.FAILED, "payment_method": "card"}
    assert set_payment_status(PaymentStatus.PAID).changes == {"payment_status": PaymentStatus.PAID}
