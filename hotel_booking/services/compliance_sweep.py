"""Compliance sweep: timeout-driven cancellations and ID document retention.

Three independent rules are evaluated against a wall-clock ``now``:

1. ``ID_PENDING`` bookings older than the guest upload window are cancelled.
2. ``ID_SUBMITTED`` bookings whose proof has waited longer than the owner
   verification window are rejected.
3. Bookings whose check-out (midnight of the check-out date) lies further back
   than the retention window lose their ID document references, whatever
   their status.

:func:`plan_sweep` is pure and decides what to do; :func:`run_compliance_sweep`
loads candidates, plans, and applies every action in its own transaction so one
failing booking never blocks the others.  A second run with the same ``now``
plans nothing, because every applied action moves the booking out of its
rule's window.

There is no row locking: a guest uploading an ID at the same moment the sweep
cancels the booking can still race it.  Each action re-checks its rule on a
freshly loaded row, which narrows but does not close that window.
"""

import enum
import logging
import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hotel_booking.config import settings
from hotel_booking.database import utcnow
from hotel_booking.domain import booking_state
from hotel_booking.domain.booking_state import BookingStatus, Transition
from hotel_booking.models.booking import Booking, IdProof
from hotel_booking.services.booking_service import apply_transition, get_booking

logger = logging.getLogger(__name__)


class SweepRule(enum.StrEnum):
    GUEST_UPLOAD_TIMEOUT = "guest_upload_timeout"
    OWNER_VERIFICATION_TIMEOUT = "owner_verification_timeout"
    ID_PROOF_RETENTION = "id_proof_retention"


@dataclass(frozen=True)
class SweepWindows:
    """How long each rule waits before acting."""

    guest_upload: timedelta = timedelta(hours=6)
    owner_verification: timedelta = timedelta(hours=24)
    id_proof_retention: timedelta = timedelta(days=7)

    @classmethod
    def from_settings(cls) -> "SweepWindows":
        return cls(
            guest_upload=timedelta(hours=settings.guest_upload_timeout_hours),
            owner_verification=timedelta(hours=settings.owner_verification_timeout_hours),
            id_proof_retention=timedelta(days=settings.id_proof_retention_days),
        )


@dataclass(frozen=True)
class SweepAction:
    """One rule to apply to one booking."""

    booking_id: uuid.UUID
    rule: SweepRule


@dataclass
class SweepReport:
    """Outcome of a single sweep pass."""

    now: datetime
    applied: list[SweepAction] = field(default_factory=list)
    skipped: list[SweepAction] = field(default_factory=list)
    failed: list[SweepAction] = field(default_factory=list)
    deferred: list[SweepAction] = field(default_factory=list)

    @property
    def mutation_count(self) -> int:
        return len(self.applied)


# ---------------------------------------------------------------------------
# Pure planning
# ---------------------------------------------------------------------------


def rule_matches(rule: SweepRule, booking: Booking, now: datetime, windows: SweepWindows) -> bool:
    """Whether ``rule`` applies to ``booking`` at time ``now``."""
    proof = booking.id_proof

    if rule is SweepRule.GUEST_UPLOAD_TIMEOUT:
        return (
            booking.status == BookingStatus.ID_PENDING
            and booking.created_at is not None
            and booking.created_at < now - windows.guest_upload
        )

    if rule is SweepRule.OWNER_VERIFICATION_TIMEOUT:
        return (
            booking.status == BookingStatus.ID_SUBMITTED
            and proof is not None
            and proof.uploaded_at is not None
            and proof.uploaded_at < now - windows.owner_verification
        )

    # ID_PROOF_RETENTION
    return (
        proof is not None
        and bool(proof.front_image)
        and datetime.combine(booking.check_out, time.min) < now - windows.id_proof_retention
    )


def plan_sweep(
    now: datetime,
    bookings: Iterable[Booking],
    windows: SweepWindows | None = None,
) -> list[SweepAction]:
    """Return every (booking, rule) pair that must be acted on at ``now``."""
    windows = windows or SweepWindows()
    return [
        SweepAction(booking_id=booking.id, rule=rule)
        for booking in bookings
        for rule in SweepRule
        if rule_matches(rule, booking, now, windows)
    ]


def transition_for(rule: SweepRule, booking: Booking) -> Transition:
    if rule is SweepRule.GUEST_UPLOAD_TIMEOUT:
        return booking_state.expire_guest_upload(booking.status, total_cost=booking.total_cost)
    if rule is SweepRule.OWNER_VERIFICATION_TIMEOUT:
        return booking_state.expire_owner_verification(booking.status, total_cost=booking.total_cost)
    return booking_state.purge_id_documents()


# ---------------------------------------------------------------------------
# Retry policy
# ---------------------------------------------------------------------------


@dataclass
class _FailureRecord:
    attempts: int = 0
    retry_at: datetime | None = None
    dead_lettered: bool = False


class SweepFailureTracker:
    """Bounded retries with exponential backoff for actions that keep failing.

    After the n-th consecutive failure an action is held back for
    ``base_delay * 2 ** (n - 1)``.  Once it has failed ``max_attempts`` times it
    is dead-lettered: logged once at ERROR and skipped until :meth:`reset`, or
    until :meth:`prune` sees a plan that no longer contains it.
    """

    def __init__(self, max_attempts: int = 5, base_delay: timedelta = timedelta(minutes=15)) -> None:
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self._records: dict[SweepAction, _FailureRecord] = {}

    @classmethod
    def from_settings(cls) -> "SweepFailureTracker":
        return cls(
            max_attempts=settings.sweep_max_attempts,
            base_delay=timedelta(seconds=settings.sweep_retry_base_delay_seconds),
        )

    def is_deferred(self, action: SweepAction, now: datetime) -> bool:
        record = self._records.get(action)
        if record is None:
            return False
        if record.dead_lettered:
            return True
        return record.retry_at is not None and now < record.retry_at

    def record_failure(self, action: SweepAction, now: datetime) -> None:
        record = self._records.setdefault(action, _FailureRecord())
        record.attempts += 1
        if record.attempts >= self.max_attempts:
            record.dead_lettered = True
            record.retry_at = None
            logger.error(
                "Dead-lettered %s for booking %s after %d failed attempts",
                action.rule,
                action.booking_id,
                record.attempts,
            )
            return
        record.retry_at = now + self.base_delay * 2 ** (record.attempts - 1)
        logger.warning(
            "Will retry %s for booking %s after %s (attempt %d/%d)",
            action.rule,
            action.booking_id,
            record.retry_at.isoformat(),
            record.attempts,
            self.max_attempts,
        )

    def record_success(self, action: SweepAction) -> None:
        self._records.pop(action, None)

    def attempts(self, action: SweepAction) -> int:
        record = self._records.get(action)
        return record.attempts if record else 0

    @property
    def dead_letters(self) -> list[SweepAction]:
        return [action for action, record in self._records.items() if record.dead_lettered]

    def prune(self, planned: Iterable[SweepAction]) -> None:
        """Forget actions that the latest plan no longer contains.

        Bookings fixed by hand or deleted stop being planned, which drops
        their retry and dead-letter state.
        """
        keep = set(planned)
        for action in [a for a in self._records if a not in keep]:
            del self._records[action]

    def reset(self, booking_id: uuid.UUID | None = None) -> None:
        """Forget failures for one booking, or for all bookings."""
        if booking_id is None:
            self._records.clear()
            return
        for action in [a for a in self._records if a.booking_id == booking_id]:
            del self._records[action]


# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------


async def load_candidates(db: AsyncSession, now: datetime, windows: SweepWindows) -> list[Booking]:
    """Fetch bookings that may match any rule; :func:`plan_sweep` has the final say."""
    retention_cutoff = (now - windows.id_proof_retention).date()
    result = await db.execute(
        select(Booking)
        .outerjoin(IdProof, IdProof.booking_id == Booking.id)
        .where(
            or_(
                and_(
                    Booking.status == BookingStatus.ID_PENDING,
                    Booking.created_at < now - windows.guest_upload,
                ),
                and_(
                    Booking.status == BookingStatus.ID_SUBMITTED,
                    IdProof.uploaded_at < now - windows.owner_verification,
                ),
                and_(
                    Booking.check_out <= retention_cutoff,
                    IdProof.front_image.is_not(None),
                    IdProof.front_image != "",
                ),
            )
        )
        .order_by(Booking.created_at)
    )
    return list(result.scalars().all())


async def _apply_action(
    session_factory: async_sessionmaker[AsyncSession],
    action: SweepAction,
    now: datetime,
    windows: SweepWindows,
) -> bool:
    """Apply one action in its own transaction. Returns False if it no longer applies."""
    async with session_factory() as session, session.begin():
        booking = await get_booking(session, action.booking_id)
        if booking is None or not rule_matches(action.rule, booking, now, windows):
            logger.info("Booking %s no longer matches %s, skipping", action.booking_id, action.rule)
            return False

        await apply_transition(session, booking, transition_for(action.rule, booking))

    if action.rule is SweepRule.GUEST_UPLOAD_TIMEOUT:
        logger.info("Auto-cancelled booking %s: guest upload timeout", action.booking_id)
    elif action.rule is SweepRule.OWNER_VERIFICATION_TIMEOUT:
        logger.info("Auto-rejected booking %s: owner verification timeout", action.booking_id)
    else:
        logger.info("Cleared ID proof documents for booking %s (checked out before retention window)", action.booking_id)
    return True


async def run_compliance_sweep(
    session_factory: async_sessionmaker[AsyncSession],
    now: datetime | None = None,
    tracker: SweepFailureTracker | None = None,
    windows: SweepWindows | None = None,
) -> SweepReport:
    """Run one sweep pass over all bookings.

    Args:
        session_factory: Factory for independent sessions; every action gets
            its own session and transaction.
        now: Naive UTC reference time. Defaults to the current time.
        tracker: Optional failure tracker that carries retry state between
            passes.
        windows: Rule windows. Defaults to the configured values.

    Returns:
        A :class:`SweepReport` describing what happened to each planned action.
    """
    now = now or utcnow()
    windows = windows or SweepWindows.from_settings()
    report = SweepReport(now=now)

    async with session_factory() as session:
        candidates = await load_candidates(session, now, windows)
        actions = plan_sweep(now, candidates, windows)

    if tracker is not None:
        tracker.prune(actions)

    for action in actions:
        if tracker is not None and tracker.is_deferred(action, now):
            report.deferred.append(action)
            continue

        try:
            applied = await _apply_action(session_factory, action, now, windows)
        except Exception:
            logger.exception("Compliance sweep failed for booking %s (%s)", action.booking_id, action.rule)
            report.failed.append(action)
            if tracker is not None:
                tracker.record_failure(action, now)
            continue

        if tracker is not None:
            tracker.record_success(action)
        if applied:
            report.applied.append(action)
        else:
            report.skipped.append(action)

    logger.info(
        "Compliance sweep at %s: %d applied, %d skipped, %d failed, %d deferred",
        now.isoformat(),
        len(report.applied),
        len(report.skipped),
        len(report.failed),
        len(report.deferred),
    )
    return report
