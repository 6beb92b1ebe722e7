"""
Theater booking scheduler.

Allocates [start, end) intervals on theaters to surgical cases. The
overlap scan and the insert run in one transaction holding a row lock on
the theater, so two clerks booking the same theater are serialised and
the classic read-then-write double booking cannot happen.

Bookings go through two phases: book() places a PROVISIONAL hold that
expires after SURGERY_PROVISIONAL_HOLD_MINUTES, confirm() turns it into
a CONFIRMED booking. Expired holds are released at the start of the next
booking transaction on the same theater.

Locks are always taken case row first, then theater or booking rows, so
a booking cannot attach to a case that a concurrent transaction is
cancelling.
"""

import datetime

import structlog
from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from apps.audit.models import AuditEvent
from apps.audit.recorder import audit_recorder
from apps.core import constants
from apps.core.exceptions import (
    BookingConflictError,
    BookingStateError,
    ConcurrentModificationError,
    InvalidIntervalError,
    NotFoundError,
)
from apps.scheduling.models import Theater, TheaterBooking
from apps.surgery.models import SurgicalCase

logger = structlog.get_logger(__name__)

BOOKABLE_CASE_STATUSES = (
    SurgicalCase.Status.READY_FOR_SCHEDULING,
    SurgicalCase.Status.SCHEDULED,
)


def booking_grace_minutes() -> int:
    return getattr(
        settings,
        "SURGERY_BOOKING_GRACE_MINUTES",
        constants.SURGERY_BOOKING_GRACE_MINUTES,
    )


def provisional_hold_minutes() -> int:
    return getattr(
        settings,
        "SURGERY_PROVISIONAL_HOLD_MINUTES",
        constants.SURGERY_PROVISIONAL_HOLD_MINUTES,
    )


def validate_interval(start, end) -> None:
    """
    Reject missing, naive, zero-length and inverted intervals.
    """
    if start is None or end is None:
        raise InvalidIntervalError(
            start, end, "start_time and end_time are both required."
        )
    if timezone.is_naive(start) or timezone.is_naive(end):
        raise InvalidIntervalError(
            start, end, "start_time and end_time must carry a timezone."
        )
    if end <= start:
        raise InvalidIntervalError(start, end)


def intervals_overlap(start, end, other_start, other_end) -> bool:
    """
    Half-open overlap test: touching intervals do not overlap.
    """
    return start < other_end and other_start < end


def is_booking_relevant(end_time, as_of, grace_minutes: int) -> bool:
    """
    Whether a booking still belongs on an "upcoming and in-grace" board.

    end_time may be a datetime, an ISO string or None. Anything that does
    not parse into a time is treated as relevant.
    """
    if isinstance(end_time, str):
        try:
            end_time = parse_datetime(end_time)
        except ValueError:
            end_time = None
    if end_time is None:
        return True

    if timezone.is_naive(end_time):
        end_time = timezone.make_aware(end_time)
    if timezone.is_naive(as_of):
        as_of = timezone.make_aware(as_of)

    return end_time + datetime.timedelta(minutes=grace_minutes) > as_of


class TheaterBookingScheduler:
    def __init__(self, audit=None, clock=None):
        self.audit = audit or audit_recorder
        self.clock = clock or timezone.now

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------
    def book(self, theater_id, start, end, case_id, actor=None, *, confirm=False):
        """
        Reserve [start, end) on a theater for a case.

        A case that already holds a booking is rebooked: the old booking
        is cancelled and the new one keeps its confirmation level.
        Must be called inside the caller's transaction when it is part of
        a larger unit (the SCHEDULED transition); it opens its own
        savepoint otherwise.

        Raises:
            InvalidIntervalError, NotFoundError, BookingStateError,
            BookingConflictError, ConcurrentModificationError
        """
        validate_interval(start, end)
        now = self.clock()

        with transaction.atomic():
            # Case before theater: the SCHEDULED transition holds the case
            # row when it gets here.
            case = self._lock_case(case_id)
            if case.status not in BOOKABLE_CASE_STATUSES:
                raise BookingStateError(
                    f"Cases in status {case.status} cannot be booked.",
                )

            theater = Theater.objects.select_for_update().filter(pk=theater_id).first()
            if theater is None:
                raise NotFoundError("Theater", theater_id)
            if not theater.is_active:
                raise BookingStateError(f"Theater {theater.name} is not active.")

            self._release_expired_holds(theater, now)

            previous = self._lock_current_booking(case.pk)
            conflict = self._find_conflict(theater, start, end, exclude=previous)
            if conflict is not None:
                logger.info(
                    "booking_conflict",
                    theater_id=str(theater.pk),
                    case_id=str(case.pk),
                    conflicting_booking_id=str(conflict.pk),
                )
                raise BookingConflictError(conflict.pk)

            confirmed = confirm or (
                previous is not None
                and previous.status == TheaterBooking.Status.CONFIRMED
            )
            if previous is not None:
                self._mark_cancelled(previous, actor, now, reason="rebooked")

            fields = {
                "theater": theater,
                "case": case,
                "start_time": start,
                "end_time": end,
                "locked_by": actor,
                "locked_at": now,
            }
            if confirmed:
                fields.update(
                    status=TheaterBooking.Status.CONFIRMED,
                    confirmed_by=actor,
                    confirmed_at=now,
                )
            else:
                fields.update(
                    status=TheaterBooking.Status.PROVISIONAL,
                    hold_expires_at=now
                    + datetime.timedelta(minutes=provisional_hold_minutes()),
                )

            try:
                with transaction.atomic():
                    booking = TheaterBooking.objects.create(**fields)
            except IntegrityError as exc:
                # uniq_active_booking_per_case: another writer booked this case
                raise ConcurrentModificationError(
                    "The case was booked concurrently. Reload and retry."
                ) from exc

            self.audit.record(
                action=AuditEvent.Action.BOOKING_CREATED,
                actor=actor,
                case=case,
                booking=booking,
                new_state=booking.status,
                details={
                    "theater_id": str(theater.pk),
                    "start_time": start.isoformat(),
                    "end_time": end.isoformat(),
                    "replaced_booking_id": str(previous.pk) if previous else None,
                },
            )

        logger.info(
            "booking_created",
            booking_id=str(booking.pk),
            theater_id=str(theater.pk),
            case_id=str(case.pk),
            status=booking.status,
        )
        return booking

    def confirm(self, booking_id, actor=None):
        """
        PROVISIONAL -> CONFIRMED. Confirming a confirmed booking is a no-op.
        """
        now = self.clock()
        with transaction.atomic():
            booking = self._lock_booking(booking_id)
            if booking.status == TheaterBooking.Status.CONFIRMED:
                return booking
            if booking.status == TheaterBooking.Status.CANCELLED:
                raise BookingStateError("Cancelled bookings cannot be confirmed.")
            if booking.hold_expired(now):
                raise BookingStateError(
                    "The provisional hold has expired. Book the slot again."
                )

            previous_state = booking.status
            booking.status = TheaterBooking.Status.CONFIRMED
            booking.confirmed_by = actor
            booking.confirmed_at = now
            booking.hold_expires_at = None
            booking.save(
                update_fields=[
                    "status",
                    "confirmed_by",
                    "confirmed_at",
                    "hold_expires_at",
                    "updated_at",
                ]
            )
            self.audit.record(
                action=AuditEvent.Action.BOOKING_CONFIRMED,
                actor=actor,
                case=booking.case,
                booking=booking,
                previous_state=previous_state,
                new_state=booking.status,
            )

        logger.info("booking_confirmed", booking_id=str(booking.pk))
        return booking

    def cancel(self, booking_id, actor=None):
        """
        Release a booking of a case that is still READY_FOR_SCHEDULING.

        Bookings of SCHEDULED (or later) cases are released by cancelling
        the case, or replaced by rebooking.
        """
        now = self.clock()
        with transaction.atomic():
            booking = self._lock_booking(booking_id)
            if booking.status == TheaterBooking.Status.CANCELLED:
                return booking
            case = booking.case
            if case.status != SurgicalCase.Status.READY_FOR_SCHEDULING:
                raise BookingStateError(
                    f"The booking of a {case.status} case can only be released "
                    "by cancelling the case or rebooking it.",
                )
            self._mark_cancelled(booking, actor, now)
        return booking

    def cancel_for_case(self, case, actor=None):
        """
        Cancel every non-cancelled booking of a case.

        Used by the CANCELLED transition inside its transaction; no case
        status check here.
        """
        now = self.clock()
        cancelled = []
        with transaction.atomic():
            bookings = (
                TheaterBooking.objects.select_for_update()
                .filter(case=case)
                .exclude(status=TheaterBooking.Status.CANCELLED)
            )
            for booking in bookings:
                self._mark_cancelled(booking, actor, now, reason="case_cancelled")
                cancelled.append(booking)
        return cancelled

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def active_booking_for_case(self, case_id):
        """
        The booking currently holding a slot for the case, if any.
        """
        return TheaterBooking.objects.filter(case_id=case_id).live(self.clock()).first()

    def list_relevant(self, theater_id, as_of, grace_minutes=None):
        """
        Live bookings of a theater that have not ended more than
        grace_minutes before as_of, ordered by start time. Holds already
        expired at as_of are left out.
        """
        if not Theater.objects.filter(pk=theater_id).exists():
            raise NotFoundError("Theater", theater_id)
        if grace_minutes is None:
            grace_minutes = booking_grace_minutes()

        bookings = (
            TheaterBooking.objects.select_related(
                "theater", "case", "case__patient", "case__primary_surgeon"
            )
            .filter(theater_id=theater_id)
            .live(as_of)
            .order_by("start_time", "id")
        )
        return [
            booking
            for booking in bookings
            if is_booking_relevant(booking.end_time, as_of, grace_minutes)
        ]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _lock_case(self, case_id):
        case = SurgicalCase.objects.select_for_update().filter(pk=case_id).first()
        if case is None:
            raise NotFoundError("SurgicalCase", case_id)
        return case

    def _lock_booking(self, booking_id):
        """
        Lock a booking and its case, case first.
        """
        case_id = (
            TheaterBooking.objects.filter(pk=booking_id)
            .values_list("case_id", flat=True)
            .first()
        )
        if case_id is None:
            raise NotFoundError("TheaterBooking", booking_id)
        case = self._lock_case(case_id)
        booking = TheaterBooking.objects.select_for_update().get(pk=booking_id)
        booking.case = case
        return booking

    def _lock_current_booking(self, case_id):
        return (
            TheaterBooking.objects.select_for_update()
            .filter(case_id=case_id)
            .exclude(status=TheaterBooking.Status.CANCELLED)
            .first()
        )

    def _find_conflict(self, theater, start, end, exclude=None):
        qs = TheaterBooking.objects.filter(
            theater=theater,
            start_time__lt=end,
            end_time__gt=start,
        ).exclude(status=TheaterBooking.Status.CANCELLED)
        if exclude is not None:
            qs = qs.exclude(pk=exclude.pk)
        return qs.order_by("start_time").first()

    def _release_expired_holds(self, theater, now):
        expired = TheaterBooking.objects.filter(
            theater=theater,
            status=TheaterBooking.Status.PROVISIONAL,
            hold_expires_at__lte=now,
        )
        for booking in expired:
            previous_state = booking.status
            booking.status = TheaterBooking.Status.CANCELLED
            booking.cancelled_at = now
            booking.save(update_fields=["status", "cancelled_at", "updated_at"])
            self.audit.record(
                action=AuditEvent.Action.BOOKING_HOLD_EXPIRED,
                case=booking.case,
                booking=booking,
                previous_state=previous_state,
                new_state=booking.status,
            )
            logger.info(
                "booking_hold_released",
                booking_id=str(booking.pk),
                theater_id=str(theater.pk),
            )

    def _mark_cancelled(self, booking, actor, now, reason=None):
        previous_state = booking.status
        booking.status = TheaterBooking.Status.CANCELLED
        booking.cancelled_at = now
        booking.save(update_fields=["status", "cancelled_at", "updated_at"])
        self.audit.record(
            action=AuditEvent.Action.BOOKING_CANCELLED,
            actor=actor,
            case=booking.case,
            booking=booking,
            previous_state=previous_state,
            new_state=booking.status,
            details={"reason": reason} if reason else {},
        )
        logger.info(
            "booking_cancelled",
            booking_id=str(booking.pk),
            case_id=str(booking.case_id),
            reason=reason,
        )
