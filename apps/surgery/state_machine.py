"""
Surgical case lifecycle.

    DRAFT -> PLANNING -> READY_FOR_SCHEDULING -> SCHEDULED -> IN_PREP
          -> IN_THEATER -> RECOVERY -> COMPLETED

plus CANCELLED from any non-terminal status. COMPLETED and CANCELLED
are terminal. Two edges are guarded:

- PLANNING -> READY_FOR_SCHEDULING re-evaluates readiness inside the
  transaction and fails with ReadinessValidationError unless every
  readiness fact holds.
- READY_FOR_SCHEDULING -> SCHEDULED books the supplied interval as
  CONFIRMED, or confirms the case's existing hold.

CANCELLED also cancels the case's bookings in the same transaction.

Status writes are compare-and-swap on (id, status, version). A writer
that lost the race gets ConcurrentModificationError and nothing else of
its transition is kept.
"""

from dataclasses import dataclass

import structlog
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from apps.audit.models import AuditEvent
from apps.audit.recorder import audit_recorder
from apps.core.exceptions import (
    BookingRequiredError,
    ConcurrentModificationError,
    IllegalTransitionError,
    InputValidationError,
    NotAuthorizedError,
    NotFoundError,
    ReadinessValidationError,
)
from apps.scheduling.scheduler import TheaterBookingScheduler
from apps.surgery.models import CasePlan, SurgicalCase
from apps.surgery.permissions import can_transition
from apps.surgery.readiness import ReadinessEvaluator, readiness_status_for

logger = structlog.get_logger(__name__)

Status = SurgicalCase.Status

FORWARD_PATH = (
    Status.DRAFT,
    Status.PLANNING,
    Status.READY_FOR_SCHEDULING,
    Status.SCHEDULED,
    Status.IN_PREP,
    Status.IN_THEATER,
    Status.RECOVERY,
    Status.COMPLETED,
)

TERMINAL_STATUSES = frozenset({Status.COMPLETED, Status.CANCELLED})


def allowed_targets(current: str) -> list:
    """
    Statuses reachable from current in one step.
    """
    if current in TERMINAL_STATUSES:
        return []
    index = FORWARD_PATH.index(current)
    return [FORWARD_PATH[index + 1], Status.CANCELLED]


def is_legal_transition(current: str, target: str) -> bool:
    return target in allowed_targets(current)


def graph_distance(status: str):
    """
    Position along the forward path; None for CANCELLED.
    """
    if status == Status.CANCELLED:
        return None
    return FORWARD_PATH.index(status)


@dataclass(frozen=True)
class BookingRequest:
    theater_id: object
    start_time: object
    end_time: object


class CaseStateMachine:
    def __init__(self, evaluator=None, scheduler=None, audit=None, authorize=None):
        self.audit = audit or audit_recorder
        self.evaluator = evaluator or ReadinessEvaluator()
        self.scheduler = scheduler or TheaterBookingScheduler(audit=self.audit)
        self.authorize = authorize or can_transition

    def transition(
        self,
        case_id,
        target_status,
        actor,
        *,
        expected_version=None,
        booking=None,
    ):
        """
        Move a case to target_status on behalf of actor.

        Re-requesting the case's current status is a no-op success and
        records nothing.

        Args:
            case_id: SurgicalCase primary key.
            target_status: a SurgicalCase.Status value.
            actor: the User performing the action.
            expected_version: case version the caller last read; a stale
                value fails with ConcurrentModificationError.
            booking: optional BookingRequest used by the SCHEDULED edge.

        Returns:
            The updated SurgicalCase.

        Raises:
            InputValidationError, NotFoundError, NotAuthorizedError,
            IllegalTransitionError, ReadinessValidationError,
            BookingRequiredError, BookingConflictError, InvalidIntervalError,
            ConcurrentModificationError
        """
        if target_status not in Status.values:
            raise InputValidationError(f"Unknown case status {target_status!r}.")

        with transaction.atomic():
            case = SurgicalCase.objects.filter(pk=case_id).first()
            if case is None:
                raise NotFoundError("SurgicalCase", case_id)

            if not self.authorize(actor, case, target_status):
                raise NotAuthorizedError(
                    f"You may not move this case to {target_status}."
                )

            if case.status == target_status:
                return case

            if expected_version is not None and int(expected_version) != case.version:
                self._log_lost_race(case, target_status, expected_version)
                raise ConcurrentModificationError()

            if not is_legal_transition(case.status, target_status):
                raise IllegalTransitionError(
                    case.status, target_status, allowed_targets(case.status)
                )

            previous_status = case.status
            details = {}

            if target_status == Status.READY_FOR_SCHEDULING:
                details["readiness"] = self._check_readiness(case)

            self._compare_and_swap(case, target_status)

            if target_status == Status.SCHEDULED:
                details["booking_id"] = str(self._secure_booking(case, actor, booking).pk)
            elif target_status == Status.CANCELLED:
                cancelled = self.scheduler.cancel_for_case(case, actor)
                details["cancelled_booking_ids"] = [str(b.pk) for b in cancelled]

            case.refresh_from_db()
            self.audit.record(
                action=AuditEvent.Action.CASE_TRANSITION,
                actor=actor,
                case=case,
                previous_state=previous_status,
                new_state=case.status,
                details=details,
            )

        logger.info(
            "case_transitioned",
            case_id=str(case.pk),
            previous_status=previous_status,
            new_status=case.status,
            version=case.version,
            actor_id=getattr(actor, "pk", None),
        )
        return case

    def _check_readiness(self, case) -> dict:
        report = self.evaluator.evaluate(case.pk)
        if not report.is_ready:
            logger.info(
                "readiness_guard_rejected",
                case_id=str(case.pk),
                missing_items=list(report.missing_items),
            )
            raise ReadinessValidationError(report)

        CasePlan.objects.filter(case_id=case.pk).update(
            ready_for_surgery=True,
            readiness_status=readiness_status_for(report),
        )
        return {"percentage": report.percentage}

    def _secure_booking(self, case, actor, booking):
        if booking is not None:
            return self.scheduler.book(
                booking.theater_id,
                booking.start_time,
                booking.end_time,
                case.pk,
                actor,
                confirm=True,
            )

        existing = self.scheduler.active_booking_for_case(case.pk)
        if existing is None:
            raise BookingRequiredError()
        return self.scheduler.confirm(existing.pk, actor)

    def _compare_and_swap(self, case, target_status) -> None:
        updated = SurgicalCase.objects.filter(
            pk=case.pk,
            status=case.status,
            version=case.version,
        ).update(
            status=target_status,
            version=F("version") + 1,
            updated_at=timezone.now(),
        )
        if updated == 0:
            self._log_lost_race(case, target_status, case.version)
            raise ConcurrentModificationError()

    def _log_lost_race(self, case, target_status, version) -> None:
        logger.warning(
            "case_concurrent_modification",
            case_id=str(case.pk),
            target_status=target_status,
            read_version=version,
        )


case_state_machine = CaseStateMachine()
