"""
Best-effort audit sink for case and booking mutations.

Writes happen inside a savepoint of the caller's transaction: if the
primary change rolls back, its audit rows go with it, but a failed audit
insert never rolls back the primary change. Failures are logged and
swallowed here, and only here.
"""

import structlog
from django.db import DatabaseError, transaction

from apps.audit.models import AuditEvent

logger = structlog.get_logger(__name__)


class AuditRecorder:
    def record(
        self,
        *,
        action: str,
        actor=None,
        case=None,
        booking=None,
        previous_state: str = "",
        new_state: str = "",
        details: dict | None = None,
    ) -> AuditEvent | None:
        try:
            with transaction.atomic():
                return AuditEvent.objects.create(
                    action=action,
                    actor=actor if actor is not None and actor.pk else None,
                    case=case,
                    booking=booking,
                    previous_state=previous_state or "",
                    new_state=new_state or "",
                    details=details or {},
                )
        except DatabaseError:
            logger.exception(
                "audit_record_failed",
                action=action,
                case_id=str(case.pk) if case is not None else None,
                booking_id=str(booking.pk) if booking is not None else None,
            )
            return None


audit_recorder = AuditRecorder()
