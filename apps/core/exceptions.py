"""
Domain error taxonomy shared by the surgery and scheduling services.

Services raise these plain exceptions; they never know about HTTP.
domain_exception_handler (wired as REST_FRAMEWORK["EXCEPTION_HANDLER"])
renders them for API clients as:

    {"code": "<machine code>", "message": "<human text>", ...details}

Clients branch on "code". Only "concurrent_modification" is worth an
automatic re-read and retry; every other code needs a different request.
"""

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler


class DomainError(Exception):
    code = "domain_error"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "The request could not be processed."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def details(self) -> dict:
        return {}

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, **self.details()}


class NotFoundError(DomainError):
    code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, resource: str, identifier, message: str | None = None):
        self.resource = resource
        self.identifier = identifier
        super().__init__(message or f"{resource} {identifier} does not exist.")

    def details(self) -> dict:
        return {"resource": self.resource, "identifier": str(self.identifier)}


class InputValidationError(DomainError):
    code = "invalid_input"
    default_message = "The request contains invalid input."


class InvalidIntervalError(InputValidationError):
    code = "invalid_interval"

    def __init__(self, start, end, message: str | None = None):
        self.start = start
        self.end = end
        super().__init__(message or "end_time must be strictly after start_time.")

    def details(self) -> dict:
        return {
            "start_time": self.start.isoformat() if self.start else None,
            "end_time": self.end.isoformat() if self.end else None,
        }


class NotAuthorizedError(DomainError):
    code = "not_authorized"
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "You are not allowed to perform this action."


class BusinessRuleViolation(DomainError):
    code = "business_rule_violation"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str | None = None, code: str | None = None):
        if code:
            self.code = code
        super().__init__(message)


class IllegalTransitionError(BusinessRuleViolation):
    code = "illegal_transition"

    def __init__(self, current: str, target: str, allowed=()):
        self.current = current
        self.target = target
        self.allowed = list(allowed)
        super().__init__(f"Cannot move a case from {current} to {target}.")

    def details(self) -> dict:
        return {
            "current_status": self.current,
            "target_status": self.target,
            "allowed_targets": self.allowed,
        }


class ReadinessValidationError(BusinessRuleViolation):
    code = "readiness_validation_failed"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY

    def __init__(self, report):
        self.report = report
        self.missing_items = list(report.missing_items)
        self.completed_count = report.completed_count
        self.total_required = report.total_required
        super().__init__(
            f"Case is not ready for scheduling: "
            f"{report.completed_count}/{report.total_required} items complete."
        )

    def details(self) -> dict:
        return {
            "missing_items": self.missing_items,
            "completed_count": self.completed_count,
            "total_required": self.total_required,
            "percentage": self.report.percentage,
        }


class BookingConflictError(BusinessRuleViolation):
    code = "booking_conflict"

    def __init__(self, conflicting_booking_id, message: str | None = None):
        self.conflicting_booking_id = conflicting_booking_id
        super().__init__(
            message or "Theater is already booked or held for this time slot."
        )

    def details(self) -> dict:
        return {"conflicting_booking_id": str(self.conflicting_booking_id)}


class BookingRequiredError(BusinessRuleViolation):
    code = "booking_required"
    default_message = "A theater booking is required to schedule this case."


class BookingStateError(BusinessRuleViolation):
    code = "booking_state"


class ConsentConflictError(BusinessRuleViolation):
    code = "consent_conflict"

    def __init__(self, consent_type: str, existing_consent_id=None):
        self.consent_type = consent_type
        self.existing_consent_id = existing_consent_id
        super().__init__(
            f"An active {consent_type} consent already exists; revoke it first."
        )

    def details(self) -> dict:
        return {
            "consent_type": self.consent_type,
            "existing_consent_id": (
                str(self.existing_consent_id) if self.existing_consent_id else None
            ),
        }


class ConcurrentModificationError(DomainError):
    code = "concurrent_modification"
    status_code = status.HTTP_409_CONFLICT
    default_message = "The record was changed by someone else. Reload and retry."


def domain_exception_handler(exc, context):
    """
    DRF exception handler: renders DomainError subclasses, defers the rest.
    """
    if isinstance(exc, DomainError):
        return Response(exc.to_dict(), status=exc.status_code)
    return exception_handler(exc, context)
