from rest_framework.permissions import BasePermission

from apps.clinical.models import Clinician
from apps.core.permissions_helpers import clinician_role, is_clinician, is_theater_admin
from apps.surgery.models import SurgicalCase

# Physical custody changes that ward and theatre staff drive.
CUSTODY_TARGETS = frozenset(
    {
        SurgicalCase.Status.IN_PREP,
        SurgicalCase.Status.IN_THEATER,
        SurgicalCase.Status.RECOVERY,
        SurgicalCase.Status.COMPLETED,
    }
)

CUSTODY_ROLES = frozenset({Clinician.Role.NURSE, Clinician.Role.THEATER_TECH})


class IsTheaterAdminOrClinician(BasePermission):
    """
    Allows access only to:
    - Users in 'theater_admin' group
    - Active clinicians (have clinician_profile)

    Per-case rules (primary surgeon, custody roles) are applied by
    can_transition() on the row being changed.
    """

    def has_permission(self, request, view) -> bool:
        user = request.user
        if not user or not user.is_authenticated:
            return False

        return is_theater_admin(user) or is_clinician(user)


def is_primary_surgeon(user, case) -> bool:
    return is_clinician(user) and case.primary_surgeon_id == user.clinician.pk


def can_transition(actor, case, target_status) -> bool:
    """
    Ownership policy for case transitions.

    - theater_admin: any transition
    - primary surgeon of the case: any transition
    - nurses / theatre technicians: custody transitions only
    """
    if actor is None or not actor.is_authenticated:
        return False

    if is_theater_admin(actor) or is_primary_surgeon(actor, case):
        return True

    return target_status in CUSTODY_TARGETS and clinician_role(actor) in CUSTODY_ROLES


def can_edit_plan(actor, case) -> bool:
    return is_theater_admin(actor) or is_primary_surgeon(actor, case)
