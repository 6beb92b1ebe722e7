from rest_framework import permissions

from apps.core.permissions_helpers import is_clinician, is_theater_admin


class IsTheaterAdminOrClinicianReadOnly(permissions.BasePermission):
    """
    - theater_admin group:
        * books, confirms and releases theatre slots
    - clinicians (active clinician_profile):
        * read-only (theatre lists, booking boards)
    - others:
        * no access

    Surgeons still secure a slot through their case's SCHEDULED
    transition, which is authorised per case.
    """

    def has_permission(self, request, view) -> bool:
        user = request.user
        if not user or not user.is_authenticated:
            return False

        admin = is_theater_admin(user)

        if request.method in permissions.SAFE_METHODS:
            return admin or is_clinician(user)

        return admin
