"""
Core permission helper functions
"""

from apps.core.constants import USER_GROUP_THEATER_ADMIN


def is_theater_admin(user) -> bool:
    """
    Check if user is in the 'theater_admin' group.

    Args:
        user: Django User instance.

    Returns:
        True if user is authenticated and in 'theater_admin' group, False otherwise.
    """
    return (
        user is not None
        and user.is_authenticated
        and user.groups.filter(name=USER_GROUP_THEATER_ADMIN).exists()
    )


def is_clinician(user) -> bool:
    """
    Check if user has an active clinician profile.

    Args:
        user: Django User instance.

    Returns:
        True if user is authenticated and has an active clinician_profile.
    """
    return (
        user is not None
        and user.is_authenticated
        and user.clinician is not None
        and user.clinician.is_active
    )


def clinician_role(user) -> str | None:
    """
    Return the Clinician.Role of the user, or None for non-clinicians.
    """
    if not is_clinician(user):
        return None
    return user.clinician.role
