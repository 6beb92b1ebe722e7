"""
Pagination for list endpoints (case lists, booking boards, audit trails).
"""

from rest_framework.pagination import LimitOffsetPagination

from apps.core.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE


class StandardPagination(LimitOffsetPagination):
    """
    limit/offset pagination with project-wide page size defaults.

    The theatre relevant-bookings view bypasses this and returns a plain
    list, since a wall board needs the whole window at once.
    """

    default_limit = DEFAULT_PAGE_SIZE
    max_limit = MAX_PAGE_SIZE
