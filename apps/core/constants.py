"""
Application-wide constants and configuration values.

Centralizes magic strings and configuration defaults to make the
codebase more maintainable and DRY. Anything tunable per deployment
can be overridden in Django settings under the same name.
"""

USER_GROUP_THEATER_ADMIN = "theater_admin"

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

SURGERY_BOOKING_GRACE_MINUTES = 60
SURGERY_PROVISIONAL_HOLD_MINUTES = 5
