from django.contrib.auth.models import AbstractUser
from django.core.exceptions import ObjectDoesNotExist
from django.db import models

from .managers import UserManager


class User(AbstractUser):
    """
    Login account for clinic staff. Every case transition and booking
    mutation is attributed to one of these as its actor.

    Maps 1 - 1 with Clinician profiles; theatre admins may have none.
    """

    username = None
    email = models.EmailField(unique=True, db_index=True)

    objects = UserManager()

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []

    def __str__(self) -> str:
        return self.email

    @property
    def clinician(self):
        """The linked Clinician profile, or None for non-clinical accounts."""
        try:
            return self.clinician_profile
        except ObjectDoesNotExist:
            return None
