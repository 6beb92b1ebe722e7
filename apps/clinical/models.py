from django.conf import settings
from django.db import models

from apps.core.models import TimeStampedModel, IsActiveBaseModel


class Clinician(TimeStampedModel, IsActiveBaseModel):
    """
    Profile for theatre staff (surgeons, anaesthetists, nurses, technicians).
    """

    class Role(models.TextChoices):
        SURGEON = "SURGEON", "Surgeon"
        ANAESTHETIST = "ANAESTHETIST", "Anaesthetist"
        NURSE = "NURSE", "Nurse"
        THEATER_TECH = "THEATER_TECH", "Theater Technician"

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="clinician_profile",
    )
    name = models.CharField(max_length=255)
    role = models.CharField(
        max_length=20,
        choices=Role.choices,
        default=Role.SURGEON,
    )
    specialization = models.CharField(max_length=255, blank=True)

    class Meta:
        ordering = ["name", "-created_at"]
        indexes = [
            models.Index(fields=["name"]),
            models.Index(fields=["role"]),
        ]

    def __str__(self) -> str:
        return self.name

    @property
    def is_surgeon(self) -> bool:
        return self.role == self.Role.SURGEON


class Patient(TimeStampedModel):
    """
    Minimal patient projection; intake and demographics live elsewhere.
    """

    class Gender(models.TextChoices):
        MALE = "MALE", "Male"
        FEMALE = "FEMALE", "Female"
        OTHER = "OTHER", "Other"
        UNKNOWN = "UNKNOWN", "Unknown"

    file_number = models.CharField(
        max_length=32,
        unique=True,
        help_text="Clinic file number, e.g. NS001.",
    )
    name = models.CharField(max_length=255)
    gender = models.CharField(
        max_length=10,
        choices=Gender.choices,
        default=Gender.UNKNOWN,
    )
    email = models.EmailField(blank=True, null=True, db_index=True)
    date_of_birth = models.DateField()

    class Meta:
        ordering = ["name"]
        indexes = [
            models.Index(fields=["name"]),
        ]

    def __str__(self) -> str:
        return f"{self.name} ({self.file_number})"
