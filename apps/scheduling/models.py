import uuid

from django.conf import settings
from django.db import models
from django.db.models import F, Q

from apps.core.models import TimeStampedModel, IsActiveBaseModel


class Theater(TimeStampedModel, IsActiveBaseModel):
    """
    An operating room or procedure room: the schedulable resource.
    """

    class TheaterType(models.TextChoices):
        MAJOR = "MAJOR", "Major"
        MINOR = "MINOR", "Minor"
        PROCEDURE_ROOM = "PROCEDURE_ROOM", "Procedure Room"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255, unique=True)
    type = models.CharField(
        max_length=20,
        choices=TheaterType.choices,
        default=TheaterType.MAJOR,
    )
    capabilities = models.JSONField(
        default=list,
        blank=True,
        help_text="List of capability tags, e.g. ['laparoscopy', 'c-arm'].",
    )
    operational_hours = models.CharField(
        max_length=255,
        blank=True,
        help_text="Informational only; bookings are not checked against it.",
    )
    color_code = models.CharField(max_length=16, blank=True)
    notes = models.TextField(blank=True)

    class Meta:
        ordering = ["name"]

    def __str__(self) -> str:
        return self.name


class TheaterBookingQuerySet(models.QuerySet):
    def live(self, as_of):
        """
        Bookings that still occupy their slot at as_of: not cancelled and
        not a PROVISIONAL hold past its expiry.
        """
        return self.exclude(status=TheaterBooking.Status.CANCELLED).exclude(
            status=TheaterBooking.Status.PROVISIONAL,
            hold_expires_at__lte=as_of,
        )


class TheaterBooking(TimeStampedModel):
    """
    A reserved [start_time, end_time) interval on one theater for one case.

    Non-cancelled bookings of the same theater never overlap; a case holds
    at most one non-cancelled booking. Both are enforced in
    apps.scheduling.scheduler, the second one also by the database.
    """

    class Status(models.TextChoices):
        PROVISIONAL = "PROVISIONAL", "Provisional"
        CONFIRMED = "CONFIRMED", "Confirmed"
        CANCELLED = "CANCELLED", "Cancelled"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    theater = models.ForeignKey(
        Theater,
        on_delete=models.PROTECT,
        related_name="bookings",
    )
    case = models.ForeignKey(
        "surgery.SurgicalCase",
        on_delete=models.PROTECT,
        related_name="theater_bookings",
    )
    start_time = models.DateTimeField(db_index=True)
    end_time = models.DateTimeField()
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PROVISIONAL,
    )
    locked_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    locked_at = models.DateTimeField(null=True, blank=True)
    hold_expires_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="PROVISIONAL holds past this instant are released on the next booking.",
    )
    confirmed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    confirmed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    objects = TheaterBookingQuerySet.as_manager()

    class Meta:
        ordering = ["start_time"]
        indexes = [
            models.Index(fields=["theater", "status", "start_time"]),
            models.Index(fields=["case", "status"]),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(end_time__gt=F("start_time")),
                name="booking_end_after_start",
            ),
            models.UniqueConstraint(
                fields=["case"],
                condition=~Q(status="CANCELLED"),
                name="uniq_active_booking_per_case",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.theater} {self.start_time:%Y-%m-%d %H:%M}-{self.end_time:%H:%M} [{self.status}]"

    @property
    def is_active(self) -> bool:
        return self.status != self.Status.CANCELLED

    def hold_expired(self, now) -> bool:
        return (
            self.status == self.Status.PROVISIONAL
            and self.hold_expires_at is not None
            and self.hold_expires_at <= now
        )

    def is_live(self, now) -> bool:
        return self.is_active and not self.hold_expired(now)
