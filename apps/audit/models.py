import uuid

from django.conf import settings
from django.db import models


class AuditEvent(models.Model):
    """
    Append-only record of a case transition or booking mutation.

    Rows are only ever inserted by AuditRecorder; nothing updates or
    deletes them.
    """

    class Action(models.TextChoices):
        CASE_TRANSITION = "case.transition", "Case transition"
        BOOKING_CREATED = "booking.created", "Booking created"
        BOOKING_CONFIRMED = "booking.confirmed", "Booking confirmed"
        BOOKING_CANCELLED = "booking.cancelled", "Booking cancelled"
        BOOKING_HOLD_EXPIRED = "booking.hold_expired", "Booking hold expired"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="audit_events",
        help_text="User who performed the action (null for system actions).",
    )
    case = models.ForeignKey(
        "surgery.SurgicalCase",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="audit_events",
    )
    booking = models.ForeignKey(
        "scheduling.TheaterBooking",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="audit_events",
    )
    action = models.CharField(max_length=32, choices=Action.choices)
    previous_state = models.CharField(max_length=32, blank=True)
    new_state = models.CharField(max_length=32, blank=True)
    details = models.JSONField(default=dict, blank=True)

    class Meta:
        ordering = ["created_at"]
        indexes = [
            models.Index(fields=["case", "created_at"]),
            models.Index(fields=["booking", "created_at"]),
            models.Index(fields=["action"]),
        ]

    def __str__(self) -> str:
        return f"{self.action} {self.previous_state} -> {self.new_state}"
