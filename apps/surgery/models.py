import uuid

from django.conf import settings
from django.db import models
from django.db.models import Q

from apps.core.models import TimeStampedModel
from apps.clinical.models import Patient, Clinician


class SurgicalCase(TimeStampedModel):
    """
    One patient's candidacy for one procedure, from recommendation to discharge.

    status only changes through apps.surgery.state_machine; version is the
    compare-and-swap token every status write is conditioned on.
    """

    class Status(models.TextChoices):
        DRAFT = "DRAFT", "Draft"
        PLANNING = "PLANNING", "Planning"
        READY_FOR_SCHEDULING = "READY_FOR_SCHEDULING", "Ready for Scheduling"
        SCHEDULED = "SCHEDULED", "Scheduled"
        IN_PREP = "IN_PREP", "In Prep"
        IN_THEATER = "IN_THEATER", "In Theater"
        RECOVERY = "RECOVERY", "Recovery"
        COMPLETED = "COMPLETED", "Completed"
        CANCELLED = "CANCELLED", "Cancelled"

    class Urgency(models.TextChoices):
        ELECTIVE = "ELECTIVE", "Elective"
        URGENT = "URGENT", "Urgent"
        EMERGENCY = "EMERGENCY", "Emergency"

    TERMINAL_STATUSES = (Status.COMPLETED, Status.CANCELLED)

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    patient = models.ForeignKey(
        Patient,
        on_delete=models.PROTECT,
        related_name="surgical_cases",
    )
    primary_surgeon = models.ForeignKey(
        Clinician,
        on_delete=models.PROTECT,
        related_name="primary_cases",
    )
    urgency = models.CharField(
        max_length=20,
        choices=Urgency.choices,
        default=Urgency.ELECTIVE,
    )
    diagnosis = models.TextField(blank=True)
    procedure_name = models.CharField(max_length=255, blank=True)
    side = models.CharField(
        max_length=20,
        blank=True,
        help_text="Optional laterality, e.g. LEFT, RIGHT, BILATERAL.",
    )
    status = models.CharField(
        max_length=24,
        choices=Status.choices,
        default=Status.DRAFT,
        db_index=True,
    )
    version = models.PositiveIntegerField(default=1)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="created_cases",
    )

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "created_at"]),
            models.Index(fields=["primary_surgeon", "status"]),
        ]

    def __str__(self) -> str:
        return f"{self.procedure_name or 'Case'} for {self.patient} [{self.status}]"

    @property
    def is_terminal(self) -> bool:
        return self.status in self.TERMINAL_STATUSES


class CasePlan(TimeStampedModel):
    """
    The primary surgeon's plan for a case; created lazily on first write.
    """

    class ReadinessStatus(models.TextChoices):
        NOT_STARTED = "NOT_STARTED", "Not Started"
        IN_PROGRESS = "IN_PROGRESS", "In Progress"
        READY = "READY", "Ready"

    case = models.OneToOneField(
        SurgicalCase,
        on_delete=models.PROTECT,
        related_name="plan",
    )
    procedure_plan = models.TextField(blank=True)
    risk_factors = models.TextField(blank=True)
    pre_op_notes = models.TextField(blank=True)
    planned_anesthesia = models.CharField(max_length=64, blank=True)
    special_instructions = models.TextField(blank=True)
    readiness_status = models.CharField(
        max_length=20,
        choices=ReadinessStatus.choices,
        default=ReadinessStatus.NOT_STARTED,
    )
    ready_for_surgery = models.BooleanField(
        default=False,
        help_text="Cached copy of the latest readiness verdict; never used as a guard.",
    )

    def __str__(self) -> str:
        return f"Plan for {self.case_id}"


class ConsentForm(TimeStampedModel):
    """
    A consent document attached to a case plan. One active form per type.
    """

    class ConsentType(models.TextChoices):
        GENERAL_PROCEDURE = "GENERAL_PROCEDURE", "General Procedure"
        ANESTHESIA = "ANESTHESIA", "Anesthesia"
        PHOTOGRAPHY = "PHOTOGRAPHY", "Photography"
        SPECIAL_PROCEDURE = "SPECIAL_PROCEDURE", "Special Procedure"
        BLOOD_TRANSFUSION = "BLOOD_TRANSFUSION", "Blood Transfusion"

    class Status(models.TextChoices):
        PENDING_SIGNATURE = "PENDING_SIGNATURE", "Pending Signature"
        SIGNED = "SIGNED", "Signed"
        REVOKED = "REVOKED", "Revoked"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    case_plan = models.ForeignKey(
        CasePlan,
        on_delete=models.PROTECT,
        related_name="consents",
    )
    title = models.CharField(max_length=255)
    type = models.CharField(max_length=32, choices=ConsentType.choices)
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING_SIGNATURE,
    )
    signed_at = models.DateTimeField(null=True, blank=True)
    signed_by_ip = models.GenericIPAddressField(null=True, blank=True)
    witness_name = models.CharField(max_length=255, blank=True)
    revoked_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["case_plan", "type"],
                condition=~Q(status="REVOKED"),
                name="uniq_active_consent_per_type",
            )
        ]

    def __str__(self) -> str:
        return f"{self.title} [{self.status}]"


class PatientImage(TimeStampedModel):
    """
    Clinical photograph tied to a case plan.
    """

    class Angle(models.TextChoices):
        FRONT = "FRONT", "Front"
        OBLIQUE_LEFT = "OBLIQUE_LEFT", "Oblique Left"
        OBLIQUE_RIGHT = "OBLIQUE_RIGHT", "Oblique Right"
        PROFILE_LEFT = "PROFILE_LEFT", "Profile Left"
        PROFILE_RIGHT = "PROFILE_RIGHT", "Profile Right"
        BACK = "BACK", "Back"
        TOP = "TOP", "Top"
        BOTTOM = "BOTTOM", "Bottom"
        CUSTOM = "CUSTOM", "Custom"

    class Timepoint(models.TextChoices):
        PRE_OP = "PRE_OP", "Pre-Op"
        INTRA_OP = "INTRA_OP", "Intra-Op"
        POST_OP = "POST_OP", "Post-Op"
        ONE_WEEK_POST_OP = "ONE_WEEK_POST_OP", "One Week Post-Op"
        ONE_MONTH_POST_OP = "ONE_MONTH_POST_OP", "One Month Post-Op"
        THREE_MONTHS_POST_OP = "THREE_MONTHS_POST_OP", "Three Months Post-Op"
        SIX_MONTHS_POST_OP = "SIX_MONTHS_POST_OP", "Six Months Post-Op"
        ONE_YEAR_POST_OP = "ONE_YEAR_POST_OP", "One Year Post-Op"
        CUSTOM = "CUSTOM", "Custom"

    case_plan = models.ForeignKey(
        CasePlan,
        on_delete=models.PROTECT,
        related_name="images",
    )
    image_url = models.URLField(max_length=500)
    angle = models.CharField(max_length=20, choices=Angle.choices)
    timepoint = models.CharField(max_length=24, choices=Timepoint.choices)
    description = models.TextField(blank=True)
    consent_for_marketing = models.BooleanField(default=False)
    taken_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )

    class Meta:
        ordering = ["created_at"]
        indexes = [
            models.Index(fields=["case_plan", "timepoint"]),
        ]

    def __str__(self) -> str:
        return f"{self.timepoint} {self.angle}"


class PreOpChecklist(TimeStampedModel):
    """
    Nurse-owned pre-operative checklist, independent of the surgeon's plan.
    """

    ITEM_FIELDS = (
        "intake_form_complete",
        "medical_history_complete",
        "photos_complete",
        "consent_complete",
        "procedure_plan_complete",
    )

    case = models.OneToOneField(
        SurgicalCase,
        on_delete=models.PROTECT,
        related_name="pre_op_checklist",
    )
    intake_form_complete = models.BooleanField(default=False)
    medical_history_complete = models.BooleanField(default=False)
    photos_complete = models.BooleanField(default=False)
    consent_complete = models.BooleanField(default=False)
    procedure_plan_complete = models.BooleanField(default=False)
    ready_for_surgery = models.BooleanField(default=False)
    completed_by = models.ForeignKey(
        Clinician,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="completed_checklists",
    )
    completed_at = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True)

    def __str__(self) -> str:
        return f"Pre-op checklist for {self.case_id}"

    @property
    def all_items_complete(self) -> bool:
        return all(getattr(self, name) for name in self.ITEM_FIELDS)
