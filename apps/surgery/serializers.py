from django.utils import timezone

from rest_framework import serializers

from apps.clinical.models import Clinician, Patient
from apps.core.permissions_helpers import is_theater_admin
from apps.scheduling.models import TheaterBooking
from apps.surgery import planning
from apps.surgery.models import CasePlan, SurgicalCase
from apps.surgery.state_machine import BookingRequest


class PatientSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = Patient
        fields = ("id", "name", "file_number")


class ClinicianSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = Clinician
        fields = ("id", "name")


class ActiveBookingSerializer(serializers.ModelSerializer):
    theater_name = serializers.CharField(source="theater.name", read_only=True)

    class Meta:
        model = TheaterBooking
        fields = ("id", "theater_id", "theater_name", "start_time", "end_time", "status")


class SurgicalCaseSerializer(serializers.ModelSerializer):
    patient_id = serializers.PrimaryKeyRelatedField(
        source="patient",
        queryset=Patient.objects.all(),
        write_only=True,
    )
    primary_surgeon_id = serializers.PrimaryKeyRelatedField(
        source="primary_surgeon",
        queryset=Clinician.objects.active(),
        write_only=True,
    )

    patient = PatientSummarySerializer(read_only=True)
    primary_surgeon = ClinicianSummarySerializer(read_only=True)
    active_booking = serializers.SerializerMethodField()

    class Meta:
        model = SurgicalCase
        fields = [
            "id",
            "patient",
            "patient_id",
            "primary_surgeon",
            "primary_surgeon_id",
            "urgency",
            "diagnosis",
            "procedure_name",
            "side",
            "status",
            "version",
            "active_booking",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "status", "version", "created_at", "updated_at"]

    def get_active_booking(self, obj):
        now = timezone.now()
        booking = next(
            (b for b in obj.theater_bookings.all() if b.is_live(now)),
            None,
        )
        if booking is None:
            return None
        return ActiveBookingSerializer(booking).data

    def validate(self, attrs):
        """
        Cross-field validation:
        - the primary surgeon must have the SURGEON role
        - surgeons can only open cases for themselves
        """
        attrs = super().validate(attrs)
        request = self.context.get("request")
        user = getattr(request, "user", None)
        surgeon = attrs.get("primary_surgeon")

        errors = {}

        if surgeon is not None and not surgeon.is_surgeon:
            errors["primary_surgeon_id"] = ["The primary surgeon must be a surgeon."]

        if (
            surgeon is not None
            and user is not None
            and not is_theater_admin(user)
            and getattr(user, "clinician", None) != surgeon
        ):
            errors["primary_surgeon_id"] = [
                "Surgeons can only open cases for themselves."
            ]

        if errors:
            raise serializers.ValidationError(errors)

        return attrs

    def create(self, validated_data):
        request = self.context.get("request")
        return planning.create_case(
            actor=getattr(request, "user", None),
            **validated_data,
        )


class CaseTransitionSerializer(serializers.Serializer):
    """
    Validates the body of POST /api/v1/surgical-cases/{id}/transition/
    """

    target_status = serializers.ChoiceField(choices=SurgicalCase.Status.choices)
    version = serializers.IntegerField(required=False, min_value=1)
    theater_id = serializers.UUIDField(required=False)
    start_time = serializers.DateTimeField(required=False)
    end_time = serializers.DateTimeField(required=False)

    BOOKING_FIELDS = ("theater_id", "start_time", "end_time")

    def validate(self, attrs):
        given = [name for name in self.BOOKING_FIELDS if name in attrs]
        if given and len(given) != len(self.BOOKING_FIELDS):
            missing = [name for name in self.BOOKING_FIELDS if name not in attrs]
            raise serializers.ValidationError(
                {name: ["Required when booking during the transition."] for name in missing}
            )
        if given and attrs["target_status"] != SurgicalCase.Status.SCHEDULED:
            raise serializers.ValidationError(
                {"theater_id": ["A booking can only accompany the SCHEDULED transition."]}
            )
        return attrs

    def booking_request(self):
        data = self.validated_data
        if "theater_id" not in data:
            return None
        return BookingRequest(
            theater_id=data["theater_id"],
            start_time=data["start_time"],
            end_time=data["end_time"],
        )


class CasePlanSerializer(serializers.ModelSerializer):
    class Meta:
        model = CasePlan
        fields = [
            "procedure_plan",
            "risk_factors",
            "pre_op_notes",
            "planned_anesthesia",
            "special_instructions",
            "readiness_status",
            "ready_for_surgery",
            "updated_at",
        ]
        read_only_fields = ["readiness_status", "ready_for_surgery", "updated_at"]
