from rest_framework import serializers

from apps.scheduling.models import Theater, TheaterBooking
from apps.surgery.models import SurgicalCase


class TheaterSerializer(serializers.ModelSerializer):
    class Meta:
        model = Theater
        fields = [
            "id",
            "name",
            "type",
            "capabilities",
            "operational_hours",
            "color_code",
            "notes",
            "is_active",
        ]
        read_only_fields = fields


class TheaterSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = Theater
        fields = ("id", "name", "color_code")


class BookedCaseSerializer(serializers.ModelSerializer):
    patient_name = serializers.CharField(source="patient.name", read_only=True)
    surgeon_name = serializers.CharField(source="primary_surgeon.name", read_only=True)

    class Meta:
        model = SurgicalCase
        fields = ("id", "procedure_name", "status", "patient_name", "surgeon_name")


class TheaterBookingSerializer(serializers.ModelSerializer):
    theater = TheaterSummarySerializer(read_only=True)
    case = BookedCaseSerializer(read_only=True)

    class Meta:
        model = TheaterBooking
        fields = [
            "id",
            "theater",
            "case",
            "start_time",
            "end_time",
            "status",
            "hold_expires_at",
            "confirmed_at",
            "cancelled_at",
            "created_at",
        ]
        read_only_fields = fields


class BookingRequestSerializer(serializers.Serializer):
    """
    Validates the body of POST /api/v1/theater-bookings/

    Interval rules (end after start, timezone-aware) are enforced by the
    scheduler so every entry point reports them the same way.
    """

    theater_id = serializers.UUIDField()
    case_id = serializers.UUIDField()
    start_time = serializers.DateTimeField()
    end_time = serializers.DateTimeField()


class RelevantBookingsQuerySerializer(serializers.Serializer):
    """
    Validates query params for
    GET /api/v1/theaters/{id}/relevant-bookings/?as_of=&grace_minutes=

    as_of defaults to now; grace_minutes to SURGERY_BOOKING_GRACE_MINUTES.
    """

    as_of = serializers.DateTimeField(required=False)
    grace_minutes = serializers.IntegerField(required=False, min_value=0)
