from rest_framework import serializers

from apps.audit.models import AuditEvent


class AuditEventSerializer(serializers.ModelSerializer):
    actor_email = serializers.EmailField(source="actor.email", read_only=True, default=None)

    class Meta:
        model = AuditEvent
        fields = (
            "id",
            "created_at",
            "actor_id",
            "actor_email",
            "case_id",
            "booking_id",
            "action",
            "previous_state",
            "new_state",
            "details",
        )
        read_only_fields = fields
