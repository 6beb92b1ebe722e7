import django_filters

from apps.surgery.models import SurgicalCase


class SurgicalCaseFilter(django_filters.FilterSet):
    """
    Filter for GET /api/v1/surgical-cases/

    - status: one or more statuses (?status=PLANNING&status=SCHEDULED)
    - urgency
    - primary_surgeon: clinician id
    - patient: patient id
    """

    status = django_filters.MultipleChoiceFilter(choices=SurgicalCase.Status.choices)
    urgency = django_filters.ChoiceFilter(choices=SurgicalCase.Urgency.choices)
    primary_surgeon = django_filters.NumberFilter(field_name="primary_surgeon_id")
    patient = django_filters.NumberFilter(field_name="patient_id")

    class Meta:
        model = SurgicalCase
        fields = ["status", "urgency", "primary_surgeon", "patient"]
