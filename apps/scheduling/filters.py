from rest_framework.exceptions import ValidationError
import django_filters

from apps.scheduling.models import TheaterBooking


class TheaterBookingFilter(django_filters.FilterSet):
    """
    Filter for GET /api/v1/theater-bookings/
    """

    theater = django_filters.UUIDFilter(field_name="theater_id")
    case = django_filters.UUIDFilter(field_name="case_id")
    status = django_filters.MultipleChoiceFilter(choices=TheaterBooking.Status.choices)
    date_from = django_filters.DateFilter(
        field_name="start_time",
        lookup_expr="date__gte",
    )
    date_to = django_filters.DateFilter(
        field_name="start_time",
        lookup_expr="date__lte",
    )

    def filter_queryset(self, queryset):
        """
        Override to validate date_from <= date_to when both present.
        """
        date_from = self.form.cleaned_data.get("date_from")
        date_to = self.form.cleaned_data.get("date_to")

        if date_from and date_to and date_from > date_to:
            raise ValidationError(
                {"non_field_errors": ["date_from must be less than or equal to date_to."]}
            )

        return super().filter_queryset(queryset)

    class Meta:
        model = TheaterBooking
        fields = ["theater", "case", "status", "date_from", "date_to"]
