from django.utils import timezone
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from apps.core.pagination import StandardPagination
from apps.scheduling.filters import TheaterBookingFilter
from apps.scheduling.models import Theater, TheaterBooking
from apps.scheduling.permissions import IsTheaterAdminOrClinicianReadOnly
from apps.scheduling.scheduler import TheaterBookingScheduler
from apps.scheduling.serializers import (
    BookingRequestSerializer,
    RelevantBookingsQuerySerializer,
    TheaterBookingSerializer,
    TheaterSerializer,
)
from apps.surgery.models import SurgicalCase
from apps.surgery.state_machine import case_state_machine


class TheaterViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Theatres API

    - GET /api/v1/theaters/                              (active theatres)
    - GET /api/v1/theaters/{id}/                         (detail)
    - GET /api/v1/theaters/{id}/relevant-bookings/       (booking board)
    """

    serializer_class = TheaterSerializer
    pagination_class = StandardPagination
    permission_classes = [IsAuthenticated, IsTheaterAdminOrClinicianReadOnly]
    search_fields = ["name"]

    def get_queryset(self):
        return Theater.objects.active().order_by("name")

    @action(detail=True, methods=["get"], url_path="relevant-bookings")
    def relevant_bookings(self, request, pk=None):
        """
        Non-cancelled bookings that have not ended more than grace_minutes
        before as_of. Unpaginated: a board shows one theatre's day.
        """
        theater = self.get_object()
        query = RelevantBookingsQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        bookings = TheaterBookingScheduler().list_relevant(
            theater.pk,
            query.validated_data.get("as_of") or timezone.now(),
            query.validated_data.get("grace_minutes"),
        )
        return Response(TheaterBookingSerializer(bookings, many=True).data)


class TheaterBookingViewSet(
    mixins.CreateModelMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """
    Theatre bookings API

    - POST /api/v1/theater-bookings/                 (provisional hold)
    - GET  /api/v1/theater-bookings/                 (list)
    - GET  /api/v1/theater-bookings/{id}/            (detail)
    - POST /api/v1/theater-bookings/{id}/confirm/    (confirm hold)
    - POST /api/v1/theater-bookings/{id}/cancel/     (release hold)
    """

    serializer_class = TheaterBookingSerializer
    pagination_class = StandardPagination
    permission_classes = [IsAuthenticated, IsTheaterAdminOrClinicianReadOnly]
    filterset_class = TheaterBookingFilter

    def get_queryset(self):
        return TheaterBooking.objects.select_related(
            "theater", "case", "case__patient", "case__primary_surgeon"
        ).order_by("start_time", "id")

    def create(self, request, *args, **kwargs):
        serializer = BookingRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        booking = TheaterBookingScheduler().book(
            data["theater_id"],
            data["start_time"],
            data["end_time"],
            data["case_id"],
            request.user,
        )
        booking = self.get_queryset().get(pk=booking.pk)
        return Response(self.get_serializer(booking).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"])
    def confirm(self, request, pk=None):
        """
        Confirming the active hold of a READY_FOR_SCHEDULING case schedules
        the case; any other confirmation only touches the booking.
        """
        booking = self.get_object()
        if (
            booking.is_active
            and booking.case.status == SurgicalCase.Status.READY_FOR_SCHEDULING
        ):
            case_state_machine.transition(
                booking.case_id, SurgicalCase.Status.SCHEDULED, request.user
            )
        else:
            TheaterBookingScheduler().confirm(booking.pk, request.user)

        booking = self.get_queryset().get(pk=booking.pk)
        return Response(self.get_serializer(booking).data)

    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        booking = self.get_object()
        TheaterBookingScheduler().cancel(booking.pk, request.user)

        booking = self.get_queryset().get(pk=booking.pk)
        return Response(self.get_serializer(booking).data)
