from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from apps.audit.models import AuditEvent
from apps.audit.serializers import AuditEventSerializer
from apps.clinical.models import Clinician
from apps.core.pagination import StandardPagination
from apps.core.permissions_helpers import clinician_role, is_theater_admin
from apps.surgery import planning
from apps.surgery.filters import SurgicalCaseFilter
from apps.surgery.models import SurgicalCase
from apps.surgery.permissions import IsTheaterAdminOrClinician
from apps.surgery.readiness import ReadinessEvaluator
from apps.surgery.serializers import (
    CasePlanSerializer,
    CaseTransitionSerializer,
    SurgicalCaseSerializer,
)
from apps.surgery.state_machine import case_state_machine


class SurgicalCaseViewSet(
    mixins.CreateModelMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """
    Surgical cases API

    - POST /api/v1/surgical-cases/                   (open a case in DRAFT)
    - GET  /api/v1/surgical-cases/                   (list)
    - GET  /api/v1/surgical-cases/{id}/              (detail)
    - POST /api/v1/surgical-cases/{id}/transition/   (lifecycle change)
    - GET  /api/v1/surgical-cases/{id}/readiness/    (readiness report)
    - PUT  /api/v1/surgical-cases/{id}/plan/         (surgeon's plan)
    - GET  /api/v1/surgical-cases/{id}/audit/        (audit trail)
    """

    serializer_class = SurgicalCaseSerializer
    pagination_class = StandardPagination
    permission_classes = [IsAuthenticated, IsTheaterAdminOrClinician]
    filterset_class = SurgicalCaseFilter
    search_fields = ["procedure_name", "diagnosis", "patient__name"]

    def get_queryset(self):
        """
        Scoping:
        - theater_admin: all cases
        - nurses / theatre technicians: all cases (they take custody in prep)
        - surgeons / anaesthetists: only cases where they are primary surgeon
        """
        user = self.request.user
        qs = (
            SurgicalCase.objects.select_related("patient", "primary_surgeon")
            .prefetch_related("theater_bookings__theater")
            .order_by("-created_at")
        )

        if is_theater_admin(user):
            return qs

        if clinician_role(user) in (Clinician.Role.NURSE, Clinician.Role.THEATER_TECH):
            return qs

        if user.clinician is not None:
            return qs.filter(primary_surgeon=user.clinician)

        return qs.none()

    @action(detail=True, methods=["post"])
    def transition(self, request, pk=None):
        case = self.get_object()
        serializer = CaseTransitionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        case = case_state_machine.transition(
            case.pk,
            serializer.validated_data["target_status"],
            request.user,
            expected_version=serializer.validated_data.get("version"),
            booking=serializer.booking_request(),
        )
        case = self.get_queryset().get(pk=case.pk)
        return Response(self.get_serializer(case).data)

    @action(detail=True, methods=["get"])
    def readiness(self, request, pk=None):
        case = self.get_object()
        report = ReadinessEvaluator().evaluate(case.pk)
        return Response(report.to_dict())

    @action(detail=True, methods=["put"])
    def plan(self, request, pk=None):
        case = self.get_object()
        serializer = CasePlanSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        plan = planning.save_case_plan(case.pk, request.user, **serializer.validated_data)
        return Response(CasePlanSerializer(plan).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["get"])
    def audit(self, request, pk=None):
        case = self.get_object()
        events = AuditEvent.objects.select_related("actor").filter(case=case)

        page = self.paginate_queryset(events)
        if page is not None:
            return self.get_paginated_response(AuditEventSerializer(page, many=True).data)
        return Response(AuditEventSerializer(events, many=True).data)
