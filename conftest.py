"""
Shared pytest fixtures for all tests in the application.

These fixtures provide common test data and API clients that are
reused across multiple test modules to eliminate duplication.
"""

import datetime

import pytest
from django.contrib.auth.models import Group
from django.utils import timezone
from rest_framework.test import APIClient

from apps.accounts.models import User
from apps.clinical.models import Clinician, Patient
from apps.core.constants import USER_GROUP_THEATER_ADMIN
from apps.scheduling.models import Theater
from apps.surgery.models import (
    CasePlan,
    ConsentForm,
    PatientImage,
    PreOpChecklist,
    SurgicalCase,
)
from apps.surgery.readiness import ReadinessFacts, sync_plan_readiness


@pytest.fixture
def api_client():
    """
    Provides a DRF APIClient for making API requests in tests.

    Returns:
        APIClient instance
    """
    return APIClient()


@pytest.fixture
def theater_admin_group(db):
    """
    Creates or gets the 'theater_admin' group.

    Returns:
        Group instance for the theatre admin role
    """
    group, _ = Group.objects.get_or_create(name=USER_GROUP_THEATER_ADMIN)
    return group


@pytest.fixture
def theater_admin_user(db, theater_admin_group):
    """
    Creates a theatre admin user in the theater_admin group.

    Returns:
        User instance with theater_admin group membership
    """
    user = User.objects.create_user(
        email="admin@example.com",
        password="password123",
        is_staff=True,
    )
    user.groups.add(theater_admin_group)
    return user


@pytest.fixture
def regular_user(db):
    """
    Creates a regular user with no group memberships and no clinician profile.
    """
    return User.objects.create_user(
        email="regular@example.com",
        password="password123",
    )


def _make_clinician(email, name, role):
    user = User.objects.create_user(email=email, password="password123")
    return Clinician.objects.create(user=user, name=name, role=role)


@pytest.fixture
def surgeon(db):
    """
    Creates a surgeon (user + clinician profile).
    """
    return _make_clinician("surgeon@example.com", "Dr. Strange", Clinician.Role.SURGEON)


@pytest.fixture
def surgeon_user(surgeon):
    return surgeon.user


@pytest.fixture
def other_surgeon(db):
    """
    Creates a second surgeon for ownership scenarios.
    """
    return _make_clinician("othersurgeon@example.com", "Dr. House", Clinician.Role.SURGEON)


@pytest.fixture
def other_surgeon_user(other_surgeon):
    return other_surgeon.user


@pytest.fixture
def nurse(db):
    return _make_clinician("nurse@example.com", "Nurse Joy", Clinician.Role.NURSE)


@pytest.fixture
def nurse_user(nurse):
    return nurse.user


@pytest.fixture
def patient(db):
    """
    Creates a test patient.
    """
    return Patient.objects.create(
        file_number="NS001",
        name="Jane Doe",
        gender=Patient.Gender.FEMALE,
        email="jane@example.com",
        date_of_birth=datetime.date(1990, 1, 1),
    )


@pytest.fixture
def theater(db):
    return Theater.objects.create(name="Theatre 1", type=Theater.TheaterType.MAJOR)


@pytest.fixture
def other_theater(db):
    return Theater.objects.create(name="Theatre 2", type=Theater.TheaterType.MINOR)


@pytest.fixture
def make_case(db, patient, surgeon):
    """
    Factory for surgical cases placed directly in a given status.

    Usage:
        case = make_case(status=SurgicalCase.Status.PLANNING)
    """

    def _make(status=SurgicalCase.Status.DRAFT, **fields):
        fields.setdefault("patient", patient)
        fields.setdefault("primary_surgeon", surgeon)
        fields.setdefault("procedure_name", "Rhinoplasty")
        return SurgicalCase.objects.create(status=status, **fields)

    return _make


@pytest.fixture
def readiness_records(nurse):
    """
    Factory that writes collaborator records for a case so that exactly
    the given ReadinessFacts hold.

    Usage:
        readiness_records(case, ReadinessFacts(has_procedure_plan=True))
    """

    def _write(case, facts: ReadinessFacts):
        plan, _ = CasePlan.objects.get_or_create(case=case)
        plan.procedure_plan = "<p>Open septorhinoplasty</p>" if facts.has_procedure_plan else ""
        plan.risk_factors = "ASA II, smoker" if facts.has_risk_factors else ""
        plan.save()

        if facts.has_signed_consent:
            ConsentForm.objects.create(
                case_plan=plan,
                type=ConsentForm.ConsentType.GENERAL_PROCEDURE,
                title="General consent",
                status=ConsentForm.Status.SIGNED,
                signed_at=timezone.now(),
            )

        if facts.has_photos:
            PatientImage.objects.create(
                case_plan=plan,
                image_url="https://images.example.com/front.jpg",
                angle=PatientImage.Angle.FRONT,
                timepoint=PatientImage.Timepoint.PRE_OP,
            )

        if facts.nurse_pre_op_complete:
            PreOpChecklist.objects.create(
                case=case,
                **{name: True for name in PreOpChecklist.ITEM_FIELDS},
                ready_for_surgery=True,
                completed_by=nurse,
                completed_at=timezone.now(),
            )

        sync_plan_readiness(case.pk)
        return plan

    return _write


@pytest.fixture
def ready_case(make_case, readiness_records):
    """
    A PLANNING case whose five readiness facts all hold.
    """
    case = make_case(status=SurgicalCase.Status.PLANNING)
    readiness_records(
        case,
        ReadinessFacts(
            has_procedure_plan=True,
            has_risk_factors=True,
            has_signed_consent=True,
            has_photos=True,
            nurse_pre_op_complete=True,
        ),
    )
    return case


@pytest.fixture
def slot():
    """
    Factory for aware [start, end) intervals tomorrow.

    Usage:
        start, end = slot(9, 0, 10, 30)
    """
    base = (timezone.now() + datetime.timedelta(days=1)).replace(
        hour=0, minute=0, second=0, microsecond=0
    )

    def _slot(start_hour, start_minute, end_hour, end_minute):
        return (
            base.replace(hour=start_hour, minute=start_minute),
            base.replace(hour=end_hour, minute=end_minute),
        )

    return _slot
