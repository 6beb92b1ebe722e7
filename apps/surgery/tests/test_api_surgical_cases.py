import datetime

import pytest
from django.urls import reverse
from django.utils import timezone
from rest_framework import status

from apps.audit.models import AuditEvent
from apps.scheduling.models import TheaterBooking
from apps.surgery.models import SurgicalCase

Status = SurgicalCase.Status


def _action_url(name, case):
    return reverse(f"surgery:surgical-case-{name}", args=[case.pk])


@pytest.mark.django_db
def test_unauthenticated_cannot_list_cases(api_client, case_list_url):
    response = api_client.get(case_list_url)
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.django_db
def test_user_without_role_cannot_access(api_client, regular_user, case_list_url):
    api_client.force_authenticate(user=regular_user)

    response = api_client.get(case_list_url)
    assert response.status_code == status.HTTP_403_FORBIDDEN


@pytest.mark.django_db
def test_surgeon_opens_case_in_draft(api_client, surgeon_user, surgeon, patient, case_list_url):
    api_client.force_authenticate(user=surgeon_user)
    payload = {
        "patient_id": patient.id,
        "primary_surgeon_id": surgeon.id,
        "urgency": "ELECTIVE",
        "procedure_name": "Rhinoplasty",
        "diagnosis": "Deviated septum",
    }

    response = api_client.post(case_list_url, payload, format="json")

    assert response.status_code == status.HTTP_201_CREATED
    data = response.data
    assert data["status"] == Status.DRAFT
    assert data["version"] == 1
    assert data["patient"]["id"] == patient.id
    assert data["primary_surgeon"]["name"] == surgeon.name
    assert data["active_booking"] is None
    assert SurgicalCase.objects.get(pk=data["id"]).created_by == surgeon_user


@pytest.mark.django_db
def test_surgeon_cannot_open_case_for_colleague(
    api_client, surgeon_user, other_surgeon, patient, case_list_url
):
    api_client.force_authenticate(user=surgeon_user)
    payload = {"patient_id": patient.id, "primary_surgeon_id": other_surgeon.id}

    response = api_client.post(case_list_url, payload, format="json")

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert "primary_surgeon_id" in response.data


@pytest.mark.django_db
def test_primary_surgeon_must_be_a_surgeon(
    api_client, theater_admin_user, nurse, patient, case_list_url
):
    api_client.force_authenticate(user=theater_admin_user)
    payload = {"patient_id": patient.id, "primary_surgeon_id": nurse.id}

    response = api_client.post(case_list_url, payload, format="json")

    assert response.status_code == status.HTTP_400_BAD_REQUEST


@pytest.mark.django_db
def test_case_list_scoping(
    api_client,
    make_case,
    other_surgeon,
    surgeon_user,
    other_surgeon_user,
    nurse_user,
    theater_admin_user,
    case_list_url,
):
    own = make_case()
    make_case(primary_surgeon=other_surgeon)

    api_client.force_authenticate(user=surgeon_user)
    response = api_client.get(case_list_url)
    assert response.status_code == status.HTTP_200_OK
    assert [row["id"] for row in response.data["results"]] == [str(own.pk)]

    api_client.force_authenticate(user=other_surgeon_user)
    assert api_client.get(case_list_url).data["count"] == 1

    api_client.force_authenticate(user=nurse_user)
    assert api_client.get(case_list_url).data["count"] == 2

    api_client.force_authenticate(user=theater_admin_user)
    assert api_client.get(case_list_url).data["count"] == 2


@pytest.mark.django_db
def test_case_list_filters_by_status(api_client, make_case, theater_admin_user, case_list_url):
    make_case(status=Status.DRAFT)
    planning = make_case(status=Status.PLANNING)
    api_client.force_authenticate(user=theater_admin_user)

    response = api_client.get(case_list_url, {"status": Status.PLANNING})

    assert response.status_code == status.HTTP_200_OK
    assert [row["id"] for row in response.data["results"]] == [str(planning.pk)]


@pytest.mark.django_db
def test_plan_put_moves_draft_to_planning(api_client, make_case, surgeon_user):
    case = make_case(status=Status.DRAFT)
    api_client.force_authenticate(user=surgeon_user)

    response = api_client.put(
        _action_url("plan", case),
        {"procedure_plan": "<p>Open approach</p>", "risk_factors": "None"},
        format="json",
    )

    assert response.status_code == status.HTTP_200_OK
    assert response.data["readiness_status"] == "IN_PROGRESS"
    case.refresh_from_db()
    assert case.status == Status.PLANNING


@pytest.mark.django_db
def test_readiness_endpoint_reports_missing_items(api_client, make_case, surgeon_user):
    case = make_case(status=Status.PLANNING)
    api_client.force_authenticate(user=surgeon_user)

    response = api_client.get(_action_url("readiness", case))

    assert response.status_code == status.HTTP_200_OK
    assert response.data["percentage"] == 0
    assert response.data["is_ready"] is False
    assert len(response.data["missing_items"]) == 5


@pytest.mark.django_db
def test_transition_guard_failure_is_422(api_client, make_case, surgeon_user):
    case = make_case(status=Status.PLANNING)
    api_client.force_authenticate(user=surgeon_user)

    response = api_client.post(
        _action_url("transition", case),
        {"target_status": Status.READY_FOR_SCHEDULING},
        format="json",
    )

    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    assert response.data["code"] == "readiness_validation_failed"
    assert response.data["total_required"] == 5
    assert len(response.data["missing_items"]) == 5


@pytest.mark.django_db
def test_illegal_transition_is_409(api_client, make_case, surgeon_user):
    case = make_case(status=Status.DRAFT)
    api_client.force_authenticate(user=surgeon_user)

    response = api_client.post(
        _action_url("transition", case),
        {"target_status": Status.SCHEDULED},
        format="json",
    )

    assert response.status_code == status.HTTP_409_CONFLICT
    assert response.data["code"] == "illegal_transition"
    assert response.data["allowed_targets"] == [Status.PLANNING, Status.CANCELLED]


@pytest.mark.django_db
def test_stale_version_is_409_concurrent_modification(api_client, make_case, surgeon_user):
    case = make_case(status=Status.DRAFT)
    api_client.force_authenticate(user=surgeon_user)

    response = api_client.post(
        _action_url("transition", case),
        {"target_status": Status.PLANNING, "version": 3},
        format="json",
    )

    assert response.status_code == status.HTTP_409_CONFLICT
    assert response.data["code"] == "concurrent_modification"


@pytest.mark.django_db
def test_nurse_cannot_make_planning_decisions(api_client, ready_case, nurse_user):
    api_client.force_authenticate(user=nurse_user)

    response = api_client.post(
        _action_url("transition", ready_case),
        {"target_status": Status.READY_FOR_SCHEDULING},
        format="json",
    )

    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.data["code"] == "not_authorized"


@pytest.mark.django_db
def test_other_surgeons_case_is_not_visible(api_client, make_case, other_surgeon_user):
    case = make_case(status=Status.DRAFT)
    api_client.force_authenticate(user=other_surgeon_user)

    response = api_client.post(
        _action_url("transition", case),
        {"target_status": Status.PLANNING},
        format="json",
    )

    assert response.status_code == status.HTTP_404_NOT_FOUND


@pytest.mark.django_db
def test_partial_booking_payload_is_400(api_client, ready_case, surgeon_user, theater):
    api_client.force_authenticate(user=surgeon_user)

    response = api_client.post(
        _action_url("transition", ready_case),
        {"target_status": Status.SCHEDULED, "theater_id": str(theater.pk)},
        format="json",
    )

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert set(response.data) == {"start_time", "end_time"}


@pytest.mark.django_db
def test_schedule_with_booking_through_api(
    api_client, ready_case, surgeon_user, theater, slot
):
    api_client.force_authenticate(user=surgeon_user)
    url = _action_url("transition", ready_case)
    start, end = slot(9, 0, 10, 0)

    response = api_client.post(
        url, {"target_status": Status.READY_FOR_SCHEDULING, "version": 1}, format="json"
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.data["version"] == 2

    response = api_client.post(
        url,
        {
            "target_status": Status.SCHEDULED,
            "version": 2,
            "theater_id": str(theater.pk),
            "start_time": start.isoformat(),
            "end_time": end.isoformat(),
        },
        format="json",
    )

    assert response.status_code == status.HTTP_200_OK
    assert response.data["status"] == Status.SCHEDULED
    assert response.data["active_booking"]["status"] == "CONFIRMED"
    assert response.data["active_booking"]["theater_name"] == theater.name


@pytest.mark.django_db
def test_inverted_interval_is_400(api_client, ready_case, surgeon_user, theater, slot):
    api_client.force_authenticate(user=surgeon_user)
    url = _action_url("transition", ready_case)
    api_client.post(url, {"target_status": Status.READY_FOR_SCHEDULING}, format="json")
    start, end = slot(10, 0, 9, 0)

    response = api_client.post(
        url,
        {
            "target_status": Status.SCHEDULED,
            "theater_id": str(theater.pk),
            "start_time": start.isoformat(),
            "end_time": end.isoformat(),
        },
        format="json",
    )

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.data["code"] == "invalid_interval"
    ready_case.refresh_from_db()
    assert ready_case.status == Status.READY_FOR_SCHEDULING


@pytest.mark.django_db
def test_audit_trail_endpoint(api_client, make_case, surgeon_user):
    case = make_case(status=Status.DRAFT)
    api_client.force_authenticate(user=surgeon_user)
    api_client.post(_action_url("transition", case), {"target_status": Status.PLANNING}, format="json")

    response = api_client.get(_action_url("audit", case))

    assert response.status_code == status.HTTP_200_OK
    assert response.data["count"] == 1
    event = response.data["results"][0]
    assert event["action"] == AuditEvent.Action.CASE_TRANSITION
    assert event["previous_state"] == Status.DRAFT
    assert event["new_state"] == Status.PLANNING
    assert event["actor_email"] == surgeon_user.email


@pytest.mark.django_db
def test_expired_hold_is_not_shown_as_active_booking(
    api_client, make_case, surgeon_user, theater, slot
):
    case = make_case(status=Status.READY_FOR_SCHEDULING)
    start, end = slot(9, 0, 10, 0)
    TheaterBooking.objects.create(
        theater=theater,
        case=case,
        start_time=start,
        end_time=end,
        status=TheaterBooking.Status.PROVISIONAL,
        hold_expires_at=timezone.now() - datetime.timedelta(minutes=1),
    )
    api_client.force_authenticate(user=surgeon_user)

    response = api_client.get(reverse("surgery:surgical-case-detail", args=[case.pk]))

    assert response.status_code == status.HTTP_200_OK
    assert response.data["active_booking"] is None
