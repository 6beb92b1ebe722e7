import pytest
from django.urls import reverse

from apps.surgery.models import SurgicalCase


@pytest.fixture
def booking_list_url():
    return reverse("scheduling:theater-booking-list")


@pytest.fixture
def theater_list_url():
    return reverse("scheduling:theater-list")


@pytest.fixture
def make_bookable_case(make_case):
    def _make():
        return make_case(status=SurgicalCase.Status.READY_FOR_SCHEDULING)

    return _make


@pytest.fixture
def bookable_case(make_bookable_case):
    return make_bookable_case()
