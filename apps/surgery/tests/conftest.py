import pytest
from django.urls import reverse

from apps.surgery import planning
from apps.surgery.models import SurgicalCase


@pytest.fixture
def case_list_url():
    return reverse("surgery:surgical-case-list")


@pytest.fixture
def planned_case(make_case, surgeon_user):
    """
    A case that has been moved to PLANNING by its first plan write.
    """
    case = make_case(status=SurgicalCase.Status.DRAFT)
    planning.save_case_plan(case.pk, surgeon_user, procedure_plan="Septoplasty")
    return case
