"""
Surgical readiness evaluation.

Readiness is decided from exactly five boolean facts, each owned by a
different collaborator (surgeon's plan, consents, photographs, nurse
checklist). Collaborator records are normalised into ReadinessFacts by
the small adapter functions below; evaluate_facts() never looks at a
record itself.

The readiness badge shown to users and the PLANNING -> READY_FOR_SCHEDULING
guard both call ReadinessEvaluator.evaluate(), so they cannot disagree.
"""

import re
from dataclasses import dataclass

from django.utils.html import strip_tags

from apps.surgery.models import (
    CasePlan,
    ConsentForm,
    PatientImage,
    PreOpChecklist,
)

_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class ReadinessFacts:
    has_procedure_plan: bool = False
    has_risk_factors: bool = False
    has_signed_consent: bool = False
    has_photos: bool = False
    nurse_pre_op_complete: bool = False


@dataclass(frozen=True)
class ReadinessItem:
    key: str
    label: str
    done: bool

    def to_dict(self) -> dict:
        return {"key": self.key, "label": self.label, "done": self.done}


@dataclass(frozen=True)
class ReadinessReport:
    items: tuple
    completed_count: int
    total_required: int
    percentage: int
    missing_items: tuple
    is_ready: bool

    def to_dict(self) -> dict:
        return {
            "percentage": self.percentage,
            "completed_count": self.completed_count,
            "total_required": self.total_required,
            "missing_items": list(self.missing_items),
            "is_ready": self.is_ready,
            "items": [item.to_dict() for item in self.items],
        }


# (fact attribute, item key, label), in display order.
READINESS_CHECKS = (
    ("has_procedure_plan", "procedure", "Procedure Plan"),
    ("has_risk_factors", "risk", "Risk Assessment"),
    ("has_signed_consent", "consents", "Consent Signed"),
    ("has_photos", "photos", "Pre-Op Photos"),
    ("nurse_pre_op_complete", "nurse_checklist", "Nurse Pre-Op Checklist"),
)


def evaluate_facts(facts: ReadinessFacts) -> ReadinessReport:
    items = tuple(
        ReadinessItem(key=key, label=label, done=bool(getattr(facts, name)))
        for name, key, label in READINESS_CHECKS
    )
    total = len(items)
    completed = sum(1 for item in items if item.done)
    percentage = round(100 * completed / total)
    return ReadinessReport(
        items=items,
        completed_count=completed,
        total_required=total,
        percentage=percentage,
        missing_items=tuple(item.label for item in items if not item.done),
        is_ready=percentage == 100,
    )


# ----------------------------------------------------------------------
# Collaborator adapters
# ----------------------------------------------------------------------
def has_text(value) -> bool:
    """
    Rich-text fields count only if something is left once tags are gone.
    """
    if not value:
        return False
    text = strip_tags(str(value)).replace("&nbsp;", " ")
    return bool(_WHITESPACE.sub("", text))


def plan_facts(plan) -> dict:
    if plan is None:
        return {"has_procedure_plan": False, "has_risk_factors": False}
    return {
        "has_procedure_plan": has_text(plan.procedure_plan),
        "has_risk_factors": has_text(plan.risk_factors),
    }


def consent_facts(consents) -> dict:
    return {
        "has_signed_consent": any(
            consent.status == ConsentForm.Status.SIGNED for consent in consents or ()
        )
    }


def photo_facts(images) -> dict:
    return {
        "has_photos": any(
            image.timepoint == PatientImage.Timepoint.PRE_OP for image in images or ()
        )
    }


def checklist_facts(checklist) -> dict:
    return {
        "nurse_pre_op_complete": bool(checklist is not None and checklist.ready_for_surgery)
    }


def facts_from_records(plan, consents, images, checklist) -> ReadinessFacts:
    return ReadinessFacts(
        **plan_facts(plan),
        **consent_facts(consents),
        **photo_facts(images),
        **checklist_facts(checklist),
    )


class CaseRecordSource:
    """
    ORM-backed collaborator queries. Missing records come back as None or
    an empty list, never as an error.
    """

    def get_case_plan(self, case_id):
        return CasePlan.objects.filter(case_id=case_id).first()

    def list_consent_forms(self, case_plan_id):
        if case_plan_id is None:
            return []
        return list(ConsentForm.objects.filter(case_plan_id=case_plan_id))

    def list_patient_images(self, case_plan_id):
        if case_plan_id is None:
            return []
        return list(PatientImage.objects.filter(case_plan_id=case_plan_id))

    def get_pre_op_checklist(self, case_id):
        return PreOpChecklist.objects.filter(case_id=case_id).first()


class ReadinessEvaluator:
    def __init__(self, source=None):
        self.source = source or CaseRecordSource()

    def collect_facts(self, case_id) -> ReadinessFacts:
        plan = self.source.get_case_plan(case_id)
        plan_id = plan.pk if plan is not None else None
        return facts_from_records(
            plan,
            self.source.list_consent_forms(plan_id),
            self.source.list_patient_images(plan_id),
            self.source.get_pre_op_checklist(case_id),
        )

    def evaluate(self, case_id) -> ReadinessReport:
        return evaluate_facts(self.collect_facts(case_id))


def readiness_status_for(report: ReadinessReport) -> str:
    if report.is_ready:
        return CasePlan.ReadinessStatus.READY
    if report.completed_count == 0:
        return CasePlan.ReadinessStatus.NOT_STARTED
    return CasePlan.ReadinessStatus.IN_PROGRESS


def sync_plan_readiness(case_id, evaluator=None) -> ReadinessReport:
    """
    Copy the current verdict into the plan's cached readiness columns.
    """
    report = (evaluator or ReadinessEvaluator()).evaluate(case_id)
    CasePlan.objects.filter(case_id=case_id).update(
        ready_for_surgery=report.is_ready,
        readiness_status=readiness_status_for(report),
    )
    return report
