"""
Writes to the records readiness is computed from: the surgeon's plan,
consent forms, clinical photographs and the nurse pre-op checklist.

Each write refreshes the plan's cached readiness columns. The first plan
write on a DRAFT case moves it to PLANNING in the same transaction.
"""

import structlog
from django.db import IntegrityError, transaction
from django.utils import timezone

from apps.core.exceptions import (
    BusinessRuleViolation,
    ConsentConflictError,
    InputValidationError,
    NotAuthorizedError,
    NotFoundError,
)
from apps.surgery.models import (
    CasePlan,
    ConsentForm,
    PatientImage,
    PreOpChecklist,
    SurgicalCase,
)
from apps.surgery.permissions import can_edit_plan
from apps.surgery.readiness import sync_plan_readiness
from apps.surgery.state_machine import case_state_machine

logger = structlog.get_logger(__name__)

PLAN_FIELDS = (
    "procedure_plan",
    "risk_factors",
    "pre_op_notes",
    "planned_anesthesia",
    "special_instructions",
)


def _get_case(case_id) -> SurgicalCase:
    case = SurgicalCase.objects.filter(pk=case_id).first()
    if case is None:
        raise NotFoundError("SurgicalCase", case_id)
    return case


def _get_open_case(case_id) -> SurgicalCase:
    case = _get_case(case_id)
    if case.is_terminal:
        raise BusinessRuleViolation(
            f"Case is {case.status}; its records can no longer change.",
            code="case_closed",
        )
    return case


def _get_plan(case_id) -> CasePlan:
    plan = CasePlan.objects.filter(case_id=case_id).first()
    if plan is None:
        raise NotFoundError("CasePlan", case_id, "This case has no plan yet.")
    return plan


def create_case(*, patient, primary_surgeon, actor=None, **fields) -> SurgicalCase:
    """
    Open a new case in DRAFT, e.g. after a consultation recommends surgery.
    """
    case = SurgicalCase.objects.create(
        patient=patient,
        primary_surgeon=primary_surgeon,
        created_by=actor,
        status=SurgicalCase.Status.DRAFT,
        **fields,
    )
    logger.info("case_created", case_id=str(case.pk), patient_id=patient.pk)
    return case


def save_case_plan(case_id, actor, state_machine=None, **values) -> CasePlan:
    unknown = set(values) - set(PLAN_FIELDS)
    if unknown:
        raise InputValidationError(f"Unknown plan fields: {', '.join(sorted(unknown))}.")

    machine = state_machine or case_state_machine
    with transaction.atomic():
        case = _get_open_case(case_id)
        if not can_edit_plan(actor, case):
            raise NotAuthorizedError(
                "Only the primary surgeon can modify the surgical plan."
            )

        plan, created = CasePlan.objects.get_or_create(case=case, defaults=values)
        if not created and values:
            for name, value in values.items():
                setattr(plan, name, value)
            plan.save(update_fields=[*values, "updated_at"])

        if case.status == SurgicalCase.Status.DRAFT:
            machine.transition(case.pk, SurgicalCase.Status.PLANNING, actor)

        sync_plan_readiness(case.pk)
        plan.refresh_from_db()
    return plan


def create_consent(case_id, consent_type, title) -> ConsentForm:
    if consent_type not in ConsentForm.ConsentType.values:
        raise InputValidationError(f"Unknown consent type {consent_type!r}.")

    with transaction.atomic():
        _get_open_case(case_id)
        plan = _get_plan(case_id)
        existing = (
            ConsentForm.objects.filter(case_plan=plan, type=consent_type)
            .exclude(status=ConsentForm.Status.REVOKED)
            .first()
        )
        if existing is not None:
            raise ConsentConflictError(consent_type, existing.pk)

        try:
            with transaction.atomic():
                consent = ConsentForm.objects.create(
                    case_plan=plan,
                    type=consent_type,
                    title=title,
                )
        except IntegrityError as exc:
            raise ConsentConflictError(consent_type) from exc

        sync_plan_readiness(case_id)
    return consent


def _get_consent_for_update(consent_id) -> ConsentForm:
    consent = (
        ConsentForm.objects.select_for_update()
        .select_related("case_plan")
        .filter(pk=consent_id)
        .first()
    )
    if consent is None:
        raise NotFoundError("ConsentForm", consent_id)
    return consent


def sign_consent(consent_id, *, signed_by_ip=None, witness_name="") -> ConsentForm:
    with transaction.atomic():
        consent = _get_consent_for_update(consent_id)
        _get_open_case(consent.case_plan.case_id)
        if consent.status == ConsentForm.Status.SIGNED:
            return consent
        if consent.status == ConsentForm.Status.REVOKED:
            raise BusinessRuleViolation(
                "A revoked consent cannot be signed.", code="consent_revoked"
            )

        consent.status = ConsentForm.Status.SIGNED
        consent.signed_at = timezone.now()
        consent.signed_by_ip = signed_by_ip
        consent.witness_name = witness_name
        consent.save(
            update_fields=[
                "status",
                "signed_at",
                "signed_by_ip",
                "witness_name",
                "updated_at",
            ]
        )
        sync_plan_readiness(consent.case_plan.case_id)
    return consent


def revoke_consent(consent_id) -> ConsentForm:
    with transaction.atomic():
        consent = _get_consent_for_update(consent_id)
        _get_open_case(consent.case_plan.case_id)
        if consent.status == ConsentForm.Status.REVOKED:
            return consent

        consent.status = ConsentForm.Status.REVOKED
        consent.revoked_at = timezone.now()
        consent.save(update_fields=["status", "revoked_at", "updated_at"])
        sync_plan_readiness(consent.case_plan.case_id)
    return consent


def add_patient_image(
    case_id,
    *,
    image_url,
    angle,
    timepoint,
    description="",
    consent_for_marketing=False,
    taken_by=None,
) -> PatientImage:
    with transaction.atomic():
        _get_case(case_id)
        plan = _get_plan(case_id)
        image = PatientImage.objects.create(
            case_plan=plan,
            image_url=image_url,
            angle=angle,
            timepoint=timepoint,
            description=description,
            consent_for_marketing=consent_for_marketing,
            taken_by=taken_by,
        )
        sync_plan_readiness(case_id)
    return image


def update_pre_op_checklist(case_id, nurse=None, **values) -> PreOpChecklist:
    """
    Upsert the nurse checklist. ready_for_surgery=True is only accepted
    once every itemised flag is complete, and unchecking an item clears it.
    """
    allowed = set(PreOpChecklist.ITEM_FIELDS) | {"ready_for_surgery", "notes"}
    unknown = set(values) - allowed
    if unknown:
        raise InputValidationError(
            f"Unknown checklist fields: {', '.join(sorted(unknown))}."
        )

    with transaction.atomic():
        case = _get_open_case(case_id)
        checklist, _ = PreOpChecklist.objects.select_for_update().get_or_create(case=case)
        for name, value in values.items():
            setattr(checklist, name, value)

        # Unchecking an item withdraws readiness unless the caller set it.
        if "ready_for_surgery" not in values and not checklist.all_items_complete:
            checklist.ready_for_surgery = False

        if checklist.ready_for_surgery and not checklist.all_items_complete:
            raise BusinessRuleViolation(
                "Every checklist item must be complete before marking the "
                "patient ready for surgery.",
                code="checklist_incomplete",
            )

        if checklist.ready_for_surgery:
            checklist.completed_by = nurse
            checklist.completed_at = checklist.completed_at or timezone.now()
        else:
            checklist.completed_by = None
            checklist.completed_at = None
        checklist.save()
        sync_plan_readiness(case_id)
    return checklist
