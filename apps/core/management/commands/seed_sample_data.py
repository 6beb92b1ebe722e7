"""
Django management command to seed sample data into the database.

Run with: python manage.py seed_sample_data

Cases are walked through the real services (plan writes, consents,
checklist, state machine, scheduler) so their audit trail is genuine.
"""

import datetime
from django.core.management.base import BaseCommand
from django.contrib.auth.models import Group
from django.db import transaction
from django.utils import timezone

from apps.accounts.models import User
from apps.clinical.models import Clinician, Patient
from apps.core.constants import USER_GROUP_THEATER_ADMIN
from apps.scheduling.models import Theater
from apps.surgery import planning
from apps.surgery.models import ConsentForm, PatientImage, PreOpChecklist, SurgicalCase
from apps.surgery.state_machine import BookingRequest, case_state_machine


class Command(BaseCommand):
    help = "Seed the database with sample staff, patients, theatres and cases"

    def handle(self, *args, **options):
        self.stdout.write("Starting sample data seeding...")

        with transaction.atomic():
            seed_users()
            seed_groups()
            seed_clinicians()
            seed_patients()
            seed_theaters()
            seed_cases()

        self.stdout.write(self.style.SUCCESS("Sample data seeded successfully!"))


def seed_users():
    """Create sample user accounts."""
    users = [
        {
            "email": "admin@hospital.com",
            "password": "admin123",
            "is_staff": True,
            "is_superuser": True,
        },
        {
            "email": "dr.smith@hospital.com",
            "password": "clinician123",
            "is_staff": True,
            "is_superuser": False,
        },
        {
            "email": "dr.jones@hospital.com",
            "password": "clinician123",
            "is_staff": True,
            "is_superuser": False,
        },
        {
            "email": "nurse.williams@hospital.com",
            "password": "clinician123",
            "is_staff": False,
            "is_superuser": False,
        },
    ]

    for user_data in users:
        email = user_data.pop("email")
        password = user_data.pop("password")
        user, created = User.objects.get_or_create(
            email=email,
            defaults=user_data,
        )
        if created:
            user.set_password(password)
            user.save()

    print("Created sample users")


def seed_groups():
    """Create the theatre admin group and add the admin account to it."""
    theater_admin_group, _ = Group.objects.get_or_create(name=USER_GROUP_THEATER_ADMIN)

    admin_user = User.objects.get(email="admin@hospital.com")
    admin_user.groups.add(theater_admin_group)

    print("Created sample groups")


def seed_clinicians():
    """Create sample clinician profiles."""
    clinicians = [
        {
            "user_email": "dr.smith@hospital.com",
            "name": "Dr. James Smith",
            "role": Clinician.Role.SURGEON,
            "specialization": "Plastic Surgery",
        },
        {
            "user_email": "dr.jones@hospital.com",
            "name": "Dr. Sarah Jones",
            "role": Clinician.Role.SURGEON,
            "specialization": "ENT",
        },
        {
            "user_email": "nurse.williams@hospital.com",
            "name": "Robert Williams",
            "role": Clinician.Role.NURSE,
            "specialization": "Pre-operative care",
        },
    ]

    for clinic_data in clinicians:
        user = User.objects.get(email=clinic_data.pop("user_email"))
        Clinician.objects.get_or_create(user=user, defaults=clinic_data)

    print("Created sample clinicians")


def seed_patients():
    """Create sample patient profiles."""
    patients = [
        {
            "file_number": "NS001",
            "name": "John Brown",
            "gender": Patient.Gender.MALE,
            "email": "john.brown@example.com",
            "date_of_birth": datetime.date(1975, 5, 15),
        },
        {
            "file_number": "NS002",
            "name": "Emma Davis",
            "gender": Patient.Gender.FEMALE,
            "email": "emma.davis@example.com",
            "date_of_birth": datetime.date(1982, 8, 22),
        },
        {
            "file_number": "NS003",
            "name": "Michael Wilson",
            "gender": Patient.Gender.MALE,
            "email": "michael.wilson@example.com",
            "date_of_birth": datetime.date(1968, 3, 10),
        },
        {
            "file_number": "NS004",
            "name": "Lisa Anderson",
            "gender": Patient.Gender.FEMALE,
            "email": "lisa.anderson@example.com",
            "date_of_birth": datetime.date(1990, 11, 5),
        },
    ]

    for patient_data in patients:
        file_number = patient_data.pop("file_number")
        Patient.objects.get_or_create(file_number=file_number, defaults=patient_data)

    print("Created sample patients")


def seed_theaters():
    """Create sample theatres."""
    theaters = [
        {
            "name": "Theatre 1",
            "type": Theater.TheaterType.MAJOR,
            "capabilities": ["general_anaesthesia", "laparoscopy"],
            "operational_hours": "Mon-Fri 07:00-19:00",
            "color_code": "#1f77b4",
        },
        {
            "name": "Theatre 2",
            "type": Theater.TheaterType.MINOR,
            "capabilities": ["local_anaesthesia"],
            "operational_hours": "Mon-Fri 08:00-17:00",
            "color_code": "#2ca02c",
        },
        {
            "name": "Procedure Room",
            "type": Theater.TheaterType.PROCEDURE_ROOM,
            "capabilities": [],
            "operational_hours": "Mon-Sat 08:00-14:00",
            "color_code": "#ff7f0e",
        },
    ]

    for theater_data in theaters:
        name = theater_data.pop("name")
        Theater.objects.get_or_create(name=name, defaults=theater_data)

    print("Created sample theatres")


def _complete_readiness(case, nurse):
    consent = planning.create_consent(
        case.pk, ConsentForm.ConsentType.GENERAL_PROCEDURE, "General procedure consent"
    )
    planning.sign_consent(consent.pk, witness_name=nurse.name)
    planning.add_patient_image(
        case.pk,
        image_url=f"https://images.example.com/{case.pk}/front.jpg",
        angle=PatientImage.Angle.FRONT,
        timepoint=PatientImage.Timepoint.PRE_OP,
        taken_by=nurse,
    )
    planning.update_pre_op_checklist(
        case.pk,
        nurse,
        ready_for_surgery=True,
        **{name: True for name in PreOpChecklist.ITEM_FIELDS},
    )


def seed_cases():
    """
    Create one case per lifecycle stage up to SCHEDULED.
    """
    admin = User.objects.get(email="admin@hospital.com")
    nurse = Clinician.objects.get(name="Robert Williams")
    tomorrow = (timezone.now() + datetime.timedelta(days=1)).replace(
        hour=9, minute=0, second=0, microsecond=0
    )

    cases = [
        {
            "patient": "NS001",
            "surgeon": "Dr. James Smith",
            "procedure_name": "Rhinoplasty",
            "diagnosis": "Nasal deformity",
            "target": SurgicalCase.Status.DRAFT,
        },
        {
            "patient": "NS002",
            "surgeon": "Dr. Sarah Jones",
            "procedure_name": "Septoplasty",
            "diagnosis": "Deviated septum",
            "target": SurgicalCase.Status.PLANNING,
        },
        {
            "patient": "NS003",
            "surgeon": "Dr. James Smith",
            "procedure_name": "Blepharoplasty",
            "diagnosis": "Dermatochalasis",
            "target": SurgicalCase.Status.READY_FOR_SCHEDULING,
        },
        {
            "patient": "NS004",
            "surgeon": "Dr. Sarah Jones",
            "procedure_name": "Tonsillectomy",
            "diagnosis": "Recurrent tonsillitis",
            "target": SurgicalCase.Status.SCHEDULED,
        },
    ]

    for case_data in cases:
        patient = Patient.objects.get(file_number=case_data["patient"])
        if SurgicalCase.objects.filter(
            patient=patient, procedure_name=case_data["procedure_name"]
        ).exists():
            continue

        case = planning.create_case(
            patient=patient,
            primary_surgeon=Clinician.objects.get(name=case_data["surgeon"]),
            actor=admin,
            procedure_name=case_data["procedure_name"],
            diagnosis=case_data["diagnosis"],
        )
        target = case_data["target"]
        if target == SurgicalCase.Status.DRAFT:
            continue

        planning.save_case_plan(
            case.pk,
            admin,
            procedure_plan=f"{case.procedure_name} under general anaesthesia.",
            risk_factors="ASA I",
        )
        if target == SurgicalCase.Status.PLANNING:
            continue

        _complete_readiness(case, nurse)
        case_state_machine.transition(case.pk, SurgicalCase.Status.READY_FOR_SCHEDULING, admin)
        if target == SurgicalCase.Status.READY_FOR_SCHEDULING:
            continue

        case_state_machine.transition(
            case.pk,
            SurgicalCase.Status.SCHEDULED,
            admin,
            booking=BookingRequest(
                theater_id=Theater.objects.get(name="Theatre 1").pk,
                start_time=tomorrow,
                end_time=tomorrow + datetime.timedelta(hours=1),
            ),
        )

    print("Created sample cases")
