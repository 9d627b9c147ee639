"""
Student Enrollment Service

Turns an accepted admission application into a Student with linked
Guardians. The admissions lifecycle publishes an ApplicationAccepted event
and this module consumes it.

Ids are derived deterministically from the school and the admission (for
students) or the school and the email address (for new guardians), so
handling the same event twice writes the same records again.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime

from gsos.modules.admissions.schemas import ApplicantInfo, GuardianContact

from .repository import StudentStore
from .schemas import Guardian, Student, StudentStatus

logger = logging.getLogger(__name__)

# Namespace for uuid5 derivation of student and guardian ids
ENROLLMENT_NAMESPACE = uuid.UUID("6f1c2d3e-8b7a-4c59-9e0d-2a4b6c8d0e1f")


class StudentNotFoundError(Exception):
    def __init__(self, student_id: str):
        self.student_id = student_id
        super().__init__(f"Student {student_id} not found")


@dataclass(frozen=True)
class ApplicationAccepted:
    """Event: an admission with an accepted offer is ready for enrollment."""

    school_id: str
    admission_id: str
    applicant: ApplicantInfo
    guardians: tuple[GuardianContact, ...]
    previous_school: str | None = None
    actor_id: str | None = None


@dataclass
class EnrollmentResult:
    student: Student
    guardians: list[Guardian] = field(default_factory=list)


def student_id_for_admission(school_id: str, admission_id: str) -> str:
    return str(uuid.uuid5(ENROLLMENT_NAMESPACE, f"student:{school_id}:{admission_id}"))


def guardian_id_for_email(school_id: str, email: str) -> str:
    return str(uuid.uuid5(ENROLLMENT_NAMESPACE, f"guardian:{school_id}:{email.lower()}"))


def enrollment_date_for(preferred_start_date: date, today: date) -> date:
    """Enroll on the preferred start date, or today if that date has passed."""
    return preferred_start_date if preferred_start_date >= today else today


async def enroll_accepted_applicant(
    store: StudentStore,
    event: ApplicationAccepted,
    now: datetime,
) -> EnrollmentResult:
    """
    Create (or re-create) the Student and link Guardians for an accepted application.

    Steps:
    1. Resolve each guardian by (school, email), reusing an existing record
    2. Build the Student from the applicant snapshot
    3. Persist the Student
    4. Persist the Guardians, adding the student id to each one's links

    Args:
        store: Student storage
        event: The accepted application
        now: Current time (timezone-aware)

    Returns:
        EnrollmentResult with the stored student and guardians

    Raises:
        PersistenceError: If the store is unavailable (safe to retry)
    """
    school_id = event.school_id
    student_id = student_id_for_admission(school_id, event.admission_id)

    logger.info(f"Enrolling admission {event.admission_id} as student {student_id}")

    guardians: list[Guardian] = []
    for contact in event.guardians:
        guardian = await store.find_guardian_by_email(school_id, contact.email)
        if guardian is None:
            guardian = Guardian(
                id=guardian_id_for_email(school_id, contact.email),
                school_id=school_id,
                first_name=contact.first_name,
                last_name=contact.last_name,
                email=contact.email.lower(),
                phone=contact.phone,
                relationship=contact.relationship,
                student_ids=[],
                created_at=now,
                updated_at=now,
            )
        else:
            logger.info(f"Reusing guardian {guardian.id} for student {student_id}")
        guardians.append(guardian)

    existing = await store.get_student(school_id, student_id)
    applicant = event.applicant
    student = Student(
        id=student_id,
        school_id=school_id,
        admission_id=event.admission_id,
        first_name=applicant.first_name,
        last_name=applicant.last_name,
        date_of_birth=applicant.date_of_birth,
        gender=applicant.gender,
        nationality=applicant.nationality,
        grade=applicant.applied_grade,
        year_group=applicant.applied_year_group or applicant.applied_grade,
        previous_school=event.previous_school,
        guardian_ids=[g.id for g in guardians],
        enrollment_date=(
            existing.enrollment_date
            if existing
            else enrollment_date_for(applicant.preferred_start_date, now.date())
        ),
        status=StudentStatus.ACTIVE,
        created_at=existing.created_at if existing else now,
        updated_at=now,
    )
    await store.put_student(student)

    # The store re-reads each guardian while linking so a sibling enrolled
    # concurrently keeps its own link
    linked: list[Guardian] = []
    for guardian in guardians:
        guardian = guardian.model_copy(update={"updated_at": now})
        linked.append(await store.link_guardian(guardian, student_id))

    logger.info(f"Student {student_id} enrolled with {len(linked)} guardian(s)")
    return EnrollmentResult(student=student, guardians=linked)


async def get_student(store: StudentStore, school_id: str, student_id: str) -> Student:
    """
    Raises:
        StudentNotFoundError: If the student does not exist in this school
    """
    student = await store.get_student(school_id, student_id)
    if student is None:
        raise StudentNotFoundError(student_id)
    return student
