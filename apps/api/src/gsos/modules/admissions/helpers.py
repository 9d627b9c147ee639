"""
Admissions Shared Helpers

Validation, numbering and presentation helpers used by the lifecycle
service and the routers.
"""

import secrets
from datetime import date

from gsos.modules.admissions.schemas import (
    Admission,
    AdmissionListItem,
    AdmissionStatus,
    AdmissionTrackingResponse,
    ApplicantInfo,
    GuardianContact,
    StatusStep,
)
from gsos.modules.admissions.transitions import TERMINAL_STATUSES

APPLICATION_NUMBER_PREFIX = "APP"


def generate_application_number(year: int) -> str:
    """
    Generate a random application number, e.g. APP-2026-3F9A0C1B.

    Uniqueness per school is enforced by the store; callers retry on collision.
    """
    return f"{APPLICATION_NUMBER_PREFIX}-{year}-{secrets.token_hex(4).upper()}"


def validate_submission(
    school_id: str,
    applicant: ApplicantInfo,
    guardians: list[GuardianContact],
    today: date,
) -> list[str]:
    """
    Collect every problem with a submission.

    Returns:
        List of human-readable problems (empty when the submission is valid)
    """
    problems: list[str] = []

    if not school_id or not school_id.strip():
        problems.append("school_id is required")

    required = {
        "applicant.first_name": applicant.first_name,
        "applicant.last_name": applicant.last_name,
        "applicant.nationality": applicant.nationality,
        "applicant.applied_grade": applicant.applied_grade,
    }
    for field_name, value in required.items():
        if not value or not value.strip():
            problems.append(f"{field_name} is required")

    if applicant.date_of_birth >= today:
        problems.append("applicant.date_of_birth must be in the past")

    if not guardians:
        problems.append("at least one guardian is required")
        return problems

    primaries = sum(1 for g in guardians if g.is_primary)
    if primaries != 1:
        problems.append(f"exactly one primary guardian is required (found {primaries})")

    seen_emails: set[str] = set()
    for index, guardian in enumerate(guardians):
        if not guardian.first_name.strip() or not guardian.last_name.strip():
            problems.append(f"guardians[{index}] name is required")
        email = guardian.email.lower()
        if email in seen_emails:
            problems.append(f"guardians[{index}].email duplicates another guardian")
        seen_emails.add(email)

    return problems


def primary_guardian(admission: Admission) -> GuardianContact:
    """Return the primary guardian (falls back to the first listed)."""
    for guardian in admission.guardians:
        if guardian.is_primary:
            return guardian
    return admission.guardians[0]


# Status label and description mappings
STATUS_LABELS: dict[AdmissionStatus, str] = {
    AdmissionStatus.SUBMITTED: "Submitted",
    AdmissionStatus.PENDING: "Pending",
    AdmissionStatus.UNDER_REVIEW: "Under Review",
    AdmissionStatus.INTERVIEW_SCHEDULED: "Interview Scheduled",
    AdmissionStatus.ASSESSMENT_SCHEDULED: "Assessment Scheduled",
    AdmissionStatus.OFFER_MADE: "Offer Made",
    AdmissionStatus.OFFER_ACCEPTED: "Offer Accepted",
    AdmissionStatus.OFFER_DECLINED: "Offer Declined",
    AdmissionStatus.REJECTED: "Not Successful",
    AdmissionStatus.WITHDRAWN: "Withdrawn",
    AdmissionStatus.CONVERTED_TO_STUDENT: "Enrolled",
}

STATUS_DESCRIPTIONS: dict[AdmissionStatus, str] = {
    AdmissionStatus.SUBMITTED: "We have received the application.",
    AdmissionStatus.PENDING: (
        "The application is waiting on additional documents or information."
    ),
    AdmissionStatus.UNDER_REVIEW: "The admissions team is reviewing the application.",
    AdmissionStatus.INTERVIEW_SCHEDULED: (
        "An interview has been scheduled. The school will contact you with details."
    ),
    AdmissionStatus.ASSESSMENT_SCHEDULED: (
        "An entrance assessment has been scheduled. The school will contact you with details."
    ),
    AdmissionStatus.OFFER_MADE: (
        "Congratulations! A place has been offered. Please respond to the offer."
    ),
    AdmissionStatus.OFFER_ACCEPTED: "The offer has been accepted. Enrollment is being prepared.",
    AdmissionStatus.OFFER_DECLINED: "The offer was declined.",
    AdmissionStatus.REJECTED: (
        "Unfortunately, the school is unable to offer a place at this time."
    ),
    AdmissionStatus.WITHDRAWN: "The application has been withdrawn.",
    AdmissionStatus.CONVERTED_TO_STUDENT: "The applicant is now enrolled as a student.",
}

# Statuses a guardian is emailed about
GUARDIAN_NOTIFIED_STATUSES = frozenset(
    {
        AdmissionStatus.UNDER_REVIEW,
        AdmissionStatus.INTERVIEW_SCHEDULED,
        AdmissionStatus.ASSESSMENT_SCHEDULED,
        AdmissionStatus.OFFER_MADE,
        AdmissionStatus.REJECTED,
        AdmissionStatus.WITHDRAWN,
        AdmissionStatus.CONVERTED_TO_STUDENT,
    }
)

_REVIEW_REACHED = {
    AdmissionStatus.UNDER_REVIEW,
    AdmissionStatus.INTERVIEW_SCHEDULED,
    AdmissionStatus.ASSESSMENT_SCHEDULED,
    AdmissionStatus.OFFER_MADE,
    AdmissionStatus.OFFER_ACCEPTED,
    AdmissionStatus.OFFER_DECLINED,
    AdmissionStatus.REJECTED,
    AdmissionStatus.CONVERTED_TO_STUDENT,
}

_DECISION_REACHED = {
    AdmissionStatus.OFFER_MADE,
    AdmissionStatus.OFFER_ACCEPTED,
    AdmissionStatus.OFFER_DECLINED,
    AdmissionStatus.REJECTED,
    AdmissionStatus.CONVERTED_TO_STUDENT,
}


def _first_entry(admission: Admission, statuses: set[AdmissionStatus]):
    for change in admission.status_history:
        if change.to_status in statuses:
            return change.changed_at
    return None


def build_status_steps(admission: Admission) -> list[StatusStep]:
    """
    Build the progress steps shown to guardians.

    1. Application Submitted - always completed
    2. Under Review - once review started
    3. Decision - offer made or application rejected
    4. Enrolled - converted to student
    """
    steps = [
        StatusStep(
            name="Application Submitted",
            completed=True,
            completed_at=admission.created_at,
        )
    ]

    review_done = admission.status in _REVIEW_REACHED
    steps.append(
        StatusStep(
            name="Under Review",
            completed=review_done,
            completed_at=_first_entry(admission, _REVIEW_REACHED) if review_done else None,
        )
    )

    decision_done = admission.status in _DECISION_REACHED
    steps.append(
        StatusStep(
            name="Decision",
            completed=decision_done,
            completed_at=admission.decision_date if decision_done else None,
        )
    )

    enrolled = admission.status == AdmissionStatus.CONVERTED_TO_STUDENT
    steps.append(
        StatusStep(
            name="Enrolled",
            completed=enrolled,
            completed_at=admission.updated_at if enrolled else None,
        )
    )

    return steps


def to_tracking_response(admission: Admission) -> AdmissionTrackingResponse:
    """Guardian-safe projection (no assessment or decision notes)."""
    return AdmissionTrackingResponse(
        id=admission.id,
        application_number=admission.application_number,
        applicant_name=admission.applicant.full_name,
        applied_grade=admission.applicant.applied_grade,
        status=admission.status,
        status_label=STATUS_LABELS[admission.status],
        status_description=STATUS_DESCRIPTIONS[admission.status],
        document_count=len(admission.documents),
        submitted_at=admission.created_at,
        updated_at=admission.updated_at,
        steps=build_status_steps(admission),
    )


def to_list_item(admission: Admission) -> AdmissionListItem:
    return AdmissionListItem(
        id=admission.id,
        application_number=admission.application_number,
        status=admission.status,
        applicant_name=admission.applicant.full_name,
        applied_grade=admission.applicant.applied_grade,
        primary_guardian_email=primary_guardian(admission).email if admission.guardians else None,
        created_at=admission.created_at,
        updated_at=admission.updated_at,
    )


def count_open(counts: dict[AdmissionStatus, int]) -> int:
    return sum(n for status, n in counts.items() if status not in TERMINAL_STATUSES)
