"""
Admissions Service Layer

Business logic for student admission applications. AdmissionLifecycle owns
the status state machine and orchestrates storage, document checks,
enrollment and guardian notifications.

This module implements:
1. Submission:
   - Validate applicant and guardians (exactly one primary guardian)
   - Allocate an application number unique within the school
   - Acknowledge the application to the primary guardian
2. Review:
   - Guarded status transitions (see transitions.py)
   - Assessment outcomes and decision recording
   - Document attachment while the application is open
3. Conversion:
   - Publish ApplicationAccepted to student enrollment
   - Flip the admission to converted_to_student with a conditional write

Concurrency:
- Status changes are conditional on the status that was read, so two
  racing transitions of one admission cannot both succeed
- Other writes (documents, assessment results) only require the status to
  be unchanged; otherwise the last writer wins on the whole record
- Enrollment writes use deterministic ids and are safe to replay
"""

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from gsos.core.blob_store import BlobStore, file_extension, is_key_within_admission
from gsos.core.config import settings
from gsos.core.email import send_admission_status_update, send_application_received
from gsos.modules.admissions.errors import (
    AdmissionNotFoundError,
    ConflictError,
    GuardianMismatchError,
    InvalidStateError,
    InvalidTransitionError,
    PersistenceError,
    ValidationError,
)
from gsos.modules.admissions.helpers import (
    GUARDIAN_NOTIFIED_STATUSES,
    STATUS_DESCRIPTIONS,
    STATUS_LABELS,
    generate_application_number,
    primary_guardian,
    validate_submission,
)
from gsos.modules.admissions.repository import AdmissionStore, DuplicateApplicationNumberError
from gsos.modules.admissions.schemas import (
    Admission,
    AdmissionDocument,
    AdmissionStatus,
    ApplicantInfo,
    GuardianContact,
    StatusChange,
)
from gsos.modules.admissions.transitions import (
    ASSESSMENT_GATED_TARGETS,
    DECISION_STATUSES,
    is_terminal,
    is_valid_transition,
)
from gsos.modules.students.repository import StudentStore
from gsos.modules.students.schemas import Guardian, Student
from gsos.modules.students.service import ApplicationAccepted, enroll_accepted_applicant

logger = logging.getLogger(__name__)

# Constants
APPLICATION_NUMBER_ATTEMPTS = 5
MAX_PAGE_SIZE = 100
MIN_ASSESSMENT_SCORE = 0.0
MAX_ASSESSMENT_SCORE = 100.0


def utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass
class ConversionResult:
    admission: Admission
    student: Student
    guardians: list[Guardian] = field(default_factory=list)


class AdmissionLifecycle:
    """
    Admission application lifecycle.

    Args:
        admissions: Admission storage
        students: Student/guardian storage used by enrollment
        blobs: Optional blob store; when set, document keys must exist in it
        clock: Returns the current timezone-aware time
        allowed_extensions: Document file extensions accepted by add_document
    """

    def __init__(
        self,
        admissions: AdmissionStore,
        students: StudentStore,
        blobs: BlobStore | None = None,
        clock: Callable[[], datetime] = utc_now,
        allowed_extensions: set[str] | None = None,
    ):
        self.admissions = admissions
        self.students = students
        self.blobs = blobs
        self.clock = clock
        self.allowed_extensions = (
            allowed_extensions
            if allowed_extensions is not None
            else settings.allowed_document_extensions_set
        )

    # ============================================
    # Submission
    # ============================================

    async def submit(
        self,
        school_id: str,
        applicant: ApplicantInfo,
        guardians: list[GuardianContact],
        previous_school: str | None = None,
    ) -> Admission:
        """
        Submit a new admission application.

        Returns:
            The stored Admission in status `submitted`

        Raises:
            ValidationError: If required fields are missing or the guardian list is invalid
            ConflictError: If no unique application number could be allocated
        """
        now = self.clock()
        problems = validate_submission(school_id, applicant, guardians, now.date())
        if problems:
            logger.warning(f"Rejected admission submission for school {school_id}: {problems}")
            raise ValidationError(problems)

        previous_school = previous_school.strip() if previous_school else None
        admission_id = str(uuid.uuid4())

        for attempt in range(1, APPLICATION_NUMBER_ATTEMPTS + 1):
            admission = Admission(
                id=admission_id,
                school_id=school_id,
                application_number=generate_application_number(now.year),
                status=AdmissionStatus.SUBMITTED,
                applicant=applicant,
                previous_school=previous_school or None,
                guardians=list(guardians),
                documents=[],
                status_history=[
                    StatusChange(to_status=AdmissionStatus.SUBMITTED, changed_at=now)
                ],
                created_at=now,
                updated_at=now,
            )
            try:
                await self.admissions.create(admission)
                break
            except DuplicateApplicationNumberError:
                logger.warning(
                    f"Application number collision in school {school_id} "
                    f"(attempt {attempt}/{APPLICATION_NUMBER_ATTEMPTS})"
                )
        else:
            raise ConflictError("Could not allocate a unique application number, please retry")

        logger.info(
            f"Admission {admission.id} submitted as {admission.application_number} "
            f"in school {school_id}"
        )

        # Send acknowledgement (non-blocking - log error but don't fail the request)
        guardian = primary_guardian(admission)
        try:
            email_sent = await send_application_received(
                to_email=guardian.email,
                guardian_name=guardian.full_name,
                applicant_name=applicant.full_name,
                application_number=admission.application_number,
            )
            if not email_sent:
                logger.error(f"Failed to send acknowledgement for admission {admission.id}")
        except Exception as e:
            logger.error(f"Exception sending acknowledgement for admission {admission.id}: {e}")

        return admission

    # ============================================
    # Reads
    # ============================================

    async def get(self, school_id: str, admission_id: str) -> Admission:
        """
        Raises:
            AdmissionNotFoundError: If the admission doesn't exist in this school
        """
        admission = await self.admissions.get(school_id, admission_id)
        if admission is None:
            logger.warning(f"Admission not found: {admission_id} (school {school_id})")
            raise AdmissionNotFoundError(admission_id)
        return admission

    async def get_for_guardian(self, school_id: str, admission_id: str, email: str) -> Admission:
        """
        Load an admission on behalf of a guardian.

        Raises:
            AdmissionNotFoundError: If the admission doesn't exist
            GuardianMismatchError: If the email is not one of its guardians
        """
        admission = await self.get(school_id, admission_id)
        if email.strip().lower() not in admission.guardian_emails():
            logger.warning(f"Guardian email mismatch for admission {admission_id}")
            raise GuardianMismatchError()
        return admission

    async def list_admissions(
        self,
        school_id: str,
        *,
        status: AdmissionStatus | None = None,
        applied_grade: str | None = None,
        skip: int = 0,
        limit: int = 20,
    ) -> tuple[list[Admission], int]:
        """Staff list view. Returns (page, total matching)."""
        # Validate and cap limit
        limit = min(max(1, limit), MAX_PAGE_SIZE)
        skip = max(0, skip)

        logger.info(
            f"Listing admissions for school {school_id}: status={status}, "
            f"grade={applied_grade}, skip={skip}, limit={limit}"
        )
        return await self.admissions.query(
            school_id,
            status=status,
            applied_grade=applied_grade,
            skip=skip,
            limit=limit,
        )

    async def list_for_guardian(self, school_id: str, email: str) -> list[Admission]:
        return await self.admissions.find_by_guardian_email(school_id, email.strip().lower())

    async def track(self, school_id: str, application_number: str, email: str) -> Admission:
        """
        Public status check by application number.

        The email is required so only guardians on the application can see it.

        Raises:
            AdmissionNotFoundError: If the number is unknown in this school
            GuardianMismatchError: If the email is not one of the guardians
        """
        number = application_number.strip().upper()
        admission = await self.admissions.get_by_application_number(school_id, number)
        if admission is None:
            logger.warning(f"Tracking lookup for unknown application number in school {school_id}")
            raise AdmissionNotFoundError(number)

        # Case-insensitive comparison
        if email.strip().lower() not in admission.guardian_emails():
            logger.warning(
                f"Unauthorized tracking attempt for admission {admission.id}: "
                f"provided email does not match"
            )
            raise GuardianMismatchError()

        return admission

    async def status_counts(self, school_id: str) -> dict[AdmissionStatus, int]:
        counts = await self.admissions.count_by_status(school_id)
        return {status: counts.get(status, 0) for status in AdmissionStatus}

    # ============================================
    # Transitions
    # ============================================

    async def transition(
        self,
        school_id: str,
        admission_id: str,
        target_status: AdmissionStatus,
        actor_id: str | None,
        notes: str | None = None,
    ) -> Admission:
        """
        Move an admission along a lifecycle edge.

        Raises:
            AdmissionNotFoundError: If the admission doesn't exist
            InvalidTransitionError: If the edge doesn't exist or its guard fails
            ConflictError: If the admission changed since it was read
        """
        admission = await self.get(school_id, admission_id)
        current = admission.status

        if not is_valid_transition(current, target_status):
            logger.warning(
                f"Invalid transition for admission {admission_id}: "
                f"{current.value} -> {target_status.value}"
            )
            raise InvalidTransitionError(current, target_status)

        if target_status == AdmissionStatus.CONVERTED_TO_STUDENT:
            result = await self.convert_to_student(school_id, admission_id, actor_id)
            return result.admission

        if (
            current == AdmissionStatus.ASSESSMENT_SCHEDULED
            and target_status in ASSESSMENT_GATED_TARGETS
            and admission.assessment_score is None
            and not admission.assessment_notes
        ):
            raise InvalidTransitionError(
                current,
                target_status,
                reason="an assessment score or notes must be recorded first",
            )

        now = self.clock()
        notes = notes.strip() if notes else None
        changes = {
            "status": target_status,
            "updated_at": now,
            "status_history": [
                *admission.status_history,
                StatusChange(
                    from_status=current,
                    to_status=target_status,
                    actor_id=actor_id,
                    notes=notes,
                    changed_at=now,
                ),
            ],
        }
        if target_status in DECISION_STATUSES:
            changes.update(decision_notes=notes, decision_by=actor_id, decision_date=now)

        updated = admission.model_copy(update=changes)
        if not await self.admissions.update_if_status(updated, current):
            raise ConflictError()

        logger.info(
            f"Admission {admission_id} moved {current.value} -> {target_status.value} "
            f"by {actor_id}"
        )
        await self._notify_status(updated)
        return updated

    async def withdraw(
        self,
        school_id: str,
        admission_id: str,
        actor_id: str | None,
        notes: str | None = None,
    ) -> Admission:
        return await self.transition(
            school_id, admission_id, AdmissionStatus.WITHDRAWN, actor_id, notes
        )

    # ============================================
    # Assessment & Documents
    # ============================================

    async def record_assessment(
        self,
        school_id: str,
        admission_id: str,
        score: float | None,
        notes: str | None,
        actor_id: str | None = None,
    ) -> Admission:
        """
        Record the assessment outcome. Does not change status.

        Raises:
            InvalidStateError: If the admission is not in assessment_scheduled
            ValidationError: If neither score nor notes is given, or the score is out of range
        """
        admission = await self.get(school_id, admission_id)
        if admission.status != AdmissionStatus.ASSESSMENT_SCHEDULED:
            raise InvalidStateError(admission.status, "record an assessment")

        notes = notes.strip() if notes else None
        problems = []
        if score is None and not notes:
            problems.append("an assessment score or notes is required")
        if score is not None and not MIN_ASSESSMENT_SCORE <= score <= MAX_ASSESSMENT_SCORE:
            problems.append(
                f"score must be between {MIN_ASSESSMENT_SCORE:g} and {MAX_ASSESSMENT_SCORE:g}"
            )
        if problems:
            raise ValidationError(problems)

        updated = admission.model_copy(
            update={
                "assessment_score": score,
                "assessment_notes": notes,
                "updated_at": self.clock(),
            }
        )
        if not await self.admissions.update_if_status(updated, admission.status):
            raise ConflictError()

        logger.info(f"Assessment recorded for admission {admission_id} by {actor_id}")
        return updated

    async def add_document(
        self,
        school_id: str,
        admission_id: str,
        doc_type: str,
        filename: str,
        storage_key: str,
    ) -> Admission:
        """
        Attach an uploaded document to an open application.

        Raises:
            InvalidStateError: If the admission is in a terminal status
            ValidationError: If the file type or storage key is not acceptable
            PersistenceError: If the blob store cannot be reached
        """
        admission = await self.get(school_id, admission_id)
        if is_terminal(admission.status):
            raise InvalidStateError(admission.status, "add a document")

        problems = []
        if not doc_type or not doc_type.strip():
            problems.append("document type is required")
        extension = file_extension(filename)
        if extension not in self.allowed_extensions:
            allowed = ", ".join(sorted(self.allowed_extensions))
            problems.append(f"file type '{extension or filename}' is not allowed (allowed: {allowed})")
        if not is_key_within_admission(storage_key, school_id, admission_id):
            problems.append("storage_key does not belong to this application")
        if problems:
            raise ValidationError(problems)

        if self.blobs is not None:
            try:
                exists = await self.blobs.exists(storage_key)
            except OSError as e:
                logger.error(f"Blob store check failed for admission {admission_id}: {e}")
                raise PersistenceError("Document storage is temporarily unavailable") from e
            if not exists:
                raise ValidationError(["storage_key does not refer to an uploaded document"])

        now = self.clock()
        document = AdmissionDocument(
            type=doc_type.strip(),
            filename=filename,
            storage_key=storage_key,
            uploaded_at=now,
        )
        updated = admission.model_copy(
            update={"documents": [*admission.documents, document], "updated_at": now}
        )
        if not await self.admissions.update_if_status(updated, admission.status):
            raise ConflictError()

        logger.info(f"Document of type {document.type} added to admission {admission_id}")
        return updated

    # ============================================
    # Conversion
    # ============================================

    async def convert_to_student(
        self,
        school_id: str,
        admission_id: str,
        actor_id: str | None = None,
    ) -> ConversionResult:
        """
        Convert an accepted application into a Student with linked Guardians.

        Student and guardian records are written first (idempotent), then the
        admission is flipped with a write conditioned on offer_accepted.

        Raises:
            ConflictError: If the admission has already been converted
            InvalidStateError: If the admission is not in offer_accepted
            PersistenceError: If storage fails (safe to retry)
        """
        admission = await self.get(school_id, admission_id)

        if admission.status == AdmissionStatus.CONVERTED_TO_STUDENT:
            raise ConflictError(
                f"Admission {admission_id} was already converted to student {admission.student_id}"
            )
        if admission.status != AdmissionStatus.OFFER_ACCEPTED:
            raise InvalidStateError(admission.status, "convert to student")

        now = self.clock()
        event = ApplicationAccepted(
            school_id=school_id,
            admission_id=admission_id,
            applicant=admission.applicant,
            guardians=tuple(admission.guardians),
            previous_school=admission.previous_school,
            actor_id=actor_id,
        )
        enrollment = await enroll_accepted_applicant(self.students, event, now)

        updated = admission.model_copy(
            update={
                "status": AdmissionStatus.CONVERTED_TO_STUDENT,
                "student_id": enrollment.student.id,
                "updated_at": now,
                "status_history": [
                    *admission.status_history,
                    StatusChange(
                        from_status=AdmissionStatus.OFFER_ACCEPTED,
                        to_status=AdmissionStatus.CONVERTED_TO_STUDENT,
                        actor_id=actor_id,
                        changed_at=now,
                    ),
                ],
            }
        )
        if not await self.admissions.update_if_status(updated, AdmissionStatus.OFFER_ACCEPTED):
            logger.warning(f"Concurrent conversion of admission {admission_id} detected")
            raise ConflictError(f"Admission {admission_id} was converted by another request")

        logger.info(
            f"Admission {admission_id} converted to student {enrollment.student.id} by {actor_id}"
        )
        await self._notify_status(updated)
        return ConversionResult(
            admission=updated,
            student=enrollment.student,
            guardians=enrollment.guardians,
        )

    # ============================================
    # Administration
    # ============================================

    async def delete(self, school_id: str, admission_id: str, actor_id: str | None) -> None:
        """
        Hard-delete an admission.

        Raises:
            InvalidStateError: If the admission has been converted to a student
        """
        admission = await self.get(school_id, admission_id)
        if admission.status == AdmissionStatus.CONVERTED_TO_STUDENT:
            raise InvalidStateError(admission.status, "delete")

        if not await self.admissions.delete(school_id, admission_id):
            raise AdmissionNotFoundError(admission_id)

        logger.warning(
            f"Admission {admission_id} ({admission.application_number}) deleted by {actor_id}"
        )

    async def _notify_status(self, admission: Admission) -> None:
        if admission.status not in GUARDIAN_NOTIFIED_STATUSES:
            return

        # Non-blocking - email is non-critical
        guardian = primary_guardian(admission)
        try:
            await send_admission_status_update(
                to_email=guardian.email,
                guardian_name=guardian.full_name,
                applicant_name=admission.applicant.full_name,
                application_number=admission.application_number,
                status_label=STATUS_LABELS[admission.status],
                message=STATUS_DESCRIPTIONS[admission.status],
            )
        except Exception as e:
            logger.error(
                f"Failed to send status email for admission {admission.id}: {e}", exc_info=True
            )
