"""
Admissions Repository

Storage port for admission applications and its SQLAlchemy implementation.

Records are keyed by (school_id, admission_id) with secondary access by
status, by application number and by guardian email. After creation every
write replaces the whole record, conditioned on the status the caller read
(`UPDATE ... WHERE id AND school_id AND status`).

Design Principles:
- Single responsibility - only storage, no lifecycle rules
- Status values are validated on read, never coerced
- SQLAlchemy failures surface as PersistenceError
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Protocol

from pydantic import ValidationError as SchemaValidationError
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from .errors import DataIntegrityError, PersistenceError
from .models import AdmissionGuardianEmail, AdmissionRecord
from .schemas import Admission, AdmissionStatus

logger = logging.getLogger(__name__)


class DuplicateApplicationNumberError(Exception):
    """The application number is already taken in this school."""

    def __init__(self, school_id: str, application_number: str):
        self.school_id = school_id
        self.application_number = application_number
        super().__init__(f"Application number {application_number} already used in {school_id}")


class AdmissionStore(Protocol):
    """Storage operations the admissions lifecycle depends on."""

    async def create(self, admission: Admission) -> None:
        """Insert a new admission. Raises DuplicateApplicationNumberError on collision."""
        ...

    async def get(self, school_id: str, admission_id: str) -> Admission | None: ...

    async def get_by_application_number(
        self, school_id: str, application_number: str
    ) -> Admission | None: ...

    async def update_if_status(self, admission: Admission, expected_status: AdmissionStatus) -> bool:
        """Replace the stored record only if its status still equals expected_status."""
        ...

    async def query(
        self,
        school_id: str,
        *,
        status: AdmissionStatus | None = None,
        applied_grade: str | None = None,
        skip: int = 0,
        limit: int = 20,
    ) -> tuple[list[Admission], int]: ...

    async def find_by_guardian_email(self, school_id: str, email: str) -> list[Admission]: ...

    async def count_by_status(self, school_id: str) -> dict[AdmissionStatus, int]: ...

    async def delete(self, school_id: str, admission_id: str) -> bool: ...


def parse_status(raw: str, admission_id: str) -> AdmissionStatus:
    """Read a stored status, failing loudly on anything outside the enum."""
    try:
        return AdmissionStatus(raw)
    except ValueError as e:
        logger.error(f"Admission {admission_id} has unknown stored status {raw!r}")
        raise DataIntegrityError(
            f"Admission {admission_id} has unknown status {raw!r}"
        ) from e


def record_to_admission(record: AdmissionRecord) -> Admission:
    """Convert a database row into the domain model."""
    status = parse_status(record.status, record.id)
    try:
        return Admission(
            id=record.id,
            school_id=record.school_id,
            application_number=record.application_number,
            status=status,
            applicant=record.applicant,
            previous_school=record.previous_school,
            guardians=record.guardians,
            documents=record.documents or [],
            assessment_score=record.assessment_score,
            assessment_notes=record.assessment_notes,
            decision_notes=record.decision_notes,
            decision_by=record.decision_by,
            decision_date=record.decision_date,
            student_id=record.student_id,
            status_history=record.status_history or [],
            created_at=record.created_at,
            updated_at=record.updated_at,
        )
    except SchemaValidationError as e:
        logger.error(f"Admission {record.id} failed to load: {e}")
        raise DataIntegrityError(f"Admission {record.id} has malformed stored data") from e


def admission_to_values(admission: Admission) -> dict:
    """Column values for a full-record write."""
    data = admission.model_dump(mode="json")
    return {
        "school_id": admission.school_id,
        "application_number": admission.application_number,
        "status": admission.status.value,
        "applied_grade": admission.applicant.applied_grade,
        "applicant": data["applicant"],
        "previous_school": admission.previous_school,
        "guardians": data["guardians"],
        "documents": data["documents"],
        "assessment_score": admission.assessment_score,
        "assessment_notes": admission.assessment_notes,
        "decision_notes": admission.decision_notes,
        "decision_by": admission.decision_by,
        "decision_date": admission.decision_date,
        "student_id": admission.student_id,
        "status_history": data["status_history"],
        "created_at": admission.created_at,
        "updated_at": admission.updated_at,
    }


class SqlAdmissionStore:
    """AdmissionStore backed by an async SQLAlchemy session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    @asynccontextmanager
    async def _guard(self, operation: str) -> AsyncIterator[None]:
        try:
            yield
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Admission store {operation} failed: {e}")
            raise PersistenceError() from e

    async def create(self, admission: Admission) -> None:
        async with self._guard("create"):
            record = AdmissionRecord(id=admission.id, **admission_to_values(admission))
            record.guardian_emails = [
                AdmissionGuardianEmail(school_id=admission.school_id, email=email)
                for email in sorted(admission.guardian_emails())
            ]
            self.db.add(record)
            try:
                await self.db.commit()
            except IntegrityError as e:
                await self.db.rollback()
                raise DuplicateApplicationNumberError(
                    admission.school_id, admission.application_number
                ) from e

    async def get(self, school_id: str, admission_id: str) -> Admission | None:
        async with self._guard("get"):
            result = await self.db.execute(
                select(AdmissionRecord).where(
                    AdmissionRecord.id == admission_id,
                    AdmissionRecord.school_id == school_id,
                )
            )
            record = result.scalar_one_or_none()
        return record_to_admission(record) if record else None

    async def get_by_application_number(
        self, school_id: str, application_number: str
    ) -> Admission | None:
        async with self._guard("get_by_application_number"):
            result = await self.db.execute(
                select(AdmissionRecord).where(
                    AdmissionRecord.school_id == school_id,
                    AdmissionRecord.application_number == application_number,
                )
            )
            record = result.scalar_one_or_none()
        return record_to_admission(record) if record else None

    async def _write(self, admission: Admission, expected_status: AdmissionStatus) -> bool:
        stmt = (
            update(AdmissionRecord)
            .where(
                AdmissionRecord.id == admission.id,
                AdmissionRecord.school_id == admission.school_id,
                AdmissionRecord.status == expected_status.value,
            )
            .values(**admission_to_values(admission))
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        await self.db.commit()
        return result.rowcount == 1

    async def update_if_status(self, admission: Admission, expected_status: AdmissionStatus) -> bool:
        async with self._guard("update_if_status"):
            written = await self._write(admission, expected_status)
        if not written:
            logger.info(
                f"Conditional write on admission {admission.id} lost: "
                f"status is no longer {expected_status.value}"
            )
        return written

    async def query(
        self,
        school_id: str,
        *,
        status: AdmissionStatus | None = None,
        applied_grade: str | None = None,
        skip: int = 0,
        limit: int = 20,
    ) -> tuple[list[Admission], int]:
        conditions = [AdmissionRecord.school_id == school_id]
        if status is not None:
            conditions.append(AdmissionRecord.status == status.value)
        if applied_grade:
            conditions.append(AdmissionRecord.applied_grade == applied_grade)

        async with self._guard("query"):
            total = await self.db.scalar(
                select(func.count()).select_from(AdmissionRecord).where(*conditions)
            )
            result = await self.db.execute(
                select(AdmissionRecord)
                .where(*conditions)
                .order_by(AdmissionRecord.created_at.desc(), AdmissionRecord.id)
                .offset(skip)
                .limit(limit)
            )
            records = list(result.scalars().all())

        return [record_to_admission(r) for r in records], total or 0

    async def find_by_guardian_email(self, school_id: str, email: str) -> list[Admission]:
        async with self._guard("find_by_guardian_email"):
            result = await self.db.execute(
                select(AdmissionRecord)
                .join(
                    AdmissionGuardianEmail,
                    AdmissionGuardianEmail.admission_id == AdmissionRecord.id,
                )
                .where(
                    AdmissionGuardianEmail.school_id == school_id,
                    AdmissionGuardianEmail.email == email.lower(),
                )
                .order_by(AdmissionRecord.created_at.desc())
            )
            records = list(result.scalars().all())
        return [record_to_admission(r) for r in records]

    async def count_by_status(self, school_id: str) -> dict[AdmissionStatus, int]:
        async with self._guard("count_by_status"):
            result = await self.db.execute(
                select(AdmissionRecord.status, func.count())
                .where(AdmissionRecord.school_id == school_id)
                .group_by(AdmissionRecord.status)
            )
            rows = result.all()

        counts = {status: 0 for status in AdmissionStatus}
        for raw_status, count in rows:
            counts[parse_status(raw_status, f"(school {school_id})")] = count
        return counts

    async def delete(self, school_id: str, admission_id: str) -> bool:
        async with self._guard("delete"):
            result = await self.db.execute(
                delete(AdmissionRecord).where(
                    AdmissionRecord.id == admission_id,
                    AdmissionRecord.school_id == school_id,
                )
            )
            await self.db.commit()
        return result.rowcount == 1
