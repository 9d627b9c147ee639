"""
Student Repository

Storage port for students and guardians and its SQLAlchemy implementation.
Student writes are upserts keyed by id, so replaying an enrollment
overwrites the same row. Guardian links are appended under a row lock
because siblings enrolled at the same time share the guardian row.
"""

import logging
from typing import Protocol

from pydantic import ValidationError as SchemaValidationError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from gsos.modules.admissions.errors import DataIntegrityError, PersistenceError

from .models import GuardianRecord, StudentRecord
from .schemas import Guardian, Student

logger = logging.getLogger(__name__)


class StudentStore(Protocol):
    """Storage operations used by enrollment and the student endpoints."""

    async def get_student(self, school_id: str, student_id: str) -> Student | None: ...

    async def put_student(self, student: Student) -> None: ...

    async def find_guardian_by_email(self, school_id: str, email: str) -> Guardian | None: ...

    async def link_guardian(self, guardian: Guardian, student_id: str) -> Guardian:
        """
        Add `student_id` to the stored guardian's links, creating the guardian if new.

        The read and the write are one atomic step, so concurrent
        enrollments sharing a guardian each keep their link.
        """
        ...


def _student_values(student: Student) -> dict:
    return {
        "id": student.id,
        "school_id": student.school_id,
        "admission_id": student.admission_id,
        "first_name": student.first_name,
        "last_name": student.last_name,
        "date_of_birth": student.date_of_birth,
        "gender": student.gender.value,
        "nationality": student.nationality,
        "grade": student.grade,
        "year_group": student.year_group,
        "previous_school": student.previous_school,
        "guardian_ids": list(student.guardian_ids),
        "enrollment_date": student.enrollment_date,
        "status": student.status.value,
        "created_at": student.created_at,
        "updated_at": student.updated_at,
    }


def _guardian_values(guardian: Guardian) -> dict:
    return {
        "id": guardian.id,
        "school_id": guardian.school_id,
        "first_name": guardian.first_name,
        "last_name": guardian.last_name,
        "email": guardian.email.lower(),
        "phone": guardian.phone,
        "relationship": guardian.relationship.value,
        "student_ids": list(guardian.student_ids),
        "created_at": guardian.created_at,
        "updated_at": guardian.updated_at,
    }


def _load(model, record):
    try:
        return model.model_validate(record)
    except SchemaValidationError as e:
        logger.error(f"{type(record).__name__} {record.id} failed to load: {e}")
        raise DataIntegrityError(f"{model.__name__} {record.id} has malformed stored data") from e


class SqlStudentStore:
    """StudentStore backed by an async SQLAlchemy session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_student(self, school_id: str, student_id: str) -> Student | None:
        try:
            result = await self.db.execute(
                select(StudentRecord).where(
                    StudentRecord.id == student_id,
                    StudentRecord.school_id == school_id,
                )
            )
            record = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Failed to load student {student_id}: {e}")
            raise PersistenceError() from e
        return _load(Student, record) if record else None

    async def put_student(self, student: Student) -> None:
        try:
            await self.db.merge(StudentRecord(**_student_values(student)))
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Failed to store student {student.id}: {e}")
            raise PersistenceError() from e

    async def find_guardian_by_email(self, school_id: str, email: str) -> Guardian | None:
        try:
            result = await self.db.execute(
                select(GuardianRecord).where(
                    GuardianRecord.school_id == school_id,
                    GuardianRecord.email == email.lower(),
                )
            )
            record = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Failed to look up guardian by email: {e}")
            raise PersistenceError() from e
        return _load(Guardian, record) if record else None

    async def link_guardian(self, guardian: Guardian, student_id: str) -> Guardian:
        email = guardian.email.lower()
        # A concurrent insert of the same guardian fails the first attempt;
        # the second finds and locks that row
        for _ in range(2):
            try:
                result = await self.db.execute(
                    select(GuardianRecord)
                    .where(
                        GuardianRecord.school_id == guardian.school_id,
                        GuardianRecord.email == email,
                    )
                    .with_for_update()
                )
                record = result.scalar_one_or_none()
                if record is None:
                    linked = guardian
                    if student_id not in linked.student_ids:
                        linked = linked.model_copy(
                            update={"student_ids": [*linked.student_ids, student_id]}
                        )
                    self.db.add(GuardianRecord(**_guardian_values(linked)))
                else:
                    linked = _load(Guardian, record)
                    if student_id not in linked.student_ids:
                        linked = linked.model_copy(
                            update={
                                "student_ids": [*linked.student_ids, student_id],
                                "updated_at": guardian.updated_at,
                            }
                        )
                        record.student_ids = list(linked.student_ids)
                        record.updated_at = linked.updated_at
                await self.db.commit()
                return linked
            except IntegrityError:
                await self.db.rollback()
                logger.info(f"Guardian {guardian.id} created concurrently, retrying link")
            except SQLAlchemyError as e:
                await self.db.rollback()
                logger.error(f"Failed to link guardian {guardian.id} to {student_id}: {e}")
                raise PersistenceError() from e

        raise PersistenceError(f"Guardian {guardian.id} could not be linked")
