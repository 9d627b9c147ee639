"""
Shared fixtures for admissions and student tests.

The in-memory stores yield to the event loop on every call so that
concurrent requests interleave the way they do against a real database.
"""

import asyncio
from datetime import UTC, date, datetime, timedelta
from unittest.mock import AsyncMock, patch

import pytest

from gsos.core.rate_limit import reset_memory_store
from gsos.modules.admissions.repository import DuplicateApplicationNumberError
from gsos.modules.admissions.schemas import (
    Admission,
    AdmissionStatus,
    ApplicantInfo,
    Gender,
    GuardianContact,
    GuardianRelationship,
)
from gsos.modules.admissions.service import AdmissionLifecycle
from gsos.modules.students.schemas import Guardian, Student

SCHOOL_ID = "school-1"
OTHER_SCHOOL_ID = "school-2"
FIXED_NOW = datetime(2026, 3, 2, 9, 30, tzinfo=UTC)
ALLOWED_EXTENSIONS = {"pdf", "jpg", "jpeg", "png"}


class InMemoryAdmissionStore:
    """AdmissionStore keeping deep copies in a dict."""

    def __init__(self):
        self.records: dict[tuple[str, str], Admission] = {}

    async def create(self, admission: Admission) -> None:
        await asyncio.sleep(0)
        for existing in self.records.values():
            if (
                existing.school_id == admission.school_id
                and existing.application_number == admission.application_number
            ):
                raise DuplicateApplicationNumberError(
                    admission.school_id, admission.application_number
                )
        self.records[(admission.school_id, admission.id)] = admission.model_copy(deep=True)

    async def get(self, school_id: str, admission_id: str) -> Admission | None:
        await asyncio.sleep(0)
        record = self.records.get((school_id, admission_id))
        return record.model_copy(deep=True) if record else None

    async def get_by_application_number(
        self, school_id: str, application_number: str
    ) -> Admission | None:
        await asyncio.sleep(0)
        for record in self.records.values():
            if record.school_id == school_id and record.application_number == application_number:
                return record.model_copy(deep=True)
        return None

    async def update_if_status(self, admission: Admission, expected_status: AdmissionStatus) -> bool:
        await asyncio.sleep(0)
        key = (admission.school_id, admission.id)
        current = self.records.get(key)
        if current is None or current.status != expected_status:
            return False
        self.records[key] = admission.model_copy(deep=True)
        return True

    async def query(
        self,
        school_id: str,
        *,
        status: AdmissionStatus | None = None,
        applied_grade: str | None = None,
        skip: int = 0,
        limit: int = 20,
    ) -> tuple[list[Admission], int]:
        await asyncio.sleep(0)
        matches = [
            r
            for r in self.records.values()
            if r.school_id == school_id
            and (status is None or r.status == status)
            and (not applied_grade or r.applicant.applied_grade == applied_grade)
        ]
        matches.sort(key=lambda r: r.created_at, reverse=True)
        return [r.model_copy(deep=True) for r in matches[skip : skip + limit]], len(matches)

    async def find_by_guardian_email(self, school_id: str, email: str) -> list[Admission]:
        await asyncio.sleep(0)
        return [
            r.model_copy(deep=True)
            for r in self.records.values()
            if r.school_id == school_id and email.lower() in r.guardian_emails()
        ]

    async def count_by_status(self, school_id: str) -> dict[AdmissionStatus, int]:
        await asyncio.sleep(0)
        counts = {status: 0 for status in AdmissionStatus}
        for record in self.records.values():
            if record.school_id == school_id:
                counts[record.status] += 1
        return counts

    async def delete(self, school_id: str, admission_id: str) -> bool:
        await asyncio.sleep(0)
        return self.records.pop((school_id, admission_id), None) is not None


class InMemoryStudentStore:
    """StudentStore keeping students and guardians in dicts."""

    def __init__(self):
        self.students: dict[tuple[str, str], Student] = {}
        self.guardians: dict[tuple[str, str], Guardian] = {}

    async def get_student(self, school_id: str, student_id: str) -> Student | None:
        await asyncio.sleep(0)
        return self.students.get((school_id, student_id))

    async def put_student(self, student: Student) -> None:
        await asyncio.sleep(0)
        self.students[(student.school_id, student.id)] = student

    def _by_email(self, school_id: str, email: str) -> Guardian | None:
        for guardian in self.guardians.values():
            if guardian.school_id == school_id and guardian.email == email.lower():
                return guardian
        return None

    async def find_guardian_by_email(self, school_id: str, email: str) -> Guardian | None:
        await asyncio.sleep(0)
        return self._by_email(school_id, email)

    async def link_guardian(self, guardian: Guardian, student_id: str) -> Guardian:
        await asyncio.sleep(0)
        # Read-modify-write with no await in between, like the locked SQL path
        current = self._by_email(guardian.school_id, guardian.email) or guardian
        if student_id not in current.student_ids:
            current = current.model_copy(
                update={
                    "student_ids": [*current.student_ids, student_id],
                    "updated_at": guardian.updated_at,
                }
            )
        self.guardians[(current.school_id, current.id)] = current
        return current


class FixedClock:
    """Clock returning a settable time."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakeBlobStore:
    def __init__(self, keys: set[str] | None = None, error: Exception | None = None):
        self.keys = set(keys or ())
        self.error = error

    async def exists(self, key: str) -> bool:
        if self.error:
            raise self.error
        return key in self.keys


def make_applicant(**overrides) -> ApplicantInfo:
    data = {
        "first_name": "Amara",
        "last_name": "Kamara",
        "date_of_birth": date(2016, 5, 14),
        "gender": Gender.FEMALE,
        "nationality": "Sierra Leonean",
        "applied_grade": "Grade 4",
        "preferred_start_date": date(2026, 9, 7),
    }
    data.update(overrides)
    return ApplicantInfo(**data)


def make_guardian(**overrides) -> GuardianContact:
    data = {
        "first_name": "Fatmata",
        "last_name": "Kamara",
        "relationship": GuardianRelationship.MOTHER,
        "email": "fatmata@example.com",
        "phone": "+23276000001",
        "is_primary": True,
    }
    data.update(overrides)
    return GuardianContact(**data)


def two_guardians() -> list[GuardianContact]:
    return [
        make_guardian(),
        make_guardian(
            first_name="Mohamed",
            relationship=GuardianRelationship.FATHER,
            email="mohamed@example.com",
            is_primary=False,
        ),
    ]


@pytest.fixture(autouse=True)
def mock_emails():
    """Patch outgoing email for every test."""
    with (
        patch(
            "gsos.modules.admissions.service.send_application_received",
            new_callable=AsyncMock,
            return_value=True,
        ) as received,
        patch(
            "gsos.modules.admissions.service.send_admission_status_update",
            new_callable=AsyncMock,
            return_value=True,
        ) as status_update,
    ):
        yield {"received": received, "status_update": status_update}


@pytest.fixture(autouse=True)
def clear_rate_limits():
    reset_memory_store()
    yield
    reset_memory_store()


@pytest.fixture
def admission_store():
    return InMemoryAdmissionStore()


@pytest.fixture
def student_store():
    return InMemoryStudentStore()


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def blob_store():
    return FakeBlobStore()


@pytest.fixture
def lifecycle(admission_store, student_store, blob_store, clock):
    return AdmissionLifecycle(
        admissions=admission_store,
        students=student_store,
        blobs=blob_store,
        clock=clock,
        allowed_extensions=ALLOWED_EXTENSIONS,
    )


@pytest.fixture
def applicant():
    return make_applicant()


@pytest.fixture
def guardians():
    return two_guardians()


@pytest.fixture
def applicant_factory():
    return make_applicant


@pytest.fixture
def guardian_factory():
    return make_guardian


@pytest.fixture
def school_id():
    return SCHOOL_ID


@pytest.fixture
def other_school_id():
    return OTHER_SCHOOL_ID
