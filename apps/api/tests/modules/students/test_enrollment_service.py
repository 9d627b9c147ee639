"""
Unit tests for student enrollment.
"""

from datetime import UTC, date, datetime

import pytest

from gsos.modules.students.schemas import StudentStatus
from gsos.modules.students.service import (
    ApplicationAccepted,
    StudentNotFoundError,
    enroll_accepted_applicant,
    enrollment_date_for,
    get_student,
    guardian_id_for_email,
    student_id_for_admission,
)

NOW = datetime(2026, 3, 2, 9, 30, tzinfo=UTC)


def _event(school_id, applicant, guardians, admission_id="adm-1") -> ApplicationAccepted:
    return ApplicationAccepted(
        school_id=school_id,
        admission_id=admission_id,
        applicant=applicant,
        guardians=tuple(guardians),
        previous_school="Freetown Primary",
        actor_id="staff-1",
    )


class TestDeterministicIds:
    def test_student_id_is_stable(self):
        assert student_id_for_admission("s1", "a1") == student_id_for_admission("s1", "a1")
        assert student_id_for_admission("s1", "a1") != student_id_for_admission("s2", "a1")

    def test_guardian_id_ignores_email_case(self):
        assert guardian_id_for_email("s1", "Parent@Example.com") == guardian_id_for_email(
            "s1", "parent@example.com"
        )
        assert guardian_id_for_email("s1", "parent@example.com") != guardian_id_for_email(
            "s2", "parent@example.com"
        )


class TestEnrollmentDate:
    def test_future_preferred_date_is_used(self):
        assert enrollment_date_for(date(2026, 9, 1), date(2026, 3, 2)) == date(2026, 9, 1)

    def test_past_preferred_date_falls_back_to_today(self):
        assert enrollment_date_for(date(2026, 1, 5), date(2026, 3, 2)) == date(2026, 3, 2)


class TestEnrollAcceptedApplicant:
    """Tests for enroll_accepted_applicant."""

    @pytest.mark.asyncio
    async def test_creates_student_and_guardians(
        self, student_store, school_id, applicant, guardians
    ):
        result = await enroll_accepted_applicant(
            student_store, _event(school_id, applicant, guardians), NOW
        )

        student = result.student
        assert student.id == student_id_for_admission(school_id, "adm-1")
        assert student.status == StudentStatus.ACTIVE
        assert student.previous_school == "Freetown Primary"
        assert student.created_at == NOW
        assert student.guardian_ids == [g.id for g in result.guardians]
        assert result.guardians[0].id == guardian_id_for_email(school_id, "fatmata@example.com")
        assert all(g.student_ids == [student.id] for g in result.guardians)

    @pytest.mark.asyncio
    async def test_replay_keeps_original_dates(
        self, student_store, school_id, applicant, guardians
    ):
        event = _event(school_id, applicant, guardians)
        first = await enroll_accepted_applicant(student_store, event, NOW)
        later = datetime(2026, 10, 1, tzinfo=UTC)

        second = await enroll_accepted_applicant(student_store, event, later)

        assert second.student.id == first.student.id
        assert second.student.created_at == NOW
        assert second.student.enrollment_date == first.student.enrollment_date
        assert second.student.updated_at == later
        assert len(student_store.students) == 1
        assert all(g.student_ids == [first.student.id] for g in second.guardians)

    @pytest.mark.asyncio
    async def test_existing_guardian_keeps_details(
        self, student_store, school_id, applicant, guardians, guardian_factory
    ):
        await enroll_accepted_applicant(
            student_store, _event(school_id, applicant, guardians, "adm-1"), NOW
        )
        renamed = guardian_factory(first_name="Fatu", email="FATMATA@example.com")

        result = await enroll_accepted_applicant(
            student_store, _event(school_id, applicant, [renamed], "adm-2"), NOW
        )

        guardian = result.guardians[0]
        assert guardian.first_name == "Fatmata"
        assert guardian.student_ids == [
            student_id_for_admission(school_id, "adm-1"),
            student_id_for_admission(school_id, "adm-2"),
        ]


class TestGetStudent:
    @pytest.mark.asyncio
    async def test_get_student(self, student_store, school_id, applicant, guardians):
        result = await enroll_accepted_applicant(
            student_store, _event(school_id, applicant, guardians), NOW
        )
        assert await get_student(student_store, school_id, result.student.id) == result.student

    @pytest.mark.asyncio
    async def test_get_student_wrong_school(
        self, student_store, school_id, other_school_id, applicant, guardians
    ):
        result = await enroll_accepted_applicant(
            student_store, _event(school_id, applicant, guardians), NOW
        )
        with pytest.raises(StudentNotFoundError):
            await get_student(student_store, other_school_id, result.student.id)
