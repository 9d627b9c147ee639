"""
Student Models

Database tables for students and guardians.
"""

from datetime import date

from sqlalchemy import JSON, Date, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from gsos.modules.shared import BaseModel


class StudentRecord(BaseModel):
    """Student row. `guardian_ids` is a JSON array of guardian ids."""

    __tablename__ = "students"

    admission_id: Mapped[str | None] = mapped_column(String(36), nullable=True)

    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    date_of_birth: Mapped[date] = mapped_column(Date, nullable=False)
    gender: Mapped[str] = mapped_column(String(32), nullable=False)
    nationality: Mapped[str] = mapped_column(String(100), nullable=False)

    grade: Mapped[str] = mapped_column(String(50), nullable=False)
    year_group: Mapped[str] = mapped_column(String(50), nullable=False)
    previous_school: Mapped[str | None] = mapped_column(String(200), nullable=True)

    guardian_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    enrollment_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")

    __table_args__ = (
        Index("ix_students_school_admission", "school_id", "admission_id"),
        Index("ix_students_school_status", "school_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<StudentRecord(id={self.id}, school={self.school_id})>"


class GuardianRecord(BaseModel):
    """Guardian row. Email is stored lower-cased and is unique per school."""

    __tablename__ = "guardians"

    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(30), nullable=True)
    relationship: Mapped[str] = mapped_column(String(20), nullable=False)
    student_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    __table_args__ = (UniqueConstraint("school_id", "email", name="uq_guardians_school_email"),)

    def __repr__(self) -> str:
        return f"<GuardianRecord(id={self.id}, school={self.school_id})>"
