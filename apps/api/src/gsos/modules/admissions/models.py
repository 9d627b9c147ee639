"""
Admissions Models

Database tables for admission applications. Applicant, guardian, document
and history sections are stored as JSON snapshots; the columns that are
filtered on (status, grade, guardian email) are stored separately.
"""

from datetime import datetime

from sqlalchemy import (
    JSON,
    DateTime,
    Float,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from gsos.core.database import Base
from gsos.modules.shared import BaseModel


class AdmissionRecord(BaseModel):
    """
    Admission application row.

    `status` is a plain string column; values are checked against
    AdmissionStatus when read back.
    """

    __tablename__ = "admissions"

    application_number: Mapped[str] = mapped_column(String(32), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False)
    applied_grade: Mapped[str] = mapped_column(String(50), nullable=False)

    # Snapshots
    applicant: Mapped[dict] = mapped_column(JSON, nullable=False)
    previous_school: Mapped[str | None] = mapped_column(String(200), nullable=True)
    guardians: Mapped[list] = mapped_column(JSON, nullable=False)
    documents: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    # Assessment outcome
    assessment_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    assessment_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Decision outcome
    decision_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    decision_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    decision_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Conversion link
    student_id: Mapped[str | None] = mapped_column(String(36), nullable=True)

    # Stored as JSON array: [{from_status, to_status, actor_id, notes, changed_at}, ...]
    status_history: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    guardian_emails: Mapped[list["AdmissionGuardianEmail"]] = relationship(
        "AdmissionGuardianEmail",
        back_populates="admission",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        UniqueConstraint("school_id", "application_number", name="uq_admissions_school_number"),
        Index("ix_admissions_school_status", "school_id", "status"),
        Index("ix_admissions_school_grade", "school_id", "applied_grade"),
    )

    def __repr__(self) -> str:
        return f"<AdmissionRecord(id={self.id}, number={self.application_number}, status={self.status})>"


class AdmissionGuardianEmail(Base):
    """Guardian email lookup for the parent portal."""

    __tablename__ = "admission_guardian_emails"

    admission_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("admissions.id", ondelete="CASCADE"),
        primary_key=True,
    )
    email: Mapped[str] = mapped_column(String(255), primary_key=True)
    school_id: Mapped[str] = mapped_column(String(64), nullable=False)

    admission: Mapped["AdmissionRecord"] = relationship(
        "AdmissionRecord", back_populates="guardian_emails"
    )

    __table_args__ = (Index("ix_admission_guardian_emails_school_email", "school_id", "email"),)
