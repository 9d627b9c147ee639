"""create admissions and students tables

Revision ID: a7c3e91d2b40
Revises:
Create Date: 2026-10-18 09:00:00.000000

This migration:
1. Creates the admissions table (JSON snapshots + filter columns)
2. Creates admission_guardian_emails for the guardian portal lookup
3. Creates the students and guardians tables used by enrollment

Status columns are plain strings; the application validates them on read.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "a7c3e91d2b40"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _tenant_columns() -> list[sa.Column]:
    """Primary key, tenant and timestamps (from BaseModel)."""
    return [
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("school_id", sa.String(length=64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    """Create admissions, guardian email index, students and guardians."""
    op.create_table(
        "admissions",
        *_tenant_columns(),
        sa.Column("application_number", sa.String(length=32), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("applied_grade", sa.String(length=50), nullable=False),
        # Snapshots
        sa.Column("applicant", sa.JSON(), nullable=False),
        sa.Column("previous_school", sa.String(length=200), nullable=True),
        sa.Column("guardians", sa.JSON(), nullable=False),
        sa.Column("documents", sa.JSON(), nullable=False),
        # Assessment and decision
        sa.Column("assessment_score", sa.Float(), nullable=True),
        sa.Column("assessment_notes", sa.Text(), nullable=True),
        sa.Column("decision_notes", sa.Text(), nullable=True),
        sa.Column("decision_by", sa.String(length=64), nullable=True),
        sa.Column("decision_date", sa.DateTime(timezone=True), nullable=True),
        # Conversion link and audit trail
        sa.Column("student_id", sa.String(length=36), nullable=True),
        sa.Column("status_history", sa.JSON(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "school_id", "application_number", name="uq_admissions_school_number"
        ),
    )
    op.create_index(op.f("ix_admissions_school_id"), "admissions", ["school_id"], unique=False)
    op.create_index(
        "ix_admissions_school_status", "admissions", ["school_id", "status"], unique=False
    )
    op.create_index(
        "ix_admissions_school_grade", "admissions", ["school_id", "applied_grade"], unique=False
    )

    op.create_table(
        "admission_guardian_emails",
        sa.Column("admission_id", sa.String(length=36), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("school_id", sa.String(length=64), nullable=False),
        sa.PrimaryKeyConstraint("admission_id", "email"),
        sa.ForeignKeyConstraint(
            ["admission_id"],
            ["admissions.id"],
            name="fk_admission_guardian_emails_admission_id",
            ondelete="CASCADE",
        ),
    )
    op.create_index(
        "ix_admission_guardian_emails_school_email",
        "admission_guardian_emails",
        ["school_id", "email"],
        unique=False,
    )

    op.create_table(
        "students",
        *_tenant_columns(),
        sa.Column("admission_id", sa.String(length=36), nullable=True),
        sa.Column("first_name", sa.String(length=100), nullable=False),
        sa.Column("last_name", sa.String(length=100), nullable=False),
        sa.Column("date_of_birth", sa.Date(), nullable=False),
        sa.Column("gender", sa.String(length=32), nullable=False),
        sa.Column("nationality", sa.String(length=100), nullable=False),
        sa.Column("grade", sa.String(length=50), nullable=False),
        sa.Column("year_group", sa.String(length=50), nullable=False),
        sa.Column("previous_school", sa.String(length=200), nullable=True),
        sa.Column("guardian_ids", sa.JSON(), nullable=False),
        sa.Column("enrollment_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_students_school_id"), "students", ["school_id"], unique=False)
    op.create_index(
        "ix_students_school_admission", "students", ["school_id", "admission_id"], unique=False
    )
    op.create_index(
        "ix_students_school_status", "students", ["school_id", "status"], unique=False
    )

    op.create_table(
        "guardians",
        *_tenant_columns(),
        sa.Column("first_name", sa.String(length=100), nullable=False),
        sa.Column("last_name", sa.String(length=100), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("phone", sa.String(length=30), nullable=True),
        sa.Column("relationship", sa.String(length=20), nullable=False),
        sa.Column("student_ids", sa.JSON(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("school_id", "email", name="uq_guardians_school_email"),
    )
    op.create_index(op.f("ix_guardians_school_id"), "guardians", ["school_id"], unique=False)


def downgrade() -> None:
    """Drop all admissions and student tables."""
    op.drop_index(op.f("ix_guardians_school_id"), table_name="guardians")
    op.drop_table("guardians")

    op.drop_index("ix_students_school_status", table_name="students")
    op.drop_index("ix_students_school_admission", table_name="students")
    op.drop_index(op.f("ix_students_school_id"), table_name="students")
    op.drop_table("students")

    op.drop_index(
        "ix_admission_guardian_emails_school_email", table_name="admission_guardian_emails"
    )
    op.drop_table("admission_guardian_emails")

    op.drop_index("ix_admissions_school_grade", table_name="admissions")
    op.drop_index("ix_admissions_school_status", table_name="admissions")
    op.drop_index(op.f("ix_admissions_school_id"), table_name="admissions")
    op.drop_table("admissions")
