"""
Student Schemas

Pydantic models for students and their guardians.
"""

import enum
from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field

from gsos.modules.admissions.schemas import Admission, Gender, GuardianRelationship


class StudentStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    GRADUATED = "graduated"
    WITHDRAWN = "withdrawn"


class Student(BaseModel):
    """An enrolled student."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    school_id: str
    admission_id: str | None = Field(None, description="Application the student was enrolled from")

    first_name: str
    last_name: str
    date_of_birth: date
    gender: Gender
    nationality: str

    grade: str
    year_group: str
    previous_school: str | None = None

    guardian_ids: list[str] = Field(default_factory=list)
    enrollment_date: date
    status: StudentStatus = StudentStatus.ACTIVE

    created_at: datetime
    updated_at: datetime


class Guardian(BaseModel):
    """A parent or legal guardian, possibly shared by several students."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    school_id: str
    first_name: str
    last_name: str
    email: str = Field(..., description="Lower-cased; unique per school")
    phone: str | None = None
    relationship: GuardianRelationship
    student_ids: list[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class ConversionResponse(BaseModel):
    """Response for POST /admissions/{id}/convert."""

    admission: Admission
    student: Student
    guardians: list[Guardian]
    message: str = "Application converted. The applicant is now an enrolled student."
