"""
Admissions Schemas

Pydantic models for the admission entity, its sub-records, and the
request/response bodies of the admissions endpoints.
"""

import enum
from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator


class AdmissionStatus(str, enum.Enum):
    """Status of an admission application."""

    SUBMITTED = "submitted"
    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    INTERVIEW_SCHEDULED = "interview_scheduled"
    ASSESSMENT_SCHEDULED = "assessment_scheduled"
    OFFER_MADE = "offer_made"
    OFFER_ACCEPTED = "offer_accepted"
    OFFER_DECLINED = "offer_declined"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"
    CONVERTED_TO_STUDENT = "converted_to_student"


class Gender(str, enum.Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"
    PREFER_NOT_TO_SAY = "prefer_not_to_say"


class GuardianRelationship(str, enum.Enum):
    MOTHER = "mother"
    FATHER = "father"
    GUARDIAN = "guardian"
    OTHER = "other"


# ============================================
# Domain Models
# ============================================


class ApplicantInfo(BaseModel):
    """Facts about the prospective student captured at submission time."""

    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    first_name: str = Field(..., max_length=100)
    last_name: str = Field(..., max_length=100)
    date_of_birth: date
    gender: Gender
    nationality: str = Field(..., max_length=100)
    applied_grade: str = Field(..., max_length=50)
    applied_year_group: str | None = Field(None, max_length=50)
    preferred_start_date: date

    @model_validator(mode="before")
    @classmethod
    def default_year_group(cls, data):
        """Year group falls back to the applied grade."""
        if isinstance(data, dict) and not data.get("applied_year_group"):
            data = {**data, "applied_year_group": data.get("applied_grade")}
        return data

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class GuardianContact(BaseModel):
    """A guardian listed on an application."""

    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    first_name: str = Field(..., max_length=100)
    last_name: str = Field(..., max_length=100)
    relationship: GuardianRelationship
    email: EmailStr
    phone: str | None = Field(None, max_length=30)
    is_primary: bool = False

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class AdmissionDocument(BaseModel):
    """Reference to an uploaded supporting document."""

    type: str
    filename: str
    storage_key: str
    uploaded_at: datetime


class StatusChange(BaseModel):
    """Audit entry appended on every status change."""

    from_status: AdmissionStatus | None = None
    to_status: AdmissionStatus
    actor_id: str | None = None
    notes: str | None = None
    changed_at: datetime


class Admission(BaseModel):
    """
    An admission application and its review state.

    The applicant and guardian sections are a snapshot; they never change
    after submission. Mutations go through AdmissionLifecycle.
    """

    model_config = ConfigDict(from_attributes=True)

    id: str
    school_id: str
    application_number: str
    status: AdmissionStatus

    applicant: ApplicantInfo
    previous_school: str | None = None
    guardians: list[GuardianContact]
    documents: list[AdmissionDocument] = Field(default_factory=list)

    assessment_score: float | None = None
    assessment_notes: str | None = None

    decision_notes: str | None = None
    decision_by: str | None = None
    decision_date: datetime | None = None

    student_id: str | None = None
    status_history: list[StatusChange] = Field(default_factory=list)

    created_at: datetime
    updated_at: datetime

    def guardian_emails(self) -> set[str]:
        return {g.email.lower() for g in self.guardians}


# ============================================
# Request Schemas
# ============================================


class AdmissionCreate(BaseModel):
    """Request body for POST /schools/{school_id}/admissions."""

    applicant: ApplicantInfo
    guardians: list[GuardianContact]
    previous_school: str | None = Field(None, max_length=200)


class StatusTransitionRequest(BaseModel):
    """Move an application to a new status."""

    status: AdmissionStatus = Field(..., description="Target status")
    notes: str | None = Field(
        None,
        max_length=2000,
        description="Decision or review notes (stored as decision notes for decision states)",
    )


class WithdrawRequest(BaseModel):
    notes: str | None = Field(None, max_length=2000)


class AssessmentRequest(BaseModel):
    """Record an assessment outcome."""

    score: float | None = Field(None, description="Score between 0 and 100")
    notes: str | None = Field(None, max_length=5000)


class DocumentCreate(BaseModel):
    """Attach an already uploaded document to an application."""

    type: str = Field(
        ...,
        min_length=1,
        max_length=50,
        json_schema_extra={"example": "birth_certificate"},
    )
    filename: str = Field(..., min_length=1, max_length=255)
    storage_key: str = Field(..., min_length=1, max_length=500)


# ============================================
# Response Schemas
# ============================================


class AdmissionSubmittedResponse(BaseModel):
    """Response after submitting an application."""

    id: str
    application_number: str
    status: AdmissionStatus
    message: str = (
        "Application submitted. Keep your application number to track its progress."
    )


class StatusStep(BaseModel):
    """A single step in the application progress."""

    name: str
    completed: bool
    completed_at: datetime | None = None


class AdmissionTrackingResponse(BaseModel):
    """Guardian-facing view of an application's progress."""

    id: str
    application_number: str
    applicant_name: str
    applied_grade: str
    status: AdmissionStatus
    status_label: str
    status_description: str
    document_count: int
    submitted_at: datetime
    updated_at: datetime
    steps: list[StatusStep]


class AdmissionListItem(BaseModel):
    """Application summary for the staff list view."""

    id: str
    application_number: str
    status: AdmissionStatus
    applicant_name: str
    applied_grade: str
    primary_guardian_email: str | None = None
    created_at: datetime
    updated_at: datetime


class AdmissionListResponse(BaseModel):
    """Paginated list of applications."""

    admissions: list[AdmissionListItem]
    total: int = Field(..., ge=0, description="Total number of applications matching filters")
    skip: int = Field(..., ge=0)
    limit: int = Field(..., ge=1, le=100)


class AdmissionStats(BaseModel):
    """Application counts per status for the admissions dashboard."""

    counts: dict[AdmissionStatus, int]
    total: int = Field(..., ge=0)
    open: int = Field(..., ge=0, description="Applications not yet in a terminal status")
