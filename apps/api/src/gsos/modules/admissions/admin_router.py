"""
Admissions Admin Router

Staff endpoints for reviewing and deciding admission applications.
All endpoints require a staff token scoped to the school in the path
(super admins may act on any school).

Endpoints:
- GET /schools/{school_id}/admissions - List applications (filters, pagination)
- GET /schools/{school_id}/admissions/stats - Counts per status
- GET /schools/{school_id}/admissions/{id} - Application details
- POST /schools/{school_id}/admissions/{id}/transition - Change status
- POST /schools/{school_id}/admissions/{id}/assessment - Record assessment outcome
- POST /schools/{school_id}/admissions/{id}/convert - Convert to student
- DELETE /schools/{school_id}/admissions/{id} - Delete application

Security:
- Permission per endpoint (read / decide / assess / convert / manage)
- Rate limiting on action endpoints per staff user
- Audit logging for all staff actions
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from gsos.core.auth import CurrentUser, Permission, ensure_school_access, require_permission
from gsos.core.rate_limit import enforce_rate_limit
from gsos.modules.admissions.dependencies import (
    get_admission_lifecycle,
    internal_error,
    raise_http_error,
)
from gsos.modules.admissions.errors import AdmissionError
from gsos.modules.admissions.helpers import count_open, to_list_item
from gsos.modules.admissions.schemas import (
    Admission,
    AdmissionListResponse,
    AdmissionStats,
    AdmissionStatus,
    AssessmentRequest,
    StatusTransitionRequest,
)
from gsos.modules.admissions.service import AdmissionLifecycle
from gsos.modules.students.schemas import ConversionResponse

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================
# Rate Limiting Configuration
# ============================================

# Rate limits for staff action endpoints (prevent abuse)
RATE_LIMIT_TRANSITION = (30, 60)  # 30 status changes per minute
RATE_LIMIT_ASSESSMENT = (30, 60)  # 30 assessments per minute
RATE_LIMIT_CONVERT = (10, 60)  # 10 conversions per minute
RATE_LIMIT_DELETE = (10, 60)  # 10 deletions per minute


async def _check_staff_rate_limit(
    staff: CurrentUser,
    action: str,
    limit: int,
    window_seconds: int,
) -> None:
    """
    Check rate limit for a staff action.

    Raises:
        RateLimitExceeded: If rate limit is exceeded
    """
    await enforce_rate_limit(f"staff:{action}:{staff.id}", limit, window_seconds)


# ============================================
# Read Endpoints
# ============================================


@router.get(
    "",
    response_model=AdmissionListResponse,
    summary="List Applications",
    description="""
Get a paginated list of admission applications, newest first.

**Filters:**
- `status`: Filter by application status
- `applied_grade`: Filter by applied grade

**Pagination:**
- `skip`: Number of records to skip (default: 0)
- `limit`: Maximum records to return (default: 20, max: 100)
""",
)
async def list_admissions(
    school_id: str,
    status_filter: AdmissionStatus | None = Query(
        None, alias="status", description="Filter by application status"
    ),
    applied_grade: str | None = Query(None, max_length=50, description="Filter by applied grade"),
    skip: int = Query(0, ge=0, description="Records to skip"),
    limit: int = Query(20, ge=1, le=100, description="Maximum records to return"),
    staff: CurrentUser = Depends(require_permission(Permission.READ_ADMISSIONS)),
    lifecycle: AdmissionLifecycle = Depends(get_admission_lifecycle),
) -> AdmissionListResponse:
    """List applications for a school."""
    ensure_school_access(staff, school_id)

    try:
        admissions, total = await lifecycle.list_admissions(
            school_id,
            status=status_filter,
            applied_grade=applied_grade,
            skip=skip,
            limit=limit,
        )
        return AdmissionListResponse(
            admissions=[to_list_item(a) for a in admissions],
            total=total,
            skip=skip,
            limit=limit,
        )
    except AdmissionError as e:
        raise_http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        raise internal_error(e, "listing admissions") from e


@router.get(
    "/stats",
    response_model=AdmissionStats,
    summary="Admissions Statistics",
    description="Application counts for every status, plus totals.",
)
async def admission_stats(
    school_id: str,
    staff: CurrentUser = Depends(require_permission(Permission.READ_ADMISSIONS)),
    lifecycle: AdmissionLifecycle = Depends(get_admission_lifecycle),
) -> AdmissionStats:
    """Dashboard statistics."""
    ensure_school_access(staff, school_id)

    try:
        counts = await lifecycle.status_counts(school_id)
        return AdmissionStats(
            counts=counts,
            total=sum(counts.values()),
            open=count_open(counts),
        )
    except AdmissionError as e:
        raise_http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        raise internal_error(e, "getting admission stats") from e


@router.get(
    "/{admission_id}",
    response_model=Admission,
    summary="Get Application Details",
    description="Complete application including assessment, decision and status history.",
    responses={404: {"description": "Application not found"}},
)
async def get_admission(
    school_id: str,
    admission_id: str,
    staff: CurrentUser = Depends(require_permission(Permission.READ_ADMISSIONS)),
    lifecycle: AdmissionLifecycle = Depends(get_admission_lifecycle),
) -> Admission:
    """Get an application."""
    ensure_school_access(staff, school_id)

    try:
        return await lifecycle.get(school_id, admission_id)
    except AdmissionError as e:
        raise_http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        raise internal_error(e, "getting admission") from e


# ============================================
# Action Endpoints
# ============================================


@router.post(
    "/{admission_id}/transition",
    response_model=Admission,
    summary="Change Application Status",
    description="""
Move an application to a new status.

**Allowed transitions:**
- `submitted` → `pending`, `under_review`
- `pending` → `under_review`
- `under_review` → `interview_scheduled`, `assessment_scheduled`, `offer_made`, `rejected`
- `interview_scheduled` → `assessment_scheduled`, `offer_made`, `rejected`
- `assessment_scheduled` → `offer_made`, `rejected` (assessment must be recorded first)
- `offer_made` → `offer_accepted`, `offer_declined`
- `offer_accepted` → `converted_to_student` (performs the conversion)
- any non-terminal status → `withdrawn`

`offer_made`, `rejected` and `offer_declined` record the notes as the decision.
""",
    responses={
        404: {"description": "Application not found"},
        409: {"description": "Transition not allowed, or the application changed concurrently"},
    },
)
async def transition_admission(
    school_id: str,
    admission_id: str,
    data: StatusTransitionRequest,
    staff: CurrentUser = Depends(require_permission(Permission.DECIDE_ADMISSIONS)),
    lifecycle: AdmissionLifecycle = Depends(get_admission_lifecycle),
) -> Admission:
    """Change an application's status."""
    ensure_school_access(staff, school_id)
    await _check_staff_rate_limit(staff, "transition", *RATE_LIMIT_TRANSITION)

    if data.status == AdmissionStatus.CONVERTED_TO_STUDENT and not staff.has_permission(
        Permission.CONVERT_ADMISSIONS
    ):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "error": "PERMISSION_DENIED",
                "message": "Permission 'convert_admissions' is required for this transition.",
            },
        )

    try:
        admission = await lifecycle.transition(
            school_id,
            admission_id,
            data.status,
            actor_id=staff.id,
            notes=data.notes,
        )
        logger.info(f"Staff {staff.id} moved admission {admission_id} to {data.status.value}")
        return admission
    except AdmissionError as e:
        raise_http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        raise internal_error(e, "transitioning admission") from e


@router.post(
    "/{admission_id}/assessment",
    response_model=Admission,
    summary="Record Assessment",
    description="""
Record the entrance assessment outcome. Only allowed while the application
is `assessment_scheduled`. A score (0-100) or notes is required.
""",
    responses={
        404: {"description": "Application not found"},
        409: {"description": "Application is not awaiting assessment"},
        422: {"description": "Missing or out-of-range assessment"},
    },
)
async def record_assessment(
    school_id: str,
    admission_id: str,
    data: AssessmentRequest,
    staff: CurrentUser = Depends(require_permission(Permission.ASSESS_ADMISSIONS)),
    lifecycle: AdmissionLifecycle = Depends(get_admission_lifecycle),
) -> Admission:
    """Record an assessment outcome."""
    ensure_school_access(staff, school_id)
    await _check_staff_rate_limit(staff, "assessment", *RATE_LIMIT_ASSESSMENT)

    try:
        admission = await lifecycle.record_assessment(
            school_id,
            admission_id,
            score=data.score,
            notes=data.notes,
            actor_id=staff.id,
        )
        logger.info(f"Staff {staff.id} recorded assessment for admission {admission_id}")
        return admission
    except AdmissionError as e:
        raise_http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        raise internal_error(e, "recording assessment") from e


@router.post(
    "/{admission_id}/convert",
    response_model=ConversionResponse,
    summary="Convert to Student",
    description="""
Convert an application with an accepted offer into an enrolled student.

**Effects:**
- Creates the student record from the applicant details
- Links existing guardians (matched by email) or creates new ones
- Sets the application status to `converted_to_student`

Safe to retry after a storage failure. A second conversion of the same
application returns 409.
""",
    responses={
        404: {"description": "Application not found"},
        409: {"description": "Application is not offer_accepted or was already converted"},
        503: {"description": "Storage unavailable, retry"},
    },
)
async def convert_admission(
    school_id: str,
    admission_id: str,
    staff: CurrentUser = Depends(require_permission(Permission.CONVERT_ADMISSIONS)),
    lifecycle: AdmissionLifecycle = Depends(get_admission_lifecycle),
) -> ConversionResponse:
    """Convert an accepted application into a student."""
    ensure_school_access(staff, school_id)
    await _check_staff_rate_limit(staff, "convert", *RATE_LIMIT_CONVERT)

    try:
        result = await lifecycle.convert_to_student(school_id, admission_id, actor_id=staff.id)
        logger.info(
            f"Staff {staff.id} converted admission {admission_id} to student {result.student.id}"
        )
        return ConversionResponse(
            admission=result.admission,
            student=result.student,
            guardians=result.guardians,
        )
    except AdmissionError as e:
        raise_http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        raise internal_error(e, "converting admission") from e


@router.delete(
    "/{admission_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    summary="Delete Application",
    description="Permanently delete an application. Converted applications cannot be deleted.",
    responses={
        404: {"description": "Application not found"},
        409: {"description": "Application has been converted to a student"},
    },
)
async def delete_admission(
    school_id: str,
    admission_id: str,
    staff: CurrentUser = Depends(require_permission(Permission.MANAGE_ADMISSIONS)),
    lifecycle: AdmissionLifecycle = Depends(get_admission_lifecycle),
) -> Response:
    """Delete an application."""
    ensure_school_access(staff, school_id)
    await _check_staff_rate_limit(staff, "delete", *RATE_LIMIT_DELETE)

    try:
        await lifecycle.delete(school_id, admission_id, actor_id=staff.id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except AdmissionError as e:
        raise_http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        raise internal_error(e, "deleting admission") from e
