"""
Admissions Router

Public and guardian endpoints for student admission applications.

Endpoints:
- POST /schools/{school_id}/admissions - Submit an application (public)
- GET /schools/{school_id}/admissions/track/{application_number} - Track status (public)
- GET /schools/{school_id}/admissions/mine - Guardian's own applications
- POST /schools/{school_id}/admissions/{id}/documents - Attach a document
- POST /schools/{school_id}/admissions/{id}/withdraw - Withdraw an application

Security:
- Public endpoints are rate limited per client IP
- Tracking requires an email matching one of the application's guardians
- Guardians can only act on applications listing their email
- Staff may use the document and withdraw endpoints for their own school
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import EmailStr

from gsos.core.auth import (
    CurrentUser,
    Permission,
    UserRole,
    ensure_school_access,
    get_current_user,
)
from gsos.core.config import settings
from gsos.core.rate_limit import client_ip, enforce_rate_limit
from gsos.modules.admissions.dependencies import (
    get_admission_lifecycle,
    internal_error,
    raise_http_error,
)
from gsos.modules.admissions.errors import AdmissionError
from gsos.modules.admissions.helpers import to_tracking_response
from gsos.modules.admissions.schemas import (
    AdmissionCreate,
    AdmissionSubmittedResponse,
    AdmissionTrackingResponse,
    DocumentCreate,
    WithdrawRequest,
)
from gsos.modules.admissions.service import AdmissionLifecycle

logger = logging.getLogger(__name__)

router = APIRouter()

# Status lookups per client IP
RATE_LIMIT_TRACK = (30, 60)


async def _authorize_applicant_action(
    lifecycle: AdmissionLifecycle,
    user: CurrentUser,
    school_id: str,
    admission_id: str,
    staff_permission: Permission | None = None,
) -> None:
    """
    Allow staff of the school (optionally with a permission) or a guardian on the application.

    Raises:
        HTTPException 403: If the caller may not act on this application
        HTTPException 404: If the application doesn't exist (guardian callers)
    """
    if user.is_staff:
        ensure_school_access(user, school_id)
        if staff_permission and not user.has_permission(staff_permission):
            logger.warning(f"Access denied: {user} lacks permission '{staff_permission.value}'")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={
                    "error": "PERMISSION_DENIED",
                    "message": f"Permission '{staff_permission.value}' is required for this action.",
                },
            )
        return

    try:
        await lifecycle.get_for_guardian(school_id, admission_id, user.email)
    except AdmissionError as e:
        raise_http_error(e)


@router.post(
    "",
    response_model=AdmissionSubmittedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit Admission Application",
    description="""
Submit a new admission application for a prospective student.

**Requirements:**
- At least one guardian, exactly one marked `is_primary`
- Guardian emails must be distinct
- Date of birth must be in the past

The primary guardian receives an email with the application number,
which can be used with their email address to track the application.
""",
    responses={
        201: {"description": "Application created", "model": AdmissionSubmittedResponse},
        422: {
            "description": "Validation error",
            "content": {
                "application/json": {
                    "example": {
                        "detail": {
                            "error": "VALIDATION_ERROR",
                            "message": "Application is invalid: exactly one primary guardian is required (found 0)",
                            "problems": ["exactly one primary guardian is required (found 0)"],
                        }
                    }
                }
            },
        },
        429: {"description": "Too many submissions from this address"},
    },
)
async def submit_admission(
    school_id: str,
    data: AdmissionCreate,
    request: Request,
    lifecycle: AdmissionLifecycle = Depends(get_admission_lifecycle),
) -> AdmissionSubmittedResponse:
    """Submit a new admission application."""
    await enforce_rate_limit(
        f"admissions:submit:{client_ip(request)}",
        settings.submission_rate_limit,
        settings.submission_rate_window_seconds,
    )

    try:
        admission = await lifecycle.submit(
            school_id,
            data.applicant,
            data.guardians,
            previous_school=data.previous_school,
        )
        logger.info(f"Admission submitted: id={admission.id}, school={school_id}")
        return AdmissionSubmittedResponse(
            id=admission.id,
            application_number=admission.application_number,
            status=admission.status,
        )
    except AdmissionError as e:
        raise_http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        raise internal_error(e, "submitting admission") from e


@router.get(
    "/track/{application_number}",
    response_model=AdmissionTrackingResponse,
    summary="Track Application Status",
    description="""
Check the progress of an application using its application number.

The email must belong to one of the guardians listed on the application.
""",
    responses={
        403: {"description": "Email does not match a guardian"},
        404: {"description": "Application not found"},
        429: {"description": "Too many lookups from this address"},
    },
)
async def track_admission(
    school_id: str,
    application_number: str,
    request: Request,
    email: EmailStr = Query(..., description="Guardian email address"),
    lifecycle: AdmissionLifecycle = Depends(get_admission_lifecycle),
) -> AdmissionTrackingResponse:
    """Track an application by number and guardian email."""
    await enforce_rate_limit(f"admissions:track:{client_ip(request)}", *RATE_LIMIT_TRACK)

    try:
        admission = await lifecycle.track(school_id, application_number, email)
        return to_tracking_response(admission)
    except AdmissionError as e:
        raise_http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        raise internal_error(e, "tracking admission") from e


@router.get(
    "/mine",
    response_model=list[AdmissionTrackingResponse],
    summary="List My Applications",
    description="Applications in this school that list the signed-in guardian's email.",
)
async def list_my_admissions(
    school_id: str,
    user: CurrentUser = Depends(get_current_user),
    lifecycle: AdmissionLifecycle = Depends(get_admission_lifecycle),
) -> list[AdmissionTrackingResponse]:
    """Guardian portal view."""
    if user.role != UserRole.PARENT:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "error": "GUARDIAN_ACCESS_REQUIRED",
                "message": "This endpoint is only available to guardians.",
            },
        )

    try:
        admissions = await lifecycle.list_for_guardian(school_id, user.email)
        return [to_tracking_response(a) for a in admissions]
    except AdmissionError as e:
        raise_http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        raise internal_error(e, "listing guardian admissions") from e


@router.post(
    "/{admission_id}/documents",
    response_model=AdmissionTrackingResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Attach Document",
    description="""
Attach an uploaded document (e.g. birth certificate, school report) to an open application.

**Requirements:**
- Application is not in a terminal status
- File extension is one of the allowed document types
- `storage_key` lives under `admissions/{school_id}/{admission_id}/` and exists in storage
""",
    responses={
        403: {"description": "Not a guardian on this application or staff of this school"},
        404: {"description": "Application not found"},
        409: {"description": "Application is closed"},
        422: {"description": "Invalid document"},
    },
)
async def add_admission_document(
    school_id: str,
    admission_id: str,
    data: DocumentCreate,
    user: CurrentUser = Depends(get_current_user),
    lifecycle: AdmissionLifecycle = Depends(get_admission_lifecycle),
) -> AdmissionTrackingResponse:
    """Attach a document to an application."""
    await _authorize_applicant_action(lifecycle, user, school_id, admission_id)

    try:
        admission = await lifecycle.add_document(
            school_id,
            admission_id,
            data.type,
            data.filename,
            data.storage_key,
        )
        logger.info(f"{user} attached a document to admission {admission_id}")
        return to_tracking_response(admission)
    except AdmissionError as e:
        raise_http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        raise internal_error(e, "adding admission document") from e


@router.post(
    "/{admission_id}/withdraw",
    response_model=AdmissionTrackingResponse,
    summary="Withdraw Application",
    description="Withdraw an application that is not yet in a terminal status.",
    responses={
        403: {"description": "Not a guardian on this application or staff with decide permission"},
        404: {"description": "Application not found"},
        409: {"description": "Application is already closed"},
    },
)
async def withdraw_admission(
    school_id: str,
    admission_id: str,
    data: WithdrawRequest | None = None,
    user: CurrentUser = Depends(get_current_user),
    lifecycle: AdmissionLifecycle = Depends(get_admission_lifecycle),
) -> AdmissionTrackingResponse:
    """Withdraw an application."""
    await _authorize_applicant_action(
        lifecycle, user, school_id, admission_id, staff_permission=Permission.DECIDE_ADMISSIONS
    )

    try:
        admission = await lifecycle.withdraw(
            school_id,
            admission_id,
            actor_id=user.id,
            notes=data.notes if data else None,
        )
        logger.info(f"{user} withdrew admission {admission_id}")
        return to_tracking_response(admission)
    except AdmissionError as e:
        raise_http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        raise internal_error(e, "withdrawing admission") from e
