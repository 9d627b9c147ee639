"""
Students Router

Endpoints:
- GET /schools/{school_id}/students/{student_id} - Student record (staff)
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from gsos.core.auth import CurrentUser, Permission, ensure_school_access, require_permission
from gsos.core.database import get_db
from gsos.modules.admissions.dependencies import internal_error, raise_http_error
from gsos.modules.admissions.errors import AdmissionError
from gsos.modules.students import service
from gsos.modules.students.repository import SqlStudentStore, StudentStore
from gsos.modules.students.schemas import Student
from gsos.modules.students.service import StudentNotFoundError

logger = logging.getLogger(__name__)

router = APIRouter()


async def get_student_store(db: AsyncSession = Depends(get_db)) -> StudentStore:
    return SqlStudentStore(db)


@router.get(
    "/{student_id}",
    response_model=Student,
    summary="Get Student",
    responses={404: {"description": "Student not found"}},
)
async def get_student(
    school_id: str,
    student_id: str,
    staff: CurrentUser = Depends(require_permission(Permission.READ_STUDENT_DATA)),
    store: StudentStore = Depends(get_student_store),
) -> Student:
    """Get a student record."""
    ensure_school_access(staff, school_id)

    try:
        return await service.get_student(store, school_id, student_id)
    except StudentNotFoundError as e:
        logger.warning(f"Student not found: {student_id} (school {school_id})")
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": "STUDENT_NOT_FOUND", "message": str(e)},
        ) from e
    except AdmissionError as e:
        raise_http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        raise internal_error(e, "getting student") from e
