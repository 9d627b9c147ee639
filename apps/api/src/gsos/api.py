from fastapi import APIRouter

from gsos.modules.admissions.admin_router import router as admin_admissions_router
from gsos.modules.admissions.router import router as admissions_router
from gsos.modules.students.router import router as students_router

api_router = APIRouter()

# Public routes first so /mine and /track are not captured by /{admission_id}
api_router.include_router(
    admissions_router,
    prefix="/schools/{school_id}/admissions",
    tags=["Admissions"],
)

api_router.include_router(
    admin_admissions_router,
    prefix="/schools/{school_id}/admissions",
    tags=["Staff - Admissions"],
)

api_router.include_router(
    students_router,
    prefix="/schools/{school_id}/students",
    tags=["Staff - Students"],
)
