"""
Admissions Dependencies

FastAPI dependencies wiring the lifecycle to its stores, plus the error
translation shared by the admissions routers.
"""

import logging
from functools import lru_cache
from typing import NoReturn

from fastapi import Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from gsos.core.blob_store import LocalBlobStore
from gsos.core.config import settings
from gsos.core.database import get_db
from gsos.modules.admissions.errors import AdmissionError
from gsos.modules.admissions.repository import SqlAdmissionStore
from gsos.modules.admissions.service import AdmissionLifecycle
from gsos.modules.students.repository import SqlStudentStore

logger = logging.getLogger(__name__)


@lru_cache
def get_blob_store() -> LocalBlobStore:
    return LocalBlobStore(settings.document_storage_path)


async def get_admission_lifecycle(db: AsyncSession = Depends(get_db)) -> AdmissionLifecycle:
    """Build a lifecycle bound to the request's database session."""
    return AdmissionLifecycle(
        admissions=SqlAdmissionStore(db),
        students=SqlStudentStore(db),
        blobs=get_blob_store(),
    )


def raise_http_error(e: AdmissionError) -> NoReturn:
    """Convert lifecycle errors to HTTPExceptions."""
    if e.status_code >= 500:
        logger.error(f"Admissions error {e.error_code}: {e.message}")
    else:
        logger.warning(f"Admissions request refused ({e.error_code}): {e.message}")
    raise HTTPException(status_code=e.status_code, detail=e.to_detail()) from e


def internal_error(e: Exception, action: str) -> HTTPException:
    logger.exception(f"Unexpected error {action}: {e}")
    return HTTPException(
        status_code=500,
        detail={
            "error": "INTERNAL_ERROR",
            "message": "An unexpected error occurred. Please try again later.",
        },
    )
