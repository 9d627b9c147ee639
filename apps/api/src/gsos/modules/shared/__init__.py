"""
Shared Models

Common columns for tenant-scoped records.
"""

from datetime import datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from gsos.core.database import Base


class BaseModel(Base):
    """
    Abstract base for tenant records.

    Ids are string UUIDs assigned by the domain layer, and timestamps come
    from the service clock so that stored values equal the returned entity.
    """

    __abstract__ = True

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    school_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


__all__ = ["BaseModel"]
