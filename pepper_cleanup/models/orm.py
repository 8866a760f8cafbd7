"""SQLAlchemy ORM models.

These models define the database schema. DAOs convert these to Pydantic
domain models before returning to services - SQLAlchemy objects should
never leak outside the DAO layer.
"""

from datetime import datetime

from sqlalchemy import Column, DateTime, Index, String, UniqueConstraint

from pepper_cleanup.database import Base
from pepper_cleanup.enums import CaseStatus


class CaseModel(Base):
    """Case ORM model.

    One row per case per owning user. updated_at marks the most recent
    status transition and anchors the retention window.
    """

    __tablename__ = "cases"

    id = Column(String, primary_key=True)
    case_id = Column(String, nullable=False)
    owner_id = Column(String, nullable=False, index=True)
    status = Column(
        String,
        nullable=False,
        default=CaseStatus.NEW.value,
    )
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    # Set by the mark_purged record policy; never bumps updated_at
    files_purged_at = Column(DateTime, nullable=True)

    __table_args__ = (
        UniqueConstraint("owner_id", "case_id", name="uq_cases_owner_case"),
        Index("ix_cases_status_updated_at", "status", "updated_at"),
    )
