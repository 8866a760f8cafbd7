"""Pydantic domain models.

These models are returned by DAOs and used throughout the service layer.
SQLAlchemy ORM objects should never be exposed outside the DAO layer -
always convert to these models.
"""

from datetime import datetime

from pydantic import Field

from pepper_cleanup.enums import CaseStatus, CleanupTrigger, FolderDeletionStatus
from pepper_cleanup.models.base import JsonModel


class CaseRecord(JsonModel):
    """Case domain model.

    The cleanup service only reads these and, depending on the record
    policy, stamps or deletes them.
    """

    id: str
    case_id: str
    owner_id: str
    status: CaseStatus
    created_at: datetime
    updated_at: datetime
    files_purged_at: datetime | None = None


class CaseCleanupDetail(JsonModel):
    """Outcome for one eligible case within a cleanup run."""

    case_id: str
    owner_id: str
    folder_path: str
    status: FolderDeletionStatus
    error: str | None = None
    record_updated: bool = False

    @property
    def succeeded(self) -> bool:
        return self.status != FolderDeletionStatus.FAILED


class CleanupRunResult(JsonModel):
    """Summary of one sweep. Not persisted."""

    trigger: CleanupTrigger
    retention_days: int
    started_at: datetime
    finished_at: datetime
    deleted: int = 0
    skipped: int = 0
    errors: int = 0
    details: list[CaseCleanupDetail] = Field(default_factory=list)

    @property
    def duration_ms(self) -> int:
        return int((self.finished_at - self.started_at).total_seconds() * 1000)

    @property
    def message(self) -> str:
        return (
            f"Cleanup completed: {self.deleted} cases deleted, "
            f"{self.errors} errors"
        )
