"""Business logic services."""

from .case_cleanup_service import (
    CaseCleanupService,
    CaseQueryError,
    CleanupAlreadyRunningError,
)
from .case_folder_service import CaseFolderService
from .retention_policy import RetentionPolicy

__all__ = [
    "CaseCleanupService",
    "CaseFolderService",
    "CaseQueryError",
    "CleanupAlreadyRunningError",
    "RetentionPolicy",
]
