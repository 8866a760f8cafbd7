"""StrEnum definitions for type-safe constants."""

from enum import StrEnum


class CaseStatus(StrEnum):
    """Lifecycle status of a case record."""

    NEW = "new"
    REVIEW = "review"
    IN_PROGRESS = "in_progress"
    APPEALS = "appeals"
    PENDING_DECISION = "pending_decision"
    CLOSED = "closed"


class CaseRecordPolicy(StrEnum):
    """What the sweep does to a case record after its folder is removed."""

    KEEP = "keep"
    MARK_PURGED = "mark_purged"
    DELETE = "delete"


class CleanupTrigger(StrEnum):
    """Source that started a cleanup run."""

    SCHEDULED = "scheduled"
    MANUAL = "manual"
    CLI = "cli"


class FolderDeletionStatus(StrEnum):
    """Per-case outcome of a cleanup run."""

    DELETED = "deleted"
    ALREADY_ABSENT = "already_absent"
    FAILED = "failed"
