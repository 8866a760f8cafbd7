"""Closed case cleanup business logic.

This service drives one end-to-end retention sweep: select the eligible
closed cases, delete each case folder, apply the record policy and
summarize the run. Data access is delegated to a CaseRepository and
filesystem work to CaseFolderService.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import TYPE_CHECKING, Callable

from pepper_cleanup.enums import (
    CaseRecordPolicy,
    CleanupTrigger,
    FolderDeletionStatus,
)
from pepper_cleanup.models.domain import (
    CaseCleanupDetail,
    CaseRecord,
    CleanupRunResult,
)
from pepper_cleanup.services.retention_policy import RetentionPolicy

if TYPE_CHECKING:
    from pathlib import Path

    from pepper_cleanup.config import CleanupConfig
    from pepper_cleanup.dao.case_repository import CaseRepository
    from pepper_cleanup.services.case_folder_service import CaseFolderService

logger = logging.getLogger(__name__)


class CaseQueryError(Exception):
    """Raised when eligible cases could not be read from the case store."""

    pass


class CleanupAlreadyRunningError(Exception):
    """Raised when a cleanup run is requested while another is in progress."""

    pass


class CaseCleanupService:
    """Closed case retention sweep.

    Runs are single-flight: a second request while a run is in progress
    is rejected with CleanupAlreadyRunningError instead of running
    concurrently. Cases within a run are processed sequentially.
    """

    def __init__(
        self,
        config: "CleanupConfig",
        repository: "CaseRepository",
        folder_service: "CaseFolderService",
        *,
        clock: Callable[[], datetime] = datetime.utcnow,
    ) -> None:
        """Initialize the cleanup service.

        Args:
            config: Application configuration (retention, policy, timeouts).
            repository: Case store used to find eligible cases.
            folder_service: Filesystem access for case folders.
            clock: Returns the current naive UTC time.
        """
        self.config = config
        self.repository = repository
        self.folder_service = folder_service
        self.policy = RetentionPolicy(config.retention_days)
        self._clock = clock
        self._lock = asyncio.Lock()
        self._last_result: CleanupRunResult | None = None

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    @property
    def last_result(self) -> CleanupRunResult | None:
        """Summary of the most recent completed run, if any."""
        return self._last_result

    async def run_cleanup(
        self,
        trigger: CleanupTrigger = CleanupTrigger.MANUAL,
    ) -> CleanupRunResult:
        """Run one cleanup sweep.

        Args:
            trigger: What started this run (for logs and the result).

        Returns:
            CleanupRunResult with counters and per-case details.

        Raises:
            CleanupAlreadyRunningError: If another run is in progress.
            CaseQueryError: If the case store could not be queried.
                Nothing is deleted in that case.
        """
        if self._lock.locked():
            raise CleanupAlreadyRunningError("Case cleanup is already running")

        async with self._lock:
            result = await self._run(trigger)
            self._last_result = result
            return result

    async def _run(self, trigger: CleanupTrigger) -> CleanupRunResult:
        started_at = self._clock()
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.config.run_timeout_seconds

        logger.info(
            "Starting cleanup of closed cases (trigger: %s, retention: %d days)",
            trigger.value,
            self.policy.retention_days,
        )

        try:
            eligible = await self.policy.select_eligible(self.repository, started_at)
        except Exception as e:
            logger.error("Cleanup aborted, could not query closed cases: %s", e)
            raise CaseQueryError(f"Failed to query closed cases: {e}") from e

        logger.info("Found %d closed case(s) past retention", len(eligible))

        details: list[CaseCleanupDetail] = []
        for record in eligible:
            remaining = deadline - loop.time()
            if remaining <= 0:
                details.append(
                    self._failed_detail(record, "run timeout exceeded")
                )
                continue

            timeout = min(self.config.case_timeout_seconds, remaining)
            details.append(await self._cleanup_case(record, started_at, timeout))

        result = CleanupRunResult(
            trigger=trigger,
            retention_days=self.policy.retention_days,
            started_at=started_at,
            finished_at=self._clock(),
            deleted=sum(
                1 for d in details if d.status == FolderDeletionStatus.DELETED
            ),
            skipped=sum(
                1 for d in details if d.status == FolderDeletionStatus.ALREADY_ABSENT
            ),
            errors=sum(
                1 for d in details if d.status == FolderDeletionStatus.FAILED
            ),
            details=details,
        )

        logger.info(
            "Cleanup complete: %d cases deleted, %d already absent, %d errors (%d ms)",
            result.deleted,
            result.skipped,
            result.errors,
            result.duration_ms,
        )
        return result

    async def _cleanup_case(
        self,
        record: CaseRecord,
        now: datetime,
        timeout: float,
    ) -> CaseCleanupDetail:
        """Delete one case folder and apply the record policy."""
        try:
            folder = self.folder_service.get_case_folder(
                record.owner_id, record.case_id
            )
        except ValueError as e:
            return self._failed_detail(record, str(e))

        try:
            sharer = await self._active_folder_sharer(record, folder, now)
        except Exception as e:
            return self._failed_detail(
                record, f"could not check shared folder: {e}", folder=str(folder)
            )
        if sharer is not None:
            return self._failed_detail(
                record,
                f"folder shared with active case {sharer.case_id}",
                folder=str(folder),
            )

        try:
            status = await asyncio.wait_for(
                asyncio.to_thread(
                    self.folder_service.delete_case_folder,
                    record.owner_id,
                    record.case_id,
                ),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            return self._failed_detail(
                record,
                f"folder deletion timed out after {timeout:.1f}s",
                folder=str(folder),
            )
        except OSError as e:
            return self._failed_detail(record, str(e), folder=str(folder))

        if status == FolderDeletionStatus.DELETED:
            logger.info(
                "Deleted case %s of user %s (closed %s)",
                record.case_id,
                record.owner_id,
                record.updated_at.isoformat(),
            )

        record_updated, error = await self._apply_record_policy(record)
        return CaseCleanupDetail(
            case_id=record.case_id,
            owner_id=record.owner_id,
            folder_path=str(folder),
            status=status,
            error=error,
            record_updated=record_updated,
        )

    async def _active_folder_sharer(
        self,
        record: CaseRecord,
        folder: Path,
        now: datetime,
    ) -> CaseRecord | None:
        """Find another case of the same owner that maps to this folder.

        Sanitization is lossy ("2024.001" and "2024_001" share a folder),
        so a folder is only removed when every case using it is eligible.
        """
        for other in await self.repository.find_by_owner(record.owner_id):
            if other.id == record.id or self.policy.is_eligible(other, now):
                continue
            try:
                other_folder = self.folder_service.get_case_folder(
                    other.owner_id, other.case_id
                )
            except ValueError:
                continue
            if other_folder == folder:
                return other
        return None

    async def _apply_record_policy(
        self,
        record: CaseRecord,
    ) -> tuple[bool, str | None]:
        """Apply the configured record policy after the folder is gone.

        Returns:
            (record_updated, error). Failures are logged, not raised;
            the folder is already removed and the store stays authoritative.
        """
        policy = self.config.case_record_policy
        if policy == CaseRecordPolicy.KEEP:
            return False, None

        try:
            if policy == CaseRecordPolicy.MARK_PURGED:
                updated = await self.repository.mark_files_purged(
                    record.id, self._clock()
                )
            else:
                updated = await self.repository.delete_record(record.id)
            return updated, None
        except Exception as e:
            logger.warning(
                "Folder removed but record policy '%s' failed for case %s: %s",
                policy.value,
                record.case_id,
                e,
            )
            return False, f"record policy '{policy.value}' failed: {e}"

    def _failed_detail(
        self,
        record: CaseRecord,
        error: str,
        *,
        folder: str = "",
    ) -> CaseCleanupDetail:
        logger.error(
            "Failed to delete case folder for %s of user %s (%s): %s",
            record.case_id,
            record.owner_id,
            folder or "<unresolved>",
            error,
        )
        return CaseCleanupDetail(
            case_id=record.case_id,
            owner_id=record.owner_id,
            folder_path=folder,
            status=FolderDeletionStatus.FAILED,
            error=error,
        )
