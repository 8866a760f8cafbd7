"""Case cleanup API endpoints.

Routers handle HTTP concerns only - no business logic.
All business logic is delegated to CaseCleanupService.
"""

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Awaitable, Callable

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from pepper_cleanup.enums import CleanupTrigger
from pepper_cleanup.models.base import JsonModel
from pepper_cleanup.models.domain import CleanupRunResult
from pepper_cleanup.services.case_cleanup_service import (
    CaseQueryError,
    CleanupAlreadyRunningError,
)

if TYPE_CHECKING:
    from pepper_cleanup.scheduler.case_cleanup_scheduler import CaseCleanupScheduler
    from pepper_cleanup.services.case_cleanup_service import CaseCleanupService

logger = logging.getLogger(__name__)


class CleanupResponse(JsonModel):
    """Response model for a manual cleanup run."""

    success: bool
    message: str
    deleted: int = 0
    errors: int = 0


class CleanupRunSummary(JsonModel):
    """Compact view of a finished run."""

    trigger: CleanupTrigger
    started_at: datetime
    finished_at: datetime
    duration_ms: int
    deleted: int
    skipped: int
    errors: int

    @classmethod
    def from_result(cls, result: CleanupRunResult) -> "CleanupRunSummary":
        return cls(
            trigger=result.trigger,
            started_at=result.started_at,
            finished_at=result.finished_at,
            duration_ms=result.duration_ms,
            deleted=result.deleted,
            skipped=result.skipped,
            errors=result.errors,
        )


class CleanupStatusResponse(JsonModel):
    """Scheduling state and last run of the cleanup service."""

    enabled: bool
    schedule_expression: str
    timezone: str
    retention_days: int
    running: bool
    next_run_at: datetime | None = None
    last_run: CleanupRunSummary | None = None


def create_case_cleanup_router(
    cleanup_service: "CaseCleanupService",
    auth_dependency: Callable[..., Awaitable[dict]],
    *,
    scheduler: "CaseCleanupScheduler | None" = None,
) -> APIRouter:
    """Create case cleanup router with injected service.

    Args:
        cleanup_service: CaseCleanupService instance for the sweep.
        auth_dependency: Dependency that rejects callers without a valid
            bearer token.
        scheduler: Optional scheduler, reported by the status endpoint.

    Returns:
        APIRouter with case cleanup endpoints configured
    """
    router = APIRouter(
        prefix="/api/case-cleanup",
        tags=["case-cleanup"],
        dependencies=[Depends(auth_dependency)],
    )

    @router.post("/manual", response_model=CleanupResponse)
    async def manual_cleanup():
        """Run one cleanup sweep now, across all users' closed cases.

        Returns:
            200 with the run summary, even when some cases failed.
            409 if a run is already in progress.
            500 if the run could not start.
        """
        try:
            result = await cleanup_service.run_cleanup(CleanupTrigger.MANUAL)
        except CleanupAlreadyRunningError as e:
            return JSONResponse(
                status_code=status.HTTP_409_CONFLICT,
                content=CleanupResponse(success=False, message=str(e)).to_dict(),
            )
        except CaseQueryError as e:
            logger.error("Manual cleanup error: %s", e)
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content=CleanupResponse(success=False, message=str(e)).to_dict(),
            )

        return CleanupResponse(
            success=True,
            message=result.message,
            deleted=result.deleted,
            errors=result.errors,
        )

    @router.get("/status", response_model=CleanupStatusResponse)
    async def cleanup_status() -> CleanupStatusResponse:
        """Report whether the sweep is scheduled, running, and how it last went."""
        config = cleanup_service.config
        last = cleanup_service.last_result
        return CleanupStatusResponse(
            enabled=bool(scheduler and scheduler.is_running),
            schedule_expression=config.schedule_expression,
            timezone=config.timezone,
            retention_days=config.retention_days,
            running=cleanup_service.is_running,
            next_run_at=scheduler.next_run_at if scheduler else None,
            last_run=CleanupRunSummary.from_result(last) if last else None,
        )

    return router
