"""Case cleanup task for scheduled execution.

Runs one retention sweep and logs its summary. Used by the
CaseCleanupScheduler on every cron fire and by the CLI --run-once mode.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pepper_cleanup.enums import CleanupTrigger
from pepper_cleanup.services.case_cleanup_service import CleanupAlreadyRunningError

if TYPE_CHECKING:
    from pepper_cleanup.models.domain import CleanupRunResult
    from pepper_cleanup.services.case_cleanup_service import CaseCleanupService

logger = logging.getLogger(__name__)


async def case_cleanup_task(
    cleanup_service: "CaseCleanupService",
    trigger: CleanupTrigger = CleanupTrigger.SCHEDULED,
) -> "CleanupRunResult | None":
    """Execute one case cleanup sweep.

    Args:
        cleanup_service: CaseCleanupService that performs the sweep.
        trigger: Source of this run.

    Returns:
        The run result, or None if another run was already in progress.

    Raises:
        CaseQueryError: If the case store could not be queried.
    """
    logger.info("Starting %s case cleanup", trigger.value)

    try:
        result = await cleanup_service.run_cleanup(trigger)
    except CleanupAlreadyRunningError:
        logger.info("Case cleanup already in progress, skipping %s run", trigger.value)
        return None
    except Exception as e:
        logger.error("Case cleanup task failed: %s", e)
        raise

    logger.info(
        "Case cleanup finished: %d cases deleted, %d errors",
        result.deleted,
        result.errors,
    )
    return result
