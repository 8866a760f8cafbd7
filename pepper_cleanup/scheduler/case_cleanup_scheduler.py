"""Cron-driven scheduler for the closed case cleanup sweep.

The scheduler owns a single background task. It is built once at
process start from CleanupConfig and stopped explicitly on shutdown;
there is no module-level timer state.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from croniter import croniter

from pepper_cleanup.enums import CleanupTrigger

if TYPE_CHECKING:
    from pepper_cleanup.config import CleanupConfig
    from pepper_cleanup.services.case_cleanup_service import CaseCleanupService

logger = logging.getLogger(__name__)


class CronExpressionError(Exception):
    """Raised when a cron expression is invalid."""

    pass


def validate_cron_expression(expression: str) -> str:
    """Validate a standard 5-field cron expression.

    Args:
        expression: Cron expression (minute hour day month weekday).

    Returns:
        The stripped expression.

    Raises:
        CronExpressionError: If the expression is invalid.
    """
    if not expression or not expression.strip():
        raise CronExpressionError(
            "Invalid cron expression: expression cannot be empty"
        )

    expression = expression.strip()
    fields = expression.split()
    if len(fields) != 5:
        raise CronExpressionError(
            f"Invalid cron expression: expected 5 fields "
            f"(minute hour day month weekday), got {len(fields)}"
        )

    try:
        croniter(expression)
    except (ValueError, KeyError) as e:
        raise CronExpressionError(f"Invalid cron expression: {e}") from e

    return expression


class CaseCleanupScheduler:
    """Fire the case cleanup sweep on a cron schedule.

    The cron expression is evaluated in the configured timezone. Only
    when the sweep fires depends on it; the sweep's own date math uses
    UTC deltas against updated_at.
    """

    STOP_TIMEOUT_SECONDS = 10.0

    def __init__(
        self,
        config: "CleanupConfig",
        cleanup_service: "CaseCleanupService",
    ) -> None:
        """Initialize the scheduler.

        Args:
            config: Application configuration (schedule, timezone, switch).
            cleanup_service: Service that performs each sweep.
        """
        self.config = config
        self.cleanup_service = cleanup_service
        self._running = False
        self._task: asyncio.Task | None = None
        self._stop_event = asyncio.Event()
        self._expression: str | None = None
        self._tz: ZoneInfo | None = None
        self._next_run_at: datetime | None = None

    async def start(self) -> None:
        """Start the schedule loop.

        Does nothing if scheduling is disabled or misconfigured; an
        invalid cron expression or timezone is logged, not raised, and
        manual triggers keep working.
        """
        if self._running:
            logger.warning("CaseCleanupScheduler is already running")
            return

        if not self.config.scheduling_enabled:
            logger.info(
                "Automatic case cleanup is disabled. "
                "Use manual endpoint: POST /api/case-cleanup/manual"
            )
            return

        try:
            self._expression = validate_cron_expression(
                self.config.schedule_expression
            )
            self._tz = ZoneInfo(self.config.timezone)
        except CronExpressionError as e:
            logger.warning(
                "Invalid schedule_expression %r: %s. Automatic cleanup disabled.",
                self.config.schedule_expression,
                e,
            )
            return
        except (ZoneInfoNotFoundError, ValueError, OSError) as e:
            logger.warning(
                "Invalid timezone %r: %s. Automatic cleanup disabled.",
                self.config.timezone,
                e,
            )
            return

        self._running = True
        self._stop_event.clear()
        self._task = asyncio.create_task(self._run_schedule_loop())

        logger.info(
            "Automatic case cleanup scheduled: %s (%s)",
            self._expression,
            self.config.timezone,
        )

    async def stop(self) -> None:
        """Stop the scheduler gracefully."""
        if not self._running:
            logger.debug("CaseCleanupScheduler is not running")
            return

        logger.info("Stopping CaseCleanupScheduler...")
        self._running = False
        self._stop_event.set()

        if self._task:
            try:
                await asyncio.wait_for(self._task, timeout=self.STOP_TIMEOUT_SECONDS)
            except asyncio.TimeoutError:
                logger.warning(
                    "Case cleanup run did not stop gracefully, cancelling"
                )
                self._task.cancel()
                try:
                    await self._task
                except asyncio.CancelledError:
                    pass
            except asyncio.CancelledError:
                pass
            finally:
                self._task = None

        self._next_run_at = None
        logger.info("CaseCleanupScheduler stopped")

    def _seconds_until_next_run(self) -> float:
        """Compute the next fire time and return the wait in seconds.

        The wait is measured on the loop's monotonic clock, so it can end
        slightly before the wall clock reaches the fire time. Counting
        from the previous fire time keeps that fire from repeating.
        """
        now = datetime.now(self._tz)
        start = now
        if self._next_run_at is not None and self._next_run_at > now:
            start = self._next_run_at
        self._next_run_at = croniter(self._expression, start).get_next(datetime)
        return max(0.0, (self._next_run_at - now).total_seconds())

    async def _run_schedule_loop(self) -> None:
        """Wait for each cron fire, then run one sweep."""
        logger.info("Case cleanup schedule loop started")

        while self._running:
            delay = self._seconds_until_next_run()
            logger.debug("Next case cleanup at %s", self._next_run_at)

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
                # Stop was signaled
                break
            except asyncio.TimeoutError:
                pass

            await self._execute_cleanup()

        logger.info("Case cleanup schedule loop ended")

    async def _execute_cleanup(self) -> None:
        """Run the cleanup task; failures never end the loop."""
        from pepper_cleanup.scheduler.case_cleanup_task import case_cleanup_task

        try:
            await case_cleanup_task(
                self.cleanup_service,
                trigger=CleanupTrigger.SCHEDULED,
            )
        except Exception as e:
            logger.exception("Error during scheduled case cleanup: %s", e)

    @property
    def is_enabled(self) -> bool:
        """Whether config asks for automatic sweeps at all."""
        return self.config.scheduling_enabled

    @property
    def is_running(self) -> bool:
        """Check if the schedule loop is active."""
        return self._running

    @property
    def next_run_at(self) -> datetime | None:
        """Next fire time in the configured timezone, if scheduled."""
        return self._next_run_at
