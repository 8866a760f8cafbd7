"""Scheduler module for background task execution.

This module provides the CaseCleanupScheduler that fires the retention
sweep on a cron schedule, and the case cleanup task it executes.
"""

from pepper_cleanup.scheduler.case_cleanup_scheduler import (
    CaseCleanupScheduler,
    CronExpressionError,
    validate_cron_expression,
)
from pepper_cleanup.scheduler.case_cleanup_task import case_cleanup_task

__all__ = [
    "CaseCleanupScheduler",
    "CronExpressionError",
    "case_cleanup_task",
    "validate_cron_expression",
]
