"""Retention policy evaluation for closed cases."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from pepper_cleanup.enums import CaseStatus
from pepper_cleanup.models.domain import CaseRecord

if TYPE_CHECKING:
    from pepper_cleanup.dao.case_repository import CaseRepository

logger = logging.getLogger(__name__)


def _as_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class RetentionPolicy:
    """Decide which case records are due for deletion.

    A case is eligible iff its status is closed and at least
    retention_days have passed since its updated_at. There is no
    dedicated closed_at, so any later update restarts the clock.
    """

    def __init__(self, retention_days: int) -> None:
        if retention_days < 0:
            raise ValueError("retention_days must be >= 0")
        self.retention_days = retention_days
        self.retention_period = timedelta(days=retention_days)

    def cutoff(self, now: datetime) -> datetime:
        """Latest updated_at that is still old enough to delete."""
        return _as_naive_utc(now) - self.retention_period

    def is_eligible(self, record: CaseRecord, now: datetime) -> bool:
        if record.status != CaseStatus.CLOSED:
            return False
        age = _as_naive_utc(now) - _as_naive_utc(record.updated_at)
        return age >= self.retention_period

    async def select_eligible(
        self,
        repository: "CaseRepository",
        now: datetime,
    ) -> list[CaseRecord]:
        """Query the store once and return the eligible snapshot.

        Records are re-checked locally so a store that over-matches
        cannot widen what gets deleted.
        """
        candidates = await repository.find_closed_before(self.cutoff(now))
        eligible = [r for r in candidates if self.is_eligible(r, now)]

        if len(eligible) != len(candidates):
            logger.warning(
                "Case store returned %d records, only %d are eligible",
                len(candidates),
                len(eligible),
            )
        return eligible
