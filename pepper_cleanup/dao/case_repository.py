"""Case store capability used by the cleanup sweep."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol, Sequence, runtime_checkable

from pepper_cleanup.models.domain import CaseRecord


@runtime_checkable
class CaseRepository(Protocol):
    """What the cleanup sweep needs from a case store.

    CaseDAO implements this against SQLAlchemy; tests and other stores
    can provide their own implementation.
    """

    async def find_closed_before(self, cutoff: datetime) -> Sequence[CaseRecord]:
        """Return closed cases whose updated_at is at or before cutoff."""
        ...

    async def mark_files_purged(self, record_id: str, purged_at: datetime) -> bool:
        """Stamp a record as having had its folder removed."""
        ...

    async def delete_record(self, record_id: str) -> bool:
        """Remove a record from the store."""
        ...

    async def find_by_owner(self, owner_id: str) -> Sequence[CaseRecord]:
        """Return every case of one owner, whatever its status."""
        ...
