"""Case data access operations."""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import delete, select, update

from pepper_cleanup.dao.base import BaseDAO
from pepper_cleanup.database import Database
from pepper_cleanup.enums import CaseStatus
from pepper_cleanup.models.domain import CaseRecord
from pepper_cleanup.models.orm import CaseModel


def _to_domain(model: CaseModel) -> CaseRecord:
    return CaseRecord(
        id=model.id,
        case_id=model.case_id,
        owner_id=model.owner_id,
        status=CaseStatus(model.status),
        created_at=model.created_at,
        updated_at=model.updated_at,
        files_purged_at=model.files_purged_at,
    )


class CaseDAO(BaseDAO[CaseRecord]):
    """Data access object for case records.

    Implements the CaseRepository capability used by the cleanup sweep.
    All methods return Pydantic CaseRecord models, never SQLAlchemy objects.
    """

    def __init__(self, database: Database, *, exclude_purged: bool = False):
        """Initialize the DAO.

        Args:
            database: Database instance for session management.
            exclude_purged: If true, find_closed_before skips records
                already stamped with files_purged_at.
        """
        super().__init__(database)
        self.exclude_purged = exclude_purged

    async def create(
        self,
        owner_id: str,
        case_id: str,
        status: CaseStatus = CaseStatus.NEW,
        updated_at: datetime | None = None,
    ) -> CaseRecord:
        """Create a new case record.

        Args:
            owner_id: Owning user identifier.
            case_id: Case identifier, unique per owner.
            status: Initial status.
            updated_at: Explicit last-transition time (defaults to now).

        Returns:
            Created CaseRecord domain model.
        """
        now = datetime.utcnow()
        async with self._session() as session:
            model = CaseModel(
                id=str(uuid4()),
                case_id=case_id,
                owner_id=owner_id,
                status=status.value,
                created_at=now,
                updated_at=updated_at or now,
            )
            session.add(model)
            await session.flush()
            return _to_domain(model)

    async def get(self, owner_id: str, case_id: str) -> CaseRecord | None:
        """Get a case by owner and case id.

        Returns:
            CaseRecord if found, None otherwise.
        """
        async with self._session() as session:
            result = await session.execute(
                select(CaseModel)
                .where(CaseModel.owner_id == owner_id)
                .where(CaseModel.case_id == case_id)
            )
            model = result.scalar_one_or_none()
            return _to_domain(model) if model is not None else None

    async def update_status(
        self,
        owner_id: str,
        case_id: str,
        status: CaseStatus,
    ) -> bool:
        """Transition a case to a new status and bump updated_at.

        Returns:
            True if the case was found and updated, False otherwise.
        """
        async with self._session() as session:
            result = await session.execute(
                update(CaseModel)
                .where(CaseModel.owner_id == owner_id)
                .where(CaseModel.case_id == case_id)
                .values(status=status.value, updated_at=datetime.utcnow())
            )
            return result.rowcount > 0

    async def find_closed_before(self, cutoff: datetime) -> list[CaseRecord]:
        """Get closed cases last updated at or before cutoff.

        Args:
            cutoff: Naive UTC timestamp; records with updated_at <= cutoff match.

        Returns:
            List of CaseRecord domain models, oldest first.
        """
        query = (
            select(CaseModel)
            .where(CaseModel.status == CaseStatus.CLOSED.value)
            .where(CaseModel.updated_at <= cutoff)
            .order_by(CaseModel.updated_at.asc())
        )
        if self.exclude_purged:
            query = query.where(CaseModel.files_purged_at.is_(None))

        async with self._session() as session:
            result = await session.execute(query)
            return [_to_domain(m) for m in result.scalars().all()]

    async def find_by_owner(self, owner_id: str) -> list[CaseRecord]:
        """Get all cases of one owner, in any status.

        The sweep uses this to find other cases whose sanitized folder
        name collides with the one it is about to delete.
        """
        async with self._session() as session:
            result = await session.execute(
                select(CaseModel)
                .where(CaseModel.owner_id == owner_id)
                .order_by(CaseModel.case_id.asc())
            )
            return [_to_domain(m) for m in result.scalars().all()]

    async def mark_files_purged(self, record_id: str, purged_at: datetime) -> bool:
        """Stamp files_purged_at without touching updated_at.

        Returns:
            True if the record was found, False otherwise.
        """
        async with self._session() as session:
            result = await session.execute(
                update(CaseModel)
                .where(CaseModel.id == record_id)
                .values(files_purged_at=purged_at)
            )
            return result.rowcount > 0

    async def delete_record(self, record_id: str) -> bool:
        """Delete a case record.

        Returns:
            True if a row was removed, False if it did not exist.
        """
        async with self._session() as session:
            result = await session.execute(
                delete(CaseModel).where(CaseModel.id == record_id)
            )
            return result.rowcount > 0
