"""Unit tests for CaseCleanupService.

Runs full sweeps against an in-memory case store and a temporary
cases directory, with a fixed clock.
"""

import asyncio
import time
from datetime import datetime, timedelta
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from pepper_cleanup.config import CleanupConfig
from pepper_cleanup.dao import CaseDAO
from pepper_cleanup.database import Database
from pepper_cleanup.enums import (
    CaseRecordPolicy,
    CaseStatus,
    CleanupTrigger,
    FolderDeletionStatus,
)
from pepper_cleanup.models import CaseRecord
from pepper_cleanup.services import (
    CaseCleanupService,
    CaseFolderService,
    CaseQueryError,
    CleanupAlreadyRunningError,
)

NOW = datetime(2026, 10, 17, 12, 0, 0)


def days_ago(days: float) -> datetime:
    return NOW - timedelta(days=days)


@pytest_asyncio.fixture
async def test_db():
    """Create a fresh in-memory database for each test."""
    db = Database("sqlite+aiosqlite:///:memory:")
    await db.init_db()
    yield db
    await db.close()


@pytest.fixture
def make_config(tmp_path):
    def _make(**overrides) -> CleanupConfig:
        values = {
            "jwt_secret": "test-secret",
            "cases_base_dir": str(tmp_path / "cases"),
            "retention_days": 90,
        }
        values.update(overrides)
        return CleanupConfig(**values)

    return _make


@pytest.fixture
def config(make_config) -> CleanupConfig:
    return make_config()


@pytest.fixture
def folder_service(config: CleanupConfig) -> CaseFolderService:
    return CaseFolderService(config)


@pytest_asyncio.fixture
async def case_dao(test_db: Database) -> CaseDAO:
    return CaseDAO(test_db)


def build_service(config, repository, folder_service) -> CaseCleanupService:
    return CaseCleanupService(
        config=config,
        repository=repository,
        folder_service=folder_service,
        clock=lambda: NOW,
    )


@pytest.fixture
def cleanup_service(config, case_dao, folder_service) -> CaseCleanupService:
    return build_service(config, case_dao, folder_service)


async def seed_case(
    case_dao: CaseDAO,
    folder_service: CaseFolderService,
    owner_id: str,
    case_id: str,
    status: CaseStatus,
    updated_at: datetime,
    *,
    with_folder: bool = True,
) -> CaseRecord:
    record = await case_dao.create(owner_id, case_id, status, updated_at=updated_at)
    if with_folder:
        folder_service.save_file(owner_id, case_id, "case.json", '{"caseId": "%s"}' % case_id)
        folder_service.save_file(owner_id, case_id, "appeal.docx", b"PK\x03\x04")
    return record


class TestCleanupScenarios:
    @pytest.mark.asyncio
    async def test_deletes_old_closed_case(self, cleanup_service, case_dao, folder_service):
        await seed_case(case_dao, folder_service, "u1", "c1", CaseStatus.CLOSED, days_ago(100))

        result = await cleanup_service.run_cleanup()

        assert result.deleted == 1
        assert result.errors == 0
        assert result.trigger == CleanupTrigger.MANUAL
        assert result.message == "Cleanup completed: 1 cases deleted, 0 errors"
        assert not folder_service.get_case_folder("u1", "c1").exists()
        # Default record policy keeps the row for audit history
        record = await case_dao.get("u1", "c1")
        assert record is not None
        assert record.status == CaseStatus.CLOSED

    @pytest.mark.asyncio
    async def test_recent_closed_case_kept(self, cleanup_service, case_dao, folder_service):
        await seed_case(case_dao, folder_service, "u1", "c1", CaseStatus.CLOSED, days_ago(30))

        result = await cleanup_service.run_cleanup()

        assert result.deleted == 0
        assert result.errors == 0
        assert result.details == []
        assert folder_service.get_case_folder("u1", "c1").is_dir()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status",
        [
            CaseStatus.NEW,
            CaseStatus.REVIEW,
            CaseStatus.IN_PROGRESS,
            CaseStatus.APPEALS,
            CaseStatus.PENDING_DECISION,
        ],
    )
    async def test_open_cases_never_deleted(
        self, cleanup_service, case_dao, folder_service, status
    ):
        await seed_case(case_dao, folder_service, "u1", "c1", status, days_ago(500))

        result = await cleanup_service.run_cleanup()

        assert result.deleted == 0
        assert folder_service.get_case_folder("u1", "c1").is_dir()

    @pytest.mark.asyncio
    async def test_missing_folder_is_not_an_error(self, cleanup_service, case_dao, folder_service):
        await seed_case(
            case_dao, folder_service, "u1", "c1", CaseStatus.CLOSED, days_ago(120),
            with_folder=False,
        )

        result = await cleanup_service.run_cleanup()

        assert result.errors == 0
        assert result.deleted == 0
        assert result.skipped == 1
        assert result.details[0].status == FolderDeletionStatus.ALREADY_ABSENT
        assert result.details[0].succeeded

    @pytest.mark.asyncio
    async def test_mixed_cases_across_users(self, cleanup_service, case_dao, folder_service):
        await seed_case(case_dao, folder_service, "u1", "old", CaseStatus.CLOSED, days_ago(100))
        await seed_case(case_dao, folder_service, "u2", "old", CaseStatus.CLOSED, days_ago(200))
        await seed_case(case_dao, folder_service, "u1", "recent", CaseStatus.CLOSED, days_ago(5))
        await seed_case(case_dao, folder_service, "u2", "open", CaseStatus.APPEALS, days_ago(400))

        result = await cleanup_service.run_cleanup()

        assert result.deleted == 2
        assert not folder_service.get_case_folder("u1", "old").exists()
        assert not folder_service.get_case_folder("u2", "old").exists()
        assert folder_service.get_case_folder("u1", "recent").is_dir()
        assert folder_service.get_case_folder("u2", "open").is_dir()
        # Oldest first
        assert [d.owner_id for d in result.details] == ["u2", "u1"]

    @pytest.mark.asyncio
    async def test_partial_failure_continues(
        self, cleanup_service, case_dao, folder_service, monkeypatch
    ):
        await seed_case(case_dao, folder_service, "u1", "c-fail", CaseStatus.CLOSED, days_ago(150))
        await seed_case(case_dao, folder_service, "u1", "c-ok", CaseStatus.CLOSED, days_ago(100))

        real_delete = folder_service.delete_case_folder

        def flaky_delete(owner_id, case_id):
            if case_id == "c-fail":
                raise PermissionError(13, "Permission denied", case_id)
            return real_delete(owner_id, case_id)

        monkeypatch.setattr(folder_service, "delete_case_folder", flaky_delete)

        result = await cleanup_service.run_cleanup()

        assert result.deleted == 1
        assert result.errors == 1
        assert result.message == "Cleanup completed: 1 cases deleted, 1 errors"
        failed = result.details[0]
        assert failed.case_id == "c-fail"
        assert failed.status == FolderDeletionStatus.FAILED
        assert "Permission denied" in failed.error
        assert folder_service.get_case_folder("u1", "c-fail").is_dir()
        assert not folder_service.get_case_folder("u1", "c-ok").exists()

    @pytest.mark.asyncio
    async def test_folder_shared_with_open_case_is_kept(
        self, cleanup_service, case_dao, folder_service
    ):
        # Both ids sanitize to the same folder name
        await case_dao.create("u1", "2024.001", CaseStatus.CLOSED, updated_at=days_ago(200))
        await seed_case(
            case_dao, folder_service, "u1", "2024_001", CaseStatus.IN_PROGRESS,
            days_ago(1), with_folder=False,
        )
        folder_service.save_file("u1", "2024_001", "evidence.pdf", b"%PDF-1.7")

        result = await cleanup_service.run_cleanup()

        assert folder_service.list_case_files("u1", "2024_001") != []
        assert result.deleted == 0
        assert result.errors == 1
        detail = result.details[0]
        assert detail.case_id == "2024.001"
        assert detail.status == FolderDeletionStatus.FAILED
        assert detail.error == "folder shared with active case 2024_001"

    @pytest.mark.asyncio
    async def test_folder_shared_by_eligible_cases_is_deleted(
        self, cleanup_service, case_dao, folder_service
    ):
        await seed_case(case_dao, folder_service, "u1", "2024.001", CaseStatus.CLOSED, days_ago(200))
        await case_dao.create("u1", "2024_001", CaseStatus.CLOSED, updated_at=days_ago(100))
        # Same case id for another owner is a different folder
        await seed_case(case_dao, folder_service, "u2", "2024_001", CaseStatus.REVIEW, days_ago(1))

        result = await cleanup_service.run_cleanup()

        assert result.deleted == 1
        assert result.skipped == 1
        assert result.errors == 0
        assert not folder_service.get_case_folder("u1", "2024_001").exists()
        assert folder_service.get_case_folder("u2", "2024_001").is_dir()

    @pytest.mark.asyncio
    async def test_shared_folder_lookup_failure_keeps_folder(
        self, cleanup_service, case_dao, folder_service, monkeypatch
    ):
        await seed_case(case_dao, folder_service, "u1", "c1", CaseStatus.CLOSED, days_ago(100))
        monkeypatch.setattr(
            case_dao, "find_by_owner", AsyncMock(side_effect=RuntimeError("database is locked"))
        )

        result = await cleanup_service.run_cleanup()

        assert result.errors == 1
        assert "could not check shared folder" in result.details[0].error
        assert folder_service.get_case_folder("u1", "c1").is_dir()

    @pytest.mark.asyncio
    async def test_second_run_is_a_noop(self, cleanup_service, case_dao, folder_service):
        await seed_case(case_dao, folder_service, "u1", "c1", CaseStatus.CLOSED, days_ago(100))

        first = await cleanup_service.run_cleanup()
        second = await cleanup_service.run_cleanup()

        assert first.deleted == 1
        assert second.deleted == 0
        assert second.errors == 0
        assert second.skipped == 1

    @pytest.mark.asyncio
    async def test_zero_retention_sweeps_all_closed(
        self, make_config, case_dao, folder_service
    ):
        service = build_service(make_config(retention_days=0), case_dao, folder_service)
        await seed_case(case_dao, folder_service, "u1", "closed-now", CaseStatus.CLOSED, NOW)
        await seed_case(case_dao, folder_service, "u1", "open-old", CaseStatus.REVIEW, days_ago(10))

        result = await service.run_cleanup()

        assert result.deleted == 1
        assert result.retention_days == 0
        assert not folder_service.get_case_folder("u1", "closed-now").exists()
        assert folder_service.get_case_folder("u1", "open-old").is_dir()

    @pytest.mark.asyncio
    async def test_last_result_recorded(self, cleanup_service):
        assert cleanup_service.last_result is None

        result = await cleanup_service.run_cleanup(CleanupTrigger.SCHEDULED)

        assert cleanup_service.last_result is result
        assert result.trigger == CleanupTrigger.SCHEDULED
        assert result.duration_ms == 0


class TestQueryFailure:
    @pytest.mark.asyncio
    async def test_query_error_aborts_without_deleting(self, config, folder_service):
        folder_service.save_file("u1", "c1", "case.json", "{}")
        repository = AsyncMock()
        repository.find_closed_before.side_effect = RuntimeError("database is locked")
        service = build_service(config, repository, folder_service)

        with pytest.raises(CaseQueryError, match="database is locked"):
            await service.run_cleanup()

        assert folder_service.get_case_folder("u1", "c1").is_dir()
        assert not service.is_running
        assert service.last_result is None


class TestSingleFlight:
    @pytest.mark.asyncio
    async def test_concurrent_run_rejected(self, config, folder_service):
        release = asyncio.Event()
        repository = AsyncMock()

        async def slow_query(cutoff):
            await release.wait()
            return []

        repository.find_closed_before.side_effect = slow_query
        service = build_service(config, repository, folder_service)

        first = asyncio.create_task(service.run_cleanup())
        while not service.is_running:
            await asyncio.sleep(0)

        with pytest.raises(CleanupAlreadyRunningError):
            await service.run_cleanup()

        release.set()
        result = await first

        assert result.deleted == 0
        assert not service.is_running
        repository.find_closed_before.assert_awaited_once()


class TestTimeouts:
    @pytest.mark.asyncio
    async def test_slow_deletion_times_out_per_case(
        self, make_config, case_dao, folder_service, monkeypatch
    ):
        config = make_config(case_timeout_seconds=0.05)
        service = build_service(config, case_dao, folder_service)
        await seed_case(case_dao, folder_service, "u1", "slow", CaseStatus.CLOSED, days_ago(100))

        def slow_delete(owner_id, case_id):
            time.sleep(0.3)
            return FolderDeletionStatus.DELETED

        monkeypatch.setattr(folder_service, "delete_case_folder", slow_delete)

        result = await service.run_cleanup()

        assert result.errors == 1
        assert result.deleted == 0
        assert "timed out" in result.details[0].error

    @pytest.mark.asyncio
    async def test_run_budget_exhausted(
        self, make_config, case_dao, folder_service, monkeypatch
    ):
        config = make_config(run_timeout_seconds=0.01)
        service = build_service(config, case_dao, folder_service)
        await seed_case(case_dao, folder_service, "u1", "first", CaseStatus.CLOSED, days_ago(200))
        await seed_case(case_dao, folder_service, "u1", "second", CaseStatus.CLOSED, days_ago(100))

        def slow_delete(owner_id, case_id):
            time.sleep(0.2)
            return FolderDeletionStatus.DELETED

        monkeypatch.setattr(folder_service, "delete_case_folder", slow_delete)

        result = await service.run_cleanup()

        assert result.errors == 2
        assert result.deleted == 0
        assert result.details[-1].error == "run timeout exceeded"


class TestRecordPolicies:
    @pytest.mark.asyncio
    async def test_mark_purged_stamps_record(self, make_config, test_db, folder_service):
        config = make_config(case_record_policy=CaseRecordPolicy.MARK_PURGED)
        dao = CaseDAO(test_db, exclude_purged=True)
        service = build_service(config, dao, folder_service)
        closed_at = days_ago(100)
        await seed_case(dao, folder_service, "u1", "c1", CaseStatus.CLOSED, closed_at)

        result = await service.run_cleanup()
        second = await service.run_cleanup()

        assert result.details[0].record_updated
        record = await dao.get("u1", "c1")
        assert record.files_purged_at == NOW
        assert record.updated_at == closed_at
        # Purged records are no longer candidates
        assert second.details == []

    @pytest.mark.asyncio
    async def test_delete_policy_removes_record(self, make_config, case_dao, folder_service):
        config = make_config(case_record_policy=CaseRecordPolicy.DELETE)
        service = build_service(config, case_dao, folder_service)
        await seed_case(case_dao, folder_service, "u1", "c1", CaseStatus.CLOSED, days_ago(100))

        result = await service.run_cleanup()

        assert result.deleted == 1
        assert result.details[0].record_updated
        assert await case_dao.get("u1", "c1") is None

    @pytest.mark.asyncio
    async def test_record_policy_failure_keeps_folder_deletion(
        self, make_config, case_dao, folder_service, monkeypatch
    ):
        config = make_config(case_record_policy=CaseRecordPolicy.MARK_PURGED)
        service = build_service(config, case_dao, folder_service)
        await seed_case(case_dao, folder_service, "u1", "c1", CaseStatus.CLOSED, days_ago(100))
        monkeypatch.setattr(
            case_dao, "mark_files_purged", AsyncMock(side_effect=RuntimeError("disk I/O error"))
        )

        result = await service.run_cleanup()

        detail = result.details[0]
        assert result.deleted == 1
        assert result.errors == 0
        assert detail.status == FolderDeletionStatus.DELETED
        assert not detail.record_updated
        assert "disk I/O error" in detail.error
