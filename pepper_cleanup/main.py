"""Service bootstrap and command line entry point.

Two ways to run:
- API + in-process scheduler (default): serves the manual trigger and
  fires the sweep on the configured cron schedule.
- --run-once: one sweep and exit, for hosts where system cron or a
  container job owns the timing.
"""

import asyncio
import logging
import sys

from fastapi import FastAPI

from pepper_cleanup.config import CleanupConfig
from pepper_cleanup.dao import CaseDAO
from pepper_cleanup.database import Database
from pepper_cleanup.enums import CaseRecordPolicy, CleanupTrigger
from pepper_cleanup.observability.error_log_file import setup_error_log_file
from pepper_cleanup.routers import create_case_cleanup_router
from pepper_cleanup.scheduler import CaseCleanupScheduler, case_cleanup_task
from pepper_cleanup.security import create_bearer_auth_dependency
from pepper_cleanup.services import (
    CaseCleanupService,
    CaseFolderService,
    CaseQueryError,
)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)

logging.getLogger("aiosqlite").setLevel(logging.WARNING)


class Application:
    """Holds the wired components of one service process.

    Built in two steps: the constructor only stores config, setup()
    creates the database, DAO, services and scheduler. shutdown() stops
    the scheduler before the engine is disposed.
    """

    def __init__(self, config: CleanupConfig) -> None:
        self.config = config

        self.database: Database | None = None
        self.fastapi_app: FastAPI | None = None
        self.case_dao: CaseDAO | None = None
        self.folder_service: CaseFolderService | None = None
        self.cleanup_service: CaseCleanupService | None = None
        self.scheduler: CaseCleanupScheduler | None = None

    async def setup(self) -> None:
        """Create and wire every component from config."""
        # First, so setup failures also land in the error log
        setup_error_log_file(self.config)

        self.database = Database(self.config.database_url)
        if self.config.auto_create_tables:
            await self.database.init_db()
            logger.info("Case store tables ensured via create_all")
        else:
            logger.info("Case store schema managed by Alembic")

        # With mark_purged, stamped rows must drop out of later sweeps
        self.case_dao = CaseDAO(
            self.database,
            exclude_purged=self.config.case_record_policy == CaseRecordPolicy.MARK_PURGED,
        )
        self.folder_service = CaseFolderService(self.config)
        self.cleanup_service = CaseCleanupService(
            config=self.config,
            repository=self.case_dao,
            folder_service=self.folder_service,
        )
        self.scheduler = CaseCleanupScheduler(
            config=self.config,
            cleanup_service=self.cleanup_service,
        )

        logger.info(
            "Case cleanup ready (retention: %d days, record policy: %s, cases dir: %s)",
            self.config.retention_days,
            self.config.case_record_policy.value,
            self.folder_service.base_dir,
        )

    def create_fastapi_app(self) -> FastAPI:
        """Build the HTTP app exposing the manual trigger and health check."""
        self.fastapi_app = FastAPI(
            title="Pepper Case Cleanup",
            description="Retention sweep for closed Pepper cases",
            version="1.0.0",
        )
        register_routes(self.fastapi_app, self)
        return self.fastapi_app

    async def start_background_services(self) -> None:
        if self.scheduler:
            await self.scheduler.start()

    async def shutdown(self) -> None:
        """Stop the scheduler, then release the database."""
        if self.scheduler:
            await self.scheduler.stop()

        if self.database:
            await self.database.close()

        logger.info("Case cleanup service stopped")


def register_routes(fastapi_app: FastAPI, application: Application) -> None:
    """Mount the cleanup router (bearer protected) and /health."""
    if application.cleanup_service:
        require_token = create_bearer_auth_dependency(
            application.config.jwt_secret,
            application.config.jwt_algorithm,
        )
        fastapi_app.include_router(
            create_case_cleanup_router(
                application.cleanup_service,
                require_token,
                scheduler=application.scheduler,
            )
        )

    @fastapi_app.get("/health")
    async def health_check():
        return {"status": "healthy"}


_app: Application | None = None


async def create_app(config: CleanupConfig | None = None) -> Application:
    """Set up an Application and its FastAPI app.

    Args:
        config: Configuration to use; loaded with CleanupConfig.from_json_file()
            when omitted.
    """
    global _app

    _app = Application(config or CleanupConfig.from_json_file())
    await _app.setup()
    _app.create_fastapi_app()
    return _app


async def run_once(config: CleanupConfig) -> int:
    """Run a single sweep and return a process exit code.

    Prints the run result as JSON. Returns 1 when the case store could
    not be queried; per-case failures still exit 0 and are listed in
    the result.
    """
    application = Application(config)
    await application.setup()

    try:
        result = await case_cleanup_task(
            application.cleanup_service, trigger=CleanupTrigger.CLI
        )
    except CaseQueryError as e:
        logger.error("Case cleanup could not run: %s", e)
        return 1
    finally:
        await application.shutdown()

    if result is not None:
        print(result.to_json(pretty=True))
    return 0


async def main(reload: bool = False) -> None:
    """Serve the API with the scheduler running until uvicorn exits.

    Args:
        reload: Passed through to uvicorn for development.
    """
    import uvicorn

    try:
        config = CleanupConfig.from_json_file()
        application = await create_app(config)
        await application.start_background_services()

        logger.info(
            "Pepper case cleanup listening on http://%s:%d",
            config.api_host,
            config.api_port,
        )
        server = uvicorn.Server(
            uvicorn.Config(
                application.fastapi_app,
                host=config.api_host,
                port=config.api_port,
                log_level="info",
                reload=reload,
            )
        )
        await server.serve()
    except Exception as e:
        logger.exception("Case cleanup service failed: %s", e)
        raise
    finally:
        if _app:
            await _app.shutdown()


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Pepper closed case retention cleanup")
    parser.add_argument("--reload", action="store_true", help="Reload on code changes")
    parser.add_argument(
        "--run-once",
        action="store_true",
        help="Run one cleanup sweep, print the result and exit",
    )
    args = parser.parse_args()

    if args.run_once:
        sys.exit(asyncio.run(run_once(CleanupConfig.from_json_file())))

    asyncio.run(main(reload=args.reload))
