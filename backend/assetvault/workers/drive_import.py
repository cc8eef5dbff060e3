"""Background runner for Drive import jobs."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from assetvault.core.logging import bind_import_context, clear_import_context, get_logger
from assetvault.db.session import async_session_maker
from assetvault.services.credentials import AccessCredentials
from assetvault.services.drive_import import DriveImportService
from assetvault.services.google_drive import DriveClient, DriveFolderLister
from assetvault.services.job_tracker import ImportJobError, ImportJobTracker
from assetvault.services.metadata import MetadataExtractor
from assetvault.services.pipeline import FileOutcome, ImportPipeline
from assetvault.services.registration import DatabaseRegistrar
from assetvault.services.storage import LocalStorage

logger = get_logger(__name__)

SHUTDOWN_TIMEOUT_SECONDS = 30.0


class DriveImportWorker:
    """Runs import jobs as asyncio tasks in the server process.

    A job owns its error boundary: nothing it raises reaches the request
    that started it. Whatever escapes the file loop becomes the job's
    FAILED status and error message.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession] | None = None,
        client_factory: Callable[[AccessCredentials], DriveClient] = DriveClient,
        storage: LocalStorage | None = None,
        extractor: MetadataExtractor | None = None,
    ):
        self.session_maker = session_maker or async_session_maker
        self.client_factory = client_factory
        self.storage = storage
        self.extractor = extractor
        self.tracker = ImportJobTracker(self.session_maker)
        self._tasks: set[asyncio.Task] = set()
        self._jobs_completed = 0
        self._jobs_failed = 0

    @property
    def active_jobs(self) -> int:
        return len(self._tasks)

    def submit(self, job_id: str) -> asyncio.Task:
        """Start a committed PENDING job in the background."""
        task = asyncio.create_task(self.run_job(job_id), name=f"drive-import-{job_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def run_job(self, job_id: str) -> None:
        """Run one import job to a terminal status."""
        bind_import_context(job_id=job_id)
        try:
            await self._run(job_id)
            self._jobs_completed += 1
        except asyncio.CancelledError:
            await self._fail(job_id, "Import interrupted by shutdown")
            raise
        except Exception as e:
            logger.error("drive_import_failed", error=str(e), error_type=type(e).__name__, exc_info=True)
            await self._fail(job_id, str(e) or type(e).__name__)
        finally:
            clear_import_context()

    async def _run(self, job_id: str) -> None:
        job = await self.tracker.get(job_id)
        if job is None:
            logger.error("drive_import_job_missing")
            return
        bind_import_context(project_id=job.project_id)

        await self.tracker.mark_running(job_id)

        async with self.session_maker() as session:
            config, credentials = await DriveImportService(session).resolve_job_source(job)

        folder_label = config.drive_folder_name or config.drive_folder_id
        lister = DriveFolderLister(
            self.client_factory(credentials),
            config.drive_folder_id,
            config.drive_folder_name,
        )
        pipeline = ImportPipeline(
            lister,
            DatabaseRegistrar(self.session_maker, self.storage),
            job.project_id,
            extractor=self.extractor,
            import_job_id=job_id,
            version_description=f"Imported from Google Drive folder {folder_label}",
        )

        logger.info("drive_import_started", folder_id=config.drive_folder_id)
        counts = {outcome: 0 for outcome in FileOutcome}

        async for source_file in lister.iter_files():
            await self.tracker.increment_total(job_id)
            result = await pipeline.process(source_file)
            await self.tracker.record_outcome(job_id, result.outcome)
            counts[result.outcome] += 1

        await self.tracker.mark_completed(job_id)
        logger.info(
            "drive_import_completed",
            imported=counts[FileOutcome.IMPORTED],
            skipped=counts[FileOutcome.SKIPPED],
            failed=counts[FileOutcome.FAILED],
            version_id=pipeline.version_id,
        )

        try:
            async with self.session_maker() as session:
                await DriveImportService(session).stamp_last_sync(config, datetime.now(timezone.utc))
                await session.commit()
        except Exception as e:
            logger.warning("drive_last_sync_update_failed", error=str(e))

    async def _fail(self, job_id: str, message: str) -> None:
        self._jobs_failed += 1
        try:
            await self.tracker.mark_failed(job_id, message)
        except ImportJobError as e:
            logger.warning("drive_import_fail_not_recorded", error=str(e))

    async def shutdown(self, timeout: float = SHUTDOWN_TIMEOUT_SECONDS) -> None:
        """Wait for running jobs; cancel the ones still running after ``timeout``."""
        if not self._tasks:
            return

        tasks = set(self._tasks)
        logger.info("drive_import_worker_stopping", running_jobs=len(tasks))
        _, pending = await asyncio.wait(tasks, timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        logger.info(
            "drive_import_worker_stopped",
            jobs_completed=self._jobs_completed,
            jobs_failed=self._jobs_failed,
            cancelled=len(pending),
        )


# Global worker instance
_worker: DriveImportWorker | None = None


def get_import_worker() -> DriveImportWorker:
    """Get the global import worker instance."""
    global _worker
    if _worker is None:
        _worker = DriveImportWorker()
    return _worker
